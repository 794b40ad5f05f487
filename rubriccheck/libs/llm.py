"""LLM utilities: agent factory and the chat-completion boundary used by the grader."""


import logging
import os
from typing import Any, Dict, List, Literal, Optional, Sequence

import httpx
from openai import APIConnectionError
from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIResponsesModel, OpenAIResponsesModelSettings

from rubriccheck.libs.config_loader import ConfigType, get_config
from rubriccheck.libs.errors import InvalidModelOutput, NetworkFailure, QuotaExceeded

LOG = logging.getLogger(__name__)

# Fix up logging level for httpx to WARNING to reduce noise
logging.getLogger("httpx").setLevel(logging.WARNING)

QUOTA_MARKERS = ("quota", "rate limit", "rate_limit", "resource_exhausted", "quota_exceeded")


class LLMMessage(BaseModel):
    """One role-tagged message sent across the LLM boundary."""
    role: Literal["system", "user", "assistant"] = Field(description="Speaker of the message")
    content: str = Field(description="Message text")


def create_agent(configs: ConfigType,
                 model: Optional[str] = None,
                 settings_dict: Optional[Dict[str, Any]] = None,
                 system_prompt: Optional[str] = None) -> Agent:
    """
    Create a pydantic-ai Agent configured with OpenAI models.

    Args:
        configs: Configuration dictionary (required)
        model: Model to use (overrides config value)
        settings_dict: Pydantic AI settings dict (overrides config values)
        system_prompt: System prompt for the agent (optional)

    Returns:
        Configured Agent

    Raises:
        KeyError: If the OpenAI API key is not found in config
    """
    api_key = get_config("openai.api_key", configs)
    organization = get_config("openai.organization", configs, default=None)
    model = model or get_config("openai.model", configs, default="gpt-4o-mini")
    base_settings = get_config("openai.pydantic_ai_settings", configs, default={}) or {}

    os.environ['OPENAI_API_KEY'] = api_key
    if organization:
        os.environ['OPENAI_ORG_ID'] = organization

    settings_dict = base_settings | (settings_dict or {})
    model_settings = OpenAIResponsesModelSettings(**settings_dict) if settings_dict else None
    openai_model = OpenAIResponsesModel(model)
    if system_prompt:
        agent = Agent(
            model=openai_model,
            model_settings=model_settings,
            system_prompt=system_prompt,
            retries=0,
        )
    else:
        agent = Agent(
            model=openai_model,
            model_settings=model_settings,
            retries=0,
        )
    return agent


def to_message_history(messages: Sequence[LLMMessage]) -> List[ModelMessage]:
    """Convert role-tagged messages into pydantic-ai message history."""
    history: List[ModelMessage] = []
    for message in messages:
        if message.role == "system":
            history.append(ModelRequest(parts=[SystemPromptPart(content=message.content)]))
        elif message.role == "user":
            history.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=message.content)]))
    return history


def is_quota_error(exc: Exception) -> bool:
    """Whether a provider failure means rate limiting rather than a generic error."""
    if isinstance(exc, ModelHTTPError) and exc.status_code == 429:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in QUOTA_MARKERS)


class ChatClient:
    """
    Request/response boundary to the chat-completion model.

    Accepts an ordered list of role-tagged messages plus a sampling temperature and
    returns the generated text. Provider failures are normalized into
    QuotaExceeded, NetworkFailure or InvalidModelOutput.
    """

    def __init__(self, configs: ConfigType, model: Optional[str] = None,
                 settings: Optional[Dict[str, Any]] = None):
        self.configs = configs
        self.cooldown_seconds = float(
            get_config("grading.quota_cooldown_seconds", configs, default=60)
        )
        self.agent = create_agent(configs=configs, model=model, settings_dict=settings)

    async def complete(self, messages: Sequence[LLMMessage], temperature: float = 0.0) -> str:
        """Send messages to the model and return its text reply."""
        if not messages or messages[-1].role != "user":
            raise ValueError("The last message sent to the model must be a user message")

        history = to_message_history(messages[:-1])
        try:
            result = await self.agent.run(
                messages[-1].content,
                message_history=history or None,
                model_settings={"temperature": temperature},
            )
        except ModelHTTPError as e:
            if is_quota_error(e):
                LOG.warning("Model quota exceeded (HTTP %s)", e.status_code)
                raise QuotaExceeded(retry_after=self.cooldown_seconds) from e
            LOG.error("Model HTTP error %s: %s", e.status_code, e)
            raise NetworkFailure(f"Model request failed with HTTP {e.status_code}") from e
        except UnexpectedModelBehavior as e:
            LOG.error("Unexpected model behavior: %s", e)
            raise InvalidModelOutput(str(e)) from e
        except (APIConnectionError, httpx.HTTPError) as e:
            LOG.error("Could not reach the model: %s", e)
            raise NetworkFailure(str(e)) from e
        except AgentRunError as e:
            if is_quota_error(e):
                raise QuotaExceeded(retry_after=self.cooldown_seconds) from e
            LOG.error("Model run failed: %s", e)
            raise NetworkFailure(str(e)) from e

        if hasattr(result, 'output'):
            return str(result.output)
        elif hasattr(result, 'data'):
            return str(result.data)
        return str(result)
