"""Grading orchestrator: prompt, call the model, parse, aggregate and cache."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

import httpx

from rubriccheck.libs.config_loader import ConfigType, get_config
from rubriccheck.libs.errors import NetworkFailure
from rubriccheck.libs.llm import ChatClient, LLMMessage
from rubriccheck.libs.storage import JsonFileStore, KeyValueStore, MemoryStore
from .fingerprint import FingerprintCache, fingerprint, rewrite_fingerprint
from .models import AnalysisResult, ChatMessage, CriterionResult, GradingRequest, UploadedFile
from .prompts import build_chat_messages, build_grading_messages, build_rewrite_messages
from .response_parser import parse_analysis, parse_rewrites

LOG = logging.getLogger(__name__)


class CompletionClient(Protocol):
    async def complete(self, messages: Sequence[LLMMessage], temperature: float = 0.0) -> str: ...


def create_store(configs: ConfigType) -> KeyValueStore:
    """Store configured by ``grading.cache_dir``; in-memory when no directory is set."""
    max_value_bytes = get_config("storage.max_value_bytes", configs, default=None)
    cache_dir = get_config("grading.cache_dir", configs, default=None)
    if not cache_dir:
        return MemoryStore(max_value_bytes=max_value_bytes)
    cache_path = Path(cache_dir)
    if not cache_path.is_absolute():
        cache_path = (Path.cwd() / cache_path).resolve()
    return JsonFileStore(cache_path, max_value_bytes=max_value_bytes)


class RubricGrader:
    """Grade a submission against a rubric through the chat-completion model."""

    def __init__(self, configs: ConfigType,
                 client: Optional[CompletionClient] = None,
                 cache: Optional[FingerprintCache] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        Initialize the grader.

        Args:
            configs: Configuration dictionary (required)
            client: Model boundary (defaults to a ChatClient built from configs)
            cache: Result cache (defaults to the store configured under grading.cache_dir)
            clock: Monotonic clock used for the minimum-latency floor
            sleep: Coroutine used to wait out the floor
        """
        self.configs = configs
        self.temperature = float(get_config("grading.temperature", configs, default=0.1))
        self.rewrite_temperature = float(get_config("grading.rewrite_temperature", configs, default=0.7))
        self.chat_temperature = float(get_config("grading.chat_temperature", configs, default=0.0))
        self.min_latency = float(get_config("grading.min_latency_seconds", configs, default=5.0))

        self.client = client or ChatClient(configs)
        self.cache = cache or FingerprintCache(create_store(configs))
        self._clock = clock
        self._sleep = sleep

    async def analyze_async(self, request: GradingRequest) -> AnalysisResult:
        """
        Grade a request, reusing a cached result for identical inputs.

        Successful calls never return before ``min_latency`` seconds have passed.

        Raises:
            QuotaExceeded: The model reported rate limiting
            InvalidModelOutput: The reply did not parse into a known shape
            NetworkFailure: The model could not be reached
        """
        started = self._clock()
        stable_id = fingerprint(request)

        cached = self.cache.get(stable_id)
        if cached is not None:
            LOG.info("Cache hit for %s", stable_id[:12])
            await self._wait_for_floor(started)
            return cached

        messages = build_grading_messages(request)
        LOG.info("Grading %s (%s, strict=%s)", stable_id[:12], request.work_type, request.strict)
        text = await self._complete(messages, self.temperature)
        result = parse_analysis(text)
        LOG.info("Graded %d criteria, score %d", len(result.criteria), result.summary.score)

        self.cache.put(stable_id, result)
        await self._wait_for_floor(started)
        return result

    def analyze(self,
                rubric_text: str = "",
                rubric_files: Sequence[UploadedFile] = (),
                submission_text: str = "",
                submission_files: Sequence[UploadedFile] = (),
                explanation: str = "",
                strict: bool = False,
                work_type: str = "General") -> AnalysisResult:
        """Synchronous wrapper around analyze_async."""
        request = GradingRequest(
            rubric_text=rubric_text,
            rubric_files=list(rubric_files),
            submission_text=submission_text,
            submission_files=list(submission_files),
            explanation=explanation,
            strict=strict,
            work_type=work_type,
        )
        return asyncio.run(self.analyze_async(request))

    async def suggest_rewrites_async(self, criterion: CriterionResult, submission_text: str,
                                     rubric_text: str) -> List[str]:
        """Ask for three alternative phrasings that would satisfy ``criterion``."""
        stable_id = rewrite_fingerprint(criterion, submission_text, rubric_text)
        cached = self.cache.get_rewrites(stable_id)
        if cached is not None:
            return cached

        messages = build_rewrite_messages(criterion, submission_text, rubric_text)
        suggestions = parse_rewrites(await self._complete(messages, self.rewrite_temperature))
        self.cache.put_rewrites(stable_id, suggestions)
        return suggestions

    def suggest_rewrites(self, criterion: CriterionResult, submission_text: str,
                         rubric_text: str) -> List[str]:
        return asyncio.run(self.suggest_rewrites_async(criterion, submission_text, rubric_text))

    async def chat_async(self, history: Sequence[ChatMessage], request: GradingRequest,
                         result: Optional[AnalysisResult]) -> str:
        """Answer the latest chat turn with the rubric, work and summary as context."""
        messages = build_chat_messages(history, request, result)
        return await self._complete(messages, self.chat_temperature)

    def chat(self, history: Sequence[ChatMessage], request: GradingRequest,
             result: Optional[AnalysisResult]) -> str:
        return asyncio.run(self.chat_async(history, request, result))

    async def _complete(self, messages: Sequence[LLMMessage], temperature: float) -> str:
        try:
            return await self.client.complete(messages, temperature=temperature)
        except (OSError, httpx.HTTPError, asyncio.TimeoutError) as e:
            LOG.error("Model call failed: %s", e)
            raise NetworkFailure(str(e)) from e

    async def _wait_for_floor(self, started: float) -> None:
        remaining = self.min_latency - (self._clock() - started)
        if remaining > 0:
            await self._sleep(remaining)
