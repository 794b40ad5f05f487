"""Error taxonomy shared by the LLM boundary, the grader and the storage layer."""

from typing import Optional


class RubricCheckError(Exception):
    """Base class for failures that reach the interface layer."""


class QuotaExceeded(RubricCheckError):
    """The LLM provider reported rate limiting or quota exhaustion.

    Recoverable: callers start a cooldown of ``retry_after`` seconds before allowing a retry.
    """

    def __init__(self, message: str = "QUOTA_EXCEEDED", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class InvalidModelOutput(RubricCheckError):
    """The model replied with text that does not parse into the expected shape."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class NetworkFailure(RubricCheckError):
    """The LLM provider could not be reached or failed for a non-quota reason."""


class StorageWriteFailure(RubricCheckError):
    """A cache or draft write could not be persisted."""
