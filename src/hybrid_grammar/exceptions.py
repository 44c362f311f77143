"""Exception hierarchy for the hybrid grammar engine.

Only `InvalidInputError` and the admission errors ever reach callers of
`AnalysisOrchestrator.check_grammar`; the rest are raised and recovered
inside the engine.
"""

from pathlib import Path


class HybridGrammarError(Exception):
    """Base exception for all engine errors."""


class InvalidInputError(HybridGrammarError, ValueError):
    """Raised when text or context is empty or not a string."""


class OffsetMismatchError(HybridGrammarError):
    """A checker's claimed substring could not be located near its offset."""

    def __init__(self, claimed: str, start: int, end: int) -> None:
        self.claimed = claimed
        self.start = start
        self.end = end
        super().__init__(
            f"Claimed text {claimed!r} not found near range [{start}, {end})"
        )


class RemoteCallError(HybridGrammarError):
    """A remote rewrite or spelling service call failed."""

    def __init__(
        self, message: str, *, service: str = "remote", cause: Exception | None = None
    ) -> None:
        self.service = service
        self.cause = cause
        super().__init__(f"{service}: {message}")


class CacheError(HybridGrammarError):
    """Cache persistence I/O failed."""


class AdmissionError(HybridGrammarError):
    """Base for request admission-control rejections."""


class QueueTimeoutError(AdmissionError):
    """A queued request was not dispatched before its timeout."""

    def __init__(self, request_id: str, timeout_ms: float) -> None:
        self.request_id = request_id
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Request {request_id} timed out after {timeout_ms:.0f}ms in queue"
        )


class CostThresholdExceededError(AdmissionError):
    """The caller's daily cost ceiling would be exceeded."""

    def __init__(
        self, caller_id: str, tier: str, projected: float, limit: float
    ) -> None:
        self.caller_id = caller_id
        self.tier = tier
        self.projected = projected
        self.limit = limit
        super().__init__(
            f"Daily cost threshold exceeded for {caller_id!r} ({tier}): "
            f"{projected:.4f} > {limit:.4f}"
        )


class RequestCancelledError(AdmissionError):
    """A queued request was cancelled before dispatch."""


class ConfigurationError(HybridGrammarError):
    """Raised for invalid or inconsistent configuration."""


class ConfigFileError(ConfigurationError):
    """Raised when a configuration file cannot be loaded."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        """Initialize with file path, message, and optional cause.

        Args:
            file_path: The file that failed to load
            message: Human-readable error message
            cause: The underlying exception that caused the failure
        """
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")
