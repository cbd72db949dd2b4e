"""Exception hierarchy shared by providers, the retry layer and the service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .outcome import SolveOutcome

__all__ = [
    "CaptchaSolverError",
    "CaptchaProviderError",
    "RetriesExhaustedError",
    "UnsupportedTaskError",
    "ConfigError",
    "SolveError",
]


class CaptchaSolverError(Exception):
    """Base class for library specific errors."""


class CaptchaProviderError(CaptchaSolverError):
    """Failure reported by (or while talking to) a captcha solving vendor.

    ``retryable`` tells the retry layer whether repeating the *same call* may
    succeed. ``retry_operation`` answers a different question: whether a
    brand new solve of the same task is worth attempting.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        retry_operation: bool | None = None,
        code: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.retry_operation = retryable if retry_operation is None else retry_operation
        self.code = code
        self.payload = payload

    def is_retryable(self) -> bool:
        return self.retryable

    def should_retry_operation(self) -> bool:
        return self.retry_operation


class RetriesExhaustedError(CaptchaProviderError):
    """Raised when a retryable failure persisted past the retry budget."""

    def __init__(self, last_error: CaptchaProviderError, attempts: int) -> None:
        super().__init__(
            f"Retry exhausted after {attempts} attempts: {last_error}",
            retryable=False,
            retry_operation=last_error.should_retry_operation(),
            code=last_error.code,
            payload=last_error.payload,
        )
        self.last_error = last_error
        self.attempts = attempts


class UnsupportedTaskError(CaptchaProviderError):
    """Raised when a provider cannot encode the requested task type."""

    def __init__(self, task_type: str, provider: str) -> None:
        super().__init__(
            f"Task type {task_type} is not supported by {provider}",
            retryable=False,
            code="UNSUPPORTED_TASK",
        )
        self.task_type = task_type
        self.provider = provider


class ConfigError(CaptchaSolverError, ValueError):
    """Raised when solve or retry timing parameters are invalid."""


class SolveError(CaptchaSolverError):
    """Raised by :meth:`SolveOutcome.unwrap` for any non-successful outcome."""

    def __init__(self, outcome: "SolveOutcome") -> None:
        super().__init__(outcome.describe())
        self.outcome = outcome

    @property
    def task_id(self) -> str | None:
        return None if self.outcome.task_id is None else str(self.outcome.task_id)

    @property
    def elapsed_seconds(self) -> float:
        return self.outcome.elapsed_seconds

    @property
    def poll_count(self) -> int:
        return self.outcome.poll_count

    def is_timeout(self) -> bool:
        return self.outcome.is_timeout

    def is_cancelled(self) -> bool:
        return self.outcome.is_cancelled
