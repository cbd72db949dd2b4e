"""Typed result of a solve run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from .errors import CaptchaProviderError, RetriesExhaustedError, SolveError
from .providers.base import TaskId

__all__ = ["SolveStatus", "SolveOutcome"]

S = TypeVar("S")


class SolveStatus(str, Enum):
    """Terminal state reached by :class:`CaptchaSolverService`."""

    COMPLETED = "completed"
    SUBMISSION_FAILED = "submission_failed"
    RETRIES_EXHAUSTED = "retries_exhausted"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class SolveOutcome(Generic[S]):
    """Container returned by :meth:`CaptchaSolverService.solve`.

    ``solution`` is set only for ``COMPLETED``; ``error`` only for the
    failure statuses. Elapsed time is measured from submission and is
    always available, as is the number of polls performed.
    """

    status: SolveStatus
    elapsed_seconds: float = 0.0
    poll_count: int = 0
    task_id: TaskId | None = None
    solution: S | None = None
    error: CaptchaProviderError | None = None
    timeout_seconds: float | None = None

    @property
    def is_success(self) -> bool:
        return self.status is SolveStatus.COMPLETED

    @property
    def is_timeout(self) -> bool:
        return self.status is SolveStatus.TIMED_OUT

    @property
    def is_cancelled(self) -> bool:
        return self.status is SolveStatus.CANCELLED

    @property
    def is_submission_failure(self) -> bool:
        return self.status is SolveStatus.SUBMISSION_FAILED

    @property
    def is_retries_exhausted(self) -> bool:
        if self.status is SolveStatus.RETRIES_EXHAUSTED:
            return True
        return self.is_submission_failure and isinstance(
            self.error, RetriesExhaustedError
        )

    @property
    def is_fatal(self) -> bool:
        if self.status is SolveStatus.FAILED:
            return True
        return self.is_submission_failure and not self.is_retries_exhausted

    @property
    def last_error(self) -> CaptchaProviderError | None:
        """Underlying vendor error, unwrapping exhausted retries."""

        if isinstance(self.error, RetriesExhaustedError):
            return self.error.last_error
        return self.error

    def should_retry_operation(self) -> bool:
        """Whether starting a fresh solve of the same task may succeed."""

        if self.status is SolveStatus.TIMED_OUT:
            return True
        if self.error is not None:
            return self.error.should_retry_operation()
        return False

    def unwrap(self) -> S:
        """Return the solution or raise :class:`SolveError`."""

        if self.status is SolveStatus.COMPLETED and self.solution is not None:
            return self.solution
        raise SolveError(self)

    def describe(self) -> str:
        if self.status is SolveStatus.COMPLETED:
            return f"Task {self.task_id} solved after {self.poll_count} polls"
        if self.status is SolveStatus.TIMED_OUT:
            return (
                f"Task {self.task_id} timed out after {self.elapsed_seconds:.1f}s"
                f" ({self.poll_count} polls, limit {self.timeout_seconds}s)"
            )
        if self.status is SolveStatus.CANCELLED:
            return (
                f"Solve cancelled after {self.elapsed_seconds:.1f}s"
                f" ({self.poll_count} polls)"
            )
        if self.status is SolveStatus.SUBMISSION_FAILED:
            return f"Task submission failed: {self.error}"
        return f"Task {self.task_id} failed: {self.error}"
