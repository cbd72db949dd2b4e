"""Provider capability implemented by every captcha solving backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

__all__ = ["TaskId", "Provider", "TaskT", "SolutionT"]

TaskT = TypeVar("TaskT", contravariant=True)
SolutionT = TypeVar("SolutionT", covariant=True)


@dataclass(frozen=True, slots=True)
class TaskId:
    """Vendor issued identifier of a submitted task."""

    value: str

    def __str__(self) -> str:
        return self.value


@runtime_checkable
class Provider(Protocol[TaskT, SolutionT]):
    """Two-step asynchronous solving contract.

    ``submit`` hands a task to the vendor and returns its identifier.
    ``poll`` performs a single status check and returns ``None`` while the
    vendor is still working. Each call is exactly one network round trip;
    failures are raised as :class:`~captcha_solvers.errors.CaptchaProviderError`.
    """

    async def submit(self, task: TaskT) -> TaskId:
        ...

    async def poll(self, task_id: TaskId) -> SolutionT | None:
        ...
