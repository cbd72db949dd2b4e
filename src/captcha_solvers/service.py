"""Solve orchestration: submit once, then poll until a terminal state."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, Generic

import structlog

from .cancellation import CancellationToken
from .config import RetryConfig, SolveConfig, SolveConfigBuilder
from .errors import CaptchaProviderError, RetriesExhaustedError
from .outcome import SolveOutcome, SolveStatus
from .providers.base import Provider, SolutionT, TaskT
from .retry import OnRetry, RetryingProvider

__all__ = ["CaptchaSolverService", "ServiceBuilder"]

logger = structlog.get_logger(__name__)


class CaptchaSolverService(Generic[TaskT, SolutionT]):
    """Drive a provider through submit and polling under a deadline.

    The deadline clock starts once the task has been submitted. Every tick
    checks cancellation, then the deadline, then sleeps ``poll_interval``
    (woken early by cancellation) and polls once. In-flight provider calls
    are never interrupted and the service never retries on its own; wrap the
    provider with :class:`RetryingProvider` for that.
    """

    def __init__(
        self,
        provider: Provider[TaskT, SolutionT],
        config: SolveConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or SolveConfig.balanced()
        self._clock = clock or time.monotonic
        self._sleep = self._wrap_sleep(sleep)

    @classmethod
    def builder(cls, provider: Provider[TaskT, SolutionT]) -> "ServiceBuilder[TaskT, SolutionT]":
        return ServiceBuilder(provider)

    @staticmethod
    def _wrap_sleep(
        sleep: Callable[[float], Any] | None,
    ) -> Callable[[float], Awaitable[None]]:
        if sleep is None:
            return asyncio.sleep

        async def _async_sleep(seconds: float) -> None:
            result = sleep(seconds)
            if inspect.isawaitable(result):
                await result

        return _async_sleep

    async def __aenter__(self) -> "CaptchaSolverService[TaskT, SolutionT]":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        close = getattr(self.provider, "aclose", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result

    async def solve(
        self, task: TaskT, *, timeout_seconds: float | None = None
    ) -> SolveOutcome[SolutionT]:
        """Solve ``task`` using the configured timing.

        ``timeout_seconds`` overrides the configured deadline for this call.
        """

        config = self.config
        if timeout_seconds is not None:
            config = config.with_timeout(timeout_seconds)
        return await self._run(task, CancellationToken(), config)

    async def solve_cancellable(
        self, task: TaskT, token: CancellationToken
    ) -> SolveOutcome[SolutionT]:
        """Solve ``task``, stopping early once ``token`` is cancelled."""

        return await self._run(task, token, self.config)

    async def _run(
        self,
        task: TaskT,
        token: CancellationToken,
        config: SolveConfig,
    ) -> SolveOutcome[SolutionT]:
        if token.is_cancelled():
            logger.info("captcha.solve.cancelled", stage="before_submit", poll_count=0)
            return SolveOutcome(
                status=SolveStatus.CANCELLED, timeout_seconds=config.timeout_seconds
            )

        try:
            task_id = await self.provider.submit(task)
        except CaptchaProviderError as exc:
            logger.warning(
                "captcha.solve.failed",
                stage="submit",
                error=str(exc),
                error_code=exc.code,
                retries_exhausted=isinstance(exc, RetriesExhaustedError),
            )
            return SolveOutcome(
                status=SolveStatus.SUBMISSION_FAILED,
                error=exc,
                timeout_seconds=config.timeout_seconds,
            )

        started_at = self._clock()
        poll_count = 0
        logger.info(
            "captcha.solve.submitted",
            task_id=str(task_id),
            timeout_seconds=config.timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
        )

        def finish(status: SolveStatus, **fields: Any) -> SolveOutcome[SolutionT]:
            elapsed = self._clock() - started_at
            token.record_progress(elapsed_seconds=elapsed, poll_count=poll_count)
            return SolveOutcome(
                status=status,
                elapsed_seconds=elapsed,
                poll_count=poll_count,
                task_id=task_id,
                timeout_seconds=config.timeout_seconds,
                **fields,
            )

        while True:
            elapsed = self._clock() - started_at
            token.record_progress(elapsed_seconds=elapsed, poll_count=poll_count)

            if token.is_cancelled():
                return self._cancelled(finish(SolveStatus.CANCELLED))
            if elapsed >= config.timeout_seconds:
                outcome = finish(SolveStatus.TIMED_OUT)
                logger.warning(
                    "captcha.solve.timeout",
                    task_id=str(task_id),
                    elapsed_seconds=round(outcome.elapsed_seconds, 3),
                    poll_count=poll_count,
                )
                return outcome

            if await self._sleep_or_cancel(config.poll_interval_seconds, token):
                return self._cancelled(finish(SolveStatus.CANCELLED))

            try:
                solution = await self.provider.poll(task_id)
            except CaptchaProviderError as exc:
                poll_count += 1
                status = (
                    SolveStatus.RETRIES_EXHAUSTED
                    if isinstance(exc, RetriesExhaustedError)
                    else SolveStatus.FAILED
                )
                logger.warning(
                    "captcha.solve.failed",
                    stage="poll",
                    task_id=str(task_id),
                    status=status.value,
                    poll_count=poll_count,
                    error=str(exc),
                    error_code=exc.code,
                )
                return finish(status, error=exc)
            poll_count += 1

            if solution is not None:
                outcome = finish(SolveStatus.COMPLETED, solution=solution)
                logger.info(
                    "captcha.solve.completed",
                    task_id=str(task_id),
                    elapsed_seconds=round(outcome.elapsed_seconds, 3),
                    poll_count=poll_count,
                )
                return outcome

    @staticmethod
    def _cancelled(outcome: SolveOutcome[SolutionT]) -> SolveOutcome[SolutionT]:
        logger.info(
            "captcha.solve.cancelled",
            stage="polling",
            task_id=str(outcome.task_id),
            elapsed_seconds=round(outcome.elapsed_seconds, 3),
            poll_count=outcome.poll_count,
        )
        return outcome

    async def _sleep_or_cancel(self, seconds: float, token: CancellationToken) -> bool:
        """Sleep ``seconds``; return ``True`` as soon as ``token`` is cancelled."""

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (sleeper, waiter):
                if not pending.done():
                    pending.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
        return token.is_cancelled()


class ServiceBuilder(Generic[TaskT, SolutionT]):
    """Fluent construction of a :class:`CaptchaSolverService`."""

    def __init__(self, provider: Provider[TaskT, SolutionT]) -> None:
        self._provider: Provider[TaskT, SolutionT] = provider
        self._config = SolveConfigBuilder()
        self._clock: Callable[[], float] | None = None
        self._sleep: Callable[[float], Any] | None = None

    def timeout(self, seconds: float) -> "ServiceBuilder[TaskT, SolutionT]":
        self._config.timeout(seconds)
        return self

    def poll_interval(self, seconds: float) -> "ServiceBuilder[TaskT, SolutionT]":
        self._config.poll_interval(seconds)
        return self

    def config(self, config: SolveConfig) -> "ServiceBuilder[TaskT, SolutionT]":
        self._config.timeout(config.timeout_seconds).poll_interval(
            config.poll_interval_seconds
        )
        return self

    def retry(
        self,
        retry_config: RetryConfig | None = None,
        *,
        on_retry: OnRetry | None = None,
    ) -> "ServiceBuilder[TaskT, SolutionT]":
        self._provider = RetryingProvider.wrap(self._provider, retry_config, on_retry)
        return self

    def clock(self, clock: Callable[[], float]) -> "ServiceBuilder[TaskT, SolutionT]":
        self._clock = clock
        return self

    def sleep(self, sleep: Callable[[float], Any]) -> "ServiceBuilder[TaskT, SolutionT]":
        self._sleep = sleep
        return self

    def build(self) -> CaptchaSolverService[TaskT, SolutionT]:
        return CaptchaSolverService(
            self._provider,
            self._config.build(),
            clock=self._clock,
            sleep=self._sleep,
        )
