"""Exponential-backoff retry decorator for providers."""

from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import structlog

from .config import RetryConfig
from .errors import CaptchaProviderError, RetriesExhaustedError
from .providers.base import Provider, SolutionT, TaskId, TaskT

__all__ = ["RetryConfig", "RetryingProvider", "OnRetry"]

T = TypeVar("T")

OnRetry = Callable[[CaptchaProviderError, float], Any]

logger = structlog.get_logger(__name__)


class RetryingProvider(Generic[TaskT, SolutionT]):
    """Wrap a provider so transient failures are retried with backoff.

    Only errors whose ``is_retryable()`` is true are retried; fatal errors
    propagate immediately. ``None`` from ``poll`` is a regular result and is
    returned as is. When the retry budget is spent a
    :class:`RetriesExhaustedError` carrying the last error is raised.
    """

    def __init__(
        self,
        provider: Provider[TaskT, SolutionT],
        config: RetryConfig | None = None,
        *,
        on_retry: OnRetry | None = None,
        sleep: Callable[[float], Any] | None = None,
        random_fn: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.provider = provider
        self.config = config or RetryConfig()
        self._on_retry = on_retry
        self._sleep = self._wrap_sleep(sleep)
        self._random = random_fn

    @classmethod
    def wrap(
        cls,
        provider: Provider[TaskT, SolutionT],
        retry_config: RetryConfig | None = None,
        on_retry: OnRetry | None = None,
    ) -> "RetryingProvider[TaskT, SolutionT]":
        return cls(provider, retry_config, on_retry=on_retry)

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

    async def submit(self, task: TaskT) -> TaskId:
        return await self._call(lambda: self.provider.submit(task), label="submit")

    async def poll(self, task_id: TaskId) -> SolutionT | None:
        return await self._call(lambda: self.provider.poll(task_id), label="poll")

    async def aclose(self) -> None:
        close = getattr(self.provider, "aclose", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result

    def delay_for(self, retry_index: int, previous: float = 0.0) -> float:
        """Delay before retry ``retry_index`` (0-based), never below ``previous``."""

        config = self.config
        delay = config.base_delay(retry_index)
        if config.jitter and delay > 0:
            delay = min(config.max_delay_seconds, delay + self._random(0.0, delay))
        return max(delay, min(previous, config.max_delay_seconds))

    async def _call(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        retries = 0
        previous_delay = 0.0
        while True:
            try:
                return await operation()
            except CaptchaProviderError as exc:
                if not exc.is_retryable():
                    raise
                if retries >= self.config.max_retries:
                    logger.warning(
                        "captcha.retry.exhausted",
                        operation=label,
                        attempts=retries + 1,
                        error=str(exc),
                    )
                    raise RetriesExhaustedError(exc, attempts=retries + 1) from exc
                delay = self.delay_for(retries, previous_delay)
                previous_delay = delay
                retries += 1
                logger.debug(
                    "captcha.retry.scheduled",
                    operation=label,
                    attempt=retries,
                    delay_seconds=round(delay, 3),
                    error=str(exc),
                )
                await self._notify(exc, delay)
                await self._sleep(delay)

    async def _notify(self, error: CaptchaProviderError, delay: float) -> None:
        if self._on_retry is None:
            return
        try:
            result = self._on_retry(error, delay)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("captcha.retry.callback_failed", delay_seconds=round(delay, 3))
