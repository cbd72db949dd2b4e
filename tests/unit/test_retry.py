from __future__ import annotations

import asyncio

import pytest

from captcha_solvers.config import RetryConfig
from captcha_solvers.errors import CaptchaProviderError, RetriesExhaustedError
from captcha_solvers.providers.base import TaskId
from captcha_solvers.retry import RetryingProvider
from tests.mocks.providers import ScriptedProvider, fatal_error, retryable_error

pytestmark = pytest.mark.unit


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _wrap(provider, config: RetryConfig, **kwargs):
    sleep = SleepRecorder()
    callbacks: list[tuple[CaptchaProviderError, float]] = []
    wrapped = RetryingProvider(
        provider,
        config,
        on_retry=lambda error, delay: callbacks.append((error, delay)),
        sleep=sleep,
        **kwargs,
    )
    return wrapped, sleep, callbacks


def test_success_on_first_attempt_has_no_delay() -> None:
    provider = ScriptedProvider(submit=[TaskId("abc")])
    wrapped, sleep, callbacks = _wrap(provider, RetryConfig())

    assert asyncio.run(wrapped.submit("task")) == TaskId("abc")
    assert provider.submit_calls == 1
    assert sleep.delays == []
    assert callbacks == []


def test_retryable_failures_then_success() -> None:
    """k transient failures below the budget produce k callbacks and sleeps."""

    provider = ScriptedProvider(
        submit=[retryable_error(), retryable_error(), TaskId("abc")]
    )
    config = RetryConfig(max_retries=3, min_delay_seconds=1, max_delay_seconds=30)
    wrapped, sleep, callbacks = _wrap(provider, config)

    assert asyncio.run(wrapped.submit("task")) == TaskId("abc")
    assert provider.submit_calls == 3
    assert len(callbacks) == 2
    assert sleep.delays == [delay for _, delay in callbacks]
    assert sleep.delays == sorted(sleep.delays)
    assert all(delay <= config.max_delay_seconds for delay in sleep.delays)


def test_fatal_error_propagates_immediately() -> None:
    error = fatal_error()
    provider = ScriptedProvider(submit=[error])
    wrapped, sleep, callbacks = _wrap(provider, RetryConfig())

    with pytest.raises(CaptchaProviderError) as exc_info:
        asyncio.run(wrapped.submit("task"))

    assert exc_info.value is error
    assert provider.submit_calls == 1
    assert sleep.delays == []
    assert callbacks == []


def test_exhaustion_carries_last_error() -> None:
    last = retryable_error("third")
    provider = ScriptedProvider(
        polls=[retryable_error("first"), retryable_error("second"), last]
    )
    wrapped, sleep, callbacks = _wrap(provider, RetryConfig(max_retries=2).without_jitter())

    with pytest.raises(RetriesExhaustedError) as exc_info:
        asyncio.run(wrapped.poll(TaskId("abc")))

    assert exc_info.value.last_error is last
    assert exc_info.value.attempts == 3
    assert exc_info.value.is_retryable() is False
    assert provider.poll_calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert len(callbacks) == 2


def test_zero_retries_disables_retrying() -> None:
    provider = ScriptedProvider(submit=[retryable_error()])
    wrapped, sleep, callbacks = _wrap(provider, RetryConfig(max_retries=0))

    with pytest.raises(RetriesExhaustedError):
        asyncio.run(wrapped.submit("task"))

    assert provider.submit_calls == 1
    assert sleep.delays == []
    assert callbacks == []


def test_none_from_poll_is_not_retried() -> None:
    provider = ScriptedProvider(polls=[None])
    wrapped, sleep, _ = _wrap(provider, RetryConfig())

    assert asyncio.run(wrapped.poll(TaskId("abc"))) is None
    assert provider.poll_calls == 1
    assert sleep.delays == []


def test_zero_min_delay_is_allowed() -> None:
    provider = ScriptedProvider(polls=[retryable_error(), "solution"])
    wrapped, sleep, _ = _wrap(provider, RetryConfig(min_delay_seconds=0))

    assert asyncio.run(wrapped.poll(TaskId("abc"))) == "solution"
    assert sleep.delays == [0.0]


def test_jitter_stays_within_bounds_and_non_decreasing() -> None:
    """Even a maximal jitter draw never exceeds the cap or shrinks the delay."""

    config = RetryConfig(max_retries=6, min_delay_seconds=1, max_delay_seconds=5, factor=1.5)
    provider = ScriptedProvider(polls=[retryable_error()] * 6 + ["solution"])
    draws = iter([1.0, 0.0, 0.9, 0.0, 3.0, 0.0])
    wrapped, sleep, _ = _wrap(
        provider, config, random_fn=lambda low, high: min(high, next(draws))
    )

    assert asyncio.run(wrapped.poll(TaskId("abc"))) == "solution"
    assert len(sleep.delays) == 6
    assert sleep.delays == sorted(sleep.delays)
    assert all(config.min_delay_seconds <= delay <= 5 for delay in sleep.delays)


def test_non_provider_errors_are_not_classified() -> None:
    provider = ScriptedProvider(submit=[RuntimeError("bug")])
    wrapped, sleep, _ = _wrap(provider, RetryConfig())

    with pytest.raises(RuntimeError):
        asyncio.run(wrapped.submit("task"))

    assert sleep.delays == []


def test_wrap_uses_default_config() -> None:
    provider = ScriptedProvider()

    wrapped = RetryingProvider.wrap(provider)

    assert wrapped.config == RetryConfig()
    assert wrapped.provider is provider


def test_long_retry_budget_saturates_at_max_delay() -> None:
    config = RetryConfig(max_retries=1100, min_delay_seconds=1, max_delay_seconds=2).without_jitter()
    provider = ScriptedProvider(polls=[retryable_error()])
    wrapped, sleep, callbacks = _wrap(provider, config)

    with pytest.raises(RetriesExhaustedError) as excinfo:
        asyncio.run(wrapped.poll(TaskId("abc")))

    assert excinfo.value.attempts == 1101
    assert provider.poll_calls == 1101
    assert len(sleep.delays) == 1100
    assert sleep.delays[:3] == [1, 2, 2]
    assert max(sleep.delays) == 2
    assert len(callbacks) == 1100


def test_zero_delays_with_long_retry_budget() -> None:
    config = RetryConfig(max_retries=1100, min_delay_seconds=0, max_delay_seconds=0)
    provider = ScriptedProvider(submit=[retryable_error()])
    wrapped, sleep, _ = _wrap(provider, config)

    with pytest.raises(RetriesExhaustedError):
        asyncio.run(wrapped.submit("task"))

    assert set(sleep.delays) == {0.0}


def test_failing_callback_does_not_change_retries() -> None:
    provider = ScriptedProvider(polls=[retryable_error(), retryable_error(), "solution"])
    seen: list[float] = []

    def on_retry(error: CaptchaProviderError, delay: float) -> None:
        seen.append(delay)
        raise RuntimeError("metrics backend down")

    sleep = SleepRecorder()
    wrapped = RetryingProvider(
        provider, RetryConfig().without_jitter(), on_retry=on_retry, sleep=sleep
    )

    assert asyncio.run(wrapped.poll(TaskId("abc"))) == "solution"
    assert provider.poll_calls == 3
    assert seen == [1.0, 2.0]
    assert sleep.delays == [1.0, 2.0]


def test_async_callback_is_awaited_before_sleeping() -> None:
    provider = ScriptedProvider(polls=[retryable_error(), "solution"])
    events: list[str] = []

    async def on_retry(error: CaptchaProviderError, delay: float) -> None:
        await asyncio.sleep(0)
        events.append(f"retry:{delay}")

    async def sleep(seconds: float) -> None:
        events.append(f"sleep:{seconds}")

    wrapped = RetryingProvider(
        provider, RetryConfig().without_jitter(), on_retry=on_retry, sleep=sleep
    )

    assert asyncio.run(wrapped.poll(TaskId("abc"))) == "solution"
    assert events == ["retry:1.0", "sleep:1.0"]
