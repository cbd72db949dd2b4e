"""Timing configuration for solves and retries plus environment settings.

``SolveConfig`` and ``RetryConfig`` are small immutable value objects; the
``with_*`` helpers return modified copies. ``SolverSettings`` reads the same
knobs (and vendor credentials) from ``CAPTCHA_SOLVERS_*`` environment
variables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Literal, cast

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

__all__ = [
    "MIN_POLL_INTERVAL_SECONDS",
    "MIN_TIMEOUT_SECONDS",
    "SolveConfig",
    "SolveConfigBuilder",
    "RetryConfig",
    "SolverSettings",
]

MIN_POLL_INTERVAL_SECONDS = 0.1
MIN_TIMEOUT_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class SolveConfig:
    """Overall solve deadline and delay between result polls, in seconds."""

    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 3.0

    def __post_init__(self) -> None:
        if self.poll_interval_seconds <= 0:
            raise ConfigError("poll_interval_seconds must be positive")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be positive")

    @classmethod
    def fast(cls) -> "SolveConfig":
        return cls(timeout_seconds=60.0, poll_interval_seconds=2.0)

    @classmethod
    def balanced(cls) -> "SolveConfig":
        return cls(timeout_seconds=120.0, poll_interval_seconds=3.0)

    @classmethod
    def patient(cls) -> "SolveConfig":
        return cls(timeout_seconds=300.0, poll_interval_seconds=5.0)

    @classmethod
    def builder(cls) -> "SolveConfigBuilder":
        return SolveConfigBuilder()

    def with_timeout(self, seconds: float) -> "SolveConfig":
        return replace(self, timeout_seconds=seconds)

    def with_poll_interval(self, seconds: float) -> "SolveConfig":
        return replace(self, poll_interval_seconds=seconds)


class SolveConfigBuilder:
    """Validating builder for :class:`SolveConfig`."""

    def __init__(self) -> None:
        defaults = SolveConfig.balanced()
        self._timeout = defaults.timeout_seconds
        self._poll_interval = defaults.poll_interval_seconds

    def timeout(self, seconds: float) -> "SolveConfigBuilder":
        self._timeout = seconds
        return self

    def poll_interval(self, seconds: float) -> "SolveConfigBuilder":
        self._poll_interval = seconds
        return self

    def build(self) -> SolveConfig:
        if self._poll_interval <= 0:
            raise ConfigError("poll interval must be positive")
        if self._poll_interval < MIN_POLL_INTERVAL_SECONDS:
            raise ConfigError(
                f"poll interval must be at least {MIN_POLL_INTERVAL_SECONDS}s,"
                f" got {self._poll_interval}s"
            )
        if self._timeout < MIN_TIMEOUT_SECONDS:
            raise ConfigError(
                f"timeout must be at least {MIN_TIMEOUT_SECONDS}s, got {self._timeout}s"
            )
        if self._poll_interval > self._timeout:
            raise ConfigError(
                f"poll interval ({self._poll_interval}s) cannot exceed"
                f" timeout ({self._timeout}s)"
            )
        return SolveConfig(
            timeout_seconds=self._timeout, poll_interval_seconds=self._poll_interval
        )


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Exponential backoff policy applied per provider call."""

    max_retries: int = 3
    min_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    factor: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigError("max_retries cannot be negative")
        if self.min_delay_seconds < 0:
            raise ConfigError("min_delay_seconds cannot be negative")
        if self.min_delay_seconds > self.max_delay_seconds:
            raise ConfigError("min_delay_seconds cannot exceed max_delay_seconds")
        if self.factor < 1.0:
            raise ConfigError("factor must be at least 1.0")

    def with_max_retries(self, retries: int) -> "RetryConfig":
        return replace(self, max_retries=retries)

    def with_min_delay(self, seconds: float) -> "RetryConfig":
        return replace(self, min_delay_seconds=seconds)

    def with_max_delay(self, seconds: float) -> "RetryConfig":
        return replace(self, max_delay_seconds=seconds)

    def with_factor(self, factor: float) -> "RetryConfig":
        return replace(self, factor=factor)

    def without_jitter(self) -> "RetryConfig":
        return replace(self, jitter=False)

    def base_delay(self, retry_index: int) -> float:
        """Un-jittered delay before retry number ``retry_index`` (0-based).

        The growth saturates at ``max_delay_seconds``, so arbitrarily large
        indices are valid.
        """

        if self.min_delay_seconds == 0:
            return 0.0
        try:
            grown = self.min_delay_seconds * (self.factor**retry_index)
        except OverflowError:
            return self.max_delay_seconds
        return min(self.max_delay_seconds, grown)


class SolverSettings(BaseSettings):
    """Environment driven settings for building a ready-to-use service."""

    model_config = cast(Any, SettingsConfigDict(env_prefix="CAPTCHA_SOLVERS_"))

    provider: Literal["capsolver", "rucaptcha"] = Field(
        default="capsolver",
        description="Vendor used by create_provider when no name is given.",
    )
    capsolver_api_key: SecretStr | None = Field(default=None)
    rucaptcha_api_key: SecretStr | None = Field(default=None)
    capsolver_base_url: str = Field(default="https://api.capsolver.com")
    rucaptcha_base_url: str = Field(default="https://api.rucaptcha.com")
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout of the vendor HTTP client.",
    )
    timeout_seconds: float = Field(default=120.0, ge=MIN_TIMEOUT_SECONDS)
    poll_interval_seconds: float = Field(default=3.0, ge=MIN_POLL_INTERVAL_SECONDS)
    retry_enabled: bool = Field(default=True)
    retry_max_retries: int = Field(default=3, ge=0)
    retry_min_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=30.0, ge=0)
    retry_factor: float = Field(default=2.0, ge=1.0)
    retry_jitter: bool = Field(default=True)
    log_level: str = Field(
        default="INFO",
        description="Level passed to configure_logging by create_service.",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level '{value}'")
        return level

    @model_validator(mode="after")
    def _check_timing(self) -> "SolverSettings":
        if self.poll_interval_seconds > self.timeout_seconds:
            raise ValueError("poll_interval_seconds cannot exceed timeout_seconds")
        if self.retry_min_delay_seconds > self.retry_max_delay_seconds:
            raise ValueError(
                "retry_min_delay_seconds cannot exceed retry_max_delay_seconds"
            )
        return self

    def solve_config(self) -> SolveConfig:
        return (
            SolveConfig.builder()
            .timeout(self.timeout_seconds)
            .poll_interval(self.poll_interval_seconds)
            .build()
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.retry_max_retries,
            min_delay_seconds=self.retry_min_delay_seconds,
            max_delay_seconds=self.retry_max_delay_seconds,
            factor=self.retry_factor,
            jitter=self.retry_jitter,
        )

    def api_key_for(self, provider: str) -> str | None:
        secret = {
            "capsolver": self.capsolver_api_key,
            "rucaptcha": self.rucaptcha_api_key,
        }.get(provider.lower())
        return None if secret is None else secret.get_secret_value()
