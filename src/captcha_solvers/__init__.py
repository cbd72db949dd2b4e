"""Async orchestration for submit-and-poll captcha solving services."""

from .cancellation import CancellationToken
from .config import RetryConfig, SolveConfig, SolverSettings
from .errors import (
    CaptchaProviderError,
    CaptchaSolverError,
    ConfigError,
    RetriesExhaustedError,
    SolveError,
    UnsupportedTaskError,
)
from .outcome import SolveOutcome, SolveStatus
from .providers import CapsolverProvider, Provider, RucaptchaProvider, TaskId
from .proxy import ProxyConfig, ProxyType
from .retry import RetryingProvider
from .service import CaptchaSolverService
from .solutions import ReCaptchaSolution, TurnstileSolution
from .tasks import CaptchaTask, CloudflareChallenge, ReCaptchaV2, ReCaptchaV3, Turnstile

__all__ = [
    "CancellationToken",
    "CapsolverProvider",
    "CaptchaProviderError",
    "CaptchaSolverError",
    "CaptchaSolverService",
    "CaptchaTask",
    "CloudflareChallenge",
    "ConfigError",
    "Provider",
    "ProxyConfig",
    "ProxyType",
    "ReCaptchaSolution",
    "ReCaptchaV2",
    "ReCaptchaV3",
    "RetriesExhaustedError",
    "RetryConfig",
    "RetryingProvider",
    "RucaptchaProvider",
    "SolveConfig",
    "SolveError",
    "SolveOutcome",
    "SolveStatus",
    "SolverSettings",
    "TaskId",
    "Turnstile",
    "TurnstileSolution",
    "UnsupportedTaskError",
]
