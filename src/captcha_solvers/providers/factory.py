"""Factory for vendor providers and ready-to-use services."""

from __future__ import annotations

import httpx

from ..config import SolverSettings
from ..errors import ConfigError
from ..logging import configure_logging
from ..retry import OnRetry, RetryingProvider
from ..service import CaptchaSolverService
from .capsolver import CapsolverProvider
from .rucaptcha import RucaptchaProvider


def create_provider(
    name: str | None = None,
    *,
    settings: SolverSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> CapsolverProvider | RucaptchaProvider:
    """Instantiate a vendor provider by name (defaults to ``settings.provider``)."""

    settings = settings or SolverSettings()
    lower = (name or settings.provider).lower()
    api_key = settings.api_key_for(lower)
    if lower == "capsolver":
        if not api_key:
            raise ConfigError("CAPTCHA_SOLVERS_CAPSOLVER_API_KEY is not set")
        return CapsolverProvider(
            api_key,
            base_url=settings.capsolver_base_url,
            http_client=http_client,
            timeout_seconds=settings.http_timeout_seconds,
        )
    if lower == "rucaptcha":
        if not api_key:
            raise ConfigError("CAPTCHA_SOLVERS_RUCAPTCHA_API_KEY is not set")
        return RucaptchaProvider(
            api_key,
            base_url=settings.rucaptcha_base_url,
            http_client=http_client,
            timeout_seconds=settings.http_timeout_seconds,
        )
    raise ConfigError(f"Unsupported provider '{name or settings.provider}'")


def create_service(
    settings: SolverSettings | None = None,
    *,
    provider_name: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    on_retry: OnRetry | None = None,
) -> CaptchaSolverService:
    """Build a service around the configured provider, retry-wrapped when enabled.

    Logging is configured at ``settings.log_level`` first.
    """

    settings = settings or SolverSettings()
    configure_logging(settings.log_level)
    provider = create_provider(provider_name, settings=settings, http_client=http_client)
    if settings.retry_enabled:
        return CaptchaSolverService(
            RetryingProvider(provider, settings.retry_config(), on_retry=on_retry),
            settings.solve_config(),
        )
    return CaptchaSolverService(provider, settings.solve_config())
