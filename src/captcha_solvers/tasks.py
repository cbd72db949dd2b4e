"""Captcha task descriptions understood by the bundled vendor providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .proxy import ProxyConfig

__all__ = [
    "ReCaptchaV2",
    "ReCaptchaV3",
    "Turnstile",
    "CloudflareChallenge",
    "CaptchaTask",
    "task_type_name",
]


@dataclass(frozen=True, slots=True)
class ReCaptchaV2:
    website_url: str
    website_key: str
    is_invisible: bool = False
    is_enterprise: bool = False
    page_action: str | None = None
    recaptcha_data_s_value: str | None = None
    enterprise_payload: dict[str, Any] | None = None
    api_domain: str | None = None
    user_agent: str | None = None
    cookies: str | None = None
    proxy: ProxyConfig | None = None

    @property
    def name(self) -> str:
        suffix = ("Invisible" if self.is_invisible else "") + (
            "Enterprise" if self.is_enterprise else ""
        )
        return f"ReCaptchaV2{suffix}"


@dataclass(frozen=True, slots=True)
class ReCaptchaV3:
    website_url: str
    website_key: str
    is_enterprise: bool = False
    page_action: str | None = None
    min_score: float | None = None
    enterprise_payload: dict[str, Any] | None = None
    api_domain: str | None = None
    proxy: ProxyConfig | None = None

    @property
    def name(self) -> str:
        return "ReCaptchaV3Enterprise" if self.is_enterprise else "ReCaptchaV3"


@dataclass(frozen=True, slots=True)
class Turnstile:
    """Cloudflare Turnstile widget."""

    website_url: str
    website_key: str
    action: str | None = None
    cdata: str | None = None
    pagedata: str | None = None
    proxy: ProxyConfig | None = None

    @property
    def name(self) -> str:
        return "Turnstile"


@dataclass(frozen=True, slots=True)
class CloudflareChallenge:
    """Cloudflare interstitial challenge page; always solved through a proxy."""

    website_url: str
    proxy: ProxyConfig
    user_agent: str | None = None
    html: str | None = None

    @property
    def name(self) -> str:
        return "CloudflareChallenge"


CaptchaTask = Union[ReCaptchaV2, ReCaptchaV3, Turnstile, CloudflareChallenge]


def task_type_name(task: CaptchaTask) -> str:
    """Return the display name of ``task``, e.g. ``ReCaptchaV2Invisible``."""

    return task.name
