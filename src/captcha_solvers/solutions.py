"""Solution payloads returned by the bundled vendor providers."""

from __future__ import annotations

from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ReCaptchaSolution",
    "TurnstileSolution",
    "CloudflareChallengeSolution",
    "CaptchaSolution",
    "parse_solution",
]


class ReCaptchaSolution(BaseModel):
    """Token for reCAPTCHA v2/v3 (regular or enterprise)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    g_recaptcha_response: str = Field(alias="gRecaptchaResponse")
    token_value: str | None = Field(default=None, alias="token")
    user_agent: str | None = Field(default=None, alias="userAgent")
    sec_ch_ua: str | None = Field(default=None, alias="secChUa")
    create_time: int | None = Field(default=None, alias="createTime")
    recaptcha_ca_t: str | None = Field(default=None, alias="recaptcha-ca-t")
    recaptcha_ca_e: str | None = Field(default=None, alias="recaptcha-ca-e")

    @property
    def token(self) -> str:
        return self.g_recaptcha_response

    @property
    def session_cookie(self) -> str | None:
        return self.recaptcha_ca_t


class TurnstileSolution(BaseModel):
    """Token for Turnstile widgets and Cloudflare challenges."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token: str
    cookies: dict[str, str] | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")

    @property
    def cf_clearance(self) -> str | None:
        if not self.cookies:
            return None
        return self.cookies.get("cf_clearance")


CloudflareChallengeSolution = TurnstileSolution

CaptchaSolution = Union[ReCaptchaSolution, TurnstileSolution]


def parse_solution(payload: Mapping[str, Any]) -> CaptchaSolution:
    """Validate a vendor ``solution`` object into the matching model."""

    if "gRecaptchaResponse" in payload:
        return ReCaptchaSolution.model_validate(payload)
    return TurnstileSolution.model_validate(payload)
