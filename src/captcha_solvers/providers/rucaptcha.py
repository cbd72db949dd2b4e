"""RuCaptcha (https://rucaptcha.com) provider using the v2 JSON API."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..errors import CaptchaProviderError, UnsupportedTaskError
from ..solutions import CaptchaSolution, parse_solution
from ..tasks import CaptchaTask, CloudflareChallenge, ReCaptchaV2, ReCaptchaV3, Turnstile
from .base import TaskId
from .http import ApiFailure, JsonApiClient, api_failure

__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_V3_MIN_SCORE",
    "RucaptchaErrorCode",
    "RucaptchaError",
    "RucaptchaProvider",
    "build_rucaptcha_task",
]

DEFAULT_API_URL = "https://api.rucaptcha.com"
DEFAULT_V3_MIN_SCORE = 0.9
CREATE_TASK_PATH = "createTask"
GET_TASK_RESULT_PATH = "getTaskResult"

logger = structlog.get_logger(__name__)


class RucaptchaErrorCode(StrEnum):
    NO_SLOT_AVAILABLE = "ERROR_NO_SLOT_AVAILABLE"
    ZERO_BALANCE = "ERROR_ZERO_BALANCE"
    CAPTCHA_UNSOLVABLE = "ERROR_CAPTCHA_UNSOLVABLE"
    KEY_DOES_NOT_EXIST = "ERROR_KEY_DOES_NOT_EXIST"
    ZERO_CAPTCHA_FILESIZE = "ERROR_ZERO_CAPTCHA_FILESIZE"
    TOO_BIG_CAPTCHA_FILESIZE = "ERROR_TOO_BIG_CAPTCHA_FILESIZE"
    PAGE_URL = "ERROR_PAGEURL"
    IP_NOT_ALLOWED = "ERROR_IP_NOT_ALLOWED"
    BAD_DUPLICATES = "ERROR_BAD_DUPLICATES"
    NO_SUCH_METHOD = "ERROR_NO_SUCH_METHOD"
    IMAGE_TYPE_NOT_SUPPORTED = "ERROR_IMAGE_TYPE_NOT_SUPPORTED"
    NO_SUCH_CAPTCHA_ID = "ERROR_NO_SUCH_CAPCHA_ID"
    IP_BLOCKED = "ERROR_IP_BLOCKED"
    TASK_ABSENT = "ERROR_TASK_ABSENT"
    TASK_NOT_SUPPORTED = "ERROR_TASK_NOT_SUPPORTED"
    RECAPTCHA_INVALID_SITEKEY = "ERROR_RECAPTCHA_INVALID_SITEKEY"
    ACCOUNT_SUSPENDED = "ERROR_ACCOUNT_SUSPENDED"
    BAD_PARAMETERS = "ERROR_BAD_PARAMETERS"
    BAD_IMGINSTRUCTIONS = "ERROR_BAD_IMGINSTRUCTIONS"
    BAD_PROXY = "ERROR_BAD_PROXY"

    @classmethod
    def parse(cls, value: str) -> "RucaptchaErrorCode | None":
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_retryable(self) -> bool:
        return self is RucaptchaErrorCode.NO_SLOT_AVAILABLE

    @property
    def should_retry_operation(self) -> bool:
        # An unsolvable captcha may be solved by a different worker on a new task.
        return self in (
            RucaptchaErrorCode.NO_SLOT_AVAILABLE,
            RucaptchaErrorCode.CAPTCHA_UNSOLVABLE,
        )


class RucaptchaError(CaptchaProviderError):
    """RuCaptcha failure; ``error_code`` is ``None`` for transport problems
    and unknown codes."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        retry_operation: bool | None = None,
        code: str | None = None,
        description: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            retryable=retryable,
            retry_operation=retry_operation,
            code=code,
            payload=payload,
        )
        self.description = description

    @property
    def error_code(self) -> RucaptchaErrorCode | None:
        return None if self.code is None else RucaptchaErrorCode.parse(self.code)

    @classmethod
    def from_http(cls, exc: httpx.HTTPError) -> "RucaptchaError":
        return cls(f"HTTP request failed: {exc}", retryable=True)

    @classmethod
    def from_parse(cls, exc: Exception) -> "RucaptchaError":
        return cls(f"Failed to parse response: {exc}", retryable=False)

    @classmethod
    def from_api(cls, failure: ApiFailure) -> "RucaptchaError":
        known = RucaptchaErrorCode.parse(failure.error_code)
        return cls(
            f"RuCaptcha Error [{failure.error_code}]:"
            f" {failure.error_description or 'No description'}",
            retryable=known is not None and known.is_retryable,
            retry_operation=known is not None and known.should_retry_operation,
            code=failure.error_code,
            description=failure.error_description,
            payload=failure.payload,
        )


def _compact(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def build_rucaptcha_task(task: CaptchaTask) -> dict[str, Any]:
    """Encode ``task`` as a RuCaptcha ``task`` object.

    Raises :class:`UnsupportedTaskError` for Cloudflare challenges.
    """

    if isinstance(task, ReCaptchaV2):
        prefix = "RecaptchaV2EnterpriseTask" if task.is_enterprise else "RecaptchaV2Task"
        fields = {
            "websiteURL": task.website_url,
            "websiteKey": task.website_key,
            "isInvisible": True if task.is_invisible else None,
            "userAgent": task.user_agent,
            "cookies": task.cookies,
            "apiDomain": task.api_domain,
        }
        if task.is_enterprise:
            fields["enterprisePayload"] = task.enterprise_payload
        else:
            fields["recaptchaDataSValue"] = task.recaptcha_data_s_value
        if task.proxy is None:
            return _compact({"type": f"{prefix}Proxyless", **fields})
        return _compact({"type": prefix, **fields, **task.proxy.rucaptcha_fields()})

    if isinstance(task, ReCaptchaV3):
        # Only a proxyless V3 task exists; enterprise is a flag.
        return _compact(
            {
                "type": "RecaptchaV3TaskProxyless",
                "websiteURL": task.website_url,
                "websiteKey": task.website_key,
                "minScore": DEFAULT_V3_MIN_SCORE if task.min_score is None else task.min_score,
                "pageAction": task.page_action,
                "isEnterprise": True if task.is_enterprise else None,
                "apiDomain": task.api_domain,
            }
        )

    if isinstance(task, Turnstile):
        fields = {
            "websiteURL": task.website_url,
            "websiteKey": task.website_key,
            "action": task.action,
            "data": task.cdata,
            "pagedata": task.pagedata,
        }
        if task.proxy is None:
            return _compact({"type": "TurnstileTaskProxyless", **fields})
        return _compact({"type": "TurnstileTask", **fields, **task.proxy.rucaptcha_fields()})

    if isinstance(task, CloudflareChallenge):
        raise UnsupportedTaskError(task.name, "RuCaptcha")

    raise TypeError(f"Unsupported task object: {type(task).__name__}")


def _wire_task_id(task_id: TaskId) -> int | str:
    # RuCaptcha issues numeric ids and expects them back as numbers.
    value = str(task_id)
    return int(value) if value.isdigit() else value


class RucaptchaProvider:
    """Solve tasks through the RuCaptcha ``createTask``/``getTaskResult`` API."""

    name = "rucaptcha"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_API_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._client = JsonApiClient(
            base_url, http_client=http_client, timeout_seconds=timeout_seconds
        )

    def __repr__(self) -> str:
        return f"RucaptchaProvider(base_url={self._client.base_url!r}, api_key='[REDACTED]')"

    @property
    def base_url(self) -> str:
        return self._client.base_url

    async def __aenter__(self) -> "RucaptchaProvider":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit(self, task: CaptchaTask) -> TaskId:
        payload = build_rucaptcha_task(task)
        body = await self._post(CREATE_TASK_PATH, {"clientKey": self._api_key, "task": payload})
        task_id = body.get("taskId")
        if task_id is None or task_id == "":
            raise RucaptchaError.from_parse(ValueError("response is missing taskId"))
        logger.info("rucaptcha.task.created", task_id=str(task_id), task_type=payload["type"])
        return TaskId(str(task_id))

    async def poll(self, task_id: TaskId) -> CaptchaSolution | None:
        body = await self._post(
            GET_TASK_RESULT_PATH,
            {"clientKey": self._api_key, "taskId": _wire_task_id(task_id)},
        )
        solution = body.get("solution")
        if not solution:
            logger.debug("rucaptcha.task.pending", task_id=str(task_id), status=body.get("status"))
            return None
        try:
            return parse_solution(solution)
        except ValidationError as exc:
            raise RucaptchaError.from_parse(exc) from exc

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            body = await self._client.post(path, payload)
        except httpx.HTTPError as exc:
            raise RucaptchaError.from_http(exc) from exc
        except ValueError as exc:
            raise RucaptchaError.from_parse(exc) from exc
        failure = api_failure(body)
        if failure is not None:
            error = RucaptchaError.from_api(failure)
            logger.warning(
                "rucaptcha.api.error",
                path=path,
                error_code=failure.error_code,
                retryable=error.is_retryable(),
            )
            raise error
        return body
