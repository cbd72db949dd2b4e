"""Capsolver (https://capsolver.com) provider."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..errors import CaptchaProviderError
from ..solutions import CaptchaSolution, parse_solution
from ..tasks import CaptchaTask, CloudflareChallenge, ReCaptchaV2, ReCaptchaV3, Turnstile
from .base import TaskId
from .http import ApiFailure, JsonApiClient, api_failure

__all__ = [
    "DEFAULT_API_URL",
    "CapsolverErrorCode",
    "CapsolverError",
    "CapsolverProvider",
    "build_capsolver_task",
]

DEFAULT_API_URL = "https://api.capsolver.com"
CREATE_TASK_PATH = "createTask"
GET_TASK_RESULT_PATH = "getTaskResult"

logger = structlog.get_logger(__name__)


class CapsolverErrorCode(StrEnum):
    # Misspelling matches the value sent by the API.
    SERVICE_UNAVAILABLE = "ERROR_SERVICE_UNAVALIABLE"
    RATE_LIMIT = "ERROR_RATE_LIMIT"
    IP_BANNED = "ERROR_IP_BANNED"
    KEY_TEMP_BLOCKED = "ERROR_KEY_TEMP_BLOCKED"
    ZERO_BALANCE = "ERROR_ZERO_BALANCE"
    KEY_DENIED_ACCESS = "ERROR_KEY_DENIED_ACCESS"
    INVALID_TASK_DATA = "ERROR_INVALID_TASK_DATA"
    BAD_REQUEST = "ERROR_BAD_REQUEST"
    TASK_ID_INVALID = "ERROR_TASKID_INVALID"
    TASK_NOT_FOUND = "ERROR_TASK_NOT_FOUND"
    TASK_NOT_SUPPORTED = "ERROR_TASK_NOT_SUPPORTED"
    UNKNOWN_QUESTION = "ERROR_UNKNOWN_QUESTION"
    PROXY_BANNED = "ERROR_PROXY_BANNED"
    INVALID_IMAGE = "ERROR_INVALID_IMAGE"
    PARSE_IMAGE_FAIL = "ERROR_PARSE_IMAGE_FAIL"
    TASK_TIMEOUT = "ERROR_TASK_TIMEOUT"
    CAPTCHA_UNSOLVABLE = "ERROR_CAPTCHA_UNSOLVABLE"
    SETTLEMENT_FAILED = "ERROR_SETTLEMENT_FAILED"

    @classmethod
    def parse(cls, value: str) -> "CapsolverErrorCode | None":
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE_CODES


_RETRYABLE_CODES = frozenset(
    {
        CapsolverErrorCode.SERVICE_UNAVAILABLE,
        CapsolverErrorCode.RATE_LIMIT,
        CapsolverErrorCode.IP_BANNED,
        CapsolverErrorCode.KEY_TEMP_BLOCKED,
        CapsolverErrorCode.TASK_NOT_FOUND,
    }
)


class CapsolverError(CaptchaProviderError):
    """Capsolver failure; ``error_code`` is ``None`` for transport problems
    and for codes this library does not know."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        code: str | None = None,
        description: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, retryable=retryable, code=code, payload=payload)
        self.description = description

    @property
    def error_code(self) -> CapsolverErrorCode | None:
        return None if self.code is None else CapsolverErrorCode.parse(self.code)

    @classmethod
    def from_http(cls, exc: httpx.HTTPError) -> "CapsolverError":
        return cls(f"HTTP request failed: {exc}", retryable=True)

    @classmethod
    def from_parse(cls, exc: Exception) -> "CapsolverError":
        return cls(f"Failed to parse response: {exc}", retryable=False)

    @classmethod
    def from_api(cls, failure: ApiFailure) -> "CapsolverError":
        known = CapsolverErrorCode.parse(failure.error_code)
        return cls(
            f"Capsolver API error [{failure.error_code}]:"
            f" {failure.error_description or 'No description'}",
            retryable=known is not None and known.is_retryable,
            code=failure.error_code,
            description=failure.error_description,
            payload=failure.payload,
        )


def _compact(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def build_capsolver_task(task: CaptchaTask) -> dict[str, Any]:
    """Encode ``task`` as a Capsolver ``task`` object."""

    if isinstance(task, ReCaptchaV2):
        common = {
            "websiteURL": task.website_url,
            "websiteKey": task.website_key,
            "pageAction": task.page_action,
            "isInvisible": True if task.is_invisible else None,
            "apiDomain": task.api_domain,
        }
        if not task.is_enterprise:
            # Capsolver offers regular V2 only without a proxy.
            return _compact(
                {
                    "type": "ReCaptchaV2TaskProxyLess",
                    **common,
                    "recaptchaDataSValue": task.recaptcha_data_s_value,
                }
            )
        common["enterprisePayload"] = task.enterprise_payload
        if task.proxy is None:
            return _compact({"type": "ReCaptchaV2EnterpriseTaskProxyLess", **common})
        return _compact(
            {"type": "ReCaptchaV2EnterpriseTask", **common, **task.proxy.capsolver_fields()}
        )

    if isinstance(task, ReCaptchaV3):
        common = {
            "websiteURL": task.website_url,
            "websiteKey": task.website_key,
            "pageAction": task.page_action,
            "apiDomain": task.api_domain,
        }
        task_type = "ReCaptchaV3EnterpriseTask" if task.is_enterprise else "ReCaptchaV3Task"
        if task.is_enterprise:
            common["enterprisePayload"] = task.enterprise_payload
        if task.proxy is None:
            return _compact({"type": f"{task_type}ProxyLess", **common})
        return _compact({"type": task_type, **common, **task.proxy.capsolver_fields()})

    if isinstance(task, Turnstile):
        metadata = _compact({"action": task.action, "cdata": task.cdata}) or None
        return _compact(
            {
                "type": "AntiTurnstileTaskProxyLess",
                "websiteURL": task.website_url,
                "websiteKey": task.website_key,
                "metadata": metadata,
            }
        )

    if isinstance(task, CloudflareChallenge):
        return _compact(
            {
                "type": "AntiCloudflareTask",
                "websiteURL": task.website_url,
                "userAgent": task.user_agent,
                "html": task.html,
                **task.proxy.capsolver_fields(),
            }
        )

    raise TypeError(f"Unsupported task object: {type(task).__name__}")


class CapsolverProvider:
    """Solve tasks through the Capsolver ``createTask``/``getTaskResult`` API."""

    name = "capsolver"

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
        return f"CapsolverProvider(base_url={self._client.base_url!r}, api_key='[REDACTED]')"

    @property
    def base_url(self) -> str:
        return self._client.base_url

    async def __aenter__(self) -> "CapsolverProvider":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit(self, task: CaptchaTask) -> TaskId:
        payload = build_capsolver_task(task)
        body = await self._post(CREATE_TASK_PATH, {"clientKey": self._api_key, "task": payload})
        task_id = body.get("taskId")
        if not task_id:
            raise CapsolverError.from_parse(ValueError("response is missing taskId"))
        logger.info("capsolver.task.created", task_id=str(task_id), task_type=payload["type"])
        return TaskId(str(task_id))

    async def poll(self, task_id: TaskId) -> CaptchaSolution | None:
        body = await self._post(
            GET_TASK_RESULT_PATH, {"clientKey": self._api_key, "taskId": str(task_id)}
        )
        solution = body.get("solution")
        if not solution:
            logger.debug("capsolver.task.pending", task_id=str(task_id), status=body.get("status"))
            return None
        try:
            return parse_solution(solution)
        except ValidationError as exc:
            raise CapsolverError.from_parse(exc) from exc

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            body = await self._client.post(path, payload)
        except httpx.HTTPError as exc:
            raise CapsolverError.from_http(exc) from exc
        except ValueError as exc:
            raise CapsolverError.from_parse(exc) from exc
        failure = api_failure(body)
        if failure is not None:
            error = CapsolverError.from_api(failure)
            logger.warning(
                "capsolver.api.error",
                path=path,
                error_code=failure.error_code,
                retryable=error.is_retryable(),
            )
            raise error
        return body
