from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from captcha_solvers.errors import UnsupportedTaskError
from captcha_solvers.providers.base import TaskId
from captcha_solvers.providers.rucaptcha import (
    RucaptchaError,
    RucaptchaErrorCode,
    RucaptchaProvider,
    build_rucaptcha_task,
)
from captcha_solvers.proxy import ProxyConfig
from captcha_solvers.solutions import ReCaptchaSolution
from captcha_solvers.tasks import CloudflareChallenge, ReCaptchaV2, ReCaptchaV3, Turnstile

pytestmark = pytest.mark.unit


def _provider(responses: list[httpx.Response], seen: list[httpx.Request]) -> RucaptchaProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responses.pop(0)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RucaptchaProvider("ru-key", http_client=client)


def test_submit_returns_numeric_task_id_as_string() -> None:
    seen: list[httpx.Request] = []
    provider = _provider([httpx.Response(200, json={"errorId": 0, "taskId": 72345678901})], seen)

    task_id = asyncio.run(provider.submit(Turnstile("https://example.com", "key", cdata="c")))

    assert task_id == TaskId("72345678901")
    assert str(seen[0].url) == "https://api.rucaptcha.com/createTask"
    assert json.loads(seen[0].content) == {
        "clientKey": "ru-key",
        "task": {
            "type": "TurnstileTaskProxyless",
            "websiteURL": "https://example.com",
            "websiteKey": "key",
            "data": "c",
        },
    }


def test_poll_sends_numeric_task_id() -> None:
    seen: list[httpx.Request] = []
    provider = _provider([httpx.Response(200, json={"errorId": 0, "status": "processing"})], seen)

    assert asyncio.run(provider.poll(TaskId("72345678901"))) is None
    assert json.loads(seen[0].content) == {"clientKey": "ru-key", "taskId": 72345678901}


def test_poll_returns_solution_when_ready() -> None:
    seen: list[httpx.Request] = []
    provider = _provider(
        [
            httpx.Response(
                200,
                json={
                    "errorId": 0,
                    "status": "ready",
                    "solution": {"gRecaptchaResponse": "03AFc", "token": "03AFc"},
                    "cost": "0.00299",
                },
            )
        ],
        seen,
    )

    solution = asyncio.run(provider.poll(TaskId("1")))

    assert isinstance(solution, ReCaptchaSolution)
    assert solution.token == "03AFc"


@pytest.mark.parametrize(
    ("code", "retryable", "retry_operation"),
    [
        ("ERROR_NO_SLOT_AVAILABLE", True, True),
        ("ERROR_CAPTCHA_UNSOLVABLE", False, True),
        ("ERROR_ZERO_BALANCE", False, False),
        ("ERROR_KEY_DOES_NOT_EXIST", False, False),
        ("ERROR_BAD_PROXY", False, False),
        ("ERROR_NEW_AND_UNKNOWN", False, False),
    ],
)
def test_api_errors_are_classified(code: str, retryable: bool, retry_operation: bool) -> None:
    seen: list[httpx.Request] = []
    provider = _provider(
        [httpx.Response(200, json={"errorId": 12, "errorCode": code, "errorDescription": "x"})],
        seen,
    )

    with pytest.raises(RucaptchaError) as exc_info:
        asyncio.run(provider.poll(TaskId("1")))

    assert exc_info.value.is_retryable() is retryable
    assert exc_info.value.should_retry_operation() is retry_operation
    assert exc_info.value.error_code == RucaptchaErrorCode.parse(code)


def test_cloudflare_challenge_is_unsupported_without_network_call() -> None:
    seen: list[httpx.Request] = []
    provider = _provider([], seen)
    task = CloudflareChallenge("https://example.com", ProxyConfig.http("h", 1))

    with pytest.raises(UnsupportedTaskError) as exc_info:
        asyncio.run(provider.submit(task))

    assert exc_info.value.is_retryable() is False
    assert exc_info.value.task_type == "CloudflareChallenge"
    assert seen == []


def test_transport_error_is_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = RucaptchaProvider("k", http_client=client)

    with pytest.raises(RucaptchaError) as exc_info:
        asyncio.run(provider.poll(TaskId("1")))

    assert exc_info.value.is_retryable() is True
    assert exc_info.value.should_retry_operation() is True


@pytest.mark.parametrize(
    ("enterprise", "proxy", "expected"),
    [
        (False, None, "RecaptchaV2TaskProxyless"),
        (False, ProxyConfig.http("h", 1), "RecaptchaV2Task"),
        (True, None, "RecaptchaV2EnterpriseTaskProxyless"),
        (True, ProxyConfig.http("h", 1), "RecaptchaV2EnterpriseTask"),
    ],
)
def test_v2_task_types(enterprise: bool, proxy: ProxyConfig | None, expected: str) -> None:
    task = ReCaptchaV2("https://example.com", "key", is_enterprise=enterprise, proxy=proxy)

    assert build_rucaptcha_task(task)["type"] == expected


def test_v2_with_https_proxy_maps_to_http_type() -> None:
    task = ReCaptchaV2(
        "https://example.com",
        "key",
        user_agent="UA",
        cookies="a=b",
        proxy=ProxyConfig.https("10.0.0.1", 443).with_auth("u", "p"),
    )

    encoded = build_rucaptcha_task(task)

    assert encoded["proxyType"] == "http"
    assert encoded["userAgent"] == "UA"
    assert encoded["cookies"] == "a=b"
    assert encoded["proxyLogin"] == "u"


def test_v3_defaults_min_score_and_flags_enterprise() -> None:
    regular = build_rucaptcha_task(ReCaptchaV3("https://example.com", "key"))
    enterprise = build_rucaptcha_task(
        ReCaptchaV3("https://example.com", "key", is_enterprise=True, min_score=0.3)
    )

    assert regular == {
        "type": "RecaptchaV3TaskProxyless",
        "websiteURL": "https://example.com",
        "websiteKey": "key",
        "minScore": 0.9,
    }
    assert enterprise["minScore"] == 0.3
    assert enterprise["isEnterprise"] is True


def test_turnstile_with_proxy() -> None:
    task = Turnstile(
        "https://example.com", "key", action="a", pagedata="p", proxy=ProxyConfig.socks4("h", 9)
    )

    encoded = build_rucaptcha_task(task)

    assert encoded["type"] == "TurnstileTask"
    assert encoded["action"] == "a"
    assert encoded["pagedata"] == "p"
    assert encoded["proxyType"] == "socks4"
