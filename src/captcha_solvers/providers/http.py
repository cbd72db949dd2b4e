"""JSON-over-HTTP client shared by the createTask/getTaskResult vendors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import httpx
import structlog

__all__ = ["ApiFailure", "JsonApiClient", "api_failure"]

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ApiFailure:
    """Error envelope (``errorId != 0``) returned by the vendor API."""

    error_id: int
    error_code: str
    error_description: str | None
    payload: dict[str, Any]


def api_failure(body: Mapping[str, Any]) -> ApiFailure | None:
    """Return the error envelope of ``body`` or ``None`` for a success."""

    try:
        error_id = int(body.get("errorId") or 0)
    except (TypeError, ValueError):
        error_id = 1
    if error_id == 0:
        return None
    return ApiFailure(
        error_id=error_id,
        error_code=str(body.get("errorCode") or "UNKNOWN"),
        error_description=body.get("errorDescription"),
        payload=dict(body),
    )


class JsonApiClient:
    """POST JSON documents to ``{base_url}/{path}`` over a pooled client.

    Transport failures surface as :class:`httpx.HTTPError`; bodies that are
    not a JSON object raise :class:`ValueError`. The client owns the
    ``httpx.AsyncClient`` it creates and closes it in :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = http_client is None

    async def post(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        response = await self._client.post(url, json=dict(payload))
        logger.debug("captcha.http.response", url=url, status_code=response.status_code)
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if not isinstance(body, dict):
            raise ValueError(f"Expected JSON object from {url}, got {type(body).__name__}")
        if response.is_server_error and api_failure(body) is None:
            response.raise_for_status()
        return body

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
