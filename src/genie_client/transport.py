"""Async HTTP transport for the Genie APIs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .config import Settings
from .errors import ApiError, Unauthorized

LOGGER = structlog.get_logger(__name__)


@dataclass
class ApiResponse:
    status: int
    data: Any


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, ApiError) and exc.status_code >= 500


class ApiClient:
    """Issues authenticated JSON requests against the resort host.

    Only ``GET`` requests are retried; state-changing calls are sent once.
    """

    retry_wait = wait_exponential(multiplier=1, min=1, max=8)

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._transport = transport
        self.on_unauthorized: Callable[[], None] = lambda: None

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
        key: Optional[str] = None,
        ignore_unauth: bool = False,
    ) -> ApiResponse:
        attempts = self._settings.max_retries if method == "GET" else 1
        async for attempt in AsyncRetrying(
            wait=self.retry_wait,
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                response = await self._send(path, method=method, params=params, data=data)
        if response.status_code == 401:
            LOGGER.warning("api.unauthorized", path=path, ignored=ignore_unauth)
            if not ignore_unauth:
                self.on_unauthorized()
            raise Unauthorized(response.status_code, response.text)
        payload = response.json() if response.content else None
        if key and isinstance(payload, dict) and key in payload:
            payload = payload[key]
        return ApiResponse(status=response.status_code, data=payload)

    async def _send(
        self,
        path: str,
        *,
        method: str,
        params: Optional[Mapping[str, Any]],
        data: Optional[Mapping[str, Any]],
    ) -> httpx.Response:
        LOGGER.info("api.request.start", method=method, path=path)
        async with httpx.AsyncClient(
            base_url=str(self._settings.base_url),
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
            headers=self._headers(),
        ) as client:
            response = await client.request(method, path, params=params, json=data)
        if response.is_error and response.status_code != 401:
            LOGGER.error(
                "api.request.failed",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ApiError(response.status_code, response.text)
        return response

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._settings.access_token.get_secret_value()
        if token:
            headers["Authorization"] = f"BEARER {token}"
        return headers
