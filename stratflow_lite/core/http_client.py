"""HTTP data layer for the StratFlow REST backend.

One ApiClient wraps a single lazily-created ``httpx.AsyncClient`` with the
backend base URL, JSON headers and a bearer token injected per request.
Non-2xx answers become ``ApiError``; transport failures propagate as
``httpx.RequestError``. A 401 additionally triggers the ``on_unauthorized``
callback so session handling stays outside this layer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Optional

import httpx

from stratflow_lite.exceptions import ApiError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://wolf-backoffice-backend-development.up.railway.app/api"
DEFAULT_TIMEOUT_SECONDS = 30.0

_DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

DEFAULT_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def create_error_message(error: BaseException) -> str:
    """Human-readable message for an error raised by the data layer."""
    if isinstance(error, ApiError):
        return error.message
    if isinstance(error, httpx.RequestError):
        return "No response received from server"
    return str(error) or "An unexpected error occurred"


class ApiClient:
    """Thin async wrapper over httpx for the back-office API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        """Initialize API client.

        Args:
            base_url: Backend root; request paths are appended to it
            token_provider: Returns the current bearer token (or None)
            timeout: Default request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
            on_unauthorized: Called when the backend answers 401
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self._transport = transport
        self._on_unauthorized = on_unauthorized
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout),
                    limits=_DEFAULT_LIMITS,
                    headers=DEFAULT_HEADERS,
                    transport=self._transport,
                )
                logger.debug("Created HTTP client for %s", self.base_url)
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider() if self._token_provider else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns:
            Decoded body, or None for an empty response

        Raises:
            ApiError: Backend answered with a non-2xx status
            httpx.RequestError: No response was received
        """
        client = await self._get_client()
        method = method.upper()
        logger.debug("Making %s request to: %s", method, path)

        response = await client.request(
            method,
            path,
            json=json,
            params=params,
            headers=self._auth_headers(),
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )

        data = self._decode(response)
        if response.is_success:
            return data

        logger.warning(
            "Response error: status=%d method=%s url=%s", response.status_code, method, path
        )
        if response.status_code == 401 and self._on_unauthorized is not None:
            self._on_unauthorized()

        raise ApiError(
            status_code=response.status_code,
            data=data,
            endpoint=path,
            method=method,
            status_text=response.reason_phrase,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        return await self.request("GET", path, params=params, timeout=timeout)

    async def post(self, path: str, json: Any = None, timeout: Optional[float] = None) -> Any:
        return await self.request("POST", path, json=json, timeout=timeout)

    async def put(self, path: str, json: Any = None, timeout: Optional[float] = None) -> Any:
        return await self.request("PUT", path, json=json, timeout=timeout)

    async def delete(self, path: str, timeout: Optional[float] = None) -> Any:
        return await self.request("DELETE", path, timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        async with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                await self._client.aclose()
                logger.debug("Closed HTTP client for %s", self.base_url)
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
