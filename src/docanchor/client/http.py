"""Shared plumbing for the HTTP clients of the backend API."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from docanchor.client.exceptions import NoResponse, ServerRejected

NO_RESPONSE_MESSAGE = "No response from server. Please check your connection."


class BackendClient:
    """Base for clients of the docanchor API.

    An injected ``httpx.AsyncClient`` is used as is and never closed here; without
    one, each call opens and closes its own client.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def url(self, path: str) -> str:
        return f"{self.server_url}{path}"

    @staticmethod
    def error_message(response: httpx.Response) -> str:
        """The server's ``message`` (or ``error``) field, else the reason phrase."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            if message:
                return str(message)
        return response.reason_phrase or f"HTTP {response.status_code}"

    def raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise ServerRejected(response.status_code, self.error_message(response))

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request; timeouts and network failures become ``NoResponse``."""
        try:
            async with self._client() as client:
                return await client.request(method, self.url(path), timeout=self.timeout, **kwargs)
        except httpx.TransportError as e:
            raise NoResponse(NO_RESPONSE_MESSAGE) from e
