"""HTTP adapter for Microsoft Graph API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import ErrorKind, StorageError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class GraphAPIClient:
    """
    Authenticated HTTP client adapter for Graph calls.

    Implements IAPIClient protocol. Every request carries a bearer token
    obtained from the token provider. Upload chunks never go through this
    client (see ChunkTransport).
    """

    def __init__(
        self,
        token_provider,
        base_url: str = GRAPH_BASE_URL,
        timeout: int = 60,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token_provider = token_provider
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body ({} when empty)."""
        response = await self._send(method, url, json=json, content=content, headers=headers)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"value": body}

    async def request_bytes(self, method: str, url: str) -> bytes:
        """Send a request and return the raw response body."""
        response = await self._send(method, url)
        return response.content

    async def _send(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("GraphAPIClient not initialized. Use 'async with' context.")

        last_exception = None

        for attempt in range(self._max_retries):
            request_headers = {"Authorization": f"Bearer {await self._token_provider.get_token()}"}
            if headers:
                request_headers.update(headers)
            try:
                response = await self._client.request(
                    method, url, json=json, content=content, headers=request_headers
                )

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    logger.debug(f"{method} {url} returned {response.status_code}, retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    raise self._error_for(method, url, response)

                return response
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError(f"Failed to {method} {url} after {self._max_retries} attempts")

    @staticmethod
    def _error_for(method: str, url: str, response: httpx.Response) -> StorageError:
        try:
            error_detail = response.json()
        except ValueError:
            error_detail = response.text

        status = response.status_code
        if status == 404:
            return StorageError.not_found(url)
        if status in (401, 403):
            return StorageError(
                ErrorKind.AUTHENTICATION_FAILED,
                f"API error {status} on {method} {url}: {error_detail}",
                status_code=status,
            )
        return StorageError(
            ErrorKind.REQUEST_FAILED,
            f"API error {status} on {method} {url}: {error_detail}",
            retryable=status == 429 or status >= 500,
            status_code=status,
        )
