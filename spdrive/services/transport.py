"""
Chunk transport - unauthenticated HTTP for pre-authorized URLs.

Upload session URLs and download URLs embed their own credentials;
sending the Graph bearer token to them is rejected, so this client
never sets an Authorization header.
"""
from typing import AsyncIterator, Dict, Optional

import httpx


class ChunkTransport:
    """
    Bare httpx client for chunk PUTs and download streams.

    Implements IChunkTransport protocol.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(transport=self._transport, follow_redirects=True)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("ChunkTransport not initialized. Use 'async with' context.")
        return self._client

    async def put(
        self,
        url: str,
        content: bytes,
        headers: Dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        return await self._require_client().put(url, content=content, headers=headers, timeout=timeout)

    async def stream(self, url: str) -> AsyncIterator[bytes]:
        async with self._require_client().stream("GET", url) as response:
            response.raise_for_status()
            async for data in response.aiter_bytes():
                yield data
