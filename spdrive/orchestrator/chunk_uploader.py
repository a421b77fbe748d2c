"""
Chunk Uploader - sends one chunk and classifies the response.

Response handling, first match wins:
1. 404            -> session expired (terminal)
2. 429            -> wait Retry-After seconds, resend the same chunk
3. >= 500         -> wait 2**attempt seconds, resend; terminal once attempt reaches the cap
4. last chunk     -> 409 name conflict, [200, 500) completed, else unexpected
5. 202            -> continue
6. anything else  -> unexpected status (terminal)
"""
import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional

import httpx

from ..errors import ErrorKind, StorageError
from ..models import Chunk, OutcomeKind, UploadConfig, UploadOutcome
from ..protocols import IChunkTransport

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def parse_retry_after(headers: Mapping[str, str], default: float) -> float:
    """Read Retry-After as seconds; missing or unparseable values yield ``default``."""
    value = headers.get("Retry-After")
    if value is None:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


class ChunkUploader:
    """
    Pushes chunks of an upload session through the chunk transport.

    Usage:
        uploader = ChunkUploader(transport, config)
        outcome = await uploader.send_chunk(session.upload_url, session.total_size, chunk)
    """

    def __init__(
        self,
        transport: IChunkTransport,
        config: Optional[UploadConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._transport = transport
        self._config = config or UploadConfig()
        self._sleep = sleep

    def classify(self, response: httpx.Response, is_last: bool, attempt: int = 0) -> UploadOutcome:
        status = response.status_code

        if status == 404:
            return UploadOutcome.session_expired(attempt)
        if status == 429:
            retry_after = parse_retry_after(response.headers, self._config.default_retry_after)
            return UploadOutcome.rate_limited(retry_after, attempt)
        if status >= 500:
            return UploadOutcome.server_error(status, attempt)
        if is_last:
            if status == 409:
                return UploadOutcome.name_conflict(attempt)
            if 200 <= status < 500:
                return UploadOutcome.completed(status, attempt)
            return UploadOutcome.unexpected(status, attempt)
        if status == 202:
            return UploadOutcome.proceed(status, attempt)
        return UploadOutcome.unexpected(status, attempt)

    async def send_chunk(
        self,
        upload_url: str,
        total_size: int,
        chunk: Chunk,
        attempt: int = 0,
    ) -> UploadOutcome:
        """
        Upload one chunk, retrying rate limits and server errors in place.

        Args:
            upload_url: Pre-authorized session URL
            total_size: Size of the whole payload
            chunk: Chunk to send
            attempt: Attempt counter to start from; shared by rate-limit and server-error retries

        Returns:
            The first non-retry outcome, or SERVER_ERROR once the
            attempt counter reaches max_server_retries

        Raises:
            StorageError(RETRY_BUDGET_EXCEEDED): transport failures outlasted the budget
        """
        headers = {
            "Content-Range": chunk.content_range(total_size),
            "Content-Length": str(chunk.size),
        }
        is_last = chunk.is_last(total_size)

        while True:
            failure: Optional[httpx.TransportError] = None
            try:
                response = await self._transport.put(
                    upload_url,
                    content=chunk.payload,
                    headers=headers,
                    timeout=self._config.chunk_timeout,
                )
            except httpx.TransportError as exc:
                failure = exc
                outcome = UploadOutcome.server_error(None, attempt)
            else:
                outcome = self.classify(response, is_last, attempt)

            if outcome.kind is OutcomeKind.RATE_LIMITED:
                logger.warning(
                    f"Rate limited on chunk {chunk.index} ({headers['Content-Range']}), "
                    f"retrying in {outcome.retry_after}s"
                )
                await self._sleep(outcome.retry_after)
                attempt += 1
                continue

            if outcome.kind is OutcomeKind.SERVER_ERROR:
                if attempt >= self._config.max_server_retries:
                    if failure is not None:
                        raise StorageError(
                            ErrorKind.RETRY_BUDGET_EXCEEDED,
                            f"Upload failed after {attempt + 1} attempts: {failure}",
                            retryable=True,
                            byte_range=chunk.byte_range,
                            attempt=attempt,
                        ) from failure
                    return outcome
                delay = 2 ** attempt
                logger.warning(
                    f"Chunk {chunk.index} failed with {outcome.status_code or type(failure).__name__}, "
                    f"backing off {delay}s (attempt {attempt + 1})"
                )
                await self._sleep(delay)
                attempt += 1
                continue

            logger.debug(f"Chunk {chunk.index} {headers['Content-Range']} -> {outcome.kind.value}")
            return outcome
