"""Core orchestrator - drives a chunked upload through one session."""
import asyncio
import logging
from typing import BinaryIO, Callable, Optional

from ..errors import ErrorKind, StorageError
from ..models import (
    CHUNK_ALIGNMENT,
    Chunk,
    OutcomeKind,
    UploadConfig,
    UploadOutcome,
    UploadProgress,
    UploadSession,
)
from .chunk_uploader import ChunkUploader

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]


class ChunkedUploadOrchestrator:
    """
    Reads a source sequentially and pushes it chunk by chunk.

    Chunks are sent one at a time: the session tracks a single expected
    next byte offset.

    Usage:
        orchestrator = ChunkedUploadOrchestrator(ChunkUploader(transport))
        session = await initiator.begin_upload(path, size)
        await orchestrator.upload(session, source)
    """

    def __init__(self, chunk_uploader: ChunkUploader, config: Optional[UploadConfig] = None):
        self._uploader = chunk_uploader
        self._config = config or UploadConfig()

    async def upload(
        self,
        session: UploadSession,
        source: BinaryIO,
        total_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Upload ``source`` into ``session``.

        Args:
            session: Open upload session
            source: Binary stream positioned at the first byte to send
            total_size: Payload size (defaults to session.total_size)
            chunk_size: Bytes per chunk (defaults to the configured chunk size)
            progress_callback: Called after every acknowledged chunk

        Raises:
            StorageError: on any terminal outcome other than COMPLETED
        """
        total_size = session.total_size if total_size is None else total_size
        chunk_size = chunk_size or self._config.chunk_size
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_size % CHUNK_ALIGNMENT:
            logger.warning(f"chunk_size {chunk_size} is not a multiple of {CHUNK_ALIGNMENT} bytes")

        offset = 0
        index = 0
        while offset < total_size:
            payload = await asyncio.to_thread(source.read, min(chunk_size, total_size - offset))
            if not payload:
                raise StorageError(
                    ErrorKind.SOURCE_UNREADABLE,
                    f"Source ended after {offset} of {total_size} bytes",
                    path=session.target_path,
                    byte_range=(offset, total_size - 1),
                )

            chunk = Chunk(index=index, first_byte=offset, payload=payload)
            outcome = await self._uploader.send_chunk(session.upload_url, total_size, chunk)

            if outcome.kind is OutcomeKind.CONTINUE:
                offset += chunk.size
                index += 1
                self._report(progress_callback, offset, total_size)
                continue

            if outcome.kind is OutcomeKind.COMPLETED:
                self._report(progress_callback, total_size, total_size)
                logger.info(f"Upload of {session.target_path} completed in {index + 1} chunks")
                return

            raise self._error_for(outcome, session, chunk, total_size)

        logger.info(f"Upload of {session.target_path} had no bytes to send")

    @staticmethod
    def _report(callback: Optional[ProgressCallback], uploaded: int, total: int) -> None:
        if callback is not None:
            callback(UploadProgress(uploaded_bytes=uploaded, total_bytes=total))

    @staticmethod
    def _error_for(outcome: UploadOutcome, session: UploadSession, chunk: Chunk, total_size: int) -> StorageError:
        context = dict(
            status_code=outcome.status_code,
            path=session.target_path,
            byte_range=chunk.byte_range,
            attempt=outcome.attempt,
        )
        if outcome.kind is OutcomeKind.SESSION_EXPIRED:
            return StorageError(
                ErrorKind.SESSION_EXPIRED,
                "Upload URL has expired, please create new upload session",
                retryable=True,
                **context,
            )
        if outcome.kind is OutcomeKind.NAME_CONFLICT:
            return StorageError(
                ErrorKind.NAME_CONFLICT,
                "File name conflict. A file with the same name already exists at target destination.",
                **context,
            )
        if outcome.kind is OutcomeKind.SERVER_ERROR:
            return StorageError(
                ErrorKind.RETRY_BUDGET_EXCEEDED,
                f"Upload failed after {outcome.attempt + 1} attempts.",
                retryable=True,
                **context,
            )
        if chunk.is_last(total_size):
            message = f"Failed request, expected a 2xx status but got {outcome.status_code}"
        else:
            message = (
                "Unknown error occurred while trying to upload file chunk. "
                f"HTTP status code is {outcome.status_code}"
            )
        return StorageError(ErrorKind.UNEXPECTED_STATUS, message, **context)
