"""
spdrive - filesystem adapter for SharePoint document libraries.

Payloads up to 4 MiB are written in a single request; larger payloads use
a resumable upload session pushed chunk by chunk.

Usage:
    from spdrive import SharepointAdapter, SharepointConnector

    connector = SharepointConnector.from_credentials(
        tenant_id, client_id, client_secret, drive_id=drive_id
    )
    async with SharepointAdapter(connector, prefix="/Shared Documents") as fs:
        await fs.write("notes/today.txt", "hello")

        with open("archive.zip", "rb") as f:
            await fs.write_stream("backups/archive.zip", f)

        async for data in fs.read_stream("backups/archive.zip"):
            ...
"""
from .adapter import SharepointAdapter
from .connector import SharepointConnector
from .errors import ErrorKind, StorageError
from .models import (
    Chunk,
    DirectoryAttributes,
    FileAttributes,
    OutcomeKind,
    UploadConfig,
    UploadOutcome,
    UploadProgress,
    UploadSession,
)
from .orchestrator import ChunkedUploadOrchestrator, ChunkUploader, UploadSessionInitiator
from .protocols import FilesystemAdapter

__version__ = "0.1.0"
__all__ = [
    # Main
    "SharepointAdapter",
    "SharepointConnector",
    "FilesystemAdapter",
    # Upload protocol
    "ChunkUploader",
    "ChunkedUploadOrchestrator",
    "UploadSessionInitiator",
    # Models
    "Chunk",
    "DirectoryAttributes",
    "FileAttributes",
    "OutcomeKind",
    "UploadConfig",
    "UploadOutcome",
    "UploadProgress",
    "UploadSession",
    # Errors
    "ErrorKind",
    "StorageError",
]
