"""
SharePoint filesystem adapter.

Implements the FilesystemAdapter contract on top of a SharepointConnector.
Small payloads are written in one request; larger ones go through a
resumable upload session (see spdrive.orchestrator).
"""
import asyncio
import io
import logging
import os
import stat
from typing import Any, AsyncIterator, BinaryIO, List, Mapping, Optional, Union

import httpx

from .errors import ErrorKind, StorageError
from .models import DirectoryAttributes, FileAttributes, UploadConfig
from .orchestrator import ChunkedUploadOrchestrator, ChunkUploader, UploadSessionInitiator
from .orchestrator.core import ProgressCallback
from .orchestrator.chunk_uploader import Sleep
from .protocols import FilesystemAdapter, StorageAttributes
from .services.files import parse_timestamp
from .services.paths import split_path

logger = logging.getLogger(__name__)

NOT_SUPPORTED_VISIBILITY = "notSupported"


def measure_source(source: BinaryIO) -> int:
    """
    Return the number of bytes left in ``source``.

    Raises:
        StorageError(SOURCE_UNREADABLE): if the size cannot be determined
    """
    try:
        if source.seekable():
            position = source.tell()
            end = source.seek(0, io.SEEK_END)
            source.seek(position)
            return end - position
        info = os.fstat(source.fileno())
    except (AttributeError, OSError, ValueError) as exc:
        raise StorageError(
            ErrorKind.SOURCE_UNREADABLE,
            "Failed to get information about the file using the open file pointer",
        ) from exc
    if not stat.S_ISREG(info.st_mode):
        raise StorageError(
            ErrorKind.SOURCE_UNREADABLE,
            "Cannot determine the size of a non-regular, non-seekable stream",
        )
    return info.st_size


class SharepointAdapter(FilesystemAdapter):
    """
    Filesystem adapter for a SharePoint document library.

    Usage:
        connector = SharepointConnector.from_credentials(tenant, client, secret, drive_id=drive)
        async with SharepointAdapter(connector, prefix="/Shared") as fs:
            await fs.write("reports/q1.txt", b"...")
            with open("video.mp4", "rb") as f:
                await fs.write_stream("media/video.mp4", f, {"chunk_size": 327680 * 20})
    """

    def __init__(
        self,
        connector,
        prefix: str = "/",
        config: Optional[UploadConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize adapter.

        Args:
            connector: SharepointConnector (or anything exposing folder/file/transport)
            prefix: Root path under which every adapter path lives
            config: Default write configuration
            sleep: Awaitable used for retry waits
        """
        self._connector = connector
        self._prefix = "/"
        self.prefix = prefix
        self._config = config or UploadConfig()
        self._sleep = sleep

    async def __aenter__(self):
        await self._connector.__aenter__()
        return self

    async def __aexit__(self, *args):
        await self._connector.__aexit__(*args)

    @property
    def connector(self):
        return self._connector

    @property
    def prefix(self) -> str:
        return self._prefix

    @prefix.setter
    def prefix(self, value: str) -> None:
        self._prefix = f"/{value.strip('/')}"

    def apply_prefix(self, path: str) -> str:
        if path in ("", "/"):
            return self._prefix
        if self._prefix == "/":
            return f"/{path.lstrip('/')}"
        return f"{self._prefix}/{path.lstrip('/')}"

    # Existence

    async def file_exists(self, path: str) -> bool:
        return await self._connector.file.check_file_exists(self.apply_prefix(path))

    async def directory_exists(self, path: str) -> bool:
        return await self._connector.folder.check_folder_exists(self.apply_prefix(path))

    # Writing

    async def write(
        self,
        path: str,
        contents: Union[bytes, str],
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        options = self._config.with_overrides(config)

        # Files larger than 4 MiB require an upload session
        if len(contents) > options.direct_write_limit:
            await self.write_stream(path, io.BytesIO(contents), config)
            return

        await self._connector.file.write_file(self.apply_prefix(path), contents, options.mime_type)

    async def write_stream(
        self,
        path: str,
        source: BinaryIO,
        config: Optional[Mapping[str, Any]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Upload ``source`` through a resumable upload session.

        Args:
            path: Destination path (prefix applied)
            source: Binary stream; read from its current position to the end
            config: Per-call options (``chunk_size``, ``mimeType``, ``conflict_behavior``)
            progress_callback: Called with UploadProgress after every acknowledged chunk
        """
        total_size = measure_source(source)
        options = self._config.with_overrides(config)
        target = self.apply_prefix(path)

        if total_size == 0:
            # A session with no chunks never materializes the file
            await self._connector.file.write_file(target, b"", options.mime_type)
            return

        initiator = UploadSessionInitiator(self._connector.folder, self._connector.file, options)
        uploader = ChunkUploader(self._connector.transport, options, sleep=self._sleep)
        orchestrator = ChunkedUploadOrchestrator(uploader, options)

        session = await initiator.begin_upload(target, total_size)
        await orchestrator.upload(session, source, total_size, options.chunk_size, progress_callback)

    # Reading

    async def read(self, path: str) -> bytes:
        return await self._connector.file.read_file(self.apply_prefix(path))

    async def read_stream(self, path: str) -> AsyncIterator[bytes]:
        path = self.apply_prefix(path)
        url = await self._connector.file.request_file_stream_url(path)
        try:
            async for data in self._connector.transport.stream(url):
                yield data
        except httpx.HTTPError as exc:
            raise StorageError(
                ErrorKind.UNABLE_TO_READ_FILE,
                f"Unable to read file from location: {path}. {exc}",
                path=path,
            ) from exc

    # Deleting / directories

    async def delete(self, path: str) -> None:
        await self._connector.file.delete_file(self.apply_prefix(path))

    async def delete_directory(self, path: str) -> None:
        await self._connector.folder.delete_folder(self.apply_prefix(path))

    async def create_directory(self, path: str, config: Optional[Mapping[str, Any]] = None) -> None:
        await self._connector.folder.create_folder_recursive(self.apply_prefix(path))

    # Visibility is not supported by SharePoint drives

    async def set_visibility(self, path: str, visibility: str) -> None:
        raise StorageError.not_supported("set_visibility")

    async def visibility(self, path: str) -> FileAttributes:
        raise StorageError.not_supported("visibility")

    # Metadata

    async def _file_attribute(self, path: str, attribute: str, lookup) -> Any:
        try:
            value = await lookup(path)
        except (StorageError, httpx.HTTPError) as exc:
            raise StorageError.metadata(path, attribute, str(exc)) from exc
        if value is None:
            raise StorageError.metadata(path, attribute, "Unknown.")
        return value

    async def mime_type(self, path: str) -> FileAttributes:
        path = self.apply_prefix(path)
        value = await self._file_attribute(path, "mime_type", self._connector.file.check_file_mime_type)
        return FileAttributes(path=path, mime_type=value)

    async def last_modified(self, path: str) -> FileAttributes:
        path = self.apply_prefix(path)
        value = await self._file_attribute(path, "last_modified", self._connector.file.check_file_last_modified)
        return FileAttributes(path=path, last_modified=value)

    async def file_size(self, path: str) -> FileAttributes:
        path = self.apply_prefix(path)
        value = await self._file_attribute(path, "file_size", self._connector.file.check_file_size)
        return FileAttributes(path=path, file_size=value)

    # Listing

    async def list_contents(self, path: str, deep: bool = False) -> List[StorageAttributes]:
        contents: List[StorageAttributes] = []
        items = await self._connector.folder.request_folder_items(self.apply_prefix(path))
        base = path.strip("/")

        for item in items:
            item_path = f"{base}/{item['name']}" if base else item["name"]
            modified = parse_timestamp(item.get("lastModifiedDateTime"))
            if "folder" in item:
                contents.append(DirectoryAttributes(
                    path=item_path,
                    visibility=NOT_SUPPORTED_VISIBILITY,
                    last_modified=modified,
                    extra_metadata=item,
                ))
                if deep:
                    contents.extend(await self.list_contents(item_path, deep=True))
            elif "file" in item:
                contents.append(FileAttributes(
                    path=item_path,
                    file_size=item.get("size"),
                    visibility=NOT_SUPPORTED_VISIBILITY,
                    last_modified=modified,
                    mime_type=item["file"].get("mimeType"),
                    extra_metadata=item,
                ))

        return contents

    # Move / copy

    async def move(self, source: str, destination: str, config: Optional[Mapping[str, Any]] = None) -> None:
        parent, name = split_path(destination)
        await self._connector.file.move_file(self.apply_prefix(source), self.apply_prefix(parent), name)

    async def copy(self, source: str, destination: str, config: Optional[Mapping[str, Any]] = None) -> None:
        parent, name = split_path(destination)
        await self._connector.file.copy_file(self.apply_prefix(source), self.apply_prefix(parent), name)
