"""
File Service - Single Responsibility: file operations on a drive.

Thin wrapper over the Graph drive item endpoints.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..errors import ErrorKind, StorageError
from ..protocols import IAPIClient
from .paths import item_url, normalize_path

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[int]:
    """Convert a Graph ISO 8601 timestamp to epoch seconds."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return int(datetime.fromisoformat(value).timestamp())


class FileService:
    """
    Service for file operations on a Graph drive.

    Implements IFileService protocol.
    """

    def __init__(self, api_client: IAPIClient, drive_id: str):
        self._api = api_client
        self._drive_id = drive_id

    @property
    def api_client(self) -> IAPIClient:
        return self._api

    @property
    def drive_id(self) -> str:
        return self._drive_id

    def get_file_base_url(
        self,
        path: Optional[str] = None,
        item_id: Optional[str] = None,
        suffix: str = "",
    ) -> str:
        """
        Build the URL of a drive item addressed by path or by id.

        Args:
            path: Drive-relative path (ignored when item_id is given)
            item_id: Drive item identifier
            suffix: Appended verbatim (e.g. ``:/report.pdf``)
        """
        if item_id:
            return f"/drives/{self._drive_id}/items/{item_id}{suffix}"
        return item_url(self._drive_id, path or "/") + suffix

    async def request_file_metadata(self, path: str) -> Dict[str, Any]:
        """
        Get the drive item of a file.

        Raises:
            StorageError(NOT_FOUND): if nothing exists at the path, or it is a folder
        """
        path = normalize_path(path)
        item = await self._api.request("GET", item_url(self._drive_id, path))
        if "file" not in item:
            raise StorageError.not_found(path)
        return item

    async def check_file_exists(self, path: str) -> bool:
        try:
            await self.request_file_metadata(path)
        except StorageError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                return False
            raise
        return True

    async def read_file(self, path: str) -> bytes:
        return await self._api.request_bytes("GET", item_url(self._drive_id, path, "/content"))

    async def write_file(self, path: str, contents: bytes, mime_type: str = "text/plain") -> Dict[str, Any]:
        """
        Upload a small file in one request.

        Args:
            path: Destination path
            contents: File content
            mime_type: Content-Type sent with the body

        Returns:
            Drive item of the written file
        """
        logger.debug(f"Direct write of {len(contents)} bytes to {path}")
        return await self._api.request(
            "PUT",
            item_url(self._drive_id, path, "/content"),
            content=contents,
            headers={"Content-Type": mime_type},
        )

    async def delete_file(self, path: str) -> None:
        await self._api.request("DELETE", item_url(self._drive_id, path))

    async def request_file_stream_url(self, path: str) -> str:
        """Resolve the pre-authenticated download URL of a file."""
        item = await self.request_file_metadata(path)
        url = item.get("@microsoft.graph.downloadUrl")
        if not url:
            raise StorageError(
                ErrorKind.UNABLE_TO_READ_FILE,
                f"No download URL available for {path}",
                path=path,
            )
        return url

    async def check_file_mime_type(self, path: str) -> Optional[str]:
        item = await self.request_file_metadata(path)
        return item.get("file", {}).get("mimeType")

    async def check_file_last_modified(self, path: str) -> Optional[int]:
        item = await self.request_file_metadata(path)
        return parse_timestamp(item.get("lastModifiedDateTime"))

    async def check_file_size(self, path: str) -> Optional[int]:
        item = await self.request_file_metadata(path)
        return item.get("size")

    async def _folder_id(self, path: str) -> str:
        folder = await self._api.request("GET", item_url(self._drive_id, path))
        return folder["id"]

    async def move_file(self, source: str, target_folder: str, name: str) -> Dict[str, Any]:
        """Move (and optionally rename) a file into ``target_folder``."""
        target_id = await self._folder_id(target_folder)
        return await self._api.request(
            "PATCH",
            item_url(self._drive_id, source),
            json={"parentReference": {"id": target_id}, "name": name},
        )

    async def copy_file(self, source: str, target_folder: str, name: str) -> Dict[str, Any]:
        """Start a server-side copy of a file into ``target_folder``."""
        target_id = await self._folder_id(target_folder)
        return await self._api.request(
            "POST",
            item_url(self._drive_id, source, "/copy"),
            json={"parentReference": {"driveId": self._drive_id, "id": target_id}, "name": name},
        )

    async def create_upload_session(self, item_url: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Request a resumable upload session for the item at ``item_url``.

        Returns:
            Decoded response (``uploadUrl``, ``expirationDateTime``)
        """
        return await self._api.request("POST", f"{item_url}:/createUploadSession", json=body)
