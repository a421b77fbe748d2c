"""Session Initiator - opens a resumable upload session for a path."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..errors import ErrorKind, StorageError
from ..models import UploadConfig, UploadSession
from ..protocols import IFileService, IFolderService
from ..services.paths import split_path

logger = logging.getLogger(__name__)


class UploadSessionInitiator:
    """Creates the destination parent folder and requests an upload session."""

    def __init__(
        self,
        folder_service: IFolderService,
        file_service: IFileService,
        config: Optional[UploadConfig] = None,
    ):
        self._folders = folder_service
        self._files = file_service
        self._config = config or UploadConfig()

    async def begin_upload(self, path: str, total_size: int) -> UploadSession:
        """
        Open an upload session for ``path``.

        Args:
            path: Full remote path of the file to create
            total_size: Size of the payload in bytes

        Returns:
            UploadSession holding the pre-authorized upload URL

        Raises:
            StorageError(FOLDER_UNAVAILABLE): parent folder could not be created or resolved
            StorageError(SESSION_CREATION_FAILED): the remote did not return an upload URL
        """
        item_url = await self.resolve_item_url(path)

        body: Optional[Dict[str, Any]] = None
        if self._config.conflict_behavior:
            body = {"item": {"@microsoft.graph.conflictBehavior": self._config.conflict_behavior}}

        try:
            response = await self._files.create_upload_session(item_url, body)
        except StorageError as exc:
            raise StorageError(
                ErrorKind.SESSION_CREATION_FAILED,
                f"Could not create upload session for {path}: {exc.message}",
                retryable=exc.retryable,
                status_code=exc.status_code,
                path=path,
            ) from exc

        upload_url = response.get("uploadUrl")
        if not upload_url:
            raise StorageError(
                ErrorKind.SESSION_CREATION_FAILED,
                f"Upload session response for {path} has no uploadUrl",
                path=path,
            )

        logger.info(f"Upload session created for {path} ({total_size} bytes)")
        return UploadSession(target_path=path, upload_url=upload_url, total_size=total_size)

    async def resolve_item_url(self, path: str) -> str:
        """Ensure the parent folder exists and return the item URL addressed by parent id + name."""
        parent, name = split_path(path)
        if not name:
            raise ValueError(f"Upload path has no file name: {path!r}")

        try:
            if parent != "/":
                await self._folders.create_folder_recursive(parent)
            parent_meta = await self._folders.request_folder_metadata(parent)
        except (StorageError, httpx.HTTPError) as exc:
            raise StorageError(
                ErrorKind.FOLDER_UNAVAILABLE,
                f"Parent folder {parent} is unavailable: {exc}",
                path=parent,
            ) from exc

        parent_id = parent_meta.get("id")
        if not parent_id:
            raise StorageError(
                ErrorKind.FOLDER_UNAVAILABLE,
                f"Parent folder {parent} has no id",
                path=parent,
            )

        return self._files.get_file_base_url(item_id=parent_id, suffix=f":/{quote(name)}")
