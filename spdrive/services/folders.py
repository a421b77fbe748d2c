"""
Folder Service - Single Responsibility: folder operations on a drive.

Creates folder paths recursively and caches the resolved items.
"""
import logging
from typing import Any, Dict, List

from ..errors import ErrorKind, StorageError
from ..protocols import IAPIClient
from .paths import item_url, normalize_path

logger = logging.getLogger(__name__)


class FolderService:
    """
    Service for folder operations on a Graph drive.

    Implements IFolderService protocol.
    """

    def __init__(self, api_client: IAPIClient, drive_id: str):
        """
        Initialize folder service.

        Args:
            api_client: Authenticated API client
            drive_id: Drive the service operates on
        """
        self._api = api_client
        self._drive_id = drive_id
        self._folder_cache: Dict[str, Dict[str, Any]] = {}  # path -> item cache

    async def request_folder_metadata(self, path: str) -> Dict[str, Any]:
        """
        Get the drive item of a folder.

        Raises:
            StorageError(NOT_FOUND): if nothing exists at the path, or it is a file
        """
        path = normalize_path(path)
        item = await self._api.request("GET", item_url(self._drive_id, path))
        if path != "/" and "folder" not in item:
            raise StorageError.not_found(path)
        return item

    async def check_folder_exists(self, path: str) -> bool:
        try:
            await self.request_folder_metadata(path)
        except StorageError as e:
            if e.kind is ErrorKind.NOT_FOUND:
                return False
            raise
        return True

    async def request_folder_items(self, path: str) -> List[Dict[str, Any]]:
        """List the children of a folder, following pagination links."""
        items: List[Dict[str, Any]] = []
        url = item_url(self._drive_id, path, "/children")
        while url:
            page = await self._api.request("GET", url)
            items.extend(page.get("value", []))
            url = page.get("@odata.nextLink")
        return items

    async def create_folder(self, parent: str, name: str) -> Dict[str, Any]:
        """Create folder ``name`` inside ``parent``."""
        logger.info(f"Creating folder: {name} in {normalize_path(parent)}")
        return await self._api.request(
            "POST",
            item_url(self._drive_id, parent, "/children"),
            json={
                "name": name,
                "folder": {},
                "@microsoft.graph.conflictBehavior": "fail",
            },
        )

    async def create_folder_recursive(self, path: str) -> Dict[str, Any]:
        """
        Create folder path (creates parents if needed). Uses cache.

        Args:
            path: Folder path (e.g., "/Reports/2024/Q1")

        Returns:
            Drive item of the created/existing folder
        """
        path = normalize_path(path)
        if path in self._folder_cache:
            logger.debug(f"Folder found in cache: {path}")
            return self._folder_cache[path]

        if path == "/":
            item = await self.request_folder_metadata(path)
            self._folder_cache[path] = item
            return item

        current_path = ""
        item: Dict[str, Any] = {}
        for part in path.strip("/").split("/"):
            parent = current_path or "/"
            current_path = f"{current_path}/{part}"

            if current_path in self._folder_cache:
                item = self._folder_cache[current_path]
                continue

            try:
                item = await self.request_folder_metadata(current_path)
                logger.debug(f"Intermediate folder exists: {current_path}")
            except StorageError as e:
                if e.kind is not ErrorKind.NOT_FOUND:
                    raise
                item = await self._create_or_fetch(parent, part, current_path)

            self._folder_cache[current_path] = item

        logger.info(f"Folder structure created/verified: {path}")
        return item

    async def _create_or_fetch(self, parent: str, name: str, path: str) -> Dict[str, Any]:
        try:
            return await self.create_folder(parent, name)
        except StorageError as e:
            # Created concurrently by someone else
            if e.status_code == 409:
                return await self.request_folder_metadata(path)
            raise

    async def delete_folder(self, path: str) -> None:
        path = normalize_path(path)
        await self._api.request("DELETE", item_url(self._drive_id, path))
        for cached in [p for p in self._folder_cache if p == path or p.startswith(f"{path}/")]:
            del self._folder_cache[cached]
