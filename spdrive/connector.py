"""
Connector - wires the Graph client, services and chunk transport for one drive.

Usage:
    async with SharepointConnector.from_credentials(
        tenant_id, client_id, client_secret, site="contoso.sharepoint.com:/sites/Team"
    ) as connector:
        await connector.file.check_file_exists("/Reports/q1.pdf")
"""
import logging
from typing import Optional

import httpx

from .services.api_client import GRAPH_BASE_URL, GraphAPIClient
from .services.auth import ClientCredentialsTokenProvider
from .services.files import FileService
from .services.folders import FolderService
from .services.transport import ChunkTransport

logger = logging.getLogger(__name__)


class SharepointConnector:
    """Owns the remote collaborators used by the adapter."""

    def __init__(
        self,
        token_provider,
        drive_id: Optional[str] = None,
        site: Optional[str] = None,
        base_url: str = GRAPH_BASE_URL,
        api_transport: Optional[httpx.AsyncBaseTransport] = None,
        chunk_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize connector.

        Args:
            token_provider: Object with ``async get_token() -> str``
            drive_id: Drive to operate on
            site: Site reference (``hostname:/sites/name``) whose default drive is used
                when drive_id is not given
            base_url: Graph base URL
            api_transport: Optional httpx transport for API calls (tests)
            chunk_transport: Optional httpx transport for chunk uploads (tests)
        """
        if not drive_id and not site:
            raise ValueError("Either drive_id or site must be provided")
        self._token_provider = token_provider
        self._drive_id = drive_id
        self._site = site
        self._base_url = base_url
        self._api_transport = api_transport
        self._chunk_transport = chunk_transport

        # Initialized in __aenter__
        self._api: Optional[GraphAPIClient] = None
        self._transport: Optional[ChunkTransport] = None
        self._folder: Optional[FolderService] = None
        self._file: Optional[FileService] = None

    @classmethod
    def from_credentials(
        cls,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        drive_id: Optional[str] = None,
        site: Optional[str] = None,
    ) -> "SharepointConnector":
        provider = ClientCredentialsTokenProvider(tenant_id, client_id, client_secret)
        return cls(provider, drive_id=drive_id, site=site)

    async def __aenter__(self):
        self._api = GraphAPIClient(
            self._token_provider,
            base_url=self._base_url,
            transport=self._api_transport,
        )
        await self._api.__aenter__()
        self._transport = ChunkTransport(self._chunk_transport)
        await self._transport.__aenter__()

        try:
            if not self._drive_id:
                self._drive_id = await self._resolve_drive_id(self._site)
        except BaseException:
            await self.__aexit__(None, None, None)
            raise

        self._folder = FolderService(self._api, self._drive_id)
        self._file = FileService(self._api, self._drive_id)
        return self

    async def __aexit__(self, *args):
        if self._transport:
            await self._transport.__aexit__(*args)
        if self._api:
            await self._api.__aexit__(*args)

    async def _resolve_drive_id(self, site: str) -> str:
        site_item = await self._api.request("GET", f"/sites/{site}")
        drive = await self._api.request("GET", f"/sites/{site_item['id']}/drive")
        logger.info(f"Resolved site {site} to drive {drive['id']}")
        return drive["id"]

    @property
    def drive_id(self) -> Optional[str]:
        return self._drive_id

    @property
    def api_client(self) -> GraphAPIClient:
        if self._api is None:
            raise RuntimeError("SharepointConnector not initialized. Use 'async with' context.")
        return self._api

    @property
    def folder(self) -> FolderService:
        if self._folder is None:
            raise RuntimeError("SharepointConnector not initialized. Use 'async with' context.")
        return self._folder

    @property
    def file(self) -> FileService:
        if self._file is None:
            raise RuntimeError("SharepointConnector not initialized. Use 'async with' context.")
        return self._file

    @property
    def transport(self) -> ChunkTransport:
        if self._transport is None:
            raise RuntimeError("SharepointConnector not initialized. Use 'async with' context.")
        return self._transport
