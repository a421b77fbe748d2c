"""Services for spdrive - Graph collaborators."""
from .api_client import GraphAPIClient
from .auth import ClientCredentialsTokenProvider, StaticTokenProvider
from .files import FileService
from .folders import FolderService
from .transport import ChunkTransport

__all__ = [
    "GraphAPIClient",
    "ClientCredentialsTokenProvider",
    "StaticTokenProvider",
    "FileService",
    "FolderService",
    "ChunkTransport",
]
