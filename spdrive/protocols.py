"""
Protocols (Interfaces) for Dependency Inversion.

Following Interface Segregation Principle - small, focused interfaces.
The remote collaborators are Protocols so tests can pass fakes; the
storage contract itself is an ABC the adapter implements explicitly.
"""
from abc import ABC, abstractmethod
from typing import (
    Any,
    AsyncIterator,
    BinaryIO,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

import httpx

from .models import DirectoryAttributes, FileAttributes

StorageAttributes = Union[FileAttributes, DirectoryAttributes]


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for authenticated remote API calls."""

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body."""
        ...


@runtime_checkable
class IFolderService(Protocol):
    """Interface for folder operations on the remote drive."""

    async def check_folder_exists(self, path: str) -> bool:
        ...

    async def create_folder_recursive(self, path: str) -> Dict[str, Any]:
        ...

    async def request_folder_metadata(self, path: str) -> Dict[str, Any]:
        ...

    async def request_folder_items(self, path: str) -> List[Dict[str, Any]]:
        ...

    async def delete_folder(self, path: str) -> None:
        ...


@runtime_checkable
class IFileService(Protocol):
    """Interface for file operations on the remote drive."""

    async def check_file_exists(self, path: str) -> bool:
        ...

    async def read_file(self, path: str) -> bytes:
        ...

    async def write_file(self, path: str, contents: bytes, mime_type: str = "text/plain") -> Dict[str, Any]:
        ...

    async def delete_file(self, path: str) -> None:
        ...

    async def request_file_stream_url(self, path: str) -> str:
        ...

    async def check_file_mime_type(self, path: str) -> Optional[str]:
        ...

    async def check_file_last_modified(self, path: str) -> Optional[int]:
        ...

    async def check_file_size(self, path: str) -> Optional[int]:
        ...

    async def move_file(self, source: str, target_folder: str, name: str) -> Dict[str, Any]:
        ...

    async def copy_file(self, source: str, target_folder: str, name: str) -> Dict[str, Any]:
        ...

    def get_file_base_url(
        self,
        path: Optional[str] = None,
        item_id: Optional[str] = None,
        suffix: str = "",
    ) -> str:
        ...

    async def create_upload_session(self, item_url: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ...


@runtime_checkable
class IChunkTransport(Protocol):
    """Interface for unauthenticated transfers against pre-authorized URLs."""

    async def put(
        self,
        url: str,
        content: bytes,
        headers: Dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        ...

    def stream(self, url: str) -> AsyncIterator[bytes]:
        ...


class FilesystemAdapter(ABC):
    """Storage capability contract implemented by concrete adapters."""

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def directory_exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def write(self, path: str, contents: bytes, config: Optional[Mapping[str, Any]] = None) -> None:
        pass

    @abstractmethod
    async def write_stream(self, path: str, source: BinaryIO, config: Optional[Mapping[str, Any]] = None) -> None:
        pass

    @abstractmethod
    async def read(self, path: str) -> bytes:
        pass

    @abstractmethod
    def read_stream(self, path: str) -> AsyncIterator[bytes]:
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        pass

    @abstractmethod
    async def delete_directory(self, path: str) -> None:
        pass

    @abstractmethod
    async def create_directory(self, path: str, config: Optional[Mapping[str, Any]] = None) -> None:
        pass

    @abstractmethod
    async def set_visibility(self, path: str, visibility: str) -> None:
        pass

    @abstractmethod
    async def visibility(self, path: str) -> FileAttributes:
        pass

    @abstractmethod
    async def mime_type(self, path: str) -> FileAttributes:
        pass

    @abstractmethod
    async def last_modified(self, path: str) -> FileAttributes:
        pass

    @abstractmethod
    async def file_size(self, path: str) -> FileAttributes:
        pass

    @abstractmethod
    async def list_contents(self, path: str, deep: bool = False) -> List[StorageAttributes]:
        pass

    @abstractmethod
    async def move(self, source: str, destination: str, config: Optional[Mapping[str, Any]] = None) -> None:
        pass

    @abstractmethod
    async def copy(self, source: str, destination: str, config: Optional[Mapping[str, Any]] = None) -> None:
        pass
