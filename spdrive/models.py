"""
Models for spdrive.

Immutable dataclasses for the upload protocol and storage attributes.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple


CHUNK_ALIGNMENT = 320 * 1024  # Graph requires chunk sizes in multiples of 320 KiB
DEFAULT_CHUNK_SIZE = CHUNK_ALIGNMENT * 10
DIRECT_WRITE_LIMIT = 4 * 1024 * 1024


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for write operations."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    mime_type: str = "text/plain"
    direct_write_limit: int = DIRECT_WRITE_LIMIT
    chunk_timeout: float = 120.0
    max_server_retries: int = 4
    default_retry_after: float = 1.0
    conflict_behavior: Optional[str] = None  # fail | replace | rename

    def with_overrides(self, options: Optional[Mapping[str, Any]]) -> "UploadConfig":
        """
        Merge per-call options into a copy of this config.

        Recognized keys: ``chunk_size``, ``mimeType`` (or ``mime_type``),
        ``conflict_behavior``. Unknown keys are ignored.
        """
        if not options:
            return self
        changes: Dict[str, Any] = {}
        if options.get("chunk_size") is not None:
            changes["chunk_size"] = int(options["chunk_size"])
        mime_type = options.get("mimeType", options.get("mime_type"))
        if mime_type:
            changes["mime_type"] = mime_type
        if options.get("conflict_behavior"):
            changes["conflict_behavior"] = options["conflict_behavior"]
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class UploadSession:
    """Server-side resumable upload context."""
    target_path: str
    upload_url: str
    total_size: int


@dataclass(frozen=True)
class Chunk:
    """One contiguous byte range of the payload."""
    index: int
    first_byte: int
    payload: bytes = field(repr=False)

    @property
    def last_byte(self) -> int:
        return self.first_byte + len(self.payload) - 1

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def byte_range(self) -> Tuple[int, int]:
        return (self.first_byte, self.last_byte)

    def is_last(self, total_size: int) -> bool:
        return self.last_byte == total_size - 1

    def content_range(self, total_size: int) -> str:
        return f"bytes {self.first_byte}-{self.last_byte}/{total_size}"


def plan_chunks(total_size: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """Yield the (first, last) byte ranges a payload is split into."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for first in range(0, total_size, chunk_size):
        yield first, min(first + chunk_size, total_size) - 1


class OutcomeKind(Enum):
    """Protocol outcome of one chunk response."""
    CONTINUE = "continue"
    COMPLETED = "completed"
    SESSION_EXPIRED = "session_expired"
    NAME_CONFLICT = "name_conflict"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNEXPECTED_STATUS = "unexpected_status"


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable tagged outcome of a chunk upload."""
    kind: OutcomeKind
    status_code: Optional[int] = None
    retry_after: Optional[float] = None
    attempt: int = 0

    @property
    def is_retry(self) -> bool:
        return self.kind in (OutcomeKind.RATE_LIMITED, OutcomeKind.SERVER_ERROR)

    @classmethod
    def proceed(cls, status_code: int = 202, attempt: int = 0):
        return cls(OutcomeKind.CONTINUE, status_code=status_code, attempt=attempt)

    @classmethod
    def completed(cls, status_code: int, attempt: int = 0):
        return cls(OutcomeKind.COMPLETED, status_code=status_code, attempt=attempt)

    @classmethod
    def session_expired(cls, attempt: int = 0):
        return cls(OutcomeKind.SESSION_EXPIRED, status_code=404, attempt=attempt)

    @classmethod
    def name_conflict(cls, attempt: int = 0):
        return cls(OutcomeKind.NAME_CONFLICT, status_code=409, attempt=attempt)

    @classmethod
    def rate_limited(cls, retry_after: float, attempt: int = 0):
        return cls(OutcomeKind.RATE_LIMITED, status_code=429, retry_after=retry_after, attempt=attempt)

    @classmethod
    def server_error(cls, status_code: Optional[int], attempt: int):
        return cls(OutcomeKind.SERVER_ERROR, status_code=status_code, attempt=attempt)

    @classmethod
    def unexpected(cls, status_code: int, attempt: int = 0):
        return cls(OutcomeKind.UNEXPECTED_STATUS, status_code=status_code, attempt=attempt)


@dataclass(frozen=True)
class UploadProgress:
    """Progress reported after each acknowledged chunk."""
    uploaded_bytes: int
    total_bytes: int

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return self.uploaded_bytes * 100.0 / self.total_bytes


@dataclass(frozen=True)
class FileAttributes:
    """Metadata of a remote file."""
    path: str
    file_size: Optional[int] = None
    visibility: Optional[str] = None
    last_modified: Optional[int] = None
    mime_type: Optional[str] = None
    extra_metadata: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_file(self) -> bool:
        return True

    @property
    def is_dir(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryAttributes:
    """Metadata of a remote directory."""
    path: str
    visibility: Optional[str] = None
    last_modified: Optional[int] = None
    extra_metadata: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_file(self) -> bool:
        return False

    @property
    def is_dir(self) -> bool:
        return True
