"""
Storage errors.

One tagged exception type for every failure the adapter surfaces.
Callers branch on ``kind`` instead of on exception subclasses.
"""
from enum import Enum
from typing import Optional, Tuple


class ErrorKind(Enum):
    """Failure categories raised by the adapter."""
    FOLDER_UNAVAILABLE = "folder_unavailable"
    SESSION_CREATION_FAILED = "session_creation_failed"
    SESSION_EXPIRED = "session_expired"
    NAME_CONFLICT = "name_conflict"
    RETRY_BUDGET_EXCEEDED = "retry_budget_exceeded"
    UNEXPECTED_STATUS = "unexpected_status"
    SOURCE_UNREADABLE = "source_unreadable"
    NOT_FOUND = "not_found"
    REQUEST_FAILED = "request_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    UNABLE_TO_READ_FILE = "unable_to_read_file"
    UNABLE_TO_RETRIEVE_METADATA = "unable_to_retrieve_metadata"
    NOT_SUPPORTED = "not_supported"


class StorageError(RuntimeError):
    """
    Raised by every adapter operation that fails.

    Attributes:
        kind: Failure category
        message: Human readable description
        retryable: Whether a fresh attempt (new session, new request) may succeed
        status_code: HTTP status that caused the failure, if any
        path: Remote path involved, if any
        byte_range: (first, last) byte offsets of the chunk involved, if any
        attempt: Attempt counter at the time of failure, if any
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retryable: bool = False,
        status_code: Optional[int] = None,
        path: Optional[str] = None,
        byte_range: Optional[Tuple[int, int]] = None,
        attempt: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        self.path = path
        self.byte_range = byte_range
        self.attempt = attempt

    def __repr__(self) -> str:
        return f"StorageError(kind={self.kind.value!r}, message={self.message!r})"

    @classmethod
    def not_found(cls, path: str, status_code: int = 404) -> "StorageError":
        return cls(ErrorKind.NOT_FOUND, f"Resource not found: {path}", status_code=status_code, path=path)

    @classmethod
    def not_supported(cls, operation: str) -> "StorageError":
        return cls(ErrorKind.NOT_SUPPORTED, f"Operation not supported: {operation}")

    @classmethod
    def metadata(cls, path: str, attribute: str, reason: str) -> "StorageError":
        return cls(
            ErrorKind.UNABLE_TO_RETRIEVE_METADATA,
            f"Unable to retrieve the {attribute} for file at location: {path}. {reason}",
            path=path,
        )
