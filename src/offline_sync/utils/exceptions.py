"""Custom exceptions for the offline sync package."""

from enum import Enum
from typing import Optional


class OfflineSyncException(Exception):
    """Base exception for all offline sync exceptions."""

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code
        """
        super().__init__(message)
        self.message = message
        self.code = code


class StorageError(OfflineSyncException):
    """Raised when the local cache database fails."""

    def __init__(self, message: str = "Local storage operation failed"):
        """Initialize StorageError."""
        super().__init__(message, "STORAGE_ERROR")


class RemoteErrorKind(str, Enum):
    """Classification of a failed remote call."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    NETWORK = "network"
    UNKNOWN = "unknown"


TERMINAL_KINDS = frozenset(
    {RemoteErrorKind.NOT_FOUND, RemoteErrorKind.CONFLICT, RemoteErrorKind.VALIDATION}
)


def is_terminal(kind: RemoteErrorKind) -> bool:
    """Return True if a mutation failing with ``kind`` must not be retried."""
    return kind in TERMINAL_KINDS


class RemoteServiceError(OfflineSyncException):
    """Tagged error raised at the remote-client boundary."""

    kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN

    def __init__(
        self,
        message: str = "Remote service call failed",
        status_code: Optional[int] = None,
        kind: Optional[RemoteErrorKind] = None,
    ):
        """Initialize RemoteServiceError.

        Args:
            message: Error message
            status_code: HTTP status returned by the remote, if any
            kind: Overrides the class-level kind
        """
        if kind is not None:
            self.kind = kind
        super().__init__(message, self.kind.value.upper())
        self.status_code = status_code


class NetworkError(RemoteServiceError):
    """Transient failure reaching the remote service."""

    kind = RemoteErrorKind.NETWORK


class NotFoundError(RemoteServiceError):
    """The target entity no longer exists remotely."""

    kind = RemoteErrorKind.NOT_FOUND


class ConflictError(RemoteServiceError):
    """The remote state conflicts with the local change; remote wins."""

    kind = RemoteErrorKind.CONFLICT


class ValidationError(RemoteServiceError):
    """The remote rejected the payload as sent."""

    kind = RemoteErrorKind.VALIDATION


_STATUS_ERRORS = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def error_from_status(status_code: int, message: str) -> RemoteServiceError:
    """Build the tagged error for an unsuccessful HTTP status.

    Args:
        status_code: HTTP status code
        message: Error message, usually the response body

    Returns:
        RemoteServiceError subclass matching the status
    """
    error_cls = _STATUS_ERRORS.get(status_code)
    if error_cls is None:
        return RemoteServiceError(message, status_code=status_code)
    return error_cls(message, status_code=status_code)


class RetryBudgetExceededError(OfflineSyncException):
    """Raised when a mutation is dropped after its last allowed attempt."""

    def __init__(self, mutation_id: str, attempts: int, last_error: Optional[str]):
        """Initialize RetryBudgetExceededError."""
        super().__init__(
            f"Mutation {mutation_id} dropped after {attempts} attempts: {last_error}",
            "RETRY_BUDGET_EXCEEDED",
        )
        self.mutation_id = mutation_id
        self.attempts = attempts
        self.last_error = last_error


class SyncTimeoutError(OfflineSyncException):
    """Raised when the cache pull does not finish in time."""

    def __init__(self, timeout_seconds: float):
        """Initialize SyncTimeoutError."""
        super().__init__(
            f"Sync timed out after {timeout_seconds:g} seconds - connection too slow",
            "SYNC_TIMEOUT",
        )
        self.timeout_seconds = timeout_seconds
