"""
Custom exceptions for the offline store.

Local store and schema errors are raised synchronously to the caller.
Sync errors are raised by the sync coordinator and, for background
syncs, recorded on the database instead of being raised.
"""


class OfflineStoreError(Exception):
    """Base exception for all offline store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(OfflineStoreError):
    """Raised when a document fails schema validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class ConflictError(OfflineStoreError):
    """Raised when inserting a document whose id already exists."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(
            f"Record already exists in {kind}: {record_id}",
            {"kind": kind, "record_id": record_id},
        )
        self.kind = kind
        self.record_id = record_id


class RecordNotFoundError(OfflineStoreError):
    """Raised when replacing a document that does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(
            f"Record not found in {kind}: {record_id}",
            {"kind": kind, "record_id": record_id},
        )
        self.kind = kind
        self.record_id = record_id


class UnknownKindError(OfflineStoreError):
    """Raised when a record kind has no registered schema."""

    def __init__(self, kind: str):
        super().__init__(f"Unknown record kind: {kind}", {"kind": kind})
        self.kind = kind


class StorageIOError(OfflineStoreError):
    """Raised when a storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class StoreClosedError(OfflineStoreError):
    """Raised when the local store is used before open() or after close()."""

    def __init__(self, operation: str):
        super().__init__(f"Local store is not open: {operation}", {"operation": operation})
        self.operation = operation


class SyncError(OfflineStoreError):
    """Raised when pushing local state to the remote store fails."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {}
        if status is not None:
            details["status"] = status
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.status = status
        self.cause = cause
