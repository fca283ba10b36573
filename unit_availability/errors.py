"""
Availability Engine Errors

Every error carries:
- code: stable machine-readable identifier
- status_code: HTTP status used by the API layer
- retryable: whether the same input may succeed on retry

"Fix your input" errors are never retryable; storage and deadline
errors are.
"""

from datetime import date
from typing import Any, Dict, Optional


class AvailabilityError(Exception):
    """Base class for all availability engine errors"""
    code: str = "availability_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }


class ValidationError(AvailabilityError):
    """Malformed date, unknown status or empty identifier"""
    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class InvalidRequestError(AvailabilityError):
    """Structurally valid but semantically empty or oversized bulk request"""
    code = "invalid_request"
    status_code = 400


class BulkWriteError(AvailabilityError):
    """
    A batch write was rejected as a whole.

    index/unit_id/date identify the first failing entry when known.
    Storage-caused failures are safe to retry with the entire batch.
    """
    code = "bulk_write_failed"
    status_code = 422

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        unit_id: Optional[str] = None,
        date: Optional[date] = None,
        cause: Optional[BaseException] = None,
        storage_failure: bool = False,
    ):
        super().__init__(message)
        self.index = index
        self.unit_id = unit_id
        self.date = date
        self.cause = cause
        self.storage_failure = storage_failure
        if storage_failure:
            self.retryable = True
            self.status_code = 409

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["applied"] = 0
        if self.index is not None:
            data["index"] = self.index
        if self.unit_id is not None:
            data["unit_id"] = self.unit_id
        if self.date is not None:
            data["date"] = self.date.isoformat() if hasattr(self.date, "isoformat") else str(self.date)
        return data


class ConflictError(AvailabilityError):
    """A concurrent writer changed the cell after the caller read it"""
    code = "conflict"
    status_code = 409
    retryable = True

    def __init__(self, message: str, current_version: Optional[int] = None):
        super().__init__(message)
        self.current_version = current_version

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["current_version"] = self.current_version
        return data


class StorageUnavailableError(AvailabilityError):
    """Transport or connection failure talking to the store"""
    code = "storage_unavailable"
    status_code = 503
    retryable = True


class CancelledError(AvailabilityError):
    """The caller cancelled the operation or its deadline passed before commit"""
    code = "cancelled"
    status_code = 504
    retryable = True
