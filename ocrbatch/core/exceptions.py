"""Exception hierarchy for the OCR batch client.

All exceptions inherit from BaseError and carry structured error information
(error code, category, details) so callers and log records can classify
failures without parsing messages.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Error categories for classification and logging."""

    CLIENT_ERROR = "client_error"
    EXTERNAL_SERVICE = "external_service"
    VALIDATION = "validation"
    LOCAL_STATE = "local_state"
    RENDERING = "rendering"


class BaseError(Exception):
    """Base exception for all OCR batch client errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        details: Additional context (dict)
        retryable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat, JSON-friendly mapping.

        Returns:
            Dict containing standardized error information
        """
        return {
            "code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class TransportFailure(BaseError):
    """Network or HTTP failure while talking to the OCR backend.

    Fatal for the whole batch during upload; swallowed and retried on the
    next tick during polling.

    Args:
        endpoint: Backend path that failed (e.g. "/upload")
        reason: Underlying error description
        http_status: HTTP status code when the server answered, else None
    """

    def __init__(self, endpoint: str, reason: str, http_status: Optional[int] = None):
        details = {"endpoint": endpoint, "reason": reason}
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(
            message=reason,
            error_code="TRANSPORT_FAILURE",
            category=ErrorCategory.EXTERNAL_SERVICE,
            details=details,
            retryable=True,
        )
        self.endpoint = endpoint
        self.http_status = http_status


class MalformedServerRecord(BaseError):
    """A result or detail record is missing fields or has unexpected ones.

    Never aborts reconciliation: offending fields are defaulted and the
    error is only logged.
    """

    def __init__(self, record_type: str, reason: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"record_type": record_type})
        super().__init__(
            message=f"Malformed {record_type}: {reason}",
            error_code="MALFORMED_SERVER_RECORD",
            category=ErrorCategory.VALIDATION,
            details=details,
        )


class CorruptPersistedState(BaseError):
    """Persisted UI snapshot could not be parsed or failed schema checks."""

    def __init__(self, reason: str, field: Optional[str] = None):
        details = {"reason": reason}
        if field:
            details["field"] = field
        super().__init__(
            message=f"Persisted UI state is corrupt: {reason}",
            error_code="CORRUPT_PERSISTED_STATE",
            category=ErrorCategory.LOCAL_STATE,
            details=details,
        )
        self.field = field


class MissingImageDimensions(BaseError):
    """Overlay render attempted before the image reported its natural size."""

    def __init__(self, width: float, height: float):
        super().__init__(
            message=f"Image natural size is not available yet ({width}x{height})",
            error_code="MISSING_IMAGE_DIMENSIONS",
            category=ErrorCategory.RENDERING,
            details={"width": width, "height": height},
            retryable=True,
        )


class DuplicateFilenameError(BaseError):
    """Two files in one submission share a name.

    Items are joined to server records by filename, so names must be unique
    within a batch.
    """

    def __init__(self, names: list[str]):
        super().__init__(
            message=f"Duplicate filenames in batch: {', '.join(sorted(names))}",
            error_code="DUPLICATE_FILENAME",
            category=ErrorCategory.CLIENT_ERROR,
            details={"names": sorted(names)},
        )


class BatchInProgressError(BaseError):
    """A new batch was submitted while the previous one is still in flight."""

    def __init__(self, batch_id: str):
        super().__init__(
            message="A batch is already being processed",
            error_code="BATCH_IN_PROGRESS",
            category=ErrorCategory.CLIENT_ERROR,
            details={"batch_id": batch_id},
        )
