"""
Custom exceptions for LogRelay service.

Provides structured error handling with appropriate HTTP status codes
and error details for API responses. Client errors (4xx) are terminal for
the request; server errors (5xx) are reported to callers with a generic
message only.
"""

from typing import Any, Dict, Optional


class LogRelayException(Exception):
    """Base exception for LogRelay service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class UnsupportedContentTypeError(LogRelayException):
    """Raised when the declared content type matches no acceptance path."""

    def __init__(self, content_type: str = "") -> None:
        super().__init__(
            message="Unsupported Content-Type",
            status_code=400,
            error_code="unsupported_content_type",
            details={"content_type": content_type},
        )


class MissingRequiredFieldError(LogRelayException):
    """Raised when tenant_id or text resolves to empty."""

    def __init__(self, fields: Optional[list] = None) -> None:
        super().__init__(
            message="Missing tenant_id or text content",
            status_code=400,
            error_code="missing_required_field",
            details={"fields": fields or []},
        )


class MalformedBodyError(LogRelayException):
    """Raised when a JSON body cannot be parsed into a submission."""

    def __init__(self, message: str = "Malformed JSON body", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="malformed_body",
            details=details,
        )


class ConfigurationMissingError(LogRelayException):
    """Raised when a required runtime target (buffer, store) is not configured."""

    def __init__(self, setting: str) -> None:
        super().__init__(
            message=f"Required setting '{setting}' is not configured",
            status_code=500,
            error_code="configuration_missing",
            details={"setting": setting},
        )


class BufferWriteError(LogRelayException):
    """Raised when writing an envelope to the buffer fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="buffer_write_failure",
            details=details,
        )


class StoreWriteError(LogRelayException):
    """Raised when upserting a processed record fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="store_write_failure",
            details=details,
        )


class WorkerProcessingError(LogRelayException):
    """Raised when a delivered message cannot be processed.

    ``state`` names the processing stage that failed.
    """

    def __init__(
        self,
        message: str,
        state: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = {"state": state}
        merged.update(details or {})
        super().__init__(
            message=message,
            status_code=500,
            error_code="worker_processing_failure",
            details=merged,
        )
        self.state = state
