"""
Shared error handling for the Candidate Details service.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    error: str
    code: str
    trace_id: Optional[str] = None
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for service errors."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        span_context = trace.get_current_span().get_span_context()
        trace_id = f"{span_context.trace_id:032x}" if span_context.is_valid else None

        return ErrorResponse(
            error=self.message,
            code=self.code,
            trace_id=trace_id,
            details=self.details
        )


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class StoreReadError(AccessLayerException):
    """Reading cached records from the store failed."""

    def __init__(self, message: str = "Failed to read cached candidate details",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_READ_ERROR", message, details)


class StoreWriteError(AccessLayerException):
    """Writing a cached record to the store failed."""

    def __init__(self, message: str = "Failed to write cached candidate details",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_WRITE_ERROR", message, details)


class ExternalServiceError(AccessLayerException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class ProviderUnavailable(ExternalServiceError):
    """The candidate data provider could not serve a batch."""

    def __init__(self, message: str = "Provider unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("candidate_provider", message, details)
        self.code = "PROVIDER_UNAVAILABLE"
