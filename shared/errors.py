"""
Shared error handling for the Micro Stats Exporter.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class ExporterException(Exception):
    """Base exception for the exporter."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class TransportUnavailableError(ExporterException):
    """The messaging bus could not be reached for a discovery cycle."""

    def __init__(self, message: str = "Messaging bus unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_UNAVAILABLE", message, details)


class DecodeError(ExporterException):
    """A single stats response could not be decoded."""

    def __init__(self, message: str = "Malformed stats response", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECODE_ERROR", message, details)
