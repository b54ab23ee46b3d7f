"""
Shared error handling for the blog offline cache service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class OfflineCacheException(Exception):
    """Base exception for the offline cache service."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(OfflineCacheException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NetworkError(OfflineCacheException):
    """Upstream fetch failed before a response arrived (offline, DNS, timeout)."""

    status_code = 502

    def __init__(self, url: str, message: str = "Network request failed", details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("url", url)
        super().__init__("NETWORK_ERROR", f"{url}: {message}", details)
        self.url = url


class BodyAlreadyConsumedError(OfflineCacheException):
    """A response body was read twice."""

    status_code = 500

    def __init__(self, url: str = ""):
        super().__init__(
            "BODY_ALREADY_CONSUMED",
            "Response body has already been consumed",
            {"url": url} if url else None,
        )
