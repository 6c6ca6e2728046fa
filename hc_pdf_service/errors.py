"""
Error taxonomy for the render service.

InvalidRequest and RenderFailure are translated into JSON error responses
by the app's exception handlers. ConfigFailure is raised during startup and
stops the service before it accepts requests.
"""

from typing import Any, Dict, Optional


class PdfServiceError(Exception):
    """Base class for all service errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON error body."""
        return {"error": self.message}


class InvalidRequest(PdfServiceError):
    """A required field is missing or empty. Always client-fixable."""

    status_code = 400


class RenderFailure(PdfServiceError):
    """
    Rendering failed inside a leased page scope.

    Carries the triggering url or html so it can be echoed back for
    diagnostics.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        html: Optional[str] = None,
    ):
        super().__init__(message)
        self.url = url
        self.html = html

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.url is not None:
            body["url"] = self.url
        if self.html is not None:
            body["html"] = self.html
        return body


class ConfigFailure(PdfServiceError):
    """Configuration or preset source is unusable. Fatal at startup."""


class Unauthorized(PdfServiceError):
    """Bearer token missing or not accepted."""

    status_code = 401


class PayloadTooLarge(PdfServiceError):
    """Request body exceeds the configured limit."""

    status_code = 413
