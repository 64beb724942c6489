"""
Error types raised and handled by the endpoint pipeline.

This module defines the typed errors that endpoints and hooks raise to control
the response: APIError for intentional failures, RedirectSignal for redirects
and ValidationError for schema failures reported by the context builder.
"""

from http import HTTPStatus
from typing import Any, Dict, Optional, Union

from werkzeug.datastructures import Headers


def resolve_status(status: Union[str, int, HTTPStatus]) -> HTTPStatus:
    """
    Resolve a status name ("BAD_REQUEST") or code (400) to an HTTPStatus.

    Raises:
        ValueError: If the status is unknown
    """
    if isinstance(status, HTTPStatus):
        return status
    if isinstance(status, int):
        return HTTPStatus(status)
    try:
        return HTTPStatus[str(status).upper()]
    except KeyError:
        raise ValueError(f"Unknown HTTP status: {status}")


class APIError(Exception):
    """
    Intentional error carrying an HTTP status and a user-visible message.

    The status may be given by name, e.g. APIError("BAD_REQUEST", message="..."),
    or by numeric code. ``status`` keeps the name and ``status_code`` the number.
    """

    def __init__(self, status: Union[str, int, HTTPStatus] = "INTERNAL_SERVER_ERROR",
                 message: Optional[str] = None, code: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        http_status = resolve_status(status)
        self.status = http_status.name
        self.status_code = int(http_status)
        self.message = message if message is not None else http_status.phrase
        self.code = code or self.status
        self.headers = Headers(headers or {})
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        """Return the error as a JSON-serializable dictionary."""
        body = {'code': self.code, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status='{self.status}', message='{self.message}')"


class RedirectSignal(APIError):
    """Raised by a handler to redirect the client; status FOUND with a Location header."""

    def __init__(self, location: str, headers: Optional[Dict[str, str]] = None):
        merged = dict(headers or {})
        merged['Location'] = location
        super().__init__("FOUND", message=f"Redirecting to {location}", code="REDIRECT", headers=merged)
        self.location = location


class ValidationError(APIError):
    """Raised (or returned by the context builder) when input fails its schema."""

    def __init__(self, message: str, errors: Optional[list] = None, source: Optional[str] = None):
        details = {}
        if errors:
            details['errors'] = errors
        if source:
            details['source'] = source
        super().__init__("BAD_REQUEST", message=message, code="VALIDATION_ERROR", details=details or None)
        self.errors = errors or []
        self.source = source
