"""
Standardized API response helpers for the auth toolkit.

This module provides the JSON error envelope, the error code constants and the
Werkzeug response constructors shared by the router and the direct-call API.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import pydantic
from werkzeug.wrappers import Response


logger = logging.getLogger(__name__)


class APIResponse:
    """
    Standardized API response builder.

    Success payloads are returned to clients as produced by the endpoint;
    errors are wrapped in a versioned envelope.
    """

    # Current API version
    API_VERSION = "1.0"

    @staticmethod
    def error(code: str, message: str, details: Optional[Dict[str, Any]] = None,
              status_code: int = 400) -> Dict[str, Any]:
        """
        Create a standardized error response.

        Args:
            code: Error code identifier
            message: Human-readable error message
            details: Optional error details
            status_code: HTTP status code

        Returns:
            Standardized error response dictionary
        """
        response = {
            "success": False,
            "version": APIResponse.API_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "error": {
                "code": code,
                "message": message,
                "status_code": status_code
            }
        }

        if details:
            response["error"]["details"] = details

        return response


class ProviderResponseBuilder:
    """Formats provider information for the provider list endpoint."""

    @staticmethod
    def format_provider_info(provider_info: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": provider_info.get('id'),
            "display_name": provider_info.get('display_name'),
            "type": "oauth2",
            "scopes": provider_info.get('scopes', []),
            "supports_pkce": provider_info.get('supports_pkce', False),
            "sign_in_url": provider_info.get('sign_in_url'),
            "callback_url": provider_info.get('callback_url')
        }

    @staticmethod
    def list_response(providers: List[Dict[str, Any]]) -> Dict[str, Any]:
        formatted_providers = [
            ProviderResponseBuilder.format_provider_info(provider)
            for provider in providers
        ]

        return {
            "providers": formatted_providers,
            "count": len(formatted_providers)
        }


class ErrorCodes:
    """
    Standardized error codes for consistent error handling across the API.
    """

    # Sign-in Errors
    INVALID_CALLBACK_URL = "INVALID_CALLBACK_URL"

    # Provider Errors
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"

    # Routing Errors
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # System Errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, pydantic.BaseModel):
        return obj.model_dump(mode='json')
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def dump_json(payload: Any) -> str:
    return json.dumps(payload, default=_json_default)


def create_json_response(payload: Any, status_code: int = 200,
                         headers: Optional[Dict[str, str]] = None) -> Response:
    """
    Create a Werkzeug JSON response with standard headers.

    Args:
        payload: JSON-serializable payload
        status_code: HTTP status code
        headers: Optional extra headers

    Returns:
        Werkzeug response
    """
    response = Response(dump_json(payload), status=status_code, mimetype='application/json')
    response.headers['X-API-Version'] = APIResponse.API_VERSION
    for name, value in (headers or {}).items():
        response.headers[name] = value
    return response


def create_error_response(code: str, message: str, status_code: int,
                          details: Optional[Dict[str, Any]] = None,
                          headers: Optional[Dict[str, str]] = None) -> Response:
    return create_json_response(
        APIResponse.error(code, message, details, status_code),
        status_code,
        headers
    )


def log_api_request(endpoint: str, method: str, status_code: int,
                    response_time: Optional[float] = None):
    """
    Log API request for monitoring and debugging.

    Args:
        endpoint: API endpoint path
        method: HTTP method
        status_code: Response status code
        response_time: Optional response time in milliseconds
    """
    log_data = {
        'endpoint': endpoint,
        'method': method,
        'status_code': status_code
    }

    if response_time:
        log_data['response_time_ms'] = response_time

    logger.info(f"API Request: {method} {endpoint} -> {status_code}", extra=log_data)
