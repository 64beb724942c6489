"""
HTTP router for declared endpoints.

The Router resolves an inbound Werkzeug request to a registered endpoint under
the configured base path, executes it through the hook chain and returns a
Werkzeug response. It is a WSGI application on its own and can be mounted in a
Flask application with init_app().
"""

import logging
import time
from types import MappingProxyType
from typing import Any, Mapping, Optional

from flask import Flask, request as flask_request
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound
from werkzeug.routing import Map, Rule
from werkzeug.wrappers import Request, Response

from ..api_responses import ErrorCodes, create_error_response, log_api_request
from .context import InboundRequest
from .endpoint import Endpoint
from .hooks import HookChain
from .pipeline import build_response, execute


logger = logging.getLogger(__name__)

ROUTED_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']


class Router:
    """
    Dispatches requests to endpoints.

    The endpoint mapping and hook chain are a frozen snapshot taken at
    construction; the router never changes them while serving.
    """

    def __init__(self, endpoints: Mapping[str, Endpoint], hooks: HookChain,
                 auth_context=None, base_path: str = '/api/auth'):
        """
        Initialize the router.

        Args:
            endpoints: Endpoint key to endpoint
            hooks: Frozen hook chain
            auth_context: Shared auth context handed to every request context
            base_path: Path prefix all endpoints are mounted under
        """
        self.endpoints = MappingProxyType(dict(endpoints))
        self.hooks = hooks
        self.auth_context = auth_context
        self.base_path = '/' + base_path.strip('/') if base_path.strip('/') else ''

        self.url_map = Map(
            [
                Rule(self.base_path + endpoint.path, endpoint=key, methods=list(endpoint.methods))
                for key, endpoint in self.endpoints.items()
            ],
            strict_slashes=False
        )

        logger.info(f"Router initialized with {len(self.endpoints)} endpoints under '{self.base_path or '/'}'")

    def resolve(self, path: str, method: str):
        """
        Resolve a request path and method to an endpoint.

        Returns:
            Tuple of (endpoint, path params)

        Raises:
            NotFound: No endpoint is registered for the path
            MethodNotAllowed: The path exists but not for this method
        """
        adapter = self.url_map.bind('localhost', url_scheme='http')
        key, params = adapter.match(path, method=method)
        return self.endpoints[key], params

    def handler(self, request: Request) -> Response:
        """
        Handle a request and produce a response.

        Args:
            request: Werkzeug or Flask request

        Returns:
            Werkzeug response with buffered cookies applied
        """
        start_time = time.time()

        try:
            endpoint, params = self.resolve(request.path, request.method)
        except NotFound:
            logger.warning(f"No endpoint for {request.method} {request.path}")
            return create_error_response(ErrorCodes.NOT_FOUND, 'Not found', 404)
        except MethodNotAllowed as e:
            return create_error_response(
                ErrorCodes.METHOD_NOT_ALLOWED, 'Method not allowed', 405,
                headers={'Allow': ', '.join(e.valid_methods or [])}
            )
        except HTTPException as e:
            return create_error_response(ErrorCodes.NOT_FOUND, e.description or 'Not found', e.code or 404)

        inbound = InboundRequest.from_werkzeug(request, endpoint.path, params)
        ctx, outcome = execute(endpoint, inbound, self.hooks, self.auth_context)
        response = build_response(outcome, ctx)
        endpoint.headers = response.headers.copy()

        log_api_request(request.path, request.method, response.status_code,
                        (time.time() - start_time) * 1000)
        return response

    def __call__(self, environ, start_response):
        """WSGI entry point."""
        response = self.handler(Request(environ))
        return response(environ, start_response)

    def init_app(self, app: Flask, endpoint_name: str = 'auth_toolkit') -> None:
        """
        Mount the router in a Flask application under the base path.

        Args:
            app: Flask application
            endpoint_name: Flask endpoint name for the catch-all route
        """
        def dispatch(subpath: Optional[str] = None) -> Any:
            return self.handler(flask_request._get_current_object())

        app.add_url_rule(
            f"{self.base_path}/<path:subpath>",
            endpoint_name,
            dispatch,
            methods=ROUTED_METHODS
        )
        app.extensions['auth_toolkit_router'] = self
        logger.info(f"Mounted auth router on Flask app '{app.name}' at '{self.base_path}'")
