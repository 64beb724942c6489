"""
Endpoint declarations and their direct-call form.

An Endpoint binds a handler to a path and method with optional query and body
schemas. EndpointCaller wraps an endpoint with the shared hook chain so it can
be called as a plain function, with the same hooks and serialization as a
routed HTTP request.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from werkzeug.datastructures import Headers

from ..api_responses import log_api_request
from .context import InboundRequest
from .hooks import HookChain
from .pipeline import build_response, execute


logger = logging.getLogger(__name__)


class Endpoint:
    """
    A schema-typed handler bound to an HTTP method and path.

    Attributes:
        path: Logical path, in Werkzeug rule syntax (``/callback/<provider_id>``)
        methods: Accepted HTTP methods; the first one is used for direct calls
        handler: ``handler(ctx)`` returning a result or raising an error
        query: Optional query schema (pydantic model or any type pydantic accepts)
        body: Optional body schema
        metadata: Free-form flags; ``as_response`` makes direct calls return a Response
        headers: Response headers from the most recent invocation in the current thread
    """

    def __init__(self, path: str, handler: Callable, method: Union[str, Iterable[str]] = 'GET',
                 query: Any = None, body: Any = None, metadata: Optional[Dict[str, Any]] = None):
        if not path.startswith('/'):
            raise ValueError(f"Endpoint path must start with '/': {path}")
        self.path = path
        self.handler = handler
        self.methods: Tuple[str, ...] = tuple(
            m.upper() for m in ([method] if isinstance(method, str) else method)
        )
        self.query = query
        self.body = body
        self.metadata = dict(metadata or {})
        self._local = threading.local()
        self.__doc__ = handler.__doc__
        self.__name__ = getattr(handler, '__name__', path)

    @property
    def method(self) -> str:
        return self.methods[0]

    @property
    def headers(self) -> Headers:
        return getattr(self._local, 'headers', None) or Headers()

    @headers.setter
    def headers(self, value: Headers) -> None:
        self._local.headers = value

    def __repr__(self) -> str:
        return f"Endpoint(path='{self.path}', methods={list(self.methods)})"


def create_auth_endpoint(path: str, handler: Optional[Callable] = None, **options):
    """
    Declare an endpoint.

    Usable directly, ``create_auth_endpoint("/ok", handler, method="GET")``, or as
    a decorator::

        @create_auth_endpoint("/test", method="GET", query=TestQuery)
        def test(ctx):
            return ctx.json({"success": True})
    """
    if handler is not None:
        return Endpoint(path, handler, **options)

    def decorator(func: Callable) -> Endpoint:
        return Endpoint(path, func, **options)

    return decorator


class EndpointCaller:
    """Direct-call form of an endpoint, running the full hook chain."""

    def __init__(self, endpoint: Endpoint, hooks: HookChain, auth_context=None):
        self.endpoint = endpoint
        self.hooks = hooks
        self.auth_context = auth_context

    def __call__(self, query: Optional[Dict[str, Any]] = None, body: Any = None,
                 headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, Any]] = None,
                 as_response: bool = False):
        """
        Invoke the endpoint.

        Args:
            query: Query parameters
            body: Request body
            headers: Request headers
            params: Path parameters
            as_response: Return the Werkzeug Response instead of the decoded payload

        Returns:
            Decoded payload, or the Response when requested

        Raises:
            APIError: Including RedirectSignal and ValidationError, when the
                invocation ends in one
            Exception: Any unhandled error surviving the after hooks
        """
        start_time = time.time()
        inbound = InboundRequest(
            method=self.endpoint.method,
            path=self.endpoint.path,
            query=dict(query or {}),
            body=body,
            headers=Headers(headers or {}),
            params=dict(params or {})
        )

        ctx, outcome = execute(self.endpoint, inbound, self.hooks, self.auth_context)
        response = build_response(outcome, ctx)
        self.endpoint.headers = Headers(response.headers)

        log_api_request(self.endpoint.path, self.endpoint.method, response.status_code,
                        (time.time() - start_time) * 1000)

        if as_response or self.endpoint.metadata.get('as_response'):
            return response
        return outcome.unwrap()

    def __repr__(self) -> str:
        return f"EndpointCaller({self.endpoint!r})"
