"""
Per-request execution context for endpoints and hooks.

The context builder turns an inbound request into a RequestContext: the
validated query and body, the incoming headers and path parameters, cookie
helpers bound to the incoming Cookie header, and the response helpers that
handlers use to produce JSON results, redirects and cookies.
"""

import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pydantic
from itsdangerous import BadSignature, URLSafeSerializer
from werkzeug.datastructures import Headers
from werkzeug.http import dump_cookie, parse_cookie
from werkzeug.wrappers import Request

from .errors import RedirectSignal, ValidationError


logger = logging.getLogger(__name__)

# Fields a hook may override through a context patch
PATCHABLE_FIELDS = ('path', 'method', 'query', 'body', 'headers', 'params')

SIGNED_COOKIE_SALT = 'auth_toolkit.signed-cookie'


@dataclass
class InboundRequest:
    """Transport-neutral view of a request, shared by router dispatch and direct calls."""

    method: str
    path: str
    query: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    headers: Headers = field(default_factory=Headers)
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_werkzeug(cls, request: Request, path: str,
                      params: Optional[Dict[str, Any]] = None) -> 'InboundRequest':
        """
        Build an inbound request from a Werkzeug (or Flask) request.

        Args:
            request: Incoming transport request
            path: Logical endpoint path (base path stripped)
            params: Path parameters captured by the router
        """
        query = {}
        for key, values in request.args.lists():
            query[key] = values[0] if len(values) == 1 else values

        body = None
        if request.method not in ('GET', 'HEAD'):
            if request.is_json:
                body = request.get_json(silent=True)
            elif request.form:
                body = request.form.to_dict()

        return cls(
            method=request.method,
            path=path,
            query=query,
            body=body,
            headers=Headers(request.headers),
            params=dict(params or {})
        )


@dataclass
class JSONResult:
    """Result produced by ctx.json(); serialized by the router as a JSON body."""

    payload: Any
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ContextPatch:
    """
    Partial override of a RequestContext returned by a before-hook.

    Values are merged field by field; the patch wins. Keys outside
    PATCHABLE_FIELDS land in ``ctx.extra``.
    """

    values: Mapping[str, Any]

    @classmethod
    def from_hook_result(cls, result: Any) -> Optional['ContextPatch']:
        """
        Return a patch if a hook result carries a ``context`` mapping or is a ContextPatch.

        Other keys next to ``context`` are ignored.
        """
        if isinstance(result, ContextPatch):
            return result
        if isinstance(result, dict) and 'context' in result and isinstance(result['context'], Mapping):
            return cls(dict(result['context']))
        return None


@lru_cache(maxsize=None)
def _type_adapter(schema: Any) -> pydantic.TypeAdapter:
    return pydantic.TypeAdapter(schema)


def validate_input(schema: Any, raw: Any, source: str) -> Union[Any, ValidationError]:
    """
    Validate raw input against a schema.

    A missing schema passes the raw value through untouched. Returns the
    validated value or a ValidationError; never raises for invalid input.
    """
    if schema is None:
        return raw
    try:
        return _type_adapter(schema).validate_python({} if raw is None else raw)
    except pydantic.ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        logger.debug(f"Invalid {source}: {errors}")
        return ValidationError(f"Invalid {source} parameters", errors=errors, source=source)


@dataclass
class RequestContext:
    """
    Mutable state threaded through before-hooks, the endpoint handler and after-hooks.

    Attributes:
        path: Logical endpoint path
        method: HTTP method
        query: Validated query value (schema instance or dict)
        body: Validated body value
        headers: Incoming request headers
        params: Path parameters
        context: Shared auth context (options, providers, state store)
        returned: In-flight result or raised error, visible to after-hooks
        cookies: Pending Set-Cookie values as (name, header value) in set order
        response_headers: Extra headers to send with the response
        extra: Values contributed by hook context patches
    """

    path: str
    method: str
    query: Any = None
    body: Any = None
    headers: Headers = field(default_factory=Headers)
    params: Dict[str, Any] = field(default_factory=dict)
    context: Any = None
    endpoint: Any = None
    returned: Any = None
    cookies: List[Tuple[str, str]] = field(default_factory=list)
    response_headers: Headers = field(default_factory=Headers)
    extra: Dict[str, Any] = field(default_factory=dict)

    # Response helpers

    def json(self, payload: Any, status: int = 200, headers: Optional[Dict[str, str]] = None) -> JSONResult:
        return JSONResult(payload=payload, status=status, headers=dict(headers or {}))

    def redirect(self, url: str) -> RedirectSignal:
        """Build a redirect signal; handlers ``raise ctx.redirect(url)``."""
        return RedirectSignal(url)

    def set_header(self, name: str, value: str) -> None:
        self.response_headers.set(name, value)

    # Cookies

    def set_cookie(self, name: str, value: str, max_age: Optional[int] = None,
                   path: str = '/', domain: Optional[str] = None, secure: bool = False,
                   httponly: bool = True, samesite: Optional[str] = 'Lax') -> None:
        """Buffer a cookie; the router flushes buffered cookies onto the final response."""
        header = dump_cookie(
            name, value,
            max_age=max_age,
            path=path,
            domain=domain,
            secure=secure,
            httponly=httponly,
            samesite=samesite
        )
        self.cookies.append((name, header))

    def get_cookie(self, name: str) -> Optional[str]:
        """Read a cookie from the incoming Cookie header."""
        cookie_header = self.headers.get('Cookie', '')
        if not cookie_header:
            return None
        return parse_cookie(cookie_header).get(name)

    def set_signed_cookie(self, name: str, value: str, **attrs) -> None:
        self.set_cookie(name, self._serializer().dumps(value), **attrs)

    def get_signed_cookie(self, name: str) -> Optional[str]:
        """Read a signed cookie; a missing cookie or a bad signature yields None."""
        raw = self.get_cookie(name)
        if raw is None:
            return None
        try:
            return self._serializer().loads(raw)
        except BadSignature:
            logger.warning(f"Rejected cookie '{name}' with invalid signature")
            return None

    def _serializer(self) -> URLSafeSerializer:
        secret = getattr(self.context, 'secret', None)
        if not secret:
            raise RuntimeError("Signed cookies require an auth secret")
        return URLSafeSerializer(secret, salt=SIGNED_COOKIE_SALT)

    # Hook support

    def apply_patch(self, patch: ContextPatch) -> None:
        """Merge a hook's context patch; query and body go through the endpoint schema."""
        for key, value in patch.values.items():
            if key in ('query', 'body') and self.endpoint is not None:
                schema = self.endpoint.query if key == 'query' else self.endpoint.body
                value = validate_input(schema, value, key)
                if isinstance(value, ValidationError):
                    raise value
            elif key == 'headers':
                value = Headers(value)
            if key in PATCHABLE_FIELDS:
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def snapshot(self) -> 'RequestContext':
        """Shallow copy used to evaluate after-hook matchers against the inbound state."""
        return replace(self)


def build_context(inbound: InboundRequest, endpoint, auth_context=None) -> Union[RequestContext, ValidationError]:
    """
    Build the execution context for an endpoint.

    Args:
        inbound: Transport-neutral request
        endpoint: Endpoint whose schemas validate the input
        auth_context: Shared auth context exposed as ``ctx.context``

    Returns:
        RequestContext, or ValidationError when query or body fail their schema
    """
    query = validate_input(endpoint.query, inbound.query, 'query')
    if isinstance(query, ValidationError):
        return query

    body = validate_input(endpoint.body, inbound.body, 'body')
    if isinstance(body, ValidationError):
        return body

    return RequestContext(
        path=endpoint.path,
        method=inbound.method,
        query=query,
        body=body,
        headers=Headers(inbound.headers),
        params=dict(inbound.params),
        context=auth_context,
        endpoint=endpoint
    )
