"""
Endpoint execution pipeline.

Runs one endpoint invocation end to end: build the context, run the before
hooks, the handler and the after hooks, then classify what survived into an
Outcome. Both the router and the direct-call API go through execute(), so an
endpoint behaves the same whichever way it is invoked.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from werkzeug.wrappers import Response

from ..api_responses import ErrorCodes, create_error_response, create_json_response
from .context import InboundRequest, JSONResult, RequestContext, build_context
from .errors import APIError, RedirectSignal, ValidationError
from .hooks import NOT_SHORT_CIRCUITED, HookChain


logger = logging.getLogger(__name__)

UNHANDLED_ERROR_MESSAGE = 'An unexpected error occurred'


class OutcomeKind(Enum):
    """Closed set of results an invocation can end in."""
    JSON = "json"
    REDIRECT = "redirect"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    """
    Tagged result of an endpoint invocation.

    Attributes:
        kind: Variant tag
        value: JSON payload, or the surviving exception for REDIRECT and ERROR
        status_code: HTTP status to send
        headers: Headers contributed by the result itself
    """

    kind: OutcomeKind
    value: Any
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_returned(cls, returned: Any) -> 'Outcome':
        """Classify the value left in ``ctx.returned`` after the after phase."""
        if isinstance(returned, RedirectSignal):
            return cls(OutcomeKind.REDIRECT, returned, returned.status_code, dict(returned.headers))
        if isinstance(returned, APIError):
            if 300 <= returned.status_code < 400 and 'Location' in returned.headers:
                return cls(OutcomeKind.REDIRECT, returned, returned.status_code, dict(returned.headers))
            return cls(OutcomeKind.ERROR, returned, returned.status_code, dict(returned.headers))
        if isinstance(returned, BaseException):
            return cls(OutcomeKind.ERROR, returned, 500)
        if isinstance(returned, JSONResult):
            return cls(OutcomeKind.JSON, returned.payload, returned.status, dict(returned.headers))
        return cls(OutcomeKind.JSON, returned)

    @property
    def is_error(self) -> bool:
        return self.kind is not OutcomeKind.JSON

    def unwrap(self) -> Any:
        """Return the payload or raise the surviving error (direct-call contract)."""
        if self.is_error:
            raise self.value
        return self.value


def execute(endpoint, inbound: InboundRequest, hooks: HookChain,
            auth_context=None) -> Tuple[Optional[RequestContext], Outcome]:
    """
    Execute an endpoint through the hook chain.

    Validation failures short-circuit before any hook runs and come back with
    no context. Anything raised by before-hooks or the handler is captured in
    ``ctx.returned`` so that after-hooks can observe or replace it.

    Args:
        endpoint: Endpoint to invoke
        inbound: Transport-neutral request
        hooks: Frozen hook chain
        auth_context: Shared auth context

    Returns:
        Tuple of (context or None, outcome)
    """
    ctx = build_context(inbound, endpoint, auth_context)
    if isinstance(ctx, ValidationError):
        return None, Outcome.from_returned(ctx)

    inbound_ctx = ctx.snapshot()

    try:
        result = hooks.run_before(ctx)
        if result is NOT_SHORT_CIRCUITED:
            result = endpoint.handler(ctx)
        ctx.returned = result
    except Exception as e:
        ctx.returned = e

    hooks.run_after(ctx, inbound_ctx)

    return ctx, Outcome.from_returned(ctx.returned)


def build_response(outcome: Outcome, ctx: Optional[RequestContext] = None) -> Response:
    """
    Serialize an outcome to a Werkzeug response and flush buffered cookies.

    Unhandled errors are logged and answered with a generic 500 body; their
    message never reaches the client.
    """
    if outcome.kind is OutcomeKind.JSON:
        response = create_json_response(outcome.value, outcome.status_code, outcome.headers)
    elif outcome.kind is OutcomeKind.REDIRECT:
        response = Response(status=outcome.status_code, headers=outcome.headers)
    elif isinstance(outcome.value, APIError):
        error = outcome.value
        response = create_error_response(
            error.code, error.message, error.status_code, error.details, outcome.headers
        )
    else:
        path = ctx.path if ctx is not None else 'unknown'
        logger.error(f"Unhandled error in {path}: {outcome.value}", exc_info=outcome.value)
        response = create_error_response(ErrorCodes.INTERNAL_ERROR, UNHANDLED_ERROR_MESSAGE, 500)

    if ctx is not None:
        for name, value in ctx.response_headers.items():
            response.headers[name] = value
        for _name, cookie in ctx.cookies:
            response.headers.add('Set-Cookie', cookie)

    return response
