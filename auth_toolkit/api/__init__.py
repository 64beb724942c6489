"""
Endpoint and hook execution engine.

This package turns declared endpoints and before/after hooks into a router
and a direct-call API with shared error, redirect and cookie semantics.
"""

from .context import ContextPatch, InboundRequest, JSONResult, RequestContext, build_context
from .endpoint import Endpoint, EndpointCaller, create_auth_endpoint
from .errors import APIError, RedirectSignal, ValidationError
from .hooks import Hook, HookChain, HookPhase, match_all, match_path
from .pipeline import Outcome, OutcomeKind, build_response, execute
from .router import Router

__all__ = [
    'APIError',
    'ContextPatch',
    'Endpoint',
    'EndpointCaller',
    'Hook',
    'HookChain',
    'HookPhase',
    'InboundRequest',
    'JSONResult',
    'Outcome',
    'OutcomeKind',
    'RedirectSignal',
    'RequestContext',
    'Router',
    'ValidationError',
    'build_context',
    'build_response',
    'create_auth_endpoint',
    'execute',
    'match_all',
    'match_path'
]
