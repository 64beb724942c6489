"""
Auth toolkit.

Declared endpoints and before/after hooks assembled into a router and a
direct-call API, plus OAuth 2.0 provider adapters for social sign-in.
"""

from .api import (
    APIError,
    ContextPatch,
    Endpoint,
    Hook,
    HookChain,
    RedirectSignal,
    RequestContext,
    Router,
    ValidationError,
    create_auth_endpoint,
    match_all,
    match_path
)
from .auth import API, Auth, AuthContext, AuthOptions, Plugin, create_auth
from .providers import (
    ExchangeError,
    FacebookProvider,
    GoogleProvider,
    MicrosoftProvider,
    OAuthProvider,
    OAuthToken,
    ProviderManager,
    ProviderOptions
)

__version__ = '1.0.0'

__all__ = [
    'API',
    'APIError',
    'Auth',
    'AuthContext',
    'AuthOptions',
    'ContextPatch',
    'Endpoint',
    'ExchangeError',
    'FacebookProvider',
    'GoogleProvider',
    'Hook',
    'HookChain',
    'MicrosoftProvider',
    'OAuthProvider',
    'OAuthToken',
    'Plugin',
    'ProviderManager',
    'ProviderOptions',
    'RedirectSignal',
    'RequestContext',
    'Router',
    'ValidationError',
    'create_auth',
    'create_auth_endpoint',
    'match_all',
    'match_path'
]
