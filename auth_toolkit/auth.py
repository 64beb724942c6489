"""
Auth toolkit assembly.

create_auth() collects the built-in endpoints and every plugin's endpoints and
hooks into one frozen registry, then exposes it two ways: ``auth.api`` with a
direct-call function per endpoint and ``auth.router`` for HTTP dispatch.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urljoin, urlparse

from werkzeug.wrappers import Request, Response

from .api.endpoint import Endpoint, EndpointCaller
from .api.hooks import Hook, HookChain, HookPhase
from .api.router import Router
from .api.routes import get_core_endpoints
from .providers.base_provider import ProviderOptions
from .providers.provider_manager import ProviderManager
from .state_store import MemoryStateStore, StateStore


logger = logging.getLogger(__name__)


@dataclass
class Plugin:
    """
    A bundle of endpoints and hooks.

    Attributes:
        id: Plugin identifier
        endpoints: Endpoint key to endpoint; keys become ``auth.api`` attributes
        hooks: ``{"before": [Hook, ...], "after": [Hook, ...]}``
    """

    id: str
    endpoints: Dict[str, Endpoint] = field(default_factory=dict)
    hooks: Dict[str, List[Hook]] = field(default_factory=dict)


@dataclass
class AuthOptions:
    """
    Options for create_auth().

    Attributes:
        secret: Signing secret for cookies
        base_url: Public origin of the application
        base_path: Path prefix of the auth router
        social_providers: Provider id to options (or config dictionary)
        plugins: Plugins contributing endpoints and hooks
        trusted_origins: Extra origins allowed in callback URLs
        on_sign_in: Session collaborator, called as
            ``on_sign_in(ctx, provider_id, user, data, tokens)`` after a successful callback
        state_store: Authorization state store; defaults to an in-memory store
        cookie_prefix: Prefix of cookie names
        cookie_secure: Mark cookies Secure
        state_ttl: Lifetime of a pending authorization request, in seconds
    """

    secret: str
    base_url: str = 'http://localhost:5000'
    base_path: str = '/api/auth'
    social_providers: Dict[str, Union[ProviderOptions, Dict[str, Any]]] = field(default_factory=dict)
    plugins: Sequence[Plugin] = ()
    trusted_origins: Sequence[str] = ()
    on_sign_in: Optional[Callable[..., Any]] = None
    state_store: Optional[StateStore] = None
    cookie_prefix: str = 'auth_toolkit'
    cookie_secure: bool = False
    state_ttl: int = 600

    @classmethod
    def from_config(cls, config, **overrides) -> 'AuthOptions':
        """Build options from a Config instance; keyword overrides win."""
        auth_config = config.get_auth_config()
        values = {
            'secret': auth_config['SECRET'],
            'base_url': auth_config['BASE_URL'],
            'base_path': auth_config['BASE_PATH'],
            'social_providers': {
                name: config.get_oauth_config(name) for name in config.get_enabled_providers()
            },
            'trusted_origins': auth_config['TRUSTED_ORIGINS'],
            'cookie_prefix': auth_config['COOKIE_PREFIX'],
            'cookie_secure': auth_config['COOKIE_SECURE'],
            'state_ttl': auth_config['STATE_TTL']
        }
        values.update(overrides)
        return cls(**values)


class AuthContext:
    """Shared, read-only context exposed to handlers and hooks as ``ctx.context``."""

    def __init__(self, options: AuthOptions, provider_manager: ProviderManager, state_store: StateStore):
        if not options.secret:
            raise ValueError("An auth secret is required")
        self.options = options
        self.secret = options.secret
        self.base_url = options.base_url.rstrip('/')
        self.base_path = '/' + options.base_path.strip('/') if options.base_path.strip('/') else ''
        self.provider_manager = provider_manager
        self.state_store = state_store

    @property
    def auth_url(self) -> str:
        return f"{self.base_url}{self.base_path}"

    def cookie_name(self, name: str) -> str:
        return f"{self.options.cookie_prefix}.{name}"

    def callback_uri(self, provider_id: str) -> str:
        """Redirect URI registered with a provider."""
        return f"{self.auth_url}/callback/{provider_id}"

    def absolute_url(self, url: str) -> str:
        return urljoin(self.base_url + '/', url)

    def is_trusted_url(self, url: str) -> bool:
        """True for relative URLs and URLs on the base origin or a trusted origin."""
        parsed = urlparse(url)
        if not parsed.scheme and not parsed.netloc:
            # Reject protocol-relative and backslash tricks
            return url.startswith('/') and not url.startswith('//') and '\\' not in url

        origin = f"{parsed.scheme}://{parsed.netloc}"
        trusted = {self._origin(self.base_url)}
        trusted.update(self._origin(o) for o in self.options.trusted_origins)
        return origin in trusted

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"


class API:
    """Direct-call functions, one attribute per endpoint key."""

    def __init__(self, callers: Mapping[str, EndpointCaller]):
        self._callers = MappingProxyType(dict(callers))

    def __getattr__(self, name: str) -> EndpointCaller:
        try:
            return self._callers[name]
        except KeyError:
            raise AttributeError(f"No endpoint named '{name}'")

    def __contains__(self, name: str) -> bool:
        return name in self._callers

    def __iter__(self):
        return iter(self._callers)

    def __dir__(self):
        return list(self._callers)


class Auth:
    """
    Assembled auth toolkit.

    Attributes:
        options: Options the toolkit was built from
        context: Shared AuthContext
        endpoints: Frozen endpoint registry
        hooks: Frozen hook chain
        api: Direct-call API
        router: HTTP router
    """

    def __init__(self, options: AuthOptions, context: AuthContext,
                 endpoints: Mapping[str, Endpoint], hooks: HookChain):
        self.options = options
        self.context = context
        self.endpoints = MappingProxyType(dict(endpoints))
        self.hooks = hooks
        self.api = API({
            key: EndpointCaller(endpoint, hooks, context) for key, endpoint in self.endpoints.items()
        })
        self.router = Router(self.endpoints, hooks, context, context.base_path)

    def handler(self, request: Request) -> Response:
        return self.router.handler(request)


def collect_registry(plugins: Sequence[Plugin], base_endpoints: Optional[Mapping[str, Endpoint]] = None):
    """
    Merge endpoints and hooks from the built-ins and the plugins.

    Returns:
        Tuple of (endpoint mapping, HookChain)

    Raises:
        ValueError: Two endpoints share a key or a hook phase is unknown
    """
    endpoints: Dict[str, Endpoint] = dict(base_endpoints or {})
    before: List[Hook] = []
    after: List[Hook] = []

    for plugin in plugins:
        for key, endpoint in plugin.endpoints.items():
            if key in endpoints:
                raise ValueError(f"Plugin '{plugin.id}' redefines endpoint '{key}'")
            endpoints[key] = endpoint

        for phase_name, hooks in plugin.hooks.items():
            try:
                phase = HookPhase(phase_name)
            except ValueError:
                raise ValueError(f"Plugin '{plugin.id}' declares hooks for unknown phase '{phase_name}'")
            (before if phase is HookPhase.BEFORE else after).extend(hooks)

    return endpoints, HookChain(before, after)


def create_auth(options: AuthOptions) -> Auth:
    """
    Build the auth toolkit from options.

    Registers the configured social providers, merges plugin endpoints and
    hooks with the built-in endpoints and freezes the result.
    """
    provider_manager = ProviderManager()
    for provider_id, provider_options in options.social_providers.items():
        provider_manager.register_provider(provider_id, provider_options)

    state_store = options.state_store or MemoryStateStore(ttl=options.state_ttl)
    context = AuthContext(options, provider_manager, state_store)

    endpoints, hooks = collect_registry(options.plugins, get_core_endpoints())
    auth = Auth(options, context, endpoints, hooks)

    logger.info(
        f"Auth initialized with {len(endpoints)} endpoints, {len(hooks)} hooks "
        f"and {len(provider_manager)} providers"
    )
    return auth
