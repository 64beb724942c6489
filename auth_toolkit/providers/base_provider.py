"""
Base provider interface for OAuth 2.0 providers.

This module defines the generic authorization-code adapter that every identity
provider builds on: authorization URL construction, authorization code
validation (token exchange), token refresh and profile retrieval with
normalization to the canonical user shape.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import urlencode, urlparse
import logging
import re

import requests
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge
from requests.exceptions import RequestException

from .profile import normalize_profile


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ProviderConfigurationError(Exception):
    """Raised when provider configuration is invalid."""
    pass


class ExchangeError(Exception):
    """
    Token or profile exchange with a provider failed.

    Returned, not raised, by the adapter operations so callers decide how to
    fail the login; it is still an exception so callers may raise it.
    """

    def __init__(self, provider_id: str, message: str, status_code: Optional[int] = None,
                 error: Optional[str] = None):
        super().__init__(message)
        self.provider_id = provider_id
        self.message = message
        self.status_code = status_code
        self.error = error

    def __repr__(self) -> str:
        return f"ExchangeError(provider_id='{self.provider_id}', message='{self.message}', status_code={self.status_code})"


@dataclass
class OAuthToken:
    """Tokens returned by a provider's token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    token_type: str = 'Bearer'
    scopes: List[str] = field(default_factory=list)
    id_token: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token_response(cls, data: Dict[str, Any]) -> 'OAuthToken':
        """
        Build a token from a token endpoint JSON response.

        A non-numeric or non-positive ``expires_in`` leaves ``expires_at`` unset.
        """
        expires_at = None
        expires_in = data.get('expires_in')
        if expires_in is not None:
            try:
                seconds = int(expires_in)
                if seconds > 0:
                    expires_at = datetime.now(timezone.utc) + timedelta(seconds=seconds)
            except (ValueError, TypeError):
                logger.warning(f"Non-numeric expires_in value in token response: {expires_in}")

        scope = data.get('scope') or ''
        scopes = [s for s in re.split(r'[\s,]+', scope) if s] if isinstance(scope, str) else list(scope)

        return cls(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token'),
            expires_at=expires_at,
            token_type=data.get('token_type', 'Bearer'),
            scopes=scopes,
            id_token=data.get('id_token'),
            raw=dict(data)
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and datetime.now(timezone.utc) >= self.expires_at


@dataclass
class ProviderOptions:
    """
    Caller-supplied provider options.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        redirect_uri: Overrides the redirect URI sent during code validation
        scope: Extra scopes appended after the provider defaults
        get_user_info: Replaces the provider's profile retrieval entirely
        map_profile_to_user: Receives the raw profile; returned fields win over the defaults
        timeout: Timeout in seconds for outbound provider calls
    """

    client_id: str
    client_secret: str
    redirect_uri: Optional[str] = None
    scope: Sequence[str] = ()
    get_user_info: Optional[Callable[[OAuthToken], Optional[Dict[str, Any]]]] = None
    map_profile_to_user: Optional[Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]] = None
    timeout: int = DEFAULT_TIMEOUT

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ProviderOptions':
        """
        Build options from a configuration dictionary, ignoring unknown keys.

        Raises:
            ProviderConfigurationError: If required configuration is missing or invalid
        """
        missing_fields = [name for name in ('client_id', 'client_secret') if not config.get(name)]
        if missing_fields:
            raise ProviderConfigurationError(
                f"Missing required provider configuration: {', '.join(missing_fields)}"
            )

        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in config.items() if key in known}
        if isinstance(values.get('scope'), str):
            values['scope'] = values['scope'].split()
        return cls(**values)


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier (RFC 7636: 43-128 unreserved characters)."""
    return generate_token(64)


def create_authorization_url(authorization_endpoint: str, client_id: str, redirect_uri: str,
                             scopes: Sequence[str], state: str, scope_separator: str = ' ',
                             code_verifier: Optional[str] = None,
                             extra_params: Optional[Dict[str, str]] = None) -> str:
    """
    Build an authorization endpoint URL.

    Parameters are emitted in a fixed order so identical inputs give identical URLs.
    """
    params = {
        'response_type': 'code',
        'client_id': client_id,
        'redirect_uri': redirect_uri,
        'scope': scope_separator.join(scopes),
        'state': state
    }

    if code_verifier:
        params['code_challenge'] = create_s256_code_challenge(code_verifier)
        params['code_challenge_method'] = 'S256'

    if extra_params:
        params.update(extra_params)

    separator = '&' if urlparse(authorization_endpoint).query else '?'
    return f"{authorization_endpoint}{separator}{urlencode(params)}"


def _safe_json(response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


def _describe_error(data: Any, status_code: int):
    """Pull an (error code, message) pair out of a provider error payload."""
    if not isinstance(data, dict):
        return None, f'HTTP {status_code}'

    error = data.get('error')
    if isinstance(error, dict):
        # Graph API style: {"error": {"message": ..., "type": ..., "code": ...}}
        return error.get('type'), error.get('message') or f'HTTP {status_code}'

    return error, data.get('error_description') or error or f'HTTP {status_code}'


def request_tokens(provider_id: str, token_endpoint: str, data: Dict[str, str],
                   timeout: int = DEFAULT_TIMEOUT) -> Union[OAuthToken, ExchangeError]:
    """
    POST a grant to a token endpoint.

    Transport failures, non-2xx responses, non-JSON bodies and responses without
    an access token are all returned as ExchangeError.
    """
    headers = {
        'Content-Type': 'application/x-www-form-urlencoded',
        'Accept': 'application/json'
    }

    try:
        response = requests.post(token_endpoint, data=data, headers=headers, timeout=timeout)
    except RequestException as e:
        logger.error(f"Network error during {provider_id} token request: {e}", exc_info=True)
        return ExchangeError(provider_id, f"Network request failed: {e}")

    payload = _safe_json(response)

    if not 200 <= response.status_code < 300:
        error, message = _describe_error(payload, response.status_code)
        logger.error(f"{provider_id} token request failed: {response.status_code} - {message}")
        return ExchangeError(provider_id, f"Token request failed: {message}",
                             status_code=response.status_code, error=error)

    if not isinstance(payload, dict) or not payload.get('access_token'):
        logger.error(f"Missing access_token in response from {provider_id}")
        return ExchangeError(provider_id, "Invalid token response", status_code=response.status_code)

    return OAuthToken.from_token_response(payload)


def validate_authorization_code(provider_id: str, token_endpoint: str, code: str, redirect_uri: str,
                                client_id: str, client_secret: str, code_verifier: Optional[str] = None,
                                timeout: int = DEFAULT_TIMEOUT) -> Union[OAuthToken, ExchangeError]:
    """Exchange an authorization code for tokens."""
    data = {
        'grant_type': 'authorization_code',
        'code': code,
        'redirect_uri': redirect_uri,
        'client_id': client_id,
        'client_secret': client_secret
    }
    if code_verifier:
        data['code_verifier'] = code_verifier

    return request_tokens(provider_id, token_endpoint, data, timeout)


class OAuthProvider(ABC):
    """
    Abstract base class for OAuth 2.0 providers.

    Subclasses set the class attributes describing the provider and implement
    fetch_profile() and map_profile(); the flow operations are shared.
    """

    id: str = ''
    display_name: str = ''
    authorization_endpoint: str = ''
    token_endpoint: str = ''
    userinfo_endpoint: str = ''
    default_scopes: Sequence[str] = ()
    scope_separator: str = ' '
    supports_pkce: bool = True
    options_class = ProviderOptions

    def __init__(self, options: Union[ProviderOptions, Dict[str, Any]]):
        """
        Initialize the OAuth provider.

        Args:
            options: Provider options, or a configuration dictionary

        Raises:
            ProviderConfigurationError: If configuration is invalid
        """
        if isinstance(options, dict):
            options = self.options_class.from_config(options)
        self.options = options
        self.logger = logging.getLogger(f"{__name__}.{self.id}")

        self._validate_config()

        self.logger.info(f"Initialized {self.display_name} OAuth provider")

    def _validate_config(self) -> None:
        """
        Validate provider configuration.

        Raises:
            ProviderConfigurationError: If required configuration is missing or invalid
        """
        if not self.id:
            raise ProviderConfigurationError(f"{self.__class__.__name__} does not declare a provider id")

        if not isinstance(self.options.client_id, str) or not self.options.client_id:
            raise ProviderConfigurationError(f"client_id must be a non-empty string for {self.id} provider")

        if not isinstance(self.options.client_secret, str) or not self.options.client_secret:
            raise ProviderConfigurationError(f"client_secret must be a non-empty string for {self.id} provider")

        for name in ('authorization_endpoint', 'token_endpoint'):
            url = getattr(self, name)
            if not self._is_valid_url(url):
                raise ProviderConfigurationError(f"Invalid {name} for {self.id} provider: {url}")

    def _is_valid_url(self, url: str) -> bool:
        try:
            result = urlparse(url)
            return all([result.scheme, result.netloc])
        except (ValueError, AttributeError):
            return False

    def generate_state(self) -> str:
        """
        Generate a secure state parameter for CSRF protection.

        Returns:
            Cryptographically secure state parameter
        """
        return generate_token(32)

    def resolve_scopes(self, scopes: Optional[Sequence[str]] = None) -> List[str]:
        """
        Scope list for an authorization request.

        Provider defaults come first, then the configured ``scope`` option, then
        the scopes requested for this call. Duplicates are kept.
        """
        resolved = list(self.default_scopes)
        resolved.extend(self.options.scope or ())
        resolved.extend(scopes or ())
        return resolved

    def authorization_params(self) -> Dict[str, str]:
        """Provider-specific authorization parameters; override in subclasses."""
        return {}

    def create_authorization_url(self, state: str, redirect_uri: str,
                                 scopes: Optional[Sequence[str]] = None,
                                 code_verifier: Optional[str] = None) -> str:
        """
        Generate the authorization URL the user is redirected to.

        Args:
            state: Opaque CSRF state value
            redirect_uri: Callback URL registered with the provider
            scopes: Scopes requested in addition to the defaults
            code_verifier: PKCE verifier; ignored by providers without PKCE support

        Returns:
            Authorization URL
        """
        url = create_authorization_url(
            self.authorization_endpoint,
            client_id=self.options.client_id,
            redirect_uri=redirect_uri,
            scopes=self.resolve_scopes(scopes),
            state=state,
            scope_separator=self.scope_separator,
            code_verifier=code_verifier if self.supports_pkce else None,
            extra_params=self.authorization_params()
        )
        self.logger.debug(f"Generated {self.display_name} authorization URL")
        return url

    def validate_authorization_code(self, code: str, redirect_uri: str,
                                    code_verifier: Optional[str] = None) -> Union[OAuthToken, ExchangeError]:
        """
        Exchange an authorization code for tokens.

        The configured ``redirect_uri`` option wins over the one passed in.

        Returns:
            OAuthToken, or ExchangeError when the exchange fails
        """
        self.logger.debug(f"Exchanging authorization code for {self.display_name} tokens")
        result = validate_authorization_code(
            self.id,
            self.token_endpoint,
            code=code,
            redirect_uri=self.options.redirect_uri or redirect_uri,
            client_id=self.options.client_id,
            client_secret=self.options.client_secret,
            code_verifier=code_verifier if self.supports_pkce else None,
            timeout=self.options.timeout
        )
        if isinstance(result, OAuthToken):
            self.logger.info(f"Successfully exchanged code for {self.display_name} tokens")
        return result

    def refresh_access_token(self, refresh_token: str) -> Union[OAuthToken, ExchangeError]:
        """
        Refresh an access token.

        The original refresh token is kept when the provider does not rotate it.
        """
        result = request_tokens(self.id, self.token_endpoint, {
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': self.options.client_id,
            'client_secret': self.options.client_secret
        }, self.options.timeout)

        if isinstance(result, OAuthToken) and not result.refresh_token:
            result.refresh_token = refresh_token
        return result

    def get_user_info(self, token: OAuthToken) -> Optional[Dict[str, Any]]:
        """
        Retrieve and normalize the user profile.

        Returns:
            ``{"user": normalized profile, "data": raw profile}``, or None when
            the profile could not be fetched
        """
        if self.options.get_user_info:
            return self.options.get_user_info(token)

        profile = self.fetch_profile(token)
        if profile is None:
            return None

        user = normalize_profile(self.map_profile(profile), profile, self.options.map_profile_to_user)
        return {'user': user, 'data': profile}

    def fetch_json(self, url: str, token: OAuthToken,
                   params: Optional[Dict[str, str]] = None) -> Optional[Dict[str, Any]]:
        """GET a JSON resource with the bearer token; failures yield None."""
        headers = {
            'Authorization': f'Bearer {token.access_token}',
            'Accept': 'application/json'
        }

        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.options.timeout)
        except RequestException as e:
            self.logger.error(f"Network error during {self.display_name} user info retrieval: {e}", exc_info=True)
            return None

        if response.status_code != 200:
            self.logger.error(f"{self.display_name} user info request failed: HTTP {response.status_code}")
            return None

        data = _safe_json(response)
        if not isinstance(data, dict):
            self.logger.error(f"{self.display_name} user info response is not a JSON object")
            return None
        return data

    @abstractmethod
    def fetch_profile(self, token: OAuthToken) -> Optional[Dict[str, Any]]:
        """Fetch the raw provider profile; return None on failure."""

    @abstractmethod
    def map_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        """Default mapping of the raw profile to the canonical user shape."""

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get provider information for API responses.

        Returns:
            Provider information dictionary
        """
        return {
            'id': self.id,
            'display_name': self.display_name,
            'type': 'oauth2',
            'scopes': self.resolve_scopes(),
            'supports_pkce': self.supports_pkce,
            'authorization_endpoint': self.authorization_endpoint,
            'token_endpoint': self.token_endpoint,
            'userinfo_endpoint': self.userinfo_endpoint
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id='{self.id}', display_name='{self.display_name}')"

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(id='{self.id}', "
                f"display_name='{self.display_name}', scopes={self.resolve_scopes()})")
