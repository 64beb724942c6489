"""
OAuth provider system for the auth toolkit.

This package provides the generic OAuth 2.0 authorization-code adapter, the
built-in identity providers and the registry that holds configured providers.
"""

from .base_provider import (
    ExchangeError,
    OAuthProvider,
    OAuthToken,
    ProviderConfigurationError,
    ProviderOptions,
    create_authorization_url,
    generate_code_verifier,
    validate_authorization_code
)
from .facebook_provider import FacebookOptions, FacebookProvider
from .google_provider import GoogleOptions, GoogleProvider
from .microsoft_provider import MicrosoftOptions, MicrosoftProvider
from .profile import normalize_profile
from .provider_manager import ProviderManager, ProviderManagerError

__all__ = [
    'ExchangeError',
    'FacebookOptions',
    'FacebookProvider',
    'GoogleOptions',
    'GoogleProvider',
    'MicrosoftOptions',
    'MicrosoftProvider',
    'OAuthProvider',
    'OAuthToken',
    'ProviderConfigurationError',
    'ProviderManager',
    'ProviderManagerError',
    'ProviderOptions',
    'create_authorization_url',
    'generate_code_verifier',
    'normalize_profile',
    'validate_authorization_code'
]
