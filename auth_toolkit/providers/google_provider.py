"""
Google OAuth 2.0 provider implementation.

This module implements the Google provider on top of OAuthProvider, handling
Google-specific authorization parameters and the userinfo profile.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base_provider import OAuthProvider, OAuthToken, ProviderOptions


@dataclass
class GoogleOptions(ProviderOptions):
    """
    Google options.

    Attributes:
        access_type: ``offline`` asks for a refresh token
        prompt: Consent prompt behaviour
        include_granted_scopes: Enable incremental authorization
    """

    access_type: str = 'offline'
    prompt: str = 'consent'
    include_granted_scopes: bool = True


class GoogleProvider(OAuthProvider):
    """
    Google OAuth 2.0 provider.

    Handles Google-specific authorization parameters and maps the OpenID
    userinfo profile to the canonical user shape.
    """

    id = 'google'
    display_name = 'Google'
    authorization_endpoint = 'https://accounts.google.com/o/oauth2/auth'
    token_endpoint = 'https://oauth2.googleapis.com/token'
    userinfo_endpoint = 'https://openidconnect.googleapis.com/v1/userinfo'
    default_scopes = ('openid', 'email', 'profile')
    options_class = GoogleOptions

    def authorization_params(self) -> Dict[str, str]:
        params = {
            'access_type': getattr(self.options, 'access_type', 'offline'),
            'prompt': getattr(self.options, 'prompt', 'consent')
        }

        # Add include_granted_scopes if enabled
        if getattr(self.options, 'include_granted_scopes', True):
            params['include_granted_scopes'] = 'true'

        return params

    def fetch_profile(self, token: OAuthToken) -> Optional[Dict[str, Any]]:
        self.logger.debug("Retrieving Google user information")
        return self.fetch_json(self.userinfo_endpoint, token)

    def map_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': profile.get('sub') or profile.get('id'),
            'name': profile.get('name'),
            'email': profile.get('email'),
            'image': profile.get('picture'),
            'emailVerified': bool(profile.get('email_verified', profile.get('verified_email', False)))
        }
