"""
Facebook OAuth 2.0 provider implementation.

Sign-in through Facebook Login; profiles come from the Graph API ``/me``
endpoint with an explicit field list.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .base_provider import OAuthProvider, OAuthToken, ProviderOptions

DEFAULT_FIELDS = ('id', 'name', 'email', 'picture')


@dataclass
class FacebookOptions(ProviderOptions):
    """Facebook options; ``fields`` extends the profile fields requested from the Graph API."""

    fields: Sequence[str] = ()


class FacebookProvider(OAuthProvider):
    """
    Facebook OAuth 2.0 provider.

    Scopes are comma separated and PKCE is not used.
    """

    id = 'facebook'
    display_name = 'Facebook'
    authorization_endpoint = 'https://www.facebook.com/v21.0/dialog/oauth'
    token_endpoint = 'https://graph.facebook.com/oauth/access_token'
    userinfo_endpoint = 'https://graph.facebook.com/me'
    default_scopes = ('email', 'public_profile')
    scope_separator = ','
    supports_pkce = False
    options_class = FacebookOptions

    @property
    def fields(self) -> List[str]:
        return [*DEFAULT_FIELDS, *getattr(self.options, 'fields', ())]

    def fetch_profile(self, token: OAuthToken) -> Optional[Dict[str, Any]]:
        self.logger.debug("Retrieving Facebook user information")
        return self.fetch_json(self.userinfo_endpoint, token, params={'fields': ','.join(self.fields)})

    def map_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        picture = profile.get('picture')
        picture = picture.get('data') if isinstance(picture, dict) else None
        if not isinstance(picture, dict):
            picture = {}
        return {
            'id': profile.get('id'),
            'name': profile.get('name'),
            'email': profile.get('email'),
            'image': picture.get('url'),
            'emailVerified': profile.get('email_verified', False)
        }
