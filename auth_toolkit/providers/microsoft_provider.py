"""
Microsoft OAuth 2.0 provider implementation.

This module implements the Microsoft identity platform provider on top of
OAuthProvider, with tenant-aware endpoints and Microsoft Graph profiles.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .base_provider import OAuthProvider, OAuthToken, ProviderOptions


@dataclass
class MicrosoftOptions(ProviderOptions):
    """
    Microsoft options.

    Attributes:
        tenant: Directory tenant (``common``, ``organizations``, ``consumers`` or a tenant id)
        prompt: Account selection prompt behaviour
        response_mode: How the authorization response is returned
    """

    tenant: str = 'common'
    prompt: str = 'select_account'
    response_mode: str = 'query'


class MicrosoftProvider(OAuthProvider):
    """
    Microsoft OAuth 2.0 provider.

    Endpoints are rewritten for the configured tenant.
    """

    id = 'microsoft'
    display_name = 'Microsoft'
    authorization_endpoint = 'https://login.microsoftonline.com/common/oauth2/v2.0/authorize'
    token_endpoint = 'https://login.microsoftonline.com/common/oauth2/v2.0/token'
    userinfo_endpoint = 'https://graph.microsoft.com/v1.0/me'
    default_scopes = ('openid', 'profile', 'email', 'User.Read', 'offline_access')
    options_class = MicrosoftOptions

    def __init__(self, options: Union[MicrosoftOptions, Dict[str, Any]]):
        super().__init__(options)

        # Update URLs with tenant if specified
        self.tenant = getattr(self.options, 'tenant', 'common')
        if self.tenant != 'common':
            self.authorization_endpoint = f'https://login.microsoftonline.com/{self.tenant}/oauth2/v2.0/authorize'
            self.token_endpoint = f'https://login.microsoftonline.com/{self.tenant}/oauth2/v2.0/token'

    def authorization_params(self) -> Dict[str, str]:
        return {
            'response_mode': getattr(self.options, 'response_mode', 'query'),
            'prompt': getattr(self.options, 'prompt', 'select_account')
        }

    def fetch_profile(self, token: OAuthToken) -> Optional[Dict[str, Any]]:
        self.logger.debug("Retrieving Microsoft user information")
        return self.fetch_json(self.userinfo_endpoint, token)

    def map_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': profile.get('id'),
            'name': profile.get('displayName'),
            'email': profile.get('mail') or profile.get('userPrincipalName'),
            'image': None,
            # Microsoft accounts are verified by default
            'emailVerified': True
        }
