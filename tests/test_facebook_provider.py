"""
Unit tests for the Facebook OAuth provider.

This module tests authorization URL construction, authorization code
validation against a mocked token endpoint and Graph API profile
normalization, including caller-supplied profile mapping.
"""

import unittest
from unittest.mock import patch, Mock
from urllib.parse import parse_qs, urlparse
import sys
import os

from requests.exceptions import ConnectionError, Timeout

# Add the project root to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from auth_toolkit.providers.base_provider import (
    ExchangeError,
    OAuthToken,
    ProviderConfigurationError
)
from auth_toolkit.providers.facebook_provider import FacebookOptions, FacebookProvider


RAW_PROFILE = {
    'id': '1',
    'name': 'N',
    'email': 'e',
    'email_verified': True,
    'picture': {'data': {'url': 'u'}}
}

REDIRECT_URI = 'http://localhost:5000/api/auth/callback/facebook'


def mock_response(status_code=200, json_data=None):
    response = Mock()
    response.status_code = status_code
    if json_data is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = json_data
    return response


class TestFacebookProvider(unittest.TestCase):
    """Test cases for FacebookProvider."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.provider = FacebookProvider(FacebookOptions(
            client_id='test_client_id',
            client_secret='test_client_secret'
        ))
        self.token = OAuthToken(access_token='test_access_token')

    def test_provider_initialization(self):
        self.assertEqual(self.provider.id, 'facebook')
        self.assertEqual(self.provider.display_name, 'Facebook')
        self.assertFalse(self.provider.supports_pkce)
        self.assertEqual(self.provider.resolve_scopes(), ['email', 'public_profile'])

    def test_provider_from_config_dictionary(self):
        provider = FacebookProvider({
            'client_id': 'id',
            'client_secret': 'secret',
            'scope': 'user_birthday',
            'enabled': True
        })

        self.assertIsInstance(provider.options, FacebookOptions)
        self.assertEqual(provider.resolve_scopes(), ['email', 'public_profile', 'user_birthday'])

    def test_missing_credentials(self):
        with self.assertRaises(ProviderConfigurationError):
            FacebookProvider({'client_id': 'id'})

        with self.assertRaises(ProviderConfigurationError):
            FacebookProvider(FacebookOptions(client_id='', client_secret='secret'))

    # Authorization URL

    def test_create_authorization_url(self):
        url = self.provider.create_authorization_url(state='abc', redirect_uri=REDIRECT_URI)

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        self.assertEqual(f"{parsed.scheme}://{parsed.netloc}{parsed.path}", FacebookProvider.authorization_endpoint)
        self.assertEqual(params['response_type'], ['code'])
        self.assertEqual(params['client_id'], ['test_client_id'])
        self.assertEqual(params['redirect_uri'], [REDIRECT_URI])
        self.assertEqual(params['state'], ['abc'])
        self.assertEqual(params['scope'], ['email,public_profile'])
        self.assertNotIn('code_challenge', params)

    def test_authorization_url_scopes_keep_duplicates(self):
        """Test requested scopes are appended after the defaults without deduplication."""
        url = self.provider.create_authorization_url(
            state='abc', redirect_uri=REDIRECT_URI, scopes=['email', 'user_friends']
        )

        params = parse_qs(urlparse(url).query)
        self.assertEqual(params['scope'], ['email,public_profile,email,user_friends'])

    def test_authorization_url_is_deterministic_except_state(self):
        """Test identical inputs give identical URLs apart from the state value."""
        first = self.provider.create_authorization_url(
            state=self.provider.generate_state(), redirect_uri=REDIRECT_URI, scopes=['user_friends']
        )
        second = self.provider.create_authorization_url(
            state=self.provider.generate_state(), redirect_uri=REDIRECT_URI, scopes=['user_friends']
        )

        first_params = parse_qs(urlparse(first).query)
        second_params = parse_qs(urlparse(second).query)
        self.assertNotEqual(first_params.pop('state'), second_params.pop('state'))
        self.assertEqual(first_params, second_params)

        same_state = self.provider.create_authorization_url(
            state='fixed', redirect_uri=REDIRECT_URI, scopes=['user_friends']
        )
        self.assertEqual(same_state, self.provider.create_authorization_url(
            state='fixed', redirect_uri=REDIRECT_URI, scopes=['user_friends']
        ))

    def test_authorization_url_ignores_code_verifier(self):
        url = self.provider.create_authorization_url(
            state='abc', redirect_uri=REDIRECT_URI, code_verifier='v' * 64
        )
        self.assertNotIn('code_challenge', parse_qs(urlparse(url).query))

    # Authorization code validation

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_validate_authorization_code_success(self, mock_post):
        mock_post.return_value = mock_response(200, {
            'access_token': 'new_access_token',
            'token_type': 'bearer',
            'expires_in': 5183944
        })

        token = self.provider.validate_authorization_code('test_code', REDIRECT_URI)

        self.assertIsInstance(token, OAuthToken)
        self.assertEqual(token.access_token, 'new_access_token')
        self.assertIsNone(token.refresh_token)
        self.assertIsNotNone(token.expires_at)
        self.assertFalse(token.is_expired)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], FacebookProvider.token_endpoint)
        self.assertEqual(kwargs['data']['code'], 'test_code')
        self.assertEqual(kwargs['data']['redirect_uri'], REDIRECT_URI)
        self.assertEqual(kwargs['data']['client_id'], 'test_client_id')
        self.assertEqual(kwargs['data']['client_secret'], 'test_client_secret')
        self.assertEqual(kwargs['data']['grant_type'], 'authorization_code')
        self.assertNotIn('code_verifier', kwargs['data'])

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_validate_authorization_code_configured_redirect_uri_wins(self, mock_post):
        provider = FacebookProvider(FacebookOptions(
            client_id='id', client_secret='secret', redirect_uri='https://app.example.com/cb'
        ))
        mock_post.return_value = mock_response(200, {'access_token': 'token'})

        provider.validate_authorization_code('test_code', REDIRECT_URI)

        self.assertEqual(mock_post.call_args[1]['data']['redirect_uri'], 'https://app.example.com/cb')

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_validate_authorization_code_provider_error(self, mock_post):
        """Test a non-2xx token response becomes an ExchangeError."""
        mock_post.return_value = mock_response(400, {
            'error': {
                'message': 'This authorization code has expired.',
                'type': 'OAuthException',
                'code': 100
            }
        })

        result = self.provider.validate_authorization_code('expired_code', REDIRECT_URI)

        self.assertIsInstance(result, ExchangeError)
        self.assertEqual(result.provider_id, 'facebook')
        self.assertEqual(result.status_code, 400)
        self.assertEqual(result.error, 'OAuthException')
        self.assertIn('expired', result.message)

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_validate_authorization_code_network_errors(self, mock_post):
        """Test transport failures never escape as exceptions."""
        for error in (ConnectionError("Connection refused"), Timeout("Timed out")):
            mock_post.side_effect = error

            result = self.provider.validate_authorization_code('test_code', REDIRECT_URI)

            self.assertIsInstance(result, ExchangeError)
            self.assertIsNone(result.status_code)

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_validate_authorization_code_invalid_body(self, mock_post):
        mock_post.return_value = mock_response(200, None)
        self.assertIsInstance(self.provider.validate_authorization_code('c', REDIRECT_URI), ExchangeError)

        mock_post.return_value = mock_response(200, {'token_type': 'bearer'})
        self.assertIsInstance(self.provider.validate_authorization_code('c', REDIRECT_URI), ExchangeError)

    @patch('auth_toolkit.providers.base_provider.requests.post')
    def test_refresh_access_token_keeps_refresh_token(self, mock_post):
        mock_post.return_value = mock_response(200, {'access_token': 'refreshed'})

        token = self.provider.refresh_access_token('old_refresh_token')

        self.assertEqual(token.access_token, 'refreshed')
        self.assertEqual(token.refresh_token, 'old_refresh_token')
        self.assertEqual(mock_post.call_args[1]['data']['grant_type'], 'refresh_token')

    # Profile retrieval

    @patch('auth_toolkit.providers.base_provider.requests.get')
    def test_get_user_info(self, mock_get):
        mock_get.return_value = mock_response(200, RAW_PROFILE)

        result = self.provider.get_user_info(self.token)

        self.assertEqual(result['user'], {
            'id': '1',
            'name': 'N',
            'email': 'e',
            'image': 'u',
            'emailVerified': True
        })
        self.assertEqual(result['data'], RAW_PROFILE)

        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], FacebookProvider.userinfo_endpoint)
        self.assertEqual(kwargs['params'], {'fields': 'id,name,email,picture'})
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer test_access_token')

    @patch('auth_toolkit.providers.base_provider.requests.get')
    def test_get_user_info_with_profile_mapping(self, mock_get):
        """Test mapped fields win over the default mapping."""
        seen = []

        def map_profile_to_user(profile):
            seen.append(profile)
            return {'name': 'Override'}

        provider = FacebookProvider(FacebookOptions(
            client_id='id', client_secret='secret', map_profile_to_user=map_profile_to_user
        ))
        mock_get.return_value = mock_response(200, RAW_PROFILE)

        result = provider.get_user_info(self.token)

        self.assertEqual(result['user'], {
            'id': '1',
            'name': 'Override',
            'email': 'e',
            'image': 'u',
            'emailVerified': True
        })
        self.assertEqual(seen, [RAW_PROFILE])

    @patch('auth_toolkit.providers.base_provider.requests.get')
    def test_get_user_info_extra_fields(self, mock_get):
        provider = FacebookProvider(FacebookOptions(
            client_id='id', client_secret='secret', fields=('first_name',)
        ))
        mock_get.return_value = mock_response(200, {'id': '2'})

        result = provider.get_user_info(self.token)

        self.assertEqual(mock_get.call_args[1]['params'], {'fields': 'id,name,email,picture,first_name'})
        self.assertIsNone(result['user']['image'])
        self.assertFalse(result['user']['emailVerified'])

    def test_map_profile_with_malformed_picture(self):
        """Test picture values that are not Graph picture objects yield no image."""
        for picture in ('https://example.com/n.png', {'data': 'https://example.com/n.png'},
                        {'data': None}, ['x'], None):
            user = self.provider.map_profile({'id': '1', 'picture': picture})

            self.assertIsNone(user['image'])
            self.assertEqual(user['id'], '1')

    @patch('auth_toolkit.providers.base_provider.requests.get')
    def test_get_user_info_fetch_failure(self, mock_get):
        """Test a failed profile fetch yields None instead of raising."""
        mock_get.return_value = mock_response(500, {'error': 'boom'})
        self.assertIsNone(self.provider.get_user_info(self.token))

        mock_get.side_effect = ConnectionError("Connection refused")
        self.assertIsNone(self.provider.get_user_info(self.token))

    def test_get_user_info_override(self):
        """Test a caller-supplied get_user_info replaces profile retrieval."""
        custom = {'user': {'id': 'custom'}, 'data': {}}
        provider = FacebookProvider(FacebookOptions(
            client_id='id', client_secret='secret', get_user_info=lambda token: custom
        ))

        with patch('auth_toolkit.providers.base_provider.requests.get') as mock_get:
            self.assertIs(provider.get_user_info(self.token), custom)
            mock_get.assert_not_called()

    def test_get_provider_info(self):
        info = self.provider.get_provider_info()

        self.assertEqual(info['id'], 'facebook')
        self.assertEqual(info['scopes'], ['email', 'public_profile'])
        self.assertFalse(info['supports_pkce'])


if __name__ == '__main__':
    unittest.main()
