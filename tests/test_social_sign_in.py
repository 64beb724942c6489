"""
Integration tests for the social sign-in flow.

This module drives the built-in endpoints through the router: starting a
sign-in, the provider callback with mocked token and profile endpoints, and
every error redirect the callback can produce.
"""

import json
import unittest
from unittest.mock import patch, Mock
from urllib.parse import parse_qs, urlparse
import sys
import os

from werkzeug.test import Client

# Add the project root to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from auth_toolkit.auth import AuthOptions, create_auth
from auth_toolkit.api import APIError


BASE_URL = 'http://localhost:3000'

FACEBOOK_PROFILE = {
    'id': '1',
    'name': 'N',
    'email': 'n@example.com',
    'email_verified': True,
    'picture': {'data': {'url': 'https://example.com/n.png'}}
}


def mock_response(status_code=200, json_data=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data
    return response


def read_json(response):
    return json.loads(response.get_data(as_text=True))


class TestSocialSignIn(unittest.TestCase):
    """Test cases for the sign-in and callback endpoints."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.signed_in = []

        def on_sign_in(ctx, provider_id, user, data, tokens):
            self.signed_in.append((provider_id, user, data, tokens))
            ctx.set_cookie('session', 'session-token')

        self.auth = create_auth(AuthOptions(
            secret='test-secret',
            base_url=BASE_URL,
            social_providers={
                'facebook': {'client_id': 'fb_id', 'client_secret': 'fb_secret'},
                'google': {'client_id': 'g_id', 'client_secret': 'g_secret'}
            },
            trusted_origins=['https://app.example.com'],
            on_sign_in=on_sign_in
        ))
        self.client = Client(self.auth.router)

        post_patcher = patch('auth_toolkit.providers.base_provider.requests.post')
        get_patcher = patch('auth_toolkit.providers.base_provider.requests.get')
        self.mock_post = post_patcher.start()
        self.mock_get = get_patcher.start()
        self.addCleanup(post_patcher.stop)
        self.addCleanup(get_patcher.stop)

        self.mock_post.return_value = mock_response(200, {'access_token': 'access', 'expires_in': 3600})
        self.mock_get.return_value = mock_response(200, FACEBOOK_PROFILE)

    def start_sign_in(self, **body):
        body.setdefault('provider', 'facebook')
        body.setdefault('callbackURL', '/dashboard')
        response = self.client.post('/api/auth/sign-in/social', json=body)
        self.assertEqual(response.status_code, 200)
        url = read_json(response)['url']
        return response, url, parse_qs(urlparse(url).query)['state'][0]

    def callback(self, provider='facebook', **query):
        return self.client.get(f'/api/auth/callback/{provider}', query_string=query)

    # Sign-in

    def test_sign_in_returns_authorization_url(self):
        response, url, state = self.start_sign_in()

        data = read_json(response)
        self.assertTrue(data['redirect'])
        params = parse_qs(urlparse(url).query)
        self.assertTrue(url.startswith('https://www.facebook.com/'))
        self.assertEqual(params['redirect_uri'], [f'{BASE_URL}/api/auth/callback/facebook'])
        self.assertEqual(params['client_id'], ['fb_id'])

        set_cookies = response.headers.getlist('Set-Cookie')
        self.assertTrue(any(c.startswith('auth_toolkit.state=') for c in set_cookies))
        self.assertNotIn(f'auth_toolkit.state={state};', set_cookies[0])
        self.assertEqual(len(self.auth.context.state_store), 1)

    def test_sign_in_with_extra_scopes(self):
        _, url, _ = self.start_sign_in(scopes=['user_friends'])
        self.assertEqual(parse_qs(urlparse(url).query)['scope'], ['email,public_profile,user_friends'])

    def test_sign_in_unknown_provider(self):
        response = self.client.post('/api/auth/sign-in/social', json={'provider': 'myspace'})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(read_json(response)['error']['code'], 'PROVIDER_NOT_FOUND')

    def test_sign_in_missing_provider(self):
        response = self.client.post('/api/auth/sign-in/social', json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(read_json(response)['error']['code'], 'VALIDATION_ERROR')

    def test_sign_in_untrusted_callback_url(self):
        for url in ('https://evil.example.com/steal', '//evil.example.com', 'javascript:alert(1)'):
            response = self.client.post('/api/auth/sign-in/social',
                                        json={'provider': 'facebook', 'callbackURL': url})

            self.assertEqual(response.status_code, 403)
            self.assertEqual(read_json(response)['error']['code'], 'INVALID_CALLBACK_URL')

    def test_sign_in_trusted_origin(self):
        self.start_sign_in(callbackURL='https://app.example.com/home')

    def test_direct_call_sign_in(self):
        result = self.auth.api.sign_in_social(body={'provider': 'facebook'})

        self.assertTrue(result['redirect'])
        self.assertIn('state=', result['url'])

    # Callback

    def test_callback_success(self):
        """Test a complete sign-in redirects to the callback URL and signs the user in."""
        _, _, state = self.start_sign_in()

        response = self.callback(code='auth_code', state=state)

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard')

        provider_id, user, data, tokens = self.signed_in[0]
        self.assertEqual(provider_id, 'facebook')
        self.assertEqual(user, {
            'id': '1',
            'name': 'N',
            'email': 'n@example.com',
            'image': 'https://example.com/n.png',
            'emailVerified': True
        })
        self.assertEqual(data, FACEBOOK_PROFILE)
        self.assertEqual(tokens.access_token, 'access')

        set_cookies = response.headers.getlist('Set-Cookie')
        cleared = [c for c in set_cookies if c.startswith('auth_toolkit.state=')]
        self.assertEqual(len(cleared), 1)
        self.assertIn('Max-Age=0', cleared[0])
        self.assertTrue(any(c.startswith('session=session-token') for c in set_cookies))

        post_data = self.mock_post.call_args[1]['data']
        self.assertEqual(post_data['code'], 'auth_code')
        self.assertEqual(post_data['redirect_uri'], f'{BASE_URL}/api/auth/callback/facebook')

    def test_callback_state_is_single_use(self):
        _, _, state = self.start_sign_in()
        self.callback(code='auth_code', state=state)

        response = self.callback(code='auth_code', state=state)

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers['Location'], f'{BASE_URL}/api/auth/error?error=invalid_state')
        self.assertEqual(len(self.signed_in), 1)

    def test_callback_with_pkce(self):
        """Test the stored PKCE verifier is sent with the code exchange."""
        self.mock_get.return_value = mock_response(200, {
            'sub': 'g-1', 'name': 'G', 'email': 'g@example.com', 'email_verified': True
        })
        _, url, state = self.start_sign_in(provider='google')
        self.assertIn('code_challenge', parse_qs(urlparse(url).query))

        response = self.callback('google', code='auth_code', state=state)

        self.assertEqual(response.status_code, 302)
        self.assertIn('code_verifier', self.mock_post.call_args[1]['data'])
        self.assertEqual(self.signed_in[0][1]['id'], 'g-1')

    def test_callback_missing_state(self):
        response = self.callback(code='auth_code')

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers['Location'], f'{BASE_URL}/api/auth/error?error=state_not_found')

    def test_callback_state_cookie_mismatch(self):
        _, _, state = self.start_sign_in()
        other_client = Client(self.auth.router)

        response = other_client.get('/api/auth/callback/facebook', query_string={'code': 'c', 'state': state})

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=state_mismatch')
        self.assertEqual(self.signed_in, [])

    def test_callback_provider_error(self):
        """Test a provider error (user denial) is forwarded to the error callback."""
        _, _, state = self.start_sign_in(errorCallbackURL='/sign-in')

        response = self.callback(state=state, error='access_denied', error_description='User denied access')

        location = urlparse(response.headers['Location'])
        self.assertEqual(location.path, '/sign-in')
        self.assertEqual(parse_qs(location.query), {
            'error': ['access_denied'],
            'error_description': ['User denied access']
        })
        self.mock_post.assert_not_called()

    def test_callback_provider_mismatch(self):
        _, _, state = self.start_sign_in()

        response = self.callback('google', code='auth_code', state=state)

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=provider_mismatch')

    def test_callback_missing_code(self):
        _, _, state = self.start_sign_in()

        response = self.callback(state=state)

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=no_code')

    def test_callback_invalid_code(self):
        _, _, state = self.start_sign_in()
        self.mock_post.return_value = mock_response(400, {'error': 'invalid_grant'})

        response = self.callback(code='bad_code', state=state)

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=invalid_code')
        self.mock_get.assert_not_called()

    def test_callback_profile_failure(self):
        _, _, state = self.start_sign_in()
        self.mock_get.return_value = mock_response(500, {})

        response = self.callback(code='auth_code', state=state)

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=unable_to_get_user_info')

    def test_callback_missing_email(self):
        _, _, state = self.start_sign_in()
        self.mock_get.return_value = mock_response(200, {'id': '1', 'name': 'N'})

        response = self.callback(code='auth_code', state=state)

        self.assertEqual(response.headers['Location'], f'{BASE_URL}/dashboard?error=email_not_found')
        self.assertEqual(self.signed_in, [])

    def test_direct_call_callback_raises_redirect(self):
        with self.assertRaises(APIError) as cm:
            self.auth.api.callback_oauth(params={'provider_id': 'facebook'})

        self.assertEqual(cm.exception.status, 'FOUND')
        self.assertIn('error=state_not_found', cm.exception.headers['Location'])

    # Other endpoints

    def test_list_providers(self):
        response = self.client.get('/api/auth/providers')

        data = read_json(response)
        self.assertEqual(data['count'], 2)
        facebook = data['providers'][0]
        self.assertEqual(facebook['id'], 'facebook')
        self.assertEqual(facebook['callback_url'], f'{BASE_URL}/api/auth/callback/facebook')
        self.assertFalse(facebook['supports_pkce'])

    def test_error_page(self):
        response = self.client.get('/api/auth/error', query_string={'error': 'invalid_state'})
        self.assertEqual(read_json(response), {'error': 'invalid_state'})

    def test_ok(self):
        response = self.client.get('/api/auth/ok')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(read_json(response), {'ok': True})


if __name__ == '__main__':
    unittest.main()
