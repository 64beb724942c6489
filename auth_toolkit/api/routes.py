"""
Built-in endpoints: social sign-in, OAuth callback, provider listing, health.

The sign-in endpoint starts the authorization-code flow and records the
request in the state store; the callback consumes it, exchanges the code,
fetches the profile and hands the user to the ``on_sign_in`` collaborator
before redirecting back to the application.
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field

from ..api_responses import ErrorCodes, ProviderResponseBuilder
from ..providers.base_provider import ExchangeError, generate_code_verifier
from ..state_store import AuthorizationRequestState
from .context import RequestContext
from .endpoint import Endpoint, create_auth_endpoint
from .errors import APIError


logger = logging.getLogger(__name__)

STATE_COOKIE = 'state'


class SignInSocialBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    callback_url: Optional[str] = Field(default=None, alias='callbackURL')
    error_callback_url: Optional[str] = Field(default=None, alias='errorCallbackURL')
    scopes: Optional[List[str]] = None


class CallbackQuery(BaseModel):
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


class ErrorQuery(BaseModel):
    error: Optional[str] = None


def with_error(url: str, error: str, description: Optional[str] = None) -> str:
    """Append ``error`` (and ``error_description``) to a URL's query string."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(('error', error))
    if description:
        query.append(('error_description', description))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


@create_auth_endpoint('/sign-in/social', method='POST', body=SignInSocialBody)
def sign_in_social(ctx: RequestContext):
    """Start a social sign-in; returns the provider authorization URL."""
    auth = ctx.context
    body = ctx.body

    provider = auth.provider_manager.get_provider(body.provider)
    if provider is None:
        logger.warning(f"Sign-in requested for unknown provider: {body.provider}")
        raise APIError("NOT_FOUND", message=f"Provider not found: {body.provider}",
                       code=ErrorCodes.PROVIDER_NOT_FOUND)

    callback_url = body.callback_url or '/'
    error_callback_url = body.error_callback_url
    for url in filter(None, (callback_url, error_callback_url)):
        if not auth.is_trusted_url(url):
            logger.warning(f"Rejected untrusted callback URL: {url}")
            raise APIError("FORBIDDEN", message="Invalid callbackURL", code=ErrorCodes.INVALID_CALLBACK_URL)

    state = provider.generate_state()
    code_verifier = generate_code_verifier() if provider.supports_pkce else None
    redirect_uri = auth.callback_uri(provider.id)

    url = provider.create_authorization_url(
        state=state,
        redirect_uri=redirect_uri,
        scopes=body.scopes,
        code_verifier=code_verifier
    )

    auth.state_store.save(AuthorizationRequestState(
        provider_id=provider.id,
        state=state,
        redirect_uri=redirect_uri,
        scopes=provider.resolve_scopes(body.scopes),
        callback_url=auth.absolute_url(callback_url),
        error_callback_url=auth.absolute_url(error_callback_url) if error_callback_url else None,
        code_verifier=code_verifier
    ))

    ctx.set_signed_cookie(
        auth.cookie_name(STATE_COOKIE), state,
        max_age=auth.options.state_ttl,
        secure=auth.options.cookie_secure
    )

    logger.info(f"Started {provider.display_name} sign-in")
    return ctx.json({'url': url, 'redirect': True})


@create_auth_endpoint('/callback/<provider_id>', method='GET', query=CallbackQuery)
def callback_oauth(ctx: RequestContext):
    """Complete a social sign-in; always ends in a redirect."""
    auth = ctx.context
    query = ctx.query
    provider_id = ctx.params.get('provider_id')
    default_error_url = f"{auth.auth_url}/error"

    if not query.state:
        logger.error(f"Callback for {provider_id} without state")
        raise ctx.redirect(with_error(default_error_url, 'state_not_found'))

    request_state = auth.state_store.consume(query.state)
    if request_state is None:
        raise ctx.redirect(with_error(default_error_url, 'invalid_state'))

    error_url = request_state.error_callback_url or request_state.callback_url
    state_cookie = auth.cookie_name(STATE_COOKIE)

    if ctx.get_signed_cookie(state_cookie) != query.state:
        logger.error(f"State cookie mismatch on {provider_id} callback")
        raise ctx.redirect(with_error(error_url, 'state_mismatch'))
    ctx.set_cookie(state_cookie, '', max_age=0, secure=auth.options.cookie_secure)

    if query.error:
        logger.warning(f"Provider {provider_id} returned error: {query.error} - {query.error_description}")
        raise ctx.redirect(with_error(error_url, query.error, query.error_description))

    if request_state.provider_id != provider_id:
        logger.error(f"Provider mismatch - expected: {request_state.provider_id}, got: {provider_id}")
        raise ctx.redirect(with_error(error_url, 'provider_mismatch'))

    provider = auth.provider_manager.get_provider(provider_id)
    if provider is None:
        raise ctx.redirect(with_error(error_url, 'provider_not_found'))

    if not query.code:
        raise ctx.redirect(with_error(error_url, 'no_code'))

    tokens = provider.validate_authorization_code(
        query.code, request_state.redirect_uri, request_state.code_verifier
    )
    if isinstance(tokens, ExchangeError):
        logger.error(f"Code validation failed for {provider_id}: {tokens.message}")
        raise ctx.redirect(with_error(error_url, 'invalid_code'))

    user_info = provider.get_user_info(tokens)
    if user_info is None:
        raise ctx.redirect(with_error(error_url, 'unable_to_get_user_info'))

    user = user_info['user']
    if not user.get('email'):
        raise ctx.redirect(with_error(error_url, 'email_not_found'))

    on_sign_in = auth.options.on_sign_in
    if on_sign_in is not None:
        on_sign_in(ctx, provider_id, user, user_info['data'], tokens)

    logger.info(f"Completed {provider.display_name} sign-in for user {user.get('id')}")
    raise ctx.redirect(request_state.callback_url)


@create_auth_endpoint('/providers', method='GET')
def list_providers(ctx: RequestContext):
    auth = ctx.context
    providers = []
    for info in auth.provider_manager.get_provider_info():
        info['sign_in_url'] = f"{auth.auth_url}/sign-in/social"
        info['callback_url'] = auth.callback_uri(info['id'])
        providers.append(info)
    return ctx.json(ProviderResponseBuilder.list_response(providers))


@create_auth_endpoint('/error', method='GET', query=ErrorQuery)
def error_page(ctx: RequestContext):
    return ctx.json({'error': ctx.query.error or 'unknown_error'})


@create_auth_endpoint('/ok', method='GET')
def ok(ctx: RequestContext):
    return ctx.json({'ok': True})


def get_core_endpoints() -> Dict[str, Endpoint]:
    """Built-in endpoints keyed by their ``auth.api`` name."""
    return {
        'sign_in_social': sign_in_social,
        'callback_oauth': callback_oauth,
        'list_providers': list_providers,
        'error_page': error_page,
        'ok': ok
    }
