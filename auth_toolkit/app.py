"""
Flask application for the auth toolkit.

This module builds a Flask application around the toolkit: configuration
loading, logging setup, the auth router mounted under the base path and JSON
error handlers for requests that never reach the router.
"""

from flask import Flask, request
import logging
import sys
from typing import Optional
from werkzeug.exceptions import HTTPException

from .config import Config, get_config, ConfigurationError
from .api_responses import ErrorCodes, create_error_response
from .auth import AuthOptions, create_auth


def configure_logging(debug: bool = False) -> None:
    """
    Set up application logging.

    Args:
        debug: Log at DEBUG level, including OAuth library traffic
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set specific log levels for OAuth-related libraries
    logging.getLogger('authlib').setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger('requests').setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def create_app(config: Optional[Config] = None, **auth_overrides) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Configuration; the global configuration is loaded when omitted
        **auth_overrides: AuthOptions fields overriding the configured values,
            e.g. ``plugins`` or ``on_sign_in``

    Returns:
        Flask application with the toolkit available as ``app.auth``

    Raises:
        ConfigurationError: If the configuration cannot be loaded
    """
    app = Flask(__name__)

    try:
        config = config or get_config()
    except ConfigurationError as e:
        logging.getLogger(__name__).error(f"Failed to initialize Flask application: {e}")
        raise

    server_config = config.get_server_config()
    app.config.update(server_config)

    configure_logging(server_config.get('DEBUG', False))

    auth = create_auth(AuthOptions.from_config(config, **auth_overrides))
    auth.router.init_app(app)
    app.auth = auth

    register_error_handlers(app)

    app.logger.info("Flask application initialized successfully")
    return app


def register_error_handlers(app: Flask) -> None:
    """
    Register JSON error handlers for the Flask application.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 Not Found errors."""
        app.logger.warning(f"404 error: {request.url} - User Agent: {request.headers.get('User-Agent', 'Unknown')}")
        return create_error_response(ErrorCodes.NOT_FOUND, 'The requested resource was not found', 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 Method Not Allowed errors."""
        app.logger.warning(f"405 error: {request.method} {request.url}")
        return create_error_response(
            ErrorCodes.METHOD_NOT_ALLOWED, 'Method not allowed', 405,
            headers={'Allow': ', '.join(getattr(error, 'valid_methods', None) or [])}
        )

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Render any other HTTP error as JSON."""
        app.logger.warning(f"{error.code} error: {error} - URL: {request.url}")
        status_code = error.code or 500
        code = ErrorCodes.INTERNAL_ERROR if status_code >= 500 else error.name.upper().replace(' ', '_')
        return create_error_response(code, error.description or error.name, status_code)

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle unexpected exceptions with comprehensive logging."""
        app.logger.error(f"Unexpected error: {error} - URL: {request.url} - Method: {request.method} - IP: {request.remote_addr}", exc_info=True)
        return create_error_response(ErrorCodes.INTERNAL_ERROR, 'An unexpected error occurred', 500)
