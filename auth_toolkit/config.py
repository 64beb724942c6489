"""
Configuration module for the auth toolkit.

This module handles environment variable loading, application settings and
provider configuration loading from a JSON file whose values may reference
environment variables as ``env:VAR_NAME``.
"""

import os
import json
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


def _env_bool(name: str, default: str = 'False') -> bool:
    return os.getenv(name, default).lower() == 'true'


class Config:
    """Configuration class for the auth toolkit."""

    def __init__(self, providers_config_path: Optional[str] = None):
        """
        Initialize configuration by loading environment variables and provider configurations.

        Args:
            providers_config_path: Path to the providers configuration file;
                defaults to AUTH_PROVIDERS_CONFIG or ``providers.json``
        """
        # Load environment variables from .env file
        load_dotenv()

        self.providers_config_path = (
            providers_config_path or os.getenv('AUTH_PROVIDERS_CONFIG', 'providers.json')
        )

        # Load all configuration
        self._load_auth_config()
        self._load_provider_configurations()
        self._validate_required_env_vars()

    def _validate_required_env_vars(self) -> None:
        """Validate that all required environment variables are present for enabled providers."""
        # Always require the signing secret
        required_vars = ['AUTH_SECRET']

        for provider_name, provider_config in self.PROVIDER_CONFIGS.items():
            if provider_config.get('enabled', True):
                for key in ('client_id', 'client_secret'):
                    ref = provider_config.get(key, '')
                    if isinstance(ref, str) and ref.startswith('env:'):
                        required_vars.append(ref[4:])

        missing_vars = [var for var in required_vars if not os.getenv(var)]

        if missing_vars:
            error_msg = (
                f"Missing required environment variables: {', '.join(missing_vars)}\n"
                f"Please ensure these variables are set in your .env file or environment.\n"
                f"See .env.example for the required format."
            )
            raise ConfigurationError(error_msg)

    def _load_auth_config(self) -> None:
        """Load auth and server settings."""
        host = os.getenv('AUTH_HOST', '127.0.0.1')
        port = int(os.getenv('AUTH_PORT', '5000'))

        self.AUTH_CONFIG = {
            'SECRET': os.getenv('AUTH_SECRET'),
            'BASE_URL': os.getenv('AUTH_BASE_URL', f"http://{host}:{port}").rstrip('/'),
            'BASE_PATH': os.getenv('AUTH_BASE_PATH', '/api/auth'),
            'COOKIE_PREFIX': os.getenv('AUTH_COOKIE_PREFIX', 'auth_toolkit'),
            'COOKIE_SECURE': _env_bool('AUTH_COOKIE_SECURE'),
            'STATE_TTL': int(os.getenv('AUTH_STATE_TTL', '600')),
            'TRUSTED_ORIGINS': [
                origin.strip() for origin in os.getenv('AUTH_TRUSTED_ORIGINS', '').split(',')
                if origin.strip()
            ]
        }

        self.SERVER_CONFIG = {
            'SECRET_KEY': os.getenv('AUTH_SECRET'),
            'DEBUG': _env_bool('AUTH_DEBUG'),
            'HOST': host,
            'PORT': port
        }

    def _load_provider_configurations(self) -> None:
        """Load provider configurations from JSON file with environment variable resolution."""
        try:
            with open(self.providers_config_path, 'r') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Provider configuration file not found: {self.providers_config_path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in provider configuration file: {e}")

        # Store raw provider configurations
        self.PROVIDER_CONFIGS = config_data.get('providers', {})

        # Process provider configurations and resolve environment variables
        self.OAUTH_CONFIG = {}
        for provider_name, provider_config in self.PROVIDER_CONFIGS.items():
            if provider_config.get('enabled', True):
                self.OAUTH_CONFIG[provider_name] = self._process_provider_config(provider_name, provider_config)

    def _process_provider_config(self, provider_name: str, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process provider configuration by resolving environment variable references.

        Args:
            provider_name: Provider name, for error messages
            config: Raw provider configuration dictionary

        Returns:
            Processed configuration with environment variables resolved
        """
        processed_config = {}

        for key, value in config.items():
            if isinstance(value, str) and value.startswith('env:'):
                env_var_name = value[4:]
                env_value = os.getenv(env_var_name)
                if env_value is None:
                    raise ConfigurationError(f"Environment variable {env_var_name} not found for provider {provider_name}")
                processed_config[key] = env_value
            else:
                processed_config[key] = value

        return processed_config

    def get_oauth_config(self, provider: str) -> Dict[str, Any]:
        """
        Get OAuth configuration for a specific provider.

        Raises:
            ConfigurationError: If provider is not supported or disabled
        """
        if provider not in self.PROVIDER_CONFIGS:
            raise ConfigurationError(f"Unsupported OAuth provider: {provider}")

        if not self.is_provider_enabled(provider):
            raise ConfigurationError(f"OAuth provider is disabled: {provider}")

        return self.OAUTH_CONFIG[provider].copy()

    def get_auth_config(self) -> Dict[str, Any]:
        return self.AUTH_CONFIG.copy()

    def get_server_config(self) -> Dict[str, Any]:
        """
        Get Flask server configuration.

        Returns:
            Server configuration dictionary
        """
        return self.SERVER_CONFIG.copy()

    def get_callback_url(self, provider: str) -> str:
        """
        Get the OAuth callback URL registered with a provider.

        Args:
            provider: Provider name

        Returns:
            Complete callback URL for the provider
        """
        base_path = '/' + self.AUTH_CONFIG['BASE_PATH'].strip('/')
        return f"{self.AUTH_CONFIG['BASE_URL']}{base_path}/callback/{provider}"

    def get_enabled_providers(self) -> List[str]:
        """
        Get list of enabled provider names.

        Returns:
            List of enabled provider names
        """
        return [
            provider_name for provider_name, config in self.PROVIDER_CONFIGS.items()
            if config.get('enabled', True)
        ]

    def is_provider_enabled(self, provider: str) -> bool:
        if provider not in self.PROVIDER_CONFIGS:
            return False
        return self.PROVIDER_CONFIGS[provider].get('enabled', True)


# Global configuration instance, created on first use
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Raises:
        ConfigurationError: If the configuration cannot be loaded

    Returns:
        The global Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the global configuration so the next get_config() reloads it."""
    global _config
    _config = None
