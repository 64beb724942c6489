"""
Provider manager for OAuth provider registration and lookup.

This module implements the registry that maps provider ids to provider classes
and configured provider instances. The social sign-in endpoints look providers
up here; the registry is filled once at startup.
"""

from typing import Any, Dict, List, Optional, Type, Union
import logging

from .base_provider import OAuthProvider, ProviderConfigurationError, ProviderOptions


class ProviderManagerError(Exception):
    """Raised when provider manager encounters an error."""
    pass


class ProviderManager:
    """
    Registry of OAuth provider classes and configured provider instances.

    Built-in classes (facebook, google, microsoft) are registered on
    construction; further classes can be added with register_provider_class().
    """

    def __init__(self, config=None):
        """
        Initialize the provider manager.

        Args:
            config: Optional Config instance to register providers from
        """
        self.providers: Dict[str, OAuthProvider] = {}
        self.provider_classes: Dict[str, Type[OAuthProvider]] = {}
        self.logger = logging.getLogger(__name__)
        self.config = config

        # Register built-in provider classes
        self._register_builtin_providers()

        if config is not None:
            self.register_providers_from_config(config)

    def _register_builtin_providers(self) -> None:
        """Register built-in provider classes."""
        from .facebook_provider import FacebookProvider
        from .google_provider import GoogleProvider
        from .microsoft_provider import MicrosoftProvider

        for provider_class in (FacebookProvider, GoogleProvider, MicrosoftProvider):
            self.provider_classes[provider_class.id] = provider_class

        self.logger.debug(f"Registered built-in provider classes: {', '.join(self.provider_classes)}")

    def register_provider_class(self, name: str, provider_class: Type[OAuthProvider]) -> None:
        """
        Register a provider class for instantiation by name.

        Args:
            name: Provider id
            provider_class: Provider class that inherits from OAuthProvider

        Raises:
            ProviderManagerError: If provider class is invalid
        """
        if not isinstance(provider_class, type) or not issubclass(provider_class, OAuthProvider):
            raise ProviderManagerError(f"Provider class {provider_class!r} must inherit from OAuthProvider")

        self.provider_classes[name] = provider_class
        self.logger.info(f"Registered provider class: {name} -> {provider_class.__name__}")

    def register_provider(self, name: str, options: Union[ProviderOptions, Dict[str, Any]]) -> OAuthProvider:
        """
        Instantiate and register an OAuth provider.

        Args:
            name: Provider id; must match a registered provider class
            options: Provider options or configuration dictionary

        Returns:
            Provider instance

        Raises:
            ProviderManagerError: If provider registration fails
        """
        provider_class = self.provider_classes.get(name)
        if provider_class is None:
            raise ProviderManagerError(f"Unknown provider: {name}")

        try:
            provider = provider_class(options)
        except ProviderConfigurationError as e:
            self.logger.error(f"Provider configuration error for {name}: {e}")
            raise ProviderManagerError(f"Failed to register provider {name}: {e}")

        self.providers[name] = provider
        self.logger.info(f"Registered provider: {name} ({provider.__class__.__name__})")
        return provider

    def register_providers_from_config(self, config) -> int:
        """
        Register every enabled provider found in the configuration.

        Args:
            config: Config instance

        Returns:
            Number of providers registered
        """
        registered = 0
        for name in config.get_enabled_providers():
            self.register_provider(name, config.get_oauth_config(name))
            registered += 1

        self.logger.info(f"Registered {registered} providers from configuration")
        return registered

    def get_provider(self, name: str) -> Optional[OAuthProvider]:
        """
        Get a registered provider by id.

        Returns:
            Provider instance or None if not found
        """
        return self.providers.get(name)

    def get_all_providers(self) -> Dict[str, OAuthProvider]:
        return self.providers.copy()

    def get_provider_info(self) -> List[Dict[str, Any]]:
        """
        Get information about all registered providers for API responses.

        Returns:
            List of provider information dictionaries
        """
        return [provider.get_provider_info() for provider in self.providers.values()]

    def __contains__(self, name: str) -> bool:
        return name in self.providers

    def __len__(self) -> int:
        return len(self.providers)
