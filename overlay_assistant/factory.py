"""
Factory for creating provider instances based on configuration.
"""

from pathlib import Path
from typing import Dict, Any

from .interfaces import (
    LanguageModelInterface,
    MediaControlInterface,
    HistorySinkInterface,
    SessionProviderInterface
)
from .providers.language_model import OllamaLanguageModelProvider, OpenAILanguageModelProvider
from .providers.media import McpMediaControlClient
from .providers.history import JsonHistorySink, InMemoryHistorySink
from .providers.session import LocalSessionProvider
from .utils.device_affinity import DeviceAffinityStore, FileDeviceAffinityStore, InMemoryDeviceAffinityStore


def _file_affinity(config: Dict[str, Any]) -> DeviceAffinityStore:
    return FileDeviceAffinityStore(Path(config['path']).expanduser())


def _memory_affinity(config: Dict[str, Any]) -> DeviceAffinityStore:
    return InMemoryDeviceAffinityStore(config.get('device_id'))


class ProviderFactory:
    """Factory for creating provider instances."""

    # Provider registries
    LANGUAGE_MODEL_PROVIDERS = {
        'ollama': OllamaLanguageModelProvider,
        'openai': OpenAILanguageModelProvider,
    }

    MEDIA_CONTROL_PROVIDERS = {
        'mcp': McpMediaControlClient,
    }

    HISTORY_PROVIDERS = {
        'json': JsonHistorySink,
        'memory': InMemoryHistorySink,
    }

    SESSION_PROVIDERS = {
        'local': LocalSessionProvider,
    }

    DEVICE_AFFINITY_PROVIDERS = {
        'file': _file_affinity,
        'memory': _memory_affinity,
    }

    @classmethod
    def _registries(cls) -> Dict[str, Dict[str, Any]]:
        return {
            'language_model': cls.LANGUAGE_MODEL_PROVIDERS,
            'media_control': cls.MEDIA_CONTROL_PROVIDERS,
            'history': cls.HISTORY_PROVIDERS,
            'session': cls.SESSION_PROVIDERS,
            'device_affinity': cls.DEVICE_AFFINITY_PROVIDERS,
        }

    @classmethod
    def _create(cls, provider_type: str, provider_name: str, config: Dict[str, Any]):
        registry = cls._registries()[provider_type]
        if provider_name not in registry:
            available = ', '.join(registry.keys())
            label = provider_type.replace('_', ' ')
            raise ValueError(f"Unsupported {label} provider: {provider_name}. Available: {available}")
        return registry[provider_name](config)

    @classmethod
    def create_language_model_provider(cls,
                                       provider_name: str,
                                       config: Dict[str, Any]) -> LanguageModelInterface:
        """
        Create a language-model provider instance.

        Args:
            provider_name: Name of the provider to create
            config: Configuration for the provider

        Returns:
            LanguageModelInterface: Provider instance

        Raises:
            ValueError: If provider name is not supported
        """
        return cls._create('language_model', provider_name, config)

    @classmethod
    def create_media_control_provider(cls,
                                      provider_name: str,
                                      config: Dict[str, Any]) -> MediaControlInterface:
        """Create a media-control client. Raises ValueError for unknown names."""
        return cls._create('media_control', provider_name, config)

    @classmethod
    def create_history_provider(cls,
                                provider_name: str,
                                config: Dict[str, Any]) -> HistorySinkInterface:
        """Create a history sink. Raises ValueError for unknown names."""
        return cls._create('history', provider_name, config)

    @classmethod
    def create_session_provider(cls,
                                provider_name: str,
                                config: Dict[str, Any]) -> SessionProviderInterface:
        return cls._create('session', provider_name, config)

    @classmethod
    def create_device_affinity_store(cls,
                                     provider_name: str,
                                     config: Dict[str, Any]) -> DeviceAffinityStore:
        return cls._create('device_affinity', provider_name, config)

    @classmethod
    def create_all_providers(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create all providers based on configuration.

        Args:
            config: Full configuration dictionary (see ``config.get_core_config``)

        Returns:
            Dictionary containing all provider instances
        """
        providers = {}
        for provider_type in cls._registries():
            section = config.get(provider_type)
            if not section:
                continue
            provider_name = section.get('provider')
            if provider_name:
                providers[provider_type] = cls._create(
                    provider_type, provider_name, section.get('config', {})
                )
        return providers

    @classmethod
    def get_available_providers(cls) -> Dict[str, list]:
        """
        Get list of all available providers by type.

        Returns:
            Dictionary mapping provider types to available provider names
        """
        return {name: list(registry.keys()) for name, registry in cls._registries().items()}
