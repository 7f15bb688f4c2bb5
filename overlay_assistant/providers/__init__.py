"""
Provider implementations for the orchestration core.
"""

from .language_model import OllamaLanguageModelProvider, OpenAILanguageModelProvider
from .media import McpMediaControlClient
from .history import JsonHistorySink, InMemoryHistorySink
from .session import LocalSessionProvider

__all__ = [
    'OllamaLanguageModelProvider',
    'OpenAILanguageModelProvider',
    'McpMediaControlClient',
    'JsonHistorySink',
    'InMemoryHistorySink',
    'LocalSessionProvider'
]
