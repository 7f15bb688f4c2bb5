"""
Language-model provider implementations.
"""

from .ollama_provider import OllamaLanguageModelProvider
from .openai_provider import OpenAILanguageModelProvider

__all__ = ['OllamaLanguageModelProvider', 'OpenAILanguageModelProvider']
