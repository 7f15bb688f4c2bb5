"""
Abstract interfaces for the orchestration core's external collaborators.
"""

from .language_model import LanguageModelInterface
from .media_control import MediaControlInterface
from .history import HistorySinkInterface
from .session import SessionProviderInterface

__all__ = [
    'LanguageModelInterface',
    'MediaControlInterface',
    'HistorySinkInterface',
    'SessionProviderInterface'
]
