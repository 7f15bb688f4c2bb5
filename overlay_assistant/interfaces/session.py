"""
Abstract interface for chat session handles.
"""

from abc import ABC, abstractmethod


class SessionProviderInterface(ABC):
    """Source of the opaque session id streamed events are tagged with."""
    
    @abstractmethod
    def current_session_id(self) -> str:
        pass
