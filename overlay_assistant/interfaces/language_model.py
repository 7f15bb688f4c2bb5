"""
Abstract interface for language-model providers.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..utils.event_bus import EventBus


class LanguageModelInterface(ABC):
    """Abstract base class for all language-model providers."""
    
    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the provider and any required connections.
        
        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass
    
    @abstractmethod
    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        """
        Run a single, non-streamed completion.
        
        Used by the intent classifier for structured output.
        
        Args:
            prompt: Full prompt text
            model: Optional model override
            
        Returns:
            Raw completion text
        """
        pass
    
    @abstractmethod
    async def stream_chat(self,
                          session_id: str,
                          prompt: str,
                          bus: EventBus,
                          model: Optional[str] = None) -> None:
        """
        Stream a chat response as events on the bus.
        
        Publishes ``token`` events (``TokenEvent``) for each chunk, then one
        ``done`` event (``DoneEvent``). Transport failures are published as an
        ``error`` event (``StreamErrorEvent``) instead of being raised.
        
        Args:
            session_id: Session every published event is tagged with
            prompt: User message
            bus: Event bus to publish on
            model: Optional model override
        """
        pass
    
    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the provider."""
        pass
    
    @property
    def capabilities(self) -> dict:
        """
        Get provider capabilities.
        
        Returns:
            dict: Dictionary of provider capabilities
        """
        return {
            'streaming': True,
            'structured_output': True,
            'models': []
        }
