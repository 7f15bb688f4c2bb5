"""
Abstract interface for the chat history sink.
"""

from abc import ABC, abstractmethod
from typing import List

from ..models.data_models import ChatHistoryItem


class HistorySinkInterface(ABC):
    """Append-only store of completed turns."""
    
    @abstractmethod
    def append(self, item: ChatHistoryItem) -> None:
        """Persist one completed turn, trimming to the configured cap."""
        pass
    
    @abstractmethod
    def load(self) -> List[ChatHistoryItem]:
        """
        Load stored turns, oldest first.
        
        Returns:
            List of history items (malformed records skipped)
        """
        pass
    
    @abstractmethod
    def clear(self) -> None:
        """Remove all stored turns."""
        pass
