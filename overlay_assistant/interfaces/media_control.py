"""
Abstract interface for the external media-control service.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class MediaControlInterface(ABC):
    """Abstract base class for media-control service clients."""
    
    @abstractmethod
    async def ensure_running(self, server_root: str) -> None:
        """
        Make sure the service is started and connected. Idempotent.
        
        Args:
            server_root: Directory the service is launched from
            
        Raises:
            MediaServiceUnavailable: if the service cannot be reached
        """
        pass
    
    @abstractmethod
    async def call_tool(self, server_root: str, tool_name: str, args: Dict[str, Any]) -> str:
        """
        Call one tool on the service.
        
        Args:
            server_root: Directory the service is launched from
            tool_name: Name of the tool
            args: Tool arguments
            
        Returns:
            Raw result text (usually JSON with ``content`` blocks)
        """
        pass
    
    @abstractmethod
    async def cleanup(self) -> None:
        """Disconnect from the service."""
        pass
