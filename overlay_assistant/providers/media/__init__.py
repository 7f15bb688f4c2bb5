"""
Media-control service clients.
"""

from .mcp_media_client import McpMediaControlClient

__all__ = ['McpMediaControlClient']
