"""
Session provider implementations.
"""

from .local_session import LocalSessionProvider

__all__ = ['LocalSessionProvider']
