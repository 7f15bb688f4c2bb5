"""
History sink implementations.
"""

from .json_history import JsonHistorySink, InMemoryHistorySink, HISTORY_LIMIT

__all__ = ['JsonHistorySink', 'InMemoryHistorySink', 'HISTORY_LIMIT']
