"""
Conversation state: the visible item and streamed responses.
"""

from .reducer import ConversationReducer, STOPPED_TEXT, EMPTY_RESPONSE_TEXT
from .streaming_consumer import StreamingConsumer, StreamState

__all__ = [
    'ConversationReducer',
    'STOPPED_TEXT',
    'EMPTY_RESPONSE_TEXT',
    'StreamingConsumer',
    'StreamState'
]
