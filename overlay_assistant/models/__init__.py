"""
Data models for the orchestration core.
"""

from .data_models import (
    ConversationStatus,
    ConversationItem,
    ChatHistoryItem,
    ToolOutput,
    TokenEvent,
    DoneEvent,
    StreamErrorEvent,
)
from .audio import (
    MediaType,
    AudioAction,
    AudioIntent,
    AudioDecision,
    PlayDecision,
    QueueDecision,
    VolumeSetDecision,
    VolumeAdjustDecision,
    TransportDecision,
    NoneDecision,
    decision_from_intent,
    validate_decision,
)

__all__ = [
    'ConversationStatus',
    'ConversationItem',
    'ChatHistoryItem',
    'ToolOutput',
    'TokenEvent',
    'DoneEvent',
    'StreamErrorEvent',
    'MediaType',
    'AudioAction',
    'AudioIntent',
    'AudioDecision',
    'PlayDecision',
    'QueueDecision',
    'VolumeSetDecision',
    'VolumeAdjustDecision',
    'TransportDecision',
    'NoneDecision',
    'decision_from_intent',
    'validate_decision',
]
