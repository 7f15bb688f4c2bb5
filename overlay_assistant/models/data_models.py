"""
Common data structures for the orchestration core.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ConversationStatus(str, Enum):
    """Lifecycle of the visible conversation item."""
    THINKING = "thinking"
    COMPLETED = "completed"


def new_item_id() -> str:
    """Opaque, unique conversation item id."""
    return f"{int(datetime.now().timestamp() * 1000)}-{uuid.uuid4().hex[:5]}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ConversationItem:
    """The single visible turn: prompt, status and accumulated response."""
    prompt: str
    id: str = field(default_factory=new_item_id)
    status: ConversationStatus = ConversationStatus.THINKING
    response: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == ConversationStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'prompt': self.prompt,
            'status': self.status.value,
            'response': self.response,
        }


@dataclass(frozen=True)
class ChatHistoryItem:
    """Immutable record of a completed turn."""
    id: str
    prompt: str
    response: str
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['ChatHistoryItem']:
        """Build from a stored record, or ``None`` if any field is missing or mistyped."""
        values = {key: data.get(key) for key in ('id', 'prompt', 'response', 'timestamp')}
        if not all(isinstance(value, str) for value in values.values()):
            return None
        return cls(**values)


@dataclass(frozen=True)
class ToolOutput:
    """Parsed result of a media-control tool call."""
    is_error: bool
    text: str


@dataclass(frozen=True)
class TokenEvent:
    """A streamed chunk of model output for one session."""
    session_id: str
    text: str


@dataclass(frozen=True)
class DoneEvent:
    """End of a streamed response for one session."""
    session_id: str


@dataclass(frozen=True)
class StreamErrorEvent:
    """Transport failure while streaming a response for one session."""
    session_id: str
    message: str
