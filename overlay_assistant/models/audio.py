"""
Audio intents and decisions.

An ``AudioIntent`` is what the deterministic pattern router produces. An
``AudioDecision`` is the richer structured action, produced either by the
model-assisted classifier or derived from an intent. Both paths end in the
same decision models, so callers cannot tell which one produced a decision.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


VOLUME_STEP = 10


class MediaType(str, Enum):
    """Kinds of content a play or queue request can target."""
    TRACK = "track"
    ALBUM = "album"
    ARTIST = "artist"
    PLAYLIST = "playlist"


class AudioAction(str, Enum):
    """Tags shared by intents and decisions."""
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    NEXT = "next"
    PREV = "prev"
    QUEUE = "queue"
    VOLUME_SET = "volumeSet"
    VOLUME_ADJUST = "volumeAdjust"
    NONE = "none"


TRANSPORT_ACTIONS = (AudioAction.PAUSE, AudioAction.STOP, AudioAction.NEXT, AudioAction.PREV)

_MEDIA_TYPE_SYNONYMS = {
    "song": MediaType.TRACK,
    "songs": MediaType.TRACK,
    "tracks": MediaType.TRACK,
    "albums": MediaType.ALBUM,
    "record": MediaType.ALBUM,
    "band": MediaType.ARTIST,
    "artists": MediaType.ARTIST,
    "singer": MediaType.ARTIST,
    "playlists": MediaType.PLAYLIST,
}

_ACTION_SYNONYMS = {
    "resume": "play",
    "unpause": "play",
    "skip": "next",
    "previous": "prev",
    "back": "prev",
    "add": "queue",
    "enqueue": "queue",
    "volume_set": "volumeSet",
    "set_volume": "volumeSet",
    "setvolume": "volumeSet",
    "volumeset": "volumeSet",
    "volume_adjust": "volumeAdjust",
    "adjust_volume": "volumeAdjust",
    "adjustvolume": "volumeAdjust",
    "volumeadjust": "volumeAdjust",
    "chat": "none",
    "null": "none",
}

_FIELD_SYNONYMS = {
    "query": "searchQuery",
    "search_query": "searchQuery",
    "type": "mediaType",
    "media_type": "mediaType",
    "volume": "value",
    "volumePercent": "value",
    "delta": "adjustment",
}


def coerce_media_type(value: Any) -> MediaType:
    """Map free-form type names onto ``MediaType``; missing means track."""
    if value is None or value == "":
        return MediaType.TRACK
    if isinstance(value, MediaType):
        return value
    text = str(value).strip().lower()
    if text in _MEDIA_TYPE_SYNONYMS:
        return _MEDIA_TYPE_SYNONYMS[text]
    return MediaType(text)


def clamp_volume(value: int) -> int:
    return max(0, min(100, int(value)))


@dataclass(frozen=True)
class AudioIntent:
    """
    Deterministic router output.

    Only the fields relevant to ``action`` are set. ``explicit`` records
    whether the text named an unambiguous media keyword.
    """
    action: AudioAction
    explicit: bool = False
    search_query: Optional[str] = None
    media_type: Optional[MediaType] = None
    value: Optional[int] = None
    adjustment: Optional[int] = None


class _Decision(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the camelCase field names used in model prompts."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class PlayDecision(_Decision):
    action: Literal["play"] = "play"
    search_query: Optional[str] = Field(None, alias="searchQuery")
    media_type: MediaType = Field(MediaType.TRACK, alias="mediaType")

    @field_validator("search_query", mode="before")
    @classmethod
    def _blank_query_is_none(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalize_media_type(cls, v):
        return coerce_media_type(v)


class QueueDecision(_Decision):
    action: Literal["queue"] = "queue"
    search_query: str = Field(..., alias="searchQuery", min_length=1)
    media_type: MediaType = Field(MediaType.TRACK, alias="mediaType")

    @field_validator("search_query", mode="before")
    @classmethod
    def _strip_query(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalize_media_type(cls, v):
        return coerce_media_type(v)


def _finite_number(v) -> float:
    if isinstance(v, str):
        v = v.strip().rstrip("%")
    number = float(v)
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {v!r}")
    return number


class VolumeSetDecision(_Decision):
    action: Literal["volumeSet"] = "volumeSet"
    value: int

    @field_validator("value", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp_volume(_finite_number(v))


class VolumeAdjustDecision(_Decision):
    action: Literal["volumeAdjust"] = "volumeAdjust"
    adjustment: int

    @field_validator("adjustment", mode="before")
    @classmethod
    def _bound(cls, v):
        return max(-100, min(100, int(_finite_number(v))))


class TransportDecision(_Decision):
    action: Literal["pause", "stop", "next", "prev"]


class NoneDecision(_Decision):
    action: Literal["none"] = "none"


AudioDecision = Annotated[
    Union[
        PlayDecision,
        QueueDecision,
        VolumeSetDecision,
        VolumeAdjustDecision,
        TransportDecision,
        NoneDecision,
    ],
    Field(discriminator="action"),
]

_DECISION_ADAPTER = TypeAdapter(AudioDecision)


def normalize_decision_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite common model spellings into the canonical decision shape.

    Unknown keys are kept; pydantic ignores them.
    """
    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        normalized[_FIELD_SYNONYMS.get(key, key)] = value

    action = normalized.get("action")
    if action is None:
        normalized["action"] = AudioAction.NONE.value
        return normalized

    raw = str(action).strip()
    raw = _ACTION_SYNONYMS.get(raw.lower(), raw)
    canonical = {a.value.lower(): a.value for a in AudioAction}
    normalized["action"] = canonical.get(raw.lower(), raw)
    return normalized


def validate_decision(payload: Dict[str, Any]) -> AudioDecision:
    """
    Validate a raw decision object.

    Raises:
        pydantic.ValidationError: if the payload is not a valid decision
    """
    return _DECISION_ADAPTER.validate_python(normalize_decision_payload(payload))


def decision_action(decision: AudioDecision) -> AudioAction:
    return AudioAction(decision.action)


def decision_from_intent(intent: AudioIntent) -> AudioDecision:
    """
    Fixed structural mapping from a router intent to a decision.

    Known fields (query, media type, numeric values) carry over unchanged.
    """
    action = intent.action
    if action == AudioAction.VOLUME_SET:
        return VolumeSetDecision(value=intent.value if intent.value is not None else 50)
    if action == AudioAction.VOLUME_ADJUST:
        return VolumeAdjustDecision(
            adjustment=intent.adjustment if intent.adjustment is not None else VOLUME_STEP
        )
    if action == AudioAction.PLAY:
        return PlayDecision(
            search_query=intent.search_query,
            media_type=intent.media_type or MediaType.TRACK,
        )
    if action == AudioAction.QUEUE:
        return QueueDecision(
            search_query=intent.search_query,
            media_type=intent.media_type or MediaType.TRACK,
        )
    if action in TRANSPORT_ACTIONS:
        return TransportDecision(action=action.value)
    return NoneDecision()
