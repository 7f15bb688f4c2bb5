"""
Deterministic pattern router for media-control commands.

Maps raw text to a coarse ``AudioIntent`` without any network call. Rules are
kept as an ordered table and evaluated first-match-wins, so a new phrasing is
one more entry rather than another branch in a long if/elif chain.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..models.audio import AudioAction, AudioIntent, MediaType, VOLUME_STEP, clamp_volume, coerce_media_type
from ..utils.logging_config import get_logger


logger = get_logger("router")

MEDIA_KEYWORDS = (
    "music", "song", "songs", "track", "tracks", "album", "albums", "playlist",
    "playlists", "artist", "spotify", "volume", "queue", "playback", "tune", "tunes",
)

_MEDIA_KEYWORD_RE = re.compile(r"\b(?:" + "|".join(MEDIA_KEYWORDS) + r")\b", re.I)
_NAVIGATION_RE = re.compile(r"\b(?:next|previous|prev|skip|back)\b", re.I)

_LEADING_FILLER_RE = re.compile(
    r"^(?:(?:hey|ok|okay)\s+\w+[,\s]+)?(?:(?:please|can\s+you|could\s+you|would\s+you|will\s+you)\s+)+",
    re.I,
)
_TRAILING_FILLER_RE = re.compile(r"(?:\s+(?:please|for\s+me|now))+$", re.I)
_ON_SPOTIFY_RE = re.compile(r"\s+(?:on|from|in)\s+spotify$", re.I)

# Objects that make "play ..." a bare resume rather than a search
_GENERIC_PLAY_OBJECTS = {
    "music", "some music", "the music", "my music", "it", "something", "anything",
    "spotify", "songs", "some songs", "a song", "again", "it again", "the song",
    "the track", "playback",
}

_TYPED_KEYWORD_RE = re.compile(r"\b(playlist|album|artist)\b", re.I)
_QUERY_LEAD_IN_RE = re.compile(r"^(?:called|named|titled|by|from|:)\s*", re.I)
_QUERY_FILLER_RE = re.compile(
    r"^(?:(?:the|my|a|an|some|songs|music|tracks|something)(?:\s+(?:by|from|off|of))?(?:\s+|$))+",
    re.I,
)
_QUERY_TRAILING_RE = re.compile(r"(?:^|\s+)(?:the|my|a|an|by|from|off|of)$", re.I)

_TYPED_FORM_RE = re.compile(
    r"^play\s+(?:the\s+|a\s+|an\s+)?(?P<type>track|song|album|artist|playlist)\s+(?P<query>.+)$", re.I
)
_BARE_PLAY_RE = re.compile(r"^play\s+(?P<query>.+)$", re.I)
_QUEUE_RE = re.compile(
    r"^(?:queue(?:\s+up)?|add)\s+(?P<query>.+?)(?P<suffix>\s+(?:to|in|on)\s+(?:the\s+|my\s+)?queue)?$", re.I
)

_VOLUME_SET_RE = re.compile(
    r"\bvolume\s+(?:(?:to|at|level)\s+)?(?P<value>\d+)\s*(?:%|percent)?\b", re.I
)
_VOLUME_ADJUST_RES = (
    re.compile(r"\bvolume\s+(?P<dir>up|down)\b", re.I),
    re.compile(r"^(?:turn|crank)\s+(?:it|the\s+volume|the\s+music|volume|music)\s+(?P<dir>up|down)$", re.I),
    re.compile(r"^(?:turn|crank)\s+(?P<dir>up|down)\s+(?:the\s+)?(?:volume|music)$", re.I),
    re.compile(r"^(?:(?:make\s+it|a\s+bit|a\s+little)\s+)?(?P<dir>louder|quieter|softer)$", re.I),
)

_KEYWORD_RULES: Tuple[Tuple[AudioAction, "re.Pattern"], ...] = (
    (AudioAction.PLAY, re.compile(
        r"^(?:play|resume|unpause|continue)(?:\s+(?:the\s+|my\s+)?(?:music|song|track|playback|spotify|it))?(?:\s+again)?$",
        re.I)),
    (AudioAction.PAUSE, re.compile(
        r"^pause(?:\s+(?:the\s+)?(?:music|song|track|playback|spotify|it))?$", re.I)),
    (AudioAction.STOP, re.compile(
        r"^stop(?:\s+(?:the\s+)?(?:music|song|track|playback|spotify|playing|it))?$", re.I)),
    (AudioAction.NEXT, re.compile(
        r"^(?:play\s+)?(?:the\s+)?(?:next|skip)(?:\s+(?:this\s+|the\s+)?(?:song|track|one|it))?$", re.I)),
    (AudioAction.PREV, re.compile(
        r"^(?:play\s+)?(?:the\s+)?(?:previous|prev|last|go\s+back|back)(?:\s+(?:a\s+)?(?:song|track|one))?$",
        re.I)),
)


def normalize_text(text: str) -> str:
    """Collapse whitespace and strip punctuation and polite filler."""
    value = re.sub(r"\s+", " ", (text or "")).strip()
    value = value.strip(".?!,;:\"'")
    value = _LEADING_FILLER_RE.sub("", value)
    value = _TRAILING_FILLER_RE.sub("", value)
    return value.strip(" .?!,;:\"'")


def has_media_keyword(text: str) -> bool:
    return bool(_MEDIA_KEYWORD_RE.search(text or ""))


def _clean_query(query: str) -> str:
    query = _ON_SPOTIFY_RE.sub("", query.strip())
    return query.strip(" .?!,;:\"'")


def _rule_play_trailing_clause(text: str, explicit: bool) -> Optional[AudioIntent]:
    match = _BARE_PLAY_RE.match(text)
    if not match:
        return None
    rest = match.group("query")
    keyword = _TYPED_KEYWORD_RE.search(rest)
    if not keyword:
        return None

    after = _QUERY_LEAD_IN_RE.sub("", rest[keyword.end():].strip())
    query = _clean_query(after)
    if not query:
        before = _QUERY_FILLER_RE.sub("", rest[:keyword.start()].strip())
        before = _QUERY_TRAILING_RE.sub("", before)
        query = _clean_query(before)

    return AudioIntent(
        action=AudioAction.PLAY,
        explicit=explicit,
        search_query=query or None,
        media_type=MediaType(keyword.group(1).lower()),
    )


def _rule_play_typed_form(text: str, explicit: bool) -> Optional[AudioIntent]:
    match = _TYPED_FORM_RE.match(text)
    if not match:
        return None
    query = _clean_query(match.group("query"))
    if not query:
        return None
    return AudioIntent(
        action=AudioAction.PLAY,
        explicit=explicit,
        search_query=query,
        media_type=coerce_media_type(match.group("type")),
    )


def _rule_play_bare_query(text: str, explicit: bool) -> Optional[AudioIntent]:
    match = _BARE_PLAY_RE.match(text)
    if not match:
        return None
    query = _clean_query(match.group("query"))
    if not query or query.lower() in _GENERIC_PLAY_OBJECTS:
        return None
    if _NAVIGATION_RE.search(query):
        return None
    return AudioIntent(
        action=AudioAction.PLAY,
        explicit=explicit,
        search_query=query,
        media_type=MediaType.TRACK,
    )


def _rule_queue(text: str, explicit: bool) -> Optional[AudioIntent]:
    match = _QUEUE_RE.match(text)
    if not match:
        return None
    # "add" alone is too generic ("add milk to my list")
    if text.lower().startswith("add") and not match.group("suffix"):
        return None
    query = _clean_query(match.group("query"))
    if not query:
        return None
    return AudioIntent(
        action=AudioAction.QUEUE,
        explicit=explicit,
        search_query=query,
        media_type=MediaType.TRACK,
    )


def _rule_volume(text: str, explicit: bool) -> Optional[AudioIntent]:
    match = _VOLUME_SET_RE.search(text)
    if match:
        return AudioIntent(
            action=AudioAction.VOLUME_SET,
            explicit=explicit,
            value=clamp_volume(int(match.group("value"))),
        )

    for pattern in _VOLUME_ADJUST_RES:
        match = pattern.search(text)
        if match:
            direction = match.group("dir").lower()
            step = VOLUME_STEP if direction in ("up", "louder") else -VOLUME_STEP
            return AudioIntent(action=AudioAction.VOLUME_ADJUST, explicit=explicit, adjustment=step)
    return None


def _rule_single_keyword(text: str, explicit: bool) -> Optional[AudioIntent]:
    for action, pattern in _KEYWORD_RULES:
        if pattern.match(text):
            return AudioIntent(action=action, explicit=explicit)
    return None


RouterRule = Tuple[str, Callable[[str, bool], Optional[AudioIntent]]]

DEFAULT_RULES: List[RouterRule] = [
    ("play_trailing_clause", _rule_play_trailing_clause),
    ("play_typed_form", _rule_play_typed_form),
    ("play_bare_query", _rule_play_bare_query),
    ("queue", _rule_queue),
    ("volume", _rule_volume),
    ("single_keyword", _rule_single_keyword),
]


@dataclass
class RouterMatch:
    """Intent together with the name of the rule that produced it."""
    rule: str
    intent: AudioIntent


class PatternRouter:
    """Ordered first-match-wins rule table over normalized text."""

    def __init__(self, rules: Optional[List[RouterRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def match(self, text: str) -> Optional[RouterMatch]:
        normalized = normalize_text(text)
        if not normalized:
            return None
        explicit = has_media_keyword(normalized)
        for name, rule in self.rules:
            intent = rule(normalized, explicit)
            if intent is not None:
                logger.debug(f"Rule '{name}' matched: {intent}")
                return RouterMatch(rule=name, intent=intent)
        return None

    def classify(self, text: str) -> Optional[AudioIntent]:
        """Return the first matching intent, or ``None``."""
        result = self.match(text)
        return result.intent if result else None


def looks_like_control_command(text: str, intent: Optional[AudioIntent] = None) -> bool:
    """
    Keyword heuristic deciding whether a line goes down the control path.

    Media requests phrased without any router pattern or media keyword fall
    through to chat.
    """
    if intent is not None:
        return True
    return has_media_keyword(normalize_text(text))
