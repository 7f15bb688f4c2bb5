"""
Media command planner.

Turns an ``AudioDecision`` into the tool calls the media-control service
understands and returns a short confirmation for the conversation item.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..models.audio import (
    AudioDecision,
    MediaType,
    PlayDecision,
    QueueDecision,
    TransportDecision,
    VolumeAdjustDecision,
    VolumeSetDecision,
)
from ..utils.logging_config import get_logger
from .tool_invoker import ToolInvoker


logger = get_logger("media_commands")

SEARCH_LIMIT = 1

_ID_RE = re.compile(r"ID:\s*([A-Za-z0-9]+)")
_TITLE_RE = re.compile(r'1\.\s*"([^"]+)"(?:\s+by\s+(.+?)(?:\s+\(|$))?', re.M)

_TRANSPORT_CALLS = {
    "pause": ("pausePlayback", "Pausing Spotify playback."),
    "stop": ("pausePlayback", "Stopping Spotify playback."),
    "next": ("skipToNext", "Skipping to the next Spotify track."),
    "prev": ("skipToPrevious", "Going back to the previous Spotify track."),
}


@dataclass
class SearchHit:
    """First result of a media search."""
    id: str
    title: Optional[str] = None
    artist: Optional[str] = None

    def describe(self) -> Optional[str]:
        if not self.title:
            return None
        if self.artist:
            return f'"{self.title}" by {self.artist}'
        return f'"{self.title}"'


def parse_search_result(text: str) -> Optional[SearchHit]:
    """
    Pull the first ``ID: <id>`` (and title/artist, when listed) from search output.

    Returns:
        The first hit, or None when the output holds no id
    """
    match = _ID_RE.search(text or "")
    if not match:
        return None
    hit = SearchHit(id=match.group(1))
    title = _TITLE_RE.search(text)
    if title:
        hit.title = title.group(1).strip() or None
        if title.group(2):
            hit.artist = title.group(2).strip() or None
    return hit


class MediaCommandPlanner:
    """Executes decisions against the media service through a ``ToolInvoker``."""

    def __init__(self, invoker: ToolInvoker):
        self.invoker = invoker

    async def _search(self, query: str, media_type: MediaType) -> Optional[SearchHit]:
        raw = await self.invoker.invoke("searchSpotify", {
            "query": query,
            "type": media_type.value,
            "limit": SEARCH_LIMIT,
        })
        return parse_search_result(raw)

    async def execute(self, decision: AudioDecision) -> str:
        """
        Run a decision.

        Returns:
            User-facing confirmation text

        Raises:
            ToolInvocationError: when a tool call fails after its retry
            ValueError: for a ``none`` decision
        """
        logger.info(f"Executing {decision.action}: {decision.to_payload()}")

        if isinstance(decision, PlayDecision):
            return await self._play(decision)

        if isinstance(decision, QueueDecision):
            return await self._queue(decision)

        if isinstance(decision, VolumeSetDecision):
            await self.invoker.invoke_with_affinity("setVolume", {"volumePercent": decision.value})
            return f"Volume set to {decision.value}%."

        if isinstance(decision, VolumeAdjustDecision):
            await self.invoker.invoke_with_affinity("adjustVolume", {"adjustment": decision.adjustment})
            return "Volume increased." if decision.adjustment >= 0 else "Volume decreased."

        if isinstance(decision, TransportDecision):
            tool_name, message = _TRANSPORT_CALLS[decision.action]
            await self.invoker.invoke_with_affinity(tool_name, {})
            return message

        raise ValueError(f"Decision '{decision.action}' has no media command")

    async def _play(self, decision: PlayDecision) -> str:
        if not decision.search_query:
            await self.invoker.invoke_with_affinity("resumePlayback", {})
            return "Resuming Spotify playback."

        hit = await self._search(decision.search_query, decision.media_type)
        if hit is None:
            return f"I couldn't find anything on Spotify for \"{decision.search_query}\"."

        await self.invoker.invoke_with_affinity("playMusic", {
            "type": decision.media_type.value,
            "id": hit.id,
        })
        label = hit.describe()
        return f"Playing {label}." if label else "Playing selected Spotify result."

    async def _queue(self, decision: QueueDecision) -> str:
        hit = await self._search(decision.search_query, decision.media_type)
        if hit is None:
            return f"I couldn't find a Spotify track for \"{decision.search_query}\" to queue."

        await self.invoker.invoke_with_affinity("addToQueue", {
            "type": decision.media_type.value,
            "id": hit.id,
        })
        label = hit.describe()
        return f"Queued {label}." if label else "Track added to Spotify queue."
