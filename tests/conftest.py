"""
Pytest configuration and shared fixtures for overlay assistant tests.
"""

import pytest
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from overlay_assistant.interfaces import LanguageModelInterface, MediaControlInterface
from overlay_assistant.models.data_models import DoneEvent, StreamErrorEvent, TokenEvent
from overlay_assistant.utils.event_bus import DONE_EVENT, ERROR_EVENT, TOKEN_EVENT


SERVER_ROOT = "/srv/spotify-mcp-server"


def tool_result(text: str, is_error: bool = False) -> str:
    """Serialize a tool result the way the MCP client returns it."""
    payload = {"content": [{"type": "text", "text": text}]}
    if is_error:
        payload["isError"] = True
    return json.dumps(payload)


class FakeLanguageModel(LanguageModelInterface):
    """
    Scriptable language model.

    ``complete`` returns ``completion`` after ``complete_delay`` seconds.
    ``stream_chat`` publishes ``chunks`` then a done event, or an error
    event when ``stream_error`` is set. With ``hold_stream`` set the stream
    publishes its first chunk and then waits on ``release``.
    """

    def __init__(self,
                 completion: str = '{"action": "none"}',
                 chunks: Optional[List[str]] = None,
                 complete_delay: float = 0.0):
        self.completion = completion
        self.chunks = ["Hello", " world"] if chunks is None else chunks
        self.complete_delay = complete_delay
        self.complete_error: Optional[Exception] = None
        self.stream_error: Optional[str] = None
        self.skip_done = False
        self.hold_stream = False
        self.release = asyncio.Event()
        self.prompts: List[str] = []
        self.chat_prompts: List[str] = []
        self.cleaned_up = False

    async def initialize(self) -> bool:
        return True

    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if self.complete_delay:
            await asyncio.sleep(self.complete_delay)
        if self.complete_error is not None:
            raise self.complete_error
        return self.completion

    async def stream_chat(self, session_id, prompt, bus, model=None) -> None:
        self.chat_prompts.append(prompt)
        for index, chunk in enumerate(self.chunks):
            bus.publish(TOKEN_EVENT, TokenEvent(session_id=session_id, text=chunk))
            if index == 0 and self.hold_stream:
                await self.release.wait()
            await asyncio.sleep(0)
        if self.stream_error is not None:
            bus.publish(ERROR_EVENT, StreamErrorEvent(session_id=session_id, message=self.stream_error))
            return
        if not self.skip_done:
            bus.publish(DONE_EVENT, DoneEvent(session_id=session_id))

    async def cleanup(self) -> None:
        self.cleaned_up = True


class FakeMedia(MediaControlInterface):
    """Media service whose ``call_tool`` is an ``AsyncMock``."""

    def __init__(self, *results: str):
        self.ensure_running = AsyncMock()
        self.call_tool = AsyncMock(side_effect=list(results) if results else None,
                                   return_value=tool_result("ok"))
        self.cleanup = AsyncMock()

    async def ensure_running(self, server_root: str) -> None:  # replaced in __init__
        pass

    async def call_tool(self, server_root, tool_name, args) -> str:  # replaced in __init__
        return ""

    async def cleanup(self) -> None:  # replaced in __init__
        pass


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def language_model():
    return FakeLanguageModel()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def core_config():
    """Minimal orchestrator configuration with short timers."""
    return {
        'media_control': {'provider': 'mcp', 'config': {'server_root': SERVER_ROOT}},
        'classifier': {'enabled': False, 'timeout_ms': 200, 'model': None},
        'turn': {
            'unlock_delay_ms': 10,
            'history_preview': 8,
            'submit_amplitude': 0.6,
            'response_amplitude': 0.74,
        },
        'visual': {'tick_ms': 70, 'initial_amplitude': 0.09},
    }
