"""
Integration tests for the orchestrator turn flow.

Covers:
1. Chat turns streamed through the event bus
2. Control turns routed to the media service
3. Failure handling (tool errors, stream errors, unavailable service)
4. Stop, supersession and the prompt lock
5. Slash commands
"""

import pytest
import asyncio

from overlay_assistant.conversation.reducer import STOPPED_TEXT
from overlay_assistant.models.data_models import TokenEvent
from overlay_assistant.orchestrator import Orchestrator, SLASH_COMMANDS, match_slash_commands
from overlay_assistant.providers.history import InMemoryHistorySink
from overlay_assistant.providers.session import LocalSessionProvider
from overlay_assistant.utils.device_affinity import InMemoryDeviceAffinityStore
from overlay_assistant.utils.error_handling import MediaServiceUnavailable
from overlay_assistant.utils.event_bus import TOKEN_EVENT
from overlay_assistant.utils.visual_state import VisualState

from conftest import FakeLanguageModel, FakeMedia, tool_result


SESSION_ID = "session-1"


@pytest.fixture
def history():
    return InMemoryHistorySink({})


@pytest.fixture
def make_orchestrator(core_config, history):
    """Build an orchestrator around fakes."""
    def build(language_model=None, media=None, classifier=False, affinity=None):
        config = dict(core_config)
        config['classifier'] = dict(core_config['classifier'], enabled=classifier)
        orchestrator = Orchestrator(
            config,
            language_model=language_model or FakeLanguageModel(),
            media=media or FakeMedia(),
            history=history,
            session=LocalSessionProvider({'session_id': SESSION_ID}),
            affinity=affinity,
        )
        return orchestrator

    return build


async def wait_until(predicate, timeout: float = 1.0):
    """Poll until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class TestChatTurn:

    @pytest.mark.asyncio
    async def test_streamed_response_completes_and_archives(self, make_orchestrator, history):
        language_model = FakeLanguageModel(chunks=["Why did", " the chicken", " cross?"])
        orchestrator = make_orchestrator(language_model)

        task = orchestrator.submit("tell me a joke")
        assert orchestrator.is_locked
        assert orchestrator.visual_state == VisualState.THINKING
        assert orchestrator.amplitude == pytest.approx(0.6)
        await task

        item = orchestrator.current_item
        assert item.is_completed
        assert item.prompt == "tell me a joke"
        assert item.response == "Why did the chicken cross?"
        assert orchestrator.visual_state == VisualState.SPEAKING
        assert language_model.chat_prompts == ["tell me a joke"]
        assert [h.response for h in history.load()] == ["Why did the chicken cross?"]

    @pytest.mark.asyncio
    async def test_unlocks_after_delay(self, make_orchestrator):
        orchestrator = make_orchestrator()

        await orchestrator.submit("hello")
        assert orchestrator.is_locked

        await wait_until(lambda: not orchestrator.is_locked)
        assert orchestrator.visual_state == VisualState.IDLE

    @pytest.mark.asyncio
    async def test_stream_unsubscribes_after_done(self, make_orchestrator):
        orchestrator = make_orchestrator()

        await orchestrator.submit("hello")

        assert orchestrator.bus.subscriber_count(TOKEN_EVENT) == 0

    @pytest.mark.asyncio
    async def test_empty_stream_gets_placeholder(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeLanguageModel(chunks=[]))

        await orchestrator.submit("hello")

        assert orchestrator.current_item.response == "No response from model."

    @pytest.mark.asyncio
    async def test_stream_error_completes_item(self, make_orchestrator, history):
        language_model = FakeLanguageModel(chunks=["partial"])
        language_model.stream_error = "connection reset"
        orchestrator = make_orchestrator(language_model)

        await orchestrator.submit("hello")

        item = orchestrator.current_item
        assert item.is_completed
        assert item.response == "connection reset"
        assert not orchestrator.is_locked
        assert orchestrator.visual_state == VisualState.IDLE
        assert history.load() == []
        assert orchestrator.error_handler.get_error_history("streaming")

    @pytest.mark.asyncio
    async def test_stream_ending_without_done(self, make_orchestrator):
        language_model = FakeLanguageModel()
        language_model.skip_done = True
        orchestrator = make_orchestrator(language_model)

        await orchestrator.submit("hello")

        assert orchestrator.current_item.response == "Response stream ended before completion."
        assert not orchestrator.is_locked


class TestControlTurn:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,tool_name,response", [
        ("pause", "pausePlayback", "Pausing Spotify playback."),
        ("stop the music", "pausePlayback", "Stopping Spotify playback."),
        ("next song", "skipToNext", "Skipping to the next Spotify track."),
        ("go back", "skipToPrevious", "Going back to the previous Spotify track."),
        ("volume 40", "setVolume", "Volume set to 40%."),
        ("volume up", "adjustVolume", "Volume increased."),
        ("resume", "resumePlayback", "Resuming Spotify playback."),
    ])
    async def test_router_only(self, make_orchestrator, history, text, tool_name, response):
        media = FakeMedia()
        language_model = FakeLanguageModel()
        orchestrator = make_orchestrator(language_model, media)

        await orchestrator.submit(text)

        assert orchestrator.current_item.response == response
        assert media.call_tool.await_args.args[1] == tool_name
        assert language_model.chat_prompts == []
        assert len(history.load()) == 1

    @pytest.mark.asyncio
    async def test_play_search(self, make_orchestrator):
        media = FakeMedia(
            tool_result('1. "Starboy" by The Weeknd (3:50) - ID: 7MXVkk9YMctZqd1Srtv4MB'),
            tool_result("Started playback"),
        )
        orchestrator = make_orchestrator(media=media)

        await orchestrator.submit("play the weeknd")

        assert orchestrator.current_item.response == 'Playing "Starboy" by The Weeknd.'
        search_args = media.call_tool.await_args_list[0].args[2]
        assert search_args["query"] == "the weeknd"

    @pytest.mark.asyncio
    async def test_model_decision_wins(self, make_orchestrator):
        media = FakeMedia()
        language_model = FakeLanguageModel(completion='{"action": "volumeSet", "value": 25}')
        orchestrator = make_orchestrator(language_model, media, classifier=True)

        await orchestrator.submit("volume 40")

        assert orchestrator.current_item.response == "Volume set to 25%."
        assert "A keyword matcher suggested" in language_model.prompts[0]

    @pytest.mark.asyncio
    async def test_classifier_timeout_falls_back_to_router(self, make_orchestrator):
        language_model = FakeLanguageModel(completion='{"action": "stop"}', complete_delay=1.0)
        orchestrator = make_orchestrator(language_model, classifier=True)
        orchestrator.classifier.timeout_ms = 20

        await orchestrator.submit("pause")

        assert orchestrator.current_item.response == "Pausing Spotify playback."
        await orchestrator.classifier.shutdown()

    @pytest.mark.asyncio
    async def test_none_decision_falls_through_to_chat(self, make_orchestrator):
        media = FakeMedia()
        language_model = FakeLanguageModel(completion='{"action": "none"}', chunks=["It came out in 1982."])
        orchestrator = make_orchestrator(language_model, media, classifier=True)

        await orchestrator.submit("when did the album Thriller come out")

        assert orchestrator.current_item.response == "It came out in 1982."
        media.call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tool_failure_completes_item(self, make_orchestrator, history):
        media = FakeMedia(tool_result("No active device", is_error=True))
        orchestrator = make_orchestrator(media=media)

        await orchestrator.submit("pause")

        item = orchestrator.current_item
        assert item.response == "No active device"
        assert not orchestrator.is_locked
        assert history.load() == []
        assert orchestrator.error_handler.get_error_history("tools")

    @pytest.mark.asyncio
    async def test_device_recovery(self, make_orchestrator):
        media = FakeMedia(tool_result("Device not found", is_error=True), tool_result("Paused"))
        affinity = InMemoryDeviceAffinityStore("desk")
        orchestrator = make_orchestrator(media=media, affinity=affinity)

        await orchestrator.submit("pause")

        assert orchestrator.current_item.response == "Pausing Spotify playback."
        assert affinity.get() is None
        assert media.call_tool.await_count == 2

    @pytest.mark.asyncio
    async def test_reported_device_is_used_for_control(self, make_orchestrator):
        media = FakeMedia()
        affinity = InMemoryDeviceAffinityStore()
        orchestrator = make_orchestrator(media=media, affinity=affinity)

        orchestrator.notify_device_ready(" kitchen ")
        await orchestrator.submit("pause")

        assert affinity.get() == "kitchen"
        assert media.call_tool.await_args.args[2] == {"deviceId": "kitchen"}

        orchestrator.notify_device_not_ready()

        assert orchestrator.get_status()['device_affinity'] is None

    @pytest.mark.asyncio
    async def test_media_service_unavailable(self, make_orchestrator):
        media = FakeMedia()
        media.ensure_running.side_effect = MediaServiceUnavailable("")
        orchestrator = make_orchestrator(media=media)

        await orchestrator.submit("pause")

        assert orchestrator.current_item.response == "Media service is unavailable."
        assert orchestrator.error_handler.get_error_history("media")


class TestStopAndSupersession:

    @pytest.mark.asyncio
    async def test_stop_during_stream(self, make_orchestrator, history):
        language_model = FakeLanguageModel(chunks=["first", " second"])
        language_model.hold_stream = True
        orchestrator = make_orchestrator(language_model)

        task = orchestrator.submit("tell me a story")
        await wait_until(lambda: orchestrator.current_item.response == "first")
        assert orchestrator.visual_state == VisualState.SPEAKING

        orchestrator.stop()
        await task

        item = orchestrator.current_item
        assert item.response == STOPPED_TEXT
        assert item.is_completed
        assert not orchestrator.is_locked
        assert orchestrator.visual_state == VisualState.IDLE
        assert orchestrator.bus.subscriber_count(TOKEN_EVENT) == 0
        assert history.load() == []

    @pytest.mark.asyncio
    async def test_later_request_wins(self, make_orchestrator):
        language_model = FakeLanguageModel(chunks=["old"])
        language_model.hold_stream = True
        orchestrator = make_orchestrator(language_model)

        first = orchestrator.submit("first question")
        await wait_until(lambda: orchestrator.current_item.response == "old")
        orchestrator.stop()

        language_model.hold_stream = False
        language_model.chunks = ["new answer"]
        second = orchestrator.submit("second question")
        await asyncio.gather(first, second)

        # A straggling token for the same session lands nowhere
        orchestrator.bus.publish(TOKEN_EVENT, TokenEvent(SESSION_ID, " late"))

        item = orchestrator.current_item
        assert item.prompt == "second question"
        assert item.response == "new answer"

    @pytest.mark.asyncio
    async def test_stale_control_result_is_dropped(self, make_orchestrator):
        media = FakeMedia()
        language_model = FakeLanguageModel(completion='{"action": "pause"}', complete_delay=0.05)
        orchestrator = make_orchestrator(language_model, media, classifier=True)

        first = orchestrator.submit("pause")
        orchestrator.stop()
        assert orchestrator.current_item.response == STOPPED_TEXT

        second = orchestrator.submit("tell me a joke")
        await asyncio.gather(first, second)

        media.call_tool.assert_not_awaited()
        assert orchestrator.current_item.prompt == "tell me a joke"
        assert orchestrator.current_item.response == "Hello world"

    @pytest.mark.asyncio
    async def test_locked_prompt_rejects_submit(self, make_orchestrator):
        language_model = FakeLanguageModel()
        language_model.hold_stream = True
        orchestrator = make_orchestrator(language_model)

        task = orchestrator.submit("first")
        assert orchestrator.submit("second") is None
        assert orchestrator.current_item.prompt == "first"

        orchestrator.stop()
        await task

    @pytest.mark.asyncio
    async def test_unlock_timer_does_not_fire_after_new_request(self, make_orchestrator):
        orchestrator = make_orchestrator()
        orchestrator._unlock_delay = 0.05

        await orchestrator.submit("hello")
        assert orchestrator.epochs.has_pending

        orchestrator.clear_prompt()
        assert not orchestrator.epochs.has_pending
        assert not orchestrator.is_locked

    @pytest.mark.asyncio
    async def test_empty_submit_is_ignored(self, make_orchestrator):
        orchestrator = make_orchestrator()

        assert orchestrator.submit("   ") is None
        assert orchestrator.current_item is None

    @pytest.mark.asyncio
    async def test_cleanup(self, make_orchestrator):
        language_model = FakeLanguageModel()
        language_model.hold_stream = True
        media = FakeMedia()
        orchestrator = make_orchestrator(language_model, media)
        await orchestrator.initialize()

        orchestrator.submit("hello")
        await asyncio.sleep(0.01)
        await orchestrator.cleanup()

        assert language_model.cleaned_up
        media.cleanup.assert_awaited_once()
        assert not orchestrator.is_initialized


class TestSlashCommands:

    @pytest.mark.asyncio
    async def test_help(self, make_orchestrator, history):
        orchestrator = make_orchestrator()

        assert orchestrator.submit("/help") is None

        item = orchestrator.current_item
        assert item.is_completed
        assert item.prompt == "/help"
        for command in SLASH_COMMANDS:
            assert command.command in item.response
        assert history.load() == []
        assert not orchestrator.is_locked

    @pytest.mark.asyncio
    async def test_history_and_clear(self, make_orchestrator, history):
        orchestrator = make_orchestrator()
        await orchestrator.submit("hello")

        orchestrator.clear_prompt()
        orchestrator.submit("/history")
        assert "Last 1 chats:" in orchestrator.current_item.response
        assert "hello" in orchestrator.current_item.response

        orchestrator.submit("/clear-history")
        assert orchestrator.current_item.response == "Chat history cleared."
        assert history.load() == []

        orchestrator.submit("/history")
        assert orchestrator.current_item.response == "No chat history yet."

    @pytest.mark.asyncio
    async def test_unknown_command(self, make_orchestrator):
        orchestrator = make_orchestrator()

        assert orchestrator.run_slash_command("/dance") is False
        assert orchestrator.current_item.response == (
            "Unknown command `/dance`. Type /help to see what's available."
        )

    def test_match_slash_commands(self):
        assert match_slash_commands("/") == SLASH_COMMANDS
        assert [c.command for c in match_slash_commands("/hist")] == ["/history", "/clear-history"]
        assert match_slash_commands("hello") == []


class TestStatus:

    @pytest.mark.asyncio
    async def test_get_status(self, make_orchestrator):
        orchestrator = make_orchestrator(affinity=InMemoryDeviceAffinityStore("desk"))
        await orchestrator.submit("hello")

        status = orchestrator.get_status()

        assert status['locked'] is True
        assert status['current_item']['status'] == "completed"
        assert status['device_affinity'] == "desk"
        assert status['errors']['total_errors'] == 0

    @pytest.mark.asyncio
    async def test_cycle_visual_state(self, make_orchestrator):
        orchestrator = make_orchestrator()

        assert orchestrator.cycle_visual_state() == VisualState.LISTENING
