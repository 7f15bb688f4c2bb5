"""
Orchestrator for the overlay assistant.

One line of user text becomes either a media-control command or a streamed
chat turn. Every submission starts a new epoch; continuations from earlier
epochs are dropped before they can touch visible state.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .conversation.reducer import ConversationReducer
from .conversation.streaming_consumer import StreamingConsumer
from .factory import ProviderFactory
from .interfaces import (
    HistorySinkInterface,
    LanguageModelInterface,
    MediaControlInterface,
    SessionProviderInterface
)
from .models.audio import AudioAction
from .models.data_models import ChatHistoryItem, ConversationItem
from .routing.intent_classifier import IntentClassifier, resolve_decision
from .routing.pattern_router import PatternRouter, looks_like_control_command
from .tools.media_commands import MediaCommandPlanner
from .tools.tool_invoker import ToolInvoker
from .utils.device_affinity import DeviceAffinityStore
from .utils.epoch import EpochTracker
from .utils.error_handling import (
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
    MediaServiceUnavailable,
    StreamingTransportError,
    ToolInvocationError,
    describe_error,
)
from .utils.event_bus import EventBus
from .utils.logging_config import get_logger, set_turn_epoch
from .utils.visual_state import VisualState, VisualStateDriver


logger = get_logger("orchestrator")


@dataclass
class SlashCommand:
    command: str
    description: str
    search_terms: List[str] = field(default_factory=list)


SLASH_COMMANDS = [
    SlashCommand("/history", "Show your most recent chats.", ["history", "chat", "past"]),
    SlashCommand("/clear-history", "Delete your saved chat history.", ["clear", "history", "delete", "reset"]),
    SlashCommand("/help", "List available commands.", ["help", "commands"]),
]


def match_slash_commands(query: str) -> List[SlashCommand]:
    """
    Filter slash commands for a partially typed prompt.

    Matches on the command name or any of its search terms.
    """
    normalized = (query or "").strip().lower()
    if not normalized.startswith("/"):
        return []
    needle = normalized[1:].strip()
    if not needle:
        return list(SLASH_COMMANDS)
    return [
        cmd for cmd in SLASH_COMMANDS
        if needle in cmd.command[1:] or any(needle in term for term in cmd.search_terms)
    ]


def _shorten(text: str, limit: int = 160) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit - 3].rstrip() + "..."


def _log_stream_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.warning(f"Chat stream task failed: {task.exception()}")


class Orchestrator:
    """
    Owns the visible conversation item, the prompt lock and the visual state.

    Features:
    - Epoch-guarded turn execution (latest request wins)
    - Pattern router raced with a model-assisted classifier
    - Media commands with automatic device recovery
    - Streamed chat responses scoped to the session
    """

    def __init__(self,
                 config: Dict[str, Any],
                 language_model: LanguageModelInterface,
                 media: MediaControlInterface,
                 history: Optional[HistorySinkInterface],
                 session: SessionProviderInterface,
                 affinity: Optional[DeviceAffinityStore] = None,
                 bus: Optional[EventBus] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.config = config

        turn = config.get('turn', {})
        self._unlock_delay = turn.get('unlock_delay_ms', 320) / 1000
        self._history_preview = turn.get('history_preview', 8)
        self._submit_amplitude = turn.get('submit_amplitude', 0.6)
        self._response_amplitude = turn.get('response_amplitude', 0.74)

        classifier_config = config.get('classifier', {})
        self._classifier_enabled = classifier_config.get('enabled', True)
        media_config = config.get('media_control', {}).get('config', {})
        visual_config = config.get('visual', {})

        # Collaborators
        self.language_model = language_model
        self.media = media
        self.history = history
        self.session = session

        # Core infrastructure
        self.error_handler = error_handler or ErrorHandler()
        self.bus = bus or EventBus()
        self.epochs = EpochTracker()
        self.router = PatternRouter()
        self.classifier = IntentClassifier(
            language_model,
            timeout_ms=classifier_config.get('timeout_ms', 4500),
            model=classifier_config.get('model'),
            error_handler=self.error_handler,
        )
        self.invoker = ToolInvoker(media, media_config.get('server_root', ''), affinity)
        self.planner = MediaCommandPlanner(self.invoker)
        self.reducer = ConversationReducer(history)
        self.visual = VisualStateDriver(
            tick_seconds=visual_config.get('tick_ms', 70) / 1000,
            initial_amplitude=visual_config.get('initial_amplitude', 0.09),
        )

        # Turn state
        self._locked = False
        self._turn_task: Optional[asyncio.Task] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._consumer: Optional[StreamingConsumer] = None
        self.is_initialized = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'Orchestrator':
        """Build an orchestrator with providers created by ``ProviderFactory``."""
        providers = ProviderFactory.create_all_providers(config)
        return cls(
            config,
            language_model=providers['language_model'],
            media=providers['media_control'],
            history=providers.get('history'),
            session=providers['session'],
            affinity=providers.get('device_affinity'),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Initialize the language model and start the visual driver."""
        ok = await self.language_model.initialize()
        if not ok:
            logger.warning("Language model provider failed to initialize; chat may be unavailable")
        self.visual.start()
        self.is_initialized = True
        return ok

    async def cleanup(self):
        """Abandon in-flight work and release provider resources."""
        self.epochs.begin_new_request()
        self._abandon_stream()
        if self._turn_task and not self._turn_task.done():
            self._turn_task.cancel()
            try:
                await self._turn_task
            except asyncio.CancelledError:
                pass
        await self.visual.stop()
        await self.classifier.shutdown()

        for name, provider in (("language model", self.language_model), ("media", self.media)):
            try:
                await provider.cleanup()
            except Exception as e:
                logger.warning(f"{name} cleanup error: {e}")
        self.is_initialized = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def current_item(self) -> Optional[ConversationItem]:
        return self.reducer.current

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def amplitude(self) -> float:
        return self.visual.amplitude

    @property
    def visual_state(self) -> VisualState:
        return self.visual.state

    def load_history(self) -> List[ChatHistoryItem]:
        return self.history.load() if self.history is not None else []

    def get_status(self) -> Dict[str, Any]:
        item = self.current_item
        return {
            'initialized': self.is_initialized,
            'epoch': self.epochs.current,
            'locked': self._locked,
            'visual_state': self.visual.state.value,
            'amplitude': round(self.visual.amplitude, 3),
            'current_item': item.to_dict() if item else None,
            'device_affinity': self.invoker.affinity.get(),
            'errors': self.error_handler.get_error_summary(),
        }

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def submit(self, text: str) -> Optional[asyncio.Task]:
        """
        Submit one line of user text.

        Returns:
            The turn task, or None when the text was rejected (empty or
            locked) or handled immediately as a slash command
        """
        value = (text or "").strip()
        if not value:
            return None
        if self._locked:
            logger.debug("Prompt locked; submission rejected")
            return None

        if value.startswith("/"):
            self.run_slash_command(value)
            return None

        epoch = self.epochs.begin_new_request()
        self._abandon_stream()
        item = self.reducer.begin(value)
        self._locked = True
        self.visual.bump(self._submit_amplitude)
        self.visual.set_state(VisualState.THINKING)
        logger.info(f"💬 {value}")

        self._turn_task = asyncio.get_running_loop().create_task(
            self._run_turn(epoch, item.id, value)
        )
        return self._turn_task

    def stop(self) -> None:
        """Stop the current response. Always allowed, even while locked."""
        self.epochs.begin_new_request()
        self._abandon_stream()
        item = self.reducer.current
        if item is not None and not item.is_completed:
            self.reducer.mark_stopped(item.id)
            logger.info("⏹️  Response stopped")
        self._locked = False
        self.visual.set_state(VisualState.IDLE)

    def clear_prompt(self) -> None:
        """Invalidate in-flight work and unlock the prompt."""
        self.epochs.begin_new_request()
        self._abandon_stream()
        self._locked = False

    def cycle_visual_state(self) -> VisualState:
        return self.visual.cycle()

    def notify_device_ready(self, device_id: str) -> None:
        """Remember the playback device reported by the player."""
        self.invoker.notify_device_ready(device_id)

    def notify_device_not_ready(self) -> None:
        self.invoker.notify_device_not_ready()

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    def run_slash_command(self, text: str) -> bool:
        """
        Execute a slash command as a system message.

        Returns:
            True if the command was recognized
        """
        command = text.strip().lower()
        handlers: Dict[str, Callable[[], str]] = {
            "/history": self._history_message,
            "/clear-history": self._clear_history_message,
            "/help": self._help_message,
        }
        handler = handlers.get(command)
        if handler is None:
            self._post_system(command, f"Unknown command `{command}`. Type /help to see what's available.")
            return False
        self._post_system(command, handler())
        return True

    def _post_system(self, prompt: str, text: str) -> None:
        self.clear_prompt()
        self.reducer.post_system(prompt, text)
        self.visual.set_state(VisualState.IDLE)

    def _history_message(self) -> str:
        items = self.load_history()[-self._history_preview:]
        if not items:
            return "No chat history yet."
        lines = [f"Last {len(items)} chats:"]
        for index, item in enumerate(reversed(items), start=1):
            lines.append(f"{index}. {_shorten(item.prompt, 80)}")
            lines.append(f"   {_shorten(item.response)}")
        return "\n".join(lines)

    def _clear_history_message(self) -> str:
        if self.history is None:
            return "Chat history is not enabled."
        self.history.clear()
        return "Chat history cleared."

    def _help_message(self) -> str:
        return "\n".join(f"{cmd.command}  {cmd.description}" for cmd in SLASH_COMMANDS)

    # ------------------------------------------------------------------
    # Turn execution
    # ------------------------------------------------------------------

    async def _run_turn(self, epoch: int, item_id: str, text: str):
        set_turn_epoch(epoch)
        try:
            response = await self._run_control(epoch, text)
            if not self.epochs.is_current(epoch):
                return
            if response is None:
                response = await self._run_chat(epoch, item_id, text)
            self._finish(epoch, item_id, response)

        except ToolInvocationError as e:
            self._fail(epoch, item_id, "tools", e, "Media command failed.")
        except MediaServiceUnavailable as e:
            self._fail(epoch, item_id, "media", e, "Media service is unavailable.")
        except StreamingTransportError as e:
            self._fail(epoch, item_id, "streaming", e, "Failed to get response from model.")
        except asyncio.CancelledError:
            if self.epochs.is_current(epoch):
                self.stop()
            raise
        except Exception as e:
            logger.exception(f"Unexpected turn failure: {e}")
            self._fail(epoch, item_id, "orchestrator", e, "Something went wrong.")

    async def _run_control(self, epoch: int, text: str) -> Optional[str]:
        """Run the control path. Returns None when the turn belongs to chat."""
        intent = self.router.classify(text)
        if not looks_like_control_command(text, intent):
            return None

        model_decision = None
        if self._classifier_enabled:
            model_decision = await self.classifier.classify(text, hint=intent)
            if not self.epochs.is_current(epoch):
                return None

        decision = resolve_decision(model_decision, intent)
        if decision is None or decision.action == AudioAction.NONE.value:
            logger.info("No media action resolved; answering as chat")
            return None

        source = "model" if model_decision is not None else "router"
        logger.info(f"🎵 {decision.action} ({source})")
        return await self.planner.execute(decision)

    async def _run_chat(self, epoch: int, item_id: str, text: str) -> str:
        session_id = self.session.current_session_id()
        consumer = StreamingConsumer(
            self.bus,
            session_id,
            on_token=lambda chunk: self._on_token(epoch, item_id, chunk),
        )
        # Subscribe before the stream starts so no token is missed
        consumer.attach()
        self._consumer = consumer

        stream_task = asyncio.get_running_loop().create_task(
            self.language_model.stream_chat(session_id, text, self.bus)
        )
        stream_task.add_done_callback(_log_stream_failure)
        self._stream_task = stream_task
        wait_task = asyncio.get_running_loop().create_task(consumer.wait())

        try:
            await asyncio.wait({stream_task, wait_task}, return_when=asyncio.FIRST_COMPLETED)
            if not wait_task.done() and not consumer.finished:
                error = None
                if stream_task.done() and not stream_task.cancelled():
                    error = stream_task.exception()
                raise StreamingTransportError(
                    describe_error(error, "Response stream ended before completion.")
                )
            return await wait_task
        finally:
            consumer.detach()
            if not wait_task.done():
                wait_task.cancel()
            if self._consumer is consumer:
                self._consumer = None
            if self._stream_task is stream_task and stream_task.done():
                self._stream_task = None

    def _on_token(self, epoch: int, item_id: str, chunk: str) -> None:
        if not self.epochs.is_current(epoch):
            return
        item = self.reducer.current
        first = item is not None and item.id == item_id and not item.response
        if self.reducer.append_token(item_id, chunk) and first:
            self.visual.bump(self._response_amplitude)
            self.visual.set_state(VisualState.SPEAKING)

    def _abandon_stream(self) -> None:
        """Tear down the previous turn's stream subscription and transport."""
        if self._consumer is not None:
            self._consumer.detach()
            self._consumer = None
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()
        self._stream_task = None

    def _finish(self, epoch: int, item_id: str, response: str) -> None:
        if not self.epochs.is_current(epoch):
            return
        if not self.reducer.complete(item_id, response):
            return
        self.visual.bump(self._response_amplitude)
        self.visual.set_state(VisualState.SPEAKING)

        def unlock():
            self._locked = False
            self.visual.set_state(VisualState.IDLE)

        self.epochs.schedule(epoch, self._unlock_delay, unlock)

    def _fail(self, epoch: int, item_id: str, component: str, error: Exception, fallback: str) -> None:
        if not self.epochs.is_current(epoch):
            logger.debug(f"Dropping {component} error from stale epoch {epoch}: {error}")
            return
        self.error_handler.handle_error(ComponentError(
            component=component,
            severity=ErrorSeverity.RECOVERABLE,
            message=describe_error(error, fallback),
            exception=error,
        ))
        self.reducer.complete(item_id, describe_error(error, fallback), archive=False)
        self._locked = False
        self.visual.set_state(VisualState.IDLE)
