"""
Per-turn consumer of streamed chat events.

Attaches to the event bus for one session, accumulates tokens and resolves
when the session's ``done`` event arrives. Subscriptions are torn down the
moment the turn finishes, fails or is abandoned.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from ..models.data_models import DoneEvent, StreamErrorEvent, TokenEvent
from ..utils.error_handling import StreamingTransportError
from ..utils.event_bus import DONE_EVENT, ERROR_EVENT, TOKEN_EVENT, EventBus, Subscription
from ..utils.logging_config import get_logger


logger = get_logger("streaming")


class StreamState(Enum):
    """Lifecycle of one streamed turn."""
    AWAITING_SESSION = "awaiting_session"
    STREAMING = "streaming"
    COMPLETED = "completed"
    UNSUBSCRIBED = "unsubscribed"


class StreamingConsumer:
    """
    Collects the streamed response for a single session.

    Args:
        bus: Event bus the language model publishes on
        session_id: Only events tagged with this id are consumed
        on_token: Called with each chunk while streaming
    """

    def __init__(self,
                 bus: EventBus,
                 session_id: str,
                 on_token: Optional[Callable[[str], None]] = None):
        self.bus = bus
        self.session_id = session_id
        self.on_token = on_token
        self.state = StreamState.AWAITING_SESSION
        self._chunks: List[str] = []
        self._subscriptions: List[Subscription] = []
        self._result: Optional[asyncio.Future] = None

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def is_attached(self) -> bool:
        return bool(self._subscriptions)

    @property
    def finished(self) -> bool:
        """True once a done or error event for the session has been seen."""
        return self._result is not None and self._result.done()

    def attach(self) -> None:
        """Subscribe to token, done and error events. Call before the stream starts."""
        if self._result is not None:
            return
        self._result = asyncio.get_running_loop().create_future()
        self._subscriptions = [
            self.bus.subscribe(TOKEN_EVENT, self._on_token),
            self.bus.subscribe(DONE_EVENT, self._on_done),
            self.bus.subscribe(ERROR_EVENT, self._on_error),
        ]
        logger.debug(f"Attached to session {self.session_id}")

    def detach(self) -> None:
        """Drop every subscription. Safe to call repeatedly."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        if self._subscriptions:
            logger.debug(f"Detached from session {self.session_id}")
        self._subscriptions = []
        self.state = StreamState.UNSUBSCRIBED

    def _on_token(self, event: TokenEvent) -> None:
        if event.session_id != self.session_id:
            return
        if self.state not in (StreamState.AWAITING_SESSION, StreamState.STREAMING):
            return
        if self.state == StreamState.AWAITING_SESSION:
            self.state = StreamState.STREAMING
        if not event.text:
            return
        self._chunks.append(event.text)
        if self.on_token:
            self.on_token(event.text)

    def _on_done(self, event: DoneEvent) -> None:
        if event.session_id != self.session_id:
            return
        self.state = StreamState.COMPLETED
        self.detach()
        if self._result is not None and not self._result.done():
            self._result.set_result(self.text)

    def _on_error(self, event: StreamErrorEvent) -> None:
        if event.session_id != self.session_id:
            return
        self.detach()
        if self._result is not None and not self._result.done():
            self._result.set_exception(StreamingTransportError(event.message))

    async def wait(self) -> str:
        """
        Wait for the session's done event.

        Returns:
            The accumulated response text

        Raises:
            StreamingTransportError: if an error event arrives for the session
        """
        if self._result is None:
            raise RuntimeError("StreamingConsumer.wait() called before attach()")
        return await self._result
