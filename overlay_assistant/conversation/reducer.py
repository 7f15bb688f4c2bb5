"""
Single-slot conversation reducer.

Owns the one visible ``ConversationItem``. Items are created thinking,
receive streamed chunks while thinking, and complete exactly once.
"""

from typing import Optional

from ..interfaces.history import HistorySinkInterface
from ..models.data_models import ChatHistoryItem, ConversationItem, ConversationStatus
from ..utils.logging_config import get_logger


logger = get_logger("reducer")

STOPPED_TEXT = "Response stopped."
EMPTY_RESPONSE_TEXT = "No response from model."


class ConversationReducer:
    """Applies turn transitions to the visible item and archives completed turns."""

    def __init__(self, history: Optional[HistorySinkInterface] = None):
        self.history = history
        self._item: Optional[ConversationItem] = None

    @property
    def current(self) -> Optional[ConversationItem]:
        return self._item

    def _live(self, item_id: str) -> Optional[ConversationItem]:
        item = self._item
        if item is None or item.id != item_id or item.is_completed:
            return None
        return item

    def begin(self, prompt: str) -> ConversationItem:
        """Replace the visible item with a new thinking item."""
        if self._item is not None and not self._item.is_completed:
            logger.debug(f"Discarding unfinished item {self._item.id}")
        self._item = ConversationItem(prompt=prompt)
        return self._item

    def append_token(self, item_id: str, chunk: str) -> bool:
        item = self._live(item_id)
        if item is None or not chunk:
            return False
        item.response += chunk
        return True

    def complete(self, item_id: str, final_text: Optional[str] = None, archive: bool = True) -> bool:
        """
        Complete the item once.

        Args:
            item_id: Item to complete; ignored unless it is the visible item
            final_text: Replaces the accumulated response when given
            archive: Append the finished turn to history

        Returns:
            True if this call performed the transition, False for repeats
        """
        item = self._live(item_id)
        if item is None:
            return False

        text = item.response if final_text is None else final_text
        item.response = text.strip() or EMPTY_RESPONSE_TEXT
        item.status = ConversationStatus.COMPLETED

        if archive and self.history is not None:
            self.history.append(ChatHistoryItem(
                id=item.id,
                prompt=item.prompt,
                response=item.response,
            ))
        return True

    def mark_stopped(self, item_id: Optional[str] = None) -> bool:
        """Complete the thinking item with the stopped text, without archiving it."""
        if item_id is None:
            item_id = self._item.id if self._item is not None else ""
        return self.complete(item_id, STOPPED_TEXT, archive=False)

    def post_system(self, prompt: str, text: str) -> ConversationItem:
        """Show a completed system-generated item that never reaches history."""
        item = self.begin(prompt)
        self.complete(item.id, text, archive=False)
        return item
