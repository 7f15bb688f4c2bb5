"""
History sinks.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from ...interfaces.history import HistorySinkInterface
from ...models.data_models import ChatHistoryItem
from ...utils.logging_config import get_logger


logger = get_logger("history")

HISTORY_LIMIT = 120


class JsonHistorySink(HistorySinkInterface):
    """
    Chat history kept in a JSON array file, oldest first.
    
    Unreadable files and malformed records are skipped, never raised.
    """
    
    def __init__(self, config: Dict[str, Any]):
        self.path = Path(config.get('path', '~/.overlay_assistant/chat_history.json')).expanduser()
        self.limit = int(config.get('limit', HISTORY_LIMIT))
    
    def load(self) -> List[ChatHistoryItem]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            return []
        if not isinstance(data, list):
            return []
        
        items = []
        for record in data:
            if isinstance(record, dict):
                item = ChatHistoryItem.from_dict(record)
                if item is not None:
                    items.append(item)
        return items
    
    def append(self, item: ChatHistoryItem) -> None:
        items = self.load()
        items.append(item)
        self._write(items[-self.limit:])
    
    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("Chat history cleared")
    
    def _write(self, items: List[ChatHistoryItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        tmp_path.write_text(json.dumps([i.to_dict() for i in items], indent=2), encoding='utf-8')
        tmp_path.replace(self.path)


class InMemoryHistorySink(HistorySinkInterface):
    """Process-local history, used by the test preset."""
    
    def __init__(self, config: Dict[str, Any]):
        self.limit = int(config.get('limit', HISTORY_LIMIT))
        self._items: List[ChatHistoryItem] = []
    
    def load(self) -> List[ChatHistoryItem]:
        return list(self._items)
    
    def append(self, item: ChatHistoryItem) -> None:
        self._items.append(item)
        self._items = self._items[-self.limit:]
    
    def clear(self) -> None:
        self._items = []
