"""
Local session provider.
"""

import json
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from ...interfaces.session import SessionProviderInterface
from ...utils.logging_config import get_logger


logger = get_logger("session")


class LocalSessionProvider(SessionProviderInterface):
    """
    Single local session identified by a uuid4.
    
    With a ``path`` configured, the id survives restarts.
    """
    
    def __init__(self, config: Dict[str, Any]):
        path = config.get('path')
        self.path: Optional[Path] = Path(path).expanduser() if path else None
        self._session_id = config.get('session_id') or self._load() or self._create()
    
    def _load(self) -> Optional[str]:
        if self.path is None or not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None
        value = data.get('sessionId') if isinstance(data, dict) else None
        return value if isinstance(value, str) and value else None
    
    def _create(self) -> str:
        session_id = str(uuid.uuid4())
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({'sessionId': session_id}), encoding='utf-8')
        logger.debug(f"New session {session_id}")
        return session_id
    
    def current_session_id(self) -> str:
        return self._session_id
    
    def new_session(self) -> str:
        """Start a fresh session and return its id."""
        self._session_id = self._create()
        return self._session_id
