"""
Logging for the overlay assistant core.

Each component logs to a child of the ``overlay_assistant`` logger. Records
emitted while a turn is running carry that turn's epoch, so interleaved output
from superseded turns can be told apart.
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional


ROOT_LOGGER_NAME = 'overlay_assistant'

# Libraries that log every HTTP request or JSON-RPC frame at INFO
NOISY_LIBRARIES = ('httpx', 'openai', 'mcp', 'aiohttp.access')

_turn_epoch: ContextVar[Optional[int]] = ContextVar('turn_epoch', default=None)


def set_turn_epoch(epoch: Optional[int]) -> None:
    """Tag log records from the current task with ``epoch``."""
    _turn_epoch.set(epoch)


class StructuredFormatter(logging.Formatter):
    """Renders ``[time] [level] [component] #epoch message``."""

    LEVEL_STYLES = {
        # level: (ansi colour, emoji)
        'DEBUG': ('\033[36m', '🔍'),
        'INFO': ('\033[32m', 'ℹ️ '),
        'WARNING': ('\033[33m', '⚠️ '),
        'ERROR': ('\033[31m', '❌'),
        'CRITICAL': ('\033[35m', '💀'),
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()
        self.use_emojis = use_emojis

    def _level(self, name: str) -> str:
        colour, emoji = self.LEVEL_STYLES.get(name, ('', ''))
        text = f"{emoji} {name}" if self.use_emojis and emoji else name
        text = f"{text:10}"
        if self.use_colors and colour:
            text = f"{colour}{text}{self.RESET}"
        return text

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        component = record.name.rpartition('.')[2] if record.name != ROOT_LOGGER_NAME else 'core'
        epoch = getattr(record, 'epoch', None)

        line = f"[{stamp}] [{self._level(record.levelname)}] [{component:14}]"
        if epoch is not None:
            line += f" #{epoch}"
        line += f" {record.getMessage()}"

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


class ComponentLogger:
    """
    Thin wrapper over a component's child logger.

    Adds the running turn's epoch to every record.
    """

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(ROOT_LOGGER_NAME).getChild(component)

    def _log(self, level: int, msg: str, exc_info: bool = False):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, msg, exc_info=exc_info, extra={'epoch': _turn_epoch.get()})

    def debug(self, msg: str):
        self._log(logging.DEBUG, msg)

    def info(self, msg: str):
        self._log(logging.INFO, msg)

    def warning(self, msg: str):
        self._log(logging.WARNING, msg)

    def error(self, msg: str):
        self._log(logging.ERROR, msg)

    def exception(self, msg: str):
        self._log(logging.ERROR, msg, exc_info=True)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    component_levels: Optional[Dict[str, str]] = None
) -> logging.Logger:
    """
    Configure console (and optional file) output for the package.

    Args:
        level: Package log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Also write plain records to this file
        use_colors: ANSI colours on a TTY console
        use_emojis: Emoji level markers on the console
        component_levels: Per-component overrides, e.g. ``{"router": "DEBUG"}``

    Returns:
        The package root logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper()))
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis))
    root.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(StructuredFormatter(use_colors=False, use_emojis=False))
        root.addHandler(file_handler)

    for component, component_level in (component_levels or {}).items():
        root.getChild(component).setLevel(getattr(logging, component_level.upper()))

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(component: str) -> ComponentLogger:
    """Logger for one component (e.g. ``"router"``, ``"tools"``)."""
    return ComponentLogger(component)
