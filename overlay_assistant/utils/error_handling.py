"""
Failure types for the orchestration core, and a bounded record of handled failures.

No failure here ends the process. The orchestrator completes the visible item
with a message and records the failure with an ``ErrorHandler``.
"""

import asyncio
import time
import traceback
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple, Type, TypeVar

from .logging_config import get_logger


logger = get_logger("errors")


class OverlayError(Exception):
    """Root of every failure raised by the core."""


class ClassificationTimeout(OverlayError):
    """The classifier model lost its race against the timer."""


class ClassificationParseError(OverlayError):
    """No decision object could be read from the classifier reply."""


class ToolInvocationError(OverlayError):
    """A media tool call came back as an error.

    ``retried`` is set once the device-less retry has also failed.
    """

    def __init__(self, message: str, tool_name: str = "", retried: bool = False):
        super().__init__(message)
        self.tool_name = tool_name
        self.retried = retried


ToolError = ToolInvocationError


class StreamingTransportError(OverlayError):
    """The chat stream broke off before its done event."""


class MediaServiceUnavailable(OverlayError):
    """The media server could not be started or reached."""


class ErrorSeverity(Enum):
    WARNING = "warning"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass
class ComponentError:
    """One handled failure, tagged with the component that saw it."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    traceback_str: Optional[str] = None

    def __post_init__(self):
        if self.exception is not None and self.traceback_str is None:
            self.traceback_str = ''.join(traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            ))

    def describe(self) -> str:
        extra = ', '.join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.component}: {self.message}" + (f" ({extra})" if extra else "")


class ErrorHandler:
    """Keeps the most recent ``max_history`` failures and logs each one."""

    def __init__(self, max_history: int = 100):
        self._errors: Deque[ComponentError] = deque(maxlen=max_history)

    def handle_error(self, error: ComponentError) -> bool:
        """Record ``error``; returns False only for fatal failures."""
        self._errors.append(error)

        if error.severity is ErrorSeverity.WARNING:
            logger.warning(error.describe())
        elif error.severity is ErrorSeverity.RECOVERABLE:
            logger.error(error.describe())
        else:
            logger.error(f"fatal, {error.describe()}")
            if error.traceback_str:
                logger.debug(error.traceback_str)

        return error.severity is not ErrorSeverity.FATAL

    def get_error_history(self, component: Optional[str] = None) -> List[ComponentError]:
        return [e for e in self._errors if component is None or e.component == component]

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts of recorded failures, overall and by severity and component."""
        return {
            'total_errors': len(self._errors),
            'by_severity': dict(Counter(e.severity.value for e in self._errors)),
            'by_component': dict(Counter(e.component for e in self._errors)),
        }


def describe_error(error: Optional[BaseException], fallback: str) -> str:
    """The exception's own text, or ``fallback`` when it has none."""
    if error is None:
        return fallback
    return str(error).strip() or fallback


T = TypeVar('T')


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    component_name: str = "unknown"
) -> T:
    """
    Await ``func()`` until it succeeds or ``max_attempts`` calls have failed.

    The wait between attempts starts at ``initial_delay`` seconds and is
    multiplied by ``backoff_factor`` after each failure. The final failure is
    re-raised unchanged.
    """
    attempt = 1
    delay = initial_delay
    while True:
        try:
            return await func()
        except exceptions as e:
            if attempt >= max_attempts:
                raise
            logger.warning(
                f"{component_name}: attempt {attempt}/{max_attempts} failed ({e}), "
                f"next try in {delay:g}s"
            )
        await asyncio.sleep(delay)
        delay *= backoff_factor
        attempt += 1
