# Utils package

from .logging_config import setup_logging, get_logger
from .epoch import EpochTracker
from .event_bus import EventBus, Subscription
from .device_affinity import DeviceAffinityStore, InMemoryDeviceAffinityStore, FileDeviceAffinityStore
from .visual_state import VisualState, VisualStateDriver
from .error_handling import (
    OverlayError,
    ClassificationTimeout,
    ClassificationParseError,
    ToolInvocationError,
    ToolError,
    StreamingTransportError,
    MediaServiceUnavailable,
    ErrorHandler,
    ErrorSeverity,
    ComponentError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "EpochTracker",
    "EventBus",
    "Subscription",
    "DeviceAffinityStore",
    "InMemoryDeviceAffinityStore",
    "FileDeviceAffinityStore",
    "VisualState",
    "VisualStateDriver",
    "OverlayError",
    "ClassificationTimeout",
    "ClassificationParseError",
    "ToolInvocationError",
    "ToolError",
    "StreamingTransportError",
    "MediaServiceUnavailable",
    "ErrorHandler",
    "ErrorSeverity",
    "ComponentError",
]
