"""
Overlay Assistant - Orchestration core for a desktop chat and media-control overlay.

This package decides, for each line of user text, whether it is:
- A conversational query (streamed from a language model)
- A media-control command (routed, classified and sent to the media service)

and keeps a single visible conversation item consistent while requests are
superseded, stopped or fail.

Usage:
    from overlay_assistant.orchestrator import Orchestrator
    from overlay_assistant.config import get_core_config

    config = get_core_config()
    orchestrator = Orchestrator.from_config(config)
    await orchestrator.initialize()
    task = orchestrator.submit("play the weeknd")
"""

from .orchestrator import Orchestrator
from .factory import ProviderFactory
from .config import get_core_config
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'Orchestrator',
    'ProviderFactory',
    'get_core_config',
    'interfaces',
    'models',
    'providers'
]
