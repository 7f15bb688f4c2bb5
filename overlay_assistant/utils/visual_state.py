"""
Visual state driver for the overlay orb.

Maps the logical request state to a smoothed amplitude signal. Purely
cosmetic: nothing in the orchestration logic reads the amplitude back.
"""

import asyncio
import random
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .logging_config import get_logger


logger = get_logger("visual_state")


class VisualState(str, Enum):
    """Presentation states, in cycle order."""
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


STATE_FLOW = [VisualState.IDLE, VisualState.LISTENING, VisualState.THINKING, VisualState.SPEAKING]

# (base, spread): target is drawn from [base, base + spread)
AMPLITUDE_TARGETS: Dict[VisualState, Tuple[float, float]] = {
    VisualState.IDLE: (0.08, 0.06),
    VisualState.LISTENING: (0.32, 0.30),
    VisualState.THINKING: (0.18, 0.14),
    VisualState.SPEAKING: (0.30, 0.34),
}

SMOOTHING_FACTOR = 0.4


class VisualStateDriver:
    """
    Four-state machine with an exponentially smoothed amplitude.

    The state can be cycled by the presentation layer or set directly by
    orchestration events. ``start()`` launches the fixed-rate tick task.
    """

    def __init__(self,
                 tick_seconds: float = 0.07,
                 initial_amplitude: float = 0.09,
                 rng: Optional[Callable[[], float]] = None):
        self._state = VisualState.IDLE
        self._amplitude = initial_amplitude
        self._tick_seconds = tick_seconds
        self._rng = rng or random.random
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> VisualState:
        return self._state

    @property
    def amplitude(self) -> float:
        return self._amplitude

    def set_state(self, state: VisualState) -> None:
        if state != self._state:
            logger.debug(f"{self._state.value} → {state.value}")
        self._state = state

    def cycle(self) -> VisualState:
        """Advance to the next state in ``STATE_FLOW``, wrapping to idle."""
        index = STATE_FLOW.index(self._state)
        self.set_state(STATE_FLOW[(index + 1) % len(STATE_FLOW)])
        return self._state

    def bump(self, amplitude: float) -> None:
        """Jump the amplitude immediately (e.g. on submit)."""
        self._amplitude = max(0.0, min(1.0, amplitude))

    def target_for(self, state: VisualState) -> float:
        base, spread = AMPLITUDE_TARGETS.get(state, (0.1, 0.0))
        return base + self._rng() * spread

    def tick(self) -> float:
        """Move the amplitude one step toward the current state's target."""
        target = self.target_for(self._state)
        self._amplitude = self._amplitude + (target - self._amplitude) * SMOOTHING_FACTOR
        return self._amplitude

    async def _run(self):
        while True:
            self.tick()
            await asyncio.sleep(self._tick_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
