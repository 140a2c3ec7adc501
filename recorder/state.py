"""Recording lifecycle state machine."""

import logging
from enum import StrEnum

_module_logger = logging.getLogger(__name__)


class RecordingState(StrEnum):
    """Lifecycle of one recording. Only moves forward."""
    IDLE = "idle"
    RECORDING = "recording"
    CLOSED = "closed"


class RecordingStateMachine:
    """Owns the RecordingState of a session.

    Transitions are ``idle -> recording -> closed`` and ``idle -> closed``.
    Both transition methods return whether the state actually changed, so a
    caller runs its side effects (spawning the encoder, closing the sink)
    only on the call that made the transition.
    """

    def __init__(self) -> None:
        self._state = RecordingState.IDLE

    @property
    def state(self) -> RecordingState:
        """Current state."""
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecordingState.RECORDING

    @property
    def is_closed(self) -> bool:
        return self._state is RecordingState.CLOSED

    def begin(self) -> bool:
        """Move ``idle -> recording``. No effect in any other state."""
        if self._state is not RecordingState.IDLE:
            _module_logger.debug(f"begin() ignored in state {self._state}")
            return False
        self._state = RecordingState.RECORDING
        _module_logger.info("Recording state: idle -> recording")
        return True

    def end(self) -> bool:
        """Move to ``closed`` from ``idle`` or ``recording``. Idempotent."""
        if self._state is RecordingState.CLOSED:
            return False
        previous = self._state
        self._state = RecordingState.CLOSED
        _module_logger.info(f"Recording state: {previous} -> closed")
        return True
