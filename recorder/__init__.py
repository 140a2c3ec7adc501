"""Recording module for session-to-video conversion.

This module provides:
- RecordingSession: Replay an event log in Chromium and record it to video
- EncoderSupervisor: Own the ffmpeg process fed with PNG frames on stdin
- FrameSampler: Capture the replay surface at a fixed frame rate
- PlaybackBridge: Carry the page's "started"/"finished" signals
- load_event_log: Read and validate an rrweb event log
"""

from .bridge import PlaybackBridge, PlaybackSignal
from .encoder import EncoderHandle, EncoderSupervisor, build_encoder_args
from .errors import (
    CaptureError,
    ConfigError,
    EncoderError,
    EncoderExitError,
    EncoderSpawnError,
    EncoderStreamError,
    EventLogError,
    HostError,
    InitializationError,
    RecorderError,
    SessionCancelled,
)
from .events import EventLog, load_event_log
from .outcome import SessionOutcome
from .sampler import CaptureResult, FrameSampler, FrameStatus
from .session import RecordingSession, transform_to_video, transform_to_video_sync
from .state import RecordingState, RecordingStateMachine

__all__ = [
    "PlaybackBridge",
    "PlaybackSignal",
    "EncoderHandle",
    "EncoderSupervisor",
    "build_encoder_args",
    "CaptureError",
    "ConfigError",
    "EncoderError",
    "EncoderExitError",
    "EncoderSpawnError",
    "EncoderStreamError",
    "EventLogError",
    "HostError",
    "InitializationError",
    "RecorderError",
    "SessionCancelled",
    "EventLog",
    "load_event_log",
    "SessionOutcome",
    "CaptureResult",
    "FrameSampler",
    "FrameStatus",
    "RecordingSession",
    "transform_to_video",
    "transform_to_video_sync",
    "RecordingState",
    "RecordingStateMachine",
]
