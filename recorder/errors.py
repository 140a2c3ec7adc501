"""Exception types raised by the recording pipeline."""


class RecorderError(Exception):
    """Base class for every error surfaced by a recording session."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(RecorderError):
    """Invalid recording configuration."""


class InitializationError(RecorderError):
    """Fatal error before recording starts. No encoder is spawned."""


class EventLogError(InitializationError):
    """The session event log could not be read or parsed."""


class HostError(InitializationError):
    """The rendering host failed to launch, load, or stay connected."""


class CaptureError(RecorderError):
    """A frame could not be captured from the replay surface."""


class EncoderError(RecorderError):
    """The encoder subprocess failed."""


class EncoderSpawnError(EncoderError):
    """The encoder executable could not be started."""


class EncoderStreamError(EncoderError):
    """Writing a frame to the encoder's stdin failed."""


class EncoderExitError(EncoderError):
    """The encoder exited with a non-zero return code."""

    def __init__(self, returncode: int, stderr_tail: str = ""):
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        message = f"encoder exited with code {returncode}"
        if stderr_tail:
            message = f"{message}: {stderr_tail}"
        super().__init__(message)


class SessionCancelled(RecorderError):
    """The session was cancelled before the video was finalized."""

    def __init__(self, message: str = "recording session cancelled"):
        super().__init__(message)
