"""Encoder supervisor: owns the ffmpeg subprocess of a recording session."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import (
    EncoderExitError,
    EncoderSpawnError,
    EncoderStreamError,
)
from .outcome import SessionOutcome

if TYPE_CHECKING:
    from config import RecordingConfig
    from utils.logger import SessionLogger

# Configure module logger
_module_logger = logging.getLogger(__name__)

# Lines of encoder stderr kept for error reports
STDERR_TAIL_LINES = 20


def build_encoder_args(config: "RecordingConfig") -> list[str]:
    """Build the ffmpeg arguments for a PNG-over-stdin H.264 encode.

    Codec, CRF, preset, keyframe interval and tuning are fixed; only the
    frame rate, bitrate and destination come from the config.
    """
    fps = str(config.fps)
    bitrate = config.video_bitrate
    bufsize = f"{int(bitrate.removesuffix('k')) * 2}k"

    return [
        "-framerate", fps,
        "-f", "image2pipe",  # Concatenated PNG images on stdin
        "-i", "-",
        "-c:v", "libx264",
        "-crf", "18",
        "-preset", "medium",
        "-g", fps,  # One keyframe per second of video
        "-tune", "zerolatency",
        "-y",  # Overwrite
        "-b:v", bitrate,
        "-maxrate", bitrate,
        "-bufsize", bufsize,
        "-threads", "0",
        "-movflags", "+faststart",
        str(config.output_path),
    ]


def build_encoder_command(config: "RecordingConfig") -> list[str]:
    """Full command line: executable followed by build_encoder_args()."""
    return [config.ffmpeg_path, *build_encoder_args(config)]


@dataclass
class EncoderHandle:
    """The running encoder process and the tasks attached to it."""

    process: asyncio.subprocess.Process
    stderr_task: asyncio.Task
    exit_task: asyncio.Task | None = None
    stderr_tail: deque[str] = field(default_factory=lambda: deque(maxlen=STDERR_TAIL_LINES))

    @property
    def stdin(self) -> asyncio.StreamWriter:
        if self.process.stdin is None:
            raise RuntimeError("Encoder was started without a stdin pipe")
        return self.process.stdin


class EncoderSupervisor:
    """Spawns ffmpeg and reports exactly one outcome for it.

    The supervisor is the byte-sink of the frame sampler (``write`` and
    ``close``). Success is reported when the process exits with code 0 and
    no error was recorded before. The first error (spawn failure, failed
    stdin write, non-zero exit) is reported and every later one is dropped.
    """

    def __init__(
        self,
        config: "RecordingConfig",
        outcome: SessionOutcome | None = None,
        logger: "SessionLogger | None" = None,
        command: list[str] | None = None,
    ):
        """Initialize the supervisor.

        Args:
            config: Recording configuration.
            outcome: Outcome to report to. A private one is created if None.
            logger: Optional SessionLogger receiving encoder diagnostics.
            command: Override of the full command line (executable first).
        """
        self.config = config
        self.outcome = outcome or SessionOutcome()
        self.logger = logger
        self.command = command or build_encoder_command(config)
        self.output_path = config.output_path

        self._handle: EncoderHandle | None = None
        self._error: BaseException | None = None
        self._input_closed = False

    @property
    def handle(self) -> EncoderHandle | None:
        return self._handle

    @property
    def error(self) -> BaseException | None:
        """The first recorded error, if any."""
        return self._error

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.process.returncode is None

    def _record_failure(self, error: BaseException) -> bool:
        """Record an error unless one was recorded already."""
        if self._error is not None:
            _module_logger.debug(f"Ignoring encoder error after first failure: {error!r}")
            return False
        self._error = error
        _module_logger.error(f"Encoder failed: {error}")
        if self.logger:
            self.logger.error(f"Encoder failed: {error}")
        self.outcome.fail(error)
        return True

    async def start(self) -> EncoderHandle:
        """Spawn the encoder process.

        Returns:
            The EncoderHandle owning the process.

        Raises:
            EncoderSpawnError: If the output directory cannot be created or
                the executable could not be started.
        """
        if self._handle is not None:
            return self._handle

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error = EncoderSpawnError(
                f"cannot prepare output directory {self.output_path.parent}: {e}"
            )
            self._record_failure(error)
            raise error from e

        _module_logger.info(f"Starting encoder: {' '.join(self.command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            error = EncoderSpawnError(f"cannot start encoder {self.command[0]!r}: {e}")
            self._record_failure(error)
            raise error from e

        stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        stderr_task = asyncio.create_task(
            self._forward_stderr(process, stderr_tail), name="encoder-stderr"
        )
        self._handle = EncoderHandle(
            process=process, stderr_task=stderr_task, stderr_tail=stderr_tail
        )
        self._handle.exit_task = asyncio.create_task(self._watch_exit(), name="encoder-exit")
        return self._handle

    async def _forward_stderr(
        self,
        process: asyncio.subprocess.Process,
        tail: deque[str],
    ) -> None:
        """Forward encoder stderr to the logging surface, line by line."""
        if process.stderr is None:
            raise RuntimeError("Encoder was started without a stderr pipe")
        while True:
            raw = await process.stderr.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            tail.append(line)
            _module_logger.debug(f"ffmpeg: {line}")
            if self.logger:
                self.logger.encoder(line)

    async def _watch_exit(self) -> None:
        """Report the outcome once the process exits."""
        handle = self._handle
        if handle is None:
            raise RuntimeError("Encoder exit watched before start()")
        returncode = await handle.process.wait()
        await handle.stderr_task

        if returncode != 0:
            self._record_failure(
                EncoderExitError(returncode, " | ".join(list(handle.stderr_tail)[-3:]))
            )
            return
        if self._error is not None:
            return
        _module_logger.info(f"Encoder finished: {self.output_path}")
        self.outcome.succeed(self.output_path)

    async def write(self, frame: bytes) -> None:
        """Write one frame to the encoder's stdin and wait for it to drain.

        Raises:
            EncoderStreamError: If the encoder already failed or the write fails.
        """
        if self._error is not None:
            raise EncoderStreamError(f"encoder already failed: {self._error}")
        if self._handle is None or self._input_closed:
            raise EncoderStreamError("encoder input is not open")

        stdin = self._handle.stdin
        try:
            stdin.write(frame)
            await stdin.drain()
        except (OSError, RuntimeError) as e:
            error = EncoderStreamError(f"writing frame to encoder failed: {e}")
            self._record_failure(error)
            raise error from e

    async def close(self) -> None:
        """Signal end of input. The encoder then finishes and exits on its own."""
        if self._input_closed or self._handle is None:
            return
        self._input_closed = True

        stdin = self._handle.stdin
        try:
            stdin.close()
            await stdin.wait_closed()
        except OSError as e:
            if self._handle.process.returncode is None:
                self._record_failure(EncoderStreamError(f"closing encoder input failed: {e}"))
            else:
                # Exit status is reported by the exit watcher
                _module_logger.debug(f"Encoder input closed after exit: {e}")

    async def wait(self) -> int | None:
        """Wait for the process to exit and its outcome to be reported."""
        if self._handle is None:
            return None
        if self._handle.exit_task is None:
            raise RuntimeError("Encoder exit watcher is not running")
        await self._handle.exit_task
        return self._handle.process.returncode

    async def terminate(self, reason: BaseException | None = None, timeout: float = 5.0) -> None:
        """Stop the encoder immediately. Only used when a session is aborted.

        ``reason`` is recorded as the first error so that the exit status of
        the killed process is not reported in its place.
        """
        if reason is not None:
            self._record_failure(reason)
        if self._handle is None:
            return
        self._input_closed = True
        process = self._handle.process
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        if self._handle.exit_task is not None:
            await self._handle.exit_task
