"""Frame sampler: captures the replay surface at a fixed rate."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from utils.tracking import FrameStats

from .errors import CaptureError
from .state import RecordingStateMachine

if TYPE_CHECKING:
    from utils.logger import SessionLogger

_module_logger = logging.getLogger(__name__)


class FrameStatus(StrEnum):
    """What a single sampling tick did."""
    CAPTURED = "captured"  # Frame written to the sink
    SKIPPED = "skipped"  # Capture failed, tick dropped
    STOPPED = "stopped"  # Not recording, no capture attempted


@dataclass(frozen=True)
class CaptureResult:
    """Result of one sampling tick."""

    status: FrameStatus
    frame: bytes | None = None
    error: BaseException | None = None

    @classmethod
    def captured(cls, frame: bytes) -> "CaptureResult":
        return cls(status=FrameStatus.CAPTURED, frame=frame)

    @classmethod
    def skipped(cls, error: BaseException) -> "CaptureResult":
        return cls(status=FrameStatus.SKIPPED, error=error)

    @classmethod
    def stopped(cls) -> "CaptureResult":
        return cls(status=FrameStatus.STOPPED)


class FrameSink(Protocol):
    """Ordered byte-sink receiving encoded frames."""

    async def write(self, frame: bytes) -> None: ...

    async def close(self) -> None: ...


FrameSource = Callable[[], Awaitable[bytes]]


class FrameSampler:
    """Captures one frame per tick while the session is recording.

    Ticks run one after another inside a single task, so a capture that
    takes longer than the frame interval delays the next tick instead of
    overlapping it. Capture failures are swallowed (the tick is skipped);
    sink write failures are fatal. When the state machine reaches
    ``closed`` the sampler stops and closes the sink exactly once.
    """

    def __init__(
        self,
        machine: RecordingStateMachine,
        capture: FrameSource,
        sink: FrameSink,
        fps: int,
        stats: FrameStats | None = None,
        max_consecutive_failures: int | None = None,
        on_fatal: Callable[[BaseException], None] | None = None,
        logger: "SessionLogger | None" = None,
    ):
        """Initialize the sampler.

        Args:
            machine: State machine gating the sampler.
            capture: Coroutine function returning one encoded frame.
            sink: Destination of captured frames.
            fps: Frames per second.
            stats: Counters updated on every tick.
            max_consecutive_failures: Abort after this many skipped ticks
                in a row. None swallows capture errors unconditionally.
            on_fatal: Called with the error that stopped sampling.
            logger: Optional SessionLogger for styled output.
        """
        self.machine = machine
        self.capture = capture
        self.sink = sink
        self.interval = 1.0 / fps
        self.stats = stats or FrameStats()
        self.max_consecutive_failures = max_consecutive_failures
        self.on_fatal = on_fatal
        self.logger = logger

        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._sink_closed = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sink_closed(self) -> bool:
        return self._sink_closed

    async def tick(self) -> CaptureResult:
        """Run one sampling tick.

        Returns:
            CaptureResult telling whether a frame was written, the tick was
            skipped, or the session is no longer recording.

        Raises:
            CaptureError: When the consecutive failure limit is reached.
            EncoderStreamError: When the sink rejects the frame.
        """
        async with self._lock:
            if not self.machine.is_recording:
                return CaptureResult.stopped()
            return await self._capture_and_write()

    async def _capture_and_write(self) -> CaptureResult:
        try:
            frame = await self.capture()
        except Exception as e:
            self.stats.record_skip()
            _module_logger.debug(f"Frame capture failed, skipping tick: {e!r}")
            limit = self.max_consecutive_failures
            if limit is not None and self.stats.consecutive_skips >= limit:
                raise CaptureError(
                    f"{self.stats.consecutive_skips} consecutive frame captures failed: {e}"
                ) from e
            return CaptureResult.skipped(e)

        await self.sink.write(frame)
        self.stats.record_frame(frame)
        return CaptureResult.captured(frame)

    def start(self) -> asyncio.Task:
        """Start ticking in an owned task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="frame-sampler")
        return self._task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            while True:
                result = await self.tick()
                if result.status is FrameStatus.STOPPED:
                    break
                next_tick += self.interval
                now = loop.time()
                if next_tick < now:
                    # Overran the interval; do not replay missed ticks in a burst
                    next_tick = now
                await asyncio.sleep(next_tick - now)
            await self._finish()
        except Exception as e:
            _module_logger.error(f"Frame sampling stopped: {e}")
            if self.on_fatal is None:
                raise
            self.on_fatal(e)

    async def _finish(self) -> None:
        """Close the sink once the session is closed."""
        if not self.machine.is_closed or self._sink_closed:
            return
        if self.stats.captured == 0:
            # Playback finished before the first tick; keep one frame
            async with self._lock:
                result = await self._final_capture()
            if result.status is FrameStatus.SKIPPED and self.logger:
                self.logger.warning("No frame could be captured before playback finished")
        self._sink_closed = True
        await self.sink.close()
        _module_logger.info(
            f"Sampling finished: {self.stats.captured} frames, {self.stats.skipped} skipped"
        )

    async def _final_capture(self) -> CaptureResult:
        try:
            frame = await self.capture()
        except Exception as e:
            self.stats.record_skip()
            return CaptureResult.skipped(e)
        await self.sink.write(frame)
        self.stats.record_frame(frame)
        return CaptureResult.captured(frame)

    async def wait(self) -> None:
        """Wait until the sampling task has stopped."""
        if self._task is not None:
            await self._task

    async def cancel(self) -> None:
        """Stop the sampling task without closing the sink."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
