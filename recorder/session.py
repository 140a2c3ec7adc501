"""Recording session: turns one session event log into one video file."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from utils.tracking import FrameStats, Timer

from .bridge import PlaybackBridge, PlaybackSignal
from .encoder import EncoderSupervisor
from .errors import HostError, RecorderError, SessionCancelled
from .events import EventLog, load_event_log
from .host import RenderHost
from .outcome import SessionOutcome
from .replay_page import build_replay_page
from .sampler import FrameSampler
from .state import RecordingState, RecordingStateMachine

if TYPE_CHECKING:
    from config import RecordingConfig
    from utils.logger import SessionLogger

_module_logger = logging.getLogger(__name__)

HostFactory = Callable[..., Any]


class RecordingSession:
    """Drives one conversion and delivers exactly one outcome.

    The session loads the event log, starts the rendering host, wires the
    playback bridge and waits. "Playback started" spawns the encoder and
    starts the frame sampler; "playback finished" closes the state machine,
    after which the sampler closes the encoder's input and the encoder
    exits on its own. Any fatal error along the way becomes the outcome,
    and only the first one counts.
    """

    def __init__(
        self,
        config: "RecordingConfig",
        logger: "SessionLogger | None" = None,
        host_factory: HostFactory = RenderHost,
        encoder_command: list[str] | None = None,
    ):
        """Initialize the session.

        Args:
            config: Recording configuration.
            logger: Optional SessionLogger for styled output.
            host_factory: Builds the rendering host; called with the config
                and the ``logger``, ``on_disconnect`` and ``on_page_error``
                keyword arguments.
            encoder_command: Override of the encoder command line.
        """
        self.config = config
        self.logger = logger
        self.host_factory = host_factory
        self.encoder_command = encoder_command

        self.machine = RecordingStateMachine()
        self.outcome = SessionOutcome()
        self.stats = FrameStats()
        self.timer = Timer("Recording")

        self.event_log: EventLog | None = None
        self.bridge: PlaybackBridge | None = None
        self.host: Any = None
        self.encoder: EncoderSupervisor | None = None
        self.sampler: FrameSampler | None = None
        self._shut_down = False

    def _log_step(self, message: str) -> None:
        """Log step message using logger if available."""
        if self.logger:
            self.logger.step(message)

    def _log_info(self, message: str) -> None:
        """Log info message using logger if available."""
        if self.logger:
            self.logger.info(message)

    def _fail(self, error: BaseException) -> None:
        """Report a fatal error and close the state machine.

        Errors outside the RecorderError hierarchy are wrapped so callers
        only ever see RecorderError subclasses.
        """
        if not isinstance(error, RecorderError):
            wrapped = RecorderError(f"unexpected error: {error!r}")
            wrapped.__cause__ = error
            error = wrapped
        if self.outcome.fail(error):
            _module_logger.error(f"Recording session failed: {error}")
            if self.logger:
                self.logger.error(str(error))
        self.machine.end()

    def cancel(self) -> None:
        """Cancel the session. The caller receives SessionCancelled."""
        self._fail(SessionCancelled())

    async def run(self) -> Path:
        """Run the conversion.

        Returns:
            Absolute path of the written video.

        Raises:
            RecorderError: The first fatal error of the session.
        """
        try:
            self.config.validate()
            await self._initialize()
            await self.outcome.wait()
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as e:
            self._fail(e)
        finally:
            # Encoder-side failures do not pass through _fail
            self.machine.end()
            await self._shutdown()

        return self.outcome.result()

    async def _initialize(self) -> None:
        """Load the log, start the host, wire the bridge, load the page."""
        config = self.config

        self._log_step(f"Loading event log: {config.input}")
        self.event_log = load_event_log(config.input)
        self._log_info(
            f"{len(self.event_log)} events spanning {self.event_log.duration:.1f}s"
        )
        html = build_replay_page(self.event_log, config)

        self.bridge = PlaybackBridge(on_error=self._fail)
        self.bridge.connect(PlaybackSignal.STARTED, self._on_started)
        self.bridge.connect(PlaybackSignal.FINISHED, self._on_finished)
        self.bridge.start()

        self._log_step("Launching browser...")
        self.host = self.host_factory(
            config,
            logger=self.logger,
            on_disconnect=self._on_host_disconnect,
            on_page_error=self._on_page_error,
        )
        await self.host.start()
        await self.host.expose(self.bridge)
        await self.host.load(html)
        self._log_step("Waiting for playback to start...")

    async def _on_started(self) -> None:
        if not self.machine.begin():
            return
        self.timer.start()
        surface = await self.host.surface()

        self.encoder = EncoderSupervisor(
            self.config,
            outcome=self.outcome,
            logger=self.logger,
            command=self.encoder_command,
        )
        await self.encoder.start()

        self.sampler = FrameSampler(
            machine=self.machine,
            capture=self.host.capturer(surface),
            sink=self.encoder,
            fps=self.config.fps,
            stats=self.stats,
            max_consecutive_failures=self.config.max_consecutive_failures,
            on_fatal=self._fail,
            logger=self.logger,
        )
        self.sampler.start()
        self._log_step(f"Recording at {self.config.fps} fps...")

    def _on_finished(self) -> None:
        if self.machine.state is RecordingState.IDLE:
            self._fail(RecorderError("playback finished before recording started"))
            return
        if self.machine.end():
            self.timer.stop()
            self._log_step("Playback finished, finalizing video...")

    def _on_host_disconnect(self) -> None:
        self._fail(HostError("browser disconnected during recording"))

    def _on_page_error(self, message: str) -> None:
        # Before "started" a script error means playback will never begin
        if self.machine.state is RecordingState.IDLE:
            self._fail(HostError(f"replay page failed before playback started: {message}"))

    async def _shutdown(self) -> None:
        """Stop producing input, wait for the encoder, release the host."""
        if self._shut_down:
            return
        self._shut_down = True
        cancelled = isinstance(self.outcome.error, SessionCancelled)

        if self.sampler is not None:
            if cancelled:
                await self.sampler.cancel()
            else:
                await self.sampler.wait()

        if self.encoder is not None:
            if cancelled:
                await self.encoder.terminate(self.outcome.error)
            else:
                await self.encoder.close()
                await self.encoder.wait()

        if self.bridge is not None:
            await self.bridge.close()
        if self.host is not None:
            await self.host.close()


async def transform_to_video(
    config: "RecordingConfig",
    logger: "SessionLogger | None" = None,
    **options: Any,
) -> Path:
    """Convert a session event log into a video.

    Args:
        config: Recording configuration.
        logger: Optional SessionLogger for styled output.
        **options: Passed to RecordingSession (``host_factory``,
            ``encoder_command``).

    Returns:
        Absolute path of the written video.
    """
    return await RecordingSession(config, logger=logger, **options).run()


def transform_to_video_sync(
    config: "RecordingConfig",
    logger: "SessionLogger | None" = None,
    **options: Any,
) -> Path:
    """Synchronous wrapper for transform_to_video()."""
    return asyncio.run(transform_to_video(config, logger=logger, **options))
