"""Playback bridge between the replay page and the recording session."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

_module_logger = logging.getLogger(__name__)


class PlaybackSignal(StrEnum):
    """Signals the replay page sends to the session."""
    STARTED = "started"
    FINISHED = "finished"


# Names of the functions exposed to the replay page's window object
EXPOSED_FUNCTIONS: dict[PlaybackSignal, str] = {
    PlaybackSignal.STARTED: "onReplayStart",
    PlaybackSignal.FINISHED: "onReplayFinish",
}

Handler = Callable[[], Awaitable[None] | None]


class PlaybackBridge:
    """Event channel carrying the two playback signals.

    The rendering host calls ``emit`` (through the functions returned by
    ``exposed_functions``); each signal is delivered at most once. Handlers
    run one at a time, in signal order, on a single dispatch task, so the
    transitions they trigger never interleave.
    """

    def __init__(self, on_error: Callable[[BaseException], None] | None = None):
        """Initialize the bridge.

        Args:
            on_error: Called with any exception raised by a handler.
        """
        self.on_error = on_error
        self._handlers: dict[PlaybackSignal, list[Handler]] = {
            signal: [] for signal in PlaybackSignal
        }
        self._emitted: set[PlaybackSignal] = set()
        self._queue: asyncio.Queue[PlaybackSignal | None] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._closed = False

    def connect(self, signal: PlaybackSignal, handler: Handler) -> None:
        """Register a handler (plain function or coroutine function)."""
        self._handlers[signal].append(handler)

    def start(self) -> None:
        """Start the dispatch task."""
        if self._worker is None:
            self._worker = asyncio.create_task(self._dispatch(), name="playback-bridge")

    def emit(self, signal: PlaybackSignal) -> bool:
        """Queue a signal for dispatch.

        Returns:
            False if the signal was already emitted or the bridge is closed.
        """
        if self._closed:
            _module_logger.debug(f"Bridge closed, dropping signal: {signal}")
            return False
        if signal in self._emitted:
            _module_logger.warning(f"Duplicate playback signal ignored: {signal}")
            return False
        self._emitted.add(signal)
        _module_logger.info(f"Playback signal: {signal}")
        self.start()
        self._queue.put_nowait(signal)
        return True

    def exposed_functions(self) -> dict[str, Callable[[], None]]:
        """Host-callable functions keyed by their page-side name."""

        def bind(signal: PlaybackSignal) -> Callable[[], None]:
            def exposed(*_args: object) -> None:
                self.emit(signal)
            return exposed

        return {name: bind(signal) for signal, name in EXPOSED_FUNCTIONS.items()}

    async def _dispatch(self) -> None:
        while True:
            signal = await self._queue.get()
            try:
                if signal is None:
                    return
                for handler in self._handlers[signal]:
                    await self._invoke(signal, handler)
            finally:
                self._queue.task_done()

    async def _invoke(self, signal: PlaybackSignal, handler: Handler) -> None:
        try:
            result = handler()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            _module_logger.error(f"Handler for {signal} failed: {e}")
            if self.on_error is None:
                raise
            self.on_error(e)

    async def join(self) -> None:
        """Wait until every queued signal has been handled."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop accepting signals and wait for the dispatch task to exit."""
        if self._closed:
            return
        self._closed = True
        if self._worker is None:
            return
        self._queue.put_nowait(None)
        await self._worker
