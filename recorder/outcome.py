"""Single-fire result of a recording session."""

import asyncio
import logging
from pathlib import Path

_module_logger = logging.getLogger(__name__)


class SessionOutcome:
    """Holds either the output path or the error of one session.

    The first report wins. Every later ``succeed()`` or ``fail()`` call is
    discarded and returns False, so the delivered outcome never changes.
    """

    def __init__(self) -> None:
        self._done = asyncio.Event()
        self._path: Path | None = None
        self._error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def path(self) -> Path | None:
        return self._path

    def succeed(self, path: Path) -> bool:
        """Report success with the output path."""
        if self.done:
            _module_logger.debug(f"Discarding success for {path}: outcome already delivered")
            return False
        self._path = Path(path)
        self._done.set()
        return True

    def fail(self, error: BaseException) -> bool:
        """Report failure. Only the first error is kept."""
        if self.done:
            _module_logger.debug(f"Discarding error, outcome already delivered: {error!r}")
            return False
        self._error = error
        self._done.set()
        return True

    async def wait(self) -> Path:
        """Wait for the outcome; return the path or raise the error."""
        await self._done.wait()
        return self.result()

    def result(self) -> Path:
        """Return the path or raise the error of a delivered outcome."""
        if not self.done:
            raise RuntimeError("session outcome not delivered yet")
        if self._error is not None:
            raise self._error
        if self._path is None:
            raise RuntimeError("session outcome has neither a path nor an error")
        return self._path
