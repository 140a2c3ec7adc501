from pathlib import Path

import pytest

from recorder.errors import EncoderStreamError, SessionCancelled
from recorder.outcome import SessionOutcome


def test_result_before_delivery_raises() -> None:
    with pytest.raises(RuntimeError):
        SessionOutcome().result()


def test_first_success_wins() -> None:
    outcome = SessionOutcome()
    assert outcome.succeed(Path("/tmp/a.mp4")) is True
    assert outcome.fail(EncoderStreamError("late")) is False
    assert outcome.succeed(Path("/tmp/b.mp4")) is False
    assert outcome.result() == Path("/tmp/a.mp4")
    assert not outcome.failed


def test_first_error_wins() -> None:
    outcome = SessionOutcome()
    first = EncoderStreamError("broken pipe")
    assert outcome.fail(first) is True
    assert outcome.fail(SessionCancelled()) is False
    assert outcome.succeed(Path("/tmp/a.mp4")) is False
    assert outcome.error is first
    with pytest.raises(EncoderStreamError):
        outcome.result()


@pytest.mark.asyncio
async def test_wait_returns_path() -> None:
    outcome = SessionOutcome()
    outcome.succeed(Path("/tmp/a.mp4"))
    assert await outcome.wait() == Path("/tmp/a.mp4")


@pytest.mark.asyncio
async def test_wait_raises_error() -> None:
    outcome = SessionOutcome()
    outcome.fail(SessionCancelled())
    with pytest.raises(SessionCancelled):
        await outcome.wait()
