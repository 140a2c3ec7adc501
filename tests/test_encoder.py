from __future__ import annotations

import sys
from unittest.mock import MagicMock

import pytest

from conftest import fake_encoder_command, make_png
from recorder.encoder import EncoderHandle, EncoderSupervisor, build_encoder_args, build_encoder_command
from recorder.errors import EncoderExitError, EncoderSpawnError, EncoderStreamError
from recorder.outcome import SessionOutcome

CLOSES_STDIN = "import os, time\nos.close(0)\ntime.sleep(5)\n"


def test_encoder_args_follow_fixed_profile(make_config) -> None:
    config = make_config(fps=25, video_bitrate="3000k")
    args = build_encoder_args(config)

    def value(flag: str) -> str:
        return args[args.index(flag) + 1]

    assert value("-framerate") == "25"
    assert value("-f") == "image2pipe"
    assert value("-i") == "-"
    assert value("-c:v") == "libx264"
    assert value("-crf") == "18"
    assert value("-preset") == "medium"
    assert value("-g") == "25"
    assert value("-tune") == "zerolatency"
    assert value("-b:v") == "3000k"
    assert value("-maxrate") == "3000k"
    assert value("-bufsize") == "6000k"
    assert value("-movflags") == "+faststart"
    assert "-y" in args
    assert args[-1] == str(config.output_path)


def test_encoder_command_starts_with_executable(make_config) -> None:
    config = make_config(ffmpeg_path="/opt/ffmpeg/bin/ffmpeg")
    assert build_encoder_command(config)[0] == "/opt/ffmpeg/bin/ffmpeg"


@pytest.mark.asyncio
async def test_missing_executable_reports_spawn_error(make_config, tmp_path) -> None:
    config = make_config()
    outcome = SessionOutcome()
    supervisor = EncoderSupervisor(
        config, outcome=outcome, command=[str(tmp_path / "no-such-ffmpeg")]
    )

    with pytest.raises(EncoderSpawnError):
        await supervisor.start()

    assert outcome.done
    assert isinstance(outcome.error, EncoderSpawnError)
    assert supervisor.handle is None


@pytest.mark.asyncio
async def test_output_directory_failure_reports_spawn_error(make_config, tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    config = make_config(output=blocker / "nested" / "video.mp4")
    outcome = SessionOutcome()
    supervisor = EncoderSupervisor(config, outcome=outcome, command=fake_encoder_command(config))

    with pytest.raises(EncoderSpawnError, match="output directory"):
        await supervisor.start()

    assert isinstance(outcome.error, EncoderSpawnError)
    assert supervisor.handle is None
    assert not supervisor.running


@pytest.mark.asyncio
async def test_wait_before_start_returns_none(make_config) -> None:
    supervisor = EncoderSupervisor(make_config(), command=[sys.executable, "-c", "pass"])
    assert await supervisor.wait() is None


@pytest.mark.asyncio
async def test_clean_exit_reports_output_path(make_config) -> None:
    config = make_config()
    logger = MagicMock()
    supervisor = EncoderSupervisor(config, logger=logger, command=fake_encoder_command(config))

    await supervisor.start()
    for i in range(3):
        await supervisor.write(make_png(i))
    await supervisor.close()
    returncode = await supervisor.wait()

    assert returncode == 0
    assert supervisor.outcome.result() == config.output_path
    assert config.output_path.read_text() == "3"
    logger.encoder.assert_any_call("received 3 frames")


@pytest.mark.asyncio
async def test_non_zero_exit_reports_exit_error(make_config, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_EXIT", "3")
    config = make_config()
    supervisor = EncoderSupervisor(config, command=fake_encoder_command(config))

    await supervisor.start()
    await supervisor.write(make_png())
    await supervisor.close()
    await supervisor.wait()

    error = supervisor.outcome.error
    assert isinstance(error, EncoderExitError)
    assert error.returncode == 3
    assert "simulated encoder failure" in str(error)


@pytest.mark.asyncio
async def test_write_failure_is_reported_once(make_config) -> None:
    config = make_config()
    supervisor = EncoderSupervisor(config, command=[sys.executable, "-c", CLOSES_STDIN])
    await supervisor.start()

    chunk = b"\0" * (1 << 20)
    with pytest.raises(EncoderStreamError):
        for _ in range(64):
            await supervisor.write(chunk)

    first = supervisor.outcome.error
    assert isinstance(first, EncoderStreamError)

    # Later failures (another write, the killed process) do not replace it
    with pytest.raises(EncoderStreamError):
        await supervisor.write(chunk)
    await supervisor.terminate()
    assert supervisor.outcome.error is first
    assert supervisor.error is first


@pytest.mark.asyncio
async def test_write_after_close_is_rejected(make_config) -> None:
    config = make_config()
    supervisor = EncoderSupervisor(config, command=fake_encoder_command(config))
    await supervisor.start()
    await supervisor.write(make_png())
    await supervisor.close()
    await supervisor.close()

    with pytest.raises(EncoderStreamError):
        await supervisor.write(make_png())
    await supervisor.wait()


@pytest.mark.asyncio
async def test_start_is_idempotent(make_config) -> None:
    config = make_config()
    supervisor = EncoderSupervisor(config, command=fake_encoder_command(config))
    handle = await supervisor.start()
    assert await supervisor.start() is handle
    await supervisor.close()
    await supervisor.wait()


def test_handle_without_stdin_pipe_raises_runtime_error() -> None:
    handle = EncoderHandle(process=MagicMock(stdin=None), stderr_task=MagicMock())
    with pytest.raises(RuntimeError, match="stdin"):
        handle.stdin
