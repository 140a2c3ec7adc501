from __future__ import annotations

import asyncio
import io
import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from PIL import Image

from config import RecordingConfig
from recorder.bridge import PlaybackBridge
from recorder.encoder import build_encoder_args
from recorder.errors import EncoderStreamError, HostError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Stand-in for ffmpeg: reads PNGs from stdin, writes the frame count to the
# output path (last argument). Exits with FAKE_EXIT if given.
FAKE_ENCODER = r"""
import os, sys
data = sys.stdin.buffer.read()
count = data.count(b"\x89PNG\r\n\x1a\n")
sys.stderr.write(f"received {count} frames\n")
code = int(os.environ.get("FAKE_EXIT", "0"))
if code:
    sys.stderr.write("fatal: simulated encoder failure\n")
    sys.exit(code)
with open(sys.argv[-1], "w") as f:
    f.write(str(count))
"""


def make_png(index: int = 0, size: tuple[int, int] = (8, 6)) -> bytes:
    """A small real PNG whose colour encodes ``index``."""
    image = Image.new("RGB", size, color=(index % 256, (index * 7) % 256, 0))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def fake_encoder_command(config: RecordingConfig) -> list[str]:
    return [sys.executable, "-c", FAKE_ENCODER, *build_encoder_args(config)]


class ListSink:
    """In-memory frame sink."""

    def __init__(self, fail_on_write: int | None = None) -> None:
        self.frames: list[bytes] = []
        self.close_calls = 0
        self.fail_on_write = fail_on_write

    async def write(self, frame: bytes) -> None:
        if self.fail_on_write is not None and len(self.frames) + 1 == self.fail_on_write:
            raise EncoderStreamError("broken pipe")
        self.frames.append(frame)

    async def close(self) -> None:
        self.close_calls += 1


class FakeHost:
    """Rendering host that plays a scripted replay instead of a browser."""

    instances: list["FakeHost"] = []

    def __init__(
        self,
        config: RecordingConfig,
        logger: Any = None,
        on_disconnect: Callable[[], None] | None = None,
        on_page_error: Callable[[str], None] | None = None,
        *,
        play_for: float = 0.2,
        fail_captures: set[int] | None = None,
        has_surface: bool = True,
        surface_error: Exception | None = None,
        start_signal: bool = True,
        fail_start: bool = False,
        page_error: str | None = None,
    ) -> None:
        self.config = config
        self.on_disconnect = on_disconnect
        self.on_page_error = on_page_error
        self.play_for = play_for
        self.fail_captures = fail_captures or set()
        self.has_surface = has_surface
        self.surface_error = surface_error
        self.start_signal = start_signal
        self.fail_start = fail_start
        self.page_error = page_error

        self.functions: dict[str, Callable[[], None]] = {}
        self.html: str | None = None
        self.captures = 0
        self.closed = False
        self._player: asyncio.Task | None = None
        FakeHost.instances.append(self)

    async def start(self) -> None:
        if self.fail_start:
            raise HostError("cannot launch browser: simulated")

    async def expose(self, bridge: PlaybackBridge) -> None:
        self.functions = bridge.exposed_functions()

    async def load(self, html: str) -> None:
        self.html = html
        self._player = asyncio.create_task(self._play())

    async def _play(self) -> None:
        if self.page_error is not None:
            # Script error before the player could start
            self.on_page_error(self.page_error)
            return
        if not self.start_signal:
            return
        self.functions["onReplayStart"]()
        await asyncio.sleep(self.play_for)
        self.functions["onReplayFinish"]()

    async def surface(self) -> str:
        if self.surface_error is not None:
            raise self.surface_error
        if not self.has_surface:
            raise HostError("failed to get replayer element")
        return "surface"

    def capturer(self, element: str):
        async def capture() -> bytes:
            self.captures += 1
            if self.captures in self.fail_captures:
                raise RuntimeError("Element is not attached to the DOM")
            return make_png(self.captures)

        return capture

    async def close(self) -> None:
        self.closed = True
        if self._player is not None and not self._player.done():
            self._player.cancel()


def host_factory(**options: Any) -> Callable[..., FakeHost]:
    def factory(config: RecordingConfig, **kwargs: Any) -> FakeHost:
        return FakeHost(config, **kwargs, **options)

    return factory


@pytest.fixture(autouse=True)
def _reset_fake_hosts():
    FakeHost.instances.clear()
    yield
    FakeHost.instances.clear()


@pytest.fixture
def event_log_file(tmp_path: Path) -> Path:
    events = [
        {"type": 4, "data": {"href": "http://localhost/", "width": 800, "height": 600}, "timestamp": 1000},
        {"type": 2, "data": {"node": {"type": 0, "childNodes": []}}, "timestamp": 1010},
        {"type": 3, "data": {"source": 1, "positions": []}, "timestamp": 2500},
    ]
    path = tmp_path / "session.json"
    path.write_text(json.dumps(events), encoding="utf-8")
    return path


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., RecordingConfig]:
    def _make(input: Path | str | None = None, **kwargs: Any) -> RecordingConfig:
        kwargs.setdefault("output", tmp_path / "out" / "video.mp4")
        return RecordingConfig(input=Path(input or tmp_path / "session.json"), **kwargs)

    return _make
