"""Configuration and settings for session-to-video conversion."""

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from recorder.errors import ConfigError


DEFAULT_FPS = 30
DEFAULT_OUTPUT = "rrvideo-output.mp4"
DEFAULT_VIDEO_BITRATE = "2000k"
DEFAULT_START_DELAY_MS = 1000

# rrweb-player wraps the replay iframe in this element unless an explicit
# player size is given, in which case the whole player is captured.
WRAPPER_SELECTOR = ".replayer-wrapper"
PLAYER_SELECTOR = ".rr-player"

_BITRATE_RE = re.compile(r"^\d+k$")

# Player option names as rrweb-player expects them, keyed by our field names
_PLAYER_FIELDS = {
    "auto_play": "autoPlay",
    "show_controller": "showController",
    "start_delay_time": "startDelayTime",
    "speed": "speed",
    "width": "width",
    "height": "height",
    "skip_inactive": "skipInactive",
}


@dataclass(frozen=True)
class PlayerOptions:
    """Options passed through to rrweb-player inside the replay page.

    ``start_delay_time`` is not an rrweb option: the replay page waits that
    many milliseconds before signalling "started" and calling ``play()``,
    unless ``auto_play`` is set.
    """

    auto_play: bool = False
    show_controller: bool = False
    start_delay_time: int = DEFAULT_START_DELAY_MS
    speed: float | None = None
    width: int | None = None
    height: int | None = None
    skip_inactive: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_explicit_size(self) -> bool:
        """Whether both a player width and height were given."""
        return bool(self.width) and bool(self.height)

    def to_props(self) -> dict[str, Any]:
        """Convert to the rrweb-player ``props`` dictionary (without events)."""
        props: dict[str, Any] = dict(self.extra)
        for attr, key in _PLAYER_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                props[key] = value
        return props

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PlayerOptions":
        """Create from a dictionary using either rrweb or snake_case names."""
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        by_camel = {camel: attr for attr, camel in _PLAYER_FIELDS.items()}
        for key, value in d.items():
            if key in _PLAYER_FIELDS:
                known[key] = value
            elif key in by_camel:
                known[by_camel[key]] = value
            elif key == "events":
                raise ConfigError("player options must not contain 'events'")
            else:
                extra[key] = value
        return cls(**known, extra=extra)

    def merged(self, **overrides: Any) -> "PlayerOptions":
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def load_player_options(path: Path | str) -> PlayerOptions:
    """Load player options from a YAML or JSON file.

    Args:
        path: Path to the options file.

    Returns:
        The parsed PlayerOptions.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read player options {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"invalid player options in {path}: {e}") from e

    if data is None:
        return PlayerOptions()
    if not isinstance(data, dict):
        raise ConfigError(f"player options in {path} must be a mapping")
    return PlayerOptions.from_dict(data)


@dataclass(frozen=True)
class RecordingConfig:
    """Immutable settings for one conversion.

    Validated once when a session starts and never mutated afterwards.
    """

    input: Path
    output: Path = Path(DEFAULT_OUTPUT)
    fps: int = DEFAULT_FPS
    video_bitrate: str = DEFAULT_VIDEO_BITRATE
    headless: bool = True
    chrome_path: str | None = None
    ffmpeg_path: str = "ffmpeg"
    player: PlayerOptions = field(default_factory=PlayerOptions)

    # Rendering host viewport
    viewport_width: int = 1920
    viewport_height: int = 1080
    device_scale_factor: int = 2  # Integer factor avoids blurry rescaling

    # Consecutive skipped frames that abort the session (None = never)
    max_consecutive_failures: int | None = None

    # Local rrweb-player assets; the CDN build is used when unset
    player_script: Path | None = None
    player_style: Path | None = None

    @classmethod
    def from_env(cls, input: Path | str, **kwargs: Any) -> "RecordingConfig":
        """Create a config, filling unset host paths from the environment.

        Recognized variables: ``RRVIDEO_CHROME_PATH``, ``RRVIDEO_FFMPEG_PATH``,
        ``RRVIDEO_PLAYER_SCRIPT`` and ``RRVIDEO_PLAYER_STYLE``.
        """
        env_defaults = {
            "chrome_path": os.getenv("RRVIDEO_CHROME_PATH"),
            "ffmpeg_path": os.getenv("RRVIDEO_FFMPEG_PATH"),
            "player_script": os.getenv("RRVIDEO_PLAYER_SCRIPT"),
            "player_style": os.getenv("RRVIDEO_PLAYER_STYLE"),
        }
        for key, value in env_defaults.items():
            if kwargs.get(key) is None and value:
                kwargs[key] = value
        kwargs = {k: v for k, v in kwargs.items() if v is not None}

        for key in ("output", "player_script", "player_style"):
            if key in kwargs:
                kwargs[key] = Path(kwargs[key])
        return cls(input=Path(input), **kwargs)

    def validate(self) -> None:
        """Check every field, raising ConfigError on the first problem."""
        if isinstance(self.fps, bool) or not isinstance(self.fps, int) or self.fps <= 0:
            raise ConfigError(f"fps must be a positive integer, got {self.fps!r}")
        if not _BITRATE_RE.match(self.video_bitrate or ""):
            raise ConfigError(
                f"video bitrate must look like '2000k', got {self.video_bitrate!r}"
            )
        if not str(self.input).strip() or str(self.input) == ".":
            raise ConfigError("an input event log path is required")
        if not str(self.output).strip():
            raise ConfigError("an output path is required")
        if not self.ffmpeg_path:
            raise ConfigError("ffmpeg executable path must not be empty")
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ConfigError("viewport dimensions must be positive")
        if self.device_scale_factor <= 0:
            raise ConfigError("device scale factor must be positive")
        if self.max_consecutive_failures is not None and self.max_consecutive_failures <= 0:
            raise ConfigError("max consecutive failures must be positive when set")
        if self.player.start_delay_time < 0:
            raise ConfigError("start delay must not be negative")
        for asset in (self.player_script, self.player_style):
            if asset is not None and not Path(asset).is_file():
                raise ConfigError(f"player asset not found: {asset}")

    @property
    def input_path(self) -> Path:
        """Input path, resolved against the working directory if relative."""
        return _resolve(self.input)

    @property
    def output_path(self) -> Path:
        """Output path, resolved against the working directory if relative."""
        return _resolve(self.output)

    @property
    def frame_interval(self) -> float:
        """Seconds between two sampling ticks."""
        return 1.0 / self.fps

    @property
    def surface_selector(self) -> str:
        """CSS selector of the element sampled for each frame."""
        if self.player.has_explicit_size:
            return PLAYER_SELECTOR
        return WRAPPER_SELECTOR


def _resolve(path: Path) -> Path:
    path = Path(path)
    if path.is_absolute():
        return path
    return Path.cwd() / path
