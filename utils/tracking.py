"""Frame statistics and time tracking utilities."""

import io
import time
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError


def probe_frame_size(frame: bytes) -> tuple[int, int] | None:
    """Return the (width, height) of an encoded frame, or None if unreadable."""
    try:
        with Image.open(io.BytesIO(frame)) as image:
            return image.size
    except (UnidentifiedImageError, OSError):
        return None


@dataclass
class FrameStats:
    """Counts frames captured, skipped and written during one recording."""

    captured: int = 0
    skipped: int = 0
    bytes_written: int = 0
    consecutive_skips: int = 0
    frame_size: tuple[int, int] | None = None  # Taken from the first frame

    def record_frame(self, frame: bytes) -> None:
        """Record a frame that was written to the encoder."""
        if self.captured == 0:
            self.frame_size = probe_frame_size(frame)
        self.captured += 1
        self.bytes_written += len(frame)
        self.consecutive_skips = 0

    def record_skip(self) -> None:
        """Record a tick whose capture failed."""
        self.skipped += 1
        self.consecutive_skips += 1

    @property
    def attempted(self) -> int:
        """Total capture attempts."""
        return self.captured + self.skipped

    def get_summary(self, fps: int) -> dict[str, str]:
        """Get a summary dictionary for display."""
        size = f"{self.frame_size[0]}x{self.frame_size[1]}" if self.frame_size else "unknown"
        return {
            "Frames": f"{self.captured:,}",
            "Skipped": f"{self.skipped:,}",
            "Video Length": f"{self.captured / fps:.1f}s",
            "Frame Size": size,
            "Encoded Input": f"{self.bytes_written / (1024 * 1024):.1f} MB",
        }


class Timer:
    """Wall-clock time between start() and stop() of a recording."""

    def __init__(self, name: str = "Recording"):
        self.name = name
        self.start_time: float | None = None
        self.end_time: float | None = None

    def start(self) -> None:
        self.start_time = time.monotonic()

    def stop(self) -> float:
        """Stop the timer and return the elapsed seconds."""
        self.end_time = time.monotonic()
        return self.elapsed

    @property
    def elapsed(self) -> float:
        """Seconds since start(), up to stop() once stopped."""
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.monotonic()
        return end - self.start_time

    @property
    def elapsed_str(self) -> str:
        """Elapsed time as ``12.3s``, ``4m 5s`` or ``1h 2m 5s``."""
        total = self.elapsed
        if total < 60:
            return f"{total:.1f}s"
        minutes, seconds = divmod(total, 60)
        hours, minutes = divmod(int(minutes), 60)
        if not hours:
            return f"{minutes}m {seconds:.0f}s"
        return f"{hours}h {minutes}m {seconds:.0f}s"
