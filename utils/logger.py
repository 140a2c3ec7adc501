"""Session logger: Rich console output mirrored into a per-command log file."""

from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme


THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "step": "blue",
    "encoder": "magenta",
    "dim": "dim",
})

# Console marker and log-file level for each message kind
MARKERS = {
    "info": ("ℹ", "INFO"),
    "success": ("✓", "SUCCESS"),
    "warning": ("⚠", "WARNING"),
    "error": ("✗", "ERROR"),
    "step": ("→", "STEP"),
}


class SessionLogger:
    """Writes styled messages to the console and plain lines to a log file.

    One log file is opened per CLI command under ``logs_dir``. Encoder
    output is always kept in the file but only reaches the console when
    ``show_encoder`` is set.
    """

    def __init__(
        self,
        command: str,
        logs_dir: Path | str = "./logs",
        console: Console | None = None,
        show_encoder: bool = False,
    ):
        self.command = command
        self.show_encoder = show_encoder
        self.console = console or Console(theme=THEME)

        logs_path = Path(logs_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        started = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = logs_path / f"{command}_{started}.log"
        self._file = self.log_file.open("w", encoding="utf-8")

    def _record(self, level: str, message: str) -> None:
        if self._file.closed:
            return
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._file.write(f"[{stamp}] {level}: {message}\n")
        self._file.flush()

    def _emit(self, kind: str, message: str, **kwargs: Any) -> None:
        marker, level = MARKERS[kind]
        self.console.print(f"[{kind}]{marker}[/{kind}] {message}", **kwargs)
        self._record(level, message)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("info", message, **kwargs)

    def success(self, message: str, **kwargs: Any) -> None:
        self._emit("success", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("error", message, **kwargs)

    def step(self, message: str, **kwargs: Any) -> None:
        self._emit("step", message, **kwargs)

    def encoder(self, line: str) -> None:
        """Log one line of ffmpeg stderr."""
        if self.show_encoder:
            self.console.print(f"[encoder]│[/encoder] [dim]{line}[/dim]", highlight=False)
        self._record("FFMPEG", line)

    def header(self, title: str) -> None:
        """Print a ruled section header."""
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]")
        self.console.print()
        self._record("HEADER", title)

    def summary(self, title: str, data: dict[str, str], style: str = "green") -> None:
        """Print key/value pairs in a bordered panel."""
        grid = Table(show_header=False, box=None, padding=(0, 2))
        grid.add_column("Key", style="bold")
        grid.add_column("Value")
        for key, value in data.items():
            grid.add_row(key, value)
        self.console.print(Panel(grid, title=f"[bold]{title}[/bold]", border_style=style))

        self._record("SUMMARY", title)
        for key, value in data.items():
            self._record("SUMMARY", f"  {key}: {value}")

    def close(self) -> None:
        """Close the log file. Later messages only reach the console."""
        self._file.close()
