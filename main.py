#!/usr/bin/env python3
"""
rrvideo CLI

Converts recorded rrweb session event logs into video files.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from config import (
    DEFAULT_FPS,
    DEFAULT_OUTPUT,
    DEFAULT_VIDEO_BITRATE,
    PlayerOptions,
    RecordingConfig,
    load_player_options,
)
from recorder.errors import RecorderError
from utils.logger import SessionLogger

load_dotenv()

# Create Typer app
app = typer.Typer(
    name="rrvideo",
    help="Turn recorded rrweb sessions into videos",
    rich_markup_mode="rich",
)

console = Console()


@app.command()
def convert(
    input: Annotated[
        Path,
        typer.Argument(help="Path to the session event log (.json)"),
    ],
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Output video path"),
    ] = Path(DEFAULT_OUTPUT),
    fps: Annotated[
        int,
        typer.Option("--fps", min=1, help="Frames per second"),
    ] = DEFAULT_FPS,
    bitrate: Annotated[
        str,
        typer.Option("--bitrate", help="Video bitrate, e.g. 2000k"),
    ] = DEFAULT_VIDEO_BITRATE,
    headless: Annotated[
        bool,
        typer.Option("--headless/--no-headless", help="Run the browser without a window"),
    ] = True,
    chrome_path: Annotated[
        Optional[str],
        typer.Option("--chrome-path", help="Chromium/Chrome executable (default: Playwright's)"),
    ] = None,
    ffmpeg_path: Annotated[
        Optional[str],
        typer.Option("--ffmpeg-path", help="ffmpeg executable"),
    ] = None,
    player_config: Annotated[
        Optional[Path],
        typer.Option("--player-config", help="YAML or JSON file with rrweb-player options"),
    ] = None,
    auto_play: Annotated[
        Optional[bool],
        typer.Option("--auto-play/--no-auto-play", help="Start playback without the start delay"),
    ] = None,
    start_delay: Annotated[
        Optional[int],
        typer.Option("--start-delay", min=0, help="Milliseconds to wait before playback starts"),
    ] = None,
    speed: Annotated[
        Optional[float],
        typer.Option("--speed", help="Playback speed multiplier"),
    ] = None,
    width: Annotated[
        Optional[int],
        typer.Option("--width", help="Player width in CSS pixels"),
    ] = None,
    height: Annotated[
        Optional[int],
        typer.Option("--height", help="Player height in CSS pixels"),
    ] = None,
    max_failures: Annotated[
        Optional[int],
        typer.Option(
            "--max-consecutive-failures",
            min=1,
            help="Abort after this many frame captures fail in a row",
        ),
    ] = None,
    show_encoder: Annotated[
        bool,
        typer.Option("--show-encoder", help="Echo ffmpeg output to the console"),
    ] = False,
) -> None:
    """Replay a session event log and record it to a video file."""
    from recorder.session import RecordingSession

    try:
        player = load_player_options(player_config) if player_config else PlayerOptions()
        player = player.merged(
            auto_play=auto_play,
            start_delay_time=start_delay,
            speed=speed,
            width=width,
            height=height,
        )
        config = RecordingConfig.from_env(
            input,
            output=output,
            fps=fps,
            video_bitrate=bitrate,
            headless=headless,
            chrome_path=chrome_path,
            ffmpeg_path=ffmpeg_path,
            player=player,
            max_consecutive_failures=max_failures,
        )
        config.validate()
    except RecorderError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    logger = SessionLogger("convert", show_encoder=show_encoder)
    session = RecordingSession(config, logger=logger)

    try:
        logger.header("Session to Video")
        logger.info(f"Input: [cyan]{config.input_path}[/cyan]")
        logger.info(f"Output: [cyan]{config.output_path}[/cyan]")
        logger.info(f"Frame rate: [cyan]{config.fps} fps[/cyan], bitrate: [cyan]{config.video_bitrate}[/cyan]")

        try:
            result_path = asyncio.run(session.run())
        except KeyboardInterrupt:
            logger.warning("Recording cancelled.")
            raise typer.Exit(130)
        except RecorderError as e:
            logger.summary(
                "Conversion Failed",
                {
                    "Status": f"[red]{type(e).__name__}[/red]",
                    "Error": str(e),
                    "Log File": str(logger.log_file),
                },
                style="red",
            )
            raise typer.Exit(1)

        logger.success(f"Video saved: [cyan]{result_path}[/cyan]")
        logger.summary(
            "Conversion Complete",
            {
                "Status": "[green]Completed[/green]",
                "Recording Time": session.timer.elapsed_str,
                **session.stats.get_summary(config.fps),
                "Log File": str(logger.log_file),
            },
        )
    finally:
        logger.close()


@app.command()
def inspect(
    input: Annotated[
        Path,
        typer.Argument(help="Path to the session event log (.json)"),
    ],
) -> None:
    """Show what a session event log contains."""
    from recorder.events import load_event_log

    try:
        log = load_event_log(input)
    except RecorderError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[bold]{log.source}[/bold]\n")
    console.print(f"  Events: [cyan]{len(log):,}[/cyan]")
    console.print(f"  Duration: [cyan]{log.duration:.1f}s[/cyan]")
    if len(log) < 2:
        console.print("  [yellow]⚠ Too few events to replay; the video will show an empty surface.[/yellow]")

    counts = log.type_counts()
    if counts:
        from rich.table import Table

        table = Table(title="Events by Type")
        table.add_column("Type")
        table.add_column("Count", justify="right")
        for name, count in sorted(counts.items(), key=lambda item: -item[1]):
            table.add_row(name, f"{count:,}")
        console.print()
        console.print(table)


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
