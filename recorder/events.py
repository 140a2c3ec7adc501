"""Loading and summarising rrweb session event logs."""

import json
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import EventLogError

_module_logger = logging.getLogger(__name__)

# rrweb EventType values
EVENT_TYPE_NAMES: dict[int, str] = {
    0: "DomContentLoaded",
    1: "Load",
    2: "FullSnapshot",
    3: "IncrementalSnapshot",
    4: "Meta",
    5: "Custom",
    6: "Plugin",
}


def resolve_input(path: Path | str) -> Path:
    """Resolve an event log path against the working directory if relative."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path.cwd() / path


@dataclass
class EventLog:
    """A parsed session event log."""

    events: list[dict[str, Any]]
    source: Path

    def __len__(self) -> int:
        return len(self.events)

    @property
    def timestamps(self) -> list[float]:
        """Numeric timestamps (milliseconds) of the events that carry one."""
        return [
            e["timestamp"] for e in self.events
            if isinstance(e.get("timestamp"), (int, float)) and not isinstance(e.get("timestamp"), bool)
        ]

    @property
    def start_time(self) -> float | None:
        stamps = self.timestamps
        return min(stamps) if stamps else None

    @property
    def end_time(self) -> float | None:
        stamps = self.timestamps
        return max(stamps) if stamps else None

    @property
    def duration(self) -> float:
        """Span between the first and last event, in seconds."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time) / 1000.0

    def type_counts(self) -> dict[str, int]:
        """Number of events per rrweb event type name."""
        counts: Counter[str] = Counter()
        for event in self.events:
            kind = event.get("type")
            counts[EVENT_TYPE_NAMES.get(kind, f"type {kind}")] += 1
        return dict(counts)

    def to_json(self) -> str:
        """Serialize the events for embedding in the replay page."""
        return json.dumps(self.events, ensure_ascii=False)


def load_event_log(path: Path | str) -> EventLog:
    """Read and parse a session event log.

    Args:
        path: Path to a JSON file holding an array of event objects.

    Returns:
        The parsed EventLog.

    Raises:
        EventLogError: If the file cannot be read or is not a JSON array
            of objects.
    """
    source = resolve_input(path)

    try:
        text = source.read_text(encoding="utf-8")
    except OSError as e:
        _module_logger.error(f"Cannot read event log {source}: {e}")
        raise EventLogError(f"cannot read event log {source}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        _module_logger.error(f"Malformed event log {source}: {e}")
        raise EventLogError(f"malformed event log {source}: {e}") from e

    if not isinstance(data, list):
        raise EventLogError(
            f"event log {source} must be a JSON array, got {type(data).__name__}"
        )
    for index, event in enumerate(data):
        if not isinstance(event, dict):
            raise EventLogError(f"event {index} in {source} is not an object")

    return EventLog(events=data, source=source)
