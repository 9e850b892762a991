"""Line-oriented progress messages."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

TelemetrySink = Callable[[str], None]


def emit(sink: Optional[TelemetrySink], line: str) -> None:
    """Send ``line`` to ``sink`` if there is one."""

    if sink is not None:
        sink(line)


class TelemetryLog:
    """Collect telemetry lines and optionally tee them to stdout or a file."""

    def __init__(self, path: str | Path | None = None, *, echo: bool = False) -> None:
        self.lines: List[str] = []
        self.echo = echo
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("")

    def __call__(self, line: str) -> None:
        self.lines.append(line)
        if self.echo:
            print(line)
        if self.path is not None:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


__all__ = ["TelemetryLog", "TelemetrySink", "emit"]
