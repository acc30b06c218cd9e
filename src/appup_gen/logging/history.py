"""Run history kept as JSON lines, grouped by run id."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path


@dataclass(slots=True, frozen=True)
class RunEvent:
    """One application outcome (``app`` set) or the summary of a run (``app`` None)."""

    timestamp: str
    run_id: str
    app: str | None
    state: str
    violations: list[dict[str, str]]
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonlRunLog:
    """History of generator runs stored under the data directory."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def record(self, events: Sequence[RunEvent]) -> None:
        """Append every event of one run in a single write."""
        if not events:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(json.dumps(asdict(event), sort_keys=True) + "\n" for event in events)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(lines)

    def runs(self) -> dict[str, list[dict[str, object]]]:
        """Group stored events by run id, oldest run first.

        Lines that are not JSON objects with a string ``run_id`` are skipped;
        an interrupted write leaves at most one such line behind.
        """
        grouped: dict[str, list[dict[str, object]]] = {}
        if not self._path.exists():
            return grouped
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if not isinstance(event, dict) or not isinstance(event.get("run_id"), str):
                    continue
                grouped.setdefault(event["run_id"], []).append(event)
        return grouped

    def last_run(self) -> list[dict[str, object]]:
        """Return the events of the most recently recorded run."""
        runs = self.runs()
        if not runs:
            return []
        return list(runs.values())[-1]
