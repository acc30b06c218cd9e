"""Source-tree index of upgrade files and descriptor stubs, built once per run."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from appup_gen.appup.record import AppRecord, parse_record, render_record
from appup_gen.config import LayoutConfig
from appup_gen.errors import ActionListParseError

_PRUNED_DIR_NAMES = frozenset({"_build", "node_modules"})


@dataclass(slots=True, frozen=True)
class SourceLocation:
    """Known source files of one application."""

    app: str
    record_path: Path | None = None
    stub_path: Path | None = None


class SourceIndex:
    """Map from application name to its upgrade file and descriptor stub."""

    def __init__(self, locations: dict[str, SourceLocation]) -> None:
        self._locations = dict(sorted(locations.items()))

    @classmethod
    def build(cls, roots: Sequence[Path], layout: LayoutConfig) -> SourceIndex:
        """Scan each root once; the first hit in root order wins."""
        locations: dict[str, SourceLocation] = {}
        for root in roots:
            for path in _walk_files(root):
                name = path.name
                if name.endswith(layout.record_suffix):
                    app = name[: -len(layout.record_suffix)]
                    current = locations.get(app, SourceLocation(app=app))
                    if current.record_path is None:
                        locations[app] = replace(current, record_path=path)
                elif name.endswith(layout.stub_suffix):
                    app = name[: -len(layout.stub_suffix)]
                    current = locations.get(app, SourceLocation(app=app))
                    if current.stub_path is None:
                        locations[app] = replace(current, stub_path=path)
        return cls(locations)

    def get(self, app: str) -> SourceLocation | None:
        return self._locations.get(app)


class AppupStore:
    """Loads, locates and atomically rewrites per-application upgrade files."""

    def __init__(self, index: SourceIndex, layout: LayoutConfig | None = None) -> None:
        self._index = index
        self._layout = layout or LayoutConfig()

    def load(self, app: str) -> AppRecord | None:
        """Parse the existing upgrade file, or return None when there is none."""
        location = self._index.get(app)
        if location is None or location.record_path is None:
            return None
        path = location.record_path
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise ActionListParseError(path, str(error)) from error
        return parse_record(text, source=path)

    def locate(self, app: str) -> Path | None:
        """Existing upgrade file, else a new one beside the descriptor stub."""
        location = self._index.get(app)
        if location is None:
            return None
        if location.record_path is not None:
            return location.record_path
        if location.stub_path is not None:
            return location.stub_path.parent / f"{app}{self._layout.record_suffix}"
        return None

    def save(self, app: str, record: AppRecord) -> Path:
        """Write ``record`` to the located path and return it."""
        path = self.locate(app)
        if path is None:
            raise FileNotFoundError(f"no upgrade file location known for application '{app}'")
        tmp = path.with_name(path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(render_record(record))
        tmp.replace(path)
        return path


def _walk_files(root: Path) -> list[Path]:
    found: list[Path] = []
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        for entry in reversed(ordered_entries):
            if entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in _PRUNED_DIR_NAMES:
                    stack.append(Path(entry.path))
                continue
            if entry.is_file(follow_symlinks=False):
                found.append(Path(entry.path))
    return sorted(found)
