"""Typed models for release indexes and module diffs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True, frozen=True)
class AppIndex:
    """Module content hashes of one application in one release snapshot."""

    name: str
    version: str
    modules: Mapping[str, str]
    binaries_dir: Path


@dataclass(slots=True, frozen=True)
class ModuleDiff:
    """Deterministic module change classification between two app indexes."""

    added: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Return True when no module was added, changed or deleted."""
        return not (self.added or self.changed or self.deleted)

    def to_dict(self) -> dict[str, list[str]]:
        """Return serializable diff payload."""
        return {
            "added": list(self.added),
            "changed": list(self.changed),
            "deleted": list(self.deleted),
        }
