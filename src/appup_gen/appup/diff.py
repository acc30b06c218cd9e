"""Module-level diff between two indexes of the same application."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from appup_gen.errors import VersionNotBumped
from appup_gen.index.models import AppIndex, ModuleDiff


@dataclass(slots=True, frozen=True)
class DiffOutcome:
    """Diff plus the consistency violation it revealed, if any."""

    app: str
    from_version: str
    to_version: str
    diff: ModuleDiff
    violation: VersionNotBumped | None = None


def diff_modules(new: Mapping[str, str], old: Mapping[str, str]) -> ModuleDiff:
    """Compute deterministic added/changed/deleted module sets."""
    new_names = set(new.keys())
    old_names = set(old.keys())
    changed = [name for name in sorted(new_names & old_names) if new[name] != old[name]]
    return ModuleDiff(
        added=tuple(sorted(new_names - old_names)),
        changed=tuple(changed),
        deleted=tuple(sorted(old_names - new_names)),
    )


def diff_app(app_name: str, new_index: AppIndex, old_index: AppIndex) -> DiffOutcome:
    """Diff ``old_index`` -> ``new_index`` and flag changes without a version bump.

    ``diff_app(app, current, previous)`` gives the upgrade diff and
    ``diff_app(app, previous, current)`` the downgrade diff.
    """
    diff = diff_modules(new_index.modules, old_index.modules)
    violation = None
    if new_index.version == old_index.version and not diff.is_empty:
        touched = ", ".join((*diff.added, *diff.changed, *diff.deleted))
        violation = VersionNotBumped(
            app=app_name,
            message=(
                f"modules changed but version is still {new_index.version!r}: {touched}"
            ),
        )
    return DiffOutcome(
        app=app_name,
        from_version=old_index.version,
        to_version=new_index.version,
        diff=diff,
        violation=violation,
    )
