"""Merge a module diff into an existing, possibly hand-edited, instruction list."""

from __future__ import annotations

from collections.abc import Sequence

from appup_gen.appup.actions import Action, covered_modules, delete_module, load_module
from appup_gen.index.models import ModuleDiff


def merge_actions(diff: ModuleDiff, existing: Sequence[Action]) -> tuple[Action, ...]:
    """Return ``existing`` with instructions for unhandled modules added.

    Modules already covered by an existing instruction are left alone. New
    loads go in front of every existing instruction, new deletes after them.
    Applying the same diff to the result again yields the result unchanged.
    """
    handled = covered_modules(existing)
    loads = sorted((set(diff.changed) | set(diff.added)) - handled)
    deletes = sorted(set(diff.deleted) - handled)
    return (
        *(load_module(name) for name in loads),
        *existing,
        *(delete_module(name) for name in deletes),
    )
