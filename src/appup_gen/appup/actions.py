"""Upgrade instruction shapes recognized by the merger."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from appup_gen.terms import Atom, Term

LOAD_MODULE = Atom("load_module")
DELETE_MODULE = Atom("delete_module")
PURGE = Atom("purge")
BRUTAL_PURGE = Atom("brutal_purge")
SOFT_PURGE = Atom("soft_purge")


@dataclass(slots=True, frozen=True)
class LoadModule:
    """Replace a module's code in place."""

    module: str
    term: Term

    def covers(self) -> frozenset[str]:
        return frozenset({self.module})


@dataclass(slots=True, frozen=True)
class DeleteModule:
    """Remove a module."""

    module: str
    term: Term

    def covers(self) -> frozenset[str]:
        return frozenset({self.module})


@dataclass(slots=True, frozen=True)
class PurgeModules:
    """Bulk purge; only ever written by hand."""

    modules: tuple[str, ...]
    term: Term

    def covers(self) -> frozenset[str]:
        return frozenset(self.modules)


@dataclass(slots=True, frozen=True)
class OpaqueAction:
    """Any other instruction, kept verbatim and never inspected."""

    term: Term

    def covers(self) -> frozenset[str]:
        return frozenset()


Action = LoadModule | DeleteModule | PurgeModules | OpaqueAction


def load_module(module: str) -> LoadModule:
    """Build the generated load instruction for ``module``."""
    return LoadModule(
        module=module,
        term=(LOAD_MODULE, Atom(module), BRUTAL_PURGE, SOFT_PURGE, []),
    )


def delete_module(module: str) -> DeleteModule:
    """Build the generated delete instruction for ``module``."""
    return DeleteModule(module=module, term=(DELETE_MODULE, Atom(module)))


def action_from_term(term: Term) -> Action:
    """Classify a parsed instruction term."""
    if not isinstance(term, tuple) or len(term) < 2 or not isinstance(term[0], Atom):
        return OpaqueAction(term=term)
    tag, subject = term[0], term[1]

    if tag == LOAD_MODULE and isinstance(subject, Atom):
        if len(term) == 2:
            return LoadModule(module=subject.name, term=term)
        if len(term) == 3 and isinstance(term[2], list):
            return LoadModule(module=subject.name, term=term)
        if (
            len(term) == 5
            and isinstance(term[2], Atom)
            and isinstance(term[3], Atom)
            and isinstance(term[4], list)
        ):
            return LoadModule(module=subject.name, term=term)
    if tag == DELETE_MODULE and isinstance(subject, Atom):
        if len(term) == 2 or (len(term) == 3 and isinstance(term[2], list)):
            return DeleteModule(module=subject.name, term=term)
    if (
        tag == PURGE
        and len(term) == 2
        and isinstance(subject, list)
        and all(isinstance(item, Atom) for item in subject)
    ):
        return PurgeModules(modules=tuple(item.name for item in subject), term=term)
    return OpaqueAction(term=term)


def covered_modules(actions: Iterable[Action]) -> frozenset[str]:
    """Return every module name that already has an instruction."""
    covered: set[str] = set()
    for action in actions:
        covered.update(action.covers())
    return frozenset(covered)
