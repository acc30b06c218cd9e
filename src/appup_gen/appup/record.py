"""Upgrade file model: parsing, amending and rendering ``{VSN, Up, Down}``."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from appup_gen.appup.actions import Action, action_from_term
from appup_gen.errors import ActionListParseError
from appup_gen.terms import (
    Placeholder,
    Term,
    TermSyntaxError,
    leading_comments,
    parse_terms,
    render_term,
)

VERSION_PLACEHOLDER = "VSN"


@dataclass(slots=True, frozen=True)
class VersionPattern:
    """Binary (regular expression) version matcher."""

    pattern: str


WILDCARD = VersionPattern(".*")

VersionMatcher = str | VersionPattern


@dataclass(slots=True, frozen=True)
class VersionEntry:
    """Instructions to apply when moving from/to a matching version."""

    matcher: VersionMatcher
    actions: tuple[Action, ...] = ()


@dataclass(slots=True, frozen=True)
class VersionedActionList:
    """Ordered version entries as read from disk."""

    entries: tuple[VersionEntry, ...] = ()

    def actions_for(self, version: str) -> tuple[Action, ...]:
        """Return the instructions recorded for exactly ``version``."""
        for entry in self.entries:
            if entry.matcher == version:
                return entry.actions
        return ()

    def with_actions(self, version: str, actions: Sequence[Action]) -> VersionedActionList:
        """Replace the first entry for ``version`` in place, or insert it at the front.

        Later duplicates of ``version`` are never read by ``actions_for`` and
        are kept as they are.
        """
        updated = VersionEntry(matcher=version, actions=tuple(actions))
        for position, entry in enumerate(self.entries):
            if entry.matcher == version:
                return VersionedActionList(
                    entries=(*self.entries[:position], updated, *self.entries[position + 1 :])
                )
        return VersionedActionList(entries=(updated, *self.entries))


@dataclass(slots=True, frozen=True)
class AppRecord:
    """Upgrade and downgrade instruction lists of one application."""

    version: str | Placeholder
    upgrade: VersionedActionList
    downgrade: VersionedActionList
    header_comments: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> AppRecord:
        """Record with only an empty wildcard entry in each direction."""
        catch_all = VersionedActionList(entries=(VersionEntry(matcher=WILDCARD),))
        return cls(
            version=Placeholder(VERSION_PLACEHOLDER),
            upgrade=catch_all,
            downgrade=catch_all,
        )

    def amend(
        self,
        version: str,
        upgrade_actions: Sequence[Action],
        downgrade_actions: Sequence[Action],
    ) -> AppRecord:
        """Return a copy whose ``version`` entries hold the given instructions."""
        return replace(
            self,
            upgrade=self.upgrade.with_actions(version, upgrade_actions),
            downgrade=self.downgrade.with_actions(version, downgrade_actions),
        )


def parse_record(text: str, source: Path | str = "<string>") -> AppRecord:
    """Parse upgrade file text; ``VSN`` is kept as a symbolic placeholder."""
    try:
        terms = parse_terms(text, placeholders=(VERSION_PLACEHOLDER,))
    except TermSyntaxError as error:
        raise ActionListParseError(source, str(error)) from error
    if len(terms) != 1:
        raise ActionListParseError(source, f"expected exactly one term, found {len(terms)}")
    term = terms[0]
    if not isinstance(term, tuple) or len(term) != 3:
        raise ActionListParseError(source, "expected {Vsn, UpgradeList, DowngradeList}")
    version, upgrade, downgrade = term
    if not isinstance(version, (str, Placeholder)):
        raise ActionListParseError(source, "version must be a string or VSN")
    return AppRecord(
        version=version,
        upgrade=_parse_entries(upgrade, source, "upgrade"),
        downgrade=_parse_entries(downgrade, source, "downgrade"),
        header_comments=leading_comments(text),
    )


def _parse_entries(value: Term, source: Path | str, direction: str) -> VersionedActionList:
    if not isinstance(value, list):
        raise ActionListParseError(source, f"{direction} instructions must be a list")
    entries: list[VersionEntry] = []
    for item in value:
        if not isinstance(item, tuple) or len(item) != 2 or not isinstance(item[1], list):
            raise ActionListParseError(
                source, f"{direction} entries must be {{Version, [Instruction]}} tuples"
            )
        entries.append(
            VersionEntry(
                matcher=_parse_matcher(item[0], source, direction),
                actions=tuple(action_from_term(action) for action in item[1]),
            )
        )
    return VersionedActionList(entries=tuple(entries))


def _parse_matcher(value: Term, source: Path | str, direction: str) -> VersionMatcher:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return VersionPattern(pattern=value.decode("latin-1"))
    raise ActionListParseError(source, f"{direction} version must be a string or a binary")


def render_record(record: AppRecord) -> str:
    """Render a record in the stable layout used for every rewrite."""
    lines = list(record.header_comments)
    lines.append(
        "{"
        + render_term(record.version)
        + ",\n "
        + _render_entries(record.upgrade, column=1)
        + ",\n "
        + _render_entries(record.downgrade, column=1)
        + "}."
    )
    return "\n".join(lines) + "\n"


def _render_entries(entries: VersionedActionList, column: int) -> str:
    if not entries.entries:
        return "[]"
    separator = ",\n" + " " * (column + 1)
    rendered = (_render_entry(entry, column + 1) for entry in entries.entries)
    return "[" + separator.join(rendered) + "]"


def _render_entry(entry: VersionEntry, column: int) -> str:
    matcher = _render_matcher(entry.matcher)
    if not entry.actions:
        return "{" + matcher + ",[]}"
    separator = ",\n" + " " * (column + 2)
    actions = separator.join(render_term(action.term) for action in entry.actions)
    return "{" + matcher + ",\n" + " " * (column + 1) + "[" + actions + "]}"


def _render_matcher(matcher: VersionMatcher) -> str:
    if isinstance(matcher, VersionPattern):
        return render_term(matcher.pattern.encode("latin-1"))
    return render_term(matcher)
