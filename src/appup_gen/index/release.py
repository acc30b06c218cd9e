"""Deterministic discovery of applications bundled in a release directory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from appup_gen.config import LayoutConfig
from appup_gen.errors import DescriptorParseError
from appup_gen.index.content import index_artifacts
from appup_gen.index.models import AppIndex
from appup_gen.terms import Atom, TermSyntaxError, parse_terms

_APPLICATION_TAG = Atom("application")
_VSN_KEY = Atom("vsn")


@dataclass(slots=True, frozen=True)
class Descriptor:
    """Fields read from one application descriptor."""

    name: str
    version: str
    path: Path


def index_release(release_root: Path, layout: LayoutConfig | None = None) -> dict[str, AppIndex]:
    """Index every application of a release, keyed by application name."""
    active_layout = layout or LayoutConfig()
    root = release_root.resolve()
    if not root.is_dir():
        raise DescriptorParseError(root, "release directory does not exist")

    output: dict[str, AppIndex] = {}
    for path in discover_descriptors(root, active_layout):
        descriptor = parse_descriptor(path)
        existing = output.get(descriptor.name)
        if existing is not None:
            raise DescriptorParseError(
                path,
                f"application '{descriptor.name}' is already declared in {existing.binaries_dir}",
            )
        # Binaries are assumed to sit beside the descriptor.
        modules = index_artifacts(path.parent, active_layout.artifact_extension)
        output[descriptor.name] = AppIndex(
            name=descriptor.name,
            version=descriptor.version,
            modules=modules,
            binaries_dir=path.parent,
        )
    return dict(sorted(output.items()))


def discover_descriptors(root: Path, layout: LayoutConfig) -> list[Path]:
    """Walk the tree and return descriptors living in a binaries directory."""
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
            full_path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                stack.append(full_path)
                continue
            if (
                entry.is_file(follow_symlinks=False)
                and full_path.suffix == layout.descriptor_extension
                and full_path.parent.name == layout.binaries_dir
            ):
                found.append(full_path)
    return sorted(found)


def parse_descriptor(path: Path) -> Descriptor:
    """Read ``{application, Name, Props}`` and its ``vsn`` property."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise DescriptorParseError(path, str(error)) from error
    try:
        terms = parse_terms(text)
    except TermSyntaxError as error:
        raise DescriptorParseError(path, str(error)) from error

    if len(terms) != 1:
        raise DescriptorParseError(path, f"expected exactly one term, found {len(terms)}")
    term = terms[0]
    if (
        not isinstance(term, tuple)
        or len(term) != 3
        or term[0] != _APPLICATION_TAG
        or not isinstance(term[1], Atom)
        or not isinstance(term[2], list)
    ):
        raise DescriptorParseError(path, "expected {application, Name, Properties}")

    version: object = None
    for item in term[2]:
        if isinstance(item, tuple) and len(item) == 2 and item[0] == _VSN_KEY:
            version = item[1]
            break
    if not isinstance(version, str) or not version:
        raise DescriptorParseError(path, "missing string 'vsn' property")
    return Descriptor(name=term[1].name, version=version, path=path)
