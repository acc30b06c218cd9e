"""Release builders: prebuilt fixture trees or a checkout plus build command."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from appup_gen.errors import ExternalCommandFailure
from appup_gen.logging import ConsoleReporter


class ReleaseBuilder(Protocol):
    """Produces a release directory for a tag (``None`` is the working tree)."""

    def build(self, tag: str | None) -> Path: ...


class PrebuiltReleaseBuilder:
    """Returns already-built release directories keyed by tag."""

    def __init__(self, paths: Mapping[str | None, Path]) -> None:
        self._paths = dict(paths)

    def build(self, tag: str | None) -> Path:
        path = self._paths.get(tag)
        if path is None:
            raise KeyError(f"no prebuilt release registered for {tag or 'working tree'}")
        return path


def run_command(step: str, command: Sequence[str], cwd: Path) -> str:
    """Run a blocking command and return stdout; non-zero exit is fatal."""
    try:
        completed = subprocess.run(
            list(command),
            cwd=cwd,
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as error:
        raise ExternalCommandFailure(step, list(command), 127, str(error)) from error
    if completed.returncode != 0:
        raise ExternalCommandFailure(step, list(command), completed.returncode, completed.stderr)
    return completed.stdout.strip()


def resolve_latest_tag(repo_root: Path) -> str | None:
    """Return the newest tag behind the working tree, or None when there is none.

    A tag on ``HEAD`` names the release being built, so the search then starts
    from the parent commit.
    """
    start = "HEAD~1" if _head_is_tagged(repo_root) else "HEAD"
    try:
        value = run_command(
            "resolve", ["git", "describe", "--tags", "--abbrev=0", start], repo_root
        )
    except ExternalCommandFailure:
        return None
    return value or None


def _head_is_tagged(repo_root: Path) -> bool:
    try:
        run_command("resolve", ["git", "describe", "--tags", "--exact-match", "HEAD"], repo_root)
    except ExternalCommandFailure:
        return False
    return True


class GitCheckout:
    """Fetches the source tree of a tag into a work directory."""

    def __init__(self, repo_url: str, work_dir: Path) -> None:
        self._repo_url = repo_url
        self._work_dir = work_dir

    def fetch(self, tag: str) -> Path:
        """Clone ``tag`` into ``work_dir/<tag>``, replacing any stale checkout."""
        destination = self._work_dir / tag.replace("/", "_")
        if destination.exists():
            shutil.rmtree(destination)
        self._work_dir.mkdir(parents=True, exist_ok=True)
        run_command(
            "fetch",
            [
                "git",
                "clone",
                "--quiet",
                "--depth",
                "1",
                "--branch",
                tag,
                self._repo_url,
                str(destination),
            ],
            self._work_dir,
        )
        return destination


class CommandReleaseBuilder:
    """Runs the build command in the working tree or in a checkout of a tag."""

    def __init__(
        self,
        repo_root: Path,
        command: Sequence[str],
        artifacts_dir: str,
        checkout: GitCheckout,
        reporter: ConsoleReporter | None = None,
    ) -> None:
        self._repo_root = repo_root
        self._command = tuple(command)
        self._artifacts_dir = artifacts_dir
        self._checkout = checkout
        self._reporter = reporter

    def build(self, tag: str | None) -> Path:
        if tag is None:
            tree = self._repo_root
        else:
            if self._reporter is not None:
                self._reporter.info(f"fetching {tag}")
            tree = self._checkout.fetch(tag)
        if self._reporter is not None:
            self._reporter.info(f"building {tag or 'working tree'}: {' '.join(self._command)}")
        run_command("build", self._command, tree)
        return tree / self._artifacts_dir
