"""Fatal error kinds and recoverable per-application violations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar


class AppupGenError(Exception):
    """Base class for errors that abort the whole run."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message


class ArtifactReadError(AppupGenError):
    """Raised when a compiled module artifact cannot be read or hashed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__("index", f"cannot read artifact {path}: {reason}")
        self.path = path
        self.reason = reason


class DescriptorParseError(AppupGenError):
    """Raised when an application descriptor is missing fields or malformed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__("index", f"invalid application descriptor {path}: {reason}")
        self.path = path
        self.reason = reason


class ActionListParseError(AppupGenError):
    """Raised when an existing upgrade file cannot be parsed. Always fatal."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__("load", f"invalid upgrade file {path}: {reason}")
        self.path = path
        self.reason = reason


class ExternalCommandFailure(AppupGenError):
    """Raised when the build or source-control command exits non-zero."""

    def __init__(self, step: str, command: list[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(
            step,
            f"{step} command {' '.join(command)!r} exited with status {returncode}: {detail}",
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr


@dataclass(slots=True, frozen=True)
class Violation:
    """Per-application problem that invalidates the run without aborting it."""

    kind: ClassVar[str] = "violation"

    app: str
    message: str

    def to_dict(self) -> dict[str, str]:
        """Return serializable violation payload."""
        return {"kind": self.kind, "app": self.app, "message": self.message}


@dataclass(slots=True, frozen=True)
class VersionNotBumped(Violation):
    """Modules changed while the application version stayed the same."""

    kind: ClassVar[str] = "version_not_bumped"


@dataclass(slots=True, frozen=True)
class MissingRecordForRequiredUpdate(Violation):
    """Instructions are needed but no upgrade file location is known."""

    kind: ClassVar[str] = "missing_record"


@dataclass(slots=True, frozen=True)
class UpdateRequired(Violation):
    """Check mode found an upgrade file that is out of date."""

    kind: ClassVar[str] = "update_required"
