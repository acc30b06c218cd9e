from __future__ import annotations

import io
from pathlib import Path

from tests.release_fixtures import write_app, write_stub

from appup_gen.cli import EXIT_INVALID, main


def _main(tmp_path: Path, *args: str) -> tuple[int, str]:
    stderr = io.StringIO()
    code = main(
        [
            "--repo-root",
            str(tmp_path),
            "--current-release-dir",
            str(tmp_path / "current"),
            "--previous-release-dir",
            str(tmp_path / "previous"),
            "--source-root",
            str(tmp_path / "apps"),
            *args,
        ],
        stderr=stderr,
    )
    return code, stderr.getvalue()


def test_changed_modules_without_version_bump_fail(tmp_path: Path) -> None:
    write_app(tmp_path / "current", "core", "1.0.0", {"a": b"new"})
    write_app(tmp_path / "previous", "core", "1.0.0", {"a": b"old"})
    write_stub(tmp_path / "apps", "core")

    code, output = _main(tmp_path, "--write")

    assert code == EXIT_INVALID
    assert "[version_not_bumped] core" in output
    assert not (tmp_path / "apps" / "core" / "src" / "core.appup.src").exists()


def test_missing_source_location_is_reported(tmp_path: Path) -> None:
    write_app(tmp_path / "current", "core", "1.1.0", {"a": b"new"})
    write_app(tmp_path / "previous", "core", "1.0.0", {"a": b"old"})
    (tmp_path / "apps").mkdir()

    code, output = _main(tmp_path, "--write")

    assert code == EXIT_INVALID
    assert "[missing_record] core" in output


def test_new_application_is_skipped(tmp_path: Path) -> None:
    write_app(tmp_path / "current", "fresh", "0.1.0", {"f": b"f1"})
    (tmp_path / "previous").mkdir()
    write_stub(tmp_path / "apps", "fresh")

    code, output = _main(tmp_path, "--check")

    assert code == 0
    assert "0 application(s) processed" in output
