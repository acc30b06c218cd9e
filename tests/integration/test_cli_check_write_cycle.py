from __future__ import annotations

import io
import json
from pathlib import Path

from tests.release_fixtures import write_app, write_stub

from appup_gen.appup import delete_module, load_module, parse_record
from appup_gen.cli import EXIT_FATAL, EXIT_INVALID, EXIT_VALID, main


def _layout(tmp_path: Path) -> tuple[Path, Path, Path]:
    current = tmp_path / "current"
    previous = tmp_path / "previous"
    sources = tmp_path / "apps"
    write_app(current, "core", "1.1.0", {"a": b"a1", "b": b"b2", "c": b"c1"})
    write_app(previous, "core", "1.0.0", {"a": b"a1", "b": b"b1", "d": b"d1"})
    write_app(current, "web", "2.0.0", {"handler": b"h1"})
    write_app(previous, "web", "2.0.0", {"handler": b"h1"})
    write_stub(sources, "core")
    write_stub(sources, "web")
    return current, previous, sources


def _run(tmp_path: Path, mode: str, *extra: str) -> tuple[int, str]:
    stderr = io.StringIO()
    code = main(
        [
            mode,
            "--repo-root",
            str(tmp_path),
            "--current-release-dir",
            str(tmp_path / "current"),
            "--previous-release-dir",
            str(tmp_path / "previous"),
            "--source-root",
            str(tmp_path / "apps"),
            *extra,
        ],
        stderr=stderr,
    )
    return code, stderr.getvalue()


def test_check_then_write_then_check_is_clean(tmp_path: Path) -> None:
    _layout(tmp_path)
    record_path = tmp_path / "apps" / "core" / "src" / "core.appup.src"

    code, output = _run(tmp_path, "--check")
    assert code == EXIT_INVALID
    assert "[update_required] core" in output
    assert not record_path.exists()

    code, _ = _run(tmp_path, "--write")
    assert code == EXIT_VALID
    record = parse_record(record_path.read_text(encoding="utf-8"))
    assert record.upgrade.actions_for("1.0.0") == (
        load_module("b"),
        load_module("c"),
        delete_module("d"),
    )
    assert not (tmp_path / "apps" / "web" / "src" / "web.appup.src").exists()

    written = record_path.read_bytes()
    code, output = _run(tmp_path, "--check")
    assert code == EXIT_VALID
    assert "no problems" in output
    assert record_path.read_bytes() == written


def test_report_and_run_log_are_written(tmp_path: Path) -> None:
    _layout(tmp_path)
    report_path = tmp_path / "report.json"
    data_dir = tmp_path / "data"

    code, _ = _run(
        tmp_path, "--check", "--quiet", "--report", str(report_path), "--data-dir", str(data_dir)
    )

    assert code == EXIT_INVALID
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["mode"] == "check"
    assert report["valid"] is False
    assert [outcome["state"] for outcome in report["outcomes"]] == ["reported", "unchanged"]
    assert report["outcomes"][0]["upgrade"] == {"added": ["c"], "changed": ["b"], "deleted": ["d"]}
    assert report["config"]["data_dir"] == str(data_dir.resolve())

    events = [
        json.loads(line)
        for line in (data_dir / "runs.jsonl").read_text(encoding="utf-8").splitlines()
    ]
    assert [event["app"] for event in events] == ["core", "web", None]
    assert events[-1]["state"] == "invalid"
    assert events[-1]["violations"][0]["kind"] == "update_required"
    assert len({event["run_id"] for event in events}) == 1


def test_unreadable_artifact_is_fatal(tmp_path: Path) -> None:
    _layout(tmp_path)
    (tmp_path / "current" / "lib" / "core-1.1.0" / "ebin" / "a.beam").write_bytes(b"junk")

    code, output = _run(tmp_path, "--write")

    assert code == EXIT_FATAL
    assert "index failed: cannot read artifact" in output
    assert not (tmp_path / "apps" / "core" / "src" / "core.appup.src").exists()


def test_malformed_upgrade_file_is_fatal(tmp_path: Path) -> None:
    _layout(tmp_path)
    record_path = tmp_path / "apps" / "core" / "src" / "core.appup.src"
    record_path.write_text("{\"1.1.0\", [", encoding="utf-8")

    code, output = _run(tmp_path, "--write")

    assert code == EXIT_FATAL
    assert "load failed: invalid upgrade file" in output
    assert record_path.read_text(encoding="utf-8") == "{\"1.1.0\", ["


def test_invalid_config_is_fatal(tmp_path: Path) -> None:
    _layout(tmp_path)
    (tmp_path / "appup_gen.toml").write_text("[build]\ncommand = 3\n", encoding="utf-8")

    code, output = _run(tmp_path, "--check")

    assert code == EXIT_FATAL
    assert "invalid configuration" in output


def test_last_run_replays_the_recorded_outcome(tmp_path: Path) -> None:
    _layout(tmp_path)
    data_dir = tmp_path / "data"
    _run(tmp_path, "--check", "--data-dir", str(data_dir))

    code, output = _run(tmp_path, "--check", "--data-dir", str(data_dir), "--last-run")
    assert code == EXIT_INVALID
    assert "(check against prebuilt release): invalid" in output
    assert "  core: reported" in output
    assert "  web: unchanged" in output
    assert "[update_required] core" in output

    _run(tmp_path, "--write", "--data-dir", str(data_dir))
    code, output = _run(tmp_path, "--check", "--data-dir", str(data_dir), "--last-run")
    assert code == EXIT_VALID
    assert "(write against prebuilt release): valid" in output


def test_last_run_without_history_is_fatal(tmp_path: Path) -> None:
    stderr = io.StringIO()
    code = main(["--repo-root", str(tmp_path), "--last-run"], stderr=stderr)
    assert code == EXIT_FATAL
    assert "no completed run recorded" in stderr.getvalue()
