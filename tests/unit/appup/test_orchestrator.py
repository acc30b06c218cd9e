from __future__ import annotations

import io
from pathlib import Path

import pytest
from tests.release_fixtures import write_stub

from appup_gen.appup import delete_module, load_module, parse_record
from appup_gen.appup.orchestrator import (
    CHECK_MODE,
    STATE_FAILED,
    STATE_PERSISTED,
    STATE_REPORTED,
    STATE_UNCHANGED,
    WRITE_MODE,
    AppupOrchestrator,
)
from appup_gen.config import LayoutConfig
from appup_gen.errors import ActionListParseError
from appup_gen.index import AppIndex
from appup_gen.logging import ConsoleReporter
from appup_gen.sources import AppupStore, SourceIndex


def _index(name: str, version: str, modules: dict[str, str]) -> AppIndex:
    return AppIndex(name=name, version=version, modules=modules, binaries_dir=Path("ebin"))


def _store(source_root: Path) -> AppupStore:
    return AppupStore(SourceIndex.build([source_root], LayoutConfig()))


def test_write_mode_creates_record_beside_stub(tmp_path: Path) -> None:
    stub = write_stub(tmp_path, "core")
    current = {"core": _index("core", "1.1.0", {"a": "h1", "b": "h2", "c": "h5"})}
    previous = {"core": _index("core", "1.0.0", {"a": "h1", "b": "h3", "d": "h4"})}

    report = AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)

    assert report.valid
    [outcome] = report.outcomes
    assert outcome.state == STATE_PERSISTED
    assert outcome.record_path == stub.parent / "core.appup.src"
    record = parse_record(outcome.record_path.read_text(encoding="utf-8"))
    assert record.upgrade.actions_for("1.0.0") == (
        load_module("b"),
        load_module("c"),
        delete_module("d"),
    )
    assert record.downgrade.actions_for("1.0.0") == (
        load_module("b"),
        load_module("d"),
        delete_module("c"),
    )


def test_check_mode_reports_gap_and_writes_nothing(tmp_path: Path) -> None:
    stub = write_stub(tmp_path, "core")
    current = {"core": _index("core", "1.1.0", {"a": "new"})}
    previous = {"core": _index("core", "1.0.0", {"a": "old"})}
    stream = io.StringIO()

    report = AppupOrchestrator(
        _store(tmp_path), mode=CHECK_MODE, reporter=ConsoleReporter(stream)
    ).run(current, previous)

    assert not report.valid
    assert [violation.kind for violation in report.violations] == ["update_required"]
    assert report.outcomes[0].state == STATE_REPORTED
    assert not (stub.parent / "core.appup.src").exists()
    assert "appup-gen: error: core:" in stream.getvalue()


def test_second_run_after_write_is_unchanged(tmp_path: Path) -> None:
    write_stub(tmp_path, "core")
    current = {"core": _index("core", "1.1.0", {"a": "new", "b": "b"})}
    previous = {"core": _index("core", "1.0.0", {"a": "old"})}
    AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)

    report = AppupOrchestrator(_store(tmp_path), mode=CHECK_MODE).run(current, previous)

    assert report.valid
    assert report.outcomes[0].state == STATE_UNCHANGED


def test_manual_entries_and_wildcard_survive_rewrite(tmp_path: Path) -> None:
    src = tmp_path / "core" / "src"
    src.mkdir(parents=True)
    record_path = src / "core.appup.src"
    record_path.write_text(
        "\n".join(
            [
                "%% hand maintained",
                "{VSN,",
                ' [{"1.0.0", [{update, a, {advanced, []}}]},',
                '  {"0.9.0", [{load_module, z}]},',
                '  {<<".*">>, [{restart_application, core}]}],',
                ' [{<<".*">>, [{restart_application, core}]}]}.',
            ]
        ),
        encoding="utf-8",
    )
    current = {"core": _index("core", "1.1.0", {"a": "new", "b": "b"})}
    previous = {"core": _index("core", "1.0.0", {"a": "old"})}
    before = parse_record(record_path.read_text(encoding="utf-8"))

    AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)

    after = parse_record(record_path.read_text(encoding="utf-8"))
    assert after.header_comments == ("%% hand maintained",)
    assert after.upgrade.actions_for("1.0.0") == (
        load_module("a"),
        load_module("b"),
        *before.upgrade.actions_for("1.0.0"),
    )
    assert after.upgrade.entries[1:] == before.upgrade.entries[1:]
    assert after.downgrade.entries[0].matcher == "1.0.0"
    assert after.downgrade.entries[1:] == before.downgrade.entries


def test_new_and_removed_applications_are_skipped(tmp_path: Path) -> None:
    current = {
        "core": _index("core", "1.0.0", {"a": "h"}),
        "fresh": _index("fresh", "0.1.0", {"f": "h"}),
    }
    previous = {
        "core": _index("core", "1.0.0", {"a": "h"}),
        "retired": _index("retired", "1.0.0", {"r": "h"}),
    }

    stream = io.StringIO()

    report = AppupOrchestrator(
        _store(tmp_path), mode=CHECK_MODE, reporter=ConsoleReporter(stream)
    ).run(current, previous)

    assert report.valid
    assert [outcome.app for outcome in report.outcomes] == ["core"]
    assert "appup-gen: fresh: new application, skipped" in stream.getvalue()
    assert "appup-gen: warning: retired: missing from the current release" in stream.getvalue()


def test_missing_location_fails_only_that_application(tmp_path: Path) -> None:
    write_stub(tmp_path, "web")
    current = {
        "core": _index("core", "1.1.0", {"a": "new"}),
        "web": _index("web", "2.1.0", {"w": "new"}),
    }
    previous = {
        "core": _index("core", "1.0.0", {"a": "old"}),
        "web": _index("web", "2.0.0", {"w": "old"}),
    }

    report = AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)

    assert not report.valid
    assert [(v.kind, v.app) for v in report.violations] == [("missing_record", "core")]
    states = {outcome.app: outcome.state for outcome in report.outcomes}
    assert states == {"core": STATE_FAILED, "web": STATE_PERSISTED}


def test_unbumped_version_is_reported_once_and_processing_continues(tmp_path: Path) -> None:
    write_stub(tmp_path, "core")
    write_stub(tmp_path, "web")
    current = {
        "core": _index("core", "1.0.0", {"a": "new"}),
        "web": _index("web", "2.1.0", {"w": "new"}),
    }
    previous = {
        "core": _index("core", "1.0.0", {"a": "old"}),
        "web": _index("web", "2.0.0", {"w": "old"}),
    }

    report = AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)

    assert [(v.kind, v.app) for v in report.violations] == [("version_not_bumped", "core")]
    states = {outcome.app: outcome.state for outcome in report.outcomes}
    assert states == {"core": STATE_FAILED, "web": STATE_PERSISTED}
    assert not (tmp_path / "core" / "src" / "core.appup.src").exists()


def test_unchanged_application_without_record_needs_nothing(tmp_path: Path) -> None:
    current = {"core": _index("core", "1.1.0", {"a": "same"})}
    previous = {"core": _index("core", "1.0.0", {"a": "same"})}
    report = AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)
    assert report.valid
    assert report.outcomes[0].state == STATE_UNCHANGED


def test_malformed_existing_record_aborts(tmp_path: Path) -> None:
    src = tmp_path / "core" / "src"
    src.mkdir(parents=True)
    (src / "core.appup.src").write_text("{VSN, [}.", encoding="utf-8")
    current = {"core": _index("core", "1.1.0", {"a": "new"})}
    previous = {"core": _index("core", "1.0.0", {"a": "old"})}
    with pytest.raises(ActionListParseError):
        AppupOrchestrator(_store(tmp_path), mode=WRITE_MODE).run(current, previous)


def test_unknown_mode_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unknown mode"):
        AppupOrchestrator(_store(tmp_path), mode="apply")
