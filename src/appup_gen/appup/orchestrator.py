"""Per-application upgrade file reconciliation across two releases."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from appup_gen.appup.diff import diff_app
from appup_gen.appup.merge import merge_actions
from appup_gen.appup.record import AppRecord
from appup_gen.errors import MissingRecordForRequiredUpdate, UpdateRequired, Violation
from appup_gen.index.models import AppIndex, ModuleDiff
from appup_gen.logging import ConsoleReporter
from appup_gen.sources import AppupStore

CHECK_MODE = "check"
WRITE_MODE = "write"

STATE_UNCHANGED = "unchanged"
STATE_REPORTED = "reported"
STATE_PERSISTED = "persisted"
STATE_FAILED = "failed"


@dataclass(slots=True, frozen=True)
class AppOutcome:
    """Final state of one application after reconciliation."""

    app: str
    state: str
    from_version: str
    to_version: str
    upgrade: ModuleDiff
    downgrade: ModuleDiff
    record_path: Path | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "app": self.app,
            "state": self.state,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "upgrade": self.upgrade.to_dict(),
            "downgrade": self.downgrade.to_dict(),
            "record_path": str(self.record_path) if self.record_path is not None else None,
        }


@dataclass(slots=True)
class RunReport:
    """Accumulated outcomes and violations of one run."""

    mode: str
    outcomes: list[AppOutcome] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode,
            "valid": self.valid,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "violations": [violation.to_dict() for violation in self.violations],
        }


class AppupOrchestrator:
    """Diffs shared applications and merges the results into their upgrade files."""

    def __init__(
        self,
        store: AppupStore,
        mode: str = CHECK_MODE,
        reporter: ConsoleReporter | None = None,
    ) -> None:
        if mode not in {CHECK_MODE, WRITE_MODE}:
            raise ValueError(f"Unknown mode '{mode}'; expected 'check' or 'write'.")
        self._store = store
        self._mode = mode
        self._reporter = reporter

    def run(
        self,
        current: Mapping[str, AppIndex],
        predecessor: Mapping[str, AppIndex],
    ) -> RunReport:
        """Reconcile every application present in both releases."""
        report = RunReport(mode=self._mode)
        for app in sorted(current.keys()):
            previous_index = predecessor.get(app)
            if previous_index is None:
                self._info(f"{app}: new application, skipped")
                continue
            report.outcomes.append(
                self._reconcile(app, current[app], previous_index, report.violations)
            )
        for app in sorted(predecessor.keys() - current.keys()):
            self._warn(f"{app}: missing from the current release, skipped")
        return report

    def _reconcile(
        self,
        app: str,
        current_index: AppIndex,
        previous_index: AppIndex,
        violations: list[Violation],
    ) -> AppOutcome:
        """Diff, merge and persist or report one application.

        An application whose modules changed without a version bump is marked
        failed and left unmerged: its instructions would be keyed by a version
        that never changes.
        """
        upgrade = diff_app(app, current_index, previous_index)
        downgrade = diff_app(app, previous_index, current_index)
        outcome = AppOutcome(
            app=app,
            state=STATE_UNCHANGED,
            from_version=previous_index.version,
            to_version=current_index.version,
            upgrade=upgrade.diff,
            downgrade=downgrade.diff,
        )

        violation = upgrade.violation or downgrade.violation
        if violation is not None:
            violations.append(violation)
            self._error(f"{app}: {violation.message}")
            return _with_state(outcome, STATE_FAILED)

        record = self._store.load(app) or AppRecord.empty()
        version = previous_index.version
        existing_upgrade = record.upgrade.actions_for(version)
        existing_downgrade = record.downgrade.actions_for(version)
        merged_upgrade = merge_actions(upgrade.diff, existing_upgrade)
        merged_downgrade = merge_actions(downgrade.diff, existing_downgrade)
        if merged_upgrade == existing_upgrade and merged_downgrade == existing_downgrade:
            self._info(f"{app}: up to date for {version} -> {current_index.version}")
            return outcome

        path = self._store.locate(app)
        if path is None:
            missing = MissingRecordForRequiredUpdate(
                app=app,
                message=(
                    f"instructions needed for {version} -> {current_index.version} "
                    "but no upgrade file or descriptor stub was found"
                ),
            )
            violations.append(missing)
            self._error(f"{app}: {missing.message}")
            return _with_state(outcome, STATE_FAILED)

        if self._mode == CHECK_MODE:
            gap = UpdateRequired(
                app=app,
                message=f"{path} is missing instructions for {version} -> {current_index.version}",
            )
            violations.append(gap)
            self._error(f"{app}: {gap.message}")
            return _with_state(outcome, STATE_REPORTED, path)

        written = self._store.save(app, record.amend(version, merged_upgrade, merged_downgrade))
        self._info(f"{app}: wrote {written}")
        return _with_state(outcome, STATE_PERSISTED, written)

    def _info(self, message: str) -> None:
        if self._reporter is not None:
            self._reporter.info(message)

    def _warn(self, message: str) -> None:
        if self._reporter is not None:
            self._reporter.warn(message)

    def _error(self, message: str) -> None:
        if self._reporter is not None:
            self._reporter.error(message)


def _with_state(outcome: AppOutcome, state: str, path: Path | None = None) -> AppOutcome:
    return AppOutcome(
        app=outcome.app,
        state=state,
        from_version=outcome.from_version,
        to_version=outcome.to_version,
        upgrade=outcome.upgrade,
        downgrade=outcome.downgrade,
        record_path=path,
    )
