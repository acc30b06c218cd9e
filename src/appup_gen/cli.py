"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from appup_gen.appup.orchestrator import CHECK_MODE, WRITE_MODE, AppupOrchestrator, RunReport
from appup_gen.builder import (
    CommandReleaseBuilder,
    GitCheckout,
    PrebuiltReleaseBuilder,
    ReleaseBuilder,
    resolve_latest_tag,
)
from appup_gen.config import AppupConfig, CliOverrides, load_effective_config
from appup_gen.errors import AppupGenError
from appup_gen.index import index_release
from appup_gen.logging import ConsoleReporter, JsonlRunLog, RunEvent, utc_timestamp
from appup_gen.sources import AppupStore, SourceIndex

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_FATAL = 2


@dataclass(slots=True, frozen=True)
class Builders:
    """Builders for the current tree and the predecessor tag."""

    current: ReleaseBuilder
    previous: ReleaseBuilder


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for the generator."""
    parser = argparse.ArgumentParser(
        prog="appup-gen",
        description="Generate or verify upgrade instructions between two releases.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--check",
        dest="mode",
        action="store_const",
        const=CHECK_MODE,
        help="Report out-of-date upgrade files without writing (default).",
    )
    mode.add_argument(
        "--write",
        dest="mode",
        action="store_const",
        const=WRITE_MODE,
        help="Rewrite out-of-date upgrade files.",
    )
    parser.set_defaults(mode=CHECK_MODE)
    parser.add_argument("--repo-root", default=".")
    parser.add_argument(
        "--previous",
        default=None,
        help="Predecessor tag. Defaults to the latest reachable git tag.",
    )
    parser.add_argument("--build-command", default=None)
    parser.add_argument("--artifacts-dir", default=None)
    parser.add_argument(
        "--source-root",
        action="append",
        default=None,
        help="Directory searched for upgrade files and descriptor stubs. Repeatable.",
    )
    parser.add_argument("--repo-url", default=None)
    parser.add_argument(
        "--current-release-dir",
        default=None,
        help="Use an already-built current release instead of running the build.",
    )
    parser.add_argument(
        "--previous-release-dir",
        default=None,
        help="Use an already-built predecessor release instead of fetching and building.",
    )
    parser.add_argument("--data-dir", default=None)
    parser.add_argument("--report", default=None, help="Write the run report as JSON.")
    parser.add_argument(
        "--last-run",
        action="store_true",
        help="Print the outcome of the most recent recorded run and exit with its status.",
    )
    parser.add_argument("--quiet", action="store_true", help="Only print problems.")
    return parser


def create_builders(
    config: AppupConfig,
    previous_tag: str | None,
    current_release_dir: Path | None = None,
    previous_release_dir: Path | None = None,
    reporter: ConsoleReporter | None = None,
) -> Builders:
    """Pick prebuilt directories when given, else check out and build."""
    command_builder = CommandReleaseBuilder(
        repo_root=config.repo_root,
        command=config.build.command,
        artifacts_dir=config.build.artifacts_dir,
        checkout=GitCheckout(config.source.repo_url, config.data_dir / "checkouts"),
        reporter=reporter,
    )
    current: ReleaseBuilder = command_builder
    previous: ReleaseBuilder = command_builder
    if current_release_dir is not None:
        current = PrebuiltReleaseBuilder({None: current_release_dir})
    if previous_release_dir is not None:
        previous = PrebuiltReleaseBuilder({previous_tag: previous_release_dir})
    return Builders(current=current, previous=previous)


def generate(
    config: AppupConfig,
    builders: Builders,
    previous_tag: str | None,
    mode: str,
    reporter: ConsoleReporter,
) -> RunReport:
    """Build, index and reconcile both releases."""
    current_root = builders.current.build(None)
    previous_root = builders.previous.build(previous_tag)

    reporter.info(f"indexing current release {current_root}")
    current = index_release(current_root, config.layout)
    reporter.info(f"indexing predecessor release {previous_root}")
    predecessor = index_release(previous_root, config.layout)

    store = AppupStore(SourceIndex.build(config.source.roots, config.layout), config.layout)
    orchestrator = AppupOrchestrator(store=store, mode=mode, reporter=reporter)
    return orchestrator.run(current, predecessor)


def record_run(run_log: JsonlRunLog, report: RunReport, previous_tag: str | None) -> None:
    """Append one event per application plus a run summary."""
    run_id = uuid.uuid4().hex
    events: list[RunEvent] = []
    for outcome in report.outcomes:
        events.append(
            RunEvent(
                timestamp=utc_timestamp(),
                run_id=run_id,
                app=outcome.app,
                state=outcome.state,
                violations=[
                    violation.to_dict()
                    for violation in report.violations
                    if violation.app == outcome.app
                ],
                metadata={
                    "from_version": outcome.from_version,
                    "to_version": outcome.to_version,
                    "upgrade": outcome.upgrade.to_dict(),
                    "downgrade": outcome.downgrade.to_dict(),
                },
            )
        )
    events.append(
        RunEvent(
            timestamp=utc_timestamp(),
            run_id=run_id,
            app=None,
            state="valid" if report.valid else "invalid",
            violations=[violation.to_dict() for violation in report.violations],
            metadata={
                "mode": report.mode,
                "previous_tag": previous_tag,
                "application_count": len(report.outcomes),
            },
        )
    )
    run_log.record(events)


def show_last_run(run_log: JsonlRunLog, reporter: ConsoleReporter) -> int:
    """Print the outcome of the most recent run and return its exit status."""
    events = run_log.last_run()
    summary = next((event for event in events if event.get("app") is None), None)
    if summary is None:
        reporter.error(f"no completed run recorded in {run_log.path}")
        return EXIT_FATAL
    metadata = summary.get("metadata") or {}
    against = metadata.get("previous_tag") or "prebuilt release"
    reporter.info(
        f"run {summary['run_id']} at {summary.get('timestamp')} "
        f"({metadata.get('mode')} against {against}): {summary.get('state')}"
    )
    for event in events:
        if event.get("app") is not None:
            reporter.info(f"  {event['app']}: {event.get('state')}")
    violations = summary.get("violations") or []
    _report_violations(reporter, violations)
    return EXIT_VALID if summary.get("state") == "valid" else EXIT_INVALID


def main(argv: list[str] | None = None, stderr: TextIO | None = None) -> int:
    """Entrypoint for the upgrade file generator."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    reporter = ConsoleReporter(stream=stderr or sys.stderr, verbose=not args.quiet)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        build_command=args.build_command,
        artifacts_dir=args.artifacts_dir,
        source_roots=tuple(args.source_root) if args.source_root else None,
        repo_url=args.repo_url,
    )
    try:
        config = load_effective_config(repo_root=Path(args.repo_root), overrides=overrides)
    except ValueError as error:
        reporter.error(f"invalid configuration: {error}")
        return EXIT_FATAL

    run_log = JsonlRunLog(config.data_dir / "runs.jsonl")
    if args.last_run:
        return show_last_run(run_log, reporter)

    previous_tag = args.previous
    if previous_tag is None and args.previous_release_dir is None:
        previous_tag = resolve_latest_tag(config.repo_root)
        if previous_tag is None:
            reporter.error("no predecessor tag found; pass --previous")
            return EXIT_FATAL
    builders = create_builders(
        config,
        previous_tag,
        current_release_dir=_optional_path(args.current_release_dir),
        previous_release_dir=_optional_path(args.previous_release_dir),
        reporter=reporter,
    )

    try:
        report = generate(config, builders, previous_tag, args.mode, reporter)
    except AppupGenError as error:
        reporter.error(f"{error.step} failed: {error.message}")
        return EXIT_FATAL

    record_run(run_log, report, previous_tag)
    if args.report is not None:
        payload = {"config": config.to_public_dict(), **report.to_dict()}
        Path(args.report).write_text(
            json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )

    if report.valid:
        reporter.info(f"{len(report.outcomes)} application(s) processed, no problems")
        return EXIT_VALID
    _report_violations(reporter, [violation.to_dict() for violation in report.violations])
    return EXIT_INVALID


def _report_violations(reporter: ConsoleReporter, violations: list[dict[str, str]]) -> None:
    if not violations:
        return
    reporter.error(f"{len(violations)} problem(s) found:")
    for violation in violations:
        reporter.error(f"  [{violation['kind']}] {violation['app']}: {violation['message']}")


def _optional_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).resolve()


if __name__ == "__main__":
    raise SystemExit(main())
