#!/usr/bin/env python3
"""Run dotnet format on a pull request build and sync findings to PR threads.

Order of a run:
  1. status check -> pending
  2. run dotnet format (or read --report)
  3. scope findings to the pull request diff (optional)
  4. list existing threads, reconcile, apply create/reopen/close
  5. status check -> succeeded/failed, task result, exit code

Exit codes: 0 success (or not a PR build), 1 formatting errors with
failOnFormattingErrors, or any fatal error.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Callable

from lib.azure_devops import ApiError, ApiPermissionError, AzureDevOpsClient, TransientApiError
from lib.diff_lines import git_added_lines
from lib.dotnet_format import run_dotnet_format
from lib.pull_request import PullRequestService
from pkg.formatcheck import pipeline_log as log
from pkg.formatcheck.config import ConfigError, Settings, describe_settings, load_settings
from pkg.formatcheck.errors import FormatCheckError
from pkg.formatcheck.models import CheckState, CreateThread, ReconcileResult
from pkg.formatcheck.normalizer import PathNormalizer, normalize
from pkg.formatcheck.reconcile import reconcile
from pkg.formatcheck.report import load_report
from pkg.formatcheck.scope import describe_scope, resolve_scope
from pkg.formatcheck.status import StatusDecision, decide

FATAL_ERRORS = (FormatCheckError, ApiPermissionError, TransientApiError, ApiError)

AddedLines = Callable[[str, str], "dict[str, frozenset[int]] | None"]


def operations_as_json(result: ReconcileResult) -> list[dict]:
    """Operations in a printable form for --dry-run."""
    out: list[dict] = []
    for op in result.operations:
        if isinstance(op, CreateThread):
            out.append(
                {
                    "op": "create",
                    "file": op.anchor.file_path,
                    "line": op.anchor.line,
                    "column": op.anchor.column,
                    "comment": op.comment,
                }
            )
        else:
            out.append({"op": "update", "thread_id": op.thread_id, "status": op.status.value})
    return out


def run_format_check(
    settings: Settings,
    service: PullRequestService,
    *,
    report_path: Path | None = None,
    dry_run: bool = False,
    added_lines: AddedLines = git_added_lines,
) -> tuple[StatusDecision, ReconcileResult]:
    """Run one format check against the pull request behind `service`."""
    params = settings.parameters
    env = settings.environment

    if params.status_check and not dry_run:
        service.update_status(CheckState.PENDING)

    if report_path is None:
        report_path = run_dotnet_format(
            params.solution_path,
            include_path=params.include_path,
            exclude_path=params.exclude_path,
        )
    findings = load_report(report_path)

    scope = None
    if params.scope_to_pull_request:
        log.info("Scoping issues to files part of the Pull Request.")
        line_ranges = None
        if params.scope_to_changed_lines:
            line_ranges = added_lines(env.sources_directory or ".", env.target_branch)
        scope = resolve_scope(service.list_changes(line_ranges))
        for line in describe_scope(scope):
            log.info(f"  in scope: {line}")
    elif params.scope_to_changed_lines:
        log.warn("scopeToChangedLines has no effect unless scopeToPullRequest is enabled.")

    findings = normalize(findings, scope, normalizer=PathNormalizer(env.sources_directory))

    log.info("Fetching existing threads.")
    threads = service.list_threads()
    log.info("Completed fetching existing threads.")

    result = reconcile(findings, threads)
    if dry_run:
        print(json.dumps(operations_as_json(result), indent=2))
    else:
        summary = service.apply_operations(result.operations)
        log.info(f"Threads: {summary.describe()}.")

    decision = decide(result.active_count, params.fail_on_formatting_errors, params.status_check)
    if decision.publish_status and not dry_run:
        service.update_status(decision.check_state)
    return decision, result


def report_outcome(decision: StatusDecision, active_count: int) -> int:
    """Emit the task result and return the process exit code."""
    if active_count == 0:
        log.complete(log.SUCCEEDED, "Code format is correct.")
        log.info("Format check task succeeded.")
        return 0
    log.info(f"{active_count} formatting issue(s) found.")
    if decision.should_fail_task:
        log.complete(log.FAILED, "Code format is incorrect.")
        log.info("Format check task failed.")
        return 1
    log.complete(log.SUCCEEDED_WITH_ISSUES, "Code format is incorrect.")
    log.info("Format check task succeeded.")
    return 0


def _publish_error(service: PullRequestService | None, settings: Settings, dry_run: bool) -> None:
    if service is None or dry_run or not settings.parameters.status_check:
        return
    try:
        service.update_status(CheckState.ERROR)
    except FATAL_ERRORS as exc:
        log.warn(f"Unable to publish error status: {exc}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = argparse.ArgumentParser(prog="format-check.py", description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, help="YAML file with task inputs (INPUT_* variables win)")
    parser.add_argument("--report", type=Path, help="Use an existing dotnet format report instead of running it")
    parser.add_argument("--dry-run", action="store_true", help="Print operations; write nothing to the PR")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(config_path=args.config, require_solution=args.report is None)
    except ConfigError as exc:
        log.error(str(exc))
        return 1

    if not settings.is_pull_request_build:
        log.info("Not a PR build. Skipping.")
        return 0

    for line in describe_settings(settings):
        log.info(line)

    service: PullRequestService | None = None
    try:
        client = AzureDevOpsClient(
            org_url=settings.environment.org_url,
            project=settings.environment.project_id,
            repository=settings.environment.repo_id,
            token=settings.parameters.token,
        )
        connection = client.connect(settings.environment.pull_request_id)
        service = PullRequestService(
            connection,
            normalizer=PathNormalizer(settings.environment.sources_directory),
            status_check=settings.parameters.status_check,
            status_context=settings.parameters.status_check_context,
        )
        decision, result = run_format_check(
            settings, service, report_path=args.report, dry_run=args.dry_run
        )
    except (FATAL_ERRORS + (ValueError,)) as exc:
        log.error(f"Dotnet format task failed with error {exc}")
        _publish_error(service, settings, args.dry_run)
        log.complete(log.FAILED, "Format check task failed with an error.")
        return 1

    return report_outcome(decision, result.active_count)


if __name__ == "__main__":
    sys.exit(main())
