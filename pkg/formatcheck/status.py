"""Pass/fail decision for a finished format check."""

from __future__ import annotations

from dataclasses import dataclass

from .models import CheckState

_DESCRIPTIONS = {
    CheckState.PENDING: "Format check is running",
    CheckState.FAILED: "Formatting errors found",
    CheckState.ERROR: "Formatting task failed with an error.",
}


@dataclass(frozen=True)
class StatusDecision:
    """Check state and task outcome derived from one run."""
    check_state: CheckState
    should_fail_task: bool
    publish_status: bool


def decide(active_count: int, fail_on_findings: bool, status_check_enabled: bool) -> StatusDecision:
    """Fold the reconciliation outcome and task settings into a decision.

    The check state and the task result are independent: a red check with a
    green task is legal, and so is a failed task with no check published.
    """
    issues = active_count > 0
    return StatusDecision(
        check_state=CheckState.FAILED if issues else CheckState.SUCCEEDED,
        should_fail_task=issues and bool(fail_on_findings),
        publish_status=bool(status_check_enabled),
    )


def describe_status(state: CheckState) -> str:
    """Human readable description posted with the status check."""
    return _DESCRIPTIONS.get(state, "No formatting errors found")
