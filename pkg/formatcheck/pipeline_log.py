"""Azure Pipelines logging commands.

Everything goes to stderr except `complete`, which the agent only honours on
stdout.
"""

from __future__ import annotations

import sys

SUCCEEDED = "Succeeded"
SUCCEEDED_WITH_ISSUES = "SucceededWithIssues"
FAILED = "Failed"


def _escape(message: str) -> str:
    # Logging commands are line based; a newline would end the command early.
    return (
        str(message)
        .replace("%", "%AZP25")
        .replace("\r", "%0D")
        .replace("\n", "%0A")
    )


def info(message: str) -> None:
    """Plain progress line in the task log."""
    print(message, file=sys.stderr)


def warn(message: str) -> None:
    """Yellow warning in the task log and the build summary."""
    print(f"##vso[task.logissue type=warning]{_escape(message)}", file=sys.stderr)


def error(message: str) -> None:
    """Red error in the task log and the build summary."""
    print(f"##vso[task.logissue type=error]{_escape(message)}", file=sys.stderr)


def complete(result: str, message: str) -> None:
    """Set the task result shown by the agent."""
    print(f"##vso[task.complete result={result};]{_escape(message)}")
