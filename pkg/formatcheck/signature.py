"""Thread identity.

The signature is the first comment of a managed thread. It is also the text
reviewers read, so any change to the wording changes identity and makes
existing threads look resolved.
"""

from __future__ import annotations

from .models import Finding

COMMENT_PREAMBLE = "[DotNetFormatTask][Automated]"


def signature(finding: Finding, *, preamble: str = COMMENT_PREAMBLE) -> str:
    """Return the comment text that identifies the thread for `finding`."""
    return (
        f"{preamble} {finding.diagnostic_id}: {finding.description} "
        f"on line {finding.line_number}, position {finding.char_number}"
    )


def is_managed(content: str | None, *, preamble: str = COMMENT_PREAMBLE) -> bool:
    """True when a thread's first comment was written by this task."""
    return bool(content) and str(content).startswith(preamble)
