"""Added-line extraction from unified diffs.

Line level scoping needs the new-file line numbers each pull request file
adds. Azure DevOps' diff API only lists files, so the lines come from a local
`git diff` against the target branch.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

from pkg.formatcheck import pipeline_log as log

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_NEW_FILE_RE = re.compile(r"^\+\+\+ (?:b/)?(?P<path>.+?)\s*$")


def parse_added_lines(diff: str) -> dict[str, frozenset[int]]:
    """Return map: new-file path -> line numbers added by the diff.

    Files whose new side is /dev/null (deletions) are left out. Files that
    appear with no added lines map to an empty set.

    Hunk bodies are consumed by the counts in their `@@` header, so an added
    line whose text starts with "++ " is never mistaken for a file header.
    """
    added: dict[str, set[int]] = {}
    current: str | None = None
    new_line = 0
    old_left = new_left = 0

    for raw in (diff or "").splitlines():
        if old_left > 0 or new_left > 0:
            prefix = raw[:1]
            if prefix == "+":
                if current is not None:
                    added[current].add(new_line)
                new_line += 1
                new_left -= 1
            elif prefix == "-":
                old_left -= 1
            elif prefix == " " or raw == "":
                new_line += 1
                new_left -= 1
                old_left -= 1
            # "\ No newline at end of file" belongs to neither side.
            continue

        if raw.startswith("diff --git "):
            current = None
            continue

        if raw.startswith("+++ "):
            m = _NEW_FILE_RE.match(raw)
            path = m.group("path") if m else ""
            if not path or path == "/dev/null":
                current = None
            else:
                current = path
                added.setdefault(current, set())
            continue

        m = _HUNK_RE.match(raw)
        if m:
            new_line = int(m.group("new_start"))
            old_left = int(m.group("old_count") or 1)
            new_left = int(m.group("new_count") or 1)

    return {path: frozenset(lines) for path, lines in added.items()}


def git_added_lines(repo_dir: str | Path, target_branch: str, *, remote: str = "origin") -> dict[str, frozenset[int]] | None:
    """Added lines of HEAD relative to the merge base with the target branch.

    Returns None (line scoping unavailable) when git fails, e.g. on a
    shallow clone without the target branch.
    """
    branch = target_branch[len("refs/heads/"):] if target_branch.startswith("refs/heads/") else target_branch
    branch = branch.lstrip("/")
    if not branch:
        log.warn("Target branch is unknown; line scoping is unavailable.")
        return None

    cmd = ["git", "diff", "--unified=0", "--no-color", "--no-ext-diff", f"{remote}/{branch}...HEAD"]
    result = subprocess.run(cmd, cwd=str(repo_dir), capture_output=True, text=True, check=False)
    if result.returncode != 0:
        log.warn(f"git diff failed ({(result.stderr or '').strip()}); line scoping is unavailable.")
        return None
    return parse_added_lines(result.stdout)
