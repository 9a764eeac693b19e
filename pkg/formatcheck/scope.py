"""Diff scope resolution: which files and lines of a pull request are in scope."""

from __future__ import annotations

from collections.abc import Iterable

from . import pipeline_log as log
from .models import ChangeEntry, ChangeType

# Normalized path -> in-scope line numbers, or None for "every line".
ScopeIndex = dict[str, "frozenset[int] | None"]


def resolve_scope(changes: Iterable[ChangeEntry]) -> ScopeIndex:
    """Build the scope index for a pull request's changes.

    Deleted files are left out entirely, so no finding can survive for them.
    Entries without `line_ranges` make the whole file in scope. Repeated
    entries for one path are merged (every line wins over a line set).
    """
    index: ScopeIndex = {}
    deleted: set[str] = set()

    for change in changes:
        path = str(change.file_path or "").strip()
        if not path:
            log.warn(f"File path is undefined for commit id {change.commit_id or '<unknown>'}; skipping change.")
            continue

        if change.change_type is ChangeType.DELETE:
            deleted.add(path)
            continue

        lines = None if change.line_ranges is None else frozenset(change.line_ranges)
        if path not in index:
            index[path] = lines
            continue

        existing = index[path]
        if existing is None or lines is None:
            index[path] = None
        else:
            index[path] = existing | lines

    for path in deleted:
        index.pop(path, None)
    return index


def in_scope(index: ScopeIndex, file_path: str, line_number: int) -> bool:
    """True when (file_path, line_number) is covered by the index."""
    if file_path not in index:
        return False
    lines = index[file_path]
    return lines is None or line_number in lines


def describe_scope(index: ScopeIndex) -> list[str]:
    """Readable one-line summaries of the index, sorted by path."""
    out: list[str] = []
    for path in sorted(index):
        lines = index[path]
        if lines is None:
            out.append(f"{path} (all lines)")
        elif not lines:
            out.append(f"{path} (no added lines)")
        else:
            out.append(f"{path} (lines {_format_lines(lines)})")
    return out


def _format_lines(lines: frozenset[int]) -> str:
    ordered = sorted(lines)
    runs: list[str] = []
    start = prev = ordered[0]
    for line in ordered[1:]:
        if line == prev + 1:
            prev = line
            continue
        runs.append(f"{start}" if start == prev else f"{start}-{prev}")
        start = prev = line
    runs.append(f"{start}" if start == prev else f"{start}-{prev}")
    return ", ".join(runs)
