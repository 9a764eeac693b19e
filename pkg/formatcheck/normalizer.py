"""Finding normalization: repo-relative paths and diff scope filtering."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace

from . import pipeline_log as log
from .models import Finding
from .scope import ScopeIndex, in_scope

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_RE.match(path))


class PathNormalizer:
    """Turns formatter and host paths into one repo-relative form.

    Repo-relative form uses forward slashes and no leading `/` or `./`:
    `src/App/Program.cs`.
    """

    def __init__(self, root: str | None = None) -> None:
        text = str(root or "").strip().replace("\\", "/").rstrip("/")
        self._root = text
        # Windows agents report drive letters with varying case.
        self._fold_case = bool(_DRIVE_RE.match(text + "/"))
        self._warned: set[str] = set()

    @property
    def root(self) -> str:
        return self._root

    def _under_root(self, path: str) -> str | None:
        if not self._root:
            return None
        root = self._root.lower() if self._fold_case else self._root
        probe = path.lower() if self._fold_case else path
        if probe == root:
            return ""
        if probe.startswith(root + "/"):
            return path[len(self._root) + 1:]
        return None

    def normalize_file_path(self, path: object) -> str:
        """Normalize a filesystem path reported by the formatter.

        Paths outside the repository root are returned with only their
        slashes normalized, and a warning is logged.
        """
        text = str(path or "").strip().replace("\\", "/")
        if not text:
            return ""
        relative = self._under_root(text)
        if relative is not None:
            return _strip_leading(relative)
        if _is_absolute(text):
            where = f"repository root {self._root}" if self._root else "an unknown repository root"
            if text not in self._warned:
                self._warned.add(text)
                log.warn(f"Unable to make {text} relative to {where}; keeping it as-is.")
            return text
        return _strip_leading(text)

    def normalize_repo_path(self, path: object) -> str:
        """Normalize a repository path reported by the host (`/src/App.cs`).

        Host paths are already repository-relative, so the root is not stripped.
        """
        return _strip_leading(str(path or "").strip().replace("\\", "/"))


def _strip_leading(path: str) -> str:
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def normalize(
    findings: Iterable[Finding],
    scope: ScopeIndex | None,
    *,
    root: str | None = None,
    normalizer: PathNormalizer | None = None,
) -> list[Finding]:
    """Normalize finding paths and drop findings outside the diff scope.

    With `scope=None` no finding is dropped for scope reasons. Findings with
    an empty path are logged and skipped. Output order is not significant.
    """
    paths = normalizer or PathNormalizer(root)

    normalized: list[Finding] = []
    for finding in findings:
        path = paths.normalize_file_path(finding.file_path)
        if not path:
            log.warn(
                f"Finding {finding.diagnostic_id} on line {finding.line_number} has no file path; skipping."
            )
            continue
        normalized.append(finding if path == finding.file_path else replace(finding, file_path=path))

    if scope is None:
        return normalized

    kept: list[Finding] = []
    reported: set[str] = set()
    for finding in normalized:
        if finding.file_path not in reported:
            reported.add(finding.file_path)
            if finding.file_path in scope:
                log.info(f"✔ Include file: {finding.file_path}")
            else:
                log.info(f"❌ Exclude file: {finding.file_path}")
        if in_scope(scope, finding.file_path, finding.line_number):
            kept.append(finding)
    return kept
