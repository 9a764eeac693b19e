"""Load a `dotnet format --report` JSON file into findings.

Report shape (one entry per document):

    [{"FilePath": "/agent/_work/1/s/src/App.cs",
      "FileName": "App.cs",
      "DocumentId": {...},
      "FileChanges": [{"LineNumber": 2, "CharNumber": 1,
                       "DiagnosticId": "WHITESPACE",
                       "FormatDescription": "Fix whitespace formatting."}]}]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from . import pipeline_log as log
from .errors import MalformedReportError
from .models import Finding


def _require_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedReportError(f"{ctx}: expected integer, got {value!r}")
    if value < 1:
        raise MalformedReportError(f"{ctx}: must be >= 1")
    return value


def _require_text(value: Any, ctx: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedReportError(f"{ctx}: expected string, got {value!r}")
    return value


def parse_report(data: Any) -> list[Finding]:
    """Flatten parsed report JSON into findings.

    Documents without a FilePath are logged and skipped. Any other deviation
    from the report shape raises MalformedReportError.
    """
    if not isinstance(data, list):
        raise MalformedReportError("report: expected a list of documents")

    findings: list[Finding] = []
    for idx, document in enumerate(data):
        ctx = f"report[{idx}]"
        if not isinstance(document, dict):
            raise MalformedReportError(f"{ctx}: expected object")

        file_path = _require_text(document.get("FilePath"), f"{ctx}.FilePath").strip()
        changes = document.get("FileChanges")
        if changes is None:
            changes = []
        if not isinstance(changes, list):
            raise MalformedReportError(f"{ctx}.FileChanges: expected list")

        if not file_path:
            name = document.get("FileName") or "<unnamed>"
            log.warn(f"Report entry {idx} ({name}) has no FilePath; skipping {len(changes)} issue(s).")
            continue

        for cidx, change in enumerate(changes):
            cctx = f"{ctx}.FileChanges[{cidx}]"
            if not isinstance(change, dict):
                raise MalformedReportError(f"{cctx}: expected object")
            findings.append(
                Finding(
                    file_path=file_path,
                    line_number=_require_int(change.get("LineNumber"), f"{cctx}.LineNumber"),
                    char_number=_require_int(change.get("CharNumber"), f"{cctx}.CharNumber"),
                    diagnostic_id=_require_text(change.get("DiagnosticId"), f"{cctx}.DiagnosticId"),
                    description=_require_text(change.get("FormatDescription"), f"{cctx}.FormatDescription"),
                )
            )
    return findings


def load_report(path: Path) -> list[Finding]:
    """Read and parse a report file."""
    log.info("Loading error report.")
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except OSError as exc:
        raise MalformedReportError(f"unable to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise MalformedReportError(f"invalid JSON in {path}: {exc}") from exc
    return parse_report(data)
