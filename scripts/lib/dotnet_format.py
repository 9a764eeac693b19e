"""Run `dotnet format` in verify mode and collect its JSON report."""

from __future__ import annotations

import subprocess
from pathlib import Path

from pkg.formatcheck import pipeline_log as log
from pkg.formatcheck.errors import FormatterError

DEFAULT_REPORT = "format-report.json"


def build_command(
    solution_path: str,
    report_path: Path,
    *,
    include_path: str | None = None,
    exclude_path: str | None = None,
) -> list[str]:
    """Build the verify-only dotnet format invocation."""
    cmd = [
        "dotnet",
        "format",
        solution_path,
        "--verify-no-changes",
        "--verbosity",
        "diagnostic",
        "--report",
        str(report_path),
    ]
    if include_path:
        cmd.extend(["--include", include_path])
    if exclude_path:
        cmd.extend(["--exclude", exclude_path])
    return cmd


def run_dotnet_format(
    solution_path: str,
    *,
    include_path: str | None = None,
    exclude_path: str | None = None,
    report_path: Path = Path(DEFAULT_REPORT),
) -> Path:
    """Run the formatter and return the report path.

    `--verify-no-changes` exits non-zero when it finds anything, so a failed
    run only counts as a crash when no report was written.

    Raises:
        FormatterError: missing solution, or no report produced.
    """
    if not Path(solution_path).exists():
        raise FormatterError(f"Solution file at solutionPath does not exist: {solution_path}")

    if report_path.exists():
        report_path.unlink()
        log.info("Successfully deleted the existing report file.")

    cmd = build_command(solution_path, report_path, include_path=include_path, exclude_path=exclude_path)
    try:
        version = subprocess.run(
            ["dotnet", "format", "--version"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise FormatterError(f"dotnet format is not available: {exc}") from exc
    log.info(f"Using dotnet format version {version.stdout.strip()}")
    log.info(f"Running dotnet format command. ({' '.join(cmd)})")

    result = subprocess.run(cmd, stderr=subprocess.PIPE, text=True, check=False)
    if result.returncode != 0:
        log.info(f"Dotnet format exited with code {result.returncode}.")
        if result.stderr:
            log.info(f"stderr output: {result.stderr.strip()}")
        if not report_path.exists():
            raise FormatterError("No report found at reportPath.")

    log.info("Dotnet format command completed.")
    return report_path
