"""Tests for lib.dotnet_format."""
from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from lib import dotnet_format
from lib.dotnet_format import build_command, run_dotnet_format
from pkg.formatcheck.errors import FormatterError


def test_build_command_verify_only() -> None:
    assert build_command("app.sln", Path("r.json")) == [
        "dotnet", "format", "app.sln", "--verify-no-changes",
        "--verbosity", "diagnostic", "--report", "r.json",
    ]


def test_build_command_include_exclude() -> None:
    cmd = build_command("app.sln", Path("r.json"), include_path="src", exclude_path="gen")
    assert cmd[-4:] == ["--include", "src", "--exclude", "gen"]


class FakeDotnet:
    """subprocess.run stand-in; optionally writes the report like the real tool."""

    def __init__(self, *, exit_code: int = 0, write_report: bool = True):
        self.exit_code = exit_code
        self.write_report = write_report
        self.commands: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        if cmd[-1] == "--version":
            return subprocess.CompletedProcess(cmd, 0, stdout="8.0.100\n", stderr="")
        if self.write_report:
            Path(cmd[cmd.index("--report") + 1]).write_text("[]", encoding="utf-8")
        return subprocess.CompletedProcess(cmd, self.exit_code, stdout=None, stderr="")


@pytest.fixture
def solution(tmp_path: Path) -> Path:
    sln = tmp_path / "app.sln"
    sln.write_text("", encoding="utf-8")
    return sln


def test_missing_solution(tmp_path: Path) -> None:
    with pytest.raises(FormatterError, match="does not exist"):
        run_dotnet_format(str(tmp_path / "nope.sln"), report_path=tmp_path / "r.json")


def test_findings_exit_code_with_report_is_not_a_crash(monkeypatch, solution, tmp_path) -> None:
    fake = FakeDotnet(exit_code=2)
    monkeypatch.setattr(dotnet_format.subprocess, "run", fake)
    report = tmp_path / "r.json"

    assert run_dotnet_format(str(solution), report_path=report) == report
    assert report.read_text(encoding="utf-8") == "[]"
    assert fake.commands[0] == ["dotnet", "format", "--version"]


def test_stale_report_is_removed_before_running(monkeypatch, solution, tmp_path) -> None:
    report = tmp_path / "r.json"
    report.write_text("stale", encoding="utf-8")
    monkeypatch.setattr(dotnet_format.subprocess, "run", FakeDotnet(exit_code=1, write_report=False))

    with pytest.raises(FormatterError, match="No report found"):
        run_dotnet_format(str(solution), report_path=report)
    assert not report.exists()


def test_missing_dotnet(monkeypatch, solution, tmp_path) -> None:
    def boom(cmd, **kwargs):
        raise FileNotFoundError("dotnet")

    monkeypatch.setattr(dotnet_format.subprocess, "run", boom)
    with pytest.raises(FormatterError, match="not available"):
        run_dotnet_format(str(solution), report_path=tmp_path / "r.json")
