"""Tests for pipeline logging commands."""
from __future__ import annotations

from pkg.formatcheck import pipeline_log as log


def test_warn_goes_to_stderr_as_logissue(capsys) -> None:
    log.warn("disk 100% full\nreally")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "##vso[task.logissue type=warning]disk 100%AZP25 full%0Areally\n"


def test_error(capsys) -> None:
    log.error("boom")
    assert capsys.readouterr().err == "##vso[task.logissue type=error]boom\n"


def test_info_is_plain(capsys) -> None:
    log.info("hello")
    assert capsys.readouterr().err == "hello\n"


def test_complete_goes_to_stdout(capsys) -> None:
    log.complete(log.SUCCEEDED_WITH_ISSUES, "Code format is incorrect.")
    captured = capsys.readouterr()
    assert captured.out == "##vso[task.complete result=SucceededWithIssues;]Code format is incorrect.\n"
