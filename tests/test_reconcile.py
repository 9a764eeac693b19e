"""Tests for thread reconciliation."""
from __future__ import annotations

import itertools

import pytest

from pkg.formatcheck.errors import UnanchoredUpdateError
from pkg.formatcheck.models import (
    Anchor,
    CreateThread,
    Finding,
    ManagedThread,
    ThreadStatus,
    UpdateThread,
)
from pkg.formatcheck.reconcile import partition_threads, reconcile
from pkg.formatcheck.signature import COMMENT_PREAMBLE, signature


def _finding(path: str = "a.ts", line: int = 2, diag: str = "D1", desc: str = "x", char: int = 1) -> Finding:
    return Finding(file_path=path, line_number=line, char_number=char, diagnostic_id=diag, description=desc)


def _thread(thread_id: int | None, content: str, status: ThreadStatus = ThreadStatus.ACTIVE) -> ManagedThread:
    return ManagedThread(id=thread_id, status=status, signature=content, file_path="/a.ts", line=2, column=1)


def _apply(threads: list[ManagedThread], result) -> list[ManagedThread]:
    """Simulate the host after applying `result`."""
    by_id = {t.id: t for t in threads}
    next_id = itertools.count(max((t.id for t in threads if t.id is not None), default=999) + 1)
    for op in result.operations:
        if isinstance(op, CreateThread):
            new_id = next(next_id)
            by_id[new_id] = ManagedThread(
                id=new_id,
                status=ThreadStatus.ACTIVE,
                signature=op.comment,
                file_path=op.anchor.file_path,
                line=op.anchor.line,
                column=op.anchor.column,
            )
        else:
            old = by_id[op.thread_id]
            by_id[op.thread_id] = ManagedThread(
                id=old.id,
                status=op.status,
                signature=old.signature,
                file_path=old.file_path,
                line=old.line,
                column=old.column,
            )
    return list(by_id.values())


class TestScenarios:
    def test_new_finding_creates_thread(self):
        result = reconcile([_finding()], [])
        assert result.operations == [
            CreateThread(comment=signature(_finding()), anchor=Anchor("a.ts", 2, 1))
        ]
        assert result.active_count == 1

    def test_closed_thread_is_reopened_not_recreated(self):
        threads = [_thread(7, signature(_finding()), ThreadStatus.CLOSED)]
        result = reconcile([_finding()], threads)
        assert result.operations == [UpdateThread(thread_id=7, status=ThreadStatus.ACTIVE)]
        assert result.creates == []

    def test_resolved_issue_closes_thread_once(self):
        threads = [_thread(3, f"{COMMENT_PREAMBLE} S")]
        first = reconcile([], threads)
        assert first.operations == [UpdateThread(thread_id=3, status=ThreadStatus.CLOSED)]

        second = reconcile([], [_thread(3, f"{COMMENT_PREAMBLE} S", ThreadStatus.CLOSED)])
        assert second.operations == []


class TestIsolation:
    def test_unmanaged_threads_are_never_touched(self):
        threads = [
            _thread(1, "Please rename this variable"),
            _thread(2, "", ThreadStatus.ACTIVE),
            _thread(3, f"Quoting: {COMMENT_PREAMBLE} D1: x on line 2, position 1"),
            _thread(None, "human thread without id"),
        ]
        for findings in ([], [_finding()], [_finding(line=n) for n in range(1, 5)]):
            result = reconcile(findings, threads)
            touched = {op.thread_id for op in result.operations if isinstance(op, UpdateThread)}
            assert touched.isdisjoint({1, 2, 3})

    def test_unmanaged_thread_with_identical_text_elsewhere_is_not_matched(self):
        # A human thread can't be reused for a finding; only managed threads match.
        threads = [_thread(1, "D1: x on line 2, position 1")]
        result = reconcile([_finding()], threads)
        assert len(result.creates) == 1

    def test_partition_keeps_order(self):
        a = _thread(1, f"{COMMENT_PREAMBLE} a")
        b = _thread(2, "human")
        c = _thread(3, f"{COMMENT_PREAMBLE} c")
        managed, ignored = partition_threads([a, b, c])
        assert managed == [a, c]
        assert ignored == [b]


class TestIdempotence:
    @pytest.mark.parametrize(
        "findings",
        [
            [],
            [_finding()],
            [_finding(line=1), _finding(line=2), _finding(path="b.ts", line=2)],
            [_finding(), _finding()],
        ],
    )
    def test_second_run_is_empty(self, findings):
        threads = [
            _thread(1, signature(_finding(line=1)), ThreadStatus.CLOSED),
            _thread(2, f"{COMMENT_PREAMBLE} stale issue"),
            _thread(3, "human comment"),
        ]
        first = reconcile(findings, threads)
        second = reconcile(findings, _apply(threads, first))
        assert second.operations == []

    def test_active_matching_thread_needs_no_update(self):
        threads = [_thread(5, signature(_finding()))]
        assert reconcile([_finding()], threads).operations == []

    def test_refresh_active_repeats_update(self):
        threads = [_thread(5, signature(_finding()))]
        result = reconcile([_finding()], threads, refresh_active=True)
        assert result.operations == [UpdateThread(thread_id=5, status=ThreadStatus.ACTIVE)]


class TestClosure:
    def test_closed_iff_signature_absent_and_not_already_closed(self):
        statuses = list(ThreadStatus)
        present = [_finding(line=n) for n in range(1, len(statuses) + 1)]
        ids = itertools.count(1)
        threads = [
            _thread(next(ids), f"{COMMENT_PREAMBLE} gone {status.value}", status) for status in statuses
        ]
        threads += [
            _thread(next(ids), signature(f), status) for f, status in zip(present, statuses)
        ]

        result = reconcile(present, threads)
        closed = {op.thread_id for op in result.closes}
        active = {signature(f) for f in present}
        expected = {
            t.id for t in threads
            if t.signature not in active and not t.status.is_closed
        }
        assert closed == expected

    def test_pending_and_unknown_threads_are_closed_when_resolved(self):
        threads = [
            _thread(1, f"{COMMENT_PREAMBLE} a", ThreadStatus.PENDING),
            _thread(2, f"{COMMENT_PREAMBLE} b", ThreadStatus.UNKNOWN),
        ]
        result = reconcile([], threads)
        assert {op.thread_id for op in result.closes} == {1, 2}

    @pytest.mark.parametrize("status", [ThreadStatus.FIXED, ThreadStatus.WONT_FIX, ThreadStatus.BY_DESIGN])
    def test_reviewer_resolved_threads_are_left_alone(self, status):
        threads = [_thread(9, signature(_finding()), status)]
        assert reconcile([_finding()], threads).operations == []
        assert reconcile([], threads).operations == []


class TestTieBreaks:
    def test_duplicate_findings_produce_one_create(self):
        result = reconcile([_finding(), _finding(), _finding()], [])
        assert len(result.creates) == 1
        assert result.active_count == 3

    def test_duplicate_findings_produce_one_reopen(self):
        threads = [_thread(4, signature(_finding()), ThreadStatus.CLOSED)]
        result = reconcile([_finding(), _finding()], threads)
        assert result.operations == [UpdateThread(thread_id=4, status=ThreadStatus.ACTIVE)]

    def test_same_rule_in_different_files_collapses(self):
        # Signatures don't include the path.
        result = reconcile([_finding(path="a.ts"), _finding(path="b.ts")], [])
        assert len(result.creates) == 1
        assert result.active_count == 2

    def test_duplicate_managed_threads_first_matched_rest_closed(self):
        sig = signature(_finding())
        threads = [
            _thread(1, sig, ThreadStatus.CLOSED),
            _thread(2, sig, ThreadStatus.ACTIVE),
            _thread(3, sig, ThreadStatus.CLOSED),
        ]
        result = reconcile([_finding()], threads)
        assert result.operations == [
            UpdateThread(thread_id=1, status=ThreadStatus.ACTIVE),
            UpdateThread(thread_id=2, status=ThreadStatus.CLOSED),
        ]

    def test_creates_anchor_on_finding_location(self):
        result = reconcile([_finding(path="src/x.cs", line=40, char=9)], [])
        assert result.creates[0].anchor == Anchor("src/x.cs", 40, 9)


class TestContractViolations:
    def test_update_without_thread_id_raises(self):
        threads = [_thread(None, signature(_finding()), ThreadStatus.CLOSED)]
        with pytest.raises(UnanchoredUpdateError):
            reconcile([_finding()], threads)

    def test_close_without_thread_id_raises(self):
        threads = [_thread(None, f"{COMMENT_PREAMBLE} stale")]
        with pytest.raises(UnanchoredUpdateError, match="thread id is not set"):
            reconcile([], threads)

    def test_idless_thread_that_needs_nothing_is_fine(self):
        threads = [_thread(None, f"{COMMENT_PREAMBLE} stale", ThreadStatus.CLOSED)]
        assert reconcile([], threads).operations == []


def test_concurrent_runs_are_not_guarded() -> None:
    """Known limitation: two runs reading the same snapshot both create.

    There is no cross-run locking; the duplicate is closed by a later run.
    """
    snapshot: list[ManagedThread] = []
    run_a = reconcile([_finding()], snapshot)
    run_b = reconcile([_finding()], snapshot)
    assert len(run_a.creates) == 1
    assert len(run_b.creates) == 1

    host = _apply(_apply(snapshot, run_a), run_b)
    later = reconcile([_finding()], host)
    assert len(later.closes) == 1
    assert later.creates == []
