"""Thread reconciliation.

Turns the current findings and the threads already on the pull request into
the create/update operations that make the two agree. Pure: no I/O, no
logging, nothing is applied here.

Rules, per signature:

- finding, no managed thread        -> create a thread
- finding, thread closed            -> reopen it (status update, never a new thread)
- finding, thread active            -> nothing (or a refresh, if asked for)
- finding, thread resolved by human -> nothing; fixed/won't fix/by design stick
- no finding, thread still open     -> close it
- no finding, thread closed         -> nothing

Threads whose first comment does not start with the preamble are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .errors import UnanchoredUpdateError
from .models import (
    Anchor,
    CreateThread,
    Finding,
    ManagedThread,
    Operation,
    ReconcileResult,
    ThreadStatus,
    UpdateThread,
)
from .signature import COMMENT_PREAMBLE, is_managed, signature


def partition_threads(
    threads: Iterable[ManagedThread], *, preamble: str = COMMENT_PREAMBLE
) -> tuple[list[ManagedThread], list[ManagedThread]]:
    """Split threads into (managed, ignored) keeping input order."""
    managed: list[ManagedThread] = []
    ignored: list[ManagedThread] = []
    for thread in threads:
        if is_managed(thread.signature, preamble=preamble):
            managed.append(thread)
        else:
            ignored.append(thread)
    return managed, ignored


def _update(thread: ManagedThread, status: ThreadStatus) -> UpdateThread:
    if thread.id is None:
        raise UnanchoredUpdateError(
            f"Existing thread id is not set (file {thread.file_path or '<unknown>'}, "
            f"content {thread.signature!r})."
        )
    return UpdateThread(thread_id=thread.id, status=status)


def reconcile(
    findings: Sequence[Finding],
    existing_threads: Iterable[ManagedThread],
    *,
    preamble: str = COMMENT_PREAMBLE,
    refresh_active: bool = False,
) -> ReconcileResult:
    """Compute the operations that bring managed threads in line with `findings`.

    With `refresh_active=True`, threads that are already active get a repeat
    ACTIVE update (the host bumps their last-updated time); by default they
    produce no operation, so a second run over the same state is empty.

    When two managed threads share a signature, the first one is matched and
    the others are closed.

    Raises:
        UnanchoredUpdateError: a managed thread without an id would be updated.
    """
    managed, _ignored = partition_threads(existing_threads, preamble=preamble)

    by_signature: dict[str, ManagedThread] = {}
    for thread in managed:
        by_signature.setdefault(thread.signature, thread)

    active_signatures = {signature(f, preamble=preamble) for f in findings}

    operations: list[Operation] = []
    handled: set[str] = set()

    for finding in findings:
        sig = signature(finding, preamble=preamble)
        if sig in handled:
            continue
        handled.add(sig)

        thread = by_signature.get(sig)
        if thread is None:
            operations.append(
                CreateThread(
                    comment=sig,
                    anchor=Anchor(
                        file_path=finding.file_path,
                        line=finding.line_number,
                        column=finding.char_number,
                    ),
                )
            )
            continue

        if thread.status.is_terminal:
            continue
        if thread.status is ThreadStatus.ACTIVE and not refresh_active:
            continue
        operations.append(_update(thread, ThreadStatus.ACTIVE))

    for thread in managed:
        if thread.status.is_closed:
            continue
        duplicate = by_signature[thread.signature] is not thread
        if thread.signature in active_signatures and not duplicate:
            continue
        operations.append(_update(thread, ThreadStatus.CLOSED))

    return ReconcileResult(operations=operations, active_count=len(findings))
