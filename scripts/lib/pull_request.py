"""Pull request reads and writes used around the reconciler.

Reads produce the core's input records (threads, changes); writes apply the
reconciler's operations and publish the status check.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from lib.azure_devops import PullRequestConnection
from pkg.formatcheck import pipeline_log as log
from pkg.formatcheck.config import StatusCheckContext
from pkg.formatcheck.errors import PullRequestStateError
from pkg.formatcheck.models import (
    ChangeEntry,
    ChangeType,
    CheckState,
    CreateThread,
    ManagedThread,
    Operation,
    ThreadStatus,
    UpdateThread,
)
from pkg.formatcheck.normalizer import PathNormalizer
from pkg.formatcheck.status import describe_status

DIFF_PAGE_SIZE = 500


@dataclass(frozen=True)
class ApplySummary:
    """Counts of thread writes made by `apply_operations`."""
    created: int = 0
    reopened: int = 0
    closed: int = 0

    def describe(self) -> str:
        return f"{self.created} created, {self.reopened} reopened, {self.closed} closed"


def _short_ref(ref: str) -> str:
    return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def parse_thread(raw: Mapping[str, object]) -> ManagedThread:
    """Map one host thread JSON object to a ManagedThread."""
    comments = raw.get("comments")
    first = comments[0] if isinstance(comments, list) and comments else {}
    content = str(first.get("content") or "") if isinstance(first, dict) else ""

    context = raw.get("threadContext")
    context = context if isinstance(context, dict) else {}
    start = context.get("rightFileStart")
    start = start if isinstance(start, dict) else {}

    return ManagedThread(
        id=_as_int(raw.get("id")),
        status=ThreadStatus.parse(raw.get("status")),
        signature=content,
        file_path=str(context.get("filePath")) if context.get("filePath") else None,
        line=_as_int(start.get("line")),
        column=_as_int(start.get("offset")),
    )


def thread_payload(op: CreateThread) -> dict[str, object]:
    """Request body creating an active text thread on the right side of the diff."""
    anchor = op.anchor
    return {
        "comments": [{"parentCommentId": 0, "content": op.comment, "commentType": "text"}],
        "status": ThreadStatus.ACTIVE.value,
        "threadContext": {
            "filePath": "/" + anchor.file_path.lstrip("/"),
            "rightFileStart": {"line": anchor.line, "offset": anchor.column},
            "rightFileEnd": {"line": anchor.line, "offset": anchor.column + 1},
        },
    }


class PullRequestService:
    """Thread, diff and status operations for the pull request behind a connection."""

    def __init__(
        self,
        connection: PullRequestConnection,
        *,
        normalizer: PathNormalizer | None = None,
        status_check: bool = False,
        status_context: StatusCheckContext | None = None,
    ) -> None:
        self._conn = connection
        self._client = connection.client
        self._pr = f"pullRequests/{connection.pull_request_id}"
        self._normalizer = normalizer or PathNormalizer()
        self._status_check = status_check
        self._status_context = status_context or StatusCheckContext()

    def list_threads(self) -> list[ManagedThread]:
        """All non-deleted threads on the pull request (managed or not)."""
        data = self._client.request("GET", f"{self._pr}/threads")
        raw_threads = data.get("value") if isinstance(data, dict) else None
        if not isinstance(raw_threads, list):
            return []
        return [
            parse_thread(t)
            for t in raw_threads
            if isinstance(t, dict) and not t.get("isDeleted")
        ]

    def list_changes(self, line_ranges: Mapping[str, frozenset[int]] | None = None) -> list[ChangeEntry]:
        """Files changed between the target and source branches.

        `line_ranges` maps normalized paths to added lines. When given, files
        it covers get those lines; other files stay unbounded.
        """
        base = _short_ref(self._conn.target_ref)
        target = _short_ref(self._conn.source_ref)
        log.info("Getting the PR commits...")

        changes: list[ChangeEntry] = []
        skip = 0
        while True:
            data = self._client.request(
                "GET",
                "diffs/commits",
                baseVersion=base,
                baseVersionType="branch",
                targetVersion=target,
                targetVersionType="branch",
                **{"$top": str(DIFF_PAGE_SIZE), "$skip": str(skip)},
            )
            page = data.get("changes") if isinstance(data, dict) else None
            if not isinstance(page, list) or not page:
                break
            for raw in page:
                entry = self._parse_change(raw, line_ranges)
                if entry is not None:
                    changes.append(entry)
            if data.get("allChangesIncluded", True) or len(page) < DIFF_PAGE_SIZE:
                break
            skip += len(page)

        log.info("All changed files considered to be part of this Pull Request: ")
        for change in changes:
            line_info = "" if change.line_ranges is None else f" ({len(change.line_ranges)} added lines)"
            log.info(f"{change.file_path} - {change.change_type.value} - {change.commit_id}{line_info}")
        return changes

    def _parse_change(
        self, raw: object, line_ranges: Mapping[str, frozenset[int]] | None
    ) -> ChangeEntry | None:
        if not isinstance(raw, dict):
            return None
        item = raw.get("item")
        item = item if isinstance(item, dict) else {}
        if item.get("isFolder"):
            return None
        commit_id = str(item.get("commitId") or "")
        raw_path = item.get("path")
        path = self._normalizer.normalize_repo_path(raw_path) if raw_path else None
        lines = None
        if path and line_ranges is not None:
            lines = line_ranges.get(path)
        return ChangeEntry(
            file_path=path,
            commit_id=commit_id,
            change_type=ChangeType.parse(raw.get("changeType")),
            line_ranges=lines,
        )

    def create_thread(self, op: CreateThread) -> dict:
        data = self._client.request("POST", f"{self._pr}/threads", thread_payload(op))
        return data if isinstance(data, dict) else {}

    def update_thread(self, op: UpdateThread) -> dict:
        data = self._client.request(
            "PATCH", f"{self._pr}/threads/{op.thread_id}", {"status": op.status.value}
        )
        return data if isinstance(data, dict) else {}

    def apply_operations(self, operations: Iterable[Operation]) -> ApplySummary:
        """Apply operations in order, one request each."""
        created = reopened = closed = 0
        for op in operations:
            if isinstance(op, CreateThread):
                log.info(f"📝 Creating new thread for file {op.anchor.file_path}.")
                self.create_thread(op)
                created += 1
            elif op.status is ThreadStatus.CLOSED:
                log.info(f"🔒 Closing resolved thread {op.thread_id}.")
                self.update_thread(op)
                closed += 1
            else:
                log.info(f"Updating existing thread {op.thread_id}.")
                self.update_thread(op)
                reopened += 1
        return ApplySummary(created=created, reopened=reopened, closed=closed)

    def last_iteration_id(self) -> int:
        data = self._client.request("GET", f"{self._pr}/iterations")
        iterations = data.get("value") if isinstance(data, dict) else None
        last = iterations[-1] if isinstance(iterations, list) and iterations else None
        iteration_id = _as_int(last.get("id")) if isinstance(last, dict) else None
        if not iteration_id:
            raise PullRequestStateError("Last PullRequest Iteration ID not set")
        return iteration_id

    def update_status(self, state: CheckState) -> None:
        """Publish the status check for the latest iteration."""
        if not self._status_check:
            log.warn("update_status called to set status check, but statusCheck task parameter is false")
            return
        ctx = self._status_context
        log.info(f"Setting status check '{ctx.genre}\\{ctx.name}' to: {state.value}")
        self._client.request(
            "POST",
            f"{self._pr}/statuses",
            {
                "state": state.value,
                "description": describe_status(state),
                "context": {"name": ctx.name, "genre": ctx.genre},
                "iterationId": self.last_iteration_id(),
            },
        )
