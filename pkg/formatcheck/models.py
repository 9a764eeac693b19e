"""Records exchanged between the scope resolver, normalizer and reconciler.

Enum values match the strings the Azure DevOps REST API uses, so host JSON
can be mapped with `Enum(value)`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ChangeType(Enum):
    """Kind of change a pull request made to a file."""

    NONE = "none"
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RENAME = "rename"

    @classmethod
    def parse(cls, value: object) -> "ChangeType":
        """Map a host change type ("edit", "edit, rename", 2, ...) to a member.

        Combined values resolve to DELETE if any part is a delete, otherwise
        to the first recognised part.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            # VersionControlChangeType flag values.
            if value & 16:
                return cls.DELETE
            for flag, member in ((1, cls.ADD), (2, cls.EDIT), (8, cls.RENAME)):
                if value & flag:
                    return member
            return cls.NONE
        parts = [p.strip().lower() for p in str(value or "").split(",") if p.strip()]
        if "delete" in parts:
            return cls.DELETE
        for part in parts:
            try:
                return cls(part)
            except ValueError:
                continue
        return cls.NONE


class ThreadStatus(Enum):
    """Pull request comment thread status."""

    UNKNOWN = "unknown"
    ACTIVE = "active"
    FIXED = "fixed"
    WONT_FIX = "wontFix"
    CLOSED = "closed"
    BY_DESIGN = "byDesign"
    PENDING = "pending"

    @classmethod
    def parse(cls, value: object) -> "ThreadStatus":
        """Parse a host status (string or CommentThreadStatus number)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            order = [cls.UNKNOWN, cls.ACTIVE, cls.FIXED, cls.WONT_FIX, cls.CLOSED, cls.BY_DESIGN, cls.PENDING]
            return order[value] if 0 <= value < len(order) else cls.UNKNOWN
        text = str(value or "").strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return cls.UNKNOWN

    @property
    def is_closed(self) -> bool:
        """Closed or resolved by a reviewer; the close pass leaves these alone."""
        return self in _CLOSED_LIKE

    @property
    def is_terminal(self) -> bool:
        """Resolved by a reviewer; never reopened."""
        return self in _TERMINAL


_TERMINAL = frozenset({ThreadStatus.FIXED, ThreadStatus.WONT_FIX, ThreadStatus.BY_DESIGN})
_CLOSED_LIKE = _TERMINAL | {ThreadStatus.CLOSED}


class CheckState(Enum):
    """Pull request status check state."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class Finding:
    """One formatting issue at one location."""

    file_path: str
    line_number: int
    char_number: int
    diagnostic_id: str
    description: str


@dataclass(frozen=True)
class ChangeEntry:
    """A file touched by the pull request diff.

    `line_ranges` is None when line level scoping is off or unavailable.
    """

    file_path: str | None
    commit_id: str = ""
    change_type: ChangeType = ChangeType.EDIT
    line_ranges: frozenset[int] | None = None


@dataclass(frozen=True)
class ManagedThread:
    """A pull request thread as listed by the host.

    Whether it is actually managed depends on `signature` (see
    `signature.is_managed`).
    """

    id: int | None
    status: ThreadStatus
    signature: str
    file_path: str | None = None
    line: int | None = None
    column: int | None = None


@dataclass(frozen=True)
class Anchor:
    """Where a new thread is attached: right side of the diff."""

    file_path: str
    line: int
    column: int


@dataclass(frozen=True)
class CreateThread:
    """Open a new managed thread."""

    comment: str
    anchor: Anchor


@dataclass(frozen=True)
class UpdateThread:
    """Set the status of an existing managed thread."""

    thread_id: int
    status: ThreadStatus


Operation = Union[CreateThread, UpdateThread]


@dataclass(frozen=True)
class ReconcileResult:
    """Operations to apply plus the number of findings that produced them."""

    operations: list[Operation]
    active_count: int

    @property
    def creates(self) -> list[CreateThread]:
        return [op for op in self.operations if isinstance(op, CreateThread)]

    @property
    def reopens(self) -> list[UpdateThread]:
        return [
            op for op in self.operations
            if isinstance(op, UpdateThread) and op.status is ThreadStatus.ACTIVE
        ]

    @property
    def closes(self) -> list[UpdateThread]:
        return [
            op for op in self.operations
            if isinstance(op, UpdateThread) and op.status is ThreadStatus.CLOSED
        ]
