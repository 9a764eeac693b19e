"""Format check annotation primitives: scoping, normalization and thread reconciliation."""

from .errors import (
    ConfigError,
    FormatCheckError,
    FormatterError,
    MalformedReportError,
    PullRequestStateError,
    UnanchoredUpdateError,
)
from .models import (
    Anchor,
    ChangeEntry,
    ChangeType,
    CheckState,
    CreateThread,
    Finding,
    ManagedThread,
    ReconcileResult,
    ThreadStatus,
    UpdateThread,
)
from .normalizer import PathNormalizer, normalize
from .reconcile import reconcile
from .scope import resolve_scope
from .signature import COMMENT_PREAMBLE, is_managed, signature
from .status import StatusDecision, decide, describe_status

__all__ = [
    "Anchor",
    "COMMENT_PREAMBLE",
    "ChangeEntry",
    "ChangeType",
    "CheckState",
    "ConfigError",
    "CreateThread",
    "Finding",
    "FormatCheckError",
    "FormatterError",
    "MalformedReportError",
    "ManagedThread",
    "PathNormalizer",
    "PullRequestStateError",
    "ReconcileResult",
    "StatusDecision",
    "ThreadStatus",
    "UnanchoredUpdateError",
    "UpdateThread",
    "decide",
    "describe_status",
    "is_managed",
    "normalize",
    "reconcile",
    "resolve_scope",
    "signature",
]
