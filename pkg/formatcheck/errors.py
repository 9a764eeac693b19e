"""Error types raised by the format check pipeline."""

from __future__ import annotations


class FormatCheckError(RuntimeError):
    """Base class for fatal format check failures."""


class ConfigError(FormatCheckError):
    """Task settings are missing or invalid."""


class MalformedReportError(FormatCheckError):
    """The formatter report cannot be parsed into findings."""


class FormatterError(FormatCheckError):
    """The formatter crashed without producing a report."""


class UnanchoredUpdateError(FormatCheckError):
    """An update targets a managed thread that has no id."""


class PullRequestStateError(FormatCheckError):
    """The pull request lacks data the run depends on (e.g. iterations)."""
