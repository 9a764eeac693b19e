"""Task settings: pipeline environment plus task inputs.

Task inputs may come from a YAML file (`--config`) and from `INPUT_*`
environment variables; environment variables win. Pipeline variables
(`SYSTEM_*`, `BUILD_*`) only come from the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}

# YAML key -> INPUT_* variable.
_INPUT_KEYS = {
    "solutionPath": "INPUT_SOLUTIONPATH",
    "includePath": "INPUT_INCLUDEPATH",
    "excludePath": "INPUT_EXCLUDEPATH",
    "statusCheck": "INPUT_STATUSCHECK",
    "statusCheckName": "INPUT_STATUSCHECKNAME",
    "statusCheckGenre": "INPUT_STATUSCHECKGENRE",
    "failOnFormattingErrors": "INPUT_FAILONFORMATTINGERRORS",
    "scopeToPullRequest": "INPUT_SCOPETOPULLREQUEST",
    "scopeToChangedLines": "INPUT_SCOPETOCHANGEDLINES",
}


@dataclass(frozen=True)
class StatusCheckContext:
    """Name/genre pair identifying the status check on the pull request."""
    name: str = "format-check"
    genre: str = "dotnet-format"


@dataclass(frozen=True)
class Environment:
    """Pipeline variables describing the pull request build."""
    org_url: str = ""
    project_id: str = ""
    repo_id: str = ""
    pull_request_id: int | None = None
    token: str = field(default="", repr=False)
    sources_directory: str = ""
    source_commit: str = ""
    target_branch: str = ""


@dataclass(frozen=True)
class Parameters:
    """Task inputs."""
    solution_path: str = ""
    include_path: str | None = None
    exclude_path: str | None = None
    fail_on_formatting_errors: bool = False
    scope_to_pull_request: bool = False
    scope_to_changed_lines: bool = False
    status_check: bool = False
    status_check_context: StatusCheckContext = field(default_factory=StatusCheckContext)
    token: str = field(default="", repr=False)


@dataclass(frozen=True)
class Settings:
    """Environment + parameters for one run."""
    environment: Environment
    parameters: Parameters

    @property
    def is_pull_request_build(self) -> bool:
        return self.environment.pull_request_id is not None


def _parse_bool(value: Any, ctx: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{ctx}: expected boolean, got {value!r}")


def _optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ConfigError(f"{ctx}: expected string")
    text = str(value).strip()
    return text or None


def _parse_pull_request_id(value: str | None) -> int | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = int(text)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read task inputs from YAML. A missing top-level mapping is an error."""
    try:
        raw = yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected mapping")
    unknown = sorted(set(raw) - set(_INPUT_KEYS))
    if unknown:
        raise ConfigError(f"{path}: unknown keys: {', '.join(unknown)}")
    return raw


def load_settings(
    env: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
    require_solution: bool = True,
) -> Settings:
    """Build settings from the environment (and optionally a YAML file).

    Raises:
        ConfigError: invalid input values, or no solution path when
            `require_solution` is set on a pull request build.
    """
    env = os.environ if env is None else env
    inputs: dict[str, Any] = load_config_file(config_path) if config_path else {}
    for key, var in _INPUT_KEYS.items():
        if var in env:
            inputs[key] = env[var]

    token = str(env.get("INPUT_PAT") or env.get("SYSTEM_ACCESSTOKEN") or "")

    environment = Environment(
        org_url=str(env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI") or ""),
        project_id=str(env.get("SYSTEM_TEAMPROJECTID") or ""),
        repo_id=str(env.get("BUILD_REPOSITORY_ID") or ""),
        pull_request_id=_parse_pull_request_id(env.get("SYSTEM_PULLREQUEST_PULLREQUESTID")),
        token=str(env.get("SYSTEM_ACCESSTOKEN") or ""),
        sources_directory=str(env.get("BUILD_SOURCESDIRECTORY") or ""),
        source_commit=str(env.get("SYSTEM_PULLREQUEST_SOURCECOMMITID") or ""),
        target_branch=str(env.get("SYSTEM_PULLREQUEST_TARGETBRANCH") or ""),
    )

    defaults = StatusCheckContext()
    parameters = Parameters(
        solution_path=_optional_str(inputs.get("solutionPath"), "solutionPath") or "",
        include_path=_optional_str(inputs.get("includePath"), "includePath"),
        exclude_path=_optional_str(inputs.get("excludePath"), "excludePath"),
        fail_on_formatting_errors=_parse_bool(inputs.get("failOnFormattingErrors"), "failOnFormattingErrors"),
        scope_to_pull_request=_parse_bool(inputs.get("scopeToPullRequest"), "scopeToPullRequest"),
        scope_to_changed_lines=_parse_bool(inputs.get("scopeToChangedLines"), "scopeToChangedLines"),
        status_check=_parse_bool(inputs.get("statusCheck"), "statusCheck"),
        status_check_context=StatusCheckContext(
            name=_optional_str(inputs.get("statusCheckName"), "statusCheckName") or defaults.name,
            genre=_optional_str(inputs.get("statusCheckGenre"), "statusCheckGenre") or defaults.genre,
        ),
        token=token,
    )

    settings = Settings(environment=environment, parameters=parameters)
    if require_solution and settings.is_pull_request_build and not parameters.solution_path:
        raise ConfigError("SolutionPath is not set.")
    return settings


def describe_settings(settings: Settings) -> list[str]:
    """Log lines for the resolved settings. Never includes the token."""
    p = settings.parameters
    e = settings.environment
    return [
        "task input parameters:",
        f"Solution Path: {p.solution_path}",
        f"Include Path: {p.include_path}",
        f"Exclude Path: {p.exclude_path}",
        f"Status Check: {p.status_check}",
        f"Fail On Formatting Errors: {p.fail_on_formatting_errors}",
        f"Status Check Name: {p.status_check_context.name}",
        f"Status Check Genre: {p.status_check_context.genre}",
        f"Scope To Pull Request: {p.scope_to_pull_request}",
        f"Scope To Changed Lines: {p.scope_to_changed_lines}",
        f"OrgUrl: {e.org_url}",
        f"RepoId: {e.repo_id}",
        f"ProjectId: {e.project_id}",
        f"PullRequestId: {e.pull_request_id}",
    ]
