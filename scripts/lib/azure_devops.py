"""Azure DevOps REST transport.

One explicitly constructed client per run; nothing is cached at module level.
`connect()` is the initialization step: it checks the credentials against the
pull request and returns the connection the rest of the run uses.
"""

from __future__ import annotations

import base64
import json
import random
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib import error, parse, request

API_VERSION = "7.1"
TRANSIENT_CODES = (502, 503, 504)

Opener = Callable[[request.Request, int], Any]


class ApiPermissionError(Exception):
    """Token cannot read or write pull request threads/statuses."""


class TransientApiError(Exception):
    """Azure DevOps returned a transient error (5xx) after all retries."""


class ApiError(Exception):
    """Any other non-2xx response."""

    def __init__(self, status: int, url: str, body: str) -> None:
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"HTTP {status} for {url}: {body[:300]}")


def _default_opener(req: request.Request, timeout_seconds: int) -> Any:
    return request.urlopen(req, timeout=timeout_seconds)


def _read_body(response: Any) -> str:
    read = getattr(response, "read", None)
    if read is None:
        return ""
    raw = read()
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw or "")


@dataclass(frozen=True)
class PullRequestConnection:
    """Result of `AzureDevOpsClient.connect()`; pass it to the pull request service."""
    client: "AzureDevOpsClient"
    pull_request_id: int
    source_ref: str
    target_ref: str


class AzureDevOpsClient:
    """Minimal Git REST client scoped to one repository."""

    def __init__(
        self,
        *,
        org_url: str,
        project: str,
        repository: str,
        token: str,
        opener: Opener | None = None,
        timeout_seconds: int = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not org_url:
            raise ValueError("org_url cannot be empty")
        self._base = (
            f"{org_url.rstrip('/')}/{parse.quote(project)}/_apis/git/repositories/{parse.quote(repository)}"
        )
        self._auth = "Basic " + base64.b64encode(f":{token}".encode()).decode()
        self._opener = opener or _default_opener
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"AzureDevOpsClient({self._base!r})"

    def url(self, path: str, **query: str) -> str:
        """Build a repository-relative API url with api-version applied."""
        params = {**query, "api-version": API_VERSION}
        return f"{self._base}/{path.lstrip('/')}?{parse.urlencode(params)}"

    def request(self, method: str, path: str, payload: Any = None, **query: str) -> Any:
        """Send one request and return the decoded JSON body.

        Retries 502/503/504 and network failures (no response) with
        exponential backoff and jitter.

        Raises:
            ApiPermissionError: 401/403.
            TransientApiError: 5xx or network failure after all retries.
            ApiError: any other non-2xx status.
        """
        url = self.url(path, **query)
        data = None if payload is None else json.dumps(payload).encode()
        headers = {"Authorization": self._auth, "Accept": "application/json"}
        if data is not None:
            headers["Content-Type"] = "application/json"

        for attempt in range(self._max_retries):
            req = request.Request(url, data=data, method=method, headers=headers)
            try:
                with self._opener(req, self._timeout) as response:
                    body = _read_body(response)
                return json.loads(body) if body.strip() else {}
            except error.HTTPError as exc:
                status = int(getattr(exc, "code", 0))
                body = _read_body(exc)
                detail = f"HTTP {status}"
            except (error.URLError, TimeoutError) as exc:
                # No response at all: DNS, refused connection, socket timeout.
                status = None
                body = ""
                detail = str(getattr(exc, "reason", exc))

            if status in (401, 403):
                raise ApiPermissionError(
                    f"Azure DevOps denied {method} {path} (HTTP {status}). "
                    "Grant the build service 'Contribute to pull requests' or pass a PAT."
                )

            if status is None or status in TRANSIENT_CODES:
                if attempt < self._max_retries - 1:
                    delay = self._base_delay * (2 ** attempt) + random.uniform(0, 0.5)
                    print(
                        f"##vso[task.logissue type=warning]Azure DevOps API error: {detail} "
                        f"(attempt {attempt + 1}/{self._max_retries}), retrying in {delay:.1f}s...",
                        file=sys.stderr,
                    )
                    self._sleep(delay)
                    continue
                raise TransientApiError(
                    f"Azure DevOps request {method} {path} failed with {detail} "
                    f"after {self._max_retries} attempts: {body[:300]}"
                )

            raise ApiError(status, url, body)

        raise RuntimeError("request retry loop exited unexpectedly")

    def connect(self, pull_request_id: int) -> PullRequestConnection:
        """Fetch the pull request once and return the connection for the run."""
        pr = self.request("GET", f"pullRequests/{int(pull_request_id)}")
        if not isinstance(pr, dict):
            pr = {}
        return PullRequestConnection(
            client=self,
            pull_request_id=int(pull_request_id),
            source_ref=str(pr.get("sourceRefName") or ""),
            target_ref=str(pr.get("targetRefName") or ""),
        )
