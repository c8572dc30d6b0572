"""
GitHub issue client.

Thin httpx-based wrapper around the four GitHub REST calls the pipeline
needs: list open issues, search issues, create an issue, fetch one issue,
and look up the authenticated user.

Every public method is a soft-failure boundary. Tracker problems (bad
token, rate limit, unreachable host, malformed payload) are logged as a
warning and turned into ``[]`` or ``None``; the only exception that crosses
the boundary is ``CancelledError``. Nothing is retried: issue creation is
not idempotent.

Authentication is a Bearer token. Without one, reads still go out
unauthenticated (lower rate limit) and writes return ``None`` immediately.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from commitlink.core.cancellation import CancellationToken, ensure_token
from commitlink.core.constants import (
    GITHUB_ACCEPT,
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GITHUB_MAX_PAGES,
    GITHUB_PAGE_SIZE,
    GITHUB_TIMEOUT_SECONDS,
)
from commitlink.core.exceptions import (
    AuthenticationError,
    CancelledError,
    CommitLinkError,
    IssueOperationError,
    NetworkError,
)
from commitlink.providers.base import truncate_body
from commitlink.tracker.models import Issue

logger = structlog.get_logger()


class GitHubIssueClient:
    """
    Async GitHub issues client.

    Parameters
    ----------
    token:
        Bearer token, or None for unauthenticated reads.
    base_url:
        API root; override for GitHub Enterprise.
    client:
        Pre-built ``httpx.AsyncClient`` (tests inject a MockTransport here).
    """

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = GITHUB_API_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token or None
        self._base_url = base_url
        self._headers = {
            "Accept": GITHUB_ACCEPT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._token:
            self._headers["Authorization"] = f"Bearer {self._token}"
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> GitHubIssueClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=GITHUB_TIMEOUT_SECONDS,
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def __aexit__(self, *_: Any) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def list_open_issues(
        self,
        owner: str,
        repo: str,
        cancellation: CancellationToken | None = None,
    ) -> list[Issue]:
        """Return open issues (pull requests excluded), or [] on any failure."""
        cancel = ensure_token(cancellation)
        issues: list[Issue] = []
        try:
            for page in range(1, GITHUB_MAX_PAGES + 1):
                data = await self._request(
                    "GET",
                    f"/repos/{owner}/{repo}/issues",
                    cancel,
                    params={"state": "open", "per_page": GITHUB_PAGE_SIZE, "page": page},
                )
                if not isinstance(data, list):
                    raise IssueOperationError("issue list response is not an array")
                for item in data:
                    if not isinstance(item, dict) or "pull_request" in item:
                        continue
                    issues.append(Issue.from_github(item))
                if len(data) < GITHUB_PAGE_SIZE:
                    break
        except (IssueOperationError, NetworkError, AuthenticationError) as exc:
            logger.warning(
                "issues_list_failed",
                repository=f"{owner}/{repo}",
                authenticated=self.authenticated,
                error=str(exc),
            )
            return []
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "issues_list_malformed", repository=f"{owner}/{repo}", error=str(exc)
            )
            return []

        logger.info("issues_listed", repository=f"{owner}/{repo}", count=len(issues))
        return issues

    async def search_issues(
        self,
        owner: str,
        repo: str,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> list[Issue]:
        """Full-text issue search scoped to one repository, or [] on any failure."""
        cancel = ensure_token(cancellation)
        try:
            data = await self._request(
                "GET",
                "/search/issues",
                cancel,
                params={
                    "q": f"repo:{owner}/{repo} is:issue {query}".strip(),
                    "per_page": GITHUB_PAGE_SIZE,
                },
            )
            items = data.get("items") if isinstance(data, dict) else None
            if not isinstance(items, list):
                raise IssueOperationError("search response has no items array")
            issues = [
                Issue.from_github(item)
                for item in items
                if isinstance(item, dict) and "pull_request" not in item
            ]
        except (IssueOperationError, NetworkError, AuthenticationError) as exc:
            logger.warning(
                "issues_search_failed",
                repository=f"{owner}/{repo}",
                authenticated=self.authenticated,
                error=str(exc),
            )
            return []
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "issues_search_malformed", repository=f"{owner}/{repo}", error=str(exc)
            )
            return []

        logger.info(
            "issues_searched", repository=f"{owner}/{repo}", query=query, count=len(issues)
        )
        return issues

    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignee: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Issue | None:
        """Create an issue; returns None when it could not be created."""
        cancel = ensure_token(cancellation)
        if not self.authenticated:
            logger.warning("issue_create_skipped", reason="no_credential")
            return None

        payload: dict[str, Any] = {"title": title, "body": body, "labels": list(labels or [])}
        if assignee:
            payload["assignees"] = [assignee]

        try:
            data = await self._request(
                "POST", f"/repos/{owner}/{repo}/issues", cancel, json=payload
            )
            issue = Issue.from_github(data)
        except CancelledError:
            raise
        except (CommitLinkError, KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "issue_create_failed", repository=f"{owner}/{repo}", error=str(exc)
            )
            return None

        logger.info("issue_created", repository=f"{owner}/{repo}", issue=issue.id)
        return issue

    async def get_issue(
        self,
        owner: str,
        repo: str,
        issue_id: int,
        cancellation: CancellationToken | None = None,
    ) -> Issue | None:
        """Fetch a single issue by number, or None."""
        cancel = ensure_token(cancellation)
        try:
            data = await self._request("GET", f"/repos/{owner}/{repo}/issues/{issue_id}", cancel)
            if isinstance(data, dict) and "pull_request" in data:
                return None
            return Issue.from_github(data)
        except CancelledError:
            raise
        except (CommitLinkError, KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "issue_fetch_failed",
                repository=f"{owner}/{repo}",
                issue=issue_id,
                error=str(exc),
            )
            return None

    async def current_user(self, cancellation: CancellationToken | None = None) -> str | None:
        """Return the authenticated user's login, or None."""
        cancel = ensure_token(cancellation)
        if not self.authenticated:
            return None
        try:
            data = await self._request("GET", "/user", cancel)
            login = data.get("login") if isinstance(data, dict) else None
        except CancelledError:
            raise
        except CommitLinkError as exc:
            logger.warning("current_user_failed", error=str(exc))
            return None
        return login if isinstance(login, str) and login else None

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        cancellation: CancellationToken,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if self._client is None:
            raise RuntimeError("use GitHubIssueClient as an async context manager")
        cancellation.raise_if_cancelled()
        try:
            resp = await cancellation.guard(
                self._client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers=self._headers,
                )
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"GitHub unreachable: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            raise IssueOperationError(
                f"GitHub {method} {path} gave an unusable response: {type(exc).__name__}"
            ) from exc

        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"GitHub rejected the request (HTTP {resp.status_code}). "
                "Check that the token has the 'repo' scope.",
                status_code=resp.status_code,
            )
        if not resp.is_success:
            raise IssueOperationError(
                f"GitHub {method} {path} failed: {resp.status_code} {truncate_body(resp.text)}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise IssueOperationError(f"GitHub {method} {path} returned non-JSON") from exc

