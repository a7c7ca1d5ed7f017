"""GitHub issue and pull request operations with rate-limit handling."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator
from urllib.parse import parse_qs, urlsplit

import requests

SECONDS_TO_SLEEP_WHEN_RATE_LIMITED = 30
DEFAULT_BASE_URL = "https://api.github.com/"
_PER_PAGE = 30


class GitHubError(RuntimeError):
    """An error response from the GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reset: float | None = None,
        retry_after: float | None = None,
        secondary: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reset = reset
        self.retry_after = retry_after
        self.secondary = secondary


def _float_header(headers: Any, name: str) -> float | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_from_response(method: str, resp: requests.Response) -> GitHubError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or resp.reason or "request failed"
    text = f"{method} {resp.url}: {resp.status_code} {message}"
    code = resp.status_code

    if code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0":
        reset = _float_header(resp.headers, "X-RateLimit-Reset")
        return GitHubError(text, status_code=code, reset=reset if reset is not None else time.time())

    doc = str(body.get("documentation_url") or "")
    if code == 403 and (doc.endswith("secondary-rate-limits") or doc.endswith("#abuse-rate-limits")):
        return GitHubError(
            text,
            status_code=code,
            retry_after=_float_header(resp.headers, "Retry-After"),
            secondary=True,
        )
    return GitHubError(text, status_code=code)


class GitHubClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token = token
        self.session = session or requests.Session()

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request to ``path``; raise GitHubError on a non-2xx response."""
        headers = {"Accept": "application/vnd.github+json", **kwargs.pop("headers", {})}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self.session.request(
            method, self.base_url + path.lstrip("/"), headers=headers, **kwargs
        )
        if not 200 <= resp.status_code < 300:
            raise _error_from_response(method, resp)
        return resp


@dataclass
class Issue:
    owner: str = ""
    repo_name: str = ""
    package_name: str = ""
    comment: str = ""
    title: str = ""


@dataclass
class BasePullRequest:
    owner: str = ""
    repo_name: str = ""
    branch: str = ""
    pull_request_base_branch: str = ""


@dataclass
class NewPullRequest(BasePullRequest):
    title: str = ""
    body: str = ""


@dataclass
class GetPullRequest(BasePullRequest):
    package_name: str = ""
    version: str = ""


def _json(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    return resp.json()


def _next_page(resp: requests.Response) -> int:
    link = resp.links.get("next")
    if not link:
        return 0
    pages = parse_qs(urlsplit(link.get("url", "")).query).get("page")
    if not pages:
        return 0
    try:
        return int(pages[0])
    except ValueError:
        return 0


@dataclass
class GitOptions:
    """GitHub operations that wait and retry when rate limited."""

    github_client: GitHubClient
    max_retries: int = 3
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("wolfictl.github"))
    sleep: Callable[[float], None] = time.sleep

    def _check_rate_limiting(self, err: GitHubError) -> tuple[bool, float]:
        limited = False
        delay = float(SECONDS_TO_SLEEP_WHEN_RATE_LIMITED)
        if err.reset is not None:
            limited = True
            delay = err.reset - time.time()
            self.logger.info("parsed retryAfter %s from GitHub rate limit error's reset time", delay)
        if err.secondary:
            limited = True
            if err.retry_after is not None and err.retry_after > 0:
                delay = err.retry_after
        return limited, max(delay, 0.0)

    def _call(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        while True:
            try:
                return self.github_client.request(method, path, **kwargs)
            except GitHubError as e:
                if e.status_code == 401:
                    raise GitHubError(
                        "failed to auth with GitHub, does your personal access token have "
                        f"the repo scope? status code: {e.status_code}",
                        status_code=401,
                    ) from e
                limited, delay = self._check_rate_limiting(e)
                if not limited:
                    raise
                self.logger.warning(
                    "retrying again later with %s second delay due to secondary rate limiting.",
                    delay,
                )
                self.sleep(delay)

    def _paginate(self, path: str, params: dict[str, Any] | None = None) -> Iterator[Any]:
        page = 0
        while True:
            query = {**(params or {}), "per_page": _PER_PAGE}
            if page:
                query["page"] = page
            resp = self._call("GET", path, params=query)
            yield from _json(resp) or []
            page = _next_page(resp)
            if not page:
                return

    def list_issues(self, owner: str, repo: str, state: str) -> list[dict]:
        """Return all issues of the repository in the given state."""
        return list(self._paginate(f"repos/{owner}/{repo}/issues", {"state": state}))

    def check_existing_issue(self, issue: Issue) -> int:
        """Return the number of an open issue titled like ``issue``, or 0."""
        issues = list(
            self._paginate(f"repos/{issue.owner}/{issue.repo_name}/issues", {"state": "open"})
        )
        wanted = issue.title.casefold()
        for existing in issues:
            if str(existing.get("title", "")).casefold() == wanted:
                return int(existing["number"])
        return 0

    def has_existing_comment(self, issue: Issue, issue_number: int, new_comment: str) -> bool:
        """Return True if the issue already has a comment with exactly this body."""
        comments = list(
            self._paginate(f"repos/{issue.owner}/{issue.repo_name}/issues/{issue_number}/comments")
        )
        return any(c.get("body") == new_comment for c in comments)

    def open_issue(self, issue: Issue) -> str:
        """Open a new issue and return its HTML URL."""
        resp = self._call(
            "POST",
            f"repos/{issue.owner}/{issue.repo_name}/issues",
            json={"title": issue.title, "body": issue.comment},
        )
        return (_json(resp) or {}).get("html_url", "")

    def comment_issue(self, owner: str, repo: str, comment: str, number: int) -> str:
        """Add a comment to an issue and return the comment's HTML URL."""
        resp = self._call(
            "POST", f"repos/{owner}/{repo}/issues/{number}/comments", json={"body": comment}
        )
        return (_json(resp) or {}).get("html_url", "")

    def add_reaction_issue(self, issue: Issue, number: int, reaction: str) -> None:
        """Add a reaction to an issue."""
        self._call(
            "POST",
            f"repos/{issue.owner}/{issue.repo_name}/issues/{number}/reactions",
            json={"content": reaction},
        )

    def open_pull_request(self, pr: NewPullRequest) -> str:
        """Open a pull request and return its HTML URL."""
        try:
            resp = self._call(
                "POST",
                f"repos/{pr.owner}/{pr.repo_name}/pulls",
                json={
                    "title": pr.title,
                    "head": pr.branch,
                    "base": pr.pull_request_base_branch,
                    "body": pr.body,
                },
            )
        except GitHubError as e:
            raise GitHubError(f"failed opening pull request: {e}", status_code=e.status_code) from e
        return (_json(resp) or {}).get("html_url", "")

    def list_pull_requests(self, owner: str, repo: str, state: str) -> list[dict]:
        """Return all pull requests of the repository in the given state."""
        return list(self._paginate(f"repos/{owner}/{repo}/pulls", {"state": state}))

    def close_pull_request(self, owner: str, repo: str, number: int) -> None:
        """Close a pull request."""
        self._call("PATCH", f"repos/{owner}/{repo}/pulls/{number}", json={"state": "closed"})


def get_error_issue_title(bot: str, package_name: str) -> str:
    return f"{bot}/{package_name}"


def get_update_issue_title(package_name: str, version: str) -> str:
    return f"{package_name}/{version} new package update"