"""Creation of tagged GitHub releases with semantic version bumping."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import requests

from .git import GitError, create_tag, get_remote_url, get_version_from_tag, push_tag
from .github import GitHubClient, GitHubError
from .ratelimit import RateLimiter
from .version import Version

DEFAULT_START_VERSION = "v0.0.0"
_REQUEST_INTERVAL_SECONDS = 3.0


class _RateLimitedSession(requests.Session):
    """A session that waits on a RateLimiter before every request."""

    def __init__(self, limiter: RateLimiter) -> None:
        super().__init__()
        self.limiter = limiter

    def request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        self.limiter.wait()
        return super().request(method, url, *args, **kwargs)


@dataclass
class ReleaseOptions:
    """Settings for creating the next release of a repository."""

    github_client: GitHubClient = field(default_factory=GitHubClient)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("wolfictl.gh.release")
    )
    bump_major: bool = False
    bump_minor: bool = False
    bump_patch: bool = False
    bump_prerelease_with_prefix: str = ""
    dir: str = "."

    def release(self) -> None:
        """Tag the next version, push the tag and create the GitHub release."""
        try:
            current = get_version_from_tag(self.dir, 1)
        except GitError:
            current = Version(DEFAULT_START_VERSION)

        self.logger.info("current latest version tag is %s", current.original)

        try:
            nxt = self.bump_release_version(current)
        except ValueError as e:
            raise ValueError(f"failed to bump current version {current.original}: {e}") from e

        try:
            create_tag(self.dir, nxt.original)
        except GitError as e:
            raise GitError(f"failed to create tag {nxt.original}: {e}") from e

        push_tag(self.dir, nxt.original)
        self._create_github_release(nxt.original)

        print(f"::set-output name=new_version::{nxt.original}")

    def bump_release_version(self, current: Version) -> Version:
        """Return the version that follows ``current`` under the configured bumps."""
        prefix = "v" if current.original.startswith("v") else ""
        major, minor, patch = current.segments[0], current.segments[1], current.segments[2]

        if self.bump_major:
            major += 1
        if self.bump_minor:
            minor += 1
        if self.bump_patch:
            patch += 1

        new_prerelease = ""
        pre_prefix = self.bump_prerelease_with_prefix
        if pre_prefix:
            prerelease = current.prerelease
            if not prerelease:
                new_prerelease = f"{pre_prefix}1"
                # a new prerelease must sort after the current release
                if not self.bump_patch:
                    patch += 1
            else:
                number = int(prerelease.removeprefix(pre_prefix))
                new_prerelease = f"{pre_prefix}{number + 1}"

        # apk only orders 1.2.3rc2 after 1.2.3rc1 without a dash
        return Version(f"{prefix}{major}.{minor}.{patch}{new_prerelease}")

    def _create_github_release(self, tag: str) -> None:
        try:
            remote = get_remote_url(self.dir)
        except GitError as e:
            raise GitError(f"failed to find git origin URL: {e}") from e

        resp = self.github_client.request(
            "POST",
            f"repos/{remote.organisation}/{remote.name}/releases",
            json={"name": tag, "tag_name": tag},
        )
        self.logger.info("successfully created new release %s", resp.json().get("html_url", ""))

    def get_release_url(self, owner: str, repo_name: str, tag: str) -> str:
        """Return the HTML URL of the release for ``tag``."""
        try:
            resp = self.github_client.request(
                "GET", f"repos/{owner}/{repo_name}/releases/tags/{tag}"
            )
        except GitHubError as e:
            raise GitHubError(
                f"failed to get github release for {owner}/{repo_name} tag {tag}: {e}",
                status_code=e.status_code,
            ) from e
        return resp.json()["html_url"]


def new_release_options() -> ReleaseOptions:
    """Return options using GITHUB_TOKEN and one request every three seconds."""
    session = _RateLimitedSession(RateLimiter(_REQUEST_INTERVAL_SECONDS, 1))
    client = GitHubClient(token=os.environ.get("GITHUB_TOKEN", ""), session=session)
    return ReleaseOptions(
        github_client=client,
        logger=logging.getLogger("wolfictl.gh.release"),
    )