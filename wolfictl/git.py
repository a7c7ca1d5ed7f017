"""Git repository helpers built on the git command line."""

from __future__ import annotations

import base64
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlsplit

from .stringhelpers import regexp_split
from .version import InvalidVersionError, Version, sort_versions

_AUTH_USERNAME = "abc123"


class GitError(RuntimeError):
    """Raised when a git operation fails."""


@dataclass
class GitURL:
    """The parts of a git remote URL."""

    scheme: str = ""
    host: str = ""
    organisation: str = ""
    name: str = ""
    raw_url: str = ""


@dataclass(frozen=True)
class Signature:
    """Identity used when creating tags."""

    name: str
    email: str
    when: datetime


def _git(args: list[str], cwd: str, error: str, env: dict[str, str] | None = None) -> str:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            env=env,
            check=False,
        )
    except OSError as e:
        raise GitError(f"{error}: {e}") from e
    if proc.returncode != 0:
        detail = proc.stderr.strip() or proc.stdout.strip()
        raise GitError(f"{error}: {detail}")
    return proc.stdout


def get_git_auth() -> tuple[str, str]:
    """Return the basic-auth username and token used for pushing."""
    return _AUTH_USERNAME, os.environ.get("GITHUB_TOKEN", "")


def parse_git_url(raw_url: str) -> GitURL:
    """Split a git remote URL into host, organisation and repository name."""
    raw_url = raw_url.removesuffix(".git")

    if raw_url.startswith("git@"):
        t = raw_url[len("git@"):]
        t = t.removeprefix("/").removeprefix("/").removesuffix("/")
        parts = regexp_split(t, ":|/")
        if len(parts) >= 3:
            host, org, name = parts[0], parts[1], parts[-1]
            return GitURL(
                scheme="git",
                host=host,
                organisation=org,
                name=name,
                raw_url=f"https://{host}/{org}/{name}.git",
            )

    try:
        parsed = urlsplit(raw_url)
    except ValueError as e:
        raise GitError(f"failed to parse git url {raw_url}: {e}") from e
    parts = parsed.path.split("/")
    if len(parts) < 3:
        raise GitError(f"failed to parse git url {raw_url}: missing organisation or name")
    return GitURL(
        scheme=parsed.scheme,
        host=parsed.netloc,
        organisation=parts[1],
        name=parts[2],
        raw_url=raw_url,
    )


def get_remote_url(directory: str) -> GitURL:
    """Return the parsed URL of the ``origin`` remote of the repository."""
    out = _git(
        ["remote", "get-url", "--all", "origin"],
        directory,
        "failed to find git origin URL",
    )
    urls = out.split()
    if not urls:
        raise GitError("no remote config URLs found for remote origin")
    return parse_git_url(urls[0])


def get_git_author_signature() -> Signature | None:
    """Return a signature from GIT_AUTHOR_NAME and GIT_AUTHOR_EMAIL, if both are set."""
    name = os.environ.get("GIT_AUTHOR_NAME", "")
    email = os.environ.get("GIT_AUTHOR_EMAIL", "")
    if name and email:
        return Signature(name=name, email=email, when=datetime.now(timezone.utc))
    return None


def set_git_sign_options(repo_path: str) -> None:
    """Configure the repository to sign commits with gitsign."""
    for key, value in (
        ("commit.gpgsign", "true"),
        ("gpg.x509.program", "gitsign"),
        ("gpg.format", "x509"),
    ):
        _git(["config", "--local", key, value], repo_path, f"failed to set git config {key}")

    name = os.environ.get("GIT_AUTHOR_NAME", "")
    email = os.environ.get("GIT_AUTHOR_EMAIL", "")
    if not name or not email:
        raise GitError(
            "missing GIT_AUTHOR_NAME and/or GIT_AUTHOR_EMAIL environment variable, please set"
        )

    _git(["config", "--local", "user.name", name], repo_path, "failed to set git config user.name")
    _git(["config", "--local", "user.email", email], repo_path, "failed to set git config user.email")


def create_tag(directory: str, tag: str) -> None:
    """Create an annotated tag named ``tag`` at HEAD."""
    head = _git(["rev-parse", "--verify", "HEAD"], directory, "unable to resolve HEAD").strip()
    env = dict(os.environ)
    signature = get_git_author_signature()
    if signature is not None:
        env["GIT_COMMITTER_NAME"] = signature.name
        env["GIT_COMMITTER_EMAIL"] = signature.email
        env["GIT_COMMITTER_DATE"] = signature.when.isoformat()
    _git(
        ["-c", "tag.gpgSign=false", "tag", "-a", "-m", tag, tag, head],
        directory,
        f"failed to create tag {tag}",
        env,
    )


def push_tag(directory: str, tag_name: str) -> None:
    """Push ``tag_name`` to the origin repository over HTTPS with token auth."""
    remote = get_remote_url(directory)
    remote_url = f"https://github.com/{remote.organisation}/{remote.name}.git"

    username, token = get_git_auth()
    credentials = base64.b64encode(f"{username}:{token}".encode()).decode()
    env = dict(os.environ)
    env["GIT_CONFIG_COUNT"] = "1"
    env["GIT_CONFIG_KEY_0"] = "http.extraHeader"
    env["GIT_CONFIG_VALUE_0"] = f"Authorization: Basic {credentials}"

    refspec = f"refs/tags/{tag_name}:refs/tags/{tag_name}"
    _git(["push", remote_url, refspec], directory, "failed to push tag", env)


def get_version_from_tag(directory: str, index: int) -> Version:
    """Return the tag version at position ``index`` counting from the newest (1)."""
    out = _git(
        ["tag", "--list", "--sort=refname"],
        directory,
        f"unable to list tags in {directory}",
    )
    versions = []
    for name in out.split():
        try:
            versions.append(Version(name))
        except InvalidVersionError as e:
            raise GitError(f"failed to create new version from tag {name}: {e}") from e

    versions = sort_versions(versions)
    size = len(versions)
    if size == 0:
        raise GitError(f"no tags found in dir {directory}")
    if index > size:
        raise GitError(f"index is outside of number of tags {size}")
    return versions[size - index]