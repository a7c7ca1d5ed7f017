import json
import time

import pytest
import responses

from wolfictl.github import (
    GitHubClient,
    GitHubError,
    GitOptions,
    Issue,
    NewPullRequest,
    get_error_issue_title,
    get_update_issue_title,
)

BASE = "https://api.example.com/"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _options(sleeps=None):
    client = GitHubClient(base_url=BASE, token="token")
    return GitOptions(
        github_client=client,
        max_retries=3,
        sleep=(sleeps.append if sleeps is not None else (lambda _: None)),
    )


def _issue(**kwargs):
    defaults = dict(owner="cheese", repo_name="crisps", package_name="foo-package")
    defaults.update(kwargs)
    return Issue(**defaults)


ISSUES = [
    {"number": 1, "title": "wolfi-bot/foo-package"},
    {"number": 2, "title": "wolfi-bot/bar-package"},
]


def test_check_existing_issue(mocked):
    mocked.add(responses.GET, f"{BASE}repos/cheese/crisps/issues", json=ISSUES, status=200)
    issue = _issue(title=get_error_issue_title("wolfi-bot", "foo-package"))
    assert _options().check_existing_issue(issue) == 1
    assert "state=open" in mocked.calls[0].request.url


def test_check_existing_issue_ignores_case(mocked):
    mocked.add(responses.GET, f"{BASE}repos/cheese/crisps/issues", json=ISSUES, status=200)
    assert _options().check_existing_issue(_issue(title="WOLFI-BOT/BAR-PACKAGE")) == 2


def test_check_existing_issue_not_found(mocked):
    mocked.add(responses.GET, f"{BASE}repos/cheese/crisps/issues", json=ISSUES, status=200)
    assert _options().check_existing_issue(_issue(title="wolfi-bot/other")) == 0


def test_open_issue(mocked):
    mocked.add(
        responses.POST,
        f"{BASE}repos/cheese/crisps/issues",
        json={
            "number": 1,
            "title": "wolfi-bot/foo-package",
            "html_url": "https://github.com/cheese/crisps/issues/1",
        },
        status=201,
    )
    issue = _issue(
        comment="This is a test issue",
        title=get_error_issue_title("wolfi-bot", "foo-package"),
    )
    assert _options().open_issue(issue) == "https://github.com/cheese/crisps/issues/1"
    sent = json.loads(mocked.calls[0].request.body)
    assert sent == {"title": "wolfi-bot/foo-package", "body": "This is a test issue"}
    assert mocked.calls[0].request.headers["Authorization"] == "Bearer token"


def test_list_issues_follows_pages(mocked):
    url = f"{BASE}repos/o/r/issues"
    mocked.add(
        responses.GET,
        url,
        json=[{"number": 1}],
        headers={"Link": f'<{url}?state=all&page=2>; rel="next"'},
    )
    mocked.add(responses.GET, url, json=[{"number": 2}])
    issues = _options().list_issues("o", "r", "all")
    assert [i["number"] for i in issues] == [1, 2]
    assert len(mocked.calls) == 2
    assert "page=2" in mocked.calls[1].request.url


def test_has_existing_comment(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}repos/cheese/crisps/issues/7/comments",
        json=[{"body": "first"}, {"body": "second"}],
    )
    opts = _options()
    assert opts.has_existing_comment(_issue(), 7, "second") is True
    assert opts.has_existing_comment(_issue(), 7, "third") is False


def test_comment_issue(mocked):
    mocked.add(
        responses.POST,
        f"{BASE}repos/o/r/issues/3/comments",
        json={"html_url": "https://example.com/comment/1"},
        status=201,
    )
    assert _options().comment_issue("o", "r", "hello", 3) == "https://example.com/comment/1"
    assert json.loads(mocked.calls[0].request.body) == {"body": "hello"}


def test_add_reaction_issue(mocked):
    mocked.add(responses.POST, f"{BASE}repos/cheese/crisps/issues/4/reactions", json={}, status=201)
    result = _options().add_reaction_issue(_issue(), 4, "+1")
    assert result is None
    assert len(mocked.calls) == 1
    assert json.loads(mocked.calls[0].request.body) == {"content": "+1"}


def test_add_reaction_issue_error(mocked):
    mocked.add(
        responses.POST,
        f"{BASE}repos/cheese/crisps/issues/4/reactions",
        json={"message": "Not Found"},
        status=404,
    )
    with pytest.raises(GitHubError) as info:
        _options().add_reaction_issue(_issue(), 4, "+1")
    assert info.value.status_code == 404


def test_unauthorized_raises(mocked):
    mocked.add(responses.GET, f"{BASE}repos/o/r/pulls", json={"message": "Bad credentials"}, status=401)
    with pytest.raises(GitHubError, match="failed to auth with GitHub") as info:
        _options().list_pull_requests("o", "r", "open")
    assert info.value.status_code == 401


def test_other_error_is_not_retried(mocked):
    mocked.add(responses.POST, f"{BASE}repos/o/r/issues", json={"message": "Not Found"}, status=404)
    sleeps = []
    with pytest.raises(GitHubError) as info:
        _options(sleeps).open_issue(_issue(owner="o", repo_name="r"))
    assert info.value.status_code == 404
    assert sleeps == []


def test_primary_rate_limit_waits_until_reset(mocked):
    reset = int(time.time()) + 100
    url = f"{BASE}repos/o/r/issues"
    mocked.add(
        responses.POST,
        url,
        json={"message": "API rate limit exceeded"},
        status=403,
        headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset)},
    )
    mocked.add(responses.POST, url, json={"html_url": "https://example.com/i/1"}, status=201)
    sleeps = []
    assert _options(sleeps).open_issue(_issue(owner="o", repo_name="r")) == "https://example.com/i/1"
    assert len(sleeps) == 1
    assert 90 < sleeps[0] <= 100


def test_secondary_rate_limit_uses_retry_after(mocked):
    url = f"{BASE}repos/o/r/pulls/5"
    mocked.add(
        responses.PATCH,
        url,
        json={
            "message": "You have exceeded a secondary rate limit",
            "documentation_url": "https://docs.example.com/rest#secondary-rate-limits",
        },
        status=403,
        headers={"Retry-After": "7"},
    )
    mocked.add(responses.PATCH, url, json={"state": "closed"}, status=200)
    sleeps = []
    _options(sleeps).close_pull_request("o", "r", 5)
    assert sleeps == [7.0]
    assert json.loads(mocked.calls[1].request.body) == {"state": "closed"}


def test_secondary_rate_limit_default_delay(mocked):
    url = f"{BASE}repos/o/r/pulls/5"
    mocked.add(
        responses.PATCH,
        url,
        json={"documentation_url": "https://docs.example.com/rest#abuse-rate-limits"},
        status=403,
    )
    mocked.add(responses.PATCH, url, json={}, status=200)
    sleeps = []
    _options(sleeps).close_pull_request("o", "r", 5)
    assert sleeps == [30.0]


def test_open_pull_request(mocked):
    mocked.add(
        responses.POST,
        f"{BASE}repos/o/r/pulls",
        json={"html_url": "https://example.com/pull/9"},
        status=201,
    )
    pr = NewPullRequest(
        owner="o", repo_name="r", branch="feature", pull_request_base_branch="main",
        title="Update", body="details",
    )
    assert _options().open_pull_request(pr) == "https://example.com/pull/9"
    assert json.loads(mocked.calls[0].request.body) == {
        "title": "Update", "head": "feature", "base": "main", "body": "details",
    }


def test_open_pull_request_error_is_wrapped(mocked):
    mocked.add(responses.POST, f"{BASE}repos/o/r/pulls", json={"message": "Validation Failed"}, status=422)
    with pytest.raises(GitHubError, match="failed opening pull request"):
        _options().open_pull_request(NewPullRequest(owner="o", repo_name="r"))


def test_list_pull_requests_sends_state(mocked):
    mocked.add(responses.GET, f"{BASE}repos/o/r/pulls", json=[{"number": 3}, {"number": 4}])
    prs = _options().list_pull_requests("o", "r", "closed")
    assert [p["number"] for p in prs] == [3, 4]
    assert "state=closed" in mocked.calls[0].request.url
    assert "per_page=30" in mocked.calls[0].request.url


def test_issue_titles():
    assert get_error_issue_title("wolfi-bot", "foo-package") == "wolfi-bot/foo-package"
    assert get_update_issue_title("foo", "1.2.3") == "foo/1.2.3 new package update"