"""
Tests for the GitHub REST client, upstream lister and downstream publisher.

All HTTP traffic goes through httpx.MockTransport; nothing leaves the
process.
"""

import json

import httpx
import pytest

from pr_mirror.errors import ApiError, DownstreamApiError, UpstreamApiError
from pr_mirror.mirror.github_client import GitHubClient
from pr_mirror.mirror.lister import UpstreamLister
from pr_mirror.mirror.publisher import DownstreamPublisher, mirror_body, mirror_title

API = "https://api.github.com"


def pr_json(number: int, merged: bool = True, title="Change", body="text"):
    return {
        "id": 900000 + number,
        "number": number,
        "title": title,
        "body": body,
        "html_url": f"https://github.com/up/repo/pull/{number}",
        "merged_at": "2026-02-01T12:00:00Z" if merged else None,
        "state": "closed",
    }


class Recorder:
    """MockTransport handler that replays canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(recorder) -> GitHubClient:
    return GitHubClient("ghp_test", api_url=API, transport=httpx.MockTransport(recorder))


class TestGitHubClient:

    def test_sends_auth_headers(self):
        rec = Recorder(httpx.Response(200, json=[]))
        with make_client(rec) as gh:
            list(gh.iter_pulls("up", "repo"))

        headers = rec.requests[0].headers
        assert headers["Authorization"] == "Bearer ghp_test"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"

    def test_follows_link_header(self):
        next_url = f"{API}/repos/up/repo/pulls?state=closed&page=2"
        rec = Recorder(
            httpx.Response(200, json=[pr_json(3), pr_json(2)], headers={"Link": f'<{next_url}>; rel="next"'}),
            httpx.Response(200, json=[pr_json(1)]),
        )
        gh = make_client(rec)

        numbers = [p["number"] for p in gh.iter_pulls("up", "repo")]

        assert numbers == [3, 2, 1]
        assert str(rec.requests[1].url) == next_url

    def test_next_page_fetched_lazily(self):
        next_url = f"{API}/repos/up/repo/pulls?page=2"
        rec = Recorder(
            httpx.Response(200, json=[pr_json(3), pr_json(2)], headers={"Link": f'<{next_url}>; rel="next"'}),
            httpx.Response(200, json=[pr_json(1)]),
        )
        gh = make_client(rec)

        pulls = gh.iter_pulls("up", "repo")
        next(pulls)
        next(pulls)

        assert len(rec.requests) == 1

    def test_http_error_raises_given_class(self):
        rec = Recorder(httpx.Response(401, json={"message": "Bad credentials"}))
        gh = make_client(rec)

        with pytest.raises(UpstreamApiError) as exc:
            list(gh.iter_pulls("up", "repo", error_cls=UpstreamApiError))

        assert exc.value.status_code == 401
        assert "Bad credentials" in str(exc.value)

    def test_transport_error(self):
        rec = Recorder(httpx.ConnectError("connection refused"))
        gh = make_client(rec)

        with pytest.raises(ApiError) as exc:
            list(gh.iter_pulls("up", "repo"))

        assert exc.value.status_code is None

    def test_non_list_payload(self):
        rec = Recorder(httpx.Response(200, json={"message": "weird"}))
        gh = make_client(rec)

        with pytest.raises(ApiError):
            list(gh.iter_pulls("up", "repo"))

    def test_invalid_json(self):
        rec = Recorder(httpx.Response(200, content=b"<html>"))
        gh = make_client(rec)

        with pytest.raises(ApiError):
            list(gh.iter_pulls("up", "repo"))

    def test_validation_errors_in_message(self):
        rec = Recorder(httpx.Response(422, json={
            "message": "Validation Failed",
            "errors": [{"resource": "PullRequest", "field": "head", "code": "invalid"}],
        }))
        gh = make_client(rec)

        with pytest.raises(ApiError) as exc:
            gh.create_pull("down", "repo", "t", "upstream-merge-1", "master")

        assert "Validation Failed (invalid)" in str(exc.value)


class TestUpstreamLister:

    def test_query_parameters(self):
        rec = Recorder(httpx.Response(200, json=[]))
        lister = UpstreamLister(make_client(rec), "up", "repo", per_page=50)

        list(lister.list_closed_pull_requests("master"))

        request = rec.requests[0]
        assert request.url.path == "/repos/up/repo/pulls"
        params = request.url.params
        assert params["state"] == "closed"
        assert params["base"] == "master"
        assert params["sort"] == "created"
        assert params["direction"] == "desc"
        assert params["per_page"] == "50"

    def test_yields_summaries(self):
        rec = Recorder(httpx.Response(200, json=[
            pr_json(102, merged=False),
            pr_json(101, title="Fix bug", body=None),
        ]))
        lister = UpstreamLister(make_client(rec), "up", "repo")

        prs = list(lister.list_closed_pull_requests("master"))

        assert [p.number for p in prs] == [102, 101]
        assert not prs[0].is_merged
        assert prs[1].is_merged
        assert prs[1].title == "Fix bug"
        assert prs[1].body == ""

    def test_each_call_starts_over(self):
        rec = Recorder(
            httpx.Response(200, json=[pr_json(5)]),
            httpx.Response(200, json=[pr_json(5)]),
        )
        lister = UpstreamLister(make_client(rec), "up", "repo")

        list(lister.list_closed_pull_requests("master"))
        list(lister.list_closed_pull_requests("master"))

        assert [r.url.path for r in rec.requests] == ["/repos/up/repo/pulls"] * 2

    def test_failure_on_later_page(self):
        next_url = f"{API}/repos/up/repo/pulls?page=2"
        rec = Recorder(
            httpx.Response(200, json=[pr_json(3)], headers={"Link": f'<{next_url}>; rel="next"'}),
            httpx.Response(502, text="Bad Gateway"),
        )
        lister = UpstreamLister(make_client(rec), "up", "repo")

        with pytest.raises(UpstreamApiError):
            list(lister.list_closed_pull_requests("master"))

    def test_malformed_item(self):
        rec = Recorder(httpx.Response(200, json=[{"title": "no number"}]))
        lister = UpstreamLister(make_client(rec), "up", "repo")

        with pytest.raises(UpstreamApiError):
            list(lister.list_closed_pull_requests("master"))


class TestDownstreamPublisher:

    def test_title_and_body(self, make_pr):
        pr = make_pr(101, title="Fix bug", body="details")

        assert mirror_title(pr) == "[MIRROR] Fix bug"
        assert mirror_body(pr) == (
            "Original PR: https://github.com/up/repo/pull/101\n--------------------\ndetails"
        )

    def test_empty_body(self, make_pr):
        pr = make_pr(7, body="")

        assert mirror_body(pr) == "Original PR: https://github.com/up/repo/pull/7\n--------------------\n"

    def test_publish_request(self, make_pr):
        rec = Recorder(httpx.Response(201, json={
            "number": 55,
            "html_url": "https://github.com/down/repo/pull/55",
        }))
        publisher = DownstreamPublisher(make_client(rec), "down", "repo", "master")

        published = publisher.publish(make_pr(101, title="Fix bug", body="details"), "upstream-merge-101")

        request = rec.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/repos/down/repo/pulls"
        assert json.loads(request.content) == {
            "title": "[MIRROR] Fix bug",
            "head": "upstream-merge-101",
            "base": "master",
            "body": "Original PR: https://github.com/up/repo/pull/101\n--------------------\ndetails",
        }
        assert published.number == 55

    def test_missing_branch_is_downstream_error(self, make_pr):
        rec = Recorder(httpx.Response(422, json={"message": "Validation Failed"}))
        publisher = DownstreamPublisher(make_client(rec), "down", "repo", "master")

        with pytest.raises(DownstreamApiError) as exc:
            publisher.publish(make_pr(3), "upstream-merge-3")

        assert exc.value.status_code == 422

    def test_unexpected_response(self, make_pr):
        rec = Recorder(httpx.Response(201, json={"id": 1}))
        publisher = DownstreamPublisher(make_client(rec), "down", "repo", "master")

        with pytest.raises(DownstreamApiError):
            publisher.publish(make_pr(3), "upstream-merge-3")
