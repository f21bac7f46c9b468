"""
Downstream Publisher — Open the mirror pull request downstream.

Title and body are derived from the upstream pull request:

    [MIRROR] <original title>

    Original PR: <original url>
    --------------------
    <original body>

There is no check for an existing downstream pull request on the same
branch. If the bot dies after publishing but before the cursor is saved,
the next cycle publishes a duplicate.
"""

from __future__ import annotations

import logging

from ..errors import DownstreamApiError
from ..models.pull_request import PublishedPullRequest, PullRequestSummary
from .github_client import GitHubClient

logger = logging.getLogger(__name__)

TITLE_PREFIX = "[MIRROR] "
BODY_SEPARATOR = "\n--------------------\n"


def mirror_title(pr: PullRequestSummary) -> str:
    return f"{TITLE_PREFIX}{pr.title}"


def mirror_body(pr: PullRequestSummary) -> str:
    return f"Original PR: {pr.html_url}{BODY_SEPARATOR}{pr.body}"


class DownstreamPublisher:
    """Creates pull requests on the downstream repository."""

    def __init__(self, client: GitHubClient, owner: str, repo: str, target_branch: str):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.target_branch = target_branch

    def publish(self, pr: PullRequestSummary, branch_name: str) -> PublishedPullRequest:
        """
        Open ``branch_name`` → target branch as a mirror of ``pr``.

        Raises:
            DownstreamApiError: On transport/auth failure, or if the API
                rejects the request (e.g. the branch does not exist).
        """
        data = self.client.create_pull(
            self.owner,
            self.repo,
            title=mirror_title(pr),
            head=branch_name,
            base=self.target_branch,
            body=mirror_body(pr),
            error_cls=DownstreamApiError,
        )

        try:
            published = PublishedPullRequest(number=data["number"], html_url=data["html_url"])
        except (KeyError, TypeError, ValueError) as e:
            raise DownstreamApiError(f"Unexpected response creating mirror of PR #{pr.number}: {e}")

        logger.debug(f"Created {self.owner}/{self.repo}#{published.number} for PR #{pr.number}")
        return published
