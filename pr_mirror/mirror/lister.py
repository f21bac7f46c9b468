"""
Upstream Lister — Closed upstream pull requests, newest first.
"""

from __future__ import annotations

import logging
from typing import Iterator

from pydantic import ValidationError

from ..errors import UpstreamApiError
from ..models.pull_request import PullRequestSummary
from .github_client import GitHubClient

logger = logging.getLogger(__name__)


class UpstreamLister:
    """
    Lists closed pull requests on the upstream repository.

    Every call starts a fresh listing; nothing is cached between polling
    cycles. The result is lazy, so a caller that stops early never
    requests the remaining pages.
    """

    def __init__(self, client: GitHubClient, owner: str, repo: str, per_page: int = 100):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.per_page = per_page

    def list_closed_pull_requests(self, target_branch: str) -> Iterator[PullRequestSummary]:
        """
        Yield closed pull requests into ``target_branch``, by creation time descending.

        Raises:
            UpstreamApiError: On transport/auth failure or a malformed item.
        """
        raw_items = self.client.iter_pulls(
            self.owner,
            self.repo,
            state="closed",
            base=target_branch,
            sort="created",
            direction="desc",
            per_page=self.per_page,
            error_cls=UpstreamApiError,
        )
        for raw in raw_items:
            try:
                yield PullRequestSummary.from_api(raw)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                raise UpstreamApiError(
                    f"Malformed pull request in {self.owner}/{self.repo} listing: {e}"
                )
