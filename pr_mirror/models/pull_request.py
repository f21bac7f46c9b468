"""
Pull Request Models — Pydantic schemas for mirrored pull requests.

``PullRequestSummary`` is the subset of an upstream pull request the bot
needs. ``MirrorAttemptResult`` is what the merge script reports back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict

UNKNOWN_TITLE = "Unknown"
BRANCH_PREFIX = "upstream-merge-"


def branch_name_for(number: int) -> str:
    """Branch the merge script creates for an upstream pull request."""
    return f"{BRANCH_PREFIX}{number}"


class PullRequestSummary(BaseModel):
    """An upstream pull request, as fetched. Immutable."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str = UNKNOWN_TITLE
    body: str = ""
    html_url: str
    merged_at: Optional[datetime] = None

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @property
    def branch_name(self) -> str:
        return branch_name_for(self.number)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PullRequestSummary":
        """Build from a GitHub REST pull request object."""
        merged_at = data.get("merged_at")
        return cls(
            number=data["number"],
            title=data.get("title") or UNKNOWN_TITLE,
            body=data.get("body") or "",
            html_url=data["html_url"],
            merged_at=date_parser.isoparse(merged_at) if merged_at else None,
        )


class MirrorAttemptResult(BaseModel):
    """Captured outcome of one merge script invocation."""

    model_config = ConfigDict(frozen=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def render_log(self) -> str:
        """Text written to the per-attempt log artifact."""
        return f"stdout:\n{self.stdout}\n\nstderr:\n{self.stderr}"


class PublishedPullRequest(BaseModel):
    """The downstream pull request created for a mirrored one."""

    number: int
    html_url: str
