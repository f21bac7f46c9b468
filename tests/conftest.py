"""
Shared fixtures for sync cycle tests.

Provides fixtures for scripted stand-ins for the upstream listing, the merge script,
and the downstream API, plus a SyncLoop wired to a temporary data dir so
a single cycle can be driven without network or git.
"""

from __future__ import annotations

import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from pr_mirror.engine.cycle import SyncLoop
from pr_mirror.errors import DownstreamApiError, UpstreamApiError
from pr_mirror.mirror.executor import MirrorExecutor
from pr_mirror.models.pull_request import PublishedPullRequest, PullRequestSummary
from pr_mirror.persistence.attempt_log import AttemptLogWriter
from pr_mirror.persistence.cursor_store import CursorStore

MERGED_AT = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


def _build_pr(
    number: int,
    merged: bool = True,
    title: Optional[str] = None,
    body: str = "",
) -> PullRequestSummary:
    """Build an upstream PR summary."""
    return PullRequestSummary(
        number=number,
        title=title or f"Change {number}",
        body=body,
        html_url=f"https://github.com/up/repo/pull/{number}",
        merged_at=MERGED_AT if merged else None,
    )


class FakeLister:
    """Yields a fixed listing (newest first) and counts what was consumed."""

    def __init__(self, prs: List[PullRequestSummary], fail_after: Optional[int] = None):
        self.prs = prs
        self.fail_after = fail_after
        self.calls: List[str] = []
        self.consumed = 0

    def list_closed_pull_requests(self, target_branch: str):
        self.calls.append(target_branch)
        for i, pr in enumerate(self.prs):
            if self.fail_after is not None and i >= self.fail_after:
                raise UpstreamApiError("connection reset", status_code=502)
            self.consumed += 1
            yield pr


class FakeRunner:
    """Stands in for the merge script; exit codes scripted per PR number."""

    def __init__(self, exit_codes: Optional[Dict[int, int]] = None):
        self.exit_codes = exit_codes or {}
        self.calls: List[List[str]] = []
        self.cwds: List[Path] = []

    def __call__(self, args, cwd, timeout):
        self.calls.append(list(args))
        self.cwds.append(cwd)
        number = int(args[1])
        code = self.exit_codes.get(number, 0)
        return subprocess.CompletedProcess(
            args=args,
            returncode=code,
            stdout=f"merging {number}\n",
            stderr="" if code == 0 else "CONFLICT (content)\n",
        )

    @property
    def attempted(self) -> List[int]:
        return [int(a[1]) for a in self.calls]


class FakePublisher:
    """Records published PRs; fails for the numbers in ``fail_for``."""

    def __init__(self, fail_for: Optional[List[int]] = None):
        self.fail_for = set(fail_for or [])
        self.published: List[tuple] = []

    def publish(self, pr: PullRequestSummary, branch_name: str) -> PublishedPullRequest:
        if pr.number in self.fail_for:
            raise DownstreamApiError("Validation Failed", status_code=422)
        self.published.append((pr.number, branch_name))
        n = len(self.published)
        return PublishedPullRequest(number=n, html_url=f"https://github.com/down/repo/pull/{n}")


@pytest.fixture
def make_pr():
    """Builder for upstream PR summaries."""
    return _build_pr


@pytest.fixture
def fake_lister():
    """Factory for scripted upstream listings."""
    return FakeLister


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def cursor_path(data_dir: Path) -> Path:
    return data_dir / "last_pr_id"


@pytest.fixture
def logs_dir(data_dir: Path) -> Path:
    return data_dir / "logs"


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def make_loop(data_dir, cursor_path, logs_dir, runner, publisher):
    """Factory: SyncLoop over a given listing and starting cursor."""

    def _make(
        prs: List[PullRequestSummary],
        cursor: int,
        lister: Optional[FakeLister] = None,
    ) -> SyncLoop:
        cursor_path.parent.mkdir(parents=True, exist_ok=True)
        cursor_path.write_text(str(cursor))
        return SyncLoop(
            cursor_store=CursorStore(cursor_path),
            lister=lister or FakeLister(prs),
            executor=MirrorExecutor("merge.sh", data_dir / "repo", runner=runner),
            publisher=publisher,
            attempt_logs=AttemptLogWriter(logs_dir),
            target_branch="master",
            poll_interval=0,
        )

    return _make
