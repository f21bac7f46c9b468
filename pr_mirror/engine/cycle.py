"""
Sync Cycle — The core polling loop.

A cycle is the atomic unit of execution. Each cycle:
1. Loads the cursor (last mirrored upstream PR number)
2. Lists closed upstream PRs newest-first, stopping at the cursor
3. Drops repeats and sorts them so the oldest is mirrored first
4. For each merged PR: runs the merge script, writes its log,
   opens the downstream PR, then advances the cursor
5. Returns a result; the loop then sleeps for the poll interval

## Design Principles

- **Ordering**: PRs are mirrored in creation order; the first failure
  halts the cycle so nothing is mirrored out of order
- **Commit last**: the cursor only moves after the downstream PR exists
- **Recoverable by default**: API and merge failures end the cycle and
  are retried next cycle from the same cursor
- **Fatal on storage**: if the cursor cannot be saved the loop stops,
  since retrying would publish the same PR twice

The listing is assumed to be sorted by creation time and PR numbers to
grow with creation time. Discovery stops at the first PR at or below the
cursor; an out-of-order listing could hide older unmirrored PRs.
Items above the cursor are de-duplicated and mirrored in number order
even if the listing returns them shuffled.

## Cycle ID Format

    C-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: C-20260204T221903-92929A

## Usage

    from pr_mirror.engine.cycle import SyncLoop

    loop = SyncLoop(cursor_store, lister, executor, publisher, attempt_logs,
                    target_branch="master", poll_interval=60)
    result = loop.run_cycle()     # exactly one cycle
    loop.run_forever()            # cycle, sleep, repeat
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

from ..errors import (
    ConfigurationError,
    DownstreamApiError,
    StorageError,
    UpstreamApiError,
)
from ..mirror.executor import MirrorExecutor
from ..mirror.lister import UpstreamLister
from ..mirror.publisher import DownstreamPublisher
from ..models.pull_request import PullRequestSummary
from ..persistence.attempt_log import AttemptLogWriter
from ..persistence.cursor_store import CursorStore

logger = logging.getLogger(__name__)

# Why a cycle stopped before working through all pending PRs
HALT_UPSTREAM_ERROR = "upstream_error"
HALT_MERGE_FAILED = "merge_failed"
HALT_LOG_FAILED = "log_write_failed"
HALT_PUBLISH_FAILED = "publish_failed"
HALT_CURSOR_FAILED = "cursor_write_failed"


@dataclass
class CycleResult:
    """Result of one polling cycle."""

    cycle_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0

    # Cursor
    cursor_before: int = 0
    cursor_after: int = 0

    # PR numbers, in processing order
    discovered: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    mirrored: List[int] = field(default_factory=list)
    failed: Optional[int] = None

    # Logs written this cycle
    log_paths: List[Path] = field(default_factory=list)

    # Errors
    halt_reason: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def halted(self) -> bool:
        return self.halt_reason is not None

    @property
    def cursor_advanced(self) -> bool:
        return self.cursor_after > self.cursor_before


def generate_cycle_id() -> str:
    """Generate a unique cycle ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    suffix = uuid4().hex[:6].upper()
    return f"C-{ts}-{suffix}"


class SyncLoop:
    """
    Mirrors merged upstream PRs downstream, one cycle at a time.

    All collaborators are injected so tests can drive a single cycle
    with fakes and no network or git checkout.
    """

    def __init__(
        self,
        cursor_store: CursorStore,
        lister: UpstreamLister,
        executor: MirrorExecutor,
        publisher: DownstreamPublisher,
        attempt_logs: AttemptLogWriter,
        target_branch: str = "master",
        poll_interval: float = 60,
        stop_event: Optional[threading.Event] = None,
    ):
        self.cursor_store = cursor_store
        self.lister = lister
        self.executor = executor
        self.publisher = publisher
        self.attempt_logs = attempt_logs
        self.target_branch = target_branch
        self.poll_interval = poll_interval
        self._stop = stop_event or threading.Event()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """
        Execute one polling cycle.

        Returns:
            CycleResult describing what was mirrored and why the cycle
            halted, if it did.

        Raises:
            ConfigurationError: No cursor file and no seed.
            StorageError: The cursor could not be read or saved.
        """
        start_time = time.time()
        cycle_id = generate_cycle_id()
        ctx = {"cycle_id": cycle_id}

        result = CycleResult(
            cycle_id=cycle_id,
            started_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

        # --- Phase 1: Load cursor ---
        cursor = self.cursor_store.load()
        result.cursor_before = cursor
        result.cursor_after = cursor

        logger.info(f"Start check (cycle {cycle_id}, cursor #{cursor})", extra=ctx)

        # --- Phase 2: Discover pending (oldest first) ---
        logger.debug("Collect PRs to process", extra=ctx)
        try:
            pending = self._discover(cursor)
        except UpstreamApiError as e:
            logger.warning(f"Upstream listing failed, retrying next cycle: {e}", extra=ctx)
            result.halt_reason = HALT_UPSTREAM_ERROR
            result.errors.append(str(e))
            return self._finish(result, start_time)

        result.discovered = [pr.number for pr in pending]
        logger.debug(f"Found {len(pending)} PR(s) pending mirror", extra=ctx)

        # --- Phase 3: Apply sequentially ---
        for pr in pending:
            if not self._apply(pr, result, ctx):
                break

        return self._finish(result, start_time)

    def _discover(self, cursor: int) -> List[PullRequestSummary]:
        pending: Dict[int, PullRequestSummary] = {}
        for pr in self.lister.list_closed_pull_requests(self.target_branch):
            if pr.number <= cursor:
                break
            # Pages can shift between requests and repeat an item
            if pr.number in pending:
                logger.debug(f"PR #{pr.number} listed twice, ignoring repeat")
                continue
            pending[pr.number] = pr
        return sorted(pending.values(), key=lambda pr: pr.number)

    def _apply(self, pr: PullRequestSummary, result: CycleResult, ctx: dict) -> bool:
        """Mirror one PR. Returns False if the cycle must stop here."""
        item_ctx = dict(ctx, pr_id=pr.number)
        logger.debug(f"Check PR #{pr.number} ({pr.html_url})", extra=item_ctx)

        if not pr.is_merged:
            logger.debug(f"PR #{pr.number} not merged, skip", extra=item_ctx)
            result.skipped.append(pr.number)
            return True

        logger.info(f"Mirroring PR #{pr.number}: {pr.title}", extra=item_ctx)

        # Merge branch
        attempt = self.executor.mirror(pr.number, pr.title)

        # Log, regardless of outcome
        try:
            log_path = self.attempt_logs.write(pr.number, attempt)
        except StorageError as e:
            logger.error(f"Could not write merge log for PR #{pr.number}: {e}", extra=item_ctx)
            result.failed = pr.number
            result.halt_reason = HALT_LOG_FAILED
            result.errors.append(str(e))
            return False
        result.log_paths.append(log_path)

        if not attempt.success:
            logger.warning(
                f"Merge failed for PR #{pr.number} (exit {attempt.exit_code}), "
                f"halting cycle; see {log_path}",
                extra=item_ctx,
            )
            result.failed = pr.number
            result.halt_reason = HALT_MERGE_FAILED
            result.errors.append(f"PR #{pr.number}: merge script exited {attempt.exit_code}")
            return False

        # Downstream PR
        logger.debug("Create downstream PR", extra=item_ctx)
        try:
            published = self.publisher.publish(pr, pr.branch_name)
        except DownstreamApiError as e:
            logger.warning(
                f"Could not open downstream PR for #{pr.number}, halting cycle: {e}",
                extra=item_ctx,
            )
            result.failed = pr.number
            result.halt_reason = HALT_PUBLISH_FAILED
            result.errors.append(f"PR #{pr.number}: {e}")
            return False

        # Commit
        logger.debug("Advance cursor", extra=item_ctx)
        try:
            self.cursor_store.advance(pr.number)
        except StorageError as e:
            logger.critical(
                f"Opened {published.html_url} but could not save cursor #{pr.number}: {e}. "
                f"Restarting now would mirror PR #{pr.number} again.",
                extra=item_ctx,
            )
            result.failed = pr.number
            result.halt_reason = HALT_CURSOR_FAILED
            result.errors.append(str(e))
            raise

        result.cursor_after = pr.number
        result.mirrored.append(pr.number)
        logger.info(f"  ✓ PR #{pr.number} → {published.html_url}", extra=item_ctx)
        return True

    def _finish(self, result: CycleResult, start_time: float) -> CycleResult:
        result.duration_ms = int((time.time() - start_time) * 1000)
        result.ended_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        cursor_str = (
            f"#{result.cursor_before} → #{result.cursor_after}"
            if result.cursor_advanced
            else f"#{result.cursor_after}"
        )
        logger.info(
            f"Cycle {result.cycle_id} complete "
            f"[{result.duration_ms}ms, cursor {cursor_str}, "
            f"mirrored={len(result.mirrored)}, skipped={len(result.skipped)}"
            + (f", halted={result.halt_reason}" if result.halted else "")
            + "]",
            extra={"cycle_id": result.cycle_id, "cursor": result.cursor_after},
        )
        return result

    # ------------------------------------------------------------------
    # Loop runner
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle or sleep."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """
        Run cycles until stopped, sleeping ``poll_interval`` between them.

        Per-cycle failures are logged and retried next cycle.
        Configuration and storage errors propagate and end the loop.

        Returns:
            Number of cycles run.
        """
        logger.info(f"Sync loop started (every {self.poll_interval}s)")
        cycles = 0
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except (ConfigurationError, StorageError):
                raise
            except Exception:
                logger.exception("Cycle error (will retry)")

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            logger.info(f"Sleep {self.poll_interval}s...")
            self._stop.wait(timeout=self.poll_interval)

        logger.info(f"Sync loop stopped after {cycles} cycle(s)")
        return cycles
