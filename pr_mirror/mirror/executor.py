"""
Mirror Executor — Run the external merge script for one pull request.

The script is invoked as ``<script> <pr_number> <title>`` inside the local
mirror checkout. It is expected to create the ``upstream-merge-<number>``
branch and merge upstream's changes into it.

A non-zero exit status is a normal outcome, not an exception: the result
carries it so the attempt can be logged and the cycle halted. The executor
never rolls back a half-created branch.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Protocol

from ..models.pull_request import MirrorAttemptResult

logger = logging.getLogger(__name__)

# Exit codes reported when the script never produced one
EXIT_NOT_RUNNABLE = 127
EXIT_TIMED_OUT = -1


class CommandRunner(Protocol):
    """Runs a command and returns the completed process."""

    def __call__(
        self, args: List[str], cwd: Path, timeout: Optional[float]
    ) -> subprocess.CompletedProcess:
        ...


def subprocess_runner(
    args: List[str], cwd: Path, timeout: Optional[float]
) -> subprocess.CompletedProcess:
    """Default runner: ``subprocess.run`` with captured text output."""
    return subprocess.run(
        args,
        cwd=str(cwd),
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
    )


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class MirrorExecutor:
    """
    Invokes the merge script and captures its output.

    Usage:
        executor = MirrorExecutor("../../merge-upstream-pull-request.sh", Path("data/repo"))
        result = executor.mirror(101, "Fix bug")
        if not result.success:
            ...
    """

    def __init__(
        self,
        script: str,
        repo_dir: Path,
        timeout: Optional[float] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.script = script
        self.repo_dir = Path(repo_dir)
        self.timeout = timeout
        self.runner = runner or subprocess_runner

    def mirror(self, pull_request_id: int, title: str) -> MirrorAttemptResult:
        """Run the merge script for one pull request. Never raises on failure."""
        args = [self.script, str(pull_request_id), title]
        logger.debug(f"Running {self.script} for PR #{pull_request_id} in {self.repo_dir}")

        start = time.time()
        try:
            proc = self.runner(args, self.repo_dir, self.timeout)
        except subprocess.TimeoutExpired as e:
            return MirrorAttemptResult(
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr) + f"\nmerge script timed out after {e.timeout}s",
                exit_code=EXIT_TIMED_OUT,
                duration_ms=int((time.time() - start) * 1000),
            )
        except (OSError, ValueError) as e:
            # ValueError: an argument subprocess cannot pass, e.g. a NUL byte in the title
            return MirrorAttemptResult(
                stderr=f"failed to run {self.script}: {e}",
                exit_code=EXIT_NOT_RUNNABLE,
                duration_ms=int((time.time() - start) * 1000),
            )

        result = MirrorAttemptResult(
            stdout=_as_text(proc.stdout),
            stderr=_as_text(proc.stderr),
            exit_code=proc.returncode,
            duration_ms=int((time.time() - start) * 1000),
        )

        if result.success:
            logger.debug(f"Merge script succeeded for PR #{pull_request_id} ({result.duration_ms}ms)")
        else:
            logger.debug(f"Merge script exited {result.exit_code} for PR #{pull_request_id}")
        return result
