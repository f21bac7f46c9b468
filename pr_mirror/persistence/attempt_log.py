"""
Attempt Log — One text file per merge attempt.

Each attempt gets its own file under the logs directory:

    logs/upstream-merge-101.log
    logs/upstream-merge-101.1.log   (second attempt for the same PR)

Files are never edited or deleted by the bot; an operator reads them to
figure out why a merge failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..errors import StorageError
from ..models.pull_request import BRANCH_PREFIX, MirrorAttemptResult

logger = logging.getLogger(__name__)


class AttemptLogWriter:
    """
    Writer for per-attempt merge logs.

    Usage:
        logs = AttemptLogWriter(Path("data/logs"))
        path = logs.write(101, result)
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, pr_number: int, attempt: int = 0) -> Path:
        stem = f"{BRANCH_PREFIX}{pr_number}"
        if attempt:
            return self.directory / f"{stem}.{attempt}.log"
        return self.directory / f"{stem}.log"

    def write(self, pr_number: int, result: MirrorAttemptResult) -> Path:
        """
        Persist the captured output of one attempt.

        Returns:
            Path of the new log file.

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            attempt = 0
            while True:
                path = self.path_for(pr_number, attempt)
                try:
                    # "x" so an earlier attempt's log is never overwritten
                    with path.open("x", encoding="utf-8") as f:
                        f.write(result.render_log())
                    break
                except FileExistsError:
                    attempt += 1
        except OSError as e:
            raise StorageError(f"Failed to write merge log for PR #{pr_number}: {e}")

        logger.debug(f"Merge log written → {path}")
        return path

    def list_logs(self) -> List[Path]:
        """All attempt logs, most recently modified first."""
        if not self.directory.exists():
            return []
        logs = list(self.directory.glob(f"{BRANCH_PREFIX}*.log"))
        return sorted(logs, key=lambda p: p.stat().st_mtime, reverse=True)
