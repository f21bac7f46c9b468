"""
Cursor Store — Plain-text persistence of the last mirrored PR number.

The cursor file holds a single integer and nothing else. It is the only
durable state the bot keeps; everything else is re-derived from the API.

Writes are atomic (write to temp, fsync, then rename), so a crash leaves
either the old or the new value on disk.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


class CursorStore:
    """
    Load and advance the mirror cursor.

    Usage:
        store = CursorStore(Path("data/last_pr_id"), seed=1200)
        cursor = store.load()
        ...
        store.advance(1201)
    """

    def __init__(self, path: Path, seed: Optional[int] = None):
        self.path = Path(path)
        self.seed = seed

    @property
    def _temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def peek(self) -> Optional[int]:
        """
        Read the persisted cursor without seeding.

        Returns:
            The stored value, or None if no cursor file exists yet.

        Raises:
            StorageError: If the file exists but cannot be read or parsed.
        """
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise StorageError(f"Cannot read cursor file {self.path}: {e}")

        try:
            value = int(raw)
        except ValueError:
            raise StorageError(
                f"Cursor file {self.path} does not contain an integer",
                details={"content": raw[:64]},
            )
        if value < 0:
            raise StorageError(f"Cursor file {self.path} holds a negative value: {value}")
        return value

    def load(self) -> int:
        """
        Return the persisted cursor, seeding it on first run.

        Raises:
            ConfigurationError: If there is no cursor file and no seed.
            StorageError: If the cursor file is unreadable or the seed
                cannot be written.
        """
        value = self.peek()
        if value is not None:
            logger.debug(f"Cursor loaded: {value}")
            return value

        if self.seed is None:
            raise ConfigurationError(
                f"No cursor at {self.path}; set START_PR_ID to initialize mirroring"
            )

        logger.info(f"No cursor found, seeding with {self.seed}")
        self._write(self.seed)
        return self.seed

    def advance(self, new_value: int) -> None:
        """
        Durably replace the cursor with ``new_value``.

        Raises:
            StorageError: On I/O failure, or if ``new_value`` would move
                the cursor backwards. The old value stays on disk.
        """
        current = self.peek()
        if current is not None and new_value < current:
            raise StorageError(
                f"Refusing to move cursor backwards: {current} → {new_value}"
            )

        self._write(new_value)
        logger.debug(f"Cursor advanced: {current} → {new_value}")

    def _write(self, value: int) -> None:
        temp_path = self._temp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as f:
                f.write(str(value))
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Could not remove {temp_path}")
            raise StorageError(f"Failed to persist cursor {value} to {self.path}: {e}")
