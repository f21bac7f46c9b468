"""
Settings — Parse mirror bot configuration from environment variables.

Minimal required config:
    BOT_TOKEN=ghp_xxxxx
    UPSTREAM_OWNER=some-org
    UPSTREAM_REPO=project
    DOWNSTREAM_OWNER=our-org
    DOWNSTREAM_REPO=project-fork

On the very first run (no cursor file yet) START_PR_ID must also be set;
it becomes the initial cursor value.

Everything under DATA_DIR (default ``data``) belongs to the bot:

    data/last_pr_id        cursor file
    data/logs/             per-attempt merge logs
    data/repo/             local checkout the merge script runs in
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_BRANCH = "master"
DEFAULT_POLL_INTERVAL = 60
DEFAULT_DATA_DIR = "data"
DEFAULT_MERGE_SCRIPT = "../../merge-upstream-pull-request.sh"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_HTTP_TIMEOUT = 30.0

REQUIRED_VARS = [
    "BOT_TOKEN",
    "UPSTREAM_OWNER",
    "UPSTREAM_REPO",
    "DOWNSTREAM_OWNER",
    "DOWNSTREAM_REPO",
]


@dataclass
class Settings:
    """Everything the bot needs to run, resolved once at startup."""

    token: str
    upstream_owner: str
    upstream_repo: str
    downstream_owner: str
    downstream_repo: str
    start_pr_id: Optional[int] = None
    target_branch: str = DEFAULT_TARGET_BRANCH
    poll_interval: int = DEFAULT_POLL_INTERVAL
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    merge_script: str = DEFAULT_MERGE_SCRIPT
    merge_timeout: Optional[float] = None
    api_url: str = DEFAULT_API_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def cursor_path(self) -> Path:
        return self.data_dir / "last_pr_id"

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def repo_dir(self) -> Path:
        return self.data_dir / "repo"

    @property
    def upstream_slug(self) -> str:
        return f"{self.upstream_owner}/{self.upstream_repo}"

    @property
    def downstream_slug(self) -> str:
        return f"{self.downstream_owner}/{self.downstream_repo}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If a required variable is missing or a
                numeric variable does not parse.
        """
        env = os.environ if environ is None else environ

        missing = missing_vars(env)
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )

        settings = cls(
            token=env["BOT_TOKEN"],
            upstream_owner=env["UPSTREAM_OWNER"],
            upstream_repo=env["UPSTREAM_REPO"],
            downstream_owner=env["DOWNSTREAM_OWNER"],
            downstream_repo=env["DOWNSTREAM_REPO"],
            start_pr_id=_parse_int(env, "START_PR_ID"),
            target_branch=env.get("TARGET_BRANCH") or DEFAULT_TARGET_BRANCH,
            poll_interval=_parse_int(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            data_dir=Path(env.get("DATA_DIR") or DEFAULT_DATA_DIR),
            merge_script=env.get("MERGE_SCRIPT") or DEFAULT_MERGE_SCRIPT,
            merge_timeout=_parse_float(env, "MERGE_TIMEOUT"),
            api_url=(env.get("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/"),
            http_timeout=_parse_float(env, "GITHUB_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        )

        if settings.start_pr_id is not None and settings.start_pr_id < 0:
            raise ConfigurationError("START_PR_ID must not be negative")
        if settings.poll_interval < 0:
            raise ConfigurationError("POLL_INTERVAL must not be negative")

        logger.debug(
            f"Settings loaded: {settings.upstream_slug} → {settings.downstream_slug} "
            f"(branch={settings.target_branch}, interval={settings.poll_interval}s)"
        )
        return settings

    def to_display_dict(self) -> Dict[str, str]:
        """Settings as strings, token masked."""
        return {
            "BOT_TOKEN": _mask(self.token),
            "UPSTREAM": self.upstream_slug,
            "DOWNSTREAM": self.downstream_slug,
            "TARGET_BRANCH": self.target_branch,
            "START_PR_ID": str(self.start_pr_id) if self.start_pr_id is not None else "(unset)",
            "POLL_INTERVAL": f"{self.poll_interval}s",
            "DATA_DIR": str(self.data_dir),
            "MERGE_SCRIPT": self.merge_script,
            "MERGE_TIMEOUT": f"{self.merge_timeout}s" if self.merge_timeout else "(none)",
            "GITHUB_API_URL": self.api_url,
        }


def missing_vars(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Names of required variables that are unset or empty."""
    env = os.environ if environ is None else environ
    return [name for name in REQUIRED_VARS if not env.get(name)]


def _parse_int(env: Mapping[str, str], name: str, default: Optional[int] = None) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _parse_float(env: Mapping[str, str], name: str, default: Optional[float] = None) -> Optional[float]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}…{value[-4:]}"
