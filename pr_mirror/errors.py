"""
Errors — Exception hierarchy for the mirror bot.

Fatal errors (configuration, storage) stop the process. API errors are
per-cycle: the cycle is abandoned and retried after the poll interval.

A failed merge is not an exception at all; it is reported through
``MirrorAttemptResult.success`` so the attempt can still be logged.

## Usage

    from pr_mirror.errors import UpstreamApiError

    try:
        prs = list(lister.list_closed_pull_requests("master"))
    except UpstreamApiError as e:
        logger.warning(f"Upstream unavailable: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class MirrorError(Exception):
    """Base class for all mirror bot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(MirrorError):
    """Raised when configuration is missing or invalid. Fatal at startup."""
    pass


class StorageError(MirrorError):
    """Raised when the cursor cannot be read or durably written."""
    pass


class ApiError(MirrorError):
    """Raised when a call to the source-control API fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class UpstreamApiError(ApiError):
    """Listing pull requests on the upstream repository failed."""
    pass


class DownstreamApiError(ApiError):
    """Creating the pull request on the downstream repository failed."""
    pass
