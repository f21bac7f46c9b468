"""
GitHub Client — Minimal REST client for listing and creating pull requests.

Only the two calls the bot needs are implemented. Listing is lazy: pages
are fetched by following the ``Link: rel="next"`` header, and the next
page is only requested once the caller has consumed the current one.

Errors surface as ``ApiError`` (or the subclass passed as ``error_cls``)
so callers can tell upstream failures from downstream ones.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional, Type

import httpx

from ..errors import ApiError

logger = logging.getLogger(__name__)

USER_AGENT = "pr-mirror/1.0"


def _get_headers(token: str) -> Dict[str, str]:
    """Get GitHub API headers."""
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": "2022-11-28",
    }


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    message = data.get("message", "") if isinstance(data, dict) else ""
    errors = data.get("errors") if isinstance(data, dict) else None
    if errors:
        details = "; ".join(
            e.get("message") or e.get("code", "") if isinstance(e, dict) else str(e)
            for e in errors
        )
        return f"{message} ({details})"
    return message or resp.reason_phrase


def _json(resp: httpx.Response, error_cls: Type[ApiError]) -> Any:
    try:
        return resp.json()
    except ValueError:
        raise error_cls(
            f"Invalid JSON from {resp.request.method} {resp.request.url}",
            status_code=resp.status_code,
        )


class GitHubClient:
    """
    Thin wrapper over ``httpx.Client`` for the pulls API.

    Usage:
        with GitHubClient(token) as gh:
            for pr in gh.iter_pulls("owner", "repo", state="closed"):
                ...
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.api_url,
            headers=_get_headers(token),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        error_cls: Type[ApiError],
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"{method} {url} failed: {e}")

        if resp.status_code >= 400:
            raise error_cls(
                f"{method} {url}: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        return resp

    def iter_pulls(
        self,
        owner: str,
        repo: str,
        state: str = "closed",
        base: Optional[str] = None,
        sort: str = "created",
        direction: str = "desc",
        per_page: int = 100,
        error_cls: Type[ApiError] = ApiError,
    ) -> Iterator[Dict[str, Any]]:
        """
        Yield raw pull request objects page by page.

        Raises:
            ApiError: (or ``error_cls``) on transport failure, a non-2xx
                response, or a payload that is not a list.
        """
        params: Optional[Dict[str, Any]] = {
            "state": state,
            "sort": sort,
            "direction": direction,
            "per_page": per_page,
        }
        if base:
            params["base"] = base

        url: Optional[str] = f"/repos/{owner}/{repo}/pulls"
        page = 0
        while url:
            page += 1
            resp = self._request("GET", url, error_cls, params=params)
            items = _json(resp, error_cls)
            if not isinstance(items, list):
                raise error_cls(f"Unexpected payload listing pulls for {owner}/{repo}")

            logger.debug(f"Fetched page {page} of {owner}/{repo} pulls ({len(items)} items)")
            yield from items

            url = resp.links.get("next", {}).get("url")
            params = None  # already embedded in the next URL

    def create_pull(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str = "",
        error_cls: Type[ApiError] = ApiError,
    ) -> Dict[str, Any]:
        """
        Open a pull request and return the created object.

        Raises:
            ApiError: (or ``error_cls``) on transport failure or rejection,
                e.g. HTTP 422 when ``head`` does not exist.
        """
        resp = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            error_cls,
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return _json(resp, error_cls)
