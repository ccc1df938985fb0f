"""Async GitHub API client for repository metadata and root file listings."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from packagelist.core.config import Settings
from packagelist.errors import (
    DecodingError,
    NetworkError,
    NotFoundError,
    RateLimitExceededError,
    RequestTimeoutError,
)

log = structlog.get_logger("packagelist.engine")


@dataclass(frozen=True)
class RepositoryMetadata:
    """The subset of ``GET /repos/{owner}/{repo}`` the validator needs."""

    default_branch: str
    is_fork: bool
    canonical_url: str
    star_count: int | None = None


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Authenticates with ``settings.github_token`` when one is configured; the
    token is only ever sent to the API host. Errors are raised as typed
    :mod:`packagelist.errors` exceptions and never retried here.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "packagelist-validator/1.0",
        }
        if settings.github_token:
            headers["Authorization"] = f"Bearer {settings.github_token}"
        else:
            log.warning(
                "github.anonymous",
                detail="no GITHUB_TOKEN set, using anonymous access with a low rate limit",
            )
        self.authenticated = bool(settings.github_token)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_base,
            headers=headers,
            timeout=settings.request_timeout,
            # Renamed repositories answer with a 301 to the new location.
            follow_redirects=True,
        )
        if client is not None:
            self._client.headers.update(headers)

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_metadata(self, owner: str, repo: str) -> RepositoryMetadata:
        """Default branch, fork flag, canonical URL and stars of a repository."""
        path = f"/repos/{owner}/{repo}"
        data = await self.get(path)
        try:
            return RepositoryMetadata(
                default_branch=str(data["default_branch"]),
                is_fork=bool(data.get("fork", False)),
                canonical_url=str(data.get("html_url") or f"https://github.com/{owner}/{repo}"),
                star_count=data.get("stargazers_count"),
            )
        except (KeyError, TypeError) as exc:
            raise DecodingError(path, f"Unexpected repository payload: {exc}") from exc

    async def list_root_files(self, owner: str, repo: str, branch: str) -> list[str]:
        """Paths of the blobs at the root of *branch* (non-recursive tree)."""
        path = f"/repos/{owner}/{repo}/git/trees/{branch}"
        data = await self.get(path)
        try:
            return [
                entry["path"]
                for entry in data["tree"]
                if entry.get("type") == "blob" and "/" not in entry["path"]
            ]
        except (KeyError, TypeError) as exc:
            raise DecodingError(path, f"Unexpected tree payload: {exc}") from exc

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Single-resource GET, returns parsed JSON or raises a typed error."""
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(path) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(path, str(exc) or type(exc).__name__) from exc

        self._raise_for_status(path, response)
        try:
            data = response.json()
        except ValueError as exc:
            raise DecodingError(path, f"Invalid JSON from API: {exc}") from exc
        if not isinstance(data, dict):
            raise DecodingError(path, "Expected a JSON object from the API")
        return data

    # ── internal ───────────────────────────────────────────────────────────

    def _raise_for_status(self, path: str, response: httpx.Response) -> None:
        """Translate status codes and rate-limit headers into errors.

        ``X-RateLimit-Remaining: 0`` is a hard stop even on a 200.
        """
        if response.status_code == 404:
            raise NotFoundError(path)

        if response.status_code == 429 or self._is_rate_limited(response):
            limit = self._parse_header_int(response.headers.get("X-RateLimit-Limit"))
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit", path=path, limit=limit, wait_seconds=wait)
            raise RateLimitExceededError(path, limit=limit, retry_after=wait)

        if response.status_code >= 400:
            raise NetworkError(path, f"HTTP {response.status_code} from API")

    @classmethod
    def _is_rate_limited(cls, response: httpx.Response) -> bool:
        remaining = cls._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None:
            return remaining == 0
        # GitHub also uses Retry-After for abuse rate limits
        return response.status_code == 403 and "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        # Prefer Retry-After (used for abuse/secondary rate limits)
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        # Fall back to X-RateLimit-Reset timestamp
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None
