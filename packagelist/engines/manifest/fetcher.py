"""ManifestFetcher — download a package's manifest files into a work dir."""

from __future__ import annotations

import re
import uuid
from pathlib import Path

import httpx
import structlog

from packagelist.core.config import Settings
from packagelist.engines.github_client import GitHubClient
from packagelist.errors import (
    FileSystemError,
    NetworkError,
    NoDataError,
    NotFoundError,
    RateLimitExceededError,
    RequestTimeoutError,
    ValidatorError,
)

log = structlog.get_logger("packagelist.engine")

PRIMARY_MANIFEST = "Package.swift"

# Version-specific manifests, e.g. Package@swift-5.9.swift
_VARIANT_RE = re.compile(r"^Package@swift-\d+(?:\.\d+){0,2}\.swift$")


class ManifestFetcher:
    """Fetches the primary manifest and its version-suffixed variants.

    Raw files are fetched without credentials; the root tree listing goes
    through the authenticated :class:`GitHubClient`.
    """

    def __init__(
        self,
        settings: Settings,
        github: GitHubClient,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._raw_base = settings.raw_base.rstrip("/")
        self._github = github
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.request_timeout,
            follow_redirects=True,
            headers={"User-Agent": "packagelist-validator/1.0"},
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def manifest_url(self, owner: str, repo: str, branch: str, filename: str) -> str:
        return f"{self._raw_base}/{owner}/{repo}/{branch}/{filename}"

    async def fetch(self, owner: str, repo: str, branch: str, workdir: Path) -> Path:
        """Download manifests into a fresh directory under *workdir*.

        The caller owns *workdir* and its cleanup (e.g. via
        ``tempfile.TemporaryDirectory``).
        """
        filenames = await self._manifest_files(owner, repo, branch)
        target = workdir / f"manifest-{uuid.uuid4().hex[:8]}"
        try:
            target.mkdir(parents=True)
        except OSError as exc:
            raise FileSystemError(str(target), str(exc)) from exc

        for filename in filenames:
            url = self.manifest_url(owner, repo, branch, filename)
            try:
                content = await self._download(url)
            except NotFoundError:
                if filename == PRIMARY_MANIFEST:
                    raise
                log.info("fetcher.variant_missing", url=url)
                continue
            try:
                (target / filename).write_bytes(content)
            except OSError as exc:
                raise FileSystemError(url, str(exc)) from exc

        log.debug("fetcher.fetched", owner=owner, repo=repo, files=filenames)
        return target

    # ── internal ───────────────────────────────────────────────────────────

    async def _manifest_files(self, owner: str, repo: str, branch: str) -> list[str]:
        try:
            root = await self._github.list_root_files(owner, repo, branch)
        except RateLimitExceededError:
            raise
        except ValidatorError as exc:
            # Tree listing is only an optimization: fall back to the primary file.
            log.info("fetcher.tree_unavailable", owner=owner, repo=repo, reason=exc.reason)
            return [PRIMARY_MANIFEST]

        if PRIMARY_MANIFEST not in root:
            raise NotFoundError(
                self.manifest_url(owner, repo, branch, PRIMARY_MANIFEST),
                f"No {PRIMARY_MANIFEST} at repository root",
            )
        variants = sorted(p for p in root if _VARIANT_RE.match(p))
        return [PRIMARY_MANIFEST, *variants]

    async def _download(self, url: str) -> bytes:
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(url) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(url, str(exc) or type(exc).__name__) from exc

        if response.status_code == 404:
            raise NotFoundError(url)
        if response.status_code == 429:
            raise RateLimitExceededError(url)
        if response.status_code >= 400:
            raise NetworkError(url, f"HTTP {response.status_code}")
        if not response.content:
            raise NoDataError(url)
        return response.content
