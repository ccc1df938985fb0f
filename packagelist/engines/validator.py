"""PackageValidator — the per-URL verification pipeline."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog

from packagelist.engines.github_client import GitHubClient, RepositoryMetadata
from packagelist.engines.manifest.dumper import ManifestDumper
from packagelist.engines.manifest.fetcher import ManifestFetcher
from packagelist.engines.manifest.models import PackageManifest
from packagelist.engines.normalizer.urls import ensure_git_suffix, parse_github_url
from packagelist.engines.redirect_resolver.resolver import RedirectResolver
from packagelist.errors import (
    IsForkError,
    NetworkError,
    NotFoundError,
    RateLimitExceededError,
    RequestTimeoutError,
)

log = structlog.get_logger("packagelist.engine")


@dataclass
class ValidatedPackage:
    """A URL that passed every stage of validation."""

    url: str
    canonical_url: str
    metadata: RepositoryMetadata
    manifest: PackageManifest


class PackageValidator:
    """resolve redirects → metadata → fetch manifest → dump → checks.

    Any stage's error propagates unchanged; there is no partial pass.
    """

    def __init__(
        self,
        resolver: RedirectResolver,
        github: GitHubClient,
        fetcher: ManifestFetcher,
        dumper: ManifestDumper,
        *,
        reject_forks: bool = False,
    ) -> None:
        self._resolver = resolver
        self._github = github
        self._fetcher = fetcher
        self._dumper = dumper
        self._reject_forks = reject_forks

    async def validate(self, url: str, *, reject_forks: bool | None = None) -> ValidatedPackage:
        reject = self._reject_forks if reject_forks is None else reject_forks

        # 1. Redirects
        outcome = await self._resolver.resolve(url)
        if outcome.kind == "not_found":
            raise NotFoundError(url)
        if outcome.kind == "rate_limited":
            raise RateLimitExceededError(url, outcome.limit)
        if outcome.kind == "timeout":
            raise RequestTimeoutError(url)
        if outcome.kind == "network_failure":
            raise NetworkError(url, f"Network Error: {outcome.detail}")
        current = outcome.url if outcome.kind == "redirected" and outcome.url else url

        # 2. Metadata
        owner, repo = parse_github_url(current)
        metadata = await self._github.get_metadata(owner, repo)

        # 3. Manifest fetch + dump
        with tempfile.TemporaryDirectory(prefix="packagelist-") as tmpdir:
            directory = await self._fetcher.fetch(
                owner, repo, metadata.default_branch, Path(tmpdir)
            )
            manifest = await self._dumper.dump(directory, url)

        # 4. Admission checks (products are enforced by the dumper)
        if reject and metadata.is_fork:
            raise IsForkError(url)

        canonical_url = ensure_git_suffix(metadata.canonical_url)
        log.debug(
            "validator.passed",
            url=url,
            canonical_url=canonical_url,
            products=len(manifest.products),
            dependencies=len(manifest.dependencies),
        )
        return ValidatedPackage(
            url=url,
            canonical_url=canonical_url,
            metadata=metadata,
            manifest=manifest,
        )
