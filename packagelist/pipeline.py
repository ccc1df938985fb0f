"""Run orchestration — wires the engines together for each CLI entry point.

Two async runs:

- :func:`run_audit`: the nightly pass: redirects and 404s, then one level of
  dependency discovery, then reconcile and persist.
- :func:`validate_additions`: the pull-request check: validate URLs that are
  new relative to the upstream list and fix up the local file.

Plus the synchronous deny list / add / remove operations, which never touch
the network.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import structlog

from packagelist.core.config import Settings
from packagelist.core.storage import (
    atomic_write_text,
    dump_deny_list,
    load_deny_list,
    load_package_list,
)
from packagelist.engines.concurrency import ConcurrencyController
from packagelist.engines.deny_list import (
    add_packages,
    apply_deny_list,
    deny_urls,
    remove_packages,
    split_body,
)
from packagelist.engines.discovery import DependencyDiscovery, Failure
from packagelist.engines.github_client import GitHubClient
from packagelist.engines.manifest import ManifestDumper, ManifestFetcher
from packagelist.engines.normalizer import (
    CanonicalList,
    dedup,
    ensure_git_suffix,
    find_additions,
    normalize,
    sort_urls,
)
from packagelist.engines.reconciler import persist, reconcile
from packagelist.engines.redirect_resolver import RedirectChecker, RedirectResolver
from packagelist.engines.validator import PackageValidator, ValidatedPackage
from packagelist.errors import (
    DecodingError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
)

log = structlog.get_logger("packagelist.pipeline")

EXIT_OK = 0
EXIT_VALIDATION_FAILED = 1
EXIT_ERROR = 2


# ── report ─────────────────────────────────────────────────────────────────


@dataclass
class RunReport:
    """What one run did and what is still wrong.

    ``failures`` and ``unresolved`` decide the exit code; ``rejected`` holds
    dependency candidates that were not admitted and is informational only.
    """

    checked: int = 0
    passed: int = 0
    failures: list[Failure] = field(default_factory=list)
    rejected: list[Failure] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)
    written: bool = False

    def note(self, change: str) -> None:
        self.changes.append(change)
        log.info("pipeline.change", change=change)

    @property
    def exit_code(self) -> int:
        if self.failures or self.unresolved:
            return EXIT_VALIDATION_FAILED
        return EXIT_OK

    def render(self) -> str:
        lines = list(self.changes)
        for failure in self.rejected:
            lines.append(f"⚠️  {failure.url}: {failure.reason} (dependency skipped)")
        for failure in self.failures:
            lines.append(f"🚨 {failure.url}: {failure.reason}")
        for url in self.unresolved:
            lines.append(f"🚨 {url}: Unresolved after retries")

        failed = len(self.failures) + len(self.unresolved)
        if failed:
            lines.append(f"{failed} of {self.checked} package(s) failed validation")
        else:
            lines.append(f"{self.checked} package(s) checked, no failures")
        if self.written:
            lines.append("Package list updated")
        return "\n".join(lines)


# ── wiring ─────────────────────────────────────────────────────────────────


@dataclass
class Toolkit:
    """The network-facing components of one run, sharing one controller."""

    resolver: RedirectResolver
    github: GitHubClient
    fetcher: ManifestFetcher
    dumper: ManifestDumper
    validator: PackageValidator
    controller: ConcurrencyController


@contextlib.asynccontextmanager
async def open_toolkit(settings: Settings) -> AsyncIterator[Toolkit]:
    """Build every component from *settings* and close their clients afterwards."""
    resolver = RedirectResolver(settings)
    github = GitHubClient(settings)
    fetcher = ManifestFetcher(settings, github)
    dumper = ManifestDumper(settings)
    try:
        yield Toolkit(
            resolver=resolver,
            github=github,
            fetcher=fetcher,
            dumper=dumper,
            validator=PackageValidator(
                resolver, github, fetcher, dumper, reject_forks=settings.reject_forks
            ),
            controller=ConcurrencyController.from_settings(settings),
        )
    finally:
        await fetcher.close()
        await github.close()
        await resolver.close()


def _toolkit_context(
    settings: Settings, toolkit: Toolkit | None
) -> contextlib.AbstractAsyncContextManager[Toolkit]:
    if toolkit is not None:
        return contextlib.nullcontext(toolkit)
    return open_toolkit(settings)


# ── nightly audit ──────────────────────────────────────────────────────────


async def run_audit(
    input_path: Path,
    output_path: Path | None,
    settings: Settings,
    *,
    check_redirects: bool = True,
    check_dependencies: bool = True,
    limit: int | None = None,
    deny_list_path: Path | None = None,
    toolkit: Toolkit | None = None,
) -> RunReport:
    """Load → dedup → redirect pass → discovery → reconcile → persist.

    Writing to a different *output_path* always produces that file, even when
    nothing changed. Raises :class:`ValidatorError` only when the list itself
    cannot be loaded or saved.
    """
    output_path = output_path or input_path
    original_text, urls = load_package_list(input_path)
    report = RunReport(checked=len(urls))

    deduped = dedup(urls)
    if len(deduped) != len(urls):
        report.note(f"Removed {len(urls) - len(deduped)} duplicate URL(s)")
    canonical = CanonicalList(deduped)
    denied = deny_urls(load_deny_list(deny_list_path)) if deny_list_path else []

    async with _toolkit_context(settings, toolkit) as kit:
        if check_redirects:
            redirects = await RedirectChecker(kit.resolver, kit.controller).run(canonical)
            for url in redirects.removed:
                report.note(f"Removed {url}: repository no longer exists")
            for old, new in redirects.replaced:
                report.note(f"Replaced {old} with {new}")
            report.failures.extend(Failure(url, error) for url, error in redirects.errors)
            report.unresolved.extend(redirects.unresolved)

        if check_dependencies:
            discovery = await DependencyDiscovery(kit.validator, kit.controller).run(
                canonical, limit=limit, exclude=denied
            )
            report.passed = discovery.validated
            for url in discovery.added:
                report.note(f"Added {url}")
            report.failures.extend(discovery.failures)
            report.rejected.extend(discovery.rejected)
            report.unresolved.extend(u for u in discovery.unresolved if u not in report.unresolved)

    reconciliation = reconcile(original_text, canonical.urls)
    report.written = persist(
        output_path,
        reconciliation,
        original_text,
        force=output_path.resolve() != input_path.resolve(),
    )
    log.info(
        "pipeline.audit_done",
        checked=report.checked,
        final=len(reconciliation.urls),
        changes=len(report.changes),
        failures=len(report.failures),
        unresolved=len(report.unresolved),
        written=report.written,
    )
    return report


# ── pull-request validation ────────────────────────────────────────────────


async def fetch_package_list(
    url: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> list[str]:
    """Download a published package list (no credentials are sent)."""
    owns_client = client is None
    client = client or httpx.AsyncClient(
        timeout=settings.request_timeout,
        follow_redirects=True,
    )
    try:
        response = await client.get(url)
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(url) from exc
    except httpx.HTTPError as exc:
        raise NetworkError(url, str(exc) or type(exc).__name__) from exc
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code == 404:
        raise NotFoundError(url)
    if response.status_code >= 400:
        raise NetworkError(url, f"HTTP {response.status_code}")
    try:
        data = response.json()
    except ValueError as exc:
        raise DecodingError(url, f"Invalid JSON: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(u, str) for u in data):
        raise DecodingError(url, "Package list must be a JSON array of strings")
    return data


async def validate_additions(
    path: Path,
    settings: Settings,
    *,
    urls: Iterable[str] | None = None,
    upstream_url: str | None = None,
    toolkit: Toolkit | None = None,
) -> RunReport:
    """Validate new URLs and fix up the local list around them.

    Without explicit *urls*, the URLs to check are the local entries missing
    from the upstream list. The local file gets ``.git`` suffixes, duplicate
    removal, sorting and redirect targets applied, with a backup when it
    changes.
    """
    original_text, local = load_package_list(path)

    if urls is None:
        upstream = await fetch_package_list(upstream_url or settings.upstream_list_url, settings)
        targets = find_additions(local, upstream)
        log.info("pipeline.additions", local=len(local), upstream=len(upstream), new=len(targets))
    else:
        targets = list(urls)

    report = RunReport()
    working = [ensure_git_suffix(u) for u in local]
    for before, after in zip(local, working):
        if before != after:
            report.note(f"Added .git suffix to {before}")
    deduped = dedup(working)
    if len(deduped) != len(working):
        report.note(f"Removed {len(working) - len(deduped)} duplicate URL(s)")
    elif sort_urls(working) != working:
        report.note("Sorted package list")
    canonical = CanonicalList(deduped)

    targets = dedup([ensure_git_suffix(u) for u in targets])
    report.checked = len(targets)
    if not targets:
        log.info("pipeline.nothing_to_validate", path=str(path))

    async with _toolkit_context(settings, toolkit) as kit:

        async def _validate(url: str) -> ValidatedPackage:
            return await kit.validator.validate(url)

        units = await kit.controller.gather(targets, _validate)

    for unit in units:
        if unit.ok and unit.value is not None:
            report.passed += 1
            new_url = unit.value.canonical_url
            if normalize(new_url) != normalize(unit.item) and await canonical.replace(
                unit.item, new_url
            ):
                report.note(f"Found {unit.item} but this redirected to {new_url}")
        elif unit.unresolved:
            report.unresolved.append(unit.item)
        else:
            assert unit.error is not None
            report.failures.append(Failure(unit.item, unit.error))

    reconciliation = reconcile(original_text, canonical.urls)
    report.written = persist(path, reconciliation, original_text)
    log.info(
        "pipeline.validate_done",
        checked=report.checked,
        passed=report.passed,
        failures=len(report.failures),
        unresolved=len(report.unresolved),
        written=report.written,
    )
    return report


# ── deny list / add / remove ───────────────────────────────────────────────


def _save(path: Path, urls: list[str], original_text: str) -> bool:
    return persist(path, reconcile(original_text, urls), original_text)


def run_add_packages(path: Path, body: str, deny_list_path: Path) -> list[str]:
    """Add the URLs in *body* to the list at *path*; returns the added URLs."""
    original_text, urls = load_package_list(path)
    denied = deny_urls(load_deny_list(deny_list_path))
    result = add_packages(urls, split_body(body), denied)
    _save(path, result.urls, original_text)
    kept = {normalize(u) for u in result.urls}
    return [u for u in result.added if normalize(u) in kept]


def run_remove_packages(path: Path, body: str, deny_list_path: Path, notes: str) -> list[str]:
    """Remove the URLs in *body* and record them on the deny list."""
    original_text, urls = load_package_list(path)
    entries = load_deny_list(deny_list_path)
    result = remove_packages(urls, split_body(body), entries, notes)
    _save(path, result.urls, original_text)
    if len(result.deny_entries) != len(entries):
        atomic_write_text(deny_list_path, dump_deny_list(result.deny_entries))
    return result.removed


def run_apply_deny_list(path: Path, deny_list_path: Path) -> int:
    """Drop every denied URL from the list; returns how many were removed."""
    original_text, urls = load_package_list(path)
    kept = apply_deny_list(urls, deny_urls(load_deny_list(deny_list_path)))
    _save(path, kept, original_text)
    return len(urls) - len(kept)
