"""RedirectChecker — apply redirect/404 results to the canonical list."""

from __future__ import annotations

import structlog

from packagelist.engines.concurrency import ConcurrencyController
from packagelist.engines.normalizer.canonical import CanonicalList
from packagelist.engines.normalizer.urls import ensure_git_suffix
from packagelist.engines.redirect_resolver.models import RedirectReport, ValidationOutcome
from packagelist.engines.redirect_resolver.resolver import RedirectResolver
from packagelist.errors import (
    NetworkError,
    RateLimitExceededError,
    RequestTimeoutError,
    RetryExhaustedError,
)

log = structlog.get_logger("packagelist.engine")


class RedirectChecker:
    """One pass of redirect resolution over every URL in the list.

    404s are removed, redirects are replaced by the target (with ``.git``),
    everything else is left in place and reported.
    """

    def __init__(self, resolver: RedirectResolver, controller: ConcurrencyController) -> None:
        self._resolver = resolver
        self._controller = controller

    async def run(self, canonical: CanonicalList) -> RedirectReport:
        report = RedirectReport()
        urls = canonical.urls
        report.checked = len(urls)

        results = await self._controller.gather(urls, self._probe)

        for unit in results:
            url = unit.item
            if isinstance(unit.error, RetryExhaustedError):
                report.unresolved.append(url)
                continue
            if unit.error is not None:
                report.errors.append((url, unit.error))
                continue

            outcome = unit.value
            assert outcome is not None
            if outcome.kind == "not_found":
                if await canonical.remove(url):
                    report.removed.append(url)
                    log.info("redirects.removed", url=url, reason="404")
                else:
                    log.error("redirects.remove_failed", url=url)
            elif outcome.kind == "redirected" and outcome.url:
                new_url = ensure_git_suffix(outcome.url)
                if await canonical.replace(url, new_url):
                    report.replaced.append((url, new_url))
                    log.info("redirects.replaced", url=url, new_url=new_url)
                else:
                    log.error("redirects.replace_failed", url=url, new_url=new_url)
            elif outcome.kind == "network_failure":
                report.errors.append((url, NetworkError(url, f"Network Error: {outcome.detail}")))

        removed_dupes = await canonical.deduplicate()
        if removed_dupes:
            log.info("redirects.duplicates_removed", count=removed_dupes)

        log.info(
            "redirects.done",
            checked=report.checked,
            removed=len(report.removed),
            replaced=len(report.replaced),
            unresolved=len(report.unresolved),
            errors=len(report.errors),
        )
        return report

    async def _probe(self, url: str) -> ValidationOutcome:
        """Resolve *url*, raising on the outcomes the controller may retry."""
        outcome = await self._resolver.resolve(url)
        if outcome.kind == "rate_limited":
            raise RateLimitExceededError(url, outcome.limit)
        if outcome.kind == "timeout":
            raise RequestTimeoutError(url)
        return outcome
