"""DependencyDiscovery — grow the list by one level of declared dependencies."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from packagelist.engines.concurrency import ConcurrencyController
from packagelist.engines.discovery.models import DiscoveryResult, Failure
from packagelist.engines.normalizer.canonical import CanonicalList
from packagelist.engines.normalizer.urls import ensure_git_suffix, normalize, sort_urls
from packagelist.engines.validator import PackageValidator, ValidatedPackage

log = structlog.get_logger("packagelist.engine")


class DependencyDiscovery:
    """Validate every member, then validate and admit their unknown dependencies.

    A single level: packages admitted in this pass are not expanded again.
    A rejected candidate is not retried beyond the controller's ceiling.
    """

    def __init__(self, validator: PackageValidator, controller: ConcurrencyController) -> None:
        self._validator = validator
        self._controller = controller

    async def run(
        self,
        canonical: CanonicalList,
        *,
        limit: int | None = None,
        exclude: Iterable[str] = (),
    ) -> DiscoveryResult:
        """Run discovery against *canonical*, mutating it in place.

        *limit* caps how many new candidates are validated in this pass;
        *exclude* holds URLs (e.g. the deny list) that must never be admitted.
        """
        result = DiscoveryResult()
        excluded = {normalize(u) for u in exclude}

        # ── Validate existing members ────────────────────────────────────
        members = canonical.urls
        log.info("discovery.validating_members", count=len(members))
        units = await self._controller.gather(members, self._validate_member)

        declared: list[str] = []
        for unit in units:
            if unit.ok and unit.value is not None:
                result.validated += 1
                declared.extend(unit.value.manifest.dependency_urls)
            elif unit.unresolved:
                result.unresolved.append(unit.item)
            else:
                assert unit.error is not None
                failure = Failure(unit.item, unit.error)
                result.failures.append(failure)
                log.warning("discovery.member_failed", url=unit.item, reason=failure.reason)

        # ── Filter to novel dependencies ─────────────────────────────────
        known = canonical.keys() | excluded
        candidates: list[str] = []
        for dep_url in declared:
            key = normalize(dep_url)
            if key in known:
                continue
            known.add(key)
            candidates.append(ensure_git_suffix(dep_url))
        candidates = sort_urls(candidates)

        if limit is not None and len(candidates) > limit:
            log.info("discovery.limited", found=len(candidates), limit=limit)
            candidates = candidates[:limit]
        result.candidates = candidates
        log.info("discovery.candidates", count=len(candidates))

        # ── Validate and admit candidates ────────────────────────────────
        admissions = await self._controller.gather(candidates, self._validate_candidate)
        for unit in admissions:
            if unit.ok and unit.value is not None:
                new_url = unit.value.canonical_url
                if normalize(new_url) in excluded:
                    log.info("discovery.denied", url=unit.item, canonical_url=new_url)
                    continue
                if await canonical.append(new_url):
                    result.added.append(new_url)
                    log.info("discovery.added", url=new_url, via=unit.item)
                else:
                    log.info("discovery.already_listed", url=new_url, via=unit.item)
            elif unit.unresolved:
                result.unresolved.append(unit.item)
            else:
                assert unit.error is not None
                failure = Failure(unit.item, unit.error)
                result.rejected.append(failure)
                log.warning("discovery.candidate_rejected", url=unit.item, reason=failure.reason)

        log.info(
            "discovery.done",
            validated=result.validated,
            candidates=len(result.candidates),
            added=len(result.added),
            rejected=len(result.rejected),
            failures=len(result.failures),
            unresolved=len(result.unresolved),
        )
        return result

    async def _validate_member(self, url: str) -> ValidatedPackage:
        return await self._validator.validate(url, reject_forks=False)

    async def _validate_candidate(self, url: str) -> ValidatedPackage:
        return await self._validator.validate(url, reject_forks=True)
