"""Tests for the redirect check pass over the canonical list."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from packagelist.engines.concurrency import ConcurrencyController
from packagelist.engines.normalizer import CanonicalList
from packagelist.engines.redirect_resolver import RedirectChecker, ValidationOutcome
from packagelist.errors import NetworkError


def _checker(outcomes: dict[str, ValidationOutcome], **controller_kwargs) -> RedirectChecker:
    resolver = AsyncMock()
    resolver.resolve.side_effect = lambda url: outcomes.get(url, ValidationOutcome.unchanged())
    return RedirectChecker(resolver, ConcurrencyController(pool_size=4, **controller_kwargs))


class TestRedirectChecker:
    @pytest.mark.anyio
    async def test_redirect_replaces_and_preserves_length(self):
        canonical = CanonicalList(
            ["https://github.com/a/a.git", "https://github.com/old/name.git", "https://github.com/z/z.git"]
        )
        checker = _checker(
            {"https://github.com/old/name.git": ValidationOutcome.redirected("https://github.com/new/name")}
        )
        report = await checker.run(canonical)
        assert len(canonical) == 3
        assert "https://github.com/new/name.git" in canonical.urls
        assert "https://github.com/old/name.git" not in canonical
        assert report.replaced == [("https://github.com/old/name.git", "https://github.com/new/name.git")]

    @pytest.mark.anyio
    async def test_not_found_removes(self):
        canonical = CanonicalList(["https://github.com/a/a.git", "https://github.com/gone/x.git"])
        checker = _checker({"https://github.com/gone/x.git": ValidationOutcome.not_found()})
        report = await checker.run(canonical)
        assert canonical.urls == ["https://github.com/a/a.git"]
        assert report.removed == ["https://github.com/gone/x.git"]
        assert report.checked == 2

    @pytest.mark.anyio
    async def test_unchanged_list_untouched(self):
        urls = ["https://github.com/a/a.git", "https://github.com/b/b.git"]
        canonical = CanonicalList(urls)
        report = await _checker({}).run(canonical)
        assert canonical.urls == urls
        assert not report.removed and not report.replaced and not report.errors

    @pytest.mark.anyio
    async def test_redirect_onto_listed_package_collapses(self):
        canonical = CanonicalList(["https://github.com/new/name.git", "https://github.com/old/name.git"])
        checker = _checker(
            {"https://github.com/old/name.git": ValidationOutcome.redirected("https://github.com/New/Name")}
        )
        await checker.run(canonical)
        assert canonical.urls == ["https://github.com/new/name.git"]

    @pytest.mark.anyio
    async def test_rate_limited_is_retried_then_unresolved(self):
        canonical = CanonicalList(["https://github.com/a/a.git", "https://github.com/b/b.git"])
        checker = _checker(
            {"https://github.com/b/b.git": ValidationOutcome.rate_limited(60)}, retry_limit=3
        )
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            report = await checker.run(canonical)
        assert report.unresolved == ["https://github.com/b/b.git"]
        assert mock_sleep.await_count == 2
        # Unresolved URLs stay in the list.
        assert len(canonical) == 2

    @pytest.mark.anyio
    async def test_network_failure_reported(self):
        canonical = CanonicalList(["https://github.com/a/a.git"])
        checker = _checker(
            {"https://github.com/a/a.git": ValidationOutcome.network_failure("connection reset")}
        )
        report = await checker.run(canonical)
        [(url, error)] = report.errors
        assert url == "https://github.com/a/a.git"
        assert isinstance(error, NetworkError)
        assert "connection reset" in error.reason
        assert len(canonical) == 1
