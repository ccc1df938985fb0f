"""Tests for the redirect resolver (httpx.MockTransport, no network)."""

from __future__ import annotations

import httpx
import pytest

from packagelist.engines.redirect_resolver import RedirectResolver, ValidationOutcome


def _resolver(settings, handler) -> RedirectResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return RedirectResolver(settings, client=client)


def _static(status: int, **kwargs):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, **kwargs)

    return handler


def _redirects(routes: dict[str, httpx.Response]):
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(request.url.path, httpx.Response(200))

    return handler


class TestResolve:
    @pytest.mark.anyio
    async def test_unchanged(self, settings):
        resolver = _resolver(settings, lambda request: httpx.Response(200))
        outcome = await resolver.resolve("https://github.com/o/r.git")
        assert outcome == ValidationOutcome.unchanged()

    @pytest.mark.anyio
    async def test_probes_human_url(self, settings):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200)

        await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert seen == ["https://github.com/o/r"]

    @pytest.mark.anyio
    async def test_no_credentials_sent(self, settings):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert "authorization" not in seen[0].headers

    @pytest.mark.anyio
    async def test_redirected(self, settings):
        handler = _redirects(
            {"/old/repo": httpx.Response(301, headers={"Location": "https://github.com/new/repo"})}
        )
        outcome = await _resolver(settings, handler).resolve("https://github.com/old/repo.git")
        assert outcome.kind == "redirected"
        assert outcome.url == "https://github.com/new/repo"

    @pytest.mark.anyio
    async def test_cosmetic_redirect_is_unchanged(self, settings):
        handler = _redirects(
            {"/owner/repo": httpx.Response(301, headers={"Location": "https://github.com/Owner/Repo"})}
        )
        outcome = await _resolver(settings, handler).resolve("https://github.com/owner/repo.git")
        assert outcome.kind == "unchanged"

    @pytest.mark.anyio
    async def test_404_anywhere_in_chain(self, settings):
        handler = _redirects(
            {
                "/old/repo": httpx.Response(301, headers={"Location": "https://github.com/gone/repo"}),
                "/gone/repo": httpx.Response(404),
            }
        )
        outcome = await _resolver(settings, handler).resolve("https://github.com/old/repo.git")
        assert outcome.kind == "not_found"

    @pytest.mark.anyio
    async def test_429_is_rate_limited(self, settings):
        handler = _static(429, headers={"X-RateLimit-Limit": "60"})
        outcome = await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert outcome.kind == "rate_limited"
        assert outcome.limit == 60
        assert outcome.retryable

    @pytest.mark.anyio
    async def test_remaining_zero_is_rate_limited(self, settings):
        handler = _static(
            200, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "5000"}
        )
        outcome = await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert outcome == ValidationOutcome.rate_limited(5000)

    @pytest.mark.anyio
    async def test_404_wins_over_rate_limit(self, settings):
        handler = _static(404, headers={"X-RateLimit-Remaining": "0"})
        outcome = await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert outcome.kind == "not_found"

    @pytest.mark.anyio
    async def test_timeout(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        outcome = await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert outcome.kind == "timeout"
        assert outcome.retryable

    @pytest.mark.anyio
    async def test_network_failure(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = await _resolver(settings, handler).resolve("https://github.com/o/r.git")
        assert outcome.kind == "network_failure"
        assert outcome.detail == "connection refused"
        assert not outcome.retryable

    @pytest.mark.anyio
    async def test_other_status_is_unchanged(self, settings):
        outcome = await _resolver(settings, lambda request: httpx.Response(503)).resolve(
            "https://github.com/o/r.git"
        )
        assert outcome.kind == "unchanged"


class TestRedirectNoOp:
    @pytest.mark.anyio
    async def test_resolving_the_target_again_is_unchanged(self, settings):
        handler = _redirects(
            {"/old/repo": httpx.Response(301, headers={"Location": "https://github.com/new/repo"})}
        )
        resolver = _resolver(settings, handler)
        first = await resolver.resolve("https://github.com/old/repo.git")
        assert first.kind == "redirected"
        second = await resolver.resolve(first.url)
        assert second.kind == "unchanged"
