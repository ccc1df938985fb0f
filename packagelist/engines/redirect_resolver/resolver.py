"""RedirectResolver — probe a repository URL and classify what happened."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from packagelist.core.config import Settings
from packagelist.engines.normalizer.urls import human_url, normalize
from packagelist.engines.redirect_resolver.models import ValidationOutcome

log = structlog.get_logger("packagelist.engine")

_USER_AGENT = "packagelist-validator/1.0"


class RedirectResolver:
    """Follows redirects for the browsable form of a URL.

    Never sends credentials: the probe targets the public web host, not the
    API. Every probe is bounded by ``settings.request_timeout`` as a whole.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = settings.request_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=settings.request_timeout,
            headers={"User-Agent": _USER_AGENT},
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RedirectResolver:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def resolve(self, url: str) -> ValidationOutcome:
        """GET the human form of *url* and classify the result."""
        target = human_url(url)
        try:
            response = await asyncio.wait_for(
                self._client.get(target, follow_redirects=True),
                timeout=self._timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            log.warning("resolver.timeout", url=url, timeout=self._timeout)
            return ValidationOutcome.timeout()
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            log.warning("resolver.network_failure", url=url, error=detail)
            return ValidationOutcome.network_failure(detail)

        outcome = self.classify(url, response)
        if outcome.kind != "unchanged":
            log.info("resolver.outcome", url=url, outcome=outcome.kind, target=outcome.url)
        return outcome

    @classmethod
    def classify(cls, url: str, response: httpx.Response) -> ValidationOutcome:
        """Classify a finished response chain for the originally listed *url*.

        Priority: 404 anywhere in the chain, then rate limiting, then a change
        of normalized URL. A redirect that normalizes back to *url* (casing,
        ``.git``, trailing slash) is not a redirect.
        """
        chain = [*response.history, response]

        if any(r.status_code == 404 for r in chain):
            return ValidationOutcome.not_found()

        for r in chain:
            if r.status_code == 429 or cls._parse_header_int(
                r.headers.get("X-RateLimit-Remaining")
            ) == 0:
                limit = cls._parse_header_int(r.headers.get("X-RateLimit-Limit"))
                return ValidationOutcome.rate_limited(limit)

        final_url = str(response.url)
        if normalize(final_url) != normalize(url):
            return ValidationOutcome.redirected(human_url(final_url))

        if response.status_code >= 400:
            log.info("resolver.unexpected_status", url=url, status=response.status_code)
        return ValidationOutcome.unchanged()

    # ── internal ───────────────────────────────────────────────────────────

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None
