"""Data models for the redirect resolver engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

OutcomeKind = Literal[
    "unchanged",
    "redirected",
    "not_found",
    "rate_limited",
    "network_failure",
    "timeout",
]


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of probing one URL.

    ``url`` is set for ``redirected`` (the final URL reached), ``detail`` for
    ``network_failure`` and ``limit`` for ``rate_limited`` when the host
    reported one.
    """

    kind: OutcomeKind
    url: str | None = None
    detail: str | None = None
    limit: int | None = None

    @classmethod
    def unchanged(cls) -> ValidationOutcome:
        return cls("unchanged")

    @classmethod
    def redirected(cls, url: str) -> ValidationOutcome:
        return cls("redirected", url=url)

    @classmethod
    def not_found(cls) -> ValidationOutcome:
        return cls("not_found")

    @classmethod
    def rate_limited(cls, limit: int | None = None) -> ValidationOutcome:
        return cls("rate_limited", limit=limit)

    @classmethod
    def network_failure(cls, detail: str) -> ValidationOutcome:
        return cls("network_failure", detail=detail)

    @classmethod
    def timeout(cls) -> ValidationOutcome:
        return cls("timeout")

    @property
    def retryable(self) -> bool:
        return self.kind in ("rate_limited", "timeout")


@dataclass
class RedirectReport:
    """Summary of one redirect-check pass over the canonical list."""

    checked: int = 0
    removed: list[str] = field(default_factory=list)
    replaced: list[tuple[str, str]] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    errors: list[tuple[str, Exception]] = field(default_factory=list)
