"""ConcurrencyController — bounded pool + bounded retry for units of work."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from packagelist.core.config import Settings
from packagelist.errors import (
    RateLimitExceededError,
    RetryableError,
    RetryExhaustedError,
    ValidatorError,
)

log = structlog.get_logger("packagelist.engine")

T = TypeVar("T")
ItemT = TypeVar("ItemT")

_RETRY_BASE_DELAY = 1.0  # seconds, for timeouts


@dataclass
class UnitResult(Generic[ItemT, T]):
    """Outcome of one unit of work dispatched by :meth:`ConcurrencyController.gather`."""

    item: ItemT
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def unresolved(self) -> bool:
        return isinstance(self.error, RetryExhaustedError)


class ConcurrencyController:
    """Bounds in-flight units and retries rate-limited / timed-out ones.

    Only :class:`RetryableError` subclasses are retried, at most
    ``retry_limit`` attempts in total. Rate limits wait ``cooldown`` (or the
    server's ``retry_after`` when longer, capped at ``max_cooldown``);
    timeouts back off exponentially from one second.
    """

    def __init__(
        self,
        pool_size: int = 10,
        retry_limit: int = 3,
        cooldown: float = 60.0,
        max_cooldown: float = 900.0,
        throttle: float = 0.0,
    ) -> None:
        if pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {pool_size}")
        if retry_limit < 1:
            raise ValueError(f"retry_limit must be >= 1, got {retry_limit}")
        self.pool_size = pool_size
        self.retry_limit = retry_limit
        self.cooldown = cooldown
        self.max_cooldown = max_cooldown
        # With a real pool the pool size itself spaces requests out.
        self.throttle = throttle if pool_size == 1 else 0.0
        self._sem = asyncio.Semaphore(pool_size)
        self._throttle_lock = asyncio.Lock()
        self._last_start: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ConcurrencyController:
        return cls(
            pool_size=settings.concurrency,
            retry_limit=settings.retry_limit,
            cooldown=settings.rate_limit_cooldown,
            max_cooldown=settings.max_cooldown,
            throttle=settings.request_throttle,
        )

    # ── public ─────────────────────────────────────────────────────────────

    async def run(self, label: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` inside the pool, retrying retryable errors.

        Raises :class:`RetryExhaustedError` once the ceiling is reached; any
        non-retryable exception propagates immediately.
        """
        async with self._sem:
            last_error: RetryableError | None = None
            for attempt in range(1, self.retry_limit + 1):
                await self._wait_for_throttle()
                try:
                    return await factory()
                except RetryableError as exc:
                    last_error = exc

                if attempt < self.retry_limit:
                    wait = self._backoff(last_error, attempt)
                    log.warning(
                        "controller.retry",
                        label=label,
                        reason=last_error.reason,
                        attempt=attempt,
                        max_attempts=self.retry_limit,
                        wait_seconds=wait,
                    )
                    await asyncio.sleep(wait)

            assert last_error is not None
            log.error(
                "controller.unresolved",
                label=label,
                reason=last_error.reason,
                attempts=self.retry_limit,
            )
            raise RetryExhaustedError(label, last_error, self.retry_limit) from last_error

    async def gather(
        self,
        items: Iterable[ItemT],
        fn: Callable[[ItemT], Awaitable[T]],
        label: Callable[[ItemT], str] = str,
    ) -> list[UnitResult[ItemT, T]]:
        """Dispatch one unit per item; never aborts on an individual failure."""

        async def _run_one(item: ItemT) -> UnitResult[ItemT, T]:
            name = label(item)
            try:
                value = await self.run(name, lambda: fn(item))
            except ValidatorError as exc:
                return UnitResult(item=item, error=exc)
            except Exception as exc:
                log.exception("controller.unit_crashed", label=name)
                return UnitResult(item=item, error=exc)
            return UnitResult(item=item, value=value)

        return list(await asyncio.gather(*(_run_one(item) for item in items)))

    # ── internal ───────────────────────────────────────────────────────────

    def _backoff(self, error: RetryableError, attempt: int) -> float:
        if isinstance(error, RateLimitExceededError):
            wait = max(self.cooldown, error.retry_after or 0.0)
            return min(wait, self.max_cooldown)
        return _RETRY_BASE_DELAY * (2 ** (attempt - 1))

    async def _wait_for_throttle(self) -> None:
        """Keep at least ``throttle`` seconds between consecutive starts."""
        if self.throttle <= 0:
            return
        async with self._throttle_lock:
            if self._last_start is not None:
                delay = self.throttle - (time.monotonic() - self._last_start)
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last_start = time.monotonic()
