"""Tests for the concurrency controller: pool bound, retry ceiling, backoff."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from packagelist.core.config import Settings
from packagelist.engines.concurrency import ConcurrencyController
from packagelist.errors import (
    MissingProductsError,
    RateLimitExceededError,
    RequestTimeoutError,
    RetryExhaustedError,
)

URL = "https://github.com/o/r.git"


class TestRun:
    @pytest.mark.anyio
    async def test_success_first_try(self):
        controller = ConcurrencyController()
        factory = AsyncMock(return_value="ok")
        assert await controller.run(URL, factory) == "ok"
        factory.assert_awaited_once()

    @pytest.mark.anyio
    async def test_rate_limit_exhausts_after_ceiling(self):
        controller = ConcurrencyController(retry_limit=3, cooldown=60)
        factory = AsyncMock(side_effect=RateLimitExceededError(URL, limit=60))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await controller.run(URL, factory)
        assert factory.await_count == 3
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(60)
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, RateLimitExceededError)
        assert exc_info.value.url == URL

    @pytest.mark.anyio
    async def test_recovers_after_retry(self):
        controller = ConcurrencyController(retry_limit=3)
        factory = AsyncMock(side_effect=[RateLimitExceededError(URL), "ok"])
        with patch("asyncio.sleep", new_callable=AsyncMock):
            assert await controller.run(URL, factory) == "ok"
        assert factory.await_count == 2

    @pytest.mark.anyio
    async def test_server_retry_after_wins_when_longer(self):
        controller = ConcurrencyController(retry_limit=2, cooldown=60, max_cooldown=900)
        factory = AsyncMock(
            side_effect=[RateLimitExceededError(URL, retry_after=120), "ok"]
        )
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await controller.run(URL, factory)
        mock_sleep.assert_awaited_once_with(120)

    @pytest.mark.anyio
    async def test_cooldown_is_capped(self):
        controller = ConcurrencyController(retry_limit=2, cooldown=60, max_cooldown=900)
        factory = AsyncMock(
            side_effect=[RateLimitExceededError(URL, retry_after=5000), "ok"]
        )
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await controller.run(URL, factory)
        mock_sleep.assert_awaited_once_with(900)

    @pytest.mark.anyio
    async def test_timeout_backs_off_exponentially(self):
        controller = ConcurrencyController(retry_limit=3)
        factory = AsyncMock(side_effect=RequestTimeoutError(URL))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RetryExhaustedError):
                await controller.run(URL, factory)
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.anyio
    async def test_non_retryable_propagates_immediately(self):
        controller = ConcurrencyController(retry_limit=3)
        factory = AsyncMock(side_effect=MissingProductsError(URL))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(MissingProductsError):
                await controller.run(URL, factory)
        factory.assert_awaited_once()
        mock_sleep.assert_not_awaited()


class TestGather:
    @pytest.mark.anyio
    async def test_collects_failures_without_aborting(self):
        controller = ConcurrencyController(pool_size=2)

        async def work(item: str) -> str:
            if item == "bad":
                raise MissingProductsError(item)
            if item == "crash":
                raise RuntimeError("boom")
            return item.upper()

        results = await controller.gather(["a", "bad", "crash", "b"], work)
        assert [r.item for r in results] == ["a", "bad", "crash", "b"]
        assert results[0].ok and results[0].value == "A"
        assert isinstance(results[1].error, MissingProductsError)
        assert isinstance(results[2].error, RuntimeError)
        assert results[3].value == "B"

    @pytest.mark.anyio
    async def test_unresolved_flag(self):
        controller = ConcurrencyController(retry_limit=2)

        async def work(item: str) -> str:
            raise RateLimitExceededError(item)

        with patch("asyncio.sleep", new_callable=AsyncMock):
            results = await controller.gather(["x"], work)
        assert results[0].unresolved
        assert not results[0].ok

    @pytest.mark.anyio
    async def test_pool_bound(self):
        controller = ConcurrencyController(pool_size=3)
        active = 0
        peak = 0

        async def work(item: int) -> int:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return item

        results = await controller.gather(range(12), work)
        assert [r.value for r in results] == list(range(12))
        assert peak <= 3


class TestConfiguration:
    def test_invalid_pool_size(self):
        with pytest.raises(ValueError):
            ConcurrencyController(pool_size=0)

    def test_invalid_retry_limit(self):
        with pytest.raises(ValueError):
            ConcurrencyController(retry_limit=0)

    def test_throttle_only_for_single_worker(self):
        assert ConcurrencyController(pool_size=1, throttle=0.5).throttle == 0.5
        assert ConcurrencyController(pool_size=4, throttle=0.5).throttle == 0.0

    def test_from_settings(self):
        settings = Settings(concurrency=7, retry_limit=5, rate_limit_cooldown=10, max_cooldown=20)
        controller = ConcurrencyController.from_settings(settings)
        assert controller.pool_size == 7
        assert controller.retry_limit == 5
        assert controller.cooldown == 10
        assert controller.max_cooldown == 20

    @pytest.mark.anyio
    async def test_throttle_spaces_starts(self):
        controller = ConcurrencyController(pool_size=1, throttle=0.5)
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await controller.gather(["a", "b"], AsyncMock(return_value=None))
        mock_sleep.assert_awaited_once()
        assert 0 < mock_sleep.await_args.args[0] <= 0.5
