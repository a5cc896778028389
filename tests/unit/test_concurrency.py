"""Unit tests for throttled_gather."""

from __future__ import annotations

import asyncio

import pytest

from docingest.utils.concurrency import first_exception, throttled_gather


class _Tracker:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def work(self, value: int) -> int:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        if value < 0:
            raise ValueError(value)
        return value * 2


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_limit_respected_and_order_kept(self) -> None:
        tracker = _Tracker()
        results = await throttled_gather([tracker.work(i) for i in range(8)], limit=3)
        assert results == [i * 2 for i in range(8)]
        assert tracker.peak <= 3

    @pytest.mark.asyncio
    async def test_shared_semaphore_bounds_two_gathers(self) -> None:
        tracker = _Tracker()
        gate = asyncio.Semaphore(2)
        await asyncio.gather(
            throttled_gather([tracker.work(i) for i in range(4)], semaphore=gate),
            throttled_gather([tracker.work(i) for i in range(4)], semaphore=gate),
        )
        assert tracker.peak <= 2

    @pytest.mark.asyncio
    async def test_exceptions_returned(self) -> None:
        tracker = _Tracker()
        results = await throttled_gather([tracker.work(1), tracker.work(-1)], limit=2)
        assert results[0] == 2
        assert isinstance(first_exception(results), ValueError)

    def test_first_exception_none(self) -> None:
        assert first_exception([1, "a", None]) is None
