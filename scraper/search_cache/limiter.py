"""Bound on simultaneously running page fetches."""

from __future__ import annotations

import asyncio


class ConcurrencyLimiter:
    """Semaphore-backed async context manager that also tracks its peak.

    Usage::

        limiter = ConcurrencyLimiter(2)
        async with limiter:
            resp = await client.get(url)
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak = 0
        self.acquired_total = 0

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self._semaphore.acquire()
        self.in_flight += 1
        self.acquired_total += 1
        if self.in_flight > self.peak:
            self.peak = self.in_flight
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.in_flight -= 1
        self._semaphore.release()
