"""Token-bucket rate limiter used to cap requests per second."""

from __future__ import annotations

import asyncio
import math
import time

FAST_REFILL_INTERVAL = 0.1  # seconds
SLOW_REFILL_INTERVAL = 1.0  # seconds


def _round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class LeakyBucket:
    """Bucket holding up to ``max`` tokens, refilled by ``refill_amount`` every interval.

    ``refill_interval`` is given in seconds. A bucket whose ``max`` is 0 still holds
    a single token, so acquiring from it never blocks forever.
    """

    def __init__(
        self,
        max: int,
        tokens: int,
        refill_amount: int,
        refill_interval: float,
    ) -> None:
        if max < 0:
            raise ValueError(f"bucket size must not be negative: {max}")
        if tokens < 0:
            raise ValueError(f"initial tokens must not be negative: {tokens}")
        if refill_amount < 1:
            raise ValueError(f"refill amount must be at least 1: {refill_amount}")
        if refill_interval <= 0:
            raise ValueError(f"refill interval must be positive: {refill_interval}")

        self.max = max
        self.refill_amount = refill_amount
        self.refill_interval = refill_interval
        self._available = min(tokens, self.capacity)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return (
            f"LeakyBucket(max={self.max}, available={self._available}, "
            f"refill_amount={self.refill_amount}, refill_interval={self.refill_interval})"
        )

    @property
    def capacity(self) -> int:
        """Most tokens the bucket can hold."""
        return self.max if self.max > 0 else 1

    @property
    def available(self) -> int:
        """Tokens that can be taken right now."""
        self._refill(time.monotonic())
        return self._available

    def _refill(self, now: float) -> None:
        intervals = int((now - self._last_refill) / self.refill_interval)
        if intervals > 0:
            self._available = min(
                self.capacity, self._available + intervals * self.refill_amount
            )
            self._last_refill += intervals * self.refill_interval

    async def acquire_one(self) -> None:
        """Take one token, waiting for a refill when the bucket is empty."""
        async with self._lock:
            while True:
                now = time.monotonic()
                self._refill(now)
                if self._available >= 1:
                    self._available -= 1
                    return
                wait = self._last_refill + self.refill_interval - now
                await asyncio.sleep(wait if wait > 0 else 0)


def build_a_bucket(limit: int) -> LeakyBucket:
    """Build a bucket allowing about ``limit`` requests per second.

    Tokens are added every 0.1s (or every second when the refill would be a single
    token), and the initial burst is half the limit.
    """
    if limit < 0:
        raise ValueError(f"rate limit must not be negative: {limit}")
    refill = max(_round_half_away(limit / 10.0), 1)
    tokens = max(_round_half_away(limit / 2.0), 1)
    interval = SLOW_REFILL_INTERVAL if refill == 1 else FAST_REFILL_INTERVAL
    return LeakyBucket(
        max=limit, tokens=tokens, refill_amount=refill, refill_interval=interval
    )