import time

import pytest

from scanpilot.rate_limiter import LeakyBucket, build_a_bucket


def test_build_a_bucket_for_hundred_requests():
    bucket = build_a_bucket(100)
    assert bucket.max == 100
    assert bucket.refill_amount == 10
    assert bucket.refill_interval == pytest.approx(0.1)
    assert bucket.available == 50


def test_build_a_bucket_small_limit_refills_every_second():
    bucket = build_a_bucket(1)
    assert bucket.max == 1
    assert bucket.refill_amount == 1
    assert bucket.refill_interval == pytest.approx(1.0)
    assert bucket.available == 1


def test_build_a_bucket_rounds_halves_away_from_zero():
    bucket = build_a_bucket(5)
    assert bucket.refill_amount == 1
    assert bucket.refill_interval == pytest.approx(1.0)
    assert bucket.available == 3

    bucket = build_a_bucket(15)
    assert bucket.refill_amount == 2
    assert bucket.refill_interval == pytest.approx(0.1)
    assert bucket.available == 8


@pytest.mark.parametrize("limit", [200, 300])
def test_build_a_bucket_max_matches_limit(limit):
    assert build_a_bucket(limit).max == limit


def test_build_a_bucket_rejects_negative_limit():
    with pytest.raises(ValueError):
        build_a_bucket(-1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max": -1, "tokens": 1, "refill_amount": 1, "refill_interval": 1.0},
        {"max": 1, "tokens": -1, "refill_amount": 1, "refill_interval": 1.0},
        {"max": 1, "tokens": 1, "refill_amount": 0, "refill_interval": 1.0},
        {"max": 1, "tokens": 1, "refill_amount": 1, "refill_interval": 0},
    ],
)
def test_leaky_bucket_rejects_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        LeakyBucket(**kwargs)


def test_initial_tokens_are_capped_at_max():
    bucket = LeakyBucket(max=3, tokens=10, refill_amount=1, refill_interval=10.0)
    assert bucket.available == 3


@pytest.mark.asyncio
async def test_acquire_one_consumes_tokens():
    bucket = LeakyBucket(max=5, tokens=2, refill_amount=1, refill_interval=10.0)
    await bucket.acquire_one()
    assert bucket.available == 1
    await bucket.acquire_one()
    assert bucket.available == 0


@pytest.mark.asyncio
async def test_acquire_one_waits_for_refill_when_empty():
    bucket = LeakyBucket(max=2, tokens=1, refill_amount=1, refill_interval=0.2)
    start = time.monotonic()
    await bucket.acquire_one()
    assert bucket.available == 0
    assert time.monotonic() - start < 0.15
    await bucket.acquire_one()
    elapsed = time.monotonic() - start
    assert bucket.available == 0
    assert elapsed >= 0.15
    assert elapsed < 2.0


@pytest.mark.asyncio
async def test_refill_never_exceeds_capacity():
    bucket = LeakyBucket(max=2, tokens=0, refill_amount=5, refill_interval=0.05)
    await bucket.acquire_one()
    time_waited = time.monotonic()
    while time.monotonic() - time_waited < 0.2:
        pass
    assert bucket.available == 2


@pytest.mark.asyncio
async def test_zero_sized_bucket_still_hands_out_a_token():
    bucket = LeakyBucket(max=0, tokens=1, refill_amount=1, refill_interval=10.0)
    assert bucket.capacity == 1
    await bucket.acquire_one()
    assert bucket.available == 0