import asyncio
import time

import pytest

from scanpilot.policy_data import PolicyData, PolicyTrigger, RequesterPolicy
from scanpilot.rate_limiter import build_a_bucket
from scanpilot.requester import Requester
from scanpilot.scan import FeroxScan, OutputLevel, ScanOrder, ScanStatus, ScanType


def _active_scan(url="http://localhost", num_requests=1000):
    scan = FeroxScan(
        url, ScanType.DIRECTORY, ScanOrder.INITIAL, num_requests, OutputLevel.DEFAULT, None
    )
    scan.set_status(ScanStatus.RUNNING)
    scan.get_progress_bar()
    return scan


def test_should_enforce_policy_none_when_not_enough_requests():
    scan = FeroxScan()
    requester = Requester(scan)
    for _ in range(49):
        scan.add_error()
    assert requester.should_enforce_policy(49) is None


def test_should_enforce_policy_errors_trigger():
    scan = FeroxScan()
    requester = Requester(scan, threads=50)
    for _ in range(25):
        scan.add_error()
    assert requester.should_enforce_policy(25) is None
    for _ in range(25):
        scan.add_error()
    assert requester.should_enforce_policy(50) is PolicyTrigger.ERRORS


def test_should_enforce_policy_excessive_403s():
    scan = FeroxScan()
    requester = Requester(scan)
    scan.get_progress_bar().set_position(50)
    for _ in range(45):
        scan.add_403()
    assert requester.should_enforce_policy(45) is None
    assert requester.should_enforce_policy(50) is PolicyTrigger.STATUS_403


def test_should_enforce_policy_excessive_429s():
    scan = FeroxScan()
    requester = Requester(scan, threads=50)
    scan.get_progress_bar().set_position(50)
    for _ in range(15):
        scan.add_429()
    assert requester.should_enforce_policy(15) is None
    assert requester.should_enforce_policy(50) is PolicyTrigger.STATUS_429


def test_should_enforce_policy_none_on_cooldown():
    scan = FeroxScan()
    for _ in range(60):
        scan.add_error()
    requester = Requester(scan, threads=50)
    requester.policy_data.cooling_down = True
    assert requester.should_enforce_policy(100) is None


def test_too_many_status_errors_values():
    requester = Requester(FeroxScan(), PolicyData(RequesterPolicy.AUTO_BAIL, 7))
    assert not requester.too_many_status_errors(PolicyTrigger.ERRORS)
    assert not requester.too_many_status_errors(PolicyTrigger.STATUS_429)

    requester.ferox_scan.get_progress_bar().set_position(10)
    for _ in range(3):
        requester.ferox_scan.add_429()
    assert requester.too_many_status_errors(PolicyTrigger.STATUS_429)

    assert not requester.too_many_status_errors(PolicyTrigger.STATUS_403)
    requester.ferox_scan = FeroxScan()
    requester.ferox_scan.get_progress_bar().set_position(10)
    for _ in range(9):
        requester.ferox_scan.add_403()
    assert requester.too_many_status_errors(PolicyTrigger.STATUS_403)


def test_too_many_errors_threshold_follows_threads():
    scan = FeroxScan()
    requester = Requester(scan, threads=100)
    for _ in range(49):
        scan.add_error()
    assert not requester.too_many_errors()
    scan.add_error()
    assert requester.too_many_errors()


def test_rate_limit_builds_bucket():
    requester = Requester(FeroxScan(), rate_limit=100)
    assert requester.rate_limiter.max == 100
    assert Requester(FeroxScan()).rate_limiter is None


@pytest.mark.asyncio
async def test_limit_without_limiter_raises():
    requester = Requester(FeroxScan())
    with pytest.raises(RuntimeError):
        await requester.limit()


@pytest.mark.asyncio
async def test_limit_takes_a_token():
    requester = Requester(FeroxScan(), rate_limit=100)
    before = requester.rate_limiter.available
    await requester.limit()
    assert requester.rate_limiter.available == before - 1


@pytest.mark.asyncio
async def test_bail_cancels_active_scan():
    scan = _active_scan("http://two")
    for _ in range(14):
        scan.add_error()
    dummy = asyncio.create_task(asyncio.sleep(15))
    await scan.set_task(dummy)
    other = _active_scan("http://one")

    requester = Requester(scan)
    skipped = await requester.bail(PolicyTrigger.ERRORS)

    assert skipped == 1000
    assert not scan.is_active()
    assert scan.status is ScanStatus.CANCELLED
    assert other.is_active()
    with pytest.raises(asyncio.CancelledError):
        await dummy


@pytest.mark.asyncio
async def test_bail_does_nothing_when_scan_inactive():
    scan = _active_scan()
    scan.set_status(ScanStatus.COMPLETE)
    requester = Requester(scan)
    assert await requester.bail(PolicyTrigger.STATUS_403) == 0
    assert scan.status is ScanStatus.COMPLETE


@pytest.mark.asyncio
async def test_cool_down_pauses_and_sets_flag():
    requester = Requester(FeroxScan(), PolicyData(RequesterPolicy.AUTO_BAIL, 0.2))

    async def peek():
        await asyncio.sleep(0.03)
        return requester.policy_data.cooling_down

    start = time.monotonic()
    watcher = asyncio.create_task(peek())
    await requester.cool_down()

    assert await watcher is True
    assert time.monotonic() - start >= 0.09
    assert requester.policy_data.cooling_down is False


@pytest.mark.asyncio
async def test_adjust_limit_increments_streak_on_upward_movement():
    requester = Requester(FeroxScan(), PolicyData(RequesterPolicy.AUTO_BAIL, 7))
    requester.policy_data.set_reqs_sec(400)
    await requester.adjust_limit(PolicyTrigger.ERRORS, True)

    assert requester.streak == 1
    assert requester.policy_data.get_limit() == 300
    assert requester.rate_limiter.max == 300


@pytest.mark.asyncio
async def test_adjust_limit_resets_streak_on_downward_movement():
    scan = FeroxScan()
    scan.add_error()
    scan.add_error()
    requester = Requester(scan, PolicyData(RequesterPolicy.AUTO_BAIL, 7))
    requester.rate_limiter = build_a_bucket(200)
    requester.policy_data.set_reqs_sec(400)
    requester.policy_data.set_errors(1)
    requester.streak = 2

    await requester.adjust_limit(PolicyTrigger.ERRORS, False)

    assert requester.streak == 0
    assert requester.policy_data.get_limit() == 100
    assert requester.policy_data.errors == 2
    assert requester.rate_limiter.max == 200


@pytest.mark.asyncio
async def test_adjust_limit_removes_rate_limiter():
    scan = FeroxScan()
    scan.add_error()
    scan.add_error()
    requester = Requester(scan, PolicyData(RequesterPolicy.AUTO_BAIL, 7))
    requester.rate_limiter = build_a_bucket(200)
    requester.policy_data.set_reqs_sec(400)
    requester.policy_data.remove_limit = True

    await requester.adjust_limit(PolicyTrigger.ERRORS, True)

    assert requester.rate_limiter is None
    assert requester.policy_data.remove_limit is False


@pytest.mark.asyncio
async def test_set_rate_limiter_early_exit_keeps_bucket():
    requester = Requester(FeroxScan(), PolicyData(RequesterPolicy.AUTO_BAIL, 7))
    bucket = build_a_bucket(200)
    requester.rate_limiter = bucket

    await requester.set_rate_limiter(200)
    assert requester.rate_limiter is bucket
    await requester.set_rate_limiter(200)
    assert requester.rate_limiter is bucket

    await requester.set_rate_limiter(50)
    assert requester.rate_limiter.max == 50
    await requester.set_rate_limiter(None)
    assert requester.rate_limiter is None


@pytest.mark.asyncio
async def test_tune_sets_expected_values_and_waits():
    scan = _active_scan()
    scan.add_429()
    requester = Requester(scan, PolicyData(RequesterPolicy.AUTO_TUNE, 0.2))
    requester.rate_limiter = build_a_bucket(200)

    bar = scan.get_progress_bar()
    bar.set_length(1000)
    bar.set_position(400)
    scan.start_time = time.monotonic() - 1.0

    assert requester.policy_data.errors == 0
    start = time.monotonic()
    await requester.tune(PolicyTrigger.STATUS_429)

    assert requester.policy_data.heap.original == 400
    assert requester.policy_data.get_limit() == 200
    assert requester.rate_limiter.max == 200
    assert requester.policy_data.errors == 1
    assert time.monotonic() - start >= 0.09
    scan.finish()
    assert scan.requests_per_second() == 0