"""Per-scan request policy enforcement: rate limiting, auto-tuning and auto-bailing."""

from __future__ import annotations

import asyncio
import logging
import threading

from scanpilot.policy_data import PolicyData, PolicyTrigger
from scanpilot.rate_limiter import LeakyBucket, build_a_bucket
from scanpilot.scan import FeroxScan, ScanStatus

log = logging.getLogger(__name__)

HIGH_ERROR_RATIO = 0.90
DEFAULT_THREADS = 50
MIN_ERROR_THRESHOLD = 25
MIN_REQUESTS_BEFORE_ENFORCING = 50


class Requester:
    """Decides when a scan's policy applies and adjusts its rate limit accordingly."""

    def __init__(
        self,
        ferox_scan: FeroxScan,
        policy_data: PolicyData | None = None,
        threads: int = DEFAULT_THREADS,
        rate_limit: int = 0,
        high_error_ratio: float = HIGH_ERROR_RATIO,
    ) -> None:
        self.ferox_scan = ferox_scan
        self.policy_data = policy_data if policy_data is not None else PolicyData()
        self.threads = threads
        self.high_error_ratio = high_error_ratio
        self.rate_limiter: LeakyBucket | None = (
            build_a_bucket(rate_limit) if rate_limit > 0 else None
        )
        # number of consecutive adjustments made without new errors
        self.streak = 0
        self._tuning_lock = threading.Lock()
        self._limiter_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return (
            f"Requester(scan={self.ferox_scan!r}, limiter={self.rate_limiter!r}, "
            f"streak={self.streak})"
        )

    async def limit(self) -> None:
        """Wait for permission to make one request."""
        bucket = self.rate_limiter
        if bucket is None:
            raise RuntimeError("no rate limiter is set for this scan")
        await bucket.acquire_one()

    async def cool_down(self) -> None:
        """Sleep for the policy's wait time while flagging that a cool-down is under way."""
        if self.policy_data.cooling_down:
            return
        self.policy_data.cooling_down = True
        try:
            await asyncio.sleep(self.policy_data.wait_time / 1000.0)
        finally:
            self.policy_data.cooling_down = False

    def too_many_errors(self) -> bool:
        """Whether general errors reached half the thread count (at least 25)."""
        total = self.ferox_scan.num_errors(PolicyTrigger.ERRORS)
        threshold = max(self.threads // 2, MIN_ERROR_THRESHOLD)
        return total >= threshold

    def too_many_status_errors(self, trigger: PolicyTrigger) -> bool:
        """Whether 403s or 429s make up too large a share of the scan's requests."""
        if trigger is PolicyTrigger.STATUS_403:
            threshold = self.high_error_ratio
        elif trigger is PolicyTrigger.STATUS_429:
            threshold = self.high_error_ratio / 3.0
        else:
            return False

        total = self.ferox_scan.num_errors(trigger)
        requests = self.ferox_scan.requests()
        if requests == 0:
            # any count over zero requests is an unbounded ratio; none is undefined
            return total > 0
        return total / requests >= threshold

    def should_enforce_policy(self, requests: int) -> PolicyTrigger | None:
        """Return the trigger whose criteria are met, given the overall request count."""
        if self.policy_data.cooling_down:
            return None
        if requests < max(self.threads, MIN_REQUESTS_BEFORE_ENFORCING):
            return None
        if self.too_many_errors():
            return PolicyTrigger.ERRORS
        if self.too_many_status_errors(PolicyTrigger.STATUS_403):
            return PolicyTrigger.STATUS_403
        if self.too_many_status_errors(PolicyTrigger.STATUS_429):
            return PolicyTrigger.STATUS_429
        return None

    async def adjust_limit(self, trigger: PolicyTrigger, create_limiter: bool) -> None:
        """Move the limit down when errors grew since last time, up otherwise."""
        scan_errors = self.ferox_scan.num_errors(trigger)
        policy_errors = self.policy_data.errors

        if self._tuning_lock.acquire(blocking=False):
            try:
                if scan_errors > policy_errors:
                    self.streak = 0
                    if self.policy_data.errors != 0:
                        self.policy_data.adjust_down()
                    self.policy_data.set_errors(scan_errors)
                else:
                    self.streak += 1
                    self.policy_data.adjust_up(self.streak)
            finally:
                self._tuning_lock.release()

        if self.policy_data.remove_limit:
            await self.set_rate_limiter(None)
            self.policy_data.remove_limit = False
        elif create_limiter:
            await self.set_rate_limiter(self.policy_data.get_limit())

    async def set_rate_limiter(self, new_limit: int | None) -> None:
        """Replace the rate limiter; None removes it, an unchanged limit keeps it."""
        async with self._limiter_lock:
            if new_limit is None:
                self.rate_limiter = None
                return
            if self.rate_limiter is not None and self.rate_limiter.max == new_limit:
                return
            self.rate_limiter = build_a_bucket(new_limit)

    async def tune(self, trigger: PolicyTrigger) -> None:
        """Apply the auto-tune policy, then cool down."""
        if self.policy_data.errors == 0:
            # first tuning pass: seed the heap with the scan's current speed
            self.policy_data.set_reqs_sec(self.ferox_scan.requests_per_second())
            await self.set_rate_limiter(self.policy_data.get_limit())

        await self.adjust_limit(trigger, True)
        await self.cool_down()

    async def bail(self, trigger: PolicyTrigger) -> int:
        """Apply the auto-bail policy: cancel the scan if it is active.

        Returns the number of requests skipped by the cancellation.
        """
        scan = self.ferox_scan
        if not scan.is_active():
            return 0

        log.warning(
            "too many %s (%d) triggered auto-bail policy on %s",
            trigger.name,
            scan.num_errors(trigger),
            scan,
        )

        # mark cancelled before awaiting so in-flight requests see it promptly
        scan.set_status(ScanStatus.CANCELLED)
        try:
            await scan.abort()
        except Exception as exc:  # noqa: BLE001
            log.warning("Could not bail on scan: %s", exc)

        bar = scan.get_progress_bar()
        return max(bar.length - bar.position, 0)