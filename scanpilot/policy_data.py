"""Policy bookkeeping for auto-tune and auto-bail request handling."""

from __future__ import annotations

import threading
from enum import Enum, auto

from scanpilot.limit_heap import LimitHeap


class PolicyTrigger(Enum):
    """Situations whose criteria can trigger auto-tune or auto-bail behaviour."""

    STATUS_403 = auto()
    STATUS_429 = auto()
    ERRORS = auto()


class RequesterPolicy(Enum):
    """How exceptional cases such as many errors, 403s or 429s are handled."""

    DEFAULT = auto()
    AUTO_TUNE = auto()
    AUTO_BAIL = auto()


class PolicyData:
    """Policy plus metadata about the last enforced trigger and current rate limit."""

    def __init__(self, policy: RequesterPolicy = RequesterPolicy.DEFAULT, timeout: float = 0) -> None:
        self.policy = policy
        self.cooling_down = False
        # pause after an adjustment, in milliseconds: half the request timeout
        self.wait_time = int((timeout / 2.0) * 1000.0)
        self.limit = 0
        self.errors = 0
        self.remove_limit = False
        self.heap = LimitHeap()
        self._heap_lock = threading.Lock()

    def set_reqs_sec(self, reqs_sec: int) -> None:
        """Seed the heap with the original requests/second and limit to half of it."""
        with self._heap_lock:
            self.heap.original = reqs_sec
            self.heap.build()
            self.set_limit(self.heap.inner[0])

    def set_errors(self, errors: int) -> None:
        self.errors = errors

    def set_limit(self, limit: int) -> None:
        self.limit = limit

    def get_limit(self) -> int:
        return self.limit

    def adjust_up(self, streak_counter: int) -> None:
        """Raise the requests/second limit; a streak above 2 climbs the tree instead."""
        if not self._heap_lock.acquire(blocking=False):
            return
        try:
            heap = self.heap
            if streak_counter > 2:
                current = heap.value()
                heap.move_up()
                heap.move_up()
                if current > heap.value():
                    if heap.has_parent() and heap.parent_value() > current:
                        heap.move_up()
                    elif not heap.has_parent():
                        # reached the root often enough to try the original speed again
                        self.remove_limit = True
            elif heap.has_children():
                heap.move_left()
            else:
                current = heap.value()
                heap.move_up()
                heap.move_up()
                if current > heap.value():
                    heap.move_up()
            self.set_limit(heap.value())
        finally:
            self._heap_lock.release()

    def adjust_down(self) -> None:
        """Lower the requests/second limit by moving to the right child."""
        if not self._heap_lock.acquire(blocking=False):
            return
        try:
            if self.heap.has_children():
                self.heap.move_right()
                self.set_limit(self.heap.value())
        finally:
            self._heap_lock.release()