"""Scan state: what is being scanned, how far it got and how it ended."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from enum import Enum
from typing import Any, Mapping

from scanpilot.policy_data import PolicyTrigger

log = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1


class ScanOrder(Enum):
    """Whether a URL was given by the user (initial) or found while scanning (latest)."""

    INITIAL = "Initial"
    LATEST = "Latest"


class ScanType(Enum):
    """Whether a scan targets a single file or a whole directory."""

    FILE = "File"
    DIRECTORY = "Directory"


class ScanStatus(Enum):
    """Current state of a scan."""

    NOT_STARTED = "NotStarted"
    COMPLETE = "Complete"
    CANCELLED = "Cancelled"
    RUNNING = "Running"


class OutputLevel(Enum):
    """How much output the user asked for."""

    DEFAULT = "Default"
    QUIET = "Quiet"
    SILENT = "Silent"


_STATUS_LABELS = {
    ScanStatus.NOT_STARTED: "not started",
    ScanStatus.COMPLETE: "complete",
    ScanStatus.CANCELLED: "cancelled",
    ScanStatus.RUNNING: "running",
}


class ProgressBar:
    """Counter of requests made against an expected total."""

    def __init__(self, length: int = 0) -> None:
        self.length = length
        self.position = 0
        self._finished = False
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"ProgressBar(length={self.length}, position={self.position}, "
            f"finished={self._finished})"
        )

    def inc(self, delta: int = 1) -> None:
        """Advance the position by ``delta``."""
        with self._lock:
            self.position += delta

    def set_position(self, position: int) -> None:
        with self._lock:
            self.position = position

    def set_length(self, length: int) -> None:
        with self._lock:
            self.length = length

    def finish(self) -> None:
        """Mark the bar finished, leaving the position where it is."""
        self._finished = True

    def is_finished(self) -> bool:
        return self._finished


class FeroxScan:
    """State of a single scan: its task, status, progress and error counters."""

    def __init__(
        self,
        url: str = "",
        scan_type: ScanType = ScanType.FILE,
        scan_order: ScanOrder = ScanOrder.LATEST,
        num_requests: int = 0,
        output_level: OutputLevel = OutputLevel.DEFAULT,
        progress_bar: ProgressBar | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.url = url
        self.scan_type = scan_type
        self.scan_order = scan_order
        self.num_requests = num_requests
        self.output_level = output_level
        self.progress_bar = progress_bar
        self.status = ScanStatus.NOT_STARTED
        self.task: asyncio.Task | None = None
        self.task_lock = asyncio.Lock()
        self.status_403s = 0
        self.status_429s = 0
        self.errors = 0
        self.start_time = time.monotonic()
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"FeroxScan(id={self.id!r}, url={self.url!r}, scan_type={self.scan_type}, "
            f"status={self.status}, num_requests={self.num_requests})"
        )

    def __str__(self) -> str:
        return f"{_STATUS_LABELS[self.status]:12} {self.url}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeroxScan):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    async def abort(self) -> None:
        """Cancel the running task, mark the scan cancelled and stop its progress bar."""
        if self.task_lock.locked():
            log.warning(
                "Could not acquire lock to abort scan (we're already waiting for its results): %r",
                self,
            )
            return
        async with self.task_lock:
            task, self.task = self.task, None
            if task is not None:
                log.debug("aborting %r", self)
                task.cancel()
                self.set_status(ScanStatus.CANCELLED)
                self.stop_progress_bar()

    async def set_task(self, task: asyncio.Task) -> None:
        """Attach the task performing this scan."""
        async with self.task_lock:
            self.task = task

    def set_status(self, status: ScanStatus) -> None:
        with self._lock:
            self.status = status

    def stop_progress_bar(self) -> None:
        """Finish the progress bar at its current position, if there is one."""
        if self.progress_bar is not None:
            self.progress_bar.finish()

    def get_progress_bar(self) -> ProgressBar:
        """Return the scan's progress bar, creating it on first use."""
        with self._lock:
            if self.progress_bar is None:
                self.progress_bar = ProgressBar(self.num_requests)
            return self.progress_bar

    def finish(self) -> None:
        """Mark the scan complete and stop its progress bar."""
        self.set_status(ScanStatus.COMPLETE)
        self.stop_progress_bar()

    def is_active(self) -> bool:
        """True for a directory scan that is running or waiting to run."""
        return self.scan_type is ScanType.DIRECTORY and self.status in (
            ScanStatus.RUNNING,
            ScanStatus.NOT_STARTED,
        )

    def is_complete(self) -> bool:
        return self.status is ScanStatus.COMPLETE

    async def join(self) -> None:
        """Wait for the scan's task to finish and mark the scan complete."""
        async with self.task_lock:
            task, self.task = self.task, None
            if task is not None:
                await task
                self.set_status(ScanStatus.COMPLETE)

    def add_403(self) -> None:
        with self._lock:
            self.status_403s += 1

    def add_429(self) -> None:
        with self._lock:
            self.status_429s += 1

    def add_error(self) -> None:
        with self._lock:
            self.errors += 1

    def num_errors(self, trigger: PolicyTrigger) -> int:
        """Number of events of the kind that the given trigger watches."""
        if trigger is PolicyTrigger.STATUS_403:
            return self.status_403s
        if trigger is PolicyTrigger.STATUS_429:
            return self.status_429s
        return self.errors

    def requests_per_second(self) -> int:
        """Requests per whole second elapsed; 0 when inactive or under a second."""
        if not self.is_active():
            return 0
        seconds = int(time.monotonic() - self.start_time)
        if seconds <= 0:
            return 0
        return self.requests() // seconds

    def requests(self) -> int:
        """Number of requests performed so far."""
        return self.get_progress_bar().position

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form of the scan, as stored in state files."""
        return {
            "id": self.id,
            "url": self.url,
            "scan_type": self.scan_type.value,
            "status": self.status.value,
            "num_requests": self.num_requests,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FeroxScan:
        """Build a scan from its serialised form; unknown or malformed fields keep defaults."""
        scan = cls()
        for key, value in data.items():
            if key == "id" and isinstance(value, str):
                scan.id = value
            elif key == "url" and isinstance(value, str):
                scan.url = value
            elif key == "scan_type" and isinstance(value, str):
                scan.scan_type = (
                    ScanType.DIRECTORY if value == ScanType.DIRECTORY.value else ScanType.FILE
                )
            elif key == "status" and isinstance(value, str):
                try:
                    scan.status = ScanStatus(value)
                except ValueError:
                    scan.status = ScanStatus.NOT_STARTED
            elif (
                key == "num_requests"
                and isinstance(value, int)
                and not isinstance(value, bool)
                and 0 <= value <= _U64_MAX
            ):
                scan.num_requests = value
        return scan