"""Container of all known scans plus the pause and interactive cancellation logic."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from http import HTTPStatus

from scanpilot.menu import Menu
from scanpilot.scan import (
    FeroxScan,
    OutputLevel,
    ProgressBar,
    ScanOrder,
    ScanType,
)

log = logging.getLogger(__name__)

SLEEP_DURATION = 0.5  # seconds between checks while paused


class _PauseState:
    """Process-wide pause flag and the barrier picking the thread that shows the menu."""

    def __init__(self) -> None:
        self.paused = False
        self.barrier = 0
        self.lock = threading.Lock()


_STATE = _PauseState()


def set_pause(value: bool) -> None:
    """Pause (True) or resume (False) every scan."""
    with _STATE.lock:
        _STATE.paused = bool(value)


def is_paused() -> bool:
    """Whether scans are currently paused."""
    with _STATE.lock:
        return _STATE.paused


class FeroxScans:
    """Ordered collection of scans with lookup, insertion and cancellation helpers."""

    sleep_duration: float = SLEEP_DURATION

    def __init__(
        self,
        output_level: OutputLevel = OutputLevel.DEFAULT,
        menu: Menu | None = None,
    ) -> None:
        self.scans: list[FeroxScan] = []
        self.menu = menu if menu is not None else Menu()
        self.bar_length = 0
        self.output_level = output_level
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self.scans)

    def _snapshot(self) -> list[FeroxScan]:
        with self._lock:
            return list(self.scans)

    def insert(self, scan: FeroxScan) -> bool:
        """Add a scan unless one with the same URL exists; return whether it was added."""
        with self._lock:
            if self.contains(scan.url):
                return False
            self.scans.append(scan)
            return True

    def add_serialized_scans(self, filename: str) -> None:
        """Load the scans stored under ``"scans"`` in a JSON state file."""
        with open(filename, encoding="utf-8") as handle:
            state = json.load(handle)

        entries = state.get("scans") if isinstance(state, dict) else None
        if not isinstance(entries, list):
            return

        for entry in entries:
            scan = FeroxScan.from_dict(entry) if isinstance(entry, dict) else FeroxScan()
            # the current configuration decides the output level, not the saved one
            scan.output_level = self.output_level
            log.debug("added: %s", scan)
            self.insert(scan)

    def contains(self, url: str) -> bool:
        """Whether a scan for exactly this URL is known."""
        return any(scan.url == url for scan in self._snapshot())

    def get_scan_by_url(self, url: str) -> FeroxScan | None:
        """Return the scan for exactly this URL, if any."""
        return next((scan for scan in self._snapshot() if scan.url == url), None)

    def get_base_scan_by_url(self, url: str) -> FeroxScan | None:
        """Return the deepest known scan whose URL is a directory prefix of ``url``."""
        scans = self._snapshot()
        cut = url.rfind("/")
        while cut != -1:
            prefix = url[:cut]
            for scan in scans:
                if scan.url == prefix or scan.url == f"{prefix}/":
                    return scan
            cut = url.rfind("/", 0, cut)
        return None

    def increment_status_code(self, url: str, code: int) -> None:
        """Count a 403 or 429 against the scan that ``url`` belongs to."""
        scan = self.get_base_scan_by_url(url)
        if scan is None:
            return
        if code == HTTPStatus.TOO_MANY_REQUESTS:
            scan.add_429()
        elif code == HTTPStatus.FORBIDDEN:
            scan.add_403()

    def increment_error(self, url: str) -> None:
        """Count an error against the scan that ``url`` belongs to."""
        scan = self.get_base_scan_by_url(url)
        if scan is not None:
            scan.add_error()

    async def display_scans(self) -> None:
        """Print every cancellable directory scan with its index."""
        for index, scan in enumerate(self._snapshot()):
            if scan.scan_order is ScanOrder.INITIAL or scan.task_lock.locked():
                continue
            if scan.scan_type is ScanType.DIRECTORY:
                self.menu.println(f"{index:3}: {scan}")

    async def cancel_scans(self, indexes: list[int], force: bool) -> int:
        """Cancel the scans at the given indexes; return the number of requests skipped."""
        num_cancelled = 0
        for num in indexes:
            with self._lock:
                selected = self.scans[num] if num < len(self.scans) else None

            if selected is None:
                self.menu.println(f"The number {num} is not a valid choice.")
                await asyncio.sleep(self.sleep_duration)
                continue

            answer = "y" if force else self.menu.confirm_cancellation(selected.url)

            if answer in ("y", "\n"):
                self.menu.println(f"Stopping {selected.url}...")
                try:
                    await selected.abort()
                except Exception as exc:  # noqa: BLE001
                    log.warning("Could not cancel task: %s", exc)
                bar = selected.get_progress_bar()
                num_cancelled += bar.length - bar.position
            else:
                self.menu.println("Ok, doing nothing...")

            await asyncio.sleep(self.sleep_duration)

        return num_cancelled

    async def interactive_menu(self) -> int:
        """Show the cancellation menu and cancel what the user picks."""
        self.menu.clear_screen()
        self.menu.print_header()
        await self.display_scans()
        self.menu.print_footer()

        num_cancelled = 0
        selection = self.menu.get_scans_from_user()
        if selection is not None:
            indexes, force = selection
            num_cancelled += await self.cancel_scans(indexes, force)

        self.menu.clear_screen()
        return num_cancelled

    async def pause(self, get_user_input: bool) -> int:
        """Wait while scans are paused; the first caller may show the menu.

        Returns the number of requests skipped by cancellations made from the menu.
        """
        num_cancelled = 0

        with _STATE.lock:
            first = _STATE.barrier == 0
            if first:
                _STATE.barrier += 1

        if first and get_user_input:
            num_cancelled += await self.interactive_menu()
            set_pause(False)

        while True:
            if not is_paused():
                with _STATE.lock:
                    if _STATE.barrier == 1:
                        _STATE.barrier -= 1
                return num_cancelled
            await asyncio.sleep(self.sleep_duration)

    def set_bar_length(self, bar_length: int) -> None:
        """Set the number of requests expected per scan."""
        with self._lock:
            self.bar_length = bar_length

    def add_scan(
        self, url: str, scan_type: ScanType, scan_order: ScanOrder
    ) -> tuple[bool, FeroxScan]:
        """Create a scan for ``url`` and add it; return whether it was new, and the scan."""
        with self._lock:
            bar_length = self.bar_length

        bar = ProgressBar(bar_length) if scan_type is ScanType.DIRECTORY else None
        scan = FeroxScan(url, scan_type, scan_order, bar_length, self.output_level, bar)
        return self.insert(scan), scan

    def add_directory_scan(self, url: str, scan_order: ScanOrder) -> tuple[bool, FeroxScan]:
        return self.add_scan(url, ScanType.DIRECTORY, scan_order)

    def add_file_scan(self, url: str, scan_order: ScanOrder) -> tuple[bool, FeroxScan]:
        return self.add_scan(url, ScanType.FILE, scan_order)

    def has_active_scans(self) -> bool:
        return any(scan.is_active() for scan in self._snapshot())

    def get_active_scans(self) -> list[FeroxScan]:
        return [scan for scan in self._snapshot() if scan.is_active()]

    def to_json(self) -> str:
        """Compact JSON list of every scan's serialised form."""
        return json.dumps(
            [scan.to_dict() for scan in self._snapshot()], separators=(",", ":")
        )