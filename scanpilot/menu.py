"""Interactive menu for cancelling running scans."""

from __future__ import annotations

import re
import sys
import unicodedata
from typing import TextIO

_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_UNSIGNED = re.compile(r"\+?[0-9]+")
_SEPARATOR = "─"


def _text_width(text: str) -> int:
    """Display width of text, ignoring ANSI styling."""
    width = 0
    for char in _ANSI.sub("", text):
        if unicodedata.combining(char):
            continue
        width += 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1
    return width


def _center(text: str, width: int) -> str:
    diff = width - _text_width(text)
    if diff <= 0:
        return text
    left = diff // 2
    return " " * left + text + " " * (diff - left)


class Menu:
    """Scan cancellation menu that writes to one stream and reads from another."""

    def __init__(self, output: TextIO | None = None, input_stream: TextIO | None = None) -> None:
        self.output = output if output is not None else sys.stderr
        self.input_stream = input_stream if input_stream is not None else sys.stdin
        isatty = getattr(self.output, "isatty", None)
        self._colors = bool(isatty and isatty())

        self.separator = _SEPARATOR
        self.instructions = (
            f"Enter a {self._style('comma-separated', '33')} list of indexes/ranges to "
            f"{self._style('cancel', '31')} ({self._style('ex', '36')}: 1-4,8,9-13)"
        )
        self.name = f"💀 {self._style('Scan Cancel Menu', '93')} 💀"
        force_msg = (
            f"Add {self._style('-f', '33')} to {self._style('skip', '33')} confirmation "
            f"({self._style('ex', '36')}: 3-5 -f)"
        )

        longest = max(_text_width(self.instructions), _text_width(self.name))
        border = self.separator * longest

        self.header = f"{border}\n{_center(self.name, longest)}\n{border}"
        self.footer = (
            f"{border}\n{self.instructions}\n{_center(force_msg, longest)}\n{border}"
        )

    def _style(self, text: str, code: str) -> str:
        if not self._colors:
            return text
        return f"\x1b[{code}m{text}\x1b[0m"

    def print_header(self) -> None:
        self.println(self.header)

    def print_footer(self) -> None:
        self.println(self.footer)

    def clear_screen(self) -> None:
        """Clear the terminal, when writing to one."""
        if self._colors:
            self.output.write("\x1b[2J\x1b[1;1H")
        self.output.flush()

    def println(self, msg: str) -> None:
        self.output.write(f"{msg}\n")
        self.output.flush()

    def _str_to_int(self, value: str) -> int:
        if not value:
            return 0
        trimmed = value.strip()
        if _UNSIGNED.fullmatch(trimmed):
            return int(trimmed)
        self.println(f"Found non-numeric input: {value!r}")
        return 0

    def split_to_nums(self, line: str) -> list[int]:
        """Turn a comma-separated list of indexes and ranges into unique indexes.

        Zero is never selected; ranges are inclusive and an invalid range is reported
        and skipped.
        """
        nums: list[int] = []
        for raw in line.split(","):
            value = raw.strip()
            if "-" in value:
                bounds = [n for n in (self._str_to_int(part) for part in value.split("-")) if n]
                if len(bounds) != 2:
                    self.println(f"Found invalid range of scans: {value}")
                    continue
                for n in range(bounds[0], bounds[1] + 1):
                    if n not in nums:
                        nums.append(n)
            else:
                n = self._str_to_int(value)
                if n and n not in nums:
                    nums.append(n)
        return nums

    def get_scans_from_user(self) -> tuple[list[int], bool] | None:
        """Read a line of indexes; return them with whether ``-f`` was given."""
        try:
            line = self.input_stream.readline()
        except OSError:
            return None
        line = line.rstrip("\r\n")
        force = "-f" in line
        return self.split_to_nums(line.replace("-f", "")), force

    def confirm_cancellation(self, url: str) -> str:
        """Ask whether to cancel the scan of ``url``; return the answer character."""
        self.println(f"You sure you wanna cancel this scan: {url}? [Y/n]")
        try:
            char = self.input_stream.read(1)
        except OSError:
            return "n"
        return char or "n"