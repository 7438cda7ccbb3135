"""Container of responses seen while scanning."""

from __future__ import annotations

import json
import threading
from typing import Any, Iterator


def _field(response: Any, name: str) -> Any:
    """Read a field from a response given as a mapping or as an object."""
    if isinstance(response, dict):
        return response.get(name)
    return getattr(response, name, None)


def _serialisable(response: Any) -> Any:
    to_dict = getattr(response, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return response


class FeroxResponses:
    """Thread-safe list of responses with insertion, lookup by URL and JSON output."""

    def __init__(self) -> None:
        self.responses: list[Any] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self.responses)

    def __iter__(self) -> Iterator[Any]:
        with self._lock:
            return iter(list(self.responses))

    def insert(self, response: Any) -> None:
        """Add a response to the container."""
        with self._lock:
            self.responses.append(response)

    def contains(self, other: Any) -> bool:
        """True when a response with the same URL as ``other`` is already held."""
        url = _field(other, "url")
        with self._lock:
            return any(_field(response, "url") == url for response in self.responses)

    def to_json(self) -> str:
        """Compact JSON list of every held response."""
        with self._lock:
            items = [_serialisable(response) for response in self.responses]
        return json.dumps(items, separators=(",", ":"))