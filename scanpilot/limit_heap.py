"""Array-backed binary tree of request-rate values used for auto-tuning."""

from __future__ import annotations

HEAP_SIZE = 255


class LimitHeap:
    """Complete binary tree of requests/second values derived from an original rate.

    Moving to the left child raises the rate and moving to the right child lowers it.
    Each child's value is computed from its node and that node's parent:

    - left:  |parent - current| / 2 + current
    - right: current - |parent - current| / 2
    """

    def __init__(self, original: int = 0) -> None:
        self.inner: list[int] = [0] * HEAP_SIZE
        self.original = original
        self.current = 0

    def __repr__(self) -> str:
        return (
            f"LimitHeap {{ original: {self.original}, current: {self.current}, "
            f"inner: [{self.inner[0]}...] }}"
        )

    def move_right(self) -> int:
        """Move to the right child; return the index the move started from."""
        if self.has_children():
            previous = self.current
            self.current = self.current * 2 + 2
            return previous
        return self.current

    def move_left(self) -> int:
        """Move to the left child; return the index the move started from."""
        if self.has_children():
            previous = self.current
            self.current = self.current * 2 + 1
            return previous
        return self.current

    def move_up(self) -> int:
        """Move to the parent; return the index the move started from."""
        if self.has_parent():
            previous = self.current
            self.current = (self.current - 1) // 2
            return previous
        return self.current

    def move_to(self, index: int) -> None:
        """Move directly to the given index."""
        self.current = index

    def value(self) -> int:
        """Value of the current node."""
        return self.inner[self.current]

    def set_value(self, value: int) -> None:
        """Set the value of the current node."""
        self.inner[self.current] = value

    def has_parent(self) -> bool:
        """True for every node except the root."""
        return self.current > 0

    def parent_value(self) -> int:
        """Value of the current node's parent, or the original rate at the root."""
        if self.has_parent():
            here = self.move_up()
            value = self.value()
            self.move_to(here)
            return value
        return self.original

    def has_children(self) -> bool:
        """True when the current node has children (the tree is complete)."""
        return self.current * 2 + 2 <= len(self.inner)

    def _right_child_value(self) -> int:
        here = self.move_right()
        value = self.value()
        self.move_to(here)
        return value

    def _set_left_child(self) -> None:
        parent = self.parent_value()
        current = self.value()
        value = abs(parent - current) // 2 + current
        self.move_left()
        self.set_value(value)
        self.move_up()

    def _set_right_child(self) -> None:
        parent = self.parent_value()
        current = self.value()
        value = current - abs(parent - current) // 2
        self.move_right()
        self.set_value(value)
        self.move_up()

    def build(self) -> None:
        """Fill every node from the original rate, then return to the root."""
        root = self.original // 2
        self.inner[0] = root
        self.inner[1] = abs(self.original - root) // 2 + root
        self.inner[2] = root - abs(self.original - root) // 2

        for index in range(1, len(self.inner)):
            self.move_to(index)
            if self.has_children() and self._right_child_value() == 0:
                self._set_left_child()
                self._set_right_child()

        self.move_to(0)