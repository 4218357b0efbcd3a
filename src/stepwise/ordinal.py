"""Monotonic 1-based ordinal counter for parameters and columns."""


class Ordinal:
    """Hands out placeholder or column positions in call order.

    A statement owns two of these: one for binding parameters and one for
    reading columns. Not thread-safe and never shared between statements.
    """

    def __init__(self) -> None:
        """Start at ordinal 1."""
        self._next = 1

    def next(self) -> int:
        """Return the current ordinal and advance by one."""
        value = self._next
        self._next += 1
        return value

    def current(self) -> int:
        """Return the ordinal last handed out by ``next()``, or 0 if none."""
        return self._next - 1

    def reset(self) -> None:
        """Rewind to ordinal 1."""
        self._next = 1

    def __repr__(self) -> str:
        return f"Ordinal(next={self._next})"
