from typing import NamedTuple


class Row(NamedTuple):
    p: int
    c: int
    r: int

    @property
    def key(self):
        return self.p, self.c


class RowKeyGenerator:
    """Produces rows with strictly increasing, never repeating (p, c) keys.

    Owned by a single writer path for the whole run: the counter is not
    locked, so only one thread may call next_row().
    """

    def __init__(self, start: int = 0):
        self.start = start
        self._next_value = start

    @property
    def issued(self) -> int:
        return self._next_value - self.start

    def next_row(self) -> Row:
        value = self._next_value
        self._next_value += 1
        return Row(value, value, value)

    def __iter__(self):
        return self

    def __next__(self) -> Row:
        return self.next_row()
