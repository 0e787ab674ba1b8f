"""
Fixed-capacity row buffers used to assemble multi-row writes.
"""

from typing import Any, List, NamedTuple, Optional, Tuple


class BufferedRow(NamedTuple):
    """A flattened row plus the source row of the parent record it came from"""
    source_row: int
    values: Tuple[Any, ...]


class BatchBuffer:
    """
    Ordered buffer that hands out batches of exactly ``capacity`` rows.

    Rows that do not fill a complete batch stay buffered across reads and
    are handed out by ``drain`` once the source is exhausted.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Batch capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._rows: List[BufferedRow] = []

    def __len__(self) -> int:
        return len(self._rows)

    def append(self, source_row: int, values: Tuple[Any, ...]) -> None:
        self._rows.append(BufferedRow(source_row, values))

    def take_full(self) -> Optional[List[BufferedRow]]:
        """
        Slice off the oldest ``capacity`` rows if that many are buffered.

        Call repeatedly: one append round can complete several batches.
        """
        if len(self._rows) < self.capacity:
            return None
        batch = self._rows[:self.capacity]
        self._rows = self._rows[self.capacity:]
        return batch

    def drain(self) -> List[BufferedRow]:
        """Return and clear whatever is left (possibly nothing)"""
        rows, self._rows = self._rows, []
        return rows

    def oldest_source_row(self) -> Optional[int]:
        """Source row of the oldest buffered row, or None when empty"""
        if not self._rows:
            return None
        return self._rows[0].source_row
