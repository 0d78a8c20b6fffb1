"""
Window filtering for trace replay.

An analysis usually cares about part of a trace: a slot range or a time
range, both inclusive. The filter moves through three states as positions
are fed to it in trace order:

    not started -> active -> done

Both transitions latch. Once started, a filter never un-starts, and once
done it stays done. Replay is not stopped when the filter is done.
Callers keep feeding it, and it keeps answering "inactive".
"""

from enum import Enum
from typing import Optional


class WindowMode(Enum):
    SLOT = "slot"
    TIMESTAMP = "timestamp"


class WindowFilter:
    """
    Inclusive [start, end] gate over slots or nanosecond timestamps.

    Either bound may be None, meaning unbounded on that side.
    """

    def __init__(self, mode: WindowMode, start: Optional[int] = None, end: Optional[int] = None):
        self.mode = mode
        self.start = start
        self.end = end
        self.started = start is None
        self.done = False

    @classmethod
    def for_slots(cls, start_slot: Optional[int] = None, end_slot: Optional[int] = None) -> 'WindowFilter':
        return cls(WindowMode.SLOT, start_slot, end_slot)

    @classmethod
    def for_timestamps(cls, start_ns: Optional[int] = None, end_ns: Optional[int] = None) -> 'WindowFilter':
        return cls(WindowMode.TIMESTAMP, start_ns, end_ns)

    @property
    def active(self) -> bool:
        return self.started and not self.done

    def advance(self, position: int) -> bool:
        """Observe the next position in trace order and return `active`."""
        if not self.started and position >= self.start:
            self.started = True
        if not self.done and self.end is not None and position > self.end:
            self.done = True
        return self.active

    def contains(self, position: int) -> bool:
        """Pure range test, independent of the latched state."""
        if self.start is not None and position < self.start:
            return False
        return self.end is None or position <= self.end

    def __repr__(self) -> str:
        return (f"WindowFilter({self.mode.value}, start={self.start}, end={self.end}, "
                f"started={self.started}, done={self.done})")
