"""
Trace coverage: which slots and which stretch of time a trace spans.
"""

from typing import List, Optional, TextIO, Tuple

from ..trace.events import TimedEvent, SlotBoundaryEvent
from ..trace.timestamps import format_timestamp
from .common import ReportingHandler


class SlotRangesHandler(ReportingHandler):
    """
    Prints each run of consecutive slot boundaries as `start-end`.

    A gap (skipped slot, restart, fork switch) closes the current run and
    is printed as soon as it is seen.
    """

    def __init__(self, out: Optional[TextIO] = None):
        super().__init__(out)
        self.current_range: Optional[Tuple[int, int]] = None
        self.ranges: List[Tuple[int, int]] = []

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        slot = event.slot
        if self.current_range is not None:
            start_slot, end_slot = self.current_range
            if end_slot + 1 == slot:
                self.current_range = (start_slot, slot)
                return
            self._close_current_range()
        self.current_range = (slot, slot)

    def _close_current_range(self) -> None:
        if self.current_range is not None:
            self.ranges.append(self.current_range)
            start_slot, end_slot = self.current_range
            self.emit(f"{start_slot}-{end_slot}")

    def report(self) -> None:
        self._close_current_range()
        self.current_range = None


class TimeRangeHandler(ReportingHandler):
    """Earliest and latest event timestamps in a trace."""

    def __init__(self, out: Optional[TextIO] = None):
        super().__init__(out)
        self.min_ns: Optional[int] = None
        self.max_ns: Optional[int] = None

    def handle_event(self, timed: TimedEvent) -> None:
        ts = timed.timestamp_ns
        self.min_ns = ts if self.min_ns is None else min(self.min_ns, ts)
        self.max_ns = ts if self.max_ns is None else max(self.max_ns, ts)

    def report(self) -> None:
        if self.min_ns is None:
            self.emit("No events")
            return
        self.emit(f"{format_timestamp(self.min_ns)} - {format_timestamp(self.max_ns)}")
