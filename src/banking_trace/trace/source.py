"""
Event replay over a sequence of trace files.

Files are replayed in the order given, each from start to end. Replay is
never cut short. Handlers that have seen everything they need simply
ignore the rest.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, TypeVar

from .codec import read_events
from .events import PacketBatchEvent, SlotBoundaryEvent, TimedEvent

logger = logging.getLogger(__name__)


def iterate_event_files(paths: Iterable) -> Iterator[TimedEvent]:
    """
    Lazily yield every event from `paths`, file order then in-file order.

    Raises:
        OSError: if a file cannot be opened or read
        TraceFormatError: if a file is not a banking trace
    """
    for path in paths:
        path = Path(path)
        logger.debug("Replaying %s", path)
        with open(path, 'rb') as stream:
            yield from read_events(stream, name=str(path))


class TraceEventHandler:
    """
    Base class for anything that folds over a trace.

    Subclasses override the two per-kind hooks and `report`. Dispatch is
    over the closed set of event kinds in `trace.events`.
    """

    def handle_event(self, timed: TimedEvent) -> None:
        event = timed.event
        if isinstance(event, PacketBatchEvent):
            self.handle_packet_batch(timed.timestamp_ns, event)
        elif isinstance(event, SlotBoundaryEvent):
            self.handle_slot_boundary(timed.timestamp_ns, event)
        else:
            raise TypeError(f"Unknown trace event type: {type(event).__name__}")

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        pass

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        pass

    def report(self) -> None:
        raise NotImplementedError


H = TypeVar('H', bound=TraceEventHandler)


def process_event_files(paths: Iterable, handler: H) -> H:
    """Feed every event in `paths` to `handler` and return it."""
    count = 0
    for timed in iterate_event_files(paths):
        handler.handle_event(timed)
        count += 1
    logger.info("Replayed %d events", count)
    return handler
