"""
Shared plumbing for trace analyses.
"""

import logging
import sys
from typing import Iterable, Iterator, List, Optional, TextIO

from ..core.errors import DecodeError, ResolutionError
from ..core.lookup_tables import AddressLookupTableStore
from ..core.resolver import DecodedTransaction, TransactionResolver
from ..trace.events import Packet, PacketBatchEvent, TimedEvent
from ..trace.source import TraceEventHandler
from ..trace.window import WindowFilter

logger = logging.getLogger(__name__)

STALE_STORE_HINT = "Possibly need to update the alt-store first."


def percentage(part: int, whole: int) -> float:
    return 100.0 * part / whole if whole else 0.0


def decode_packets(packets: Iterable[Packet], resolver: TransactionResolver) -> Iterator[DecodedTransaction]:
    """Decode packets, skipping discarded and undecodable ones."""
    for packet in packets:
        data = packet.payload()
        if data is None:
            continue
        try:
            yield resolver.decode(data)
        except DecodeError as e:
            logger.debug("Skipping undecodable packet from %s: %s", packet.meta.addr, e)


def resolve_packets(packets: Iterable[Packet], resolver: TransactionResolver,
                    store: Optional[AddressLookupTableStore]) -> Iterator[DecodedTransaction]:
    """
    Decode packets and resolve their locks.

    Transactions whose locks cannot be resolved are left out: they cannot
    be placed in a schedule or tallied without knowing every account they
    touch.
    """
    for decoded in decode_packets(packets, resolver):
        try:
            decoded.locks = resolver.resolve_locks(decoded, store)
        except ResolutionError as e:
            logger.warning("Failed to resolve transaction %s: %s. %s",
                           decoded.signature[:16], e, STALE_STORE_HINT)
            continue
        yield decoded


class ReportingHandler(TraceEventHandler):
    """A handler that prints its report to `out` (stdout by default)."""

    def __init__(self, out: Optional[TextIO] = None):
        self.out = out

    def emit(self, line: str = "") -> None:
        print(line, file=self.out or sys.stdout)


class TimeWindowedHandler(ReportingHandler):
    """
    Gates every event through a timestamp window before dispatching it.
    """

    def __init__(self, window: WindowFilter, out: Optional[TextIO] = None):
        super().__init__(out)
        self.window = window

    def handle_event(self, timed: TimedEvent) -> None:
        if self.window.done:
            return
        if self.window.advance(timed.timestamp_ns):
            super().handle_event(timed)


class SlotBufferedHandler(ReportingHandler):
    """
    Buffers non-vote packets until the slot boundary that closes them.

    Packets recorded before `SlotBoundary(slot)` belong to `slot`. The
    buffer is handed to `handle_slot_packets` for slots inside the window,
    and dropped for slots outside it. Once a boundary past the window's end
    is seen, the handler ignores the rest of the trace.
    """

    def __init__(self, window: WindowFilter, out: Optional[TextIO] = None):
        super().__init__(out)
        self.window = window
        self.pending: List[Packet] = []

    def handle_event(self, timed: TimedEvent) -> None:
        if self.window.done:
            return
        super().handle_event(timed)

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        if event.is_non_vote:
            self.pending.extend(event.packets())

    def handle_slot_boundary(self, timestamp_ns, event) -> None:
        self.window.advance(event.slot)
        packets, self.pending = self.pending, []
        if self.window.contains(event.slot):
            self.handle_slot_packets(event.slot, packets)

    def handle_slot_packets(self, slot: int, packets: List[Packet]) -> None:
        raise NotImplementedError
