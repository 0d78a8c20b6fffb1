"""
Duplicate packet analysis.

Counts how many non-vote packets carried a transaction that had already
been seen, split by whether the repeat came in directly (TPU) or was
forwarded by another node.
"""

from dataclasses import dataclass
from typing import Dict, Optional, TextIO

from ..core.errors import DecodeError
from ..core.transactions import SolanaTransaction
from ..trace.events import PacketBatchEvent, SlotBoundaryEvent
from ..trace.timestamps import format_timestamp
from ..trace.window import WindowFilter
from .common import TimeWindowedHandler, percentage


@dataclass
class DuplicateCheckState:
    initial_forwarded: bool
    duplicate_tpu_count: int = 0
    duplicate_forwarded_count: int = 0


class DuplicateCheckHandler(TimeWindowedHandler):

    def __init__(self, window: WindowFilter, out: Optional[TextIO] = None):
        super().__init__(window, out)
        self.signature_states: Dict[str, DuplicateCheckState] = {}

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        if not event.is_non_vote:
            return

        for packet in event.packets():
            data = packet.payload()
            if data is None:
                continue
            try:
                signature = SolanaTransaction.from_bytes(data).signature
            except DecodeError:
                continue

            forwarded = packet.meta.forwarded
            state = self.signature_states.get(signature)
            if state is None:
                self.signature_states[signature] = DuplicateCheckState(initial_forwarded=forwarded)
            elif forwarded:
                state.duplicate_forwarded_count += 1
            else:
                state.duplicate_tpu_count += 1

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        self.emit(f"{format_timestamp(timestamp_ns)} - {event.slot}")

    def totals(self) -> Dict[str, int]:
        totals = dict.fromkeys([
            'total_packets', 'total_duplicate_packets',
            'total_tpu_packets', 'total_forwarded_packets',
            'duplicate_tpu_packets', 'duplicate_forwarded_packets',
        ], 0)

        for state in self.signature_states.values():
            duplicates = state.duplicate_tpu_count + state.duplicate_forwarded_count
            totals['total_packets'] += 1 + duplicates
            totals['total_duplicate_packets'] += duplicates
            totals['total_tpu_packets'] += state.duplicate_tpu_count + int(not state.initial_forwarded)
            totals['total_forwarded_packets'] += state.duplicate_forwarded_count + int(state.initial_forwarded)
            totals['duplicate_tpu_packets'] += state.duplicate_tpu_count
            totals['duplicate_forwarded_packets'] += state.duplicate_forwarded_count

        return totals

    def report(self) -> None:
        t = self.totals()
        total = t['total_packets']

        self.emit(f"Total packets: {total}")
        self.emit(f"Total duplicate packets: {t['total_duplicate_packets']} "
                  f"({percentage(t['total_duplicate_packets'], total):.2f}%)")
        self.emit(f"Total TPU packets: {t['total_tpu_packets']} "
                  f"({percentage(t['total_tpu_packets'], total):.2f}%)")
        self.emit(f"Total forwarded packets: {t['total_forwarded_packets']} "
                  f"({percentage(t['total_forwarded_packets'], total):.2f}%)")
        self.emit(f"Duplicate TPU packets: {t['duplicate_tpu_packets']} "
                  f"({percentage(t['duplicate_tpu_packets'], t['total_tpu_packets']):.2f}%)")
        self.emit(f"Duplicate forwarded packets: {t['duplicate_forwarded_packets']} "
                  f"({percentage(t['duplicate_forwarded_packets'], t['total_forwarded_packets']):.2f}%)")
