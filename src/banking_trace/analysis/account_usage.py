"""
Account usage statistics over a slot range.

For every account locked by a non-vote transaction in the range, tally how
often it was read and written, and the priority and requested compute units
of the transactions that touched it. Heavily written accounts are the
contention hot spots that serialize a block.

Every slot in the window is aggregated, not only the last one.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from ..core.lookup_tables import AddressLookupTableStore
from ..core.resolver import TransactionResolver
from ..trace.events import Packet
from ..trace.window import WindowFilter
from .common import SlotBufferedHandler, resolve_packets


@dataclass
class AccountUsageStatistics:
    key: str

    num_reads: int = 0
    num_writes: int = 0

    min_priority: Optional[int] = None
    sum_priority: int = 0
    max_priority: int = 0

    min_requested_cus: Optional[int] = None
    sum_requested_cus: int = 0
    max_requested_cus: int = 0

    def update(self, is_write: bool, priority: int, requested_cus: int) -> None:
        if is_write:
            self.num_writes += 1
        else:
            self.num_reads += 1

        self.min_priority = priority if self.min_priority is None else min(self.min_priority, priority)
        self.sum_priority += priority
        self.max_priority = max(self.max_priority, priority)

        self.min_requested_cus = (requested_cus if self.min_requested_cus is None
                                  else min(self.min_requested_cus, requested_cus))
        self.sum_requested_cus += requested_cus
        self.max_requested_cus = max(self.max_requested_cus, requested_cus)

    @property
    def num_transactions(self) -> int:
        return self.num_reads + self.num_writes

    def format(self) -> str:
        count = self.num_transactions
        avg_priority = self.sum_priority // count
        avg_requested_cus = self.sum_requested_cus // count
        return (f"{self.key}: [{self.num_reads}, {self.num_writes}] "
                f"priority: [{self.min_priority}, {avg_priority}, {self.max_priority}] "
                f"requested_cus: [{self.min_requested_cus}, {avg_requested_cus}, {self.max_requested_cus}]")


class AccountUsageHandler(SlotBufferedHandler):
    """Tallies per-account read/write usage across a slot window."""

    def __init__(self, window: WindowFilter, store: Optional[AddressLookupTableStore],
                 resolver: Optional[TransactionResolver] = None, out: Optional[TextIO] = None):
        super().__init__(window, out)
        self.store = store
        self.resolver = resolver or TransactionResolver()
        self.statistics: Dict[str, AccountUsageStatistics] = {}
        self.slots_seen = 0

    def handle_slot_packets(self, slot: int, packets: List[Packet]) -> None:
        self.slots_seen += 1
        for decoded in resolve_packets(packets, self.resolver, self.store):
            for account, is_write in decoded.locks.accesses():
                statistics = self.statistics.get(account)
                if statistics is None:
                    statistics = self.statistics[account] = AccountUsageStatistics(account)
                statistics.update(is_write, decoded.priority, decoded.requested_compute_units)

    def sorted_statistics(self) -> List[AccountUsageStatistics]:
        """Most-written accounts first; ties keep first-seen order."""
        return sorted(self.statistics.values(), key=lambda s: -s.num_writes)

    def report(self) -> None:
        self.emit(f"Total unique accounts: {len(self.statistics)}")
        for statistics in self.sorted_statistics():
            self.emit(statistics.format())
