"""
Refresh the lookup-table store from a trace.

At each slot boundary in the window, collect every lookup table referenced
by that slot's transactions and make sure the store has it. Running this
before another analysis over the same slots lets that analysis resolve v0
transactions.
"""

from typing import List, Optional, Set, TextIO

from ..core.errors import DecodeError
from ..core.lookup_tables import AddressLookupTableStore, UpdateMode
from ..core.transactions import SolanaTransaction
from ..trace.events import Packet
from ..trace.window import WindowFilter
from .common import SlotBufferedHandler


class UpdateAltStoreHandler(SlotBufferedHandler):

    def __init__(self, window: WindowFilter, store: AddressLookupTableStore,
                 mode: UpdateMode = UpdateMode.APPEND, out: Optional[TextIO] = None):
        super().__init__(window, out)
        self.store = store
        self.mode = mode
        self.tables_written = 0

    def handle_slot_packets(self, slot: int, packets: List[Packet]) -> None:
        unique_alts: Set[str] = set()
        for packet in packets:
            data = packet.payload()
            if data is None:
                continue
            try:
                transaction = SolanaTransaction.from_bytes(data)
            except DecodeError:
                continue
            unique_alts.update(lookup.account_key for lookup in transaction.message.address_table_lookups)

        self.emit(f"Fetching {len(unique_alts)} ALTs for slot {slot}")
        self.tables_written += self.store.update(sorted(unique_alts), self.mode)

    def report(self) -> None:
        self.emit(f"Lookup table store now holds {len(self.store)} tables ({self.tables_written} written)")
