"""
Transaction dump.

Prints every non-vote transaction in a time window, optionally narrowed to
transactions touching given accounts or arriving from given IPs. Slot
boundaries are printed inline to show where each slot ends.

Without lookup-table resolution only static account keys are known, so the
account filter and the printed locks cover static keys only.
"""

import logging
from typing import Iterable, Optional, Set, TextIO

from ..core.accounts import AccountLockSet
from ..core.errors import DecodeError, ResolutionError
from ..core.lookup_tables import AddressLookupTableStore
from ..core.resolver import TransactionResolver
from ..trace.events import PacketBatchEvent, SlotBoundaryEvent
from ..trace.timestamps import format_timestamp
from ..trace.window import WindowFilter
from .common import TimeWindowedHandler, STALE_STORE_HINT

logger = logging.getLogger(__name__)


class DumpHandler(TimeWindowedHandler):

    def __init__(self, window: WindowFilter,
                 accounts: Optional[Iterable[str]] = None,
                 ips: Optional[Iterable] = None,
                 store: Optional[AddressLookupTableStore] = None,
                 skip_alt_resolution: bool = False,
                 resolver: Optional[TransactionResolver] = None,
                 out: Optional[TextIO] = None):
        super().__init__(window, out)
        self.accounts: Optional[Set[str]] = set(accounts) if accounts else None
        self.ips: Optional[Set] = set(ips) if ips else None
        self.store = store
        self.skip_alt_resolution = skip_alt_resolution
        self.resolver = resolver or TransactionResolver()
        self.dumped = 0

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        if not event.is_non_vote:
            return

        for packet in event.packets():
            data = packet.payload()
            if data is None:
                continue
            if self.ips is not None and packet.meta.addr not in self.ips:
                continue

            try:
                decoded = self.resolver.decode(data)
            except DecodeError:
                continue

            if self.skip_alt_resolution:
                transaction = decoded.transaction
                writable = transaction.get_writable_accounts()
                locks = AccountLockSet.from_accesses(
                    (key, key in writable) for key in transaction.message.account_keys
                )
            else:
                try:
                    locks = self.resolver.resolve_locks(decoded, self.store)
                except ResolutionError as e:
                    logger.warning("Failed to resolve transaction %s: %s. %s",
                                   decoded.signature[:16], e, STALE_STORE_HINT)
                    continue

            if self.accounts is not None and not self.accounts.intersection(locks.all_accounts()):
                continue

            self.dumped += 1
            self.emit(f"{format_timestamp(timestamp_ns)} - {decoded.signature} "
                      f"priority={decoded.priority} requested_cus={decoded.requested_compute_units} "
                      f"writable=[{', '.join(locks.writable)}] readonly=[{', '.join(locks.readonly)}]")

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        self.emit(f"{format_timestamp(timestamp_ns)} - slot {event.slot}")

    def report(self) -> None:
        pass
