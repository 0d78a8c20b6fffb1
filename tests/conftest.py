"""
Shared fixtures: keys, signed transactions, trace files and an offline
lookup-table fetcher.
"""

from ipaddress import ip_address
from typing import Dict, List, Optional

import pytest

from banking_trace.core.accounts import AccountMeta
from banking_trace.core.compute_budget import set_compute_unit_limit, set_compute_unit_price
from banking_trace.core.transactions import (
    Instruction,
    SolanaTransaction,
    TransactionBuilder,
    generate_keypair,
    sign_transaction,
)
from banking_trace.trace.codec import TraceWriter
from banking_trace.trace.events import (
    ChannelLabel,
    Packet,
    PacketBatchEvent,
    PacketMeta,
    SlotBoundaryEvent,
    TimedEvent,
)

PROGRAM_ID = "aa" * 32
BLOCKHASH = "11" * 32


def key(n: int) -> str:
    """Deterministic hex account key, distinct from every builtin program id."""
    return (bytes([0xb0, n]) * 16).hex()


def make_transaction(writable=(), readonly=(), price: Optional[int] = None,
                     limit: Optional[int] = None, lookups=()) -> SolanaTransaction:
    """
    A signed transaction from a fresh fee payer.

    One instruction of PROGRAM_ID touches the given accounts. Lookups are
    (table key, writable indexes, readonly indexes) triples.
    """
    signing_key, payer = generate_keypair()

    accounts = [AccountMeta(account, is_signer=False, is_writable=True) for account in writable]
    accounts += [AccountMeta(account, is_signer=False, is_writable=False) for account in readonly]

    builder = TransactionBuilder(payer, BLOCKHASH)
    if price is not None:
        builder.add_instruction(set_compute_unit_price(price))
    if limit is not None:
        builder.add_instruction(set_compute_unit_limit(limit))
    builder.add_instruction(Instruction(PROGRAM_ID, accounts, b"\x01"))
    for table_key, writable_indexes, readonly_indexes in lookups:
        builder.add_address_table_lookup(table_key, writable_indexes, readonly_indexes)

    return sign_transaction(builder.build(), [signing_key])


def packet(data: bytes, addr: str = "10.0.0.1", forwarded: bool = False,
           staked: bool = False, discard: bool = False) -> Packet:
    meta = PacketMeta(ip_address(addr), 8001, discard=discard,
                      forwarded=forwarded, from_staked_node=staked)
    return Packet(data, meta)


def batch(timestamp_ns: int, *packets: Packet, channel: ChannelLabel = ChannelLabel.NON_VOTE) -> TimedEvent:
    return TimedEvent(timestamp_ns, PacketBatchEvent(channel, (tuple(packets),)))


def boundary(timestamp_ns: int, slot: int) -> TimedEvent:
    return TimedEvent(timestamp_ns, SlotBoundaryEvent(slot))


class MemoryFetcher:
    """Serves lookup tables from a dict and records every request."""

    def __init__(self, tables: Dict[str, List[str]]):
        self.tables = tables
        self.requests: List[List[str]] = []

    def __call__(self, table_keys: List[str]) -> Dict[str, List[str]]:
        self.requests.append(list(table_keys))
        return {k: self.tables[k] for k in table_keys if k in self.tables}


@pytest.fixture
def keypair():
    return generate_keypair()


@pytest.fixture
def transaction_factory():
    return make_transaction


@pytest.fixture
def write_trace(tmp_path):
    """Write events to a numbered trace file under tmp_path and return its path."""
    counter = [0]

    def write(events, name: Optional[str] = None):
        counter[0] += 1
        path = tmp_path / (name or f"trace-{counter[0]}.bin")
        with TraceWriter.open(path) as writer:
            for event in events:
                writer.write(event)
        return path

    return write


@pytest.fixture
def memory_fetcher():
    return MemoryFetcher
