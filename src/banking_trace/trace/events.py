"""
Banking Trace Events

A banking trace records what a validator's banking stage received, in
arrival order:
- Packet batches, tagged with the channel they came in on
- Slot boundaries, emitted as each bank is frozen with its block and bank hash

Each event is stamped with the wall-clock time it was recorded, in integer
nanoseconds since the Unix epoch.
"""

from dataclasses import dataclass
from enum import Enum
from ipaddress import IPv4Address, IPv6Address
from typing import Iterator, Optional, Tuple, Union


class ChannelLabel(Enum):
    """Which banking stage channel a packet batch arrived on."""
    NON_VOTE = 0
    TPU_VOTE = 1
    GOSSIP_VOTE = 2


@dataclass(frozen=True)
class PacketMeta:
    """Packet metadata as recorded by the fetch and sigverify stages."""
    addr: Union[IPv4Address, IPv6Address]
    port: int = 0
    discard: bool = False            # Failed sigverify or was deduplicated
    forwarded: bool = False          # Arrived via another node's forwarding
    from_staked_node: bool = False

    @property
    def flags(self) -> int:
        return int(self.discard) | int(self.forwarded) << 1 | int(self.from_staked_node) << 2


@dataclass(frozen=True)
class Packet:
    """A single received packet."""
    data: bytes
    meta: PacketMeta

    def payload(self) -> Optional[bytes]:
        """Packet data, or None for packets marked discarded."""
        if self.meta.discard:
            return None
        return self.data


@dataclass(frozen=True)
class PacketBatchEvent:
    """One or more packet batches forwarded to banking stage together."""
    channel: ChannelLabel
    batches: Tuple[Tuple[Packet, ...], ...]

    def packets(self) -> Iterator[Packet]:
        for batch in self.batches:
            yield from batch

    @property
    def is_non_vote(self) -> bool:
        return self.channel is ChannelLabel.NON_VOTE


@dataclass(frozen=True)
class SlotBoundaryEvent:
    """A bank was frozen: every packet before this belongs to `slot` or earlier."""
    slot: int
    blockhash: bytes = bytes(32)
    bank_hash: bytes = bytes(32)


TraceEvent = Union[PacketBatchEvent, SlotBoundaryEvent]


@dataclass(frozen=True)
class TimedEvent:
    """A trace event together with its recording time."""
    timestamp_ns: int
    event: TraceEvent
