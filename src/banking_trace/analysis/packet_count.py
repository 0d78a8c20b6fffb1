"""
Packet counts by origin.

Breaks non-vote traffic down by validity, TPU vs forwarded, stake and
uniqueness, and tallies packets per source IP.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Dict, Optional, Set, TextIO, Union

from ..core.errors import DecodeError
from ..core.transactions import SolanaTransaction
from ..trace.events import PacketBatchEvent, SlotBoundaryEvent
from ..trace.timestamps import format_timestamp
from ..trace.window import WindowFilter
from .common import TimeWindowedHandler

IpAddr = Union[IPv4Address, IPv6Address]
TOP_IP_COUNT = 5


@dataclass
class IpPacketCounts:
    total: int = 0
    unique: int = 0
    staked: int = 0


@dataclass
class PacketMetrics:
    total_count: int = 0
    valid_count: int = 0
    valid_unique_count: int = 0

    tpu_count: int = 0
    fwd_count: int = 0

    staked_count: int = 0
    staked_tpu_count: int = 0
    staked_fwd_count: int = 0

    tpu_unique_count: int = 0
    fwd_unique_count: int = 0

    tpu_staked_unique_count: int = 0
    fwd_staked_unique_count: int = 0

    total_ip_counts: Dict[IpAddr, IpPacketCounts] = field(default_factory=lambda: defaultdict(IpPacketCounts))
    tpu_ip_counts: Dict[IpAddr, IpPacketCounts] = field(default_factory=lambda: defaultdict(IpPacketCounts))
    fwd_ip_counts: Dict[IpAddr, IpPacketCounts] = field(default_factory=lambda: defaultdict(IpPacketCounts))

    signature_set: Set[str] = field(default_factory=set)


class PacketCountHandler(TimeWindowedHandler):

    def __init__(self, window: WindowFilter, out: Optional[TextIO] = None):
        super().__init__(window, out)
        self.metrics = PacketMetrics()

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        if not event.is_non_vote:
            return

        m = self.metrics
        for packet in event.packets():
            m.total_count += 1

            meta = packet.meta
            valid = not meta.discard
            staked = meta.from_staked_node
            forwarded = meta.forwarded

            data = packet.payload()
            unique = False
            if data is not None:
                try:
                    signature = SolanaTransaction.from_bytes(data).signature
                except DecodeError:
                    continue
                unique = signature not in m.signature_set
                m.signature_set.add(signature)

            m.valid_count += valid
            m.valid_unique_count += valid and unique

            m.tpu_count += valid and not forwarded
            m.fwd_count += valid and forwarded

            m.staked_count += valid and staked
            m.staked_tpu_count += valid and staked and not forwarded
            m.staked_fwd_count += valid and staked and forwarded

            m.tpu_unique_count += valid and not forwarded and unique
            m.fwd_unique_count += valid and forwarded and unique

            m.tpu_staked_unique_count += valid and not forwarded and staked and unique
            m.fwd_staked_unique_count += valid and forwarded and staked and unique

            by_channel = m.fwd_ip_counts if forwarded else m.tpu_ip_counts
            for ip_counts in (m.total_ip_counts, by_channel):
                counts = ip_counts[meta.addr]
                counts.total += 1
                counts.unique += valid and unique
                counts.staked += valid and staked

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        self.emit(f"{format_timestamp(timestamp_ns)} - {event.slot}")

    def _report_top_ips(self, ip_counts: Dict[IpAddr, IpPacketCounts]) -> None:
        ranked = sorted(ip_counts.items(), key=lambda item: item[1].total, reverse=True)
        for ip, counts in ranked[:TOP_IP_COUNT]:
            self.emit(f"  {ip}: total={counts.total} unique={counts.unique} staked={counts.staked}")

    def report(self) -> None:
        m = self.metrics
        self.emit(f"Total packets: {m.total_count}")
        self.emit(f"Valid packets: {m.valid_count}")
        self.emit(f"Valid unique packets: {m.valid_unique_count}")
        self.emit(f"TPU packets: {m.tpu_count}")
        self.emit(f"FWD packets: {m.fwd_count}")
        self.emit(f"Staked packets: {m.staked_count}")
        self.emit(f"TPU staked packets: {m.staked_tpu_count}")
        self.emit(f"FWD staked packets: {m.staked_fwd_count}")
        self.emit(f"TPU unique packets: {m.tpu_unique_count}")
        self.emit(f"FWD unique packets: {m.fwd_unique_count}")
        self.emit(f"TPU staked unique packets: {m.tpu_staked_unique_count}")
        self.emit(f"FWD staked unique packets: {m.fwd_staked_unique_count}")
        self.emit(f"Unique IPs: {len(m.total_ip_counts)}")
        self.emit(f"TPU IPs: {len(m.tpu_ip_counts)}")
        self.emit(f"FWD IPs: {len(m.fwd_ip_counts)}")

        self.emit(f"Top {TOP_IP_COUNT} IPs by total packets:")
        self._report_top_ips(m.total_ip_counts)
        self.emit(f"Top {TOP_IP_COUNT} IPs by TPU packets:")
        self._report_top_ips(m.tpu_ip_counts)
        self.emit(f"Top {TOP_IP_COUNT} IPs by FWD packets:")
        self._report_top_ips(m.fwd_ip_counts)
