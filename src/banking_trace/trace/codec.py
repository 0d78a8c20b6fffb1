"""
Banking Trace File Format

A trace file is a short header followed by length-prefixed records, so a
reader can step over a record it cannot make sense of:

    file    := b"BTRC", u16 version, record*
    record  := u32 payload_len, payload
    payload := u64 timestamp_ns, u8 kind, body

    kind 0 (packet batch):
        u8 channel, u32 num_batches,
        batch  := u32 num_packets, packet*
        packet := u8 flags, u8 ip_version, addr[4|16], u16 port, u16 data_len, data
    kind 1 (slot boundary):
        u64 slot, blockhash[32], bank_hash[32]

All integers are little-endian. Packet flags: bit 0 discard, bit 1 forwarded,
bit 2 from a staked node.
"""

import logging
import struct
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path
from typing import BinaryIO, Iterator

from ..core.errors import TraceFormatError
from .events import (
    ChannelLabel,
    Packet,
    PacketBatchEvent,
    PacketMeta,
    SlotBoundaryEvent,
    TimedEvent,
)

logger = logging.getLogger(__name__)

MAGIC = b"BTRC"
FORMAT_VERSION = 1

KIND_PACKET_BATCH = 0
KIND_SLOT_BOUNDARY = 1

_FILE_HEADER = struct.Struct('<4sH')
_RECORD_LEN = struct.Struct('<I')
_RECORD_HEAD = struct.Struct('<QB')
_BATCH_HEAD = struct.Struct('<BI')
_COUNT = struct.Struct('<I')
_PACKET_HEAD = struct.Struct('<BB')
_PACKET_TAIL = struct.Struct('<HH')
_SLOT = struct.Struct('<Q32s32s')

_FLAG_DISCARD = 0b001
_FLAG_FORWARDED = 0b010
_FLAG_STAKED = 0b100


def encode_event(timed: TimedEvent) -> bytes:
    """Encode a timed event as a record payload (without its length prefix)."""
    event = timed.event
    if isinstance(event, PacketBatchEvent):
        parts = [_RECORD_HEAD.pack(timed.timestamp_ns, KIND_PACKET_BATCH),
                 _BATCH_HEAD.pack(event.channel.value, len(event.batches))]
        for batch in event.batches:
            parts.append(_COUNT.pack(len(batch)))
            for packet in batch:
                addr = packet.meta.addr
                parts.append(_PACKET_HEAD.pack(packet.meta.flags, addr.version))
                parts.append(addr.packed)
                parts.append(_PACKET_TAIL.pack(packet.meta.port, len(packet.data)))
                parts.append(packet.data)
        return b''.join(parts)

    if isinstance(event, SlotBoundaryEvent):
        return (_RECORD_HEAD.pack(timed.timestamp_ns, KIND_SLOT_BOUNDARY)
                + _SLOT.pack(event.slot, event.blockhash, event.bank_hash))

    raise TypeError(f"Unknown trace event type: {type(event).__name__}")


def decode_event(payload: bytes) -> TimedEvent:
    """
    Decode one record payload.

    Raises:
        TraceFormatError: if the payload is malformed
    """
    try:
        timestamp_ns, kind = _RECORD_HEAD.unpack_from(payload, 0)
        offset = _RECORD_HEAD.size

        if kind == KIND_SLOT_BOUNDARY:
            slot, blockhash, bank_hash = _SLOT.unpack_from(payload, offset)
            offset += _SLOT.size
            event = SlotBoundaryEvent(slot, blockhash, bank_hash)

        elif kind == KIND_PACKET_BATCH:
            channel_value, num_batches = _BATCH_HEAD.unpack_from(payload, offset)
            offset += _BATCH_HEAD.size
            channel = ChannelLabel(channel_value)

            batches = []
            for _ in range(num_batches):
                (num_packets,) = _COUNT.unpack_from(payload, offset)
                offset += _COUNT.size
                packets = []
                for _ in range(num_packets):
                    packet, offset = _decode_packet(payload, offset)
                    packets.append(packet)
                batches.append(tuple(packets))
            event = PacketBatchEvent(channel, tuple(batches))

        else:
            raise TraceFormatError(f"Unknown record kind {kind}")

    except struct.error as e:
        raise TraceFormatError(f"Truncated record: {e}") from e
    except ValueError as e:
        raise TraceFormatError(f"Invalid record: {e}") from e

    if offset != len(payload):
        raise TraceFormatError(f"{len(payload) - offset} trailing bytes in record")

    return TimedEvent(timestamp_ns, event)


def _decode_packet(payload: bytes, offset: int):
    flags, ip_version = _PACKET_HEAD.unpack_from(payload, offset)
    offset += _PACKET_HEAD.size

    if ip_version == 4:
        addr, offset = IPv4Address(payload[offset:offset + 4]), offset + 4
    elif ip_version == 6:
        addr, offset = IPv6Address(payload[offset:offset + 16]), offset + 16
    else:
        raise TraceFormatError(f"Unknown IP version {ip_version}")

    port, data_len = _PACKET_TAIL.unpack_from(payload, offset)
    offset += _PACKET_TAIL.size
    data = payload[offset:offset + data_len]
    if len(data) != data_len:
        raise TraceFormatError("Truncated packet data")
    offset += data_len

    meta = PacketMeta(
        addr=addr,
        port=port,
        discard=bool(flags & _FLAG_DISCARD),
        forwarded=bool(flags & _FLAG_FORWARDED),
        from_staked_node=bool(flags & _FLAG_STAKED),
    )
    return Packet(data, meta), offset


def read_events(stream: BinaryIO, name: str = "<stream>") -> Iterator[TimedEvent]:
    """
    Lazily read every event from an open trace file.

    A malformed record is logged and skipped. A truncated final record ends
    the stream with a warning.

    Raises:
        TraceFormatError: if the file header is missing or unsupported
    """
    header = stream.read(_FILE_HEADER.size)
    if len(header) != _FILE_HEADER.size:
        raise TraceFormatError(f"{name}: missing trace file header")
    magic, version = _FILE_HEADER.unpack(header)
    if magic != MAGIC:
        raise TraceFormatError(f"{name}: not a banking trace file")
    if version != FORMAT_VERSION:
        raise TraceFormatError(f"{name}: unsupported trace format version {version}")

    index = 0
    while True:
        length_bytes = stream.read(_RECORD_LEN.size)
        if not length_bytes:
            return
        if len(length_bytes) != _RECORD_LEN.size:
            logger.warning("%s: truncated record length after record %d", name, index)
            return

        (length,) = _RECORD_LEN.unpack(length_bytes)
        payload = stream.read(length)
        if len(payload) != length:
            logger.warning("%s: truncated record %d (%d of %d bytes)", name, index, len(payload), length)
            return

        try:
            yield decode_event(payload)
        except TraceFormatError as e:
            logger.debug("%s: skipping record %d: %s", name, index, e)
        index += 1


class TraceWriter:
    """
    Writes events in the banking trace format.

    Usable as a context manager:

        with TraceWriter.open(path) as writer:
            writer.write(TimedEvent(ts, SlotBoundaryEvent(42)))
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.stream.write(_FILE_HEADER.pack(MAGIC, FORMAT_VERSION))

    @classmethod
    def open(cls, path) -> 'TraceWriter':
        return cls(open(Path(path), 'wb'))

    def write(self, timed: TimedEvent) -> None:
        self.write_raw(encode_event(timed))

    def write_raw(self, payload: bytes) -> None:
        """Write an already-encoded payload as one record."""
        self.stream.write(_RECORD_LEN.pack(len(payload)))
        self.stream.write(payload)

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> 'TraceWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
