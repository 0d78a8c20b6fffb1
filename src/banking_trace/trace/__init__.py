"""
Banking Trace Replay

Event types, the on-disk trace format, sequential multi-file replay and the
window filter every analysis gates its events through.
"""

from .events import (
    ChannelLabel,
    PacketMeta,
    Packet,
    PacketBatchEvent,
    SlotBoundaryEvent,
    TimedEvent,
)
from .codec import TraceWriter, read_events, encode_event, decode_event
from .source import TraceEventHandler, iterate_event_files, process_event_files
from .timestamps import parse_timestamp, format_timestamp
from .window import WindowFilter, WindowMode

__all__ = [
    'ChannelLabel', 'PacketMeta', 'Packet', 'PacketBatchEvent',
    'SlotBoundaryEvent', 'TimedEvent',
    'TraceWriter', 'read_events', 'encode_event', 'decode_event',
    'TraceEventHandler', 'iterate_event_files', 'process_event_files',
    'parse_timestamp', 'format_timestamp',
    'WindowFilter', 'WindowMode',
]
