"""
Trace Analyses

Each analysis is a handler folded over the replayed trace:
- Account usage: read/write contention per account over a slot range
- Duplicate check: repeated transactions, TPU vs forwarded
- Packet count: traffic breakdown by validity, stake and source IP
- Slot and time ranges: what a trace covers
- Dump: transactions matching account or IP filters
- ALT store update: fetch the lookup tables a slot range needs
- Graph export: the scheduling-order graph of a slot
"""

from .account_usage import AccountUsageHandler, AccountUsageStatistics
from .duplicate_check import DuplicateCheckHandler
from .packet_count import PacketCountHandler
from .ranges import SlotRangesHandler, TimeRangeHandler
from .dump import DumpHandler
from .update_alt_store import UpdateAltStoreHandler
from .graph_export import GraphExportHandler, to_graph_document

__all__ = [
    'AccountUsageHandler',
    'AccountUsageStatistics',
    'DuplicateCheckHandler',
    'PacketCountHandler',
    'SlotRangesHandler',
    'TimeRangeHandler',
    'DumpHandler',
    'UpdateAltStoreHandler',
    'GraphExportHandler',
    'to_graph_document',
]
