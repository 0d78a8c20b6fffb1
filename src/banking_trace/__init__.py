"""
Banking Trace Tool

Replays the banking traces a Solana validator records and reconstructs how
its scheduler saw the traffic:
- Trace replay over one or more files, gated by slot or time windows
- Transaction decoding with compute-budget priority and lookup-table resolution
- Conflict-serialization order: which transactions had to wait on which
- Analyses: account contention, duplicates, packet counts, dumps, graph export

Based on: https://github.com/anza-xyz/agave/tree/master/core/src/banking_trace.rs
"""

__version__ = "0.3.0"

from .core import *
from .parallel import ConflictGraphBuilder, PriorityKey, ScheduleGraph, build_schedule
from .trace import WindowFilter, WindowMode, TraceWriter, process_event_files

__all__ = [
    # Transactions and resolution
    'SolanaTransaction',
    'TransactionBuilder',
    'TransactionResolver',
    'DecodedTransaction',
    'AccountLockSet',
    'AddressLookupTableStore',
    'BankingTraceError',

    # Scheduling order
    'ConflictGraphBuilder',
    'PriorityKey',
    'ScheduleGraph',
    'build_schedule',

    # Replay
    'WindowFilter',
    'WindowMode',
    'TraceWriter',
    'process_event_files',
]
