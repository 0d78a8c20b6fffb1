"""
Conflict-Serialization Order

This package reconstructs how a priority-driven scheduler would have
serialized a set of transactions:
- Conflict graph: transaction dependencies derived from account access patterns
- Drain: ready layers of transactions that could execute together
- Schedule: per-unit orchestration from unsorted transactions to a graph

Transactions whose account locks do not conflict can run in parallel; the
layers show how much parallelism a slot actually offered.
"""

from .prio_graph import ConflictGraphBuilder, PriorityKey
from .scheduler import ScheduleGraph, drain, build_schedule

__all__ = [
    'ConflictGraphBuilder',
    'PriorityKey',
    'ScheduleGraph',
    'drain',
    'build_schedule',
]
