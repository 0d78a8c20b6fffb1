"""
Scheduling-order graph export.

Collects one unit of non-vote transactions, reconstructs the order a
priority scheduler would have imposed on them, and writes the result as a
directed graph that Graphia can import:

    {"graph": {"directed": true,
               "nodes": [{"id": "0", "metadata": {"signature": ..., "priority": ...,
                                                  "requested_cus": ..., "layer": 0}}, ...],
               "edges": [{"id": "0", "source": "0", "target": "3"}, ...]}}

Node ids are positions in priority order. Edge ids count up in the order
edges were revealed while draining.

The unit is either a single slot (the packets closed by that slot's
boundary) or a time window (every non-vote packet inside it).
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from ..core.lookup_tables import AddressLookupTableStore
from ..core.resolver import DecodedTransaction, TransactionResolver
from ..parallel.scheduler import ScheduleGraph, build_schedule
from ..trace.events import Packet, PacketBatchEvent, SlotBoundaryEvent
from ..trace.window import WindowFilter, WindowMode
from .common import ReportingHandler, resolve_packets

logger = logging.getLogger(__name__)


def to_graph_document(graph: ScheduleGraph, transactions: List[DecodedTransaction]) -> Dict[str, Any]:
    """Render a drained schedule as a Graphia JSON document."""
    layer_of = graph.layer_index()

    nodes = []
    for key in graph.nodes:
        transaction = transactions[key.index]
        nodes.append({
            "id": str(key.index),
            "metadata": {
                "signature": transaction.signature,
                "priority": transaction.priority,
                "requested_cus": transaction.requested_compute_units,
                "layer": layer_of[key],
            },
        })

    edges = [
        {"id": str(edge_id), "source": str(source.index), "target": str(target.index)}
        for edge_id, (source, target) in enumerate(graph.edges)
    ]

    return {"graph": {"directed": True, "edges": edges, "nodes": nodes}}


class GraphExportHandler(ReportingHandler):
    """
    Builds the scheduling-order graph for one slot or one time window.

    Args:
        window: a slot window (start == end, the target slot) or a
            timestamp window
        output: where to write the JSON document
    """

    def __init__(self, window: WindowFilter, output: Path,
                 store: Optional[AddressLookupTableStore] = None,
                 resolver: Optional[TransactionResolver] = None,
                 out: Optional[TextIO] = None):
        super().__init__(out)
        if window.mode is WindowMode.SLOT and (window.start is None or window.start != window.end):
            raise ValueError("Slot graphs are built for exactly one slot")

        self.window = window
        self.output = Path(output)
        self.store = store
        self.resolver = resolver or TransactionResolver()
        self.packets: List[Packet] = []
        self.graph: Optional[ScheduleGraph] = None
        self.transactions: List[DecodedTransaction] = []

    def handle_event(self, timed) -> None:
        if self.window.done:
            return
        if self.window.mode is WindowMode.TIMESTAMP and not self.window.advance(timed.timestamp_ns):
            return
        super().handle_event(timed)

    def handle_packet_batch(self, timestamp_ns: int, event: PacketBatchEvent) -> None:
        if event.is_non_vote:
            self.packets.extend(event.packets())

    def handle_slot_boundary(self, timestamp_ns: int, event: SlotBoundaryEvent) -> None:
        if self.window.mode is not WindowMode.SLOT:
            return
        # Only the packets closed by the target slot's boundary are kept
        if self.window.contains(event.slot):
            self.window.done = True
        else:
            self.packets.clear()

    def build(self) -> ScheduleGraph:
        """Resolve the collected packets and drain their conflict graph."""
        resolved = list(resolve_packets(self.packets, self.resolver, self.store))
        entries = [(decoded.priority, decoded.locks, decoded) for decoded in resolved]
        self.graph, self.transactions = build_schedule(entries)
        logger.info("Built schedule: %d transactions, %d layers, %d edges",
                    len(self.graph.nodes), len(self.graph.layers), len(self.graph.edges))
        return self.graph

    def report(self) -> None:
        if self.window.mode is WindowMode.SLOT and not self.window.done:
            logger.warning("Slot %d was not found in the trace; writing an empty graph", self.window.start)
            self.packets.clear()

        graph = self.build()
        document = to_graph_document(graph, self.transactions)
        with open(self.output, 'w') as f:
            json.dump(document, f)

        self.emit(f"Wrote {len(graph.nodes)} transactions in {len(graph.layers)} layers "
                  f"with {len(graph.edges)} edges to {self.output}")
