"""
Schedule reconstruction for one analysis unit.

Sorts a unit's transactions by priority, feeds them to a fresh
ConflictGraphBuilder and drains it layer by layer. Each layer is the set of
transactions a greedy scheduler could start together at that step.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from ..core.accounts import AccountLockSet
from ..core.errors import GraphOrderError
from .prio_graph import ConflictGraphBuilder, PriorityKey

Edge = Tuple[PriorityKey, PriorityKey]


@dataclass(frozen=True)
class ScheduleGraph:
    """Result of draining a conflict graph."""
    nodes: Tuple[PriorityKey, ...]                 # Pop order
    layers: Tuple[Tuple[PriorityKey, ...], ...]
    edges: Tuple[Edge, ...]                        # Revealed edges, reveal order
    dependencies: Tuple[Edge, ...]                 # Every recorded conflict edge

    def layer_index(self) -> Dict[PriorityKey, int]:
        return {key: depth for depth, layer in enumerate(self.layers) for key in layer}

    @property
    def max_parallelism(self) -> int:
        return max((len(layer) for layer in self.layers), default=0)


def drain(builder: ConflictGraphBuilder) -> ScheduleGraph:
    """
    Drain `builder` to empty.

    Each pass pops every ready transaction into one layer, then unblocks
    the layer in pop order. An edge is revealed when its target becomes
    ready.
    """
    nodes: List[PriorityKey] = []
    layers: List[Tuple[PriorityKey, ...]] = []
    edges: List[Edge] = []

    while not builder.is_empty():
        layer = []
        key = builder.pop()
        while key is not None:
            layer.append(key)
            key = builder.pop()

        if not layer:
            raise GraphOrderError(f"{len(builder)} transactions remain but none is ready")

        for popped in layer:
            for target in builder.unblock(popped):
                edges.append((popped, target))

        nodes.extend(layer)
        layers.append(tuple(layer))

    return ScheduleGraph(tuple(nodes), tuple(layers), tuple(edges), tuple(builder.dependencies))


def build_schedule(entries: Sequence[Tuple[int, AccountLockSet, Any]]) -> Tuple[ScheduleGraph, List[Any]]:
    """
    Reconstruct the schedule for one unit of transactions.

    Args:
        entries: (priority, locks, payload) per transaction, in arrival order

    Returns:
        The drained graph and the payloads in sorted order, so that
        `payloads[key.index]` belongs to `key`
    """
    ordered = sorted(entries, key=lambda entry: -entry[0])

    builder = ConflictGraphBuilder()
    for index, (priority, locks, _payload) in enumerate(ordered):
        builder.insert(PriorityKey(priority, index), locks)

    return drain(builder), [payload for _, _, payload in ordered]
