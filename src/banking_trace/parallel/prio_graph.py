"""
Priority Conflict Graph

Reconstructs the order a priority-driven scheduler imposes on conflicting
transactions. Transactions are inserted highest priority first; each one
is made to wait on the nearest earlier transactions it conflicts with:

- A write waits on every reader since the last write, or on the last writer
  if nothing has read the account since
- A read waits on the last writer
- Reads never wait on each other

Waiting on the readers is enough to order a write after the previous
writer too, since each of those readers already waits on that writer. This
keeps the edge set minimal.

Draining the graph mirrors a greedy scheduler: pop every ready transaction
(highest priority first), then unblock them, which may make later
transactions ready.

Each account keeps a small chain record: at most one last writer and the
readers seen since. Records hold keys, never nodes, and a key that has been
unblocked no longer blocks anything.
"""

from dataclasses import dataclass, field
from heapq import heappush, heappop
from typing import Dict, List, Optional, Tuple

from ..core.accounts import AccountLockSet
from ..core.errors import GraphOrderError


@dataclass(frozen=True)
class PriorityKey:
    """
    Identity of a transaction in the graph.

    Higher priority sorts first; equal priorities keep insertion order.
    """
    priority: int
    index: int

    def sort_key(self) -> Tuple[int, int]:
        return (-self.priority, self.index)

    def __lt__(self, other: 'PriorityKey') -> bool:
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return f"#{self.index}(p={self.priority})"


@dataclass
class _AccountChain:
    last_writer: Optional[PriorityKey] = None
    readers: List[PriorityKey] = field(default_factory=list)  # Since last_writer


@dataclass
class _Node:
    blocked_by: int = 0
    successors: List[PriorityKey] = field(default_factory=list)


class ConflictGraphBuilder:
    """
    Conflict graph over one unit of transactions (typically one slot).

    A builder is used for exactly one unit: insert everything, drain to
    empty, discard.

    Args:
        check_order: raise GraphOrderError when a key is inserted twice or
            out of priority order, instead of producing a wrong graph
    """

    def __init__(self, check_order: bool = True):
        self.check_order = check_order
        self.dependencies: List[Tuple[PriorityKey, PriorityKey]] = []

        self._chains: Dict[str, _AccountChain] = {}
        self._nodes: Dict[PriorityKey, _Node] = {}   # Inserted and not yet unblocked
        self._ready: List[PriorityKey] = []          # Heap of unblocked, unpopped keys
        self._last_inserted: Optional[PriorityKey] = None
        self._unpopped = 0

    def insert(self, key: PriorityKey, locks: AccountLockSet) -> None:
        """Register a transaction. Keys must arrive in PriorityKey order."""
        if self.check_order and self._last_inserted is not None and not self._last_inserted < key:
            if key == self._last_inserted:
                raise GraphOrderError(f"Transaction {key} inserted twice")
            raise GraphOrderError(f"Transaction {key} inserted after lower-priority {self._last_inserted}")
        self._last_inserted = key

        predecessors: Dict[PriorityKey, None] = {}
        for account, is_write in locks.accesses():
            chain = self._chains.get(account)
            if chain is None:
                chain = self._chains[account] = _AccountChain()

            if is_write:
                if chain.readers:
                    blockers = chain.readers
                else:
                    blockers = [chain.last_writer] if chain.last_writer else []
                chain.last_writer = key
                chain.readers = []
            else:
                blockers = [chain.last_writer] if chain.last_writer else []
                chain.readers.append(key)

            for blocker in blockers:
                if blocker in self._nodes:
                    predecessors[blocker] = None

        node = _Node(blocked_by=len(predecessors))
        for predecessor in predecessors:
            self._nodes[predecessor].successors.append(key)
            self.dependencies.append((predecessor, key))

        self._nodes[key] = node
        self._unpopped += 1
        if not node.blocked_by:
            heappush(self._ready, key)

    def pop(self) -> Optional[PriorityKey]:
        """Remove and return the best ready transaction, or None if none is ready."""
        if not self._ready:
            return None
        self._unpopped -= 1
        return heappop(self._ready)

    def unblock(self, key: PriorityKey) -> List[PriorityKey]:
        """
        Resolve a popped transaction.

        Returns:
            Successors that became ready as a result, in edge order. Each
            one is the target of a revealed edge from `key`.
        """
        node = self._nodes.pop(key)
        newly_ready = []
        for successor in node.successors:
            successor_node = self._nodes[successor]
            successor_node.blocked_by -= 1
            if not successor_node.blocked_by:
                heappush(self._ready, successor)
                newly_ready.append(successor)
        return newly_ready

    def is_blocked(self, key: PriorityKey) -> bool:
        node = self._nodes.get(key)
        return node is not None and node.blocked_by > 0

    def is_empty(self) -> bool:
        """True once every inserted transaction has been popped."""
        return self._unpopped == 0

    def __len__(self) -> int:
        return self._unpopped
