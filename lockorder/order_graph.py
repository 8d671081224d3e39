"""
lockorder.order_graph
=====================

The lock-order graph built from trace events.

The graph is a directed graph where:
- **Nodes** are dynamically created locks, identified by the thread that
  created them and a per-thread instance counter.
- **Edges** mean "the predecessor lock was already held when this lock was
  acquired", annotated with the source site of the acquisition.

Edges are stored on the *later* lock: ``node.predecessors`` maps the id of
every lock observed acquired strictly earlier to one :class:`OrderEdge`.
The first observation of a pair wins; repeated observations are dropped.

Public API
----------
    LockId        - identity of one lock
    SourceSite    - file/line provenance
    LockNode      - a node in the graph
    OrderEdge     - a "locked before" edge
    LockRegistry  - id → node map, creation-once semantics
    OrderGraph    - registry plus edge recording; the ingestion sink

Typical usage::

    from lockorder.order_graph import LockId, OrderGraph

    graph = OrderGraph()
    graph.emit_creation(LockId(0, 0), "worker.c", 12)
    graph.emit_creation(LockId(0, 1), "worker.c", 13)
    graph.emit_order(LockId(0, 0), LockId(0, 1), "worker.c", 40)
    print(graph.to_dot())
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from lockorder.errors import DuplicateLockError, UnknownLockError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Identities and provenance
# ---------------------------------------------------------------------------

class LockId(NamedTuple):
    """Identity of one dynamically created lock.

    Ordering is lexicographic on ``(thread_id, instance)``.
    """

    thread_id: int
    instance: int

    def __str__(self) -> str:
        return f"{self.thread_id} {self.instance}"


class SourceSite(NamedTuple):
    """A file/line pair recorded by the tracer."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


# ---------------------------------------------------------------------------
# LockNode / OrderEdge
# ---------------------------------------------------------------------------

class OrderEdge:
    """A "locked before" edge stored in the later lock's predecessor map.

    Attributes
    ----------
    predecessor : LockNode
        The lock that was already held.
    site : SourceSite
        Where the later lock was acquired while *predecessor* was held.
    """

    __slots__ = ("predecessor", "site")

    def __init__(self, predecessor: LockNode, site: SourceSite) -> None:
        self.predecessor = predecessor
        self.site = site

    def __repr__(self) -> str:
        return f"OrderEdge({self.predecessor.id} @ {self.site})"


class LockNode:
    """A lock in the order graph.

    Attributes
    ----------
    id : LockId
        Unique identity.
    created_at : SourceSite
        Where the lock was created.
    predecessors : dict[LockId, OrderEdge]
        Locks observed acquired strictly before this one.
    visited : bool
        Set by the cycle detector once every predecessor edge has been
        explored; cleared by :meth:`OrderGraph.reset_traversal`.
    """

    __slots__ = ("id", "created_at", "predecessors", "visited")

    def __init__(self, lock_id: LockId, created_at: SourceSite) -> None:
        self.id: LockId = lock_id
        self.created_at: SourceSite = created_at
        self.predecessors: Dict[LockId, OrderEdge] = {}
        self.visited: bool = False

    def ordered_edges(self) -> List[OrderEdge]:
        """Predecessor edges in ascending predecessor id order."""
        return [self.predecessors[k] for k in sorted(self.predecessors)]

    @property
    def has_self_loop(self) -> bool:
        return self.id in self.predecessors

    def __repr__(self) -> str:
        return (
            f"LockNode({self.id.thread_id}, {self.id.instance}, "
            f"created {self.created_at}, {len(self.predecessors)} preds)"
        )

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, LockNode):
            return self.id == other.id
        return NotImplemented


# ---------------------------------------------------------------------------
# LockRegistry
# ---------------------------------------------------------------------------

class LockRegistry:
    """Maps lock ids to nodes; every id may be created exactly once."""

    def __init__(self) -> None:
        self._nodes: Dict[LockId, LockNode] = {}

    def register_creation(self, lock_id: LockId, created_at: SourceSite) -> LockNode:
        """Create the node for *lock_id*.

        Raises
        ------
        DuplicateLockError
            If *lock_id* was already registered.
        """
        if lock_id in self._nodes:
            raise DuplicateLockError(lock_id, site=created_at)
        node = LockNode(lock_id, created_at)
        self._nodes[lock_id] = node
        return node

    def lookup(self, lock_id: LockId) -> Optional[LockNode]:
        return self._nodes.get(lock_id)

    def resolve(self, lock_id: LockId, site: Optional[SourceSite] = None) -> LockNode:
        """Like :meth:`lookup` but raises :class:`UnknownLockError`."""
        node = self._nodes.get(lock_id)
        if node is None:
            raise UnknownLockError(lock_id, site=site)
        return node

    def __contains__(self, lock_id: object) -> bool:
        return lock_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[LockNode]:
        """Nodes in ascending :class:`LockId` order."""
        for key in sorted(self._nodes):
            yield self._nodes[key]


# ---------------------------------------------------------------------------
# OrderGraph
# ---------------------------------------------------------------------------

class OrderGraph:
    """Lock registry plus the "locked before" relation.

    Implements the ingestion sink interface (``emit_creation`` /
    ``emit_order``) used by :mod:`lockorder.traces` and
    :mod:`lockorder.sexp_traces`.
    """

    def __init__(self) -> None:
        self.registry = LockRegistry()
        self._edge_count = 0

    # ----- ingestion --------------------------------------------------------

    def register_creation(self, lock_id: LockId, created_at: SourceSite) -> LockNode:
        return self.registry.register_creation(lock_id, created_at)

    def record_order(self, earlier_id: LockId, later_id: LockId, site: SourceSite) -> bool:
        """Record that *earlier_id* was held when *later_id* was acquired.

        Returns ``True`` if a new edge was added, ``False`` if the pair was
        already known (the new site is discarded).
        """
        earlier = self.registry.resolve(earlier_id, site)
        later = self.registry.resolve(later_id, site)
        if earlier_id in later.predecessors:
            return False
        later.predecessors[earlier_id] = OrderEdge(earlier, site)
        self._edge_count += 1
        return True

    def emit_creation(self, lock_id: LockId, file: str, line: int) -> None:
        logger.debug("read create %s %d", file, line)
        self.register_creation(lock_id, SourceSite(file, line))

    def emit_order(self, earlier: LockId, later: LockId, file: str, line: int) -> None:
        logger.debug("read lock %s %d", file, line)
        self.record_order(earlier, later, SourceSite(file, line))

    # ----- queries ----------------------------------------------------------

    @property
    def lock_count(self) -> int:
        return len(self.registry)

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def nodes(self) -> List[LockNode]:
        """All nodes in ascending id order."""
        return list(self.registry)

    def node(self, lock_id: LockId) -> LockNode:
        return self.registry.resolve(lock_id)

    def reset_traversal(self) -> None:
        """Clear the per-node ``visited`` flags before a detector run."""
        for node in self.registry:
            node.visited = False

    def statistics(self) -> Dict[str, Any]:
        """Return a dict with summary statistics."""
        nodes = self.nodes()
        per_thread = Counter(n.id.thread_id for n in nodes)
        return {
            "locks": len(nodes),
            "edges": self._edge_count,
            "threads": len(per_thread),
            "self_loops": sum(1 for n in nodes if n.has_self_loop),
            "roots": sum(1 for n in nodes if not n.predecessors),
            "max_predecessors": max((len(n.predecessors) for n in nodes), default=0),
        }

    # ----- serialisation ----------------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT rendering; edges point earlier → later."""
        lines = ["digraph LockOrder {"]
        lines.append("  rankdir=LR;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')
        for n in self.registry:
            label = f"{n.id}\\n{n.created_at}".replace('"', '\\"')
            lines.append(f'  "{n.id}" [label="{label}"];')
        for n in self.registry:
            for edge in n.ordered_edges():
                site = str(edge.site).replace('"', '\\"')
                lines.append(
                    f'  "{edge.predecessor.id}" -> "{n.id}" [label="{site}"];'
                )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"OrderGraph(locks={self.lock_count}, edges={self.edge_count})"


__all__ = [
    "LockId",
    "SourceSite",
    "OrderEdge",
    "LockNode",
    "LockRegistry",
    "OrderGraph",
]
