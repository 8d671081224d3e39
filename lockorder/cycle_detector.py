"""
lockorder.cycle_detector
========================

Depth-first search for cycles in the lock-order graph.

Every lock that is not yet ``visited`` becomes the root of one search, in
ascending :class:`~lockorder.order_graph.LockId` order.  The search walks
predecessor edges ("locked before") and keeps the current path on an
explicit ancestor stack: entry ``k`` is the lock at depth ``k`` together
with the edge that led to it.

Frontier narrowing
------------------
A lock that was already ``visited`` when the search enters it has had all
of its predecessors compared against every lock that was unvisited at the
time.  Such locks are therefore never used as a new frontier: the cycle
check of a deeper lock only scans the ancestor stack from the root down to
the most recent lock that was still unvisited on entry (the *frontier*).
Within one frontier, a visited lock is expanded at most once.

A lock found again in that part of the stack closes a cycle.  The cycle is
reported and the search backs out of that branch only; the remaining
branches and roots are still explored.

Typical usage::

    from lockorder.cycle_detector import detect_cycles

    for report in detect_cycles(graph):
        print(report.length, [str(h.site) for h in report.hops])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Set, Tuple, cast

from lockorder.order_graph import LockId, LockNode, OrderEdge, OrderGraph, SourceSite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleHop:
    """One edge of a reported cycle: *earlier* was held when *later* was locked."""

    earlier: LockNode
    later: LockNode
    site: SourceSite


@dataclass(frozen=True)
class CycleReport:
    """A cycle found while searching from *root*.

    Attributes
    ----------
    root : LockNode
        The lock the top-level search started from.
    witness : LockNode
        The lock that was met twice on the search path.  Equal to *root*
        whenever the cycle runs through the root.
    depth : int
        Search depth at which the cycle closed.
    hops : tuple[CycleHop, ...]
        The cycle, starting at the witness and following "locked before"
        edges until the witness is reached again.
    """

    root: LockNode
    witness: LockNode
    depth: int
    hops: Tuple[CycleHop, ...]

    @property
    def length(self) -> int:
        return len(self.hops)

    @property
    def lock_ids(self) -> List[LockId]:
        """Locks on the cycle in hop order, witness first."""
        return [hop.earlier.id for hop in self.hops]


class _Frame:
    """One entry of the ancestor stack."""

    __slots__ = ("node", "edge", "frontier", "pending", "explored")

    def __init__(self, node: LockNode, edge: Optional[OrderEdge]) -> None:
        self.node = node
        self.edge = edge
        # frontier handed to the predecessors of this lock
        self.frontier = 0
        self.pending: Iterator[OrderEdge] = iter(())
        # visited locks already expanded while this frame is the frontier
        self.explored: Optional[Set[LockId]] = None


class CycleDetector:
    """Runs the rooted searches over an :class:`OrderGraph`.

    The search is iterative; path length is bounded by the lock count, not
    by the interpreter's recursion limit.

    Parameters
    ----------
    graph : OrderGraph
        The graph to check.  Its ``visited`` flags are reset by :meth:`run`.
    on_cycle : callable, optional
        Called with every :class:`CycleReport` as soon as it is found.
    """

    def __init__(
        self,
        graph: OrderGraph,
        on_cycle: Optional[Callable[[CycleReport], None]] = None,
    ) -> None:
        self.graph = graph
        self.on_cycle = on_cycle
        self.reports: List[CycleReport] = []
        self._path: List[_Frame] = []
        self._root: Optional[LockNode] = None

    def run(self) -> List[CycleReport]:
        """Check every lock and return the cycles found, in discovery order."""
        self.graph.reset_traversal()
        self.reports = []
        nodes = self.graph.nodes()
        for i, node in enumerate(nodes):
            logger.debug(
                "[%d/%d] Checking lock %s %s", i, len(nodes), node.id, node.created_at
            )
            self.check_lock(node)
        return self.reports

    def check_lock(self, node: LockNode) -> None:
        """Run one top-level search rooted at *node* unless already visited."""
        if node.visited:
            return
        self._root = node
        self._path = []
        try:
            self._enter(node, None, 0)
            while self._path:
                frame = self._path[-1]
                pred_edge = next(frame.pending, None)
                if pred_edge is None:
                    frame.node.visited = True
                    self._path.pop()
                else:
                    self._enter(pred_edge.predecessor, pred_edge, frame.frontier)
        finally:
            self._path = []
            self._root = None

    # ----- search -----------------------------------------------------------

    def _enter(self, node: LockNode, edge: Optional[OrderEdge], frontier: int) -> None:
        """Push *node*; pop it again at once if it closes a cycle or is done."""
        depth = len(self._path)
        frame = _Frame(node, edge)
        self._path.append(frame)

        if depth > 0:
            match = self._find_on_chain(node, frontier)
            if match is not None:
                self._found(match, depth)
                self._path.pop()
                return

        if node.visited:
            front = self._path[frontier]
            if front.explored is None:
                front.explored = set()
            if node.id in front.explored:
                self._path.pop()
                return
            front.explored.add(node.id)
            frame.frontier = frontier
        else:
            frame.frontier = depth
        frame.pending = iter(node.ordered_edges())

    def _find_on_chain(self, node: LockNode, frontier: int) -> Optional[int]:
        """Walk up from the frontier; return the stack index holding *node*."""
        for k in range(frontier, -1, -1):
            if self._path[k].node is node:
                return k
        return None

    def _found(self, start: int, depth: int) -> None:
        """Build the report for the cycle ``path[start] … path[depth]``."""
        hops: List[CycleHop] = []
        for j in range(depth, start, -1):
            frame = self._path[j]
            # only the root frame has no entry edge, and j > start >= 0
            edge = cast(OrderEdge, frame.edge)
            hops.append(CycleHop(frame.node, self._path[j - 1].node, edge.site))

        report = CycleReport(
            root=cast(LockNode, self._root),
            witness=self._path[depth].node,
            depth=depth,
            hops=tuple(hops),
        )
        logger.info(
            "cycle of length %d through lock %s (root %s)",
            report.length, report.witness.id, report.root.id,
        )
        self.reports.append(report)
        if self.on_cycle is not None:
            self.on_cycle(report)


def detect_cycles(
    graph: OrderGraph,
    on_cycle: Optional[Callable[[CycleReport], None]] = None,
) -> List[CycleReport]:
    """Convenience wrapper: run a :class:`CycleDetector` over *graph*."""
    return CycleDetector(graph, on_cycle).run()


__all__ = [
    "CycleHop",
    "CycleReport",
    "CycleDetector",
    "detect_cycles",
]
