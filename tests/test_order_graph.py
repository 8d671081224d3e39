# tests/test_order_graph.py
"""
Tests for the lock registry and the "locked before" graph.
"""

import pytest

from lockorder.errors import DuplicateLockError, ErrorCode, UnknownLockError
from lockorder.order_graph import LockId, LockRegistry, OrderGraph, SourceSite
from tests.conftest import L1, L2, L3, make_graph


class TestLockId:

    def test_ordering_is_lexicographic(self):
        ids = [LockId(1, 0), LockId(0, 5), LockId(0, 1)]
        assert sorted(ids) == [LockId(0, 1), LockId(0, 5), LockId(1, 0)]

    def test_equality_and_hash(self):
        assert LockId(2, 3) == LockId(2, 3)
        assert len({LockId(2, 3), LockId(2, 3), LockId(3, 2)}) == 2

    def test_str(self):
        assert str(LockId(4, 7)) == "4 7"
        assert str(SourceSite("a.c", 12)) == "a.c:12"


class TestLockRegistry:

    def test_register_and_lookup(self):
        reg = LockRegistry()
        node = reg.register_creation(LockId(0, 0), SourceSite("a.c", 1))
        assert reg.lookup(LockId(0, 0)) is node
        assert node.created_at == SourceSite("a.c", 1)
        assert not node.visited
        assert node.predecessors == {}

    def test_lookup_unknown_returns_none(self):
        assert LockRegistry().lookup(LockId(9, 9)) is None

    def test_resolve_unknown_raises(self):
        with pytest.raises(UnknownLockError) as info:
            LockRegistry().resolve(LockId(9, 9), SourceSite("b.c", 3))
        assert info.value.code == ErrorCode.UNKNOWN_LOCK
        assert info.value.lock_id == LockId(9, 9)
        assert "b.c:3" in str(info.value)

    def test_duplicate_creation_is_fatal(self):
        reg = LockRegistry()
        reg.register_creation(LockId(0, 0), SourceSite("a.c", 1))
        with pytest.raises(DuplicateLockError) as info:
            reg.register_creation(LockId(0, 0), SourceSite("a.c", 2))
        assert info.value.code == ErrorCode.DUPLICATE_LOCK

    def test_iteration_in_id_order(self):
        reg = LockRegistry()
        for lock in [(1, 0), (0, 2), (0, 1)]:
            reg.register_creation(LockId(*lock), SourceSite("a.c", 1))
        assert [n.id for n in reg] == [LockId(0, 1), LockId(0, 2), LockId(1, 0)]
        assert len(reg) == 3
        assert LockId(0, 2) in reg


class TestOrderGraph:

    def test_record_order_adds_predecessor(self):
        g = make_graph([L1, L2], [(L1, L2)])
        later = g.node(LockId(*L2))
        edge = later.predecessors[LockId(*L1)]
        assert edge.predecessor is g.node(LockId(*L1))
        assert edge.site == SourceSite("lock.c", 1000)
        assert g.node(LockId(*L1)).predecessors == {}

    def test_duplicate_pair_keeps_first_site(self):
        g = make_graph([L1, L2])
        assert g.record_order(LockId(*L1), LockId(*L2), SourceSite("a.c", 10))
        assert not g.record_order(LockId(*L1), LockId(*L2), SourceSite("b.c", 20))
        later = g.node(LockId(*L2))
        assert len(later.predecessors) == 1
        assert later.predecessors[LockId(*L1)].site == SourceSite("a.c", 10)
        assert g.edge_count == 1

    def test_opposite_directions_are_distinct_edges(self):
        g = make_graph([L1, L2], [(L1, L2), (L2, L1)])
        assert g.edge_count == 2

    def test_self_loop_is_kept(self):
        g = make_graph([L1], [(L1, L1)])
        assert g.node(LockId(*L1)).has_self_loop

    @pytest.mark.parametrize("earlier, later", [((5, 5), L1), (L1, (5, 5))])
    def test_order_with_unknown_lock_is_fatal(self, earlier, later):
        g = make_graph([L1])
        with pytest.raises(UnknownLockError):
            g.emit_order(LockId(*earlier), LockId(*later), "a.c", 1)

    def test_emit_creation_twice_is_fatal(self):
        g = OrderGraph()
        g.emit_creation(LockId(0, 0), "a.c", 1)
        with pytest.raises(DuplicateLockError):
            g.emit_creation(LockId(0, 0), "a.c", 1)

    def test_ordered_edges_sorted_by_predecessor(self):
        g = make_graph([L1, L2, L3], [(L3, L1), (L2, L1)])
        preds = [e.predecessor.id for e in g.node(LockId(*L1)).ordered_edges()]
        assert preds == [LockId(*L2), LockId(*L3)]

    def test_reset_traversal(self):
        g = make_graph([L1, L2])
        for n in g.nodes():
            n.visited = True
        g.reset_traversal()
        assert not any(n.visited for n in g.nodes())

    def test_statistics(self):
        g = make_graph([L1, L2, L3], [(L1, L2), (L2, L3), (L3, L3)])
        stats = g.statistics()
        assert stats["locks"] == 3
        assert stats["edges"] == 3
        assert stats["threads"] == 2
        assert stats["self_loops"] == 1
        assert stats["roots"] == 1

    def test_to_dot(self):
        g = make_graph([L1, L2], [(L1, L2)])
        dot = g.to_dot(title="t")
        assert dot.startswith("digraph LockOrder {")
        assert '"0 0" -> "0 1" [label="lock.c:1000"];' in dot
        assert dot.rstrip().endswith("}")
