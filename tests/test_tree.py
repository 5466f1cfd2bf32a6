"""Tests for the shape tree: ids, hierarchy, kind transitions and z-order."""

import math

import pytest

from vsdx_geometry.errors import (
    CyclicAncestry,
    DuplicateShapeId,
    GeometryError,
    InvalidDimensions,
    InvalidKindTransition,
    ShapeNotFound,
)
from vsdx_geometry.models import Point, ShapeKind, ShapeRecord, Size, StackAxis
from vsdx_geometry.tree import ShapeTree, scale_loc_pin


def test_sequential_ids() -> None:
    tree = ShapeTree()
    a = tree.add_shape(1, 1, 1, 1)
    b = tree.add_shape(2, 2, 1, 1)
    assert (a.id, b.id) == ("1", "2")
    assert len(tree) == 2
    assert "1" in tree


def test_next_id_skips_explicit_and_reserved_ids() -> None:
    tree = ShapeTree()
    tree.add_shape(0, 0, 1, 1, shape_id="1")
    tree.reserve_id("2")
    assert tree.add_shape(0, 0, 1, 1).id == "3"


def test_duplicate_id_rejected() -> None:
    tree = ShapeTree()
    tree.add_shape(0, 0, 1, 1, shape_id="a")
    with pytest.raises(DuplicateShapeId):
        tree.add_shape(0, 0, 1, 1, shape_id="a")
    with pytest.raises(DuplicateShapeId):
        tree.reserve_id("a")


@pytest.mark.parametrize("width,height", [(0, 1), (1, 0), (-1, 1), (math.nan, 1), (1, math.inf)])
def test_invalid_dimensions_leave_no_trace(width, height) -> None:
    tree = ShapeTree()
    with pytest.raises(InvalidDimensions):
        tree.add_shape(0, 0, width, height)
    assert len(tree) == 0
    assert tree.roots() == []


def test_get_missing() -> None:
    tree = ShapeTree()
    with pytest.raises(ShapeNotFound) as exc:
        tree.get("nope")
    assert "nope" in exc.value.message
    assert tree.find("nope") is None


class TestKindTransitions:
    def test_first_child_promotes_to_group(self) -> None:
        tree = ShapeTree()
        g = tree.add_shape(5, 5, 4, 4)
        assert g.kind is ShapeKind.SHAPE
        tree.add_shape(1, 1, 1, 1, parent_id=g.id)
        assert g.kind is ShapeKind.GROUP

    def test_container_stays_container_with_children(self) -> None:
        tree = ShapeTree()
        c = tree.add_shape(5, 5, 4, 4)
        tree.promote_to_container(c.id)
        tree.add_shape(1, 1, 1, 1, parent_id=c.id)
        assert c.kind is ShapeKind.CONTAINER

    def test_group_to_container(self) -> None:
        tree = ShapeTree()
        g = tree.add_shape(5, 5, 4, 4, kind=ShapeKind.GROUP)
        tree.promote_to_container(g.id, StackAxis.HORIZONTAL)
        assert g.kind is ShapeKind.CONTAINER
        assert g.container.stack_axis is StackAxis.HORIZONTAL

    def test_promoting_container_again_keeps_state(self) -> None:
        tree = ShapeTree()
        c = tree.add_shape(5, 5, 4, 4, kind=ShapeKind.CONTAINER)
        c.container.ordered_members.append("x")
        tree.promote_to_container(c.id, StackAxis.HORIZONTAL)
        assert c.container.ordered_members == ["x"]
        assert c.container.stack_axis is StackAxis.VERTICAL

    def test_foreign_cannot_hold_children(self) -> None:
        tree = ShapeTree()
        f = tree.add_shape(5, 5, 4, 4, kind=ShapeKind.FOREIGN)
        with pytest.raises(InvalidKindTransition):
            tree.add_shape(1, 1, 1, 1, parent_id=f.id)
        assert len(tree) == 1
        assert f.kind is ShapeKind.FOREIGN

    def test_foreign_cannot_become_container(self) -> None:
        tree = ShapeTree()
        f = tree.add_shape(5, 5, 4, 4, kind=ShapeKind.FOREIGN)
        with pytest.raises(InvalidKindTransition):
            tree.promote_to_container(f.id)


class TestHierarchy:
    def test_children_and_ancestors(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        b = tree.add_shape(2, 2, 2, 2, parent_id=a.id)
        c = tree.add_shape(1, 1, 1, 1, parent_id=b.id)
        assert tree.children(a.id) == [b.id]
        assert tree.ancestors(c.id) == [b.id, a.id]
        assert tree.depth(c.id) == 2
        assert tree.parent(c.id) is b
        assert tree.parent(a.id) is None

    def test_set_parent_rejects_cycles(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        b = tree.add_shape(2, 2, 2, 2, parent_id=a.id)
        with pytest.raises(CyclicAncestry):
            tree.set_parent(a.id, b.id)
        with pytest.raises(CyclicAncestry):
            tree.set_parent(a.id, a.id)
        assert tree.roots() == [a.id]

    def test_set_parent_moves_between_collections(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        b = tree.add_shape(9, 9, 1, 1)
        tree.set_parent(b.id, a.id)
        assert tree.roots() == [a.id]
        assert tree.children(a.id) == [b.id]
        assert a.kind is ShapeKind.GROUP

    def test_ancestors_detects_corrupt_cycle(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        b = tree.add_shape(2, 2, 2, 2, parent_id=a.id)
        a.parent_id = b.id
        with pytest.raises(CyclicAncestry):
            tree.ancestors(b.id)

    def test_walk_is_preorder(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        a1 = tree.add_shape(1, 1, 1, 1, parent_id=a.id)
        b = tree.add_shape(9, 9, 1, 1)
        a2 = tree.add_shape(2, 2, 1, 1, parent_id=a.id)
        assert [r.id for r in tree.walk()] == [a.id, a1.id, a2.id, b.id]
        assert [r.id for r in tree.iter_descendants(a.id)] == [a1.id, a2.id]

    def test_deep_nesting_walk_is_iterative(self) -> None:
        tree = ShapeTree()
        parent = None
        for _ in range(5000):
            parent = tree.add_shape(1, 1, 1, 1, parent_id=parent).id
        assert sum(1 for _ in tree.walk()) == 5000
        assert tree.depth(parent) == 4999


class TestZOrder:
    def test_move_before(self) -> None:
        tree = ShapeTree()
        ids = [tree.add_shape(i, 0, 1, 1).id for i in range(3)]
        tree.move_before(ids[2], ids[0])
        assert tree.roots() == [ids[2], ids[0], ids[1]]
        assert tree.sibling_index(ids[2]) == 0

    def test_move_before_requires_siblings(self) -> None:
        tree = ShapeTree()
        a = tree.add_shape(5, 5, 4, 4)
        b = tree.add_shape(1, 1, 1, 1, parent_id=a.id)
        c = tree.add_shape(9, 9, 1, 1)
        with pytest.raises(GeometryError):
            tree.move_before(c.id, b.id)

    def test_send_to_back(self) -> None:
        tree = ShapeTree()
        ids = [tree.add_shape(i, 0, 1, 1).id for i in range(3)]
        tree.send_to_back(ids[1])
        assert tree.roots() == [ids[1], ids[0], ids[2]]


class TestResize:
    def test_resize_scales_loc_pin(self) -> None:
        tree = ShapeTree()
        r = tree.add_shape(0, 0, 2, 2, loc_pin=Point(0.5, 1.5))
        tree.resize(r.id, 4, 6)
        assert r.size == Size(4, 6)
        assert r.loc_pin == Point(1.0, 4.5)

    def test_resize_rejects_bad_size(self) -> None:
        tree = ShapeTree()
        r = tree.add_shape(0, 0, 2, 2)
        with pytest.raises(InvalidDimensions):
            tree.resize(r.id, 0, 2)
        assert r.size == Size(2, 2)

    def test_scale_loc_pin_without_size(self) -> None:
        r = ShapeRecord(id="x", pin=Point(0, 0))
        assert scale_loc_pin(r, Size(2, 4)) == Point(1, 2)

    def test_set_loc_pin(self) -> None:
        tree = ShapeTree()
        r = tree.add_shape(3, 3, 2, 2)
        tree.set_loc_pin(r.id, 0, 0)
        assert r.loc_pin == Point(0, 0)
