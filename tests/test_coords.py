"""Tests for absolute coordinate resolution."""

import random

import pytest

from vsdx_geometry.coords import (
    absolute_bounds,
    absolute_center,
    absolute_origin,
    move_center_to,
    pin_for_center,
    resolve_absolute,
    to_local,
)
from vsdx_geometry.errors import CyclicAncestry, ShapeNotFound
from vsdx_geometry.models import Point
from vsdx_geometry.tree import ShapeTree


def test_page_level_shape_is_its_own_pin() -> None:
    tree = ShapeTree()
    s = tree.add_shape(3.5, 7.25, 2, 1)
    assert resolve_absolute(tree, s.id) == Point(3.5, 7.25)


def test_depth_one() -> None:
    tree = ShapeTree()
    g = tree.add_shape(10, 10, 4, 4)              # bottom-left at (8, 8)
    c = tree.add_shape(1, 1, 1, 1, parent_id=g.id)
    assert resolve_absolute(tree, c.id) == Point(9, 9)


def test_depth_two() -> None:
    tree = ShapeTree()
    a = tree.add_shape(10, 10, 4, 4)              # frame origin (8, 8)
    b = tree.add_shape(2, 2, 2, 2, parent_id=a.id)  # abs pin (10, 10), frame (9, 9)
    c = tree.add_shape(0.5, 0.5, 0.5, 0.5, parent_id=b.id)
    assert resolve_absolute(tree, c.id) == Point(9.5, 9.5)


def test_custom_loc_pin_shifts_child_frame() -> None:
    tree = ShapeTree()
    g = tree.add_shape(10, 10, 4, 4, loc_pin=Point(0, 0))   # frame origin (10, 10)
    c = tree.add_shape(1, 2, 1, 1, parent_id=g.id)
    assert resolve_absolute(tree, c.id) == Point(11, 12)


def test_arbitrary_depth_matches_manual_sum() -> None:
    rng = random.Random(7)
    tree = ShapeTree()
    parent = None
    expected_x = expected_y = 0.0
    for _ in range(25):
        w, h = rng.uniform(0.5, 5), rng.uniform(0.5, 5)
        x, y = rng.uniform(-3, 3), rng.uniform(-3, 3)
        record = tree.add_shape(x, y, w, h, parent_id=parent)
        last_x, last_y = expected_x + x, expected_y + y
        expected_x += x - w / 2
        expected_y += y - h / 2
        parent = record.id
    got = resolve_absolute(tree, parent)
    assert got.x == pytest.approx(last_x)
    assert got.y == pytest.approx(last_y)


def test_resolution_follows_ancestor_moves() -> None:
    tree = ShapeTree()
    g = tree.add_shape(10, 10, 4, 4)
    c = tree.add_shape(1, 1, 1, 1, parent_id=g.id)
    tree.move(g.id, 20, 10)
    assert resolve_absolute(tree, c.id) == Point(19, 9)


def test_missing_shape() -> None:
    tree = ShapeTree()
    with pytest.raises(ShapeNotFound):
        resolve_absolute(tree, "42")


def test_dangling_parent() -> None:
    tree = ShapeTree()
    s = tree.add_shape(1, 1, 1, 1)
    s.parent_id = "ghost"
    with pytest.raises(ShapeNotFound):
        resolve_absolute(tree, s.id)


def test_cycle_is_reported() -> None:
    tree = ShapeTree()
    a = tree.add_shape(5, 5, 4, 4)
    b = tree.add_shape(1, 1, 1, 1, parent_id=a.id)
    a.parent_id = b.id
    with pytest.raises(CyclicAncestry):
        resolve_absolute(tree, b.id)


def test_origin_center_bounds() -> None:
    tree = ShapeTree()
    s = tree.add_shape(10, 10, 4, 2, loc_pin=Point(0, 0))
    assert absolute_origin(tree, s.id) == Point(10, 10)
    assert absolute_center(tree, s.id) == Point(12, 11)
    b = absolute_bounds(tree, s.id)
    assert (b.x, b.y, b.width, b.height) == (10, 10, 4, 2)


def test_to_local_and_pin_for_center() -> None:
    tree = ShapeTree()
    g = tree.add_shape(10, 10, 4, 4)
    c = tree.add_shape(1, 1, 1, 1, parent_id=g.id)
    assert to_local(tree, Point(9, 9), g.id) == Point(1, 1)
    assert to_local(tree, Point(9, 9), None) == Point(9, 9)
    assert pin_for_center(tree, c.id, Point(10, 10)) == Point(2, 2)
    move_center_to(tree, c.id, Point(10, 10))
    assert absolute_center(tree, c.id) == Point(10, 10)
