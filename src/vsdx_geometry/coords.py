"""
Absolute coordinate resolution.

A shape's pin lives in its parent's local frame. The parent's frame origin is
the parent's bottom-left corner, i.e. ``absolute(parent) - loc_pin(parent)``,
so for a shape S with parent P::

    absolute(S) = absolute(P) - loc_pin(P) + pin(S)

Page-level shapes are already in page coordinates. Nothing here is cached:
every call walks the live ancestor chain, because ancestors may have moved
since the last call.
"""

from __future__ import annotations

from typing import Optional

from vsdx_geometry.errors import CyclicAncestry, ShapeNotFound
from vsdx_geometry.models import Bounds, Point, ShapeRecord
from vsdx_geometry.tree import ShapeTree


def _chain(tree: ShapeTree, shape_id: str) -> list[ShapeRecord]:
    """The shape followed by its ancestors, nearest first."""
    record = tree.find(shape_id)
    if record is None:
        raise ShapeNotFound(shape_id)
    chain = [record]
    visited = {shape_id}
    current = record.parent_id
    while current is not None:
        if current in visited:
            raise CyclicAncestry(current, [r.id for r in chain])
        visited.add(current)
        parent = tree.find(current)
        if parent is None:
            raise ShapeNotFound(current)
        chain.append(parent)
        current = parent.parent_id
    return chain


def resolve_absolute(tree: ShapeTree, shape_id: str) -> Point:
    """Return the pin of ``shape_id`` in page coordinates. O(depth)."""
    chain = _chain(tree, shape_id)
    x = y = 0.0
    # Compose from the page-level ancestor down to the shape itself.
    for ancestor in reversed(chain[1:]):
        x += ancestor.pin.x - ancestor.loc_pin.x
        y += ancestor.pin.y - ancestor.loc_pin.y
    return Point(x + chain[0].pin.x, y + chain[0].pin.y)


def frame_origin(tree: ShapeTree, parent_id: Optional[str]) -> Point:
    """Page-space origin of the local frame that children of ``parent_id`` use."""
    if parent_id is None:
        return Point(0.0, 0.0)
    parent = tree.get(parent_id)
    return resolve_absolute(tree, parent_id) - parent.loc_pin


def absolute_origin(tree: ShapeTree, shape_id: str) -> Point:
    """Bottom-left corner of the shape in page coordinates."""
    record = tree.get(shape_id)
    return resolve_absolute(tree, shape_id) - record.loc_pin


def absolute_center(tree: ShapeTree, shape_id: str) -> Point:
    """Centre of the shape's bounding box in page coordinates."""
    record = tree.get(shape_id)
    return absolute_origin(tree, shape_id) + record.effective_size.center


def absolute_bounds(tree: ShapeTree, shape_id: str) -> Bounds:
    record = tree.get(shape_id)
    origin = absolute_origin(tree, shape_id)
    size = record.effective_size
    return Bounds(origin.x, origin.y, size.width, size.height)


def to_local(tree: ShapeTree, point: Point, parent_id: Optional[str]) -> Point:
    """Express a page-space point in the local frame of ``parent_id``."""
    return point - frame_origin(tree, parent_id)


def pin_for_center(tree: ShapeTree, shape_id: str, center: Point) -> Point:
    """Local pin that puts the shape's bounding-box centre at ``center``."""
    record = tree.get(shape_id)
    target = center - record.effective_size.center + record.loc_pin
    return to_local(tree, target, record.parent_id)


def move_center_to(tree: ShapeTree, shape_id: str, center: Point) -> ShapeRecord:
    """Move a shape so its absolute centre lands on ``center``."""
    pin = pin_for_center(tree, shape_id, center)
    return tree.move(shape_id, pin.x, pin.y)
