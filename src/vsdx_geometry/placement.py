"""
Placement helpers: relative positioning and hand-off to layout collaborators.

Graph layout (rank assignment and the like) is not done here. A layout
collaborator receives node sizes and edges and answers with suggested
page-space centres; :func:`apply_layout` moves the shapes there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from vsdx_geometry.coords import absolute_bounds, pin_for_center
from vsdx_geometry.errors import GeometryError
from vsdx_geometry.models import Point, ShapeRecord, Size
from vsdx_geometry.tree import ShapeTree

# (sizes by shape id, edges as (from_id, to_id)) -> suggested centres by id
LayoutCollaborator = Callable[[dict[str, Size], list[tuple[str, str]]], dict[str, Point]]

_DIRECTIONS = ("right", "left", "above", "below")


# ---------------------------------------------------------------------------
# Relative placement
# ---------------------------------------------------------------------------

def place_relative(
    tree: ShapeTree,
    shape_id: str,
    anchor_id: str,
    direction: str,
    gap: float = 1.0,
) -> ShapeRecord:
    """Put a shape next to an anchor with ``gap`` between their facing edges.

    The shape is centred on the anchor along the other axis.
    """
    if direction not in _DIRECTIONS:
        raise GeometryError(
            f"direction must be one of {', '.join(_DIRECTIONS)}, got '{direction}'."
        )
    anchor = absolute_bounds(tree, anchor_id)
    size = tree.get(shape_id).effective_size
    if direction == "right":
        center = Point(anchor.right + gap + size.half_width, anchor.cy)
    elif direction == "left":
        center = Point(anchor.x - gap - size.half_width, anchor.cy)
    elif direction == "above":
        center = Point(anchor.cx, anchor.top + gap + size.half_height)
    else:
        center = Point(anchor.cx, anchor.y - gap - size.half_height)
    pin = pin_for_center(tree, shape_id, center)
    return tree.move(shape_id, pin.x, pin.y)


def place_right_of(tree: ShapeTree, shape_id: str, anchor_id: str, gap: float = 1.0) -> ShapeRecord:
    return place_relative(tree, shape_id, anchor_id, "right", gap)


def place_below(tree: ShapeTree, shape_id: str, anchor_id: str, gap: float = 1.0) -> ShapeRecord:
    return place_relative(tree, shape_id, anchor_id, "below", gap)


# ---------------------------------------------------------------------------
# Layout collaborators
# ---------------------------------------------------------------------------

@dataclass
class GridLayoutConfig:
    """Configuration for :func:`grid_layout`."""
    columns: int = 3
    h_spacing: float = 0.5
    v_spacing: float = 0.5
    start_x: float = 1.0
    start_y: float = 10.0  # top edge of the first row


def grid_layout(config: Optional[GridLayoutConfig] = None) -> LayoutCollaborator:
    """A collaborator that puts nodes on a uniform grid, row by row.

    Cells are as large as the largest node; rows run downward from
    ``start_y``. Edges are ignored.
    """
    cfg = config or GridLayoutConfig()
    if cfg.columns < 1:
        raise GeometryError(f"columns must be >= 1, got {cfg.columns}.")

    def _layout(sizes: dict[str, Size], edges: list[tuple[str, str]]) -> dict[str, Point]:
        if not sizes:
            return {}
        cell_w = max(s.width for s in sizes.values())
        cell_h = max(s.height for s in sizes.values())
        positions: dict[str, Point] = {}
        for i, sid in enumerate(sizes):
            col = i % cfg.columns
            row = i // cfg.columns
            positions[sid] = Point(
                cfg.start_x + col * (cell_w + cfg.h_spacing) + cell_w / 2,
                cfg.start_y - row * (cell_h + cfg.v_spacing) - cell_h / 2,
            )
        return positions

    return _layout


def apply_layout(
    tree: ShapeTree,
    collaborator: LayoutCollaborator,
    shape_ids: Optional[Iterable[str]] = None,
    edges: Iterable[tuple[str, str]] = (),
) -> list[str]:
    """Ask ``collaborator`` for centres and move the shapes there.

    Defaults to every page-level shape. Shapes the collaborator leaves out
    stay where they are. Returns the ids that were moved.
    """
    ids = list(shape_ids) if shape_ids is not None else tree.roots()
    sizes = {sid: tree.get(sid).effective_size for sid in ids}
    edge_list = list(edges)
    for src, tgt in edge_list:
        tree.get(src)
        tree.get(tgt)

    suggested = collaborator(sizes, edge_list)
    unknown = [sid for sid in suggested if sid not in sizes]
    if unknown:
        raise GeometryError(
            f"layout returned positions for unrequested shapes: {', '.join(unknown)}."
        )
    pins = {sid: pin_for_center(tree, sid, center) for sid, center in suggested.items()}
    for sid, pin in pins.items():
        tree.move(sid, pin.x, pin.y)
    return list(pins)
