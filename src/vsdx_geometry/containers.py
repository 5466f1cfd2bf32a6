"""
Container layout: ordered membership, stacking and resize-to-fit.

A container keeps an ordered list of member ids. Members are usually the
container's siblings (they are related to it by membership, not by
parenting), but they may live anywhere in the tree; all geometry goes through
page coordinates.

Every public operation computes its full result before it writes anything,
so a failing call leaves the tree untouched.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from vsdx_geometry.coords import absolute_bounds, absolute_origin, pin_for_center, to_local
from vsdx_geometry.errors import GeometryError, InvalidKindTransition
from vsdx_geometry.models import (
    Bounds,
    ContainerState,
    Point,
    ShapeKind,
    ShapeRecord,
    Size,
    StackAxis,
)
from vsdx_geometry.tree import ShapeTree, scale_loc_pin

logger = logging.getLogger(__name__)


def _container_state(tree: ShapeTree, container_id: str) -> tuple[ShapeRecord, ContainerState]:
    record = tree.get(container_id)
    if record.kind is not ShapeKind.CONTAINER or record.container is None:
        raise GeometryError(f"shape '{container_id}' is not a container.")
    return record, record.container


def make_container(
    tree: ShapeTree,
    shape_id: str,
    stack_axis: StackAxis = StackAxis.VERTICAL,
    spacing: float = 0.125,
    padding: float = 0.25,
) -> ShapeRecord:
    """Explicitly turn a shape or group into a container."""
    return tree.promote_to_container(shape_id, stack_axis, spacing, padding)


def check_members(tree: ShapeTree, container_id: str, member_ids: Iterable[str]) -> ShapeRecord:
    """Raise unless every id in ``member_ids`` can be added to the container.

    Nothing is modified; the container record is returned.
    """
    container = tree.get(container_id)
    if container.kind is ShapeKind.FOREIGN:
        raise InvalidKindTransition(
            f"foreign shape '{container_id}' cannot become a container."
        )
    enclosing = tree.ancestors(container_id)
    new_ids = list(member_ids)
    for member_id in new_ids:
        tree.get(member_id)
        if member_id == container_id:
            raise GeometryError(f"shape '{container_id}' cannot be a member of itself.")
        if member_id in enclosing:
            raise GeometryError(
                f"shape '{member_id}' encloses container '{container_id}' and cannot be its member."
            )
    existing = container.container.ordered_members if container.container else []
    # Resolve everything up front so a broken reference fails before mutation.
    for sid in [container_id, *new_ids, *existing]:
        absolute_bounds(tree, sid)
    return container


def add_member(tree: ShapeTree, container_id: str, member_id: str) -> ShapeRecord:
    """Append ``member_id`` to the container and lay the container out again.

    A plain shape or group is promoted to a container first. The id is not
    de-duplicated. Restacking, resizing and the z-order fix all happen before
    this returns.
    """
    container = check_members(tree, container_id, [member_id])
    if container.kind is not ShapeKind.CONTAINER:
        tree.promote_to_container(container_id)

    state = container.container
    state.ordered_members.append(member_id)
    logger.debug("Added %s to container %s (%d members)",
                 member_id, container_id, len(state.ordered_members))
    restack(tree, container_id)
    resize_to_fit(tree, container_id)
    ensure_z_order(tree, container_id)
    return container


def add_members(tree: ShapeTree, container_id: str, member_ids: Iterable[str]) -> ShapeRecord:
    """Add several members in order; all of them are checked before the first add."""
    ids = list(member_ids)
    container = check_members(tree, container_id, ids)
    for member_id in ids:
        add_member(tree, container_id, member_id)
    return container


def members(tree: ShapeTree, container_id: str) -> list[str]:
    _, state = _container_state(tree, container_id)
    return list(state.ordered_members)


def containers_of(tree: ShapeTree, shape_id: str) -> list[str]:
    """Ids of every container that lists ``shape_id`` as a member."""
    tree.get(shape_id)
    return [
        record.id for record in tree.walk()
        if record.container is not None and shape_id in record.container.ordered_members
    ]


# ---------------------------------------------------------------------------
# Stacking
# ---------------------------------------------------------------------------

def stack_centers(
    frame: Bounds,
    sizes: list[Size],
    axis: StackAxis,
    spacing: float,
    padding: float,
) -> list[Point]:
    """Centres for a sequential stack inside ``frame``.

    Vertical stacks start at the top edge (less padding) and grow downward,
    centred horizontally. Horizontal stacks start at the left edge (plus
    padding) and grow rightward, centred vertically.
    """
    centers: list[Point] = []
    if axis is StackAxis.VERTICAL:
        cursor = frame.top - padding
        for size in sizes:
            cy = cursor - size.half_height
            centers.append(Point(frame.cx, cy))
            cursor = cy - size.half_height - spacing
    elif axis is StackAxis.HORIZONTAL:
        cursor = frame.x + padding
        for size in sizes:
            cx = cursor + size.half_width
            centers.append(Point(cx, frame.cy))
            cursor = cx + size.half_width + spacing
    return centers


def restack(tree: ShapeTree, container_id: str) -> None:
    """Position members one after another along the container's stack axis.

    Members keep their own size; their children are not reflowed. A member
    that is itself a container takes its own members along, so its bounds
    still enclose them. Free-form containers (``StackAxis.NONE``) are left
    alone.
    """
    record, state = _container_state(tree, container_id)
    if state.stack_axis is StackAxis.NONE or not state.ordered_members:
        return

    frame = absolute_bounds(tree, container_id)
    sizes = [tree.get(mid).effective_size for mid in state.ordered_members]
    centers = stack_centers(frame, sizes, state.stack_axis, state.spacing, state.padding)
    # a listed-twice member ends up at its last slot
    targets = {
        mid: pin_for_center(tree, mid, center)
        for mid, center in zip(state.ordered_members, centers)
    }
    shifts = {
        mid: pin - tree.get(mid).pin for mid, pin in targets.items()
        if pin != tree.get(mid).pin
    }
    followers = _carried_members(tree, shifts, {container_id, *targets})
    for mid, pin in [*targets.items(), *followers.items()]:
        tree.move(mid, pin.x, pin.y)
    logger.debug("Restacked container %s %s (%d members, %d carried)",
                 container_id, state.stack_axis.value, len(targets), len(followers))


def _carried_members(
    tree: ShapeTree,
    shifts: dict[str, Point],
    placed: set[str],
) -> dict[str, Point]:
    """New pins for the members of containers moved by ``shifts``.

    ``shifts`` maps moved shapes to their offset. Containers inside a moved
    shape count as moved too. A member is shifted by the same offset unless
    it, or one of its ancestors, is already in ``placed`` (children of a
    moved shape travel with it). Nested memberships are followed with an
    explicit worklist.
    """
    placed = placed | set(shifts)
    pins: dict[str, Point] = {}
    work = list(shifts.items())
    while work:
        sid, shift = work.pop()
        for carrier in [tree.get(sid), *tree.iter_descendants(sid)]:
            if carrier.container is None:
                continue
            for mid in dict.fromkeys(carrier.container.ordered_members):
                if mid in placed or any(a in placed for a in tree.ancestors(mid)):
                    continue
                placed.add(mid)
                pins[mid] = tree.get(mid).pin + shift
                work.append((mid, shift))
    return pins


# ---------------------------------------------------------------------------
# Resize to fit
# ---------------------------------------------------------------------------

def resize_to_fit(
    tree: ShapeTree,
    container_id: str,
    padding: Optional[float] = None,
) -> ShapeRecord:
    """Grow or shrink the container around the union of its members.

    The new size is the members' bounding box plus ``padding`` on every side
    (the container's own padding when not given) and the container's centre
    lands on the bounding-box centre. The loc pin scales with the size, and
    the container's children are re-pinned so they do not move on the page.
    Calling this twice in a row yields identical geometry.
    """
    record, state = _container_state(tree, container_id)
    pad = state.padding if padding is None else padding
    if not math.isfinite(pad) or pad < 0:
        raise GeometryError(f"padding must be a finite number >= 0, got {pad}.")
    if not state.ordered_members:
        return record

    bbox = Bounds.union([
        absolute_bounds(tree, mid) for mid in dict.fromkeys(state.ordered_members)
    ])
    new_size = Size(bbox.width + 2 * pad, bbox.height + 2 * pad)
    new_loc_pin = scale_loc_pin(record, new_size)
    new_origin = bbox.center - new_size.center
    new_pin = to_local(tree, new_origin + new_loc_pin, record.parent_id)

    if record.size == new_size and record.loc_pin == new_loc_pin and record.pin == new_pin:
        return record

    old_origin = absolute_origin(tree, container_id)
    shift = old_origin - new_origin
    child_pins = {
        cid: tree.get(cid).pin + shift for cid in tree.children(container_id)
    }

    record.size = new_size
    record.loc_pin = new_loc_pin
    record.pin = new_pin
    if shift != Point(0.0, 0.0):
        for cid, pin in child_pins.items():
            tree.get(cid).pin = pin
    logger.debug("Resized container %s to %.4g x %.4g",
                 container_id, new_size.width, new_size.height)
    return record


# ---------------------------------------------------------------------------
# Z-order
# ---------------------------------------------------------------------------

def ensure_z_order(tree: ShapeTree, container_id: str) -> None:
    """Place the container behind all of its members.

    Only the container's own sibling collection is reordered: each member is
    represented there by itself or by its ancestor in that collection.
    Members inside the container already render above it; members in other
    subtrees are not ordered against it.

    A container nested inside a group is only ordered within that group. A
    page-level member then renders above or below the whole group, and
    callers who need the container behind such a member must reorder the
    group itself (for example with ``ShapeTree.move_before`` on the group).
    """
    record, state = _container_state(tree, container_id)
    siblings = tree.siblings(container_id)
    indexes: list[int] = []
    for mid in dict.fromkeys(state.ordered_members):
        for candidate in [mid] + tree.ancestors(mid):
            if candidate == container_id:
                break
            if tree.get(candidate).parent_id == record.parent_id:
                indexes.append(siblings.index(candidate))
                break
    if not indexes:
        return
    first = min(indexes)
    if siblings.index(container_id) > first:
        tree.move_before(container_id, siblings[first])
        logger.debug("Moved container %s behind %s", container_id, siblings[first])
