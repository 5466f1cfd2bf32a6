"""
Shape tree: the single owner of shape records for one page.

Holds every ``ShapeRecord``, the parent/child relation and the order of each
sibling collection. Sibling order is z-order: earlier entries render behind
later ones. Page-level shapes live in the root collection.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from vsdx_geometry.errors import (
    CyclicAncestry,
    DuplicateShapeId,
    GeometryError,
    InvalidDimensions,
    InvalidKindTransition,
    ShapeNotFound,
)
from vsdx_geometry.models import ContainerState, Point, ShapeKind, ShapeRecord, Size, StackAxis

logger = logging.getLogger(__name__)


class ShapeTree:
    """Shape records for a page plus their hierarchy and sibling order."""

    def __init__(self) -> None:
        self._records: dict[str, ShapeRecord] = {}
        # parent id -> ordered child ids; None is the page itself
        self._children: dict[Optional[str], list[str]] = {None: []}
        self._reserved: set[str] = set()
        self._next_id = 1

    # ----- lookup -----

    def __contains__(self, shape_id: object) -> bool:
        return shape_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ShapeRecord]:
        return self.walk()

    def get(self, shape_id: str) -> ShapeRecord:
        try:
            return self._records[shape_id]
        except KeyError:
            raise ShapeNotFound(shape_id) from None

    def find(self, shape_id: str) -> ShapeRecord | None:
        return self._records.get(shape_id)

    def is_used(self, shape_id: str) -> bool:
        """True when ``shape_id`` names a shape or an id reserved beside the tree."""
        return shape_id in self._records or shape_id in self._reserved

    def next_id(self) -> str:
        """Generate a sequential id that is not used by any shape yet."""
        while True:
            sid = str(self._next_id)
            self._next_id += 1
            if not self.is_used(sid):
                return sid

    def reserve_id(self, shape_id: Optional[str] = None) -> str:
        """Claim an id for something stored beside the tree (e.g. a connector)."""
        sid = shape_id or self.next_id()
        if self.is_used(sid):
            raise DuplicateShapeId(sid)
        self._reserved.add(sid)
        return sid

    # ----- creation -----

    def add_shape(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        *,
        text: str = "",
        parent_id: Optional[str] = None,
        shape_id: Optional[str] = None,
        kind: ShapeKind = ShapeKind.SHAPE,
        loc_pin: Optional[Point] = None,
    ) -> ShapeRecord:
        """Create a shape whose pin is (x, y) in the parent's frame.

        Dimensions are checked before anything touches the tree, so a
        rejected shape leaves no trace.
        """
        size = validate_size(width, height)
        record = ShapeRecord(
            id=shape_id or self.next_id(),
            pin=Point(float(x), float(y)),
            size=size,
            loc_pin=loc_pin,
            parent_id=parent_id,
            kind=kind,
            text=text,
        )
        if kind is ShapeKind.CONTAINER:
            record.container = ContainerState()
        return self.insert(record)

    def insert(self, record: ShapeRecord, index: Optional[int] = None) -> ShapeRecord:
        """Attach a pre-built record under ``record.parent_id``.

        Used by loaders; records may lack a size but a given size must be
        valid.
        """
        if self.is_used(record.id):
            raise DuplicateShapeId(record.id)
        if record.size is not None and not record.size.is_valid():
            raise InvalidDimensions(record.size.width, record.size.height)
        if record.parent_id is not None:
            self._check_can_hold_children(record.parent_id)
        if record.kind is ShapeKind.CONTAINER and record.container is None:
            record.container = ContainerState()

        self._records[record.id] = record
        self._children.setdefault(record.id, [])
        siblings = self._children[record.parent_id]
        if index is None:
            siblings.append(record.id)
        else:
            siblings.insert(index, record.id)
        if record.parent_id is not None:
            self.promote_to_group(record.parent_id)
        return record

    def _check_can_hold_children(self, parent_id: str) -> None:
        if self.get(parent_id).kind is ShapeKind.FOREIGN:
            raise InvalidKindTransition(
                f"foreign shape '{parent_id}' cannot hold child shapes."
            )

    # ----- kind transitions -----

    def promote_to_group(self, shape_id: str) -> ShapeRecord:
        """Shape -> Group. Groups and containers are left as they are."""
        record = self.get(shape_id)
        if record.kind is ShapeKind.SHAPE:
            record.kind = ShapeKind.GROUP
        elif record.kind is ShapeKind.FOREIGN:
            raise InvalidKindTransition(
                f"foreign shape '{shape_id}' cannot hold child shapes."
            )
        return record

    def promote_to_container(
        self,
        shape_id: str,
        stack_axis: StackAxis = StackAxis.VERTICAL,
        spacing: float = 0.125,
        padding: float = 0.25,
    ) -> ShapeRecord:
        """Shape/Group -> Container. Promoting a container again is a no-op."""
        record = self.get(shape_id)
        if record.kind is ShapeKind.CONTAINER:
            return record
        if record.kind is ShapeKind.FOREIGN:
            raise InvalidKindTransition(
                f"foreign shape '{shape_id}' cannot become a container."
            )
        record.kind = ShapeKind.CONTAINER
        record.container = ContainerState(
            stack_axis=stack_axis, spacing=spacing, padding=padding,
        )
        logger.debug("Promoted shape %s to container (%s)", shape_id, stack_axis.value)
        return record

    # ----- mutation -----

    def move(self, shape_id: str, x: float, y: float) -> ShapeRecord:
        """Set the pin in the parent's frame."""
        record = self.get(shape_id)
        record.pin = Point(float(x), float(y))
        return record

    def resize(self, shape_id: str, width: float, height: float) -> ShapeRecord:
        """Set the size, keeping the loc pin at the same relative spot."""
        size = validate_size(width, height)
        record = self.get(shape_id)
        record.loc_pin = scale_loc_pin(record, size)
        record.size = size
        return record

    def set_loc_pin(self, shape_id: str, x: float, y: float) -> ShapeRecord:
        record = self.get(shape_id)
        record.loc_pin = Point(float(x), float(y))
        return record

    def set_parent(
        self,
        shape_id: str,
        parent_id: Optional[str],
        index: Optional[int] = None,
    ) -> ShapeRecord:
        """Move a shape into another sibling collection.

        The pin keeps its numeric value and is now read in the new parent's
        frame.
        """
        record = self.get(shape_id)
        if parent_id is not None:
            self._check_can_hold_children(parent_id)
            if parent_id == shape_id or shape_id in self.ancestors(parent_id):
                raise CyclicAncestry(shape_id, self.ancestors(parent_id)[::-1])
        self._children[record.parent_id].remove(shape_id)
        record.parent_id = parent_id
        siblings = self._children[parent_id]
        if index is None:
            siblings.append(shape_id)
        else:
            siblings.insert(index, shape_id)
        if parent_id is not None:
            self.promote_to_group(parent_id)
        return record

    def move_before(self, shape_id: str, other_id: str) -> None:
        """Reorder a sibling collection so ``shape_id`` sits right before ``other_id``."""
        record = self.get(shape_id)
        other = self.get(other_id)
        if record.parent_id != other.parent_id:
            raise GeometryError(
                f"shapes '{shape_id}' and '{other_id}' are not siblings."
            )
        siblings = self._children[record.parent_id]
        siblings.remove(shape_id)
        siblings.insert(siblings.index(other_id), shape_id)

    def send_to_back(self, shape_id: str) -> None:
        record = self.get(shape_id)
        siblings = self._children[record.parent_id]
        siblings.remove(shape_id)
        siblings.insert(0, shape_id)

    # ----- hierarchy queries -----

    def roots(self) -> list[str]:
        return list(self._children[None])

    def children(self, shape_id: str) -> list[str]:
        self.get(shape_id)
        return list(self._children[shape_id])

    def siblings(self, shape_id: str) -> list[str]:
        """The ordered collection that contains ``shape_id`` (itself included)."""
        return list(self._children[self.get(shape_id).parent_id])

    def sibling_index(self, shape_id: str) -> int:
        return self._children[self.get(shape_id).parent_id].index(shape_id)

    def parent(self, shape_id: str) -> ShapeRecord | None:
        parent_id = self.get(shape_id).parent_id
        return self.get(parent_id) if parent_id is not None else None

    def ancestors(self, shape_id: str) -> list[str]:
        """Parent ids from the immediate parent up to a page-level shape."""
        chain: list[str] = []
        visited = {shape_id}
        current = self.get(shape_id).parent_id
        while current is not None:
            if current in visited:
                raise CyclicAncestry(current, [shape_id] + chain)
            visited.add(current)
            chain.append(current)
            current = self.get(current).parent_id
        return chain

    def depth(self, shape_id: str) -> int:
        return len(self.ancestors(shape_id))

    def iter_descendants(self, shape_id: str) -> Iterator[ShapeRecord]:
        """Pre-order walk below ``shape_id`` using an explicit stack."""
        stack = list(reversed(self.children(shape_id)))
        seen: set[str] = {shape_id}
        while stack:
            current = stack.pop()
            if current in seen:
                raise CyclicAncestry(current)
            seen.add(current)
            yield self._records[current]
            stack.extend(reversed(self._children[current]))

    def walk(self) -> Iterator[ShapeRecord]:
        """Every record in document (pre-order, z-order) sequence."""
        stack = list(reversed(self._children[None]))
        while stack:
            current = stack.pop()
            yield self._records[current]
            stack.extend(reversed(self._children[current]))


def scale_loc_pin(record: ShapeRecord, new_size: Size) -> Point:
    """Loc pin for ``new_size`` at the same relative position as today."""
    old = record.size
    if old is None or record.loc_pin is None or old.width == 0 or old.height == 0:
        return new_size.center
    if old == new_size:
        return record.loc_pin
    return Point(
        record.loc_pin.x * (new_size.width / old.width),
        record.loc_pin.y * (new_size.height / old.height),
    )


def validate_size(width: float, height: float) -> Size:
    size = Size(float(width), float(height))
    if not size.is_valid():
        raise InvalidDimensions(width, height)
    return size


