"""
Core data model for shape trees.

Coordinates follow the drawing-page convention: the page origin is the
bottom-left corner and Y grows upward, so "below" means a smaller Y.
A shape is located by its *pin* (expressed in the parent's local frame) and
its *loc pin* (the offset from the shape's own bottom-left corner to the pin).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from vsdx_geometry.errors import GeometryError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ShapeKind(Enum):
    """What a shape record is.

    ``SHAPE`` becomes ``GROUP`` once it gets a child; ``SHAPE`` or ``GROUP``
    becomes ``CONTAINER`` on the first membership add. Both transitions are
    one-way.
    """
    SHAPE = "Shape"
    GROUP = "Group"
    CONTAINER = "Container"
    FOREIGN = "Foreign"


class StackAxis(Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    NONE = "none"  # free-form container: members keep their place


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def __add__(self, other: 'Point') -> 'Point':
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: 'Point') -> 'Point':
        return Point(self.x - other.x, self.y - other.y)

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def half_width(self) -> float:
        return self.width / 2

    @property
    def half_height(self) -> float:
        return self.height / 2

    @property
    def center(self) -> Point:
        """Offset of the centre from the bottom-left corner."""
        return Point(self.width / 2, self.height / 2)

    def is_valid(self) -> bool:
        return (
            math.isfinite(self.width) and math.isfinite(self.height)
            and self.width > 0 and self.height > 0
        )


ZERO_SIZE = Size(0.0, 0.0)


@dataclass
class ContainerState:
    """Ordered-membership metadata carried by container shapes."""
    ordered_members: list[str] = field(default_factory=list)
    stack_axis: StackAxis = StackAxis.VERTICAL
    spacing: float = 0.125
    padding: float = 0.25

    def __post_init__(self) -> None:
        if not math.isfinite(self.spacing) or self.spacing < 0:
            raise GeometryError(f"spacing must be a finite number >= 0, got {self.spacing}.")
        if not math.isfinite(self.padding) or self.padding < 0:
            raise GeometryError(f"padding must be a finite number >= 0, got {self.padding}.")


@dataclass
class ShapeRecord:
    """A single positioned shape on a page."""
    id: str
    pin: Point
    size: Optional[Size] = None
    loc_pin: Optional[Point] = None
    parent_id: Optional[str] = None
    kind: ShapeKind = ShapeKind.SHAPE
    container: Optional[ContainerState] = None
    text: str = ""

    def __post_init__(self) -> None:
        if self.loc_pin is None:
            self.loc_pin = self.size.center if self.size else Point(0.0, 0.0)

    @property
    def effective_size(self) -> Size:
        """The size used for geometry; shapes without one count as 0x0."""
        return self.size if self.size is not None else ZERO_SIZE

    @property
    def is_container(self) -> bool:
        return self.kind is ShapeKind.CONTAINER


@dataclass(frozen=True)
class ConnectorGeometry:
    """Routing result for a connector between two shapes (page frame)."""
    from_id: str
    to_id: str
    begin: Point
    end: Point
    width: float
    angle: float

    @property
    def pin(self) -> Point:
        """Midpoint of the connector line."""
        return Point((self.begin.x + self.end.x) / 2, (self.begin.y + self.end.y) / 2)

    @property
    def is_degenerate(self) -> bool:
        return self.begin == self.end

    def to_dict(self) -> dict[str, object]:
        return {
            "from_id": self.from_id,
            "to_id": self.to_id,
            "begin": {"x": self.begin.x, "y": self.begin.y},
            "end": {"x": self.end.x, "y": self.end.y},
            "width": self.width,
            "angle": self.angle,
        }


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle in page coordinates (x, y = bottom-left)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def around(cls, center: Point, size: Size) -> 'Bounds':
        return cls(center.x - size.half_width, center.y - size.half_height,
                   size.width, size.height)

    @classmethod
    def union(cls, boxes: list['Bounds']) -> 'Bounds':
        if not boxes:
            raise ValueError("cannot take the union of no bounds")
        left = min(b.x for b in boxes)
        bottom = min(b.y for b in boxes)
        right = max(b.right for b in boxes)
        top = max(b.top for b in boxes)
        return cls(left, bottom, right - left, top - bottom)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    @property
    def center(self) -> Point:
        return Point(self.cx, self.cy)

    def intersects(self, other: 'Bounds', margin: float = 0) -> bool:
        """Check if two bounding boxes overlap (with optional margin)."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.top + margin <= other.y
            or other.top + margin <= self.y
        )

    def contains_point(self, px: float, py: float, margin: float = 0) -> bool:
        return (
            self.x - margin <= px <= self.right + margin
            and self.y - margin <= py <= self.top + margin
        )


@dataclass(frozen=True)
class Connection:
    """A connector the page keeps: its own id and the two shapes it joins."""
    id: str
    from_id: str
    to_id: str
