"""
Connector routing between shapes anywhere in the tree.

Each connector end is attached where the ray from the shape's centre toward
the other shape's centre leaves the shape's bounding box. Both shapes are
resolved to page coordinates first, so the two ends may sit in unrelated
subtrees.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from vsdx_geometry.coords import absolute_center
from vsdx_geometry.errors import ShapeNotFound
from vsdx_geometry.models import ConnectorGeometry, Point, Size, ZERO_SIZE
from vsdx_geometry.tree import ShapeTree

logger = logging.getLogger(__name__)


class EndpointPolicy(Enum):
    """How to treat a connector end that names a missing shape."""
    STRICT = "strict"    # raise ShapeNotFound
    LENIENT = "lenient"  # treat it as a 0x0 shape at the page origin


@dataclass
class RouterConfig:
    policy: EndpointPolicy = EndpointPolicy.STRICT


def compute_edge_point(
    center: Point,
    half_width: float,
    half_height: float,
    toward: Point,
) -> Point:
    """Where the ray from ``center`` toward ``toward`` exits the rectangle.

    The rectangle is axis-aligned with the given half extents. When
    ``toward`` coincides with ``center`` the centre itself is returned.
    """
    dx = toward.x - center.x
    dy = toward.y - center.y
    if dx == 0 and dy == 0:
        return center

    angle = math.atan2(dy, dx)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    # A ray parallel to an axis never meets the boundaries along that axis.
    tx = half_width / abs(cos_a) if dx != 0 else math.inf
    ty = half_height / abs(sin_a) if dy != 0 else math.inf
    t = min(tx, ty)
    return Point(center.x + t * cos_a, center.y + t * sin_a)


def _endpoint(
    tree: ShapeTree, shape_id: str, policy: EndpointPolicy,
) -> tuple[Point, Size]:
    record = tree.find(shape_id)
    if record is None:
        if policy is EndpointPolicy.STRICT:
            raise ShapeNotFound(shape_id)
        logger.warning(
            "Connector endpoint '%s' not found, routing to the page origin", shape_id
        )
        return Point(0.0, 0.0), ZERO_SIZE
    return absolute_center(tree, shape_id), record.effective_size


def route_connector(
    tree: ShapeTree,
    from_id: str,
    to_id: str,
    config: RouterConfig | None = None,
) -> ConnectorGeometry:
    """Compute begin/end points, length and angle for a connector.

    Shapes that exist but carry no size are routed as 0x0 rectangles, so the
    connector ends at their centre. The result is informational; nothing is
    written back to the tree.
    """
    cfg = config or RouterConfig()
    from_center, from_size = _endpoint(tree, from_id, cfg.policy)
    to_center, to_size = _endpoint(tree, to_id, cfg.policy)

    begin = compute_edge_point(
        from_center, from_size.half_width, from_size.half_height, to_center
    )
    end = compute_edge_point(
        to_center, to_size.half_width, to_size.half_height, from_center
    )
    dx = end.x - begin.x
    dy = end.y - begin.y
    return ConnectorGeometry(
        from_id=from_id,
        to_id=to_id,
        begin=begin,
        end=end,
        width=math.sqrt(dx * dx + dy * dy),
        angle=math.atan2(dy, dx),
    )
