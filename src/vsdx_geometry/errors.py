"""
Error kinds raised by the geometry engine.

All of them carry a human-readable ``message`` so callers (the page API, the
MCP server) can turn them into diagnostics without inspecting internals.
"""

from __future__ import annotations


class GeometryError(Exception):
    """Base class for every failure surfaced by the engine."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ShapeNotFound(GeometryError):
    """An id referenced by an operation does not exist in the tree."""

    def __init__(self, shape_id: str) -> None:
        self.shape_id = shape_id
        super().__init__(f"shape '{shape_id}' not found.")


class CyclicAncestry(GeometryError):
    """Walking parent links revisited a shape."""

    def __init__(self, shape_id: str, chain: list[str] | None = None) -> None:
        self.shape_id = shape_id
        self.chain = list(chain or [])
        path = " -> ".join(self.chain + [shape_id]) if self.chain else shape_id
        super().__init__(f"cyclic parent chain at shape '{shape_id}' ({path}).")


class InvalidDimensions(GeometryError):
    """A shape was given a non-positive (or non-finite) width or height."""

    def __init__(self, width: float, height: float) -> None:
        self.width = width
        self.height = height
        super().__init__(
            f"width and height must be positive, got {width} x {height}."
        )


class DuplicateShapeId(GeometryError):
    """A shape id is already used on the page."""

    def __init__(self, shape_id: str) -> None:
        self.shape_id = shape_id
        super().__init__(f"shape id '{shape_id}' is already in use.")


class InvalidKindTransition(GeometryError):
    """A kind promotion that the one-way state machine does not allow."""


class PageFormatError(GeometryError):
    """Stored page XML could not be turned into a shape tree."""


class PageNotFound(GeometryError):
    """No stored page under the requested id."""

    def __init__(self, page_id: str) -> None:
        self.page_id = page_id
        super().__init__(f"page '{page_id}' not found.")
