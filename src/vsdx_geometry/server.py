"""
Shape geometry MCP server — build diagram pages via Model Context Protocol.

Exposes 5 tools that let an LLM agent place shapes, route connectors and lay
out containers on in-memory pages, then persist them as page XML.

Tools:
  1. page      — lifecycle: create, add_page, list, save, load, get_xml
  2. shape     — content:   add/update shapes, relative placement, grid layout
  3. connect   — routing:   add connectors, route without storing, reroute all
  4. container — layout:    create containers/lists, add members, restack, resize
  5. inspect   — read-only: shapes, absolute positions, hierarchy, connectors
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from vsdx_geometry import containers
from vsdx_geometry.coords import absolute_bounds, absolute_center, resolve_absolute
from vsdx_geometry.document import Document, Page
from vsdx_geometry.errors import DuplicateShapeId, GeometryError, InvalidKindTransition
from vsdx_geometry.models import ShapeKind, ShapeRecord, StackAxis
from vsdx_geometry.placement import GridLayoutConfig, grid_layout, place_relative
from vsdx_geometry.routing import EndpointPolicy, RouterConfig, route_connector
from vsdx_geometry.store import PageStore
from vsdx_geometry.tree import validate_size
from vsdx_geometry.validation import (
    ValidationError,
    validate_action,
    validate_axis,
    validate_bool,
    validate_columns,
    validate_connection_dict,
    validate_direction,
    validate_directory,
    validate_list,
    validate_non_empty_string,
    validate_non_negative_number,
    validate_number,
    validate_page_id,
    validate_positive_number,
    validate_shape_dict,
    validate_string,
    validate_update_dict,
    _CONNECT_ACTIONS,
    _CONTAINER_ACTIONS,
    _INSPECT_ACTIONS,
    _PAGE_ACTIONS,
    _SHAPE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging — keep routine FastMCP INFO messages out of the client's log pane.
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("vsdx-geometry")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "vsdx-geometry",
    instructions=(
        "MCP server for laying out diagram pages: nested shapes, connectors\n"
        "and auto-sized containers.\n\n"
        "=== ONLY 5 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. page(action, ...) — lifecycle: create, add_page, list, save, load, get_xml.\n"
        "2. shape(action, ...) — content: add_shapes, update_shapes, place, grid.\n"
        "3. connect(action, ...) — routing: add, route, reroute.\n"
        "4. container(action, ...) — layout: create, add_members, restack,\n"
        "   resize_to_fit.\n"
        "5. inspect(action, ...) — read-only: shapes, absolute, tree, connectors.\n\n"
        "=== RULES ===\n"
        "- Units are inches. The page origin is bottom-left and Y grows upward.\n"
        "- x, y of a shape is its PIN (centre by default) in its PARENT's frame.\n"
        "  Page-level shapes use page coordinates.\n"
        "- Width and height must be > 0.\n"
        "- Containers with axis vertical/horizontal stack their members in the\n"
        "  order they were added; axis none keeps members where they are.\n"
        "- Containers resize to fit their members automatically.\n"
        "- Connectors attach where the line between centres leaves each shape.\n"
        "- Read drawing://guide/coordinates for the coordinate model.\n"
    ),
)

# In-memory document registry: name -> Document, with one lock per document
# so every mutation of a page is serialized.
_documents: dict[str, Document] = {}
_document_locks: dict[str, threading.Lock] = {}
_documents_lock = threading.Lock()


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("drawing://guide/coordinates")
def coordinate_guide() -> str:
    """Return the coordinate model used by every tool."""
    return COORDINATE_GUIDE


COORDINATE_GUIDE = """\
# Coordinate Model

- Every shape has a PIN (x, y) and a LOC PIN. The loc pin is the offset from
  the shape's bottom-left corner to its pin; by default it is the centre.
- A page-level shape's pin is in page coordinates (origin bottom-left, Y up).
- A child's pin is relative to its parent's bottom-left corner:
    absolute(child) = absolute(parent) - locpin(parent) + pin(child)
- Use inspect(action='absolute', shape_id=...) to read page coordinates.

# Containers

- container(action='create', axis='vertical') makes a list: members stack
  top to bottom with 'spacing' between them, starting 'padding' below the
  container's top edge.
- axis='horizontal' stacks left to right; axis='none' keeps members in place.
- After every add the container resizes to its members plus 'padding' and is
  moved behind them in z-order.

# Connectors

- connect(action='add') routes between shape centres and clips each end to
  the shape's rectangle. Connectors are re-routed on save.
- Missing shapes are an error unless the page was created with
  lenient_endpoints=True (they then route to the page origin).
"""


# ===================================================================
# Helpers
# ===================================================================

def _lookup(name: str) -> tuple[Document, threading.Lock] | None:
    with _documents_lock:
        doc = _documents.get(name)
        if doc is None:
            return None
        return doc, _document_locks[name]


def _register(name: str, doc: Document) -> None:
    with _documents_lock:
        _documents[name] = doc
        _document_locks.setdefault(name, threading.Lock())


def _shape_info(page: Page, record: ShapeRecord) -> dict[str, Any]:
    info: dict[str, Any] = {
        "id": record.id,
        "parent_id": record.parent_id,
        "kind": record.kind.value,
        "text": record.text,
        "pin": {"x": record.pin.x, "y": record.pin.y},
        "loc_pin": {"x": record.loc_pin.x, "y": record.loc_pin.y},
        "size": (
            {"width": record.size.width, "height": record.size.height}
            if record.size is not None else None
        ),
    }
    absolute = resolve_absolute(page.tree, record.id)
    info["absolute"] = {"x": absolute.x, "y": absolute.y}
    if record.container is not None:
        info["container"] = {
            "members": list(record.container.ordered_members),
            "axis": record.container.stack_axis.value,
            "spacing": record.container.spacing,
            "padding": record.container.padding,
        }
    return info


def _add_shapes(pg: Page, items: list[dict[str, Any]]) -> list[str]:
    """Add a batch of validated shape dicts; nothing is added if any would fail."""
    tree = pg.tree
    explicit: dict[str, bool] = {}  # batch id -> foreign
    for s in items:
        validate_size(s["width"], s["height"])
        parent_id = s.get("parent_id") or None
        if parent_id is not None:
            if parent_id in explicit:
                foreign = explicit[parent_id]
            else:
                foreign = tree.get(parent_id).kind is ShapeKind.FOREIGN
            if foreign:
                raise InvalidKindTransition(
                    f"foreign shape '{parent_id}' cannot hold child shapes."
                )
        shape_id = s.get("shape_id") or None
        if shape_id is not None:
            if tree.is_used(shape_id) or shape_id in explicit:
                raise DuplicateShapeId(shape_id)
            explicit[shape_id] = bool(s.get("foreign"))

    ids: list[str] = []
    for s in items:
        shape_id = s.get("shape_id") or None
        if shape_id is None:
            # generated ids must not take an id claimed later in the batch
            shape_id = tree.next_id()
            while shape_id in explicit:
                shape_id = tree.next_id()
        record = pg.add_shape(
            s["x"], s["y"], s["width"], s["height"],
            text=s.get("text", ""),
            parent_id=s.get("parent_id") or None,
            shape_id=shape_id,
            kind=ShapeKind.FOREIGN if s.get("foreign") else ShapeKind.SHAPE,
        )
        ids.append(record.id)
    return ids


# ===================================================================
# TOOL 1: page — lifecycle
# ===================================================================

@mcp.tool()
def page(
    action: str,
    document: str = "",
    page_id: str = "",
    directory: str = "",
    lenient_endpoints: bool = False,
) -> str:
    """Document and page lifecycle management.

    Actions:
      create   — Create a document with one empty page. Params: document, page_id,
                 lenient_endpoints.
      add_page — Add an empty page. Params: document, page_id.
      list     — List all in-memory documents. No params needed.
      save     — Write every page as <page_id>.xml. Params: document, directory.
      load     — Load all pages (or just page_id) from a directory. Params: document,
                 directory, page_id.
      get_xml  — Get the XML of one page. Params: document, page_id.

    Args:
        action: One of: create, add_page, list, save, load, get_xml.
        document: Document name (key in memory).
        page_id: Page id; defaults to the first page where one is needed.
        directory: Directory for save/load.
        lenient_endpoints: Route connectors to missing shapes at the page origin
                           instead of failing (create only).

    Returns:
        Result string or JSON depending on action.
    """
    try:
        action = validate_action(action, "page", _PAGE_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result: list[dict[str, Any]] = []
        with _documents_lock:
            items = list(_documents.items())
        for name, doc in items:
            pages = [
                {"id": p.id, "shapes": len(p.tree), "connectors": len(p.connections)}
                for p in doc.pages.values()
            ]
            result.append({"document": name, "pages": pages})
        return json.dumps(result, indent=2)

    try:
        document = validate_non_empty_string(document, "document")
        if page_id:
            page_id = validate_page_id(page_id)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        try:
            validate_bool(lenient_endpoints, "lenient_endpoints")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        policy = EndpointPolicy.LENIENT if lenient_endpoints else EndpointPolicy.STRICT
        doc = Document(router=RouterConfig(policy=policy))
        first = doc.add_page(page_id or None)
        _register(document, doc)
        logger.info("Created document %s", document)
        return f"Document '{document}' created with page '{first.id}'."

    if action == "load":
        try:
            directory = validate_directory(directory, "directory")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        store = PageStore(directory)
        try:
            doc = Document.load(store, [page_id] if page_id else None)
        except GeometryError as exc:
            return f"Error: {exc.message}"
        if not doc.pages:
            return f"Error: no pages found in '{directory}'."
        _register(document, doc)
        total = sum(len(p.tree) for p in doc.pages.values())
        return f"Loaded '{document}' with {len(doc.pages)} page(s) and {total} shapes."

    found = _lookup(document)
    if found is None:
        return f"Error: document '{document}' not found."
    doc, lock = found

    with lock:
        try:
            if action == "add_page":
                new_page = doc.add_page(page_id or None)
                return f"Page '{new_page.id}' added to document '{document}'."

            elif action == "save":
                directory = validate_directory(directory, "directory")
                paths = doc.save(PageStore(directory))
                return json.dumps({"saved": paths})

            elif action == "get_xml":
                return doc.page(page_id or None).to_xml()

        except ValidationError as exc:
            return f"Error: {exc.message}"
        except GeometryError as exc:
            return f"Error: {exc.message}"

    return f"Error: unknown page action '{action}'."


# ===================================================================
# TOOL 2: shape — content
# ===================================================================

@mcp.tool()
def shape(
    action: str,
    document: str,
    page_id: str = "",
    shapes: Optional[list[dict[str, Any]]] = None,
    updates: Optional[list[dict[str, Any]]] = None,
    shape_id: str = "",
    anchor_id: str = "",
    direction: str = "right",
    gap: float = 1.0,
    columns: int = 3,
    spacing: float = 0.5,
) -> str:
    """Shape creation and positioning.

    Actions:
      add_shapes    — Add shapes. Params: shapes (list of {x, y, width, height,
                      text?, parent_id?, shape_id?, foreign?}). x, y is the pin in
                      the parent's frame. Returns JSON list of ids.
      update_shapes — Move/resize/relabel. Params: updates (list of {shape_id,
                      x?, y?, width?, height?, text?}).
      place         — Put shape_id next to anchor_id. Params: shape_id, anchor_id,
                      direction (right, left, above, below), gap.
      grid          — Arrange all page-level shapes on a grid. Params: columns,
                      spacing.

    Returns:
        JSON or a status string.
    """
    try:
        action = validate_action(action, "shape", _SHAPE_ACTIONS)
        document = validate_non_empty_string(document, "document")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    found = _lookup(document)
    if found is None:
        return f"Error: document '{document}' not found."
    doc, lock = found

    with lock:
        try:
            pg = doc.page(page_id or None)

            if action == "add_shapes":
                items = validate_list(shapes, "shapes", min_length=1)
                for i, s in enumerate(items):
                    validate_shape_dict(s, i)
                return json.dumps(_add_shapes(pg, items))

            elif action == "update_shapes":
                items = validate_list(updates, "updates", min_length=1)
                for i, u in enumerate(items):
                    validate_update_dict(u, i)
                    pg.tree.get(u["shape_id"])
                    if "width" in u:
                        validate_size(u["width"], u["height"])
                for u in items:
                    record = pg.tree.get(u["shape_id"])
                    if "width" in u:
                        pg.tree.resize(record.id, u["width"], u["height"])
                    if "x" in u:
                        pg.tree.move(record.id, u["x"], u["y"])
                    if "text" in u:
                        record.text = u["text"]
                return f"Updated {len(items)} shape(s)."

            elif action == "place":
                shape_id = validate_non_empty_string(shape_id, "shape_id")
                anchor_id = validate_non_empty_string(anchor_id, "anchor_id")
                direction = validate_direction(direction)
                gap = validate_non_negative_number(gap, "gap")
                record = place_relative(pg.tree, shape_id, anchor_id, direction, gap)
                return json.dumps(_shape_info(pg, record))

            elif action == "grid":
                columns = validate_columns(columns)
                spacing = validate_non_negative_number(spacing, "spacing")
                moved = pg.apply_layout(grid_layout(GridLayoutConfig(
                    columns=columns, h_spacing=spacing, v_spacing=spacing,
                )))
                return json.dumps(moved)

        except ValidationError as exc:
            return f"Error: {exc.message}"
        except GeometryError as exc:
            return f"Error: {exc.message}"

    return f"Error: unknown shape action '{action}'."


# ===================================================================
# TOOL 3: connect — routing
# ===================================================================

@mcp.tool()
def connect(
    action: str,
    document: str,
    page_id: str = "",
    connections: Optional[list[dict[str, Any]]] = None,
    lenient: bool = False,
) -> str:
    """Connector routing.

    Actions:
      add     — Route and store connectors. Params: connections (list of
                {from_id, to_id, connector_id?}).
      route   — Route without storing. Params: connections, lenient (missing
                shapes route to the page origin instead of failing).
      reroute — Route every stored connector again from current geometry.

    Returns:
        JSON list of {id?, from_id, to_id, begin, end, width, angle}.
    """
    try:
        action = validate_action(action, "connect", _CONNECT_ACTIONS)
        document = validate_non_empty_string(document, "document")
        validate_bool(lenient, "lenient")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    found = _lookup(document)
    if found is None:
        return f"Error: document '{document}' not found."
    doc, lock = found

    with lock:
        try:
            pg = doc.page(page_id or None)

            if action == "reroute":
                return json.dumps([
                    {"id": c.id, **geometry.to_dict()} for c, geometry in pg.reroute()
                ])

            items = validate_list(connections, "connections", min_length=1)
            for i, c in enumerate(items):
                validate_connection_dict(c, i)

            if action == "route":
                cfg = RouterConfig(
                    policy=EndpointPolicy.LENIENT if lenient else pg.router.policy
                )
                return json.dumps([
                    route_connector(pg.tree, c["from_id"], c["to_id"], cfg).to_dict()
                    for c in items
                ])

            elif action == "add":
                result: list[dict[str, Any]] = []
                for c in items:
                    connection, geometry = pg.connect(
                        c["from_id"], c["to_id"], c.get("connector_id") or None,
                    )
                    result.append({"id": connection.id, **geometry.to_dict()})
                return json.dumps(result)

        except ValidationError as exc:
            return f"Error: {exc.message}"
        except GeometryError as exc:
            return f"Error: {exc.message}"

    return f"Error: unknown connect action '{action}'."


# ===================================================================
# TOOL 4: container — layout
# ===================================================================

@mcp.tool()
def container(
    action: str,
    document: str,
    page_id: str = "",
    container_id: str = "",
    member_ids: Optional[list[str]] = None,
    x: float = 0,
    y: float = 0,
    width: float = 1,
    height: float = 1,
    text: str = "",
    axis: str = "vertical",
    spacing: float = 0.125,
    padding: Optional[float] = None,
    parent_id: str = "",
) -> str:
    """Container and list layout.

    Actions:
      create        — New container. Params: x, y, width, height, text, axis
                      (vertical, horizontal, none), spacing, padding, parent_id.
      add_members   — Append members in order; restacks, resizes and fixes
                      z-order after each. Params: container_id, member_ids.
      restack       — Stack members again. Params: container_id.
      resize_to_fit — Fit the container around its members. Params: container_id,
                      padding (defaults to the container's own).

    Returns:
        JSON describing the container.
    """
    try:
        action = validate_action(action, "container", _CONTAINER_ACTIONS)
        document = validate_non_empty_string(document, "document")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    found = _lookup(document)
    if found is None:
        return f"Error: document '{document}' not found."
    doc, lock = found

    with lock:
        try:
            pg = doc.page(page_id or None)

            if action == "create":
                x = validate_number(x, "x")
                y = validate_number(y, "y")
                width = validate_positive_number(width, "width")
                height = validate_positive_number(height, "height")
                validate_string(text, "text")
                stack_axis = StackAxis(validate_axis(axis))
                spacing = validate_non_negative_number(spacing, "spacing")
                pad = 0.25 if padding is None else validate_non_negative_number(padding, "padding")
                record = pg.add_list(
                    x, y, width, height, text=text, axis=stack_axis,
                    spacing=spacing, padding=pad, parent_id=parent_id or None,
                )
                return json.dumps(_shape_info(pg, record))

            container_id = validate_non_empty_string(container_id, "container_id")

            if action == "add_members":
                ids = validate_list(member_ids, "member_ids", min_length=1)
                for i, mid in enumerate(ids):
                    validate_non_empty_string(mid, f"member_ids[{i}]")
                pg.add_members(container_id, [mid.strip() for mid in ids])

            elif action == "restack":
                containers.restack(pg.tree, container_id)

            elif action == "resize_to_fit":
                pad = None if padding is None else validate_non_negative_number(padding, "padding")
                containers.resize_to_fit(pg.tree, container_id, pad)

            record = pg.tree.get(container_id)
            info = _shape_info(pg, record)
            info["z_order"] = pg.tree.siblings(container_id)
            return json.dumps(info)

        except ValidationError as exc:
            return f"Error: {exc.message}"
        except GeometryError as exc:
            return f"Error: {exc.message}"


# ===================================================================
# TOOL 5: inspect — read-only
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    document: str,
    page_id: str = "",
    shape_id: str = "",
) -> str:
    """Read-only queries.

    Actions:
      shapes     — Every shape with pin, loc pin, size and absolute pin.
      absolute   — Page-space pin, centre and bounds of shape_id.
      tree       — Shapes in z-order with their nesting depth.
      connectors — Stored connectors with freshly routed geometry.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        document = validate_non_empty_string(document, "document")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    found = _lookup(document)
    if found is None:
        return f"Error: document '{document}' not found."
    doc, lock = found

    with lock:
        try:
            pg = doc.page(page_id or None)

            if action == "shapes":
                return json.dumps([_shape_info(pg, r) for r in pg.tree.walk()], indent=2)

            elif action == "absolute":
                shape_id = validate_non_empty_string(shape_id, "shape_id")
                pin = resolve_absolute(pg.tree, shape_id)
                center = absolute_center(pg.tree, shape_id)
                b = absolute_bounds(pg.tree, shape_id)
                return json.dumps({
                    "id": shape_id,
                    "pin": {"x": pin.x, "y": pin.y},
                    "center": {"x": center.x, "y": center.y},
                    "bounds": {"x": b.x, "y": b.y, "width": b.width, "height": b.height},
                    "containers": containers.containers_of(pg.tree, shape_id),
                })

            elif action == "tree":
                return json.dumps([
                    {"id": r.id, "kind": r.kind.value, "depth": pg.tree.depth(r.id)}
                    for r in pg.tree.walk()
                ], indent=2)

            elif action == "connectors":
                return json.dumps([
                    {"id": c.id, **geometry.to_dict()} for c, geometry in pg.reroute()
                ], indent=2)

        except ValidationError as exc:
            return f"Error: {exc.message}"
        except GeometryError as exc:
            return f"Error: {exc.message}"

    return f"Error: unknown inspect action '{action}'."


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
