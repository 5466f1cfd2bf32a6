"""
Page persistence: shape trees to and from a small XML page format.

Layout of a stored page::

    <PageContents ID="..." EndpointPolicy="strict">
      <Shapes>
        <Shape ID="1" Type="Container">
          <Cell N="PinX" V="..."/> ... PinY, LocPinX, LocPinY, Width, Height
          <Text>label</Text>
          <Container StackAxis="vertical" Spacing="0.125" Padding="0.25">
            <Member ID="2"/>
          </Container>
          <Shapes> ...children, in z-order... </Shapes>
        </Shape>
      </Shapes>
      <Connects>
        <Connect ID="9" FromSheet="1" ToSheet="2">
          <Cell N="BeginX" V="..."/> ... BeginY, EndX, EndY, PinX, PinY, Width, Angle
        </Connect>
      </Connects>
    </PageContents>

Sibling order is element order. Numbers are written with ``str(float)``,
which round-trips exactly.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Optional

from vsdx_geometry.errors import GeometryError, PageFormatError, PageNotFound
from vsdx_geometry.models import (
    Connection,
    ConnectorGeometry,
    ContainerState,
    Point,
    ShapeKind,
    ShapeRecord,
    Size,
    StackAxis,
)
from vsdx_geometry.routing import EndpointPolicy
from vsdx_geometry.tree import ShapeTree

_PAGE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _cell(parent: ET.Element, name: str, value: float) -> None:
    ET.SubElement(parent, "Cell", attrib={"N": name, "V": str(float(value))})


def shape_to_element(record: ShapeRecord) -> ET.Element:
    """A ``<Shape>`` element without its children."""
    el = ET.Element("Shape", attrib={"ID": record.id, "Type": record.kind.value})
    _cell(el, "PinX", record.pin.x)
    _cell(el, "PinY", record.pin.y)
    _cell(el, "LocPinX", record.loc_pin.x)
    _cell(el, "LocPinY", record.loc_pin.y)
    if record.size is not None:
        _cell(el, "Width", record.size.width)
        _cell(el, "Height", record.size.height)
    if record.text:
        ET.SubElement(el, "Text").text = record.text
    if record.container is not None:
        state = record.container
        cont = ET.SubElement(el, "Container", attrib={
            "StackAxis": state.stack_axis.value,
            "Spacing": str(float(state.spacing)),
            "Padding": str(float(state.padding)),
        })
        for mid in state.ordered_members:
            ET.SubElement(cont, "Member", attrib={"ID": mid})
    return el


def connector_to_element(connector_id: str, geometry: ConnectorGeometry) -> ET.Element:
    el = ET.Element("Connect", attrib={
        "ID": connector_id,
        "FromSheet": geometry.from_id,
        "ToSheet": geometry.to_id,
    })
    _cell(el, "BeginX", geometry.begin.x)
    _cell(el, "BeginY", geometry.begin.y)
    _cell(el, "EndX", geometry.end.x)
    _cell(el, "EndY", geometry.end.y)
    _cell(el, "PinX", geometry.pin.x)
    _cell(el, "PinY", geometry.pin.y)
    _cell(el, "Width", geometry.width)
    _cell(el, "Angle", geometry.angle)
    return el


def tree_to_element(
    tree: ShapeTree,
    connectors: Iterable[tuple[str, ConnectorGeometry]] = (),
    page_id: str = "",
    policy: EndpointPolicy = EndpointPolicy.STRICT,
) -> ET.Element:
    """Serialize a tree (and routed connectors) to a ``<PageContents>`` element."""
    page = ET.Element("PageContents")
    if page_id:
        page.set("ID", page_id)
    page.set("EndpointPolicy", policy.value)
    shapes_el = ET.SubElement(page, "Shapes")

    # Explicit stack: nesting depth is up to the caller.
    stack: list[tuple[str, ET.Element]] = [(sid, shapes_el) for sid in reversed(tree.roots())]
    while stack:
        sid, parent_el = stack.pop()
        el = shape_to_element(tree.get(sid))
        parent_el.append(el)
        children = tree.children(sid)
        if children:
            inner = ET.SubElement(el, "Shapes")
            stack.extend((cid, inner) for cid in reversed(children))

    connectors = list(connectors)
    if connectors:
        connects_el = ET.SubElement(page, "Connects")
        for connector_id, geometry in connectors:
            connects_el.append(connector_to_element(connector_id, geometry))
    return page


def to_xml(
    tree: ShapeTree,
    connectors: Iterable[tuple[str, ConnectorGeometry]] = (),
    page_id: str = "",
    pretty: bool = True,
    policy: EndpointPolicy = EndpointPolicy.STRICT,
) -> str:
    page = tree_to_element(tree, connectors, page_id, policy)
    if pretty:
        ET.indent(page, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(page, encoding="unicode")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _cells(el: ET.Element) -> dict[str, float]:
    values: dict[str, float] = {}
    for cell in el.findall("Cell"):
        name = cell.get("N")
        if not name:
            raise PageFormatError("cell without a name.")
        try:
            values[name] = float(cell.get("V", "0"))
        except ValueError:
            raise PageFormatError(
                f"cell '{name}' has a non-numeric value '{cell.get('V')}'."
            ) from None
    return values


def shape_from_element(el: ET.Element, parent_id: Optional[str]) -> ShapeRecord:
    """Parse one ``<Shape>`` element (children are handled by the caller)."""
    sid = el.get("ID")
    if not sid:
        raise PageFormatError("shape without an ID.")
    try:
        kind = ShapeKind(el.get("Type", ShapeKind.SHAPE.value))
    except ValueError:
        raise PageFormatError(f"shape '{sid}' has unknown type '{el.get('Type')}'.") from None

    cells = _cells(el)
    size = None
    if "Width" in cells and "Height" in cells:
        size = Size(cells["Width"], cells["Height"])
    loc_pin = None
    if "LocPinX" in cells and "LocPinY" in cells:
        loc_pin = Point(cells["LocPinX"], cells["LocPinY"])

    container = None
    cont_el = el.find("Container")
    if cont_el is not None:
        try:
            container = ContainerState(
                ordered_members=[m.get("ID", "") for m in cont_el.findall("Member")],
                stack_axis=StackAxis(cont_el.get("StackAxis", StackAxis.VERTICAL.value)),
                spacing=float(cont_el.get("Spacing", "0.125")),
                padding=float(cont_el.get("Padding", "0.25")),
            )
        except (ValueError, GeometryError) as exc:
            raise PageFormatError(f"shape '{sid}' has invalid container data: {exc}") from None
        if "" in container.ordered_members:
            raise PageFormatError(f"shape '{sid}' lists a member without an ID.")

    text_el = el.find("Text")
    return ShapeRecord(
        id=sid,
        pin=Point(cells.get("PinX", 0.0), cells.get("PinY", 0.0)),
        size=size,
        loc_pin=loc_pin,
        parent_id=parent_id,
        kind=kind,
        container=container,
        text=(text_el.text or "") if text_el is not None else "",
    )


def tree_from_element(page: ET.Element) -> ShapeTree:
    """Rebuild a shape tree from a ``<PageContents>`` element."""
    if page.tag != "PageContents":
        raise PageFormatError(f"expected <PageContents>, got <{page.tag}>.")
    tree = ShapeTree()
    shapes_el = page.find("Shapes")
    if shapes_el is None:
        return tree

    stack: list[tuple[ET.Element, Optional[str]]] = [(shapes_el, None)]
    while stack:
        collection, parent_id = stack.pop()
        for shape_el in collection.findall("Shape"):
            record = shape_from_element(shape_el, parent_id)
            try:
                tree.insert(record)
            except GeometryError as exc:
                raise PageFormatError(f"cannot load shape '{record.id}': {exc.message}") from exc
            inner = shape_el.find("Shapes")
            if inner is not None:
                stack.append((inner, record.id))
    return tree


def connections_from_element(page: ET.Element) -> list[Connection]:
    """The connectors stored on a page, as id + endpoint ids."""
    connections: list[Connection] = []
    connects_el = page.find("Connects")
    if connects_el is None:
        return connections
    for el in connects_el.findall("Connect"):
        cid, src, tgt = el.get("ID"), el.get("FromSheet"), el.get("ToSheet")
        if not cid or not src or not tgt:
            raise PageFormatError("connector needs ID, FromSheet and ToSheet.")
        connections.append(Connection(id=cid, from_id=src, to_id=tgt))
    return connections


def endpoint_policy_from_element(page: ET.Element) -> EndpointPolicy:
    """The connector endpoint policy stored on a page (strict when absent)."""
    value = page.get("EndpointPolicy", EndpointPolicy.STRICT.value)
    try:
        return EndpointPolicy(value)
    except ValueError:
        raise PageFormatError(f"unknown endpoint policy '{value}'.") from None


def parse_page(xml_content: str) -> ET.Element:
    try:
        return ET.fromstring(xml_content)
    except ET.ParseError as exc:
        raise PageFormatError(f"error parsing page XML: {exc}") from None


# ---------------------------------------------------------------------------
# Directory-backed store
# ---------------------------------------------------------------------------

class PageStore:
    """Stores one XML file per page id inside ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, page_id: str) -> Path:
        if not _PAGE_ID_RE.match(page_id or ""):
            raise PageFormatError(
                f"page id '{page_id}' may only contain letters, digits, '.', '_' and '-'."
            )
        return self.directory / f"{page_id}.xml"

    def _read(self, page_id: str) -> ET.Element:
        path = self._path(page_id)
        if not path.exists():
            raise PageNotFound(page_id)
        return parse_page(path.read_text(encoding="utf-8"))

    def load_shape_tree(self, page_id: str) -> ShapeTree:
        return tree_from_element(self._read(page_id))

    def load_connections(self, page_id: str) -> list[Connection]:
        return connections_from_element(self._read(page_id))

    def load_endpoint_policy(self, page_id: str) -> EndpointPolicy:
        return endpoint_policy_from_element(self._read(page_id))

    def save_shape_tree(
        self,
        page_id: str,
        tree: ShapeTree,
        connectors: Iterable[tuple[str, ConnectorGeometry]] = (),
        policy: EndpointPolicy = EndpointPolicy.STRICT,
    ) -> Path:
        path = self._path(page_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(to_xml(tree, connectors, page_id, policy=policy), encoding="utf-8")
        return path

    def list_pages(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.xml"))
