"""
Document and page sessions.

A ``Page`` owns exactly one ``ShapeTree`` and the list of connectors drawn on
it, and is the API callers use to build a page. It adds no locking: a page is
meant to be driven by one caller at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from vsdx_geometry import containers, placement
from vsdx_geometry.coords import resolve_absolute
from vsdx_geometry.errors import GeometryError, PageNotFound
from vsdx_geometry.models import (
    Connection,
    ConnectorGeometry,
    Point,
    ShapeKind,
    ShapeRecord,
    StackAxis,
)
from vsdx_geometry.routing import RouterConfig, route_connector
from vsdx_geometry.store import PageStore, to_xml
from vsdx_geometry.tree import ShapeTree

logger = logging.getLogger(__name__)


@dataclass
class Page:
    """One page: a shape tree plus the connectors routed across it."""
    id: str
    name: str = ""
    tree: ShapeTree = field(default_factory=ShapeTree)
    connections: list[Connection] = field(default_factory=list)
    router: RouterConfig = field(default_factory=RouterConfig)

    # ----- shapes -----

    def add_shape(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str = "",
        parent_id: Optional[str] = None,
        shape_id: Optional[str] = None,
        kind: ShapeKind = ShapeKind.SHAPE,
    ) -> ShapeRecord:
        return self.tree.add_shape(
            x, y, width, height,
            text=text, parent_id=parent_id, shape_id=shape_id, kind=kind,
        )

    def add_group(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str = "",
        parent_id: Optional[str] = None,
    ) -> ShapeRecord:
        """An empty group; children are added with ``parent_id`` set to it."""
        return self.tree.add_shape(
            x, y, width, height, text=text, parent_id=parent_id, kind=ShapeKind.GROUP,
        )

    def add_container(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str = "",
        padding: float = 0.25,
        parent_id: Optional[str] = None,
    ) -> ShapeRecord:
        """A free-form container: members keep their place, bounds follow them."""
        record = self.tree.add_shape(x, y, width, height, text=text, parent_id=parent_id)
        return containers.make_container(
            self.tree, record.id, StackAxis.NONE, padding=padding,
        )

    def add_list(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        text: str = "",
        axis: StackAxis = StackAxis.VERTICAL,
        spacing: float = 0.125,
        padding: float = 0.25,
        parent_id: Optional[str] = None,
    ) -> ShapeRecord:
        """An ordered container whose members are stacked along ``axis``."""
        record = self.tree.add_shape(x, y, width, height, text=text, parent_id=parent_id)
        return containers.make_container(self.tree, record.id, axis, spacing, padding)

    def add_member(self, container_id: str, member_id: str) -> ShapeRecord:
        return containers.add_member(self.tree, container_id, member_id)

    def add_members(self, container_id: str, member_ids: Iterable[str]) -> ShapeRecord:
        return containers.add_members(self.tree, container_id, member_ids)

    def absolute(self, shape_id: str) -> Point:
        return resolve_absolute(self.tree, shape_id)

    def place_right_of(self, shape_id: str, anchor_id: str, gap: float = 1.0) -> ShapeRecord:
        return placement.place_right_of(self.tree, shape_id, anchor_id, gap)

    def place_below(self, shape_id: str, anchor_id: str, gap: float = 1.0) -> ShapeRecord:
        return placement.place_below(self.tree, shape_id, anchor_id, gap)

    def apply_layout(
        self,
        collaborator: placement.LayoutCollaborator,
        shape_ids: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Lay out shapes with an external collaborator, feeding it this page's connectors."""
        ids = list(shape_ids) if shape_ids is not None else self.tree.roots()
        wanted = set(ids)
        edges = [
            (c.from_id, c.to_id) for c in self.connections
            if c.from_id in wanted and c.to_id in wanted
        ]
        return placement.apply_layout(self.tree, collaborator, ids, edges)

    # ----- connectors -----

    def connect(
        self,
        from_id: str,
        to_id: str,
        connector_id: Optional[str] = None,
    ) -> tuple[Connection, ConnectorGeometry]:
        """Route a connector and remember it on the page."""
        geometry = route_connector(self.tree, from_id, to_id, self.router)
        connection = Connection(
            id=self.tree.reserve_id(connector_id), from_id=from_id, to_id=to_id,
        )
        self.connections.append(connection)
        return connection, geometry

    def reroute(self) -> list[tuple[Connection, ConnectorGeometry]]:
        """Route every stored connector again from the current geometry."""
        return [
            (c, route_connector(self.tree, c.from_id, c.to_id, self.router))
            for c in self.connections
        ]

    # ----- persistence -----

    def to_xml(self) -> str:
        routed = [(c.id, geometry) for c, geometry in self.reroute()]
        return to_xml(self.tree, routed, self.id, policy=self.router.policy)

    def save(self, store: PageStore) -> str:
        routed = [(c.id, geometry) for c, geometry in self.reroute()]
        path = store.save_shape_tree(self.id, self.tree, routed, policy=self.router.policy)
        logger.info("Saved page %s (%d shapes, %d connectors) to %s",
                    self.id, len(self.tree), len(routed), path)
        return str(path)

    @classmethod
    def load(cls, store: PageStore, page_id: str, name: str = "") -> 'Page':
        tree = store.load_shape_tree(page_id)
        connections = store.load_connections(page_id)
        for connection in connections:
            tree.reserve_id(connection.id)
        router = RouterConfig(policy=store.load_endpoint_policy(page_id))
        return cls(id=page_id, name=name or page_id, tree=tree,
                   connections=connections, router=router)


@dataclass
class Document:
    """An ordered set of pages keyed by page id.

    ``router`` is copied onto every page the document creates.
    """
    pages: dict[str, Page] = field(default_factory=dict)
    router: RouterConfig = field(default_factory=RouterConfig)

    def add_page(self, page_id: Optional[str] = None, name: str = "") -> Page:
        pid = page_id or f"page{len(self.pages) + 1}"
        if pid in self.pages:
            raise GeometryError(f"page '{pid}' already exists.")
        page = Page(id=pid, name=name or pid, router=replace(self.router))
        self.pages[pid] = page
        return page

    def page(self, page_id: Optional[str] = None) -> Page:
        """A page by id, or the first page when no id is given."""
        if page_id is None:
            if not self.pages:
                raise PageNotFound("(first page)")
            return next(iter(self.pages.values()))
        try:
            return self.pages[page_id]
        except KeyError:
            raise PageNotFound(page_id) from None

    def save(self, store: PageStore) -> list[str]:
        return [page.save(store) for page in self.pages.values()]

    @classmethod
    def load(cls, store: PageStore, page_ids: Optional[Iterable[str]] = None) -> 'Document':
        """Load the given pages (every stored page by default).

        The document takes the endpoint policy of its first page.
        """
        doc = cls()
        ids = list(page_ids) if page_ids is not None else store.list_pages()
        for page_id in ids:
            doc.pages[page_id] = Page.load(store, page_id)
        if doc.pages:
            doc.router = replace(doc.page().router)
        return doc
