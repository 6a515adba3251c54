"""
Doubly-connected edge list holding a finished (or in-construction) diagram.

Vertices, half-edges and faces live in plain lists and are addressed by
their integer position. Half-edges are always created in twin pairs with
consecutive handles, the first one bounding the face on the left of the
pair's direction.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .geometry import Rect


class DiagramInvariantError(RuntimeError):
    """Raised when the construction breaks one of its own invariants."""


class Site(NamedTuple):
    """Input point; ``index`` is its position in the caller's site list."""
    index: int
    x: float
    y: float

    @property
    def point(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Vertex:
    x: float
    y: float
    incident_edge: Optional[int] = None
    on_boundary: bool = False  # lies on the rectangle

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class HalfEdge:
    twin: int
    incident_face: Optional[int]  # None for the region outside the rectangle
    origin: Optional[int] = None  # None while the edge is still unbounded
    next: Optional[int] = None
    prev: Optional[int] = None


@dataclass
class Face:
    site: Site
    outer_edge: Optional[int] = None


def _lookup(items: Sequence, handle: int):
    if 0 <= handle < len(items):
        return items[handle]
    return None


class Diagram:
    """Voronoi diagram as vertices, twinned half-edges and one face per site."""

    def __init__(self, bounds: Rect):
        self.bounds = bounds
        self.vertices: List[Vertex] = []
        self.half_edges: List[HalfEdge] = []
        self.faces: List[Face] = []

    def __repr__(self) -> str:
        return (f"Diagram(vertices={len(self.vertices)}, "
                f"half_edges={len(self.half_edges)}, faces={len(self.faces)})")

    # Lookup

    def get_vertex(self, handle: int) -> Optional[Vertex]:
        return _lookup(self.vertices, handle)

    def get_half_edge(self, handle: int) -> Optional[HalfEdge]:
        return _lookup(self.half_edges, handle)

    def get_face(self, handle: int) -> Optional[Face]:
        return _lookup(self.faces, handle)

    # Construction

    def add_face(self, site: Site) -> int:
        self.faces.append(Face(site=site))
        return len(self.faces) - 1

    def add_vertex(self, x: float, y: float, on_boundary: bool = False) -> int:
        self.vertices.append(Vertex(x=float(x), y=float(y), on_boundary=on_boundary))
        return len(self.vertices) - 1

    def add_edge_pair(self, left_face: Optional[int], right_face: Optional[int]) -> int:
        """
        Create two twinned half-edges and return the handle of the first.

        The first half-edge bounds ``left_face``, its twin (handle + 1)
        bounds ``right_face``.
        """
        handle = len(self.half_edges)
        self.half_edges.append(HalfEdge(twin=handle + 1, incident_face=left_face))
        self.half_edges.append(HalfEdge(twin=handle, incident_face=right_face))
        for face, edge in ((left_face, handle), (right_face, handle + 1)):
            if face is not None and self.faces[face].outer_edge is None:
                self.faces[face].outer_edge = edge
        return handle

    def set_origin(self, edge: int, vertex: int) -> None:
        self.half_edges[edge].origin = vertex
        if self.vertices[vertex].incident_edge is None:
            self.vertices[vertex].incident_edge = edge

    def link(self, edge: int, following: int) -> None:
        """Make ``following`` the successor of ``edge`` around their face."""
        self.half_edges[edge].next = following
        self.half_edges[following].prev = edge

    # Queries

    def twin(self, edge: int) -> int:
        return self.half_edges[edge].twin

    def destination(self, edge: int) -> Optional[int]:
        return self.half_edges[self.half_edges[edge].twin].origin

    def face_half_edges(self, face: int) -> Iterator[int]:
        """Walk the boundary of a face counter-clockwise."""
        start = self.faces[face].outer_edge
        if start is None:
            return
        edge = start
        for _ in range(len(self.half_edges)):
            yield edge
            edge = self.half_edges[edge].next
            if edge is None:
                raise DiagramInvariantError(f"face {face} has an open boundary")
            if edge == start:
                return
        raise DiagramInvariantError(f"face {face} boundary does not return to its start")

    def face_vertices(self, face: int) -> List[int]:
        return [self.half_edges[edge].origin for edge in self.face_half_edges(face)]

    def face_polygon(self, face: int) -> np.ndarray:
        """Counter-clockwise polygon of a face as an (n, 2) array."""
        vertices = self.face_vertices(face)
        return np.array([self.vertices[v].coordinates for v in vertices], dtype=float).reshape(-1, 2)

    def interior_vertices(self) -> List[int]:
        """Vertices strictly inside the rectangle, one per distinct circle center."""
        return [i for i, vertex in enumerate(self.vertices) if not vertex.on_boundary]

    def interior_edges(self) -> List[int]:
        """One half-edge per Voronoi edge separating two sites."""
        return [
            i for i, edge in enumerate(self.half_edges)
            if i < edge.twin
            and edge.incident_face is not None
            and self.half_edges[edge.twin].incident_face is not None
        ]

    def boundary_edges(self) -> List[int]:
        """Half-edges running along the rectangle, each bounding a site face."""
        return [
            i for i, edge in enumerate(self.half_edges)
            if edge.incident_face is not None
            and self.half_edges[edge.twin].incident_face is None
        ]

    @property
    def vertex_coordinates(self) -> np.ndarray:
        return np.array([v.coordinates for v in self.vertices], dtype=float).reshape(-1, 2)

    # Integrity

    def check_integrity(self) -> List[str]:
        """Collect every violated DCEL invariant; an empty list means valid."""
        problems = []
        n_edges = len(self.half_edges)

        for i, edge in enumerate(self.half_edges):
            if not 0 <= edge.twin < n_edges or self.half_edges[edge.twin].twin != i:
                problems.append(f"half-edge {i}: twin relation is not symmetric")
                continue
            if edge.incident_face == self.half_edges[edge.twin].incident_face:
                problems.append(f"half-edge {i}: twin bounds the same face")
            if edge.origin is None or self.get_vertex(edge.origin) is None:
                problems.append(f"half-edge {i}: missing origin")
            if edge.next is None or edge.prev is None:
                problems.append(f"half-edge {i}: open boundary")
                continue
            following = self.half_edges[edge.next]
            if following.prev != i:
                problems.append(f"half-edge {i}: next/prev are not inverse")
            if following.origin != self.destination(i):
                problems.append(f"half-edge {i}: next does not start at its destination")
            if following.incident_face != edge.incident_face:
                problems.append(f"half-edge {i}: next leaves the face")

        if problems:
            return problems

        edges_per_face: Dict[Optional[int], int] = {}
        for edge in self.half_edges:
            edges_per_face[edge.incident_face] = edges_per_face.get(edge.incident_face, 0) + 1

        for face_id, face in enumerate(self.faces):
            expected = edges_per_face.get(face_id, 0)
            if face.outer_edge is None:
                problems.append(f"face {face_id}: no boundary")
                continue
            if self.half_edges[face.outer_edge].incident_face != face_id:
                problems.append(f"face {face_id}: outer edge belongs to another face")
                continue
            try:
                steps = sum(1 for _ in self.face_half_edges(face_id))
            except DiagramInvariantError as exc:
                problems.append(str(exc))
                continue
            if steps != expected:
                problems.append(f"face {face_id}: cycle has {steps} of {expected} half-edges")

        for i, vertex in enumerate(self.vertices):
            if vertex.incident_edge is None or self.half_edges[vertex.incident_edge].origin != i:
                problems.append(f"vertex {i}: incident edge does not start at it")

        return problems

    def validate(self) -> None:
        problems = self.check_integrity()
        if problems:
            raise DiagramInvariantError("; ".join(problems[:10]))

    def compact(self, vertex_alive: Sequence[bool], edge_alive: Sequence[bool]) -> None:
        """Drop dead records and renumber handles, keeping creation order."""
        vertex_map = {}
        for old, alive in enumerate(vertex_alive):
            if alive:
                vertex_map[old] = len(vertex_map)
        edge_map = {}
        for old, alive in enumerate(edge_alive):
            if alive:
                edge_map[old] = len(edge_map)

        def remap(table: Dict[int, int], handle: Optional[int]) -> Optional[int]:
            return None if handle is None else table.get(handle)

        self.vertices = [vertex for old, vertex in enumerate(self.vertices) if old in vertex_map]
        for vertex in self.vertices:
            vertex.incident_edge = remap(edge_map, vertex.incident_edge)

        half_edges = []
        for old, edge in enumerate(self.half_edges):
            if old not in edge_map:
                continue
            if edge.twin not in edge_map:
                raise DiagramInvariantError(f"half-edge {old} survives without its twin")
            edge.twin = edge_map[edge.twin]
            edge.origin = remap(vertex_map, edge.origin)
            edge.next = remap(edge_map, edge.next)
            edge.prev = remap(edge_map, edge.prev)
            half_edges.append(edge)
        self.half_edges = half_edges

        for face in self.faces:
            face.outer_edge = remap(edge_map, face.outer_edge)
