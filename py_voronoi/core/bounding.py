"""
Clipping of the swept diagram against its bounding rectangle.

After the sweep some half-edges still have no origin (they run off to
infinity) and some circle vertices lie outside the rectangle. Finalization
clips every edge to the rectangle, closes each face along the rectangle
boundary and removes whatever ended up outside.
"""

import bisect
import math
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import structlog

from .diagram import Diagram, DiagramInvariantError
from .geometry import EPS, Rect

logger = structlog.get_logger()

# Sides of the rectangle, in the order Liang-Barsky tests them
_LEFT, _RIGHT, _BOTTOM, _TOP = range(4)


class _PerimeterRegistry:
    """Boundary vertices keyed by their counter-clockwise perimeter position."""

    def __init__(self, diagram: Diagram, tolerance: float):
        self.diagram = diagram
        self.bounds = diagram.bounds
        self.tolerance = tolerance
        self._positions: List[float] = []
        self._vertices: List[int] = []
        self.position_of: Dict[int, float] = {}

    def find(self, s: float) -> Optional[int]:
        if not self._positions:
            return None
        perimeter = self.bounds.perimeter
        i = bisect.bisect_left(self._positions, s)
        # Neighbours in sorted order plus both ends for the wrap at s = 0
        for j in {i - 1, i, 0, len(self._positions) - 1}:
            if 0 <= j < len(self._positions):
                gap = abs(self._positions[j] - s)
                if min(gap, perimeter - gap) <= self.tolerance:
                    return self._vertices[j]
        return None

    def register(self, s: float, vertex: int) -> None:
        i = bisect.bisect_left(self._positions, s)
        self._positions.insert(i, s)
        self._vertices.insert(i, vertex)
        self.position_of[vertex] = s

    def vertex_at(self, x: float, y: float) -> int:
        s = self.bounds.perimeter_position(x, y)
        vertex = self.find(s)
        if vertex is None:
            vertex = self.diagram.add_vertex(x, y, on_boundary=True)
            self.register(s, vertex)
        return vertex


def _near_boundary(bounds: Rect, x: float, y: float, tolerance: float) -> bool:
    if not (bounds.x - tolerance <= x <= bounds.x_max + tolerance
            and bounds.y - tolerance <= y <= bounds.y_max + tolerance):
        return False
    gap = min(abs(x - bounds.x), abs(x - bounds.x_max), abs(y - bounds.y), abs(y - bounds.y_max))
    return gap <= tolerance


def clip_interval(bounds: Rect, origin: Tuple[float, float], direction: Tuple[float, float],
                  t_min: float, t_max: float):
    """
    Clip the parametric segment ``origin + t * direction`` to ``bounds``.

    Returns:
        (t_min, t_max, side_min, side_max) where a side is None when that end
        was not moved by the clip, or None when nothing is left
    """
    px, py = origin
    dx, dy = direction
    side_min = side_max = None
    for side, p, q in ((_LEFT, -dx, px - bounds.x), (_RIGHT, dx, bounds.x_max - px),
                       (_BOTTOM, -dy, py - bounds.y), (_TOP, dy, bounds.y_max - py)):
        if p == 0.0:
            if q < 0.0:
                return None
            continue
        t = q / p
        if p < 0.0:
            if t > t_min:
                t_min, side_min = t, side
        elif t < t_max:
            t_max, side_max = t, side
    if t_min > t_max:
        return None
    return t_min, t_max, side_min, side_max


def _snap(bounds: Rect, x: float, y: float, side: int) -> Tuple[float, float]:
    x = min(max(x, bounds.x), bounds.x_max)
    y = min(max(y, bounds.y), bounds.y_max)
    if side == _LEFT:
        x = bounds.x
    elif side == _RIGHT:
        x = bounds.x_max
    elif side == _BOTTOM:
        y = bounds.y
    else:
        y = bounds.y_max
    return x, y


def _close_single_face(diagram: Diagram, registry: _PerimeterRegistry) -> None:
    corners = [registry.vertex_at(*point) for _, point in diagram.bounds.corners()]
    inner = []
    for i, corner in enumerate(corners):
        edge = diagram.add_edge_pair(0, None)
        diagram.set_origin(edge, corner)
        diagram.set_origin(edge + 1, corners[(i + 1) % 4])
        inner.append(edge)
    for i, edge in enumerate(inner):
        following = inner[(i + 1) % 4]
        diagram.link(edge, following)
        diagram.link(following + 1, edge + 1)
    diagram.faces[0].outer_edge = inner[0]


def _merge_coincident_vertices(diagram: Diagram, registry: _PerimeterRegistry,
                               edge_alive: List[bool]) -> None:
    """
    Collapse circle vertices that coincide within tolerance.

    Four or more cocircular sites give one circle event per consecutive
    triple, all at the same center and joined by zero-length edges. Those
    vertices become one (the lowest handle) and the edges between them are
    spliced out of their faces. Vertices touching the boundary are
    registered at their perimeter position, merging with any vertex already
    registered there.
    """
    bounds = diagram.bounds
    half_edges = diagram.half_edges
    vertices = diagram.vertices
    tolerance = registry.tolerance
    parent = list(range(len(vertices)))

    def root(vertex: int) -> int:
        while parent[vertex] != vertex:
            parent[vertex] = parent[parent[vertex]]
            vertex = parent[vertex]
        return vertex

    def merge(a: int, b: int) -> None:
        a, b = root(a), root(b)
        if a != b:
            parent[max(a, b)] = min(a, b)

    for edge in range(0, len(half_edges), 2):
        a, b = half_edges[edge].origin, half_edges[edge + 1].origin
        if a is None or b is None or a == b:
            continue
        if math.hypot(vertices[a].x - vertices[b].x, vertices[a].y - vertices[b].y) <= tolerance:
            merge(a, b)

    # Circle vertices touching the boundary are shared with clipped ends there
    for vertex, v in enumerate(vertices):
        if root(vertex) != vertex or not _near_boundary(bounds, v.x, v.y, tolerance):
            continue
        v.x = min(max(v.x, bounds.x), bounds.x_max)
        v.y = min(max(v.y, bounds.y), bounds.y_max)
        v.on_boundary = True
        s = bounds.perimeter_position(v.x, v.y)
        existing = registry.find(s)
        if existing is None:
            registry.register(s, vertex)
        else:
            merge(existing, vertex)

    for edge in half_edges:
        if edge.origin is not None:
            edge.origin = root(edge.origin)

    for edge in half_edges:
        edge.prev = None
    for i, edge in enumerate(half_edges):
        if edge.next is not None:
            half_edges[edge.next].prev = i

    for edge in range(0, len(half_edges), 2):
        origin = half_edges[edge].origin
        if origin is None or origin != half_edges[edge + 1].origin:
            continue
        edge_alive[edge] = edge_alive[edge + 1] = False
        for half_edge in (edge, edge + 1):
            before, after = half_edges[half_edge].prev, half_edges[half_edge].next
            if before is not None:
                half_edges[before].next = after
            if after is not None:
                half_edges[after].prev = before
            half_edges[half_edge].next = half_edges[half_edge].prev = None


def finalize_diagram(diagram: Diagram, epsilon: float = EPS) -> None:
    """
    Clip the swept diagram to its rectangle and close every face in place.

    Each twin pair lies on the bisector of its two sites. A pair is
    parametrized along that line with unresolved ends at infinity, clipped
    to the rectangle, and dropped when nothing (or only a clipped point)
    remains. Faces left open by the clip are closed along the boundary
    counter-clockwise, the exterior twins of those boundary edges form one
    clockwise cycle, and finally the records that did not survive are
    compacted away.

    Args:
        diagram: Diagram produced by the sweep, modified in place
        epsilon: Relative tolerance, scaled by the larger rectangle side
    """
    bounds = diagram.bounds
    tolerance = epsilon * max(bounds.width, bounds.height)
    half_edges = diagram.half_edges
    registry = _PerimeterRegistry(diagram, tolerance)

    if not diagram.faces:
        return
    if not half_edges:
        if len(diagram.faces) > 1:
            raise DiagramInvariantError("several faces but no edges between them")
        _close_single_face(diagram, registry)
        return

    n_swept = len(half_edges)
    edge_alive = [True] * n_swept
    _merge_coincident_vertices(diagram, registry, edge_alive)

    origins: List[Optional[int]] = [edge.origin for edge in half_edges]
    clips = []

    for edge in range(0, n_swept, 2):
        if not edge_alive[edge]:
            continue
        left_site = diagram.faces[half_edges[edge].incident_face].site
        right_site = diagram.faces[half_edges[edge + 1].incident_face].site
        mid = ((left_site.x + right_site.x) / 2.0, (left_site.y + right_site.y) / 2.0)
        dx, dy = left_site.y - right_site.y, right_site.x - left_site.x
        length = math.hypot(dx, dy)
        direction = (dx / length, dy / length)

        def param(vertex: int) -> float:
            v = diagram.vertices[vertex]
            return (v.x - mid[0]) * direction[0] + (v.y - mid[1]) * direction[1]

        start, end = origins[edge], origins[edge + 1]
        t_start = -math.inf if start is None else param(start)
        t_end = math.inf if end is None else param(end)
        if t_start > t_end:
            t_start = t_end = (t_start + t_end) / 2.0

        clipped = clip_interval(bounds, mid, direction, t_start, t_end)
        if clipped is not None:
            t_min, t_max, side_min, side_max = clipped
            if t_max - t_min <= tolerance and (side_min is not None or side_max is not None):
                clipped = None
        if clipped is None:
            edge_alive[edge] = edge_alive[edge + 1] = False
            continue
        clips.append((edge, mid, direction, clipped))

    for edge, mid, direction, (t_min, t_max, side_min, side_max) in clips:
        for half_edge, t, side in ((edge, t_min, side_min), (edge + 1, t_max, side_max)):
            if side is None:
                continue
            x, y = _snap(bounds, mid[0] + t * direction[0], mid[1] + t * direction[1], side)
            origins[half_edge] = registry.vertex_at(x, y)

    for edge in range(n_swept):
        half_edges[edge].origin = origins[edge] if edge_alive[edge] else None

    _close_faces(diagram, registry, edge_alive, n_swept)

    for edge in half_edges:
        edge.prev = None
    for i, edge in enumerate(half_edges):
        if edge_alive[i] and edge.next is not None:
            half_edges[edge.next].prev = i

    for face in diagram.faces:
        face.outer_edge = None
    for vertex in diagram.vertices:
        vertex.incident_edge = None
    vertex_alive = [False] * len(diagram.vertices)
    for i, edge in enumerate(half_edges):
        if not edge_alive[i]:
            continue
        face = edge.incident_face
        if face is not None and diagram.faces[face].outer_edge is None:
            diagram.faces[face].outer_edge = i
        vertex = diagram.vertices[edge.origin]
        if vertex.incident_edge is None:
            vertex.incident_edge = i
        vertex_alive[edge.origin] = True

    for face_id, face in enumerate(diagram.faces):
        if face.outer_edge is None:
            raise DiagramInvariantError(f"face {face_id} has no edge inside the bounds")

    logger.debug("Diagram clipped to bounds",
                 dropped_edges=edge_alive.count(False) // 2,
                 boundary_vertices=len(registry.position_of))
    diagram.compact(vertex_alive, edge_alive)


def _close_faces(diagram: Diagram, registry: _PerimeterRegistry,
                 edge_alive: List[bool], n_swept: int) -> None:
    """Cut broken links, then walk each face's gaps along the boundary."""
    bounds = diagram.bounds
    half_edges = diagram.half_edges
    perimeter = bounds.perimeter
    tolerance = registry.tolerance

    targeted = [False] * n_swept
    for i in range(n_swept):
        edge = half_edges[i]
        if not edge_alive[i]:
            edge.next = None
            continue
        following = edge.next
        if (following is None or not edge_alive[following]
                or half_edges[following].origin != diagram.destination(i)):
            edge.next = None
        else:
            targeted[following] = True

    exits = defaultdict(list)
    entries = defaultdict(list)
    for i in range(n_swept):
        if not edge_alive[i]:
            continue
        face = half_edges[i].incident_face
        if half_edges[i].next is None:
            exits[face].append(i)
        if not targeted[i]:
            entries[face].append(i)

    def position(vertex: int) -> float:
        s = registry.position_of.get(vertex)
        if s is None:
            raise DiagramInvariantError(f"vertex {vertex} leaves its face away from the boundary")
        return s

    boundary = []
    for face in sorted(set(exits) | set(entries)):
        face_exits, face_entries = exits[face], entries[face]
        if len(face_exits) != len(face_entries):
            raise DiagramInvariantError(
                f"face {face} has {len(face_exits)} exits but {len(face_entries)} entries")
        open_entries = list(face_entries)
        for exit_edge in face_exits:
            start = diagram.destination(exit_edge)
            s_start = position(start)

            def gap(entry: int) -> float:
                end = half_edges[entry].origin
                if end == start:
                    return 0.0
                return (position(end) - s_start) % perimeter

            entry = min(open_entries, key=gap)
            open_entries.remove(entry)
            distance = gap(entry)

            corners = sorted(
                ((s - s_start) % perimeter, point) for s, point in bounds.corners()
                if tolerance < (s - s_start) % perimeter < distance - tolerance
            )
            path = [start] + [registry.vertex_at(*point) for _, point in corners]
            path.append(half_edges[entry].origin)

            previous = exit_edge
            for a, b in zip(path, path[1:]):
                if a == b:
                    continue
                edge = diagram.add_edge_pair(face, None)
                edge_alive.extend((True, True))
                half_edges[edge].origin = a
                half_edges[edge + 1].origin = b
                half_edges[previous].next = edge
                boundary.append(edge)
                previous = edge
            half_edges[previous].next = entry

    # Exterior side: each twin continues with the twin of the segment arriving at its end
    arriving = {}
    for edge in boundary:
        arriving[half_edges[edge + 1].origin] = edge
    for edge in boundary:
        before = arriving.get(half_edges[edge].origin)
        if before is None:
            raise DiagramInvariantError("rectangle boundary is not closed")
        half_edges[edge + 1].next = before + 1
