"""Cell-centric graph arrays derived from a finished diagram."""

import numpy as np
from typing import List, Optional, Tuple
from dataclasses import dataclass
import structlog

from .builder import SiteInput, build_diagram
from .diagram import Diagram

logger = structlog.get_logger()


@dataclass
class VoronoiGraph:
    """Per-cell and per-vertex adjacency of a bounded Voronoi diagram.

    Cell ``i`` is face ``i`` of ``diagram``; ``site_indices[i]`` is the
    position of its site in the input sequence.
    """
    # Points data
    points: np.ndarray               # cells.p[i] = [x, y] site coordinates
    site_indices: np.ndarray

    # Cell connectivity data
    cell_neighbors: List[List[int]]  # cells.c[i] = list of neighbor cell IDs
    cell_vertices: List[List[int]]   # cells.v[i] = counter-clockwise vertex IDs
    cell_border_flags: np.ndarray    # cells.b[i] = 1 if the cell touches the bounds

    # Vertex data
    vertex_coordinates: np.ndarray   # vertices.p[i] = [x, y] coordinates
    vertex_neighbors: List[List[int]] # vertices.v[i] = list of adjacent vertex IDs
    vertex_cells: List[List[int]]    # vertices.c[i] = list of adjacent cell IDs

    diagram: Optional[Diagram] = None


def build_cell_connectivity(diagram: Diagram) -> Tuple[List[List[int]], np.ndarray]:
    """
    Build cell neighbours and border flags from the diagram's edges.

    Two cells are neighbours when an edge of positive or zero length
    separates them; a cell is a border cell when one of its edges runs
    along the bounding rectangle.

    Args:
        diagram: Finished diagram

    Returns:
        Tuple of (cell_neighbors, border_flags)
    """
    n_cells = len(diagram.faces)
    cell_neighbors = [set() for _ in range(n_cells)]
    border_flags = np.zeros(n_cells, dtype=np.uint8)

    for edge in diagram.interior_edges():
        f1 = diagram.half_edges[edge].incident_face
        f2 = diagram.half_edges[diagram.twin(edge)].incident_face
        cell_neighbors[f1].add(f2)
        cell_neighbors[f2].add(f1)

    for edge in diagram.boundary_edges():
        border_flags[diagram.half_edges[edge].incident_face] = 1

    return [sorted(neighbors) for neighbors in cell_neighbors], border_flags


def build_cell_vertices(diagram: Diagram) -> List[List[int]]:
    """Vertex IDs around each cell, counter-clockwise."""
    return [diagram.face_vertices(face) for face in range(len(diagram.faces))]


def build_vertex_connectivity(diagram: Diagram) -> Tuple[List[List[int]], List[List[int]]]:
    """
    Build vertex connectivity from the diagram's half-edges.

    Args:
        diagram: Finished diagram

    Returns:
        Tuple of (vertex_neighbors, vertex_cells)
    """
    n_vertices = len(diagram.vertices)
    vertex_neighbors = [set() for _ in range(n_vertices)]
    vertex_cells = [set() for _ in range(n_vertices)]

    for edge in diagram.half_edges:
        v1 = edge.origin
        v2 = diagram.half_edges[edge.twin].origin
        if v1 != v2:
            vertex_neighbors[v1].add(v2)
        if edge.incident_face is not None:
            vertex_cells[v1].add(edge.incident_face)

    return ([sorted(neighbors) for neighbors in vertex_neighbors],
            [sorted(cells) for cells in vertex_cells])


def compute_polygon_centroid(vertices: np.ndarray) -> np.ndarray:
    """Compute the centroid of a polygon.

    Args:
        vertices: Array of [x, y] vertex coordinates

    Returns:
        [x, y] centroid coordinates
    """
    if len(vertices) < 3:
        return np.mean(vertices, axis=0)

    # Shoelace formula
    x = vertices[:, 0]
    y = vertices[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    cross = x * y_next - x_next * y
    area = cross.sum() * 0.5

    if abs(area) < 1e-10:
        return np.mean(vertices, axis=0)

    cx = ((x + x_next) * cross).sum() / (6.0 * area)
    cy = ((y + y_next) * cross).sum() / (6.0 * area)
    return np.array([cx, cy])


def relax_points(points: np.ndarray, bounds, n_iterations: int = 3) -> np.ndarray:
    """Apply Lloyd's relaxation to improve point distribution.

    Moves each point to the centroid of its bounded Voronoi cell. Points
    without a cell (outside the bounds or repeated) keep their position.

    Args:
        points: Points to relax, shape (n, 2)
        bounds: Rectangle as ``Rect`` or ``(x, y, width, height)``
        n_iterations: Number of relaxation iterations

    Returns:
        Relaxed point coordinates
    """
    logger.info("Starting Lloyd's relaxation", iterations=n_iterations)

    points = np.array(points, dtype=float).reshape(-1, 2)  # Don't modify original

    for iteration in range(n_iterations):
        diagram = build_diagram(bounds, points)
        for face_id, face in enumerate(diagram.faces):
            points[face.site.index] = compute_polygon_centroid(diagram.face_polygon(face_id))

        logger.debug("Relaxation iteration complete", iteration=iteration + 1)

    return points


def generate_voronoi_graph(bounds, sites: SiteInput, apply_relaxation: bool = False,
                           n_iterations: int = 3) -> VoronoiGraph:
    """
    Build the diagram of ``sites`` and derive its cell graph.

    Args:
        bounds: Rectangle as ``Rect`` or ``(x, y, width, height)``
        sites: Sequence of (x, y) pairs or an (n, 2) array
        apply_relaxation: Whether to apply Lloyd's relaxation first
        n_iterations: Relaxation iterations

    Returns:
        Complete Voronoi graph data structure
    """
    sites = np.array(sites, dtype=float).reshape(-1, 2)
    logger.info("Generating Voronoi graph", sites=len(sites),
                relaxation=apply_relaxation)

    if apply_relaxation:
        sites = relax_points(sites, bounds, n_iterations=n_iterations)

    diagram = build_diagram(bounds, sites)

    cell_neighbors, border_flags = build_cell_connectivity(diagram)
    cell_vertices = build_cell_vertices(diagram)
    vertex_neighbors, vertex_cells = build_vertex_connectivity(diagram)

    site_indices = np.array([face.site.index for face in diagram.faces], dtype=np.int64)
    points = np.array([face.site.point for face in diagram.faces], dtype=float).reshape(-1, 2)

    logger.info("Voronoi graph built", cells=len(points),
                vertices=len(diagram.vertices), border_cells=int(border_flags.sum()))

    return VoronoiGraph(
        points=points,
        site_indices=site_indices,
        cell_neighbors=cell_neighbors,
        cell_vertices=cell_vertices,
        cell_border_flags=border_flags,
        vertex_coordinates=diagram.vertex_coordinates,
        vertex_neighbors=vertex_neighbors,
        vertex_cells=vertex_cells,
        diagram=diagram,
    )
