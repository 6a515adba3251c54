"""
Sweep-line Voronoi construction.
"""

from .geometry import Rect, circumcircle, breakpoint_x, converges
from .diagram import Diagram, DiagramInvariantError, Site, Vertex, HalfEdge, Face
from .builder import DiagramBuilder, BuildStats, build_diagram
from .voronoi_graph import VoronoiGraph, generate_voronoi_graph, relax_points

__all__ = ['Rect', 'circumcircle', 'breakpoint_x', 'converges',
           'Diagram', 'DiagramInvariantError', 'Site', 'Vertex', 'HalfEdge', 'Face',
           'DiagramBuilder', 'BuildStats', 'build_diagram',
           'VoronoiGraph', 'generate_voronoi_graph', 'relax_points']
