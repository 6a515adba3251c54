"""
Bounded Voronoi diagrams built with Fortune's sweep-line algorithm.
"""

from .core import Diagram, DiagramBuilder, DiagramInvariantError, Rect, build_diagram, generate_voronoi_graph

__version__ = "0.1.0"

__all__ = ['Diagram', 'DiagramBuilder', 'DiagramInvariantError', 'Rect',
           'build_diagram', 'generate_voronoi_graph']
