#!/usr/bin/env python3
"""
Demonstration of bounded Voronoi diagram construction.

This script shows:
1. Building a diagram from random sites
2. Walking a face of the edge list
3. Stepping through the sweep one event at a time
4. Deriving the cell graph with Lloyd's relaxation
"""

import numpy as np
from py_voronoi.core import DiagramBuilder, Rect, build_diagram, generate_voronoi_graph
from py_voronoi.utils.logging import configure_logging


def main():
    configure_logging(log_format="console")
    bounds = Rect(0.0, 0.0, 100.0, 60.0)
    rng = np.random.default_rng(7)
    sites = rng.uniform((1.0, 1.0), (99.0, 59.0), size=(40, 2))

    print("=== Voronoi Diagram Demo ===\n")

    # 1. Build
    print("1. Building diagram...")
    diagram = build_diagram(bounds, sites)
    print(f"   - {len(diagram.faces)} faces")
    print(f"   - {len(diagram.interior_vertices())} Voronoi vertices")
    print(f"   - {len(diagram.interior_edges())} edges between cells")
    print(f"   - {len(diagram.boundary_edges())} edges along the bounds")

    # 2. Walk one face
    print("\n2. Cell of the first site:")
    for x, y in diagram.face_polygon(0):
        print(f"   ({x:6.2f}, {y:6.2f})")

    # 3. Step through the sweep
    print("\n3. Stepping through the sweep...")
    builder = DiagramBuilder(bounds, sites[:8])
    steps = 0
    while builder.step():
        steps += 1
        print(f"   step {steps:2d}: directrix={builder.beachline.directrix:6.2f}, "
              f"arcs={len(builder.beachline)}")
    builder.finish()
    print(f"   - {builder.stats}")

    # 4. Cell graph
    print("\n4. Cell graph with Lloyd's relaxation...")
    graph = generate_voronoi_graph(bounds, sites, apply_relaxation=True)
    degrees = [len(neighbors) for neighbors in graph.cell_neighbors]
    print(f"   - Mean neighbour count: {np.mean(degrees):.2f}")
    print(f"   - Border cells: {int(graph.cell_border_flags.sum())}")


if __name__ == "__main__":
    main()
