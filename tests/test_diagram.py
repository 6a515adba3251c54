"""Tests for the doubly-connected edge list."""

import numpy as np
import pytest
from py_voronoi.core import Rect, build_diagram
from py_voronoi.core.diagram import Diagram, DiagramInvariantError, Site


def triangle() -> Diagram:
    """One face bounded by a hand-built triangle."""
    diagram = Diagram(Rect(0.0, 0.0, 1.0, 1.0))
    face = diagram.add_face(Site(0, 0.3, 0.3))
    corners = [diagram.add_vertex(*point, on_boundary=True)
               for point in ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0))]
    edges = []
    for i, corner in enumerate(corners):
        edge = diagram.add_edge_pair(face, None)
        diagram.set_origin(edge, corner)
        diagram.set_origin(edge + 1, corners[(i + 1) % 3])
        edges.append(edge)
    for i, edge in enumerate(edges):
        following = edges[(i + 1) % 3]
        diagram.link(edge, following)
        diagram.link(following + 1, edge + 1)
    return diagram


class TestAccessors:
    """Test handle lookups."""

    def test_out_of_range_handles(self):
        diagram = build_diagram(Rect(0.0, 0.0, 1.0, 1.0), [(0.2, 0.2), (0.8, 0.6)])

        for handle in (-1, len(diagram.vertices)):
            assert diagram.get_vertex(handle) is None
        for handle in (-1, len(diagram.half_edges)):
            assert diagram.get_half_edge(handle) is None
        for handle in (-1, len(diagram.faces)):
            assert diagram.get_face(handle) is None

        assert diagram.get_vertex(0) is diagram.vertices[0]
        assert diagram.get_face(1).site.index == 1

    def test_edge_pairs_are_consecutive(self):
        diagram = Diagram(Rect(0.0, 0.0, 1.0, 1.0))
        a = diagram.add_face(Site(0, 0.2, 0.5))
        b = diagram.add_face(Site(1, 0.8, 0.5))
        edge = diagram.add_edge_pair(a, b)

        assert diagram.twin(edge) == edge + 1
        assert diagram.twin(edge + 1) == edge
        assert diagram.half_edges[edge].incident_face == a
        assert diagram.half_edges[edge + 1].incident_face == b
        assert diagram.faces[a].outer_edge == edge
        assert diagram.faces[b].outer_edge == edge + 1
        assert diagram.destination(edge) is None


class TestFaceWalk:
    """Test face traversal."""

    def test_triangle_walk(self):
        diagram = triangle()

        assert list(diagram.face_half_edges(0)) == [0, 2, 4]
        assert diagram.face_vertices(0) == [0, 1, 2]
        np.testing.assert_array_equal(
            diagram.face_polygon(0), np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        )
        assert diagram.check_integrity() == []

    def test_open_boundary(self):
        diagram = triangle()
        diagram.half_edges[2].next = None

        with pytest.raises(DiagramInvariantError):
            list(diagram.face_half_edges(0))
        with pytest.raises(DiagramInvariantError):
            diagram.validate()

    def test_boundary_classification(self):
        diagram = triangle()
        assert diagram.boundary_edges() == [0, 2, 4]
        assert diagram.interior_edges() == []
        assert diagram.interior_vertices() == []


class TestIntegrity:
    """Test invariant reporting."""

    def test_broken_twin(self):
        diagram = triangle()
        diagram.half_edges[1].twin = 2
        assert any("twin" in problem for problem in diagram.check_integrity())

    def test_missing_origin(self):
        diagram = triangle()
        diagram.half_edges[3].origin = None
        problems = diagram.check_integrity()
        assert any("missing origin" in problem for problem in problems)

    def test_next_leaves_face(self):
        diagram = triangle()
        diagram.half_edges[0].next = 5
        assert diagram.check_integrity() != []


class TestCompact:
    """Test removal of dead records."""

    def test_renumbering(self):
        diagram = triangle()
        extra = diagram.add_vertex(0.5, 0.5)
        diagram.add_edge_pair(0, None)

        diagram.compact(
            vertex_alive=[True, True, True, False],
            edge_alive=[True] * 6 + [False, False],
        )

        assert extra == 3
        assert len(diagram.vertices) == 3
        assert len(diagram.half_edges) == 6
        assert diagram.check_integrity() == []

    def test_twin_must_survive(self):
        diagram = triangle()
        with pytest.raises(DiagramInvariantError):
            diagram.compact([True] * 3, [False] + [True] * 5)
