"""Tests for sweep-line diagram construction."""

import math

import numpy as np
import pytest
from scipy.spatial import Voronoi

from py_voronoi.core import DiagramBuilder, Rect, build_diagram
from py_voronoi.core.diagram import Diagram

UNIT = Rect(0.0, 0.0, 1.0, 1.0)


def polygon_area(polygon: np.ndarray) -> float:
    x, y = polygon[:, 0], polygon[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def contains(polygon: np.ndarray, point, tolerance: float = 1e-12) -> bool:
    """Point inside a counter-clockwise convex polygon."""
    for a, b in zip(polygon, np.roll(polygon, -1, axis=0)):
        cross = (b[0] - a[0]) * (point[1] - a[1]) - (b[1] - a[1]) * (point[0] - a[0])
        if cross < -tolerance:
            return False
    return True


def assert_well_formed(diagram: Diagram):
    assert diagram.check_integrity() == []
    for i, edge in enumerate(diagram.half_edges):
        assert diagram.half_edges[edge.twin].twin == i
        assert edge.incident_face != diagram.half_edges[edge.twin].incident_face
        assert diagram.half_edges[edge.next].origin == diagram.destination(i)
        assert diagram.half_edges[edge.next].prev == i

    bounds = diagram.bounds
    for vertex in diagram.vertices:
        assert bounds.x - 1e-9 <= vertex.x <= bounds.x_max + 1e-9
        assert bounds.y - 1e-9 <= vertex.y <= bounds.y_max + 1e-9


def random_sites(seed: int, n: int, bounds: Rect = UNIT) -> np.ndarray:
    rng = np.random.default_rng(seed)
    low = (bounds.x + 0.01 * bounds.width, bounds.y + 0.01 * bounds.height)
    high = (bounds.x_max - 0.01 * bounds.width, bounds.y_max - 0.01 * bounds.height)
    return rng.uniform(low, high, size=(n, 2))


class TestScenarios:
    """Test small diagrams with known answers."""

    def test_single_site(self):
        """Test that a lone site owns the whole rectangle."""
        diagram = build_diagram(UNIT, [(0.3, 0.6)])

        assert len(diagram.faces) == 1
        assert diagram.interior_vertices() == []
        assert len(diagram.boundary_edges()) == 4
        assert polygon_area(diagram.face_polygon(0)) == pytest.approx(1.0)
        assert_well_formed(diagram)

    def test_two_sites(self):
        """Test that two sites are split by the vertical bisector."""
        diagram = build_diagram(UNIT, [(0.25, 0.5), (0.75, 0.5)])

        assert len(diagram.faces) == 2
        assert diagram.interior_vertices() == []
        edges = diagram.interior_edges()
        assert len(edges) == 1

        start = diagram.vertices[diagram.half_edges[edges[0]].origin]
        end = diagram.vertices[diagram.destination(edges[0])]
        assert start.x == pytest.approx(0.5)
        assert end.x == pytest.approx(0.5)
        assert sorted([start.y, end.y]) == pytest.approx([0.0, 1.0])

        assert polygon_area(diagram.face_polygon(0)) == pytest.approx(0.5)
        assert polygon_area(diagram.face_polygon(1)) == pytest.approx(0.5)
        assert_well_formed(diagram)

    def test_two_sites_face_walk(self):
        """Test the counter-clockwise walk of the left cell."""
        diagram = build_diagram(UNIT, [(0.25, 0.5), (0.75, 0.5)])
        polygon = [tuple(point) for point in diagram.face_polygon(0)]

        assert len(polygon) == 4
        start = polygon.index((0.5, 1.0))
        walk = polygon[start:] + polygon[:start]
        assert walk == [(0.5, 1.0), (0.0, 1.0), (0.0, 0.0), (0.5, 0.0)]

    def test_three_sites(self):
        """Test one Voronoi vertex at the circumcenter."""
        diagram = build_diagram(UNIT, [(0.2, 0.2), (0.8, 0.2), (0.5, 0.8)])

        assert len(diagram.faces) == 3
        vertices = diagram.interior_vertices()
        assert len(vertices) == 1
        assert diagram.vertices[vertices[0]].coordinates == pytest.approx((0.5, 0.425))
        assert len(diagram.interior_edges()) == 3
        assert_well_formed(diagram)

    def test_boundary_site_excluded(self):
        builder = DiagramBuilder(UNIT, [(0.0, 0.5), (0.5, 0.5), (1.2, 0.3)])
        diagram = builder.finish()

        assert len(diagram.faces) == 1
        assert diagram.faces[0].site.index == 1
        assert builder.stats.sites_out_of_bounds == 2

    def test_duplicate_site_excluded(self):
        builder = DiagramBuilder(UNIT, [(0.3, 0.3), (0.3, 0.3), (0.7, 0.6)])
        diagram = builder.finish()

        assert [face.site.index for face in diagram.faces] == [0, 2]
        assert builder.stats.sites_duplicate == 1
        assert_well_formed(diagram)

    def test_no_sites(self):
        diagram = build_diagram(UNIT, [])
        assert diagram.faces == []
        assert diagram.half_edges == []

    def test_offset_bounds(self):
        """Test a rectangle away from the origin."""
        bounds = Rect(-3.0, 10.0, 4.0, 2.0)
        diagram = build_diagram(bounds, [(-2.0, 11.0), (0.0, 11.0)])

        areas = [polygon_area(diagram.face_polygon(face)) for face in range(2)]
        assert areas == pytest.approx([4.0, 4.0])
        assert_well_formed(diagram)


class TestInvalidBounds:
    """Test bounds validation."""

    @pytest.mark.parametrize("bounds", [
        (0.0, 0.0, 0.0, 1.0),
        (0.0, 0.0, 1.0, -1.0),
        (0.0, 0.0, math.nan, 1.0),
        (0.0, math.inf, 1.0, 1.0),
    ])
    def test_rejected(self, bounds):
        with pytest.raises(ValueError):
            DiagramBuilder(bounds, [(0.5, 0.5)])


class TestDegenerateInput:
    """Test collinear and cocircular sites."""

    def test_horizontal_row(self):
        diagram = build_diagram(UNIT, [(0.1, 0.5), (0.4, 0.5), (0.9, 0.5)])

        assert len(diagram.faces) == 3
        assert diagram.interior_vertices() == []
        assert len(diagram.interior_edges()) == 2
        areas = [polygon_area(diagram.face_polygon(face)) for face in range(3)]
        assert areas == pytest.approx([0.25, 0.4, 0.35])
        assert_well_formed(diagram)

    def test_vertical_column(self):
        diagram = build_diagram(UNIT, [(0.5, 0.1), (0.5, 0.4), (0.5, 0.9)])

        assert len(diagram.faces) == 3
        assert diagram.interior_vertices() == []
        areas = [polygon_area(diagram.face_polygon(face)) for face in range(3)]
        assert areas == pytest.approx([0.25, 0.4, 0.35])
        assert_well_formed(diagram)

    @pytest.mark.parametrize("n", [2, 3, 4, 5])
    def test_square_grid(self, n):
        """Test a regular grid where four sites share every circle."""
        coords = (np.arange(n) + 0.5) / n
        sites = [(x, y) for y in coords for x in coords]
        diagram = build_diagram(UNIT, sites)

        assert len(diagram.faces) == n * n
        for face in range(n * n):
            assert polygon_area(diagram.face_polygon(face)) == pytest.approx(1.0 / (n * n))
        assert len(diagram.interior_vertices()) == (n - 1) ** 2
        assert len(diagram.interior_edges()) == 2 * n * (n - 1)
        assert_well_formed(diagram)

    @pytest.mark.parametrize("sites,center", [
        ([(0.875, 0.125), (0.875, 0.875), (0.625, 0.375), (0.625, 0.625)], (1.0, 0.5)),
        ([(0.125, 0.125), (0.125, 0.875), (0.375, 0.375), (0.375, 0.625)], (0.0, 0.5)),
        ([(0.125, 0.875), (0.875, 0.875), (0.375, 0.625), (0.625, 0.625)], (0.5, 1.0)),
        ([(0.125, 0.125), (0.875, 0.125), (0.375, 0.375), (0.625, 0.375)], (0.5, 0.0)),
        ([(0.2, 0.6), (0.8, 0.6), (0.1, 0.7), (0.9, 0.7), (0.5, 0.5)], (0.5, 1.0)),
    ])
    def test_shared_circle_on_boundary(self, sites, center):
        """Test sites whose common circle is centered on the rectangle side."""
        diagram = build_diagram(UNIT, sites)

        assert len(diagram.faces) == len(sites)
        assert diagram.interior_vertices() == []
        shared = [v for v in diagram.vertices if v.coordinates == pytest.approx(center)]
        assert len(shared) == 1
        areas = [polygon_area(diagram.face_polygon(face)) for face in range(len(sites))]
        assert sum(areas) == pytest.approx(1.0)
        assert_well_formed(diagram)

    def test_shared_circle_just_inside_boundary(self):
        bounds = Rect(0.0, 0.0, 1.0 + 1e-10, 1.0)
        sites = [(0.875, 0.125), (0.875, 0.875), (0.625, 0.375), (0.625, 0.625)]
        diagram = build_diagram(bounds, sites)

        assert len(diagram.faces) == 4
        areas = [polygon_area(diagram.face_polygon(face)) for face in range(4)]
        assert sum(areas) == pytest.approx(bounds.width * bounds.height)
        assert_well_formed(diagram)

    @pytest.mark.parametrize("divisions", [8, 20])
    @pytest.mark.parametrize("seed", range(40))
    def test_lattice_sites(self, divisions, seed):
        """Test sites on a coarse lattice, where many circles are shared."""
        rng = np.random.default_rng(seed)
        lattice = [(i / divisions, j / divisions)
                   for i in range(1, divisions) for j in range(1, divisions)]
        chosen = rng.choice(len(lattice), size=12, replace=False)
        sites = [lattice[i] for i in chosen]
        diagram = build_diagram(UNIT, sites)

        assert len(diagram.faces) == 12
        areas = [polygon_area(diagram.face_polygon(face)) for face in range(12)]
        assert sum(areas) == pytest.approx(1.0)
        assert_well_formed(diagram)


class TestRandomSites:
    """Test diagram properties on random input."""

    @pytest.mark.parametrize("seed,n", [(0, 10), (1, 50), (2, 200)])
    def test_mesh_invariants(self, seed, n):
        sites = random_sites(seed, n)
        diagram = build_diagram(UNIT, sites)

        assert len(diagram.faces) == n
        assert_well_formed(diagram)

    @pytest.mark.parametrize("seed", [3, 4])
    def test_cells_partition_the_rectangle(self, seed):
        """Test that cells tile the bounds and contain their sites."""
        bounds = Rect(5.0, -2.0, 30.0, 12.0)
        sites = random_sites(seed, 80, bounds)
        diagram = build_diagram(bounds, sites)

        total = 0.0
        for face_id, face in enumerate(diagram.faces):
            polygon = diagram.face_polygon(face_id)
            area = polygon_area(polygon)
            assert area > 0.0
            assert contains(polygon, face.site.point, tolerance=1e-9)
            total += area
        assert total == pytest.approx(bounds.width * bounds.height, rel=1e-9)

    @pytest.mark.parametrize("seed", [5, 6])
    def test_vertices_match_scipy(self, seed):
        """Test Voronoi vertices against scipy's Qhull-based diagram."""
        sites = random_sites(seed, 100)
        diagram = build_diagram(UNIT, sites)
        ours = diagram.vertex_coordinates[diagram.interior_vertices()]

        reference = Voronoi(sites).vertices
        margin = 1e-6
        inside = ((reference[:, 0] > margin) & (reference[:, 0] < 1.0 - margin)
                  & (reference[:, 1] > margin) & (reference[:, 1] < 1.0 - margin))
        reference = reference[inside]

        for vertex in reference:
            assert np.min(np.hypot(*(ours - vertex).T)) < 1e-7
        for vertex in ours:
            assert np.min(np.hypot(*(reference - vertex).T)) < 1e-7
        assert len(ours) == len(reference)

    def test_deterministic(self):
        sites = random_sites(7, 60)
        first = build_diagram(UNIT, sites)
        second = build_diagram(UNIT, sites)

        np.testing.assert_array_equal(first.vertex_coordinates, second.vertex_coordinates)
        assert first.half_edges == second.half_edges
        assert first.faces == second.faces

    def test_array_and_list_input_agree(self):
        sites = random_sites(8, 30)
        from_array = build_diagram(UNIT, sites)
        from_list = build_diagram(UNIT, [tuple(point) for point in sites.tolist()])

        np.testing.assert_array_equal(from_array.vertex_coordinates, from_list.vertex_coordinates)


class TestStepping:
    """Test the event-at-a-time interface."""

    def test_step_until_exhausted(self):
        sites = random_sites(9, 20)
        builder = DiagramBuilder(UNIT, sites)

        steps = 0
        while builder.step():
            steps += 1
        stats = builder.stats
        assert steps == stats.site_events + stats.circle_events
        assert stats.site_events == 20

        diagram = builder.finish()
        assert builder.finished
        assert not builder.step()
        assert builder.finish() is diagram
        assert stats.circle_events >= len(diagram.interior_vertices())

    def test_finish_matches_build_diagram(self):
        sites = random_sites(10, 25)
        builder = DiagramBuilder(UNIT, sites)
        for _ in range(10):
            builder.step()

        np.testing.assert_array_equal(
            builder.finish().vertex_coordinates,
            build_diagram(UNIT, sites).vertex_coordinates,
        )
