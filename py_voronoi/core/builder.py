"""Fortune's sweep-line construction of a bounded Voronoi diagram."""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import structlog

from ..config import settings
from .beachline import Beachline
from .bounding import finalize_diagram
from .diagram import Diagram, Site
from .event_queue import CircleEvent, EventQueue, SiteEvent
from .geometry import Rect, converges

logger = structlog.get_logger()

SiteInput = Union[Sequence[Tuple[float, float]], np.ndarray]


@dataclass
class BuildStats:
    """Counters collected while sweeping."""
    sites_accepted: int = 0
    sites_out_of_bounds: int = 0
    sites_duplicate: int = 0
    site_events: int = 0
    circle_events: int = 0
    stale_events: int = 0


def _as_rect(bounds) -> Rect:
    rect = Rect(*(float(value) for value in bounds))
    if not all(math.isfinite(value) for value in rect):
        raise ValueError(f"Bounds must be finite, got {tuple(rect)}")
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError(f"Bounds must have positive width and height, got {tuple(rect)}")
    return rect


class DiagramBuilder:
    """
    Sweeps a set of sites and assembles their Voronoi diagram.

    The builder can be driven one event at a time with ``step()`` or run to
    completion with ``finish()``. Sites on or outside the bounding rectangle
    are ignored, as are exact repeats of an accepted site.
    """

    def __init__(self, bounds, sites: SiteInput, epsilon: Optional[float] = None):
        self.bounds = _as_rect(bounds)
        self.epsilon = settings.epsilon if epsilon is None else float(epsilon)
        self.tolerance = self.epsilon * max(self.bounds.width, self.bounds.height)

        self.diagram = Diagram(self.bounds)
        self.stats = BuildStats()
        self._queue = EventQueue()
        self._beachline = Beachline(self.epsilon)
        # (left arc, right arc) -> half-edge bounding the left arc's face
        self._edges: Dict[Tuple[int, int], int] = {}
        self._faces: Dict[int, int] = {}  # site index -> face
        self._result: Optional[Diagram] = None

        self._accept_sites(sites)

    def _accept_sites(self, sites: SiteInput) -> None:
        if isinstance(sites, np.ndarray):
            sites = np.asarray(sites, dtype=float).reshape(-1, 2)

        seen: Dict[Tuple[float, float], int] = {}
        for index, (x, y) in enumerate(sites):
            x, y = float(x), float(y)
            if not self.bounds.contains(x, y):
                logger.debug("Skipping site outside bounds", index=index, x=x, y=y)
                self.stats.sites_out_of_bounds += 1
                continue
            if (x, y) in seen:
                logger.warning("Skipping duplicate site", index=index, duplicate_of=seen[(x, y)])
                self.stats.sites_duplicate += 1
                continue
            seen[(x, y)] = index
            site = Site(index, x, y)
            self._faces[index] = self.diagram.add_face(site)
            self._queue.push_site(site)
            self.stats.sites_accepted += 1

    @property
    def beachline(self) -> Beachline:
        return self._beachline

    @property
    def finished(self) -> bool:
        return self._result is not None

    def _face(self, arc: int) -> int:
        return self._faces[self._beachline.site_of(arc).index]

    def step(self) -> bool:
        """Process the next event; False once there is nothing left to do."""
        if self._result is not None:
            return False
        event = self._queue.pop()
        self.stats.stale_events = self._queue.stale_discarded
        if event is None:
            return False
        self._beachline.directrix = event.y
        if isinstance(event, SiteEvent):
            self._handle_site(event.site)
        else:
            self._handle_circle(event)
        return True

    def finish(self) -> Diagram:
        """Run the sweep to completion and return the closed diagram."""
        if self._result is not None:
            return self._result

        logger.info("Building Voronoi diagram", sites=self.stats.sites_accepted,
                    width=self.bounds.width, height=self.bounds.height)
        while self.step():
            pass

        finalize_diagram(self.diagram, self.epsilon)
        if settings.validate_output:
            self.diagram.validate()
        self._result = self.diagram

        logger.info("Voronoi diagram built",
                    faces=len(self.diagram.faces),
                    vertices=len(self.diagram.vertices),
                    half_edges=len(self.diagram.half_edges),
                    site_events=self.stats.site_events,
                    circle_events=self.stats.circle_events,
                    stale_events=self.stats.stale_events)
        return self._result

    # Events

    def _handle_site(self, site: Site) -> None:
        self.stats.site_events += 1
        beachline = self._beachline
        if beachline.is_empty():
            beachline.insert_arc(site)
            return

        above = beachline.find_arc_above(site.x)
        self._queue.invalidate(above)

        if beachline.site_of(above).y == site.y:
            # Sites sharing the first row: their bisector is a full vertical line
            arc = beachline.insert_beside(site, above)
            left, right = (above, arc) if site.x >= beachline.site_of(above).x else (arc, above)
            self._edges[(left, right)] = self.diagram.add_edge_pair(self._face(left), self._face(right))
            self._check_circle(left)
            self._check_circle(right)
            return

        _, far_right = beachline.neighbours(above)
        arc = beachline.insert_arc(site, above)
        _, right_copy = beachline.neighbours(arc)

        if far_right is not None:
            self._edges[(right_copy, far_right)] = self._edges.pop((above, far_right))

        edge = self.diagram.add_edge_pair(self._face(above), self._face(arc))
        self._edges[(above, arc)] = edge
        self._edges[(arc, right_copy)] = edge + 1

        self._check_circle(above)
        self._check_circle(right_copy)

    def _handle_circle(self, event: CircleEvent) -> None:
        self.stats.circle_events += 1
        beachline = self._beachline
        diagram = self.diagram
        arc = event.arc
        left, right = beachline.neighbours(arc)

        vertex = diagram.add_vertex(*event.center)
        left_edge = self._edges.pop((left, arc))
        right_edge = self._edges.pop((arc, right))
        diagram.set_origin(diagram.twin(left_edge), vertex)
        diagram.set_origin(diagram.twin(right_edge), vertex)

        edge = diagram.add_edge_pair(self._face(left), self._face(right))
        diagram.set_origin(edge, vertex)
        self._edges[(left, right)] = edge

        # Close the corner of each of the three faces meeting at the vertex
        diagram.link(right_edge, diagram.twin(left_edge))
        diagram.link(left_edge, edge)
        diagram.link(diagram.twin(edge), diagram.twin(right_edge))

        beachline.remove_arc(arc)
        self._queue.invalidate(left)
        self._queue.invalidate(right)
        self._check_circle(left)
        self._check_circle(right)

    def _check_circle(self, arc: int) -> None:
        beachline = self._beachline
        left, right = beachline.neighbours(arc)
        if left is None or right is None:
            return
        circle = beachline.circumcircle_for(arc)
        if circle is None:
            return
        if not converges(beachline.site_of(left).point, beachline.site_of(arc).point,
                         beachline.site_of(right).point):
            return

        center, radius = circle
        y = beachline.directrix
        bottom = center[1] + radius
        if bottom < y - self.tolerance:
            return
        self._queue.push_circle(max(bottom, y), center, arc)


def build_diagram(bounds, sites: SiteInput, epsilon: Optional[float] = None) -> Diagram:
    """
    Compute the Voronoi diagram of ``sites`` clipped to ``bounds``.

    Args:
        bounds: Rectangle as ``Rect`` or ``(x, y, width, height)``
        sites: Sequence of (x, y) pairs or an (n, 2) array
        epsilon: Relative tolerance, defaults to the configured value

    Returns:
        Closed diagram with one face per accepted site
    """
    return DiagramBuilder(bounds, sites, epsilon).finish()
