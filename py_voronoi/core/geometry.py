"""
Geometric predicates for the sweep-line construction.

Coordinates follow the sweep: the directrix moves towards increasing y, so
every site already swept has y <= directrix and each beachline parabola opens
towards smaller y.
"""

import math
from typing import List, NamedTuple, Optional, Tuple

# Tolerance for floating point comparisons
EPS = 1e-9

Point = Tuple[float, float]


class Rect(NamedTuple):
    """Axis-aligned bounding rectangle given by its corner position and size."""
    x: float
    y: float
    width: float
    height: float

    @property
    def x_max(self) -> float:
        return self.x + self.width

    @property
    def y_max(self) -> float:
        return self.y + self.height

    @property
    def perimeter(self) -> float:
        return 2.0 * (self.width + self.height)

    def contains(self, px: float, py: float) -> bool:
        """True when the point lies strictly inside the rectangle."""
        return self.x < px < self.x_max and self.y < py < self.y_max

    def perimeter_position(self, px: float, py: float) -> float:
        """
        Arc length of a boundary point measured counter-clockwise from (x, y).

        The walk runs along the bottom side, up the right side, back along the
        top side and down the left side. Points off the boundary are
        projected onto the nearest side.
        """
        w, h = self.width, self.height
        sides = (
            (abs(py - self.y), px - self.x),
            (abs(px - self.x_max), w + (py - self.y)),
            (abs(py - self.y_max), w + h + (self.x_max - px)),
            (abs(px - self.x), 2.0 * w + h + (self.y_max - py)),
        )
        _, s = min(sides, key=lambda side: side[0])
        return min(max(s, 0.0), self.perimeter) % self.perimeter

    def corners(self) -> List[Tuple[float, Point]]:
        """Corners in counter-clockwise order with their perimeter positions."""
        w, h = self.width, self.height
        return [
            (0.0, (self.x, self.y)),
            (w, (self.x_max, self.y)),
            (w + h, (self.x_max, self.y_max)),
            (2.0 * w + h, (self.x, self.y_max)),
        ]


def circumcircle(a: Point, b: Point, c: Point, eps: float = EPS) -> Optional[Tuple[Point, float]]:
    """Compute the circumcircle of three points.

    Args:
        a, b, c: The three points
        eps: Relative collinearity threshold on the triangle's signed area

    Returns:
        ((cx, cy), radius) or None if the points are collinear.
    """
    ax, ay = a
    bx, by = b
    cx, cy = c

    d = 2.0 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    # d is twice the signed area, compare it against the triangle's scale
    scale = math.hypot(bx - ax, by - ay) * math.hypot(cx - ax, cy - ay)
    if d == 0.0 or abs(d) <= eps * scale:
        return None

    a2 = ax * ax + ay * ay
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy

    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d

    return (ux, uy), math.hypot(ax - ux, ay - uy)


def converges(left: Point, middle: Point, right: Point) -> bool:
    """Check whether the breakpoints around the middle arc approach each other.

    Only then does the middle arc shrink to a point, so only converging
    triples produce circle events.
    """
    cross = ((middle[0] - left[0]) * (right[1] - middle[1])
             - (middle[1] - left[1]) * (right[0] - middle[0]))
    return cross > 0.0


def parabola_y(focus: Point, directrix: float, x: float) -> float:
    """Height of the parabola with the given focus above x."""
    fx, fy = focus
    return ((x - fx) ** 2 + fy * fy - directrix * directrix) / (2.0 * (fy - directrix))


def breakpoint_x(left: Point, right: Point, directrix: float) -> float:
    """
    X coordinate where the parabola of ``left`` meets the parabola of ``right``.

    Of the two intersections, the one with ``left``'s arc on its left side is
    returned.

    Args:
        left: Focus of the left arc
        right: Focus of the right arc
        directrix: Current sweep line position

    Returns:
        Breakpoint x coordinate
    """
    lx, ly = left
    rx, ry = right

    if ly == ry:
        # Same height, the breakpoint stays on the vertical bisector
        return (lx + rx) / 2.0
    if ry == directrix:
        # Degenerate parabola: a vertical ray below the right focus
        return rx
    if ly == directrix:
        return lx

    d1 = 1.0 / (2.0 * (ly - directrix))
    d2 = 1.0 / (2.0 * (ry - directrix))
    a = d1 - d2
    b = 2.0 * (rx * d2 - lx * d1)
    c = (ly * ly + lx * lx - directrix * directrix) * d1 - (ry * ry + rx * rx - directrix * directrix) * d2

    sqrt_delta = math.sqrt(max(b * b - 4.0 * a * c, 0.0))
    # (-b - sqrt_delta) / (2a) without the cancellation when a is small
    if b >= 0.0:
        return -(b + sqrt_delta) / (2.0 * a)
    return 2.0 * c / (sqrt_delta - b)
