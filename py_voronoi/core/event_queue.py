"""
Priority queue of site and circle events for the sweep.

Circle events are never removed from the heap. Each arc owns at most one
live circle event, identified by a token; superseded or invalidated events
stay in the heap and are dropped when they surface.
"""

import heapq
import itertools
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .diagram import Site

# At equal sweep positions pending circle events run before new sites
_CIRCLE_RANK = 0
_SITE_RANK = 1


@dataclass(frozen=True)
class SiteEvent:
    site: Site

    @property
    def y(self) -> float:
        return self.site.y


@dataclass(frozen=True)
class CircleEvent:
    y: float  # sweep position of the circle's lowest point
    center: Tuple[float, float]
    arc: int
    token: int


Event = Union[SiteEvent, CircleEvent]


class EventQueue:
    """Sweep events ordered by y with deterministic tie-breaking."""

    def __init__(self):
        self._heap: List[tuple] = []
        self._sequence = itertools.count()
        self._live: Dict[int, int] = {}  # arc -> token of its live circle event
        self.stale_discarded = 0

    def __len__(self) -> int:
        return len(self._heap)

    def push_site(self, site: Site) -> SiteEvent:
        event = SiteEvent(site)
        seq = next(self._sequence)
        heapq.heappush(self._heap, (site.y, _SITE_RANK, site.x, site.index, seq, event))
        return event

    def push_circle(self, y: float, center: Tuple[float, float], arc: int) -> CircleEvent:
        """Queue a circle event for ``arc``, superseding any earlier one."""
        seq = next(self._sequence)
        event = CircleEvent(y=y, center=center, arc=arc, token=seq)
        self._live[arc] = seq
        heapq.heappush(self._heap, (y, _CIRCLE_RANK, center[0], arc, seq, event))
        return event

    def invalidate(self, arc: int) -> bool:
        """Cancel the pending circle event of ``arc``; True if one was live."""
        return self._live.pop(arc, None) is not None

    def is_live(self, event: CircleEvent) -> bool:
        return self._live.get(event.arc) == event.token

    def has_live_event(self, arc: int) -> bool:
        return arc in self._live

    def pop(self) -> Optional[Event]:
        """Return the next event that still matters, or None when exhausted."""
        while self._heap:
            event = heapq.heappop(self._heap)[-1]
            if isinstance(event, SiteEvent):
                return event
            if self.is_live(event):
                del self._live[event.arc]
                return event
            self.stale_discarded += 1
        return None
