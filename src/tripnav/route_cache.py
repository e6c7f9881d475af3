# route_cache.py
# Per-session store of the active leg route and the per-leg overview routes.
# Owned and mutated only by NavigationSession.

import logging
from typing import Dict, Optional, Tuple

from .models import Route

logger = logging.getLogger(__name__)


class RouteCache:
    """
    Holds the most recent route for the active leg, plus one route per
    trip leg (leg i runs from waypoint i to waypoint i + 1) for overview
    and summary use.
    """

    def __init__(self) -> None:
        self._current: Optional[Route] = None
        self._current_leg: Optional[int] = None
        self._legs: Dict[int, Route] = {}

    # ------------------------------------------------------------------
    # Active leg
    # ------------------------------------------------------------------

    @property
    def current(self) -> Optional[Route]:
        return self._current

    @property
    def current_leg(self) -> Optional[int]:
        """Waypoint index the current route leads to."""
        return self._current_leg

    def set_current(self, waypoint_index: int, route: Route) -> None:
        self._current = route
        self._current_leg = waypoint_index
        logger.debug(
            f"Cached route to waypoint {waypoint_index}: "
            f"{route.distance_m:.0f} m, {route.duration_s:.0f} s"
        )

    def clear_current(self) -> None:
        self._current = None
        self._current_leg = None

    # ------------------------------------------------------------------
    # Overview legs
    # ------------------------------------------------------------------

    def set_leg(self, leg_index: int, route: Route) -> None:
        self._legs[leg_index] = route

    def get_leg(self, leg_index: int) -> Optional[Route]:
        return self._legs.get(leg_index)

    @property
    def legs(self) -> Tuple[Route, ...]:
        """Computed overview routes ordered by leg index."""
        return tuple(self._legs[i] for i in sorted(self._legs))

    @property
    def total_distance_m(self) -> float:
        return sum(r.distance_m for r in self._legs.values())

    @property
    def total_duration_s(self) -> float:
        return sum(r.duration_s for r in self._legs.values())

    def clear(self) -> None:
        self.clear_current()
        self._legs.clear()
