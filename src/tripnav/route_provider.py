# route_provider.py
# Interface to the external routing service, plus the straight-line
# estimate used when no real path can be obtained.

import logging
from typing import Optional, Protocol

from .models import Coord, Maneuver, Route
from .geo_utils import calculate_bearing, compass_direction, distance_between
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


class RouteProvider(Protocol):
    """
    Anything that turns an origin/destination pair into a Route.

    Implementations are async and must tolerate cancellation. Failures are
    reported by raising errors.RouteError.
    """

    async def compute_route(self, origin: Coord, destination: Coord) -> Route:
        ...


def straight_line_route(origin: Coord, destination: Coord, speed_mps: float) -> Route:
    """
    Two-point estimate route: great-circle distance at an assumed speed.

    Args:
        origin:      Start coordinate.
        destination: End coordinate.
        speed_mps:   Assumed average speed in metres per second.

    Returns:
        Route flagged with is_estimate=True.
    """
    distance = distance_between(origin, destination)
    duration = distance / speed_mps if speed_mps > 0 else 0.0
    heading = compass_direction(
        calculate_bearing(origin.lat, origin.lon, destination.lat, destination.lon)
    )
    return Route(
        path=(origin, destination),
        distance_m=distance,
        duration_s=duration,
        maneuvers=(
            Maneuver(f"Head {heading} toward destination", 0.0, "depart"),
            Maneuver("Arrive at destination", distance, "arrive"),
        ),
        is_estimate=True,
    )


class StraightLineRouteProvider:
    """Route provider that never fails; useful offline and in simulation."""

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()

    async def compute_route(self, origin: Coord, destination: Coord) -> Route:
        route = straight_line_route(origin, destination, self.config.speed_mps)
        logger.debug(f"Straight-line route {origin} -> {destination}: {route.distance_m:.0f} m")
        return route
