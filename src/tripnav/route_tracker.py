# route_tracker.py
# Stateless checks run against the active route on every GPS update:
# off-route distance, arrival, and progress / ETA / instruction derivation.
# The session owns all state (debounce counters, arrival edges).

from dataclasses import dataclass
from typing import Optional

from .models import Coord, Route
from .geo_utils import (
    ClosestPoint,
    closest_point_on_path,
    distance_between,
    traveled_distance,
)


CONTINUE_TO_NEXT = "Continue to next location"
ARRIVING_FINAL = "Arriving at final destination"


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------

def off_route_distance(position: Coord, route: Route) -> Optional[float]:
    """
    Perpendicular distance in metres from position to the route path.

    Returns None when the route carries no geometry.
    """
    closest = closest_point_on_path(position, route.path)
    if closest is None:
        return None
    return closest.distance_m


def has_arrived(position: Coord, waypoint: Coord, threshold_m: float) -> bool:
    """True once position is within threshold_m of the waypoint."""
    return distance_between(position, waypoint) <= threshold_m


# ---------------------------------------------------------------------------
# Progress / ETA
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressEstimate:
    """Returned by estimate_progress() for every position on a route."""
    traveled_m: float
    distance_remaining: float
    time_remaining: float
    distance_to_next_turn: float
    current_instruction: str
    next_instruction: str
    route_progress: float
    off_route_m: Optional[float] = None


def format_instruction(instruction: str) -> str:
    """Tidy provider instruction text for display."""
    formatted = instruction.replace("onto ", "to ")
    while "  " in formatted:
        formatted = formatted.replace("  ", " ")
    formatted = formatted.strip()
    if formatted:
        formatted = formatted[0].upper() + formatted[1:]
    return formatted


def estimate_progress(
    route: Route,
    position: Optional[Coord],
    is_final_leg: bool = False,
    closest: Optional[ClosestPoint] = None,
) -> ProgressEstimate:
    """
    Remaining distance/time and instructions for a position on route.

    Duration is apportioned linearly over distance. Without a position the
    estimate is the route's start state.

    Args:
        route:        Active leg route.
        position:     Latest user position, or None before the first fix.
        is_final_leg: Selects the fallback text when no maneuver follows.
        closest:      Precomputed closest_point_on_path() result, if any.

    Returns:
        ProgressEstimate.
    """
    if closest is None and position is not None:
        closest = closest_point_on_path(position, route.path)

    traveled = traveled_distance(route.path, closest) if closest is not None else 0.0

    remaining = max(0.0, route.distance_m - traveled)
    if route.distance_m > 0:
        time_remaining = remaining / route.distance_m * route.duration_s
        progress = min(1.0, max(0.0, (route.distance_m - remaining) / route.distance_m))
    else:
        time_remaining = 0.0
        progress = 0.0

    maneuvers = route.maneuvers
    upcoming = next((i for i, m in enumerate(maneuvers) if m.distance_m > traveled), None)

    if upcoming is not None:
        to_next_turn = maneuvers[upcoming].distance_m - traveled
    else:
        to_next_turn = 0.0

    # Maneuver at or just passed; before any is passed, the first one.
    if upcoming is None:
        current_idx = len(maneuvers) - 1
    else:
        current_idx = max(0, upcoming - 1)

    current_text = format_instruction(maneuvers[current_idx].instruction) if maneuvers else ""
    if 0 <= current_idx + 1 < len(maneuvers):
        next_text = format_instruction(maneuvers[current_idx + 1].instruction)
    else:
        next_text = ARRIVING_FINAL if is_final_leg else CONTINUE_TO_NEXT

    return ProgressEstimate(
        traveled_m=traveled,
        distance_remaining=remaining,
        time_remaining=time_remaining,
        distance_to_next_turn=to_next_turn,
        current_instruction=current_text,
        next_instruction=next_text,
        route_progress=progress,
        off_route_m=closest.distance_m if closest is not None else None,
    )
