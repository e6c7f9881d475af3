# models.py
# Shared data structures and enums used across all modules.

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lon": self.lon}

    @staticmethod
    def from_dict(d: dict) -> "Coord":
        return Coord(float(d["lat"]), float(d["lon"]))


# ---------------------------------------------------------------------------
# Trip stops
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Waypoint:
    """An ordered trip stop. Content never changes once a session starts."""
    waypoint_id: str
    coord: Coord
    address: str = ""
    note: Optional[str] = None


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Maneuver:
    """A single turn/instruction event at a distance along the route path."""
    instruction: str
    distance_m: float            # from route start
    category: str = "straight"   # iconography only

    def to_dict(self) -> dict:
        return {
            "instruction": self.instruction,
            "distance_m": self.distance_m,
            "category": self.category,
        }

    @staticmethod
    def from_dict(d: dict) -> "Maneuver":
        return Maneuver(
            instruction=d["instruction"],
            distance_m=float(d["distance_m"]),
            category=d.get("category", "straight"),
        )


@dataclass(frozen=True)
class Route:
    """Result of a path computation between two points."""
    path: Tuple[Coord, ...]
    distance_m: float
    duration_s: float
    maneuvers: Tuple[Maneuver, ...] = ()
    is_estimate: bool = False    # straight-line fallback, not a real path

    @property
    def origin(self) -> Optional[Coord]:
        return self.path[0] if self.path else None

    @property
    def destination(self) -> Optional[Coord]:
        return self.path[-1] if self.path else None

    def to_dict(self) -> dict:
        return {
            "path": [c.to_dict() for c in self.path],
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "maneuvers": [m.to_dict() for m in self.maneuvers],
            "is_estimate": self.is_estimate,
        }

    @staticmethod
    def from_dict(d: dict) -> "Route":
        return Route(
            path=tuple(Coord.from_dict(c) for c in d["path"]),
            distance_m=float(d["distance_m"]),
            duration_s=float(d["duration_s"]),
            maneuvers=tuple(Maneuver.from_dict(m) for m in d.get("maneuvers", [])),
            is_estimate=bool(d.get("is_estimate", False)),
        )


# ---------------------------------------------------------------------------
# Location feed
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocationFix:
    """One event from the location sensor stream."""
    position: Coord
    accuracy_m: float = 5.0
    heading_deg: Optional[float] = None
    timestamp: float = 0.0       # epoch seconds


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NavigationStatus(Enum):
    IDLE               = "idle"
    CALCULATING_ROUTE  = "calculating_route"
    NAVIGATING         = "navigating"
    REROUTING          = "rerouting"
    ARRIVED_AT_WAYPOINT = "arrived_at_waypoint"
    COMPLETED          = "completed"
    CANCELLED          = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (NavigationStatus.COMPLETED, NavigationStatus.CANCELLED)


class TransportType(Enum):
    WALKING    = "walking"
    AUTOMOBILE = "automobile"
    BICYCLE    = "bicycle"


# Statuses in which a snapshot may carry no route.
ROUTELESS_STATUSES = frozenset({
    NavigationStatus.IDLE,
    NavigationStatus.CALCULATING_ROUTE,
    NavigationStatus.COMPLETED,
    NavigationStatus.CANCELLED,
})


# ---------------------------------------------------------------------------
# Published snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigationState:
    """
    Immutable point-in-time view of a navigation session.

    A new instance is published on every change; consumers never mutate
    one in place. `revision` increases strictly within a session.
    """
    status: NavigationStatus = NavigationStatus.IDLE
    waypoints: Tuple[Waypoint, ...] = ()
    current_waypoint_index: int = 0
    current_route: Optional[Route] = None
    user_position: Optional[Coord] = None
    user_heading: Optional[float] = None
    is_on_route: bool = True
    distance_to_next_turn: float = 0.0
    distance_to_destination: float = 0.0
    time_to_destination: float = 0.0
    current_instruction: str = ""
    next_instruction: str = ""
    distance_to_waypoint: Optional[float] = None
    eta: Optional[float] = None
    route_progress: float = 0.0
    location_stale: bool = False
    error_message: Optional[str] = None
    leg_routes: Tuple[Route, ...] = ()
    revision: int = 0
    timestamp: float = 0.0

    @property
    def completed_waypoints(self) -> Tuple[Waypoint, ...]:
        return self.waypoints[:self.current_waypoint_index]

    @property
    def remaining_waypoints(self) -> Tuple[Waypoint, ...]:
        return self.waypoints[self.current_waypoint_index:]

    @property
    def current_waypoint(self) -> Optional[Waypoint]:
        if 0 <= self.current_waypoint_index < len(self.waypoints):
            return self.waypoints[self.current_waypoint_index]
        return None

    @property
    def trip_distance_m(self) -> float:
        return sum(r.distance_m for r in self.leg_routes)

    @property
    def trip_duration_s(self) -> float:
        return sum(r.duration_s for r in self.leg_routes)

    def to_dict(self) -> dict:
        """Flat, JSON-friendly view used by the session journal."""
        return {
            "revision": self.revision,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "current_waypoint_index": self.current_waypoint_index,
            "waypoint_count": len(self.waypoints),
            "user_position": self.user_position.to_dict() if self.user_position else None,
            "user_heading": self.user_heading,
            "is_on_route": self.is_on_route,
            "distance_to_next_turn": round(self.distance_to_next_turn, 1),
            "distance_to_destination": round(self.distance_to_destination, 1),
            "time_to_destination": round(self.time_to_destination, 1),
            "current_instruction": self.current_instruction,
            "next_instruction": self.next_instruction,
            "location_stale": self.location_stale,
            "error_message": self.error_message,
        }
