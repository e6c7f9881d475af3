"""Turn-by-turn trip navigation engine."""

from .errors import (
    InvalidWaypointList,
    LocationUnavailable,
    NavigationError,
    RouteComputationFailed,
    RouteError,
    RouteErrorKind,
    SessionStateError,
)
from .location_stream import LocationStream, QueueLocationStream, ReplayLocationStream
from .models import (
    Coord,
    LocationFix,
    Maneuver,
    NavigationState,
    NavigationStatus,
    Route,
    TransportType,
    Waypoint,
)
from .nav_config import NavConfig
from .navigator import NavigationSession
from .osrm_provider import OSRMRouteProvider
from .route_provider import RouteProvider, StraightLineRouteProvider

__version__ = "0.1.0"
