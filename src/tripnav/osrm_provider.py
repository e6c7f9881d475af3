# osrm_provider.py
# Route provider backed by an OSRM HTTP server.
# Converts OSRM route steps into Maneuver objects anchored at the
# distance from route start where each step begins.

import logging
from typing import List, Optional, Tuple

import httpx
import polyline
from pydantic import BaseModel, ValidationError

from .errors import RouteError, RouteErrorKind
from .models import Coord, Maneuver, Route, TransportType
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


OSRM_PROFILES = {
    TransportType.WALKING:    "foot",
    TransportType.BICYCLE:    "bike",
    TransportType.AUTOMOBILE: "driving",
}

NO_PATH_CODES = frozenset({"NoRoute", "NoSegment"})


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class OSRMManeuver(BaseModel):
    type: str
    modifier: Optional[str] = None


class OSRMStep(BaseModel):
    distance: float
    duration: float
    name: str = ""
    maneuver: OSRMManeuver


class OSRMLeg(BaseModel):
    steps: List[OSRMStep] = []


class OSRMRoute(BaseModel):
    distance: float
    duration: float
    geometry: str
    legs: List[OSRMLeg] = []


class OSRMResponse(BaseModel):
    code: str
    message: Optional[str] = None
    routes: List[OSRMRoute] = []


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def decode_polyline(encoded: str, precision: int = 5) -> Tuple[Coord, ...]:
    """Decode a polyline string into Coord values."""
    return tuple(Coord(lat, lon) for lat, lon in polyline.decode(encoded, precision))


def step_instruction(step: OSRMStep) -> str:
    """Human-readable instruction text for one OSRM step."""
    kind = step.maneuver.type
    modifier = step.maneuver.modifier
    onto = f" onto {step.name}" if step.name else ""

    if kind == "depart":
        return f"Head out{onto}" if step.name else "Depart"
    if kind == "arrive":
        return "Arrive at destination"
    if kind in ("roundabout", "rotary"):
        return f"Enter the roundabout and exit{onto}"
    if kind in ("continue", "new name"):
        return f"Continue{onto}" if step.name else "Continue straight"
    if modifier == "uturn":
        return f"Make a U-turn{onto}"
    if modifier:
        return f"Turn {modifier}{onto}"
    return f"Continue{onto}" if step.name else "Continue straight"


def build_maneuvers(legs: List[OSRMLeg]) -> Tuple[Maneuver, ...]:
    maneuvers: List[Maneuver] = []
    offset = 0.0
    for leg in legs:
        for step in leg.steps:
            maneuvers.append(Maneuver(
                instruction=step_instruction(step),
                distance_m=offset,
                category=step.maneuver.modifier or step.maneuver.type,
            ))
            offset += step.distance
    return tuple(maneuvers)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class OSRMRouteProvider:
    """
    Async OSRM client implementing the RouteProvider interface.

    Args:
        config:    NavConfig for base URL, timeout and transport type.
        transport: Optional httpx transport (tests, custom pooling).
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or NavConfig()
        self.base_url = self.config.osrm_base_url.rstrip("/")
        self.timeout = self.config.route_timeout_s
        self._transport = transport

    @property
    def profile(self) -> str:
        return OSRM_PROFILES[self.config.transport_type]

    async def compute_route(self, origin: Coord, destination: Coord) -> Route:
        """Get a route between two coordinates from OSRM."""
        url = (
            f"{self.base_url}/route/v1/{self.profile}/"
            f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        )
        params = {"overview": "full", "geometries": "polyline", "steps": "true"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise RouteError(
                RouteErrorKind.TIMEOUT, f"OSRM request timed out after {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise RouteError(RouteErrorKind.PROVIDER_UNAVAILABLE, f"Network error: {e}") from e

        if response.status_code >= 500:
            raise RouteError(
                RouteErrorKind.PROVIDER_UNAVAILABLE,
                f"OSRM server error: {response.status_code}",
            )

        try:
            data = OSRMResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RouteError(
                RouteErrorKind.PROVIDER_UNAVAILABLE, f"Malformed OSRM response: {e}"
            ) from e

        if data.code != "Ok" or not data.routes:
            kind = (
                RouteErrorKind.NO_PATH_FOUND
                if data.code in NO_PATH_CODES or data.code == "Ok"
                else RouteErrorKind.PROVIDER_UNAVAILABLE
            )
            raise RouteError(
                kind,
                data.message or f"OSRM returned {data.code}",
                details={"code": data.code},
            )

        best = data.routes[0]
        route = Route(
            path=decode_polyline(best.geometry),
            distance_m=best.distance,
            duration_s=best.duration,
            maneuvers=build_maneuvers(best.legs),
        )
        logger.info(
            f"OSRM route {origin} -> {destination}: "
            f"{route.distance_m:.0f} m, {route.duration_s:.0f} s, {len(route.maneuvers)} steps"
        )
        return route
