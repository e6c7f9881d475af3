import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from tripnav.geo_utils import distance_between
from tripnav.models import Coord, Maneuver, NavigationState, Route, Waypoint
from tripnav.nav_config import NavConfig


A = Coord(0.0, 0.0)
B = Coord(0.0, 0.01)
C = Coord(0.0, 0.02)


def straight_route(origin: Coord, destination: Coord, speed_mps: float = 10.0) -> Route:
    distance = distance_between(origin, destination)
    return Route(
        path=(origin, destination),
        distance_m=distance,
        duration_s=distance / speed_mps,
        maneuvers=(
            Maneuver("Head east", 0.0, "depart"),
            Maneuver("Arrive at destination", distance, "arrive"),
        ),
    )


class FakeRouteProvider:
    """
    Records every request and answers with a straight route.

    `routes` overrides the answer per destination; `errors` are raised in
    order before any answer; calls numbered >= `hold_from` wait until
    release() is called for their destination.
    """

    def __init__(
        self,
        routes: Optional[Dict[Coord, Route]] = None,
        errors: Optional[List[Exception]] = None,
        hold_from: Optional[int] = None,
    ) -> None:
        self.routes = routes or {}
        self.errors = list(errors or [])
        self.hold_from = hold_from
        self.calls: List[Tuple[Coord, Coord]] = []
        self._gates: Dict[Coord, asyncio.Event] = {}

    def _gate(self, destination: Coord) -> asyncio.Event:
        if destination not in self._gates:
            self._gates[destination] = asyncio.Event()
        return self._gates[destination]

    def release(self, destination: Coord) -> None:
        self._gate(destination).set()

    async def compute_route(self, origin: Coord, destination: Coord) -> Route:
        number = len(self.calls)
        self.calls.append((origin, destination))
        if self.errors:
            raise self.errors.pop(0)
        if self.hold_from is not None and number >= self.hold_from:
            await self._gate(destination).wait()
        return self.routes.get(destination) or straight_route(origin, destination)


class Recorder:
    """Listener that keeps every published snapshot."""

    def __init__(self) -> None:
        self.states: List[NavigationState] = []

    def __call__(self, state: NavigationState) -> None:
        self.states.append(state)

    @property
    def statuses(self):
        """Published statuses with consecutive repeats collapsed."""
        collapsed = []
        for state in self.states:
            if not collapsed or collapsed[-1] is not state.status:
                collapsed.append(state.status)
        return collapsed


async def settle(rounds: int = 50) -> None:
    """Let pending tasks on the event loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_config(**overrides) -> NavConfig:
    settings = dict(
        compute_overview=False,
        route_retry_base_delay_s=0.0,
        location_stale_after_s=None,
        location_retry_delay_s=0.0,
        arrival_dwell_s=0.0,
    )
    settings.update(overrides)
    return NavConfig(**settings)


@pytest.fixture
def trip():
    return [
        Waypoint("a", A, "Alpha Street 1"),
        Waypoint("b", B, "Bravo Avenue 2", note="coffee"),
        Waypoint("c", C, "Charlie Road 3"),
    ]


@pytest.fixture
def recorder():
    return Recorder()
