# location_stream.py
# Sources of live position fixes.
# A stream hands out async-iterator subscriptions; closing the iterator
# (or cancelling the task iterating it) releases the subscription.

import asyncio
import logging
import time
from typing import AsyncIterator, Iterable, List, Optional, Protocol, Union

from .errors import LocationUnavailable
from .geo_utils import calculate_bearing
from .models import Coord, LocationFix

logger = logging.getLogger(__name__)


class LocationStream(Protocol):
    """
    Anything that yields LocationFix events.

    The iterator may pause indefinitely and may raise
    errors.LocationUnavailable when the sensor fails.
    """

    def subscribe(self) -> AsyncIterator[LocationFix]:
        ...


class QueueLocationStream:
    """
    Push-based stream: an integration layer (or a test) feeds fixes in
    with push(), the session pulls them out through subscribe().
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Union[LocationFix, Exception]]" = asyncio.Queue()
        self.active_subscriptions = 0

    def push(self, fix: LocationFix) -> None:
        self._queue.put_nowait(fix)

    def push_position(
        self,
        lat: float,
        lon: float,
        heading: Optional[float] = None,
        accuracy_m: float = 5.0,
    ) -> None:
        self.push(LocationFix(Coord(lat, lon), accuracy_m, heading, time.time()))

    def fail(self, message: str = "Location sensor unavailable") -> None:
        """Make the current subscription raise LocationUnavailable."""
        self._queue.put_nowait(LocationUnavailable(message))

    async def subscribe(self) -> AsyncIterator[LocationFix]:
        self.active_subscriptions += 1
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.active_subscriptions -= 1


class ReplayLocationStream:
    """
    Replays a recorded list of positions at a fixed interval.

    Heading is derived from consecutive points when none is recorded.
    The subscription ends after the last position.

    Args:
        positions:  Coord or LocationFix values in travel order.
        interval_s: Delay between fixes.
    """

    def __init__(
        self,
        positions: Iterable[Union[Coord, LocationFix]],
        interval_s: float = 1.0,
    ) -> None:
        self._fixes: List[LocationFix] = []
        prev: Optional[Coord] = None
        for item in positions:
            if isinstance(item, LocationFix):
                fix = item
            else:
                heading = None
                if prev is not None and prev != item:
                    heading = calculate_bearing(prev.lat, prev.lon, item.lat, item.lon)
                fix = LocationFix(position=item, heading_deg=heading)
            self._fixes.append(fix)
            prev = fix.position
        self.interval_s = interval_s

    def __len__(self) -> int:
        return len(self._fixes)

    async def subscribe(self) -> AsyncIterator[LocationFix]:
        for i, fix in enumerate(self._fixes):
            if i:
                await asyncio.sleep(self.interval_s)
            if not fix.timestamp:
                fix = LocationFix(fix.position, fix.accuracy_m, fix.heading_deg, time.time())
            yield fix
        logger.info(f"Replay finished after {len(self._fixes)} fixes.")
