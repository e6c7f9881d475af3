# navigator.py
# Public entry point for the navigation engine.
# NavigationSession is the state machine that drives a user through an
# ordered list of waypoints and publishes NavigationState snapshots.

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from typing import AsyncIterator, Callable, Coroutine, Deque, List, Optional, Sequence, Tuple

from .errors import (
    InvalidWaypointList,
    LocationUnavailable,
    RouteComputationFailed,
    RouteError,
    RouteErrorKind,
    SessionStateError,
)
from .geo_utils import closest_point_on_path, distance_between
from .location_stream import LocationStream
from .models import (
    Coord,
    LocationFix,
    NavigationState,
    NavigationStatus,
    Route,
    ROUTELESS_STATUSES,
    Waypoint,
)
from .nav_config import NavConfig
from .retry import RetryConfig, with_retry
from .route_cache import RouteCache
from .route_provider import RouteProvider, straight_line_route
from .route_tracker import ProgressEstimate, estimate_progress, has_arrived

logger = logging.getLogger(__name__)

Listener = Callable[[NavigationState], None]


class NavigationSession:
    """
    Turn-by-turn navigation through an ordered list of waypoints.

    All state changes happen on the event loop in synchronous sections,
    so a position update and a finished route computation never
    interleave. Route requests run in their own task and carry a
    generation number; results from a superseded request are dropped.

    Typical lifecycle:
        session = NavigationSession(provider, stream, config)
        session.add_listener(render)
        session.start(waypoints)

        async for state in session.subscribe():
            ...

        await session.skip_to_next()
        session.stop()

    Args:
        route_provider:  External routing service.
        location_stream: External position feed.
        config:          Optional NavConfig; defaults to NavConfig().
        clock:           Wall clock in epoch seconds (snapshot timestamps).
    """

    def __init__(
        self,
        route_provider: RouteProvider,
        location_stream: LocationStream,
        config: Optional[NavConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or NavConfig()
        self._provider = route_provider
        self._location_stream = location_stream
        self._clock = clock

        self._route_cache = RouteCache()
        self._retry_config = RetryConfig(
            max_attempts=self.config.route_max_attempts,
            base_delay=self.config.route_retry_base_delay_s,
            multiplier=self.config.route_retry_multiplier,
            max_delay=self.config.route_retry_max_delay_s,
            retryable_exceptions=(RouteError,),
            retry_if=lambda e: isinstance(e, RouteError) and e.is_retryable,
        )

        # Session data
        self._waypoints: Tuple[Waypoint, ...] = ()
        self._index: int = 0
        self._status = NavigationStatus.IDLE
        self._position: Optional[Coord] = None
        self._heading: Optional[float] = None
        self._progress: Optional[ProgressEstimate] = None
        self._location_stale = False
        self._location_error: Optional[str] = None
        self._route_error: Optional[str] = None
        self._route_failure: Optional[RouteComputationFailed] = None

        # Off-route debounce / arrival edge
        self._off_route_samples = 0
        self._off_route_since: Optional[float] = None
        self._arrived_index: Optional[int] = None

        # Async work
        self._generation = 0
        self._awaiting_first_fix = False
        self._route_task: Optional[asyncio.Task] = None
        self._location_task: Optional[asyncio.Task] = None
        self._overview_task: Optional[asyncio.Task] = None
        self._continue_task: Optional[asyncio.Task] = None
        self._stale_timer: Optional[asyncio.TimerHandle] = None
        self._closed = False

        # Publication
        self._state = NavigationState(timestamp=self._clock())
        self._listeners: List[Listener] = []
        self._queues: List["asyncio.Queue[Optional[NavigationState]]"] = []
        self._undelivered: Deque[NavigationState] = deque()
        self._delivering = False

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        """Latest published snapshot."""
        return self._state

    @property
    def route_cache(self) -> RouteCache:
        return self._route_cache

    @property
    def is_active(self) -> bool:
        return self._status is not NavigationStatus.IDLE and not self._closed

    @property
    def route_failure(self) -> Optional[RouteComputationFailed]:
        """Why the active leg shows a straight-line estimate, if it does."""
        return self._route_failure

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """
        Call listener synchronously with every new snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def subscribe(self) -> AsyncIterator[NavigationState]:
        """
        Async iterator over snapshots: the current one first, then each
        new one in revision order. Ends when the session is torn down.
        """
        queue: "asyncio.Queue[Optional[NavigationState]]" = asyncio.Queue()
        queue.put_nowait(self._state)
        if self._closed:
            queue.put_nowait(None)
        self._queues.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: "asyncio.Queue[Optional[NavigationState]]") -> AsyncIterator[NavigationState]:
        try:
            while True:
                state = await queue.get()
                if state is None:
                    return
                yield state
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start(self, waypoints: Sequence[Waypoint], start_index: int = 0) -> None:
        """
        Begin navigating to waypoints[start_index].

        Must be called from a running event loop. Invalid input is rejected
        before anything changes and the session stays Idle.

        Raises:
            InvalidWaypointList: empty list or start index out of range.
            SessionStateError:   the session was already started.
        """
        if self._status is not NavigationStatus.IDLE or self._closed:
            raise SessionStateError(
                f"Cannot start a session in state {self._status.value}",
                details={"status": self._status.value},
            )

        stops = tuple(waypoints)
        if not stops:
            raise InvalidWaypointList("Waypoint list is empty")
        if not 0 <= start_index < len(stops):
            raise InvalidWaypointList(
                f"Start index {start_index} out of range for {len(stops)} waypoints",
                details={"start_index": start_index, "count": len(stops)},
            )
        asyncio.get_running_loop()  # RuntimeError outside a running loop

        self._waypoints = stops
        self._index = start_index
        self._status = NavigationStatus.CALCULATING_ROUTE
        logger.info(
            f"Starting navigation: {len(stops)} waypoints, "
            f"first target #{start_index + 1} ({stops[start_index].address or stops[start_index].waypoint_id})"
        )

        self._location_task = self._spawn(self._consume_locations(), "location-feed")
        if self.config.compute_overview and len(stops) > 1:
            self._overview_task = self._spawn(self._compute_overview(), "route-overview")
        self._arm_stale_timer()

        self._publish()
        self._request_leg_route()

    def stop(self) -> None:
        """Cancel navigation. No snapshot follows the Cancelled one."""
        if self._closed:
            return

        logger.info("Navigation stopped by user.")
        self._supersede_route_request()
        self._route_cache.clear_current()
        self._progress = None
        self._status = NavigationStatus.CANCELLED
        self._publish()
        self._teardown()

    async def skip_to_next(self) -> None:
        """
        Abandon the current waypoint and move on to the next one.

        Any in-flight route for the skipped leg is discarded. Returns once
        the next leg is scheduled, or the session has completed.
        """
        if self._closed:
            logger.warning("skip_to_next() on a finished session ignored.")
            return
        if self._status is NavigationStatus.IDLE:
            raise SessionStateError("Cannot skip before start()")

        logger.info(f"Skipping waypoint {self._index + 1} of {len(self._waypoints)}")
        self._advance()

    # ------------------------------------------------------------------
    # Location feed
    # ------------------------------------------------------------------

    async def _consume_locations(self) -> None:
        while not self._closed:
            updates = self._location_stream.subscribe()
            try:
                async for fix in updates:
                    self._on_fix(fix)
                    if self._closed:
                        return
            except LocationUnavailable as e:
                self._on_location_lost(e.message)
                await asyncio.sleep(self.config.location_retry_delay_s)
                continue
            except Exception as e:
                logger.error(f"Location stream raised {e!r}; resubscribing.", exc_info=e)
                self._on_location_lost(f"Location stream failed: {e}")
                await asyncio.sleep(self.config.location_retry_delay_s)
                continue
            finally:
                aclose = getattr(updates, "aclose", None)
                if aclose is not None:
                    await aclose()

            self._on_location_lost("Location stream ended")
            return

    def _on_fix(self, fix: LocationFix) -> None:
        if self._closed:
            return

        limit = self.config.max_fix_accuracy_m
        if limit is not None and fix.accuracy_m > limit:
            logger.debug(f"Dropping fix with accuracy {fix.accuracy_m:.0f} m (limit {limit:.0f} m)")
            return

        self._position = fix.position
        if fix.heading_deg is not None:
            self._heading = fix.heading_deg
        if self._location_stale:
            logger.info("Location feed recovered.")
        self._location_stale = False
        self._location_error = None
        self._arm_stale_timer()

        status = self._status
        if status is NavigationStatus.CALCULATING_ROUTE and self._awaiting_first_fix:
            self._request_leg_route()
        elif status in (NavigationStatus.NAVIGATING, NavigationStatus.REROUTING):
            self._evaluate_position()

        self._publish()

    def _on_location_lost(self, reason: str) -> None:
        if self._closed:
            return
        logger.warning(f"Location unavailable: {reason}. Holding last known state.")
        self._location_stale = True
        self._location_error = reason
        self._publish()

    def _arm_stale_timer(self) -> None:
        if self._stale_timer is not None:
            self._stale_timer.cancel()
            self._stale_timer = None

        timeout = self.config.location_stale_after_s
        if timeout is None or self._closed:
            return

        def on_silence() -> None:
            self._stale_timer = None
            if not self._location_stale:
                self._on_location_lost(f"No location fix for {timeout:.0f}s")

        self._stale_timer = asyncio.get_running_loop().call_later(timeout, on_silence)

    # ------------------------------------------------------------------
    # Position evaluation
    # ------------------------------------------------------------------

    def _evaluate_position(self) -> None:
        """Arrival, progress and off-route checks for the latest fix."""
        position = self._position
        if position is None:
            return

        if self._check_arrival():
            return

        route = self._route_cache.current
        if route is None:
            return

        closest = closest_point_on_path(position, route.path)
        self._progress = estimate_progress(route, position, self._is_final_leg, closest)

        if self._status is NavigationStatus.NAVIGATING and closest is not None:
            self._track_off_route(closest.distance_m)

    def _check_arrival(self) -> bool:
        """Enter ArrivedAtWaypoint once per waypoint index."""
        position = self._position
        if position is None or self._arrived_index == self._index:
            return False
        waypoint = self._waypoints[self._index]
        if not has_arrived(position, waypoint.coord, self.config.arrival_threshold_m):
            return False
        self._enter_arrived()
        return True

    def _track_off_route(self, distance_m: float) -> None:
        if distance_m <= self.config.off_route_threshold_m:
            self._reset_off_route()
            return

        now = self._clock()
        self._off_route_samples += 1
        if self._off_route_since is None:
            self._off_route_since = now

        if not self._off_route_confirmed(now):
            logger.debug(
                f"Off-route sample {self._off_route_samples}: {distance_m:.0f} m from path"
            )
            return

        if self._route_task is not None and not self._route_task.done():
            logger.debug("Off-route confirmed but a route request is already in flight.")
            return

        logger.info(
            f"Off route by {distance_m:.0f} m for {self._off_route_samples} samples, rerouting."
        )
        self._status = NavigationStatus.REROUTING
        self._reset_off_route()
        self._start_route_request(self._position)

    def _off_route_confirmed(self, now: float) -> bool:
        needed = max(2, self.config.off_route_confirm_samples)
        if self._off_route_samples >= needed:
            return True
        window = self.config.off_route_confirm_s
        return (
            window is not None
            and self._off_route_samples >= 2
            and self._off_route_since is not None
            and now - self._off_route_since >= window
        )

    def _reset_off_route(self) -> None:
        self._off_route_samples = 0
        self._off_route_since = None

    def _enter_arrived(self) -> None:
        index = self._index
        logger.info(f"Arrived at waypoint {index + 1} of {len(self._waypoints)}")

        self._arrived_index = index
        self._supersede_route_request()
        self._reset_off_route()
        self._status = NavigationStatus.ARRIVED_AT_WAYPOINT
        if self._progress is not None:
            self._progress = replace(
                self._progress,
                distance_remaining=0.0,
                time_remaining=0.0,
                distance_to_next_turn=0.0,
                route_progress=1.0,
            )

        if self.config.auto_continue:
            self._continue_task = self._spawn(
                self._continue_after_arrival(index), f"continue-{index}"
            )

    async def _continue_after_arrival(self, index: int) -> None:
        await asyncio.sleep(self.config.arrival_dwell_s)
        self._continue_task = None
        if self._closed or self._index != index:
            return
        if self._status is NavigationStatus.ARRIVED_AT_WAYPOINT:
            self._advance()

    def _advance(self) -> None:
        self._cancel_task(self._continue_task)
        self._continue_task = None
        self._supersede_route_request()
        self._reset_off_route()
        self._route_cache.clear_current()
        self._progress = None
        self._index += 1

        if self._index >= len(self._waypoints):
            logger.info("Navigation complete!")
            self._status = NavigationStatus.COMPLETED
            self._publish()
            self._teardown()
            return

        self._status = NavigationStatus.CALCULATING_ROUTE
        self._publish()
        self._request_leg_route()

    @property
    def _is_final_leg(self) -> bool:
        return self._index >= len(self._waypoints) - 1

    # ------------------------------------------------------------------
    # Route computation
    # ------------------------------------------------------------------

    def _leg_origin(self) -> Optional[Coord]:
        if self._position is not None:
            return self._position
        if self._index > 0:
            return self._waypoints[self._index - 1].coord
        return None

    def _request_leg_route(self) -> None:
        if self._closed:
            return
        origin = self._leg_origin()
        if origin is None:
            self._awaiting_first_fix = True
            logger.info("No starting location available; waiting for first fix.")
            return
        self._awaiting_first_fix = False
        self._start_route_request(origin)

    def _start_route_request(self, origin: Coord) -> None:
        self._supersede_route_request()
        generation = self._generation
        target = self._index
        destination = self._waypoints[target].coord
        self._route_task = self._spawn(
            self._compute_leg(origin, destination, target, generation),
            f"route-{target}-{generation}",
        )

    def _supersede_route_request(self) -> None:
        """Invalidate any in-flight route request."""
        self._generation += 1
        self._cancel_task(self._route_task)
        self._route_task = None

    async def _fetch_route(self, origin: Coord, destination: Coord) -> Route:
        timeout = self.config.route_timeout_s
        try:
            return await asyncio.wait_for(
                self._provider.compute_route(origin, destination), timeout
            )
        except asyncio.TimeoutError as e:
            raise RouteError(
                RouteErrorKind.TIMEOUT, f"Route request exceeded {timeout:.1f}s"
            ) from e

    async def _compute_leg(
        self,
        origin: Coord,
        destination: Coord,
        target: int,
        generation: int,
    ) -> None:
        failure: Optional[RouteComputationFailed] = None
        try:
            route = await with_retry(
                lambda: self._fetch_route(origin, destination),
                config=self._retry_config,
                operation_name=f"Route to waypoint {target + 1}",
            )
        except RouteError as e:
            failure = RouteComputationFailed(
                f"Failed to calculate route ({e.kind.value}); showing straight-line estimate",
                details={"kind": e.kind.value, "waypoint_index": target},
            )
            logger.warning(failure.message)
            route = straight_line_route(origin, destination, self.config.speed_mps)
        except Exception as e:
            logger.error(f"Route provider raised {e!r}; showing straight-line estimate", exc_info=e)
            failure = RouteComputationFailed(
                f"Failed to calculate route: {e}",
                details={"kind": "unexpected", "waypoint_index": target, "error": repr(e)},
            )
            route = straight_line_route(origin, destination, self.config.speed_mps)

        self._apply_route(route, target, generation, failure)

    def _apply_route(
        self,
        route: Route,
        target: int,
        generation: int,
        failure: Optional[RouteComputationFailed],
    ) -> None:
        if self._closed or generation != self._generation or target != self._index:
            logger.debug(f"Discarding superseded route for waypoint {target + 1}")
            return
        if self._status not in (NavigationStatus.CALCULATING_ROUTE, NavigationStatus.REROUTING):
            logger.debug(f"Discarding route for waypoint {target + 1} in state {self._status.value}")
            return

        self._route_task = None
        self._route_cache.set_current(target, route)
        self._route_failure = failure
        self._route_error = failure.message if failure is not None else None
        self._status = NavigationStatus.NAVIGATING
        self._reset_off_route()

        position = self._position
        closest = closest_point_on_path(position, route.path) if position is not None else None
        self._progress = estimate_progress(route, position, self._is_final_leg, closest)
        logger.info(
            f"Route ready for waypoint {target + 1}: {route.distance_m:.0f} m, "
            f"{route.duration_s:.0f} s, {len(route.maneuvers)} maneuvers"
            + (" (estimate)" if route.is_estimate else "")
        )
        self._publish()

        # The user may already be inside the arrival radius; the feed
        # can stay silent for a long time.
        if self._check_arrival():
            self._publish()

    async def _compute_overview(self) -> None:
        """Route every consecutive leg for trip summary use."""
        stops = self._waypoints
        for leg in range(len(stops) - 1):
            if self._closed:
                return
            try:
                route = await self._fetch_route(stops[leg].coord, stops[leg + 1].coord)
            except RouteError as e:
                logger.warning(f"Overview leg {leg + 1} skipped: {e.message}")
                continue
            self._route_cache.set_leg(leg, route)

        logger.info(
            f"Trip overview: {len(self._route_cache.legs)} legs, "
            f"{self._route_cache.total_distance_m:.0f} m, {self._route_cache.total_duration_s:.0f} s"
        )
        self._publish()

    # ------------------------------------------------------------------
    # Snapshot publication
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        if self._closed:
            return

        status = self._status
        now = self._clock()
        route = None if status in ROUTELESS_STATUSES else self._route_cache.current
        progress = self._progress if route is not None else None
        position = self._position

        is_on_route = True
        if (
            status is NavigationStatus.NAVIGATING
            and position is not None
            and progress is not None
            and progress.off_route_m is not None
        ):
            is_on_route = progress.off_route_m <= self.config.off_route_threshold_m

        waypoint = self._waypoints[self._index] if self._index < len(self._waypoints) else None
        to_waypoint = (
            distance_between(position, waypoint.coord)
            if position is not None and waypoint is not None
            else None
        )

        state = NavigationState(
            status=status,
            waypoints=self._waypoints,
            current_waypoint_index=self._index,
            current_route=route,
            user_position=position,
            user_heading=self._heading,
            is_on_route=is_on_route,
            distance_to_next_turn=progress.distance_to_next_turn if progress else 0.0,
            distance_to_destination=progress.distance_remaining if progress else 0.0,
            time_to_destination=progress.time_remaining if progress else 0.0,
            current_instruction=progress.current_instruction if progress else "",
            next_instruction=progress.next_instruction if progress else "",
            distance_to_waypoint=to_waypoint,
            eta=now + progress.time_remaining if progress else None,
            route_progress=progress.route_progress if progress else 0.0,
            location_stale=self._location_stale,
            error_message=self._location_error or self._route_error,
            leg_routes=self._route_cache.legs,
            revision=self._state.revision + 1,
            timestamp=now,
        )
        self._state = state

        # Queues first: a listener may stop() the session and close them.
        for queue in self._queues:
            queue.put_nowait(state)

        # A listener may cause another publish; the outermost call delivers
        # every pending snapshot in revision order.
        self._undelivered.append(state)
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._undelivered:
                pending = self._undelivered.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(pending)
                    except Exception as e:
                        logger.error(f"Navigation listener {listener!r} failed: {e}", exc_info=e)
        finally:
            self._delivering = False

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        self._closed = True
        self._supersede_route_request()
        for task in (self._location_task, self._overview_task, self._continue_task):
            self._cancel_task(task)
        self._location_task = self._overview_task = self._continue_task = None
        if self._stale_timer is not None:
            self._stale_timer.cancel()
            self._stale_timer = None
        for queue in self._queues:
            queue.put_nowait(None)
        logger.debug(f"Session closed in state {self._status.value}")

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        task.add_done_callback(_log_task_failure)
        return task

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Navigation task {task.get_name()} failed: {exc!r}", exc_info=exc)
