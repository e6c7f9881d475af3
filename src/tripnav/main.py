# main.py
# Entry point: simulates a GPS feed driving a NavigationSession through a
# short trip. In production, replace ReplayLocationStream with the real
# location source and pass --osrm-url to route on real streets.
#
#   python -m tripnav.main
#   python -m tripnav.main --osrm-url http://localhost:5000 --walking

import argparse
import asyncio
import logging
from typing import List

from .formatting import format_distance, format_time, split_instruction
from .location_stream import ReplayLocationStream
from .models import Coord, NavigationState, TransportType, Waypoint
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .navigator import NavigationSession
from .osrm_provider import OSRMRouteProvider
from .route_provider import StraightLineRouteProvider

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# ------------------------------------------------------------------
# Simulation trip (Kızılay → Sıhhiye → Ulus, Ankara)
# ------------------------------------------------------------------
TRIP = [
    Waypoint("kizilay", Coord(39.92077, 32.85411), "Kızılay Square"),
    Waypoint("sihhiye", Coord(39.92990, 32.85375), "Sıhhiye Bridge", note="Photo stop"),
    Waypoint("ulus",    Coord(39.94130, 32.85440), "Ulus Square"),
]


def simulated_track(stops: List[Waypoint], points_per_leg: int = 12) -> List[Coord]:
    """Straight-line positions from each stop to the next."""
    track = [stops[0].coord] * 3   # linger at the first stop
    for a, b in zip(stops, stops[1:]):
        for i in range(1, points_per_leg + 1):
            t = i / points_per_leg
            track.append(Coord(
                a.coord.lat + t * (b.coord.lat - a.coord.lat),
                a.coord.lon + t * (b.coord.lon - a.coord.lon),
            ))
    return track


def print_state(state: NavigationState) -> None:
    line = f"  #{state.revision:<3} [{state.status.name}] waypoint {min(state.current_waypoint_index + 1, len(state.waypoints))}/{len(state.waypoints)}"
    detail = None
    if state.current_route is not None:
        primary, detail = split_instruction(state.current_instruction)
        line += (
            f" | {format_distance(state.distance_to_destination)}"
            f" {format_time(state.time_to_destination)}"
            f" | {primary}"
        )
    if not state.is_on_route:
        line += " | off route"
    if state.error_message:
        line += f" | {state.error_message}"
    print(line)
    if detail:
        print(f"        {detail}")


async def run(args: argparse.Namespace) -> NavigationState:
    config = NavConfig(
        transport_type=TransportType.WALKING if args.walking else TransportType.AUTOMOBILE,
        osrm_base_url=args.osrm_url or NavConfig.osrm_base_url,
        log_dir=args.log_dir,
    )
    provider = OSRMRouteProvider(config) if args.osrm_url else StraightLineRouteProvider(config)
    stream = ReplayLocationStream(simulated_track(TRIP), interval_s=args.interval)

    session = NavigationSession(provider, stream, config)
    session.add_listener(print_state)
    NavLogger(config).attach(session)

    session.start(TRIP, start_index=0)
    last = session.state
    async for state in session.subscribe():
        last = state
        # Replay exhausted before the last stop was reached
        if state.location_stale and state.error_message == "Location stream ended":
            session.stop()
    return last


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay a simulated trip through the navigation engine.")
    parser.add_argument("--osrm-url", default=None, help="OSRM server; straight-line routes if omitted")
    parser.add_argument("--walking", action="store_true", help="route for walking instead of driving")
    parser.add_argument("--interval", type=float, default=0.05, help="seconds between simulated fixes")
    parser.add_argument("--log-dir", default="logs", help="directory for route and journal files")
    args = parser.parse_args()

    print("\n--- GPS Loop Active ---")
    final = asyncio.run(run(args))
    print("\n--- Session complete ---")
    print(f"    Final status: {final.status.name}")
    if final.leg_routes:
        print(f"    Planned trip: {format_distance(final.trip_distance_m)}, {format_time(final.trip_duration_s)}")
    print(f"    Log files written to: {args.log_dir}/")


if __name__ == "__main__":
    main()
