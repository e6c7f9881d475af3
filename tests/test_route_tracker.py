import pytest

from tripnav.models import Coord, Maneuver, Route
from tripnav.route_tracker import (
    ARRIVING_FINAL,
    CONTINUE_TO_NEXT,
    estimate_progress,
    format_instruction,
    has_arrived,
    off_route_distance,
)

from conftest import A, B, C


def three_turn_route() -> Route:
    """A→C along the equator with a turn at B."""
    return Route(
        path=(A, B, C),
        distance_m=2000.0,
        duration_s=200.0,
        maneuvers=(
            Maneuver("Head out onto Main Street", 0.0, "depart"),
            Maneuver("Turn left onto  Side Road", 1000.0, "turn"),
            Maneuver("Arrive at destination", 2000.0, "arrive"),
        ),
    )


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("turn left onto Main Street", "Turn left to Main Street"),
        ("Continue  straight ", "Continue straight"),
        ("", ""),
    ],
)
def test_format_instruction(raw, expected):
    assert format_instruction(raw) == expected


def test_has_arrived_is_inclusive():
    near = Coord(0.0, 0.01 - 0.0002)  # ~22 m short of B
    assert has_arrived(near, B, 30.0)
    assert not has_arrived(near, B, 20.0)
    assert has_arrived(B, B, 0.0)


def test_off_route_distance():
    route = three_turn_route()
    assert off_route_distance(Coord(0.0, 0.005), route) == pytest.approx(0.0, abs=1e-6)
    assert off_route_distance(Coord(0.001, 0.005), route) == pytest.approx(111.2, abs=0.2)
    assert off_route_distance(A, Route(path=(), distance_m=0.0, duration_s=0.0)) is None


def test_start_state_without_position():
    estimate = estimate_progress(three_turn_route(), None)

    assert estimate.traveled_m == 0.0
    assert estimate.distance_remaining == 2000.0
    assert estimate.time_remaining == 200.0
    assert estimate.distance_to_next_turn == 1000.0
    assert estimate.current_instruction == "Head out to Main Street"
    assert estimate.next_instruction == "Turn left to Side Road"
    assert estimate.route_progress == 0.0
    assert estimate.off_route_m is None


def test_progress_past_first_turn():
    # ~1.5 legs of 1111.95 m along a path whose route distance is 2000 m
    estimate = estimate_progress(three_turn_route(), Coord(0.0, 0.015))

    assert estimate.traveled_m == pytest.approx(1667.9, abs=0.5)
    assert estimate.distance_remaining == pytest.approx(2000.0 - estimate.traveled_m)
    assert estimate.time_remaining == pytest.approx(estimate.distance_remaining / 10.0)
    assert estimate.current_instruction == "Turn left to Side Road"
    assert estimate.next_instruction == "Arrive at destination"
    assert estimate.distance_to_next_turn == pytest.approx(2000.0 - estimate.traveled_m)


def test_remaining_distance_never_increases_along_path():
    route = three_turn_route()
    previous = float("inf")
    for step in range(0, 21):
        estimate = estimate_progress(route, Coord(0.0, step * 0.001))
        assert estimate.distance_remaining <= previous
        assert 0.0 <= estimate.route_progress <= 1.0
        previous = estimate.distance_remaining


def test_remaining_distance_clamps_at_zero():
    route = three_turn_route()
    estimate = estimate_progress(route, C)
    # Path is longer than the reported route distance
    assert estimate.distance_remaining == 0.0
    assert estimate.time_remaining == 0.0
    assert estimate.route_progress == 1.0
    assert estimate.distance_to_next_turn == 0.0
    assert estimate.current_instruction == "Arrive at destination"


@pytest.mark.parametrize("final, expected", [(False, CONTINUE_TO_NEXT), (True, ARRIVING_FINAL)])
def test_fallback_next_instruction(final, expected):
    route = Route(
        path=(A, B),
        distance_m=1000.0,
        duration_s=100.0,
        maneuvers=(Maneuver("Head east", 0.0),),
    )
    estimate = estimate_progress(route, Coord(0.0, 0.005), is_final_leg=final)
    assert estimate.current_instruction == "Head east"
    assert estimate.next_instruction == expected


def test_zero_distance_route():
    route = Route(path=(A,), distance_m=0.0, duration_s=0.0)
    estimate = estimate_progress(route, A)

    assert estimate.distance_remaining == 0.0
    assert estimate.time_remaining == 0.0
    assert estimate.route_progress == 0.0
    assert estimate.current_instruction == ""
    assert estimate.next_instruction == CONTINUE_TO_NEXT
