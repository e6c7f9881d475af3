# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules except models.

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .models import Coord


EARTH_RADIUS_M = 6_371_000.0

# Metres per degree of latitude on the haversine sphere.
_M_PER_DEG = EARTH_RADIUS_M * math.pi / 180.0

_COMPASS_POINTS = (
    "north", "northeast", "east", "southeast",
    "south", "southwest", "west", "northwest",
)


# ---------------------------------------------------------------------------
# Point-to-point
# ---------------------------------------------------------------------------

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(a: Coord, b: Coord) -> float:
    """haversine_distance() for two Coord values."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def compass_direction(bearing: float) -> str:
    """Eight-point compass name for a bearing in degrees."""
    return _COMPASS_POINTS[int(((bearing % 360) + 22.5) // 45) % 8]


# ---------------------------------------------------------------------------
# Point-to-path
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClosestPoint:
    """Result of closest_point_on_path()."""
    index: int          # start vertex of the closest segment
    point: Coord        # closest point on that segment
    distance_m: float   # from the query position to `point`


def point_to_segment_distance(
    position: Coord,
    start: Coord,
    end: Coord,
) -> Tuple[Coord, float]:
    """
    Closest point on the segment start→end and its distance from position.

    The projection is done in a local equirectangular frame anchored at
    `start`; the returned distance is the haversine distance to the
    projected point. Zero-length segments collapse to `start`.

    Returns:
        (closest_point, distance_m)
    """
    k_lon = _M_PER_DEG * math.cos(math.radians(start.lat))
    bx = (end.lon - start.lon) * k_lon
    by = (end.lat - start.lat) * _M_PER_DEG
    seg_len_sq = bx * bx + by * by

    if seg_len_sq == 0.0:
        return start, distance_between(position, start)

    px = (position.lon - start.lon) * k_lon
    py = (position.lat - start.lat) * _M_PER_DEG
    t = max(0.0, min(1.0, (px * bx + py * by) / seg_len_sq))

    if t == 0.0:
        closest = start
    elif t == 1.0:
        closest = end
    else:
        closest = Coord(
            start.lat + t * (end.lat - start.lat),
            start.lon + t * (end.lon - start.lon),
        )
    return closest, distance_between(position, closest)


def closest_point_on_path(position: Coord, path: Sequence[Coord]) -> Optional[ClosestPoint]:
    """
    Find the path segment nearest to position.

    Ties go to the earliest segment. A single-point path returns that
    point; an empty path returns None.
    """
    if not path:
        return None
    if len(path) == 1:
        return ClosestPoint(0, path[0], distance_between(position, path[0]))

    best: Optional[ClosestPoint] = None
    for i in range(len(path) - 1):
        point, dist = point_to_segment_distance(position, path[i], path[i + 1])
        if best is None or dist < best.distance_m:
            best = ClosestPoint(i, point, dist)
    return best


def distance_along_path(path: Sequence[Coord], upto_index: int) -> float:
    """Cumulative great-circle distance from path[0] to path[upto_index]."""
    end = min(upto_index, len(path) - 1)
    total = 0.0
    for i in range(end):
        total += distance_between(path[i], path[i + 1])
    return total


def path_length(path: Sequence[Coord]) -> float:
    return distance_along_path(path, len(path) - 1)


def traveled_distance(path: Sequence[Coord], closest: ClosestPoint) -> float:
    """Along-path distance from the start to a closest-point result."""
    if not path:
        return 0.0
    return distance_along_path(path, closest.index) + distance_between(
        path[closest.index], closest.point
    )


def traveled_prefix(path: Sequence[Coord], position: Coord) -> Optional[Tuple[Coord, ...]]:
    """
    Sub-path from the path start up to the point closest to position.

    Returns None when the closest segment is the first one (no progress yet).
    """
    closest = closest_point_on_path(position, path)
    if closest is None or closest.index == 0:
        return None

    prefix = tuple(path[:closest.index + 1])
    if closest.point != prefix[-1]:
        prefix += (closest.point,)
    return prefix
