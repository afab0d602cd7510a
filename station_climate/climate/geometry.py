"""
Geometry of the ring search: distances, quadrants and search polygons.

All functions are pure. Points are ``GeoPoint`` instances; polygons are lists
of ``(lat, lon)`` tuples.
"""

import json
import math
from enum import Enum

from station_climate.models import GeoPoint

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.32

Polygon = list[tuple[float, float]]


class Quadrant(Enum):
    """90 degree sector around the target, valued by its (lat, lon) signs."""

    SOUTHWEST = (-1, -1)
    SOUTHEAST = (-1, 1)
    NORTHEAST = (1, 1)
    NORTHWEST = (1, -1)

    @property
    def lat_sign(self) -> int:
        return self.value[0]

    @property
    def lon_sign(self) -> int:
        return self.value[1]

    @property
    def start_angle(self) -> float:
        """Bearing in degrees where the sector starts; sectors sweep +90."""
        return _START_ANGLES[self]


_START_ANGLES = {
    Quadrant.NORTHEAST: 0.0,
    Quadrant.SOUTHEAST: 90.0,
    Quadrant.SOUTHWEST: 180.0,
    Quadrant.NORTHWEST: 270.0,
}


def is_diagonal(first: Quadrant, second: Quadrant) -> bool:
    """True for opposite corners (NE/SW, NW/SE), which share neither axis."""
    return first.lat_sign != second.lat_sign and first.lon_sign != second.lon_sign


def classify_quadrant(center: GeoPoint, point: GeoPoint) -> Quadrant:
    """
    Quadrant of ``point`` seen from ``center``.

    Ties resolve toward south and west, so the center itself is SOUTHWEST.
    """
    if point.lat <= center.lat and point.lon <= center.lon:
        return Quadrant.SOUTHWEST
    if point.lat <= center.lat and point.lon >= center.lon:
        return Quadrant.SOUTHEAST
    if point.lon >= center.lon:
        return Quadrant.NORTHEAST
    return Quadrant.NORTHWEST


def surface_distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine great-circle distance in km."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Distance in km, combining the surface distance with the height difference
    when both points carry an elevation.
    """
    surface = surface_distance_km(a, b)
    if a.elevation is None or b.elevation is None:
        return surface
    height_km = (b.elevation - a.elevation) / 1000
    return math.sqrt(surface**2 + height_km**2)


def lat_plus_km(lat: float, delta_km: float) -> float:
    return lat + delta_km / KM_PER_DEGREE_LAT


def lon_plus_km(lon: float, lat: float, delta_km: float) -> float:
    return lon + delta_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(lat)))


def destination_point(
    origin: GeoPoint, distance: float, bearing_deg: float
) -> tuple[float, float]:
    """Equirectangular projection of ``distance`` km along ``bearing_deg``."""
    bearing = math.radians(bearing_deg)
    lat = lat_plus_km(origin.lat, math.cos(bearing) * distance)
    lon = lon_plus_km(origin.lon, origin.lat, math.sin(bearing) * distance)
    return lat, lon


def annular_sector(
    center: GeoPoint,
    outer_radius_km: float,
    quadrant: Quadrant,
    ring_width_km: float = 20.0,
    arc_points: int = 5,
) -> Polygon:
    """
    Polygon approximating the quadrant's ring slice between
    ``outer_radius_km - ring_width_km`` and ``outer_radius_km``.

    The outer arc is walked forward, then the inner arc backward, which
    closes the ring.
    """
    inner_radius_km = outer_radius_km - ring_width_km
    start = quadrant.start_angle
    bearings = [start + (i / arc_points) * 90.0 for i in range(arc_points + 1)]

    outer = [destination_point(center, outer_radius_km, b) for b in bearings]
    inner = [destination_point(center, inner_radius_km, b) for b in reversed(bearings)]
    return outer + inner


def circle(center: GeoPoint, radius_km: float, points: int = 20) -> Polygon:
    """Regular polygon with ``points`` vertices around ``center``."""
    return [
        destination_point(center, radius_km, math.degrees((i / points) * 2 * math.pi))
        for i in range(points)
    ]


def format_polygons(polygons: list[Polygon], precision: int = 4) -> str:
    """
    Serialize polygons for the ``inside`` query parameter.

    Coordinates are rounded to ``precision`` decimals, the most the remote
    API accepts.
    """
    payload = [
        {
            "type": "polygon",
            "pos": [
                {"lat": round(lat, precision), "lon": round(lon, precision)}
                for lat, lon in polygon
            ],
        }
        for polygon in polygons
    ]
    return json.dumps(payload, separators=(",", ":"))
