"""
Spherical-Earth coordinate helpers.

Great-circle distance, initial bearing and destination point on a sphere
of radius EARTH_RADIUS_M, plus a lat/lon bounding box used for coverage
queries.
"""

import math
from dataclasses import dataclass

from ..constants import EARTH_RADIUS_M, METERS_PER_DEGREE_LAT


@dataclass(frozen=True)
class Coordinate:
    """Geographic position in degrees."""

    latitude: float
    longitude: float

    def distance_to(self, other: "Coordinate", radius: float = EARTH_RADIUS_M) -> float:
        """Haversine distance in metres."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        dlat = lat2 - lat1
        dlon = math.radians(other.longitude - self.longitude)

        a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
        return 2 * radius * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    def bearing_to(self, other: "Coordinate") -> float:
        """Initial bearing in degrees, normalised to [0, 360)."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(other.latitude)
        dlon = math.radians(other.longitude - self.longitude)

        y = math.sin(dlon) * math.cos(lat2)
        x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
        return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0

    def destination(
        self, distance_m: float, bearing_deg: float, radius: float = EARTH_RADIUS_M
    ) -> "Coordinate":
        """Point reached after travelling distance_m along bearing_deg."""
        angular = distance_m / radius
        theta = math.radians(bearing_deg)
        lat1 = math.radians(self.latitude)
        lon1 = math.radians(self.longitude)

        lat2 = math.asin(
            math.sin(lat1) * math.cos(angular)
            + math.cos(lat1) * math.sin(angular) * math.cos(theta)
        )
        lon2 = lon1 + math.atan2(
            math.sin(theta) * math.sin(angular) * math.cos(lat1),
            math.cos(angular) - math.sin(lat1) * math.sin(lat2),
        )
        return Coordinate(math.degrees(lat2), math.degrees(lon2))

    def as_list(self) -> list[float]:
        return [self.latitude, self.longitude]


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lon rectangle (inclusive edges)."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_center(cls, center: Coordinate, radius_m: float) -> "BoundingBox":
        """Approximate box around center using local metres-per-degree scales."""
        lat_delta = radius_m / METERS_PER_DEGREE_LAT
        lon_scale = METERS_PER_DEGREE_LAT * math.cos(math.radians(center.latitude))
        lon_delta = radius_m / lon_scale if lon_scale > 0 else 180.0
        return cls(
            min_lat=center.latitude - lat_delta,
            max_lat=center.latitude + lat_delta,
            min_lon=center.longitude - lon_delta,
            max_lon=center.longitude + lon_delta,
        )

    def contains(self, coord: Coordinate) -> bool:
        return (
            self.min_lat <= coord.latitude <= self.max_lat
            and self.min_lon <= coord.longitude <= self.max_lon
        )
