"""Geographic and projected point representations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from overlay_georef.types import Degrees, Meters

MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 geographic coordinate in decimal degrees.

    Construction does not validate; use ``is_valid`` or
    ``overlay_georef.validation.validate_geo_point`` before trusting user input.

    Attributes:
        lat: Latitude in degrees, positive north.
        lng: Longitude in degrees, positive east.
    """

    lat: Degrees
    lng: Degrees

    @property
    def is_valid(self) -> bool:
        """True when finite and inside [-90, 90] x [-180, 180]."""
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and MIN_LATITUDE <= self.lat <= MAX_LATITUDE
            and MIN_LONGITUDE <= self.lng <= MAX_LONGITUDE
        )

    def degree_distance_to(self, other: GeoPoint) -> float:
        """Euclidean distance in lat/lng degree space.

        This is not a ground distance; it is the measure used for the
        control-point spacing heuristic.
        """
        return math.hypot(self.lat - other.lat, self.lng - other.lng)

    def translated(self, dlat: float, dlng: float) -> GeoPoint:
        """Return a new point shifted by (dlat, dlng) degrees."""
        return GeoPoint(self.lat + dlat, self.lng + dlng)

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeoPoint:
        """Create a GeoPoint from a mapping with ``lat`` and ``lng`` keys.

        ``lon`` and ``longitude``/``latitude`` spellings are accepted as well,
        since control point files are often exported by other tools.

        Raises:
            KeyError: If latitude or longitude is missing.
            ValueError: If a value cannot be converted to float.
        """
        lat = data["lat"] if "lat" in data else data["latitude"]
        if "lng" in data:
            lng = data["lng"]
        elif "lon" in data:
            lng = data["lon"]
        else:
            lng = data["longitude"]
        return cls(lat=float(lat), lng=float(lng))


@dataclass(frozen=True)
class PlanarPoint:
    """A point on the Web-Mercator plane, in meters.

    Always derived through ``Projection``; never user supplied.

    Attributes:
        x: Easting in meters.
        y: Northing in meters.
    """

    x: Meters
    y: Meters

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def distance_to(self, other: PlanarPoint) -> float:
        """Euclidean distance in meters."""
        return math.hypot(self.x - other.x, self.y - other.y)
