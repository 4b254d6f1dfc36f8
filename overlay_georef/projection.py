#!/usr/bin/env python3
"""
Geographic <-> planar conversion on the spherical Web-Mercator plane.

Converts WGS84 latitude/longitude (EPSG:4326) to and from Web-Mercator
meters (EPSG:3857) via pyproj. This is the projection used by slippy-map
tile sets, so distances and angles computed in the plane agree locally with
what the user sees on the base map.

Coordinate System Convention:
    - x axis: easting in meters (positive = East)
    - y axis: northing in meters (positive = North)
    - (0, 0) at lat 0, lng 0

Latitude Clamping:
    Web-Mercator is undefined at the poles. Latitudes beyond
    +/-MAX_MERCATOR_LATITUDE are clamped before projecting, the same way
    slippy-map CRSs do it. Round-trip accuracy holds inside that band.
"""

import logging
import math
from functools import lru_cache

from pyproj import Transformer

from overlay_georef.errors import InvalidCoordinate
from overlay_georef.geo_point import GeoPoint, PlanarPoint
from overlay_georef.types import Degrees, Meters

logger = logging.getLogger(__name__)

# Sphere radius used by EPSG:3857
EARTH_RADIUS_M = Meters(6378137.0)

# Latitude at which the Web-Mercator square world ends
MAX_MERCATOR_LATITUDE = Degrees(85.0511287798)

# Planar x of the antimeridian; the square world spans [-MAX_MERCATOR_X, MAX_MERCATOR_X]
MAX_MERCATOR_X = Meters(math.pi * EARTH_RADIUS_M)

GEOGRAPHIC_CRS = "EPSG:4326"
WEB_MERCATOR_CRS = "EPSG:3857"


class WebMercatorProjection:
    """
    Bidirectional GeoPoint <-> PlanarPoint converter.

    Holds a pair of pyproj transformers; build it once and reuse it, or use
    ``get_default_projection()``.
    """

    def __init__(self, planar_crs: str = WEB_MERCATOR_CRS):
        """
        Initialize the projection.

        Args:
            planar_crs: Target planar CRS (default Web-Mercator, EPSG:3857)
        """
        self.planar_crs = planar_crs
        self._to_planar = Transformer.from_crs(GEOGRAPHIC_CRS, planar_crs, always_xy=True)
        self._to_geo = Transformer.from_crs(planar_crs, GEOGRAPHIC_CRS, always_xy=True)

    def project(self, point: GeoPoint) -> PlanarPoint:
        """
        Convert a geographic coordinate to planar meters.

        Args:
            point: Latitude/longitude in decimal degrees

        Returns:
            PlanarPoint in meters

        Raises:
            InvalidCoordinate: If lat/lng are non-finite or out of range
        """
        if not point.is_valid:
            raise InvalidCoordinate(
                f"Cannot project ({point.lat}, {point.lng}): latitude must be finite in "
                f"[-90, 90] and longitude finite in [-180, 180]"
            )

        lat = max(-MAX_MERCATOR_LATITUDE, min(MAX_MERCATOR_LATITUDE, point.lat))
        if lat != point.lat:
            logger.debug(f"Clamped latitude {point.lat} to {lat} for Web-Mercator")

        x, y = self._to_planar.transform(point.lng, lat)
        planar = PlanarPoint(float(x), float(y))
        if not planar.is_finite:
            raise InvalidCoordinate(f"Projection of ({point.lat}, {point.lng}) is not finite")
        return planar

    def unproject(self, point: PlanarPoint) -> GeoPoint:
        """
        Convert planar meters back to a geographic coordinate.

        Args:
            point: Easting/northing in meters

        Returns:
            GeoPoint in decimal degrees

        Raises:
            InvalidCoordinate: If the planar point or its inverse is non-finite
        """
        if not point.is_finite:
            raise InvalidCoordinate(f"Cannot unproject non-finite point ({point.x}, {point.y})")

        lng, lat = self._to_geo.transform(point.x, point.y)
        geo = GeoPoint(float(lat), float(lng))
        if not (math.isfinite(geo.lat) and math.isfinite(geo.lng)):
            raise InvalidCoordinate(f"Inverse projection of ({point.x}, {point.y}) is not finite")
        return geo

    def project_many(self, points: list[GeoPoint]) -> list[PlanarPoint]:
        """Project a list of geographic points, preserving order."""
        return [self.project(p) for p in points]

    def unproject_many(self, points: list[PlanarPoint]) -> list[GeoPoint]:
        """Unproject a list of planar points, preserving order."""
        return [self.unproject(p) for p in points]


@lru_cache(maxsize=1)
def get_default_projection() -> WebMercatorProjection:
    """Return a shared Web-Mercator projection instance."""
    return WebMercatorProjection()


def project(point: GeoPoint) -> PlanarPoint:
    """Project with the shared Web-Mercator instance."""
    return get_default_projection().project(point)


def unproject(point: PlanarPoint) -> GeoPoint:
    """Unproject with the shared Web-Mercator instance."""
    return get_default_projection().unproject(point)
