"""
Geographic footprint of an overlay image.

AnchorCorners is the single source of truth for where an image sits on the
map. The solver may produce a rotated or sheared quadrilateral; corner
dragging always produces an axis-aligned rectangle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from overlay_georef.errors import DegenerateConfiguration, InvalidCoordinate
from overlay_georef.geo_point import GeoPoint
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.projection import MAX_MERCATOR_X, WebMercatorProjection, get_default_projection
from overlay_georef.transform import PlanarTransform
from overlay_georef.validation import validate_geo_point, validate_image_dimension

logger = logging.getLogger(__name__)

# Area (in square degrees) below which a footprint counts as collapsed
MIN_FOOTPRINT_AREA = 1e-14

# Wider footprints cannot be told apart from ones wrapped across the antimeridian
MAX_LONGITUDE_SPAN = 180.0

CORNER_NAMES = ("top_left", "top_right", "bottom_left", "bottom_right")


@dataclass(frozen=True)
class GeoBounds:
    """Axis-aligned latitude/longitude box.

    Attributes:
        south: Minimum latitude.
        west: Minimum longitude.
        north: Maximum latitude.
        east: Maximum longitude.
    """

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, *points: GeoPoint) -> GeoBounds:
        """Smallest box containing all the points (order does not matter)."""
        if not points:
            raise ValueError("At least one point is required")
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

    @property
    def center(self) -> GeoPoint:
        return GeoPoint((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    @property
    def height_degrees(self) -> float:
        return self.north - self.south

    @property
    def width_degrees(self) -> float:
        return self.east - self.west

    def contains(self, point: GeoPoint, tolerance: float = 0.0) -> bool:
        return (
            self.south - tolerance <= point.lat <= self.north + tolerance
            and self.west - tolerance <= point.lng <= self.east + tolerance
        )

    def to_dict(self) -> dict[str, float]:
        return {"south": self.south, "west": self.west, "north": self.north, "east": self.east}


def _cross(o: GeoPoint, p: GeoPoint, q: GeoPoint) -> float:
    """z component of (p - o) x (q - o) with lng as x and lat as y."""
    return (p.lng - o.lng) * (q.lat - o.lat) - (p.lat - o.lat) * (q.lng - o.lng)


def _segments_cross(p1: GeoPoint, p2: GeoPoint, q1: GeoPoint, q2: GeoPoint) -> bool:
    """True when the open segments p1-p2 and q1-q2 properly intersect."""
    d1 = _cross(q1, q2, p1)
    d2 = _cross(q1, q2, p2)
    d3 = _cross(p1, p2, q1)
    d4 = _cross(p1, p2, q2)
    return ((d1 > 0) != (d2 > 0)) and ((d3 > 0) != (d4 > 0)) and 0 not in (d1, d2, d3, d4)


@dataclass(frozen=True)
class AnchorCorners:
    """The four geographic corners of a placed overlay image.

    Corners are named after the image: ``top_left`` is where pixel (0, 0)
    lands, ``bottom_right`` where pixel (W, H) lands. Instances are never
    mutated; every edit builds a new one.
    """

    top_left: GeoPoint
    top_right: GeoPoint
    bottom_left: GeoPoint
    bottom_right: GeoPoint

    @classmethod
    def from_bounds(cls, bounds: GeoBounds) -> AnchorCorners:
        """North-up rectangle filling ``bounds``."""
        return cls(
            top_left=GeoPoint(bounds.north, bounds.west),
            top_right=GeoPoint(bounds.north, bounds.east),
            bottom_left=GeoPoint(bounds.south, bounds.west),
            bottom_right=GeoPoint(bounds.south, bounds.east),
        )

    @property
    def corners(self) -> tuple[GeoPoint, GeoPoint, GeoPoint, GeoPoint]:
        """Corners in (top_left, top_right, bottom_left, bottom_right) order."""
        return (self.top_left, self.top_right, self.bottom_left, self.bottom_right)

    def ring(self) -> tuple[GeoPoint, GeoPoint, GeoPoint, GeoPoint]:
        """Corners in perimeter order: top_left, top_right, bottom_right, bottom_left."""
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def center(self) -> GeoPoint:
        """Midpoint of top_left and bottom_right.

        Not the centroid of all four corners: the editing model treats the
        footprint as a rectangle spanned by that diagonal.
        """
        return GeoPoint(
            (self.top_left.lat + self.bottom_right.lat) / 2.0,
            (self.top_left.lng + self.bottom_right.lng) / 2.0,
        )

    def bounds(self) -> GeoBounds:
        """Axis-aligned box spanning all four corners."""
        return GeoBounds.from_points(*self.corners)

    def translated(self, dlat: float, dlng: float) -> AnchorCorners:
        """Shift every corner by the same (dlat, dlng) in degrees."""
        return AnchorCorners(*(corner.translated(dlat, dlng) for corner in self.corners))

    def is_axis_aligned(self, tolerance: float = 1e-12) -> bool:
        """True when the corners form a north-up rectangle."""
        return (
            abs(self.top_left.lat - self.top_right.lat) <= tolerance
            and abs(self.bottom_left.lat - self.bottom_right.lat) <= tolerance
            and abs(self.top_left.lng - self.bottom_left.lng) <= tolerance
            and abs(self.top_right.lng - self.bottom_right.lng) <= tolerance
        )

    def area_square_degrees(self) -> float:
        """Absolute shoelace area of the perimeter ring, in square degrees."""
        ring = self.ring()
        total = 0.0
        for i, p in enumerate(ring):
            q = ring[(i + 1) % len(ring)]
            total += p.lng * q.lat - q.lng * p.lat
        return abs(total) / 2.0

    def is_simple(self) -> bool:
        """True when the perimeter does not cross itself and encloses an area."""
        tl, tr, br, bl = self.ring()
        if _segments_cross(tl, tr, br, bl) or _segments_cross(tr, br, bl, tl):
            return False
        return self.area_square_degrees() > MIN_FOOTPRINT_AREA

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {name: getattr(self, name).to_dict() for name in CORNER_NAMES}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnchorCorners:
        """Create from a mapping of the four corner names to lat/lng mappings.

        camelCase keys (``topLeft``...) are accepted as well.

        Raises:
            KeyError: If a corner is missing
        """
        values = {}
        for name in CORNER_NAMES:
            head, tail = name.split("_")
            camel = head + tail.capitalize()
            values[name] = GeoPoint.from_dict(data[name] if name in data else data[camel])
        return cls(**values)


def validate_anchor_corners(corners: AnchorCorners) -> None:
    """Check a footprint before it is persisted.

    Raises:
        InvalidCoordinate: If any corner is non-finite or out of range, or the
            footprint spans more than 180 degrees of longitude
        DegenerateConfiguration: If the footprint has no area or crosses itself
    """
    for name, corner in zip(CORNER_NAMES, corners.corners):
        validate_geo_point(corner, f"Corner {name}")

    span = corners.bounds().width_degrees
    if span > MAX_LONGITUDE_SPAN:
        raise InvalidCoordinate(
            f"Overlay footprint spans {span:.6f} degrees of longitude "
            f"(maximum {MAX_LONGITUDE_SPAN}); it likely crosses the antimeridian"
        )

    if not corners.is_simple():
        raise DegenerateConfiguration(
            f"Overlay footprint is degenerate (area {corners.area_square_degrees():.3e} "
            f"square degrees) or self-intersecting"
        )


def derive_anchors(
    transform: PlanarTransform,
    image_width: int,
    image_height: int,
    projection: Optional[WebMercatorProjection] = None,
) -> AnchorCorners:
    """Place an image of ``image_width`` x ``image_height`` pixels on the map.

    Maps the pixel corners (0,0), (W,0), (0,H), (W,H) through the transform
    and unprojects the planar results.

    Raises:
        InvalidCoordinate: If the dimensions are invalid, a corner cannot be
            unprojected, or the footprint crosses the antimeridian
    """
    width = validate_image_dimension(image_width, "image_width")
    height = validate_image_dimension(image_height, "image_height")
    proj = projection if projection is not None else get_default_projection()

    pixel_corners = [
        PixelPoint(0.0, 0.0),
        PixelPoint(float(width), 0.0),
        PixelPoint(0.0, float(height)),
        PixelPoint(float(width), float(height)),
    ]
    planar = transform.apply_many(pixel_corners)
    if not all(p.is_finite for p in planar):
        raise InvalidCoordinate("Transform maps an image corner to a non-finite position")
    # pyproj wraps x past the antimeridian back to the other side of the world
    for name, corner in zip(CORNER_NAMES, planar):
        if abs(corner.x) > MAX_MERCATOR_X:
            raise InvalidCoordinate(
                f"Corner {name} lands at planar x={corner.x:.2f} m, beyond the antimeridian "
                f"(|x| <= {MAX_MERCATOR_X:.2f} m)"
            )

    anchors = AnchorCorners(*proj.unproject_many(planar))
    span = anchors.bounds().width_degrees
    if span > MAX_LONGITUDE_SPAN:
        raise InvalidCoordinate(
            f"Derived footprint spans {span:.6f} degrees of longitude; "
            f"it cannot be represented inside [-180, 180]"
        )
    logger.debug(f"Derived anchors for {width}x{height} image: {anchors.to_dict()}")
    return anchors
