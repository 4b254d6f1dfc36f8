"""
Control point validation module.

Validation functions for the reference point pairs a user clicks before a
transform is fitted. Checks numeric sanity, geographic ranges, image bounds
and point spacing. The spacing thresholds are heuristics that keep the
solver numerically stable, not exact degeneracy tests.
"""

from __future__ import annotations

import logging
import math
import numbers
from typing import TYPE_CHECKING, Any, Optional, Sequence

from overlay_georef.config import EngineConfig, resolve_config
from overlay_georef.errors import (
    InvalidCoordinate,
    PointsTooClose,
    WrongPointCount,
)
from overlay_georef.geo_point import (
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
    GeoPoint,
)
from overlay_georef.pixel_point import PixelPoint

if TYPE_CHECKING:
    from overlay_georef.control_points import ControlPoint

logger = logging.getLogger(__name__)


MIN_POINT_COUNT = 2
MAX_POINT_COUNT = 4
MAX_IMAGE_DIMENSION = 100000  # up to 100 megapixels per side is plenty for scans


def _is_valid_finite_number(value: Any) -> bool:
    """Check if a value is a valid finite number (int, float, or numpy numeric).

    Args:
        value: Value to check

    Returns:
        True if value is a valid finite number, False otherwise
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Number):
        return False

    if isinstance(value, complex):
        return False

    try:
        if math.isnan(value) or math.isinf(value):
            return False
    except (TypeError, ValueError):
        return False

    return True


def _validate_numeric_field(
    value: Any,
    field_name: str,
    description: str,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> None:
    """Validate a numeric field with optional range checking.

    Raises:
        InvalidCoordinate: If value is not a finite number inside the range
    """
    if not _is_valid_finite_number(value):
        if isinstance(value, numbers.Number) and not isinstance(value, bool):
            raise InvalidCoordinate(
                f"{description}: {field_name} must be a finite number, "
                f"got {value} (NaN and Infinity are not allowed)"
            )
        raise InvalidCoordinate(
            f"{description}: {field_name} must be a number, got {type(value).__name__}"
        )

    if min_value is not None and max_value is not None:
        if value < min_value or value > max_value:
            raise InvalidCoordinate(
                f"{description}: {field_name} {value} outside valid range "
                f"[{min_value}, {max_value}]"
            )


def validate_geo_point(point: GeoPoint, description: str = "point") -> None:
    """Validate the latitude and longitude of a geographic point.

    Raises:
        InvalidCoordinate: If either component is non-finite or out of range
    """
    _validate_numeric_field(point.lat, "latitude", description, MIN_LATITUDE, MAX_LATITUDE)
    _validate_numeric_field(point.lng, "longitude", description, MIN_LONGITUDE, MAX_LONGITUDE)


def validate_pixel_point(
    point: PixelPoint,
    description: str = "point",
    image_width: Optional[int] = None,
    image_height: Optional[int] = None,
) -> None:
    """Validate pixel coordinates, optionally against image bounds.

    Pixel points lie in [0, width] x [0, height]; the far edges are included
    because image corners are legitimate reference points.

    Raises:
        InvalidCoordinate: If a component is non-finite, negative, or outside
            the image when its size is known
    """
    _validate_numeric_field(point.x, "x coordinate", description)
    _validate_numeric_field(point.y, "y coordinate", description)

    if point.x < 0 or point.y < 0:
        raise InvalidCoordinate(
            f"{description}: pixel ({point.x}, {point.y}) must be non-negative"
        )

    if image_width is not None and point.x > image_width:
        raise InvalidCoordinate(
            f"{description}: x coordinate {point.x} outside image width [0, {image_width}]"
        )

    if image_height is not None and point.y > image_height:
        raise InvalidCoordinate(
            f"{description}: y coordinate {point.y} outside image height [0, {image_height}]"
        )


def validate_image_dimension(dimension: Any, dimension_name: str) -> Optional[int]:
    """Validate and normalize an image dimension parameter.

    Args:
        dimension: The dimension value to validate (or None)
        dimension_name: Name for error messages ('image_width' or 'image_height')

    Returns:
        Validated dimension as int, or None if not provided

    Raises:
        InvalidCoordinate: If dimension is invalid
    """
    if dimension is None:
        return None

    if not _is_valid_finite_number(dimension):
        if isinstance(dimension, numbers.Number) and not isinstance(dimension, bool):
            raise InvalidCoordinate(
                f"{dimension_name} must be a finite positive integer, "
                f"got {dimension} (NaN and Infinity are not allowed)"
            )
        raise InvalidCoordinate(
            f"{dimension_name} must be a positive integer, got {type(dimension).__name__}"
        )

    dim_int = int(dimension)
    if dim_int != dimension:
        raise InvalidCoordinate(f"{dimension_name} must be a whole number, got {dimension}")

    if dim_int <= 0:
        raise InvalidCoordinate(f"{dimension_name} must be positive, got {dim_int}")

    if dim_int > MAX_IMAGE_DIMENSION:
        raise InvalidCoordinate(
            f"{dimension_name} {dim_int} exceeds maximum allowed value of {MAX_IMAGE_DIMENSION}"
        )

    return dim_int


def validate_point_count(count: int) -> None:
    """Require 2, 3 or 4 control points.

    Raises:
        WrongPointCount: If count is outside [2, 4]
    """
    if count < MIN_POINT_COUNT or count > MAX_POINT_COUNT:
        raise WrongPointCount(
            f"Expected between {MIN_POINT_COUNT} and {MAX_POINT_COUNT} control points, got {count}"
        )


def detect_close_points(
    points: Sequence[ControlPoint],
    min_pixel_separation: float,
    min_geo_separation: float,
) -> None:
    """Reject any pair of control points that sit too close together.

    Unlike a duplicate check, a pair fails if EITHER its pixel points or its
    geographic points are closer than the threshold: both sides feed the
    scale and rotation estimate.

    Args:
        points: Control points (must be pre-validated as finite)
        min_pixel_separation: Minimum pixel distance (pixels)
        min_geo_separation: Minimum lat/lng distance (degrees)

    Raises:
        PointsTooClose: On the first offending pair, in selection order
    """
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            first, second = points[i], points[j]

            pixel_distance = first.pixel.distance_to(second.pixel)
            if pixel_distance < min_pixel_separation:
                raise PointsTooClose(
                    f"Image points {first.id} and {second.id} are {pixel_distance:.2f} px apart "
                    f"(minimum {min_pixel_separation} px)"
                )

            geo_distance = first.geo.degree_distance_to(second.geo)
            if geo_distance < min_geo_separation:
                raise PointsTooClose(
                    f"Map points {first.id} and {second.id} are {geo_distance:.6f} degrees apart "
                    f"(minimum {min_geo_separation} degrees)"
                )


def validate_control_points(
    points: Sequence[ControlPoint],
    image_width: Optional[int] = None,
    image_height: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> None:
    """Validate a control point selection before fitting.

    Checks, in order: point count, numeric sanity and ranges of every point,
    then pairwise spacing. Finiteness is checked before spacing because a
    NaN distance never compares below a threshold.

    Args:
        points: Selected control points in click order
        image_width: Optional image width for pixel bounds checking
        image_height: Optional image height for pixel bounds checking
        config: Thresholds (default: get_default_config())

    Raises:
        WrongPointCount: If fewer than 2 or more than 4 points
        InvalidCoordinate: If any coordinate or image dimension is invalid
        PointsTooClose: If two pixel or two geographic points are too close
    """
    cfg = resolve_config(config)
    validated_width = validate_image_dimension(image_width, "image_width")
    validated_height = validate_image_dimension(image_height, "image_height")

    validate_point_count(len(points))

    if validated_width is None or validated_height is None:
        logger.debug("Image dimensions incomplete, pixel bounds validation is partial")

    for point in points:
        description = f"Control point {point.id}"
        validate_pixel_point(point.pixel, description, validated_width, validated_height)
        validate_geo_point(point.geo, description)

    detect_close_points(points, cfg.min_pixel_separation, cfg.min_geo_separation)

    logger.debug(f"Validated {len(points)} control points")
