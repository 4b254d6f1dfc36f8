"""Reference point pairs selected by the user."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from overlay_georef.config import EngineConfig, resolve_config
from overlay_georef.errors import CapacityExceeded, GeoreferenceError
from overlay_georef.geo_point import GeoPoint
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.validation import validate_control_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlPoint:
    """One correspondence between an image pixel and a map location.

    Attributes:
        id: 1-based ordinal assigned when the point was added.
        pixel: Clicked position in the image.
        geo: Clicked position on the base map.
    """

    id: int
    pixel: PixelPoint
    geo: GeoPoint

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "pixel": self.pixel.to_dict(), "geo": self.geo.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_id: int = 0) -> ControlPoint:
        """Create a ControlPoint from a dictionary.

        Raises:
            KeyError: If 'pixel' or 'geo' is missing.
            ValueError: If the entry, 'pixel' or 'geo' is not a mapping, or a
                value cannot be converted.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Control point must be a mapping, got {type(data).__name__}")
        for key in ("pixel", "geo"):
            if key in data and not isinstance(data[key], dict):
                raise ValueError(f"'{key}' must be a mapping, got {type(data[key]).__name__}")

        try:
            return cls(
                id=int(data.get("id", default_id)),
                pixel=PixelPoint.from_dict(data["pixel"]),
                geo=GeoPoint.from_dict(data["geo"]),
            )
        except TypeError as e:
            raise ValueError(f"Control point has a non-numeric value: {e}") from e


class ControlPointSet:
    """Ordered, incrementally built selection of 2 to 4 control points.

    Points are appended as the user clicks. The set lives for one
    selection session: ``clear()`` it when the user restarts selection.

    Example:
        >>> points = ControlPointSet()
        >>> points.add(PixelPoint(0, 0), GeoPoint(40.4168, -3.7038))
        ControlPoint(id=1, ...)
        >>> points.add(PixelPoint(100, 100), GeoPoint(40.4268, -3.6938))
        ControlPoint(id=2, ...)
        >>> points.validate()
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = resolve_config(config)
        self._points: list[ControlPoint] = []

    @property
    def capacity(self) -> int:
        return self._config.max_control_points

    @property
    def is_full(self) -> bool:
        return len(self._points) >= self.capacity

    def add(self, pixel: PixelPoint, geo: GeoPoint) -> ControlPoint:
        """Append a new pair and return it with its 1-based id.

        Raises:
            CapacityExceeded: If the set already holds its maximum number of points
        """
        if self.is_full:
            raise CapacityExceeded(
                f"Control point set already holds {len(self._points)} points "
                f"(maximum {self.capacity})"
            )

        point = ControlPoint(id=len(self._points) + 1, pixel=pixel, geo=geo)
        self._points.append(point)
        logger.debug(
            f"Added control point {point.id}: pixel=({pixel.x:.1f}, {pixel.y:.1f}) "
            f"geo=({geo.lat:.6f}, {geo.lng:.6f})"
        )
        return point

    def remove_last(self) -> Optional[ControlPoint]:
        """Undo the most recent click. Returns the removed point, or None if empty."""
        if not self._points:
            return None
        return self._points.pop()

    def truncate(self, count: int) -> None:
        """Keep only the first ``count`` points (used when the user lowers the target count)."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        del self._points[count:]

    def clear(self) -> None:
        self._points.clear()

    def validate(self, image_width: Optional[int] = None, image_height: Optional[int] = None) -> None:
        """Check the selection before fitting.

        Raises:
            WrongPointCount, InvalidCoordinate, PointsTooClose: See
                ``validate_control_points``
        """
        validate_control_points(self._points, image_width, image_height, self._config)

    def is_valid(self, image_width: Optional[int] = None, image_height: Optional[int] = None) -> bool:
        """Boolean form of ``validate()``; logs the reason for a rejection."""
        try:
            self.validate(image_width, image_height)
        except GeoreferenceError as e:
            logger.info(f"Control points rejected: {e}")
            return False
        return True

    @property
    def points(self) -> tuple[ControlPoint, ...]:
        return tuple(self._points)

    @property
    def pixel_points(self) -> list[PixelPoint]:
        return [p.pixel for p in self._points]

    @property
    def geo_points(self) -> list[GeoPoint]:
        return [p.geo for p in self._points]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[ControlPoint]:
        return iter(self._points)

    def __getitem__(self, index: int) -> ControlPoint:
        return self._points[index]

    def __repr__(self) -> str:
        return f"ControlPointSet({len(self._points)}/{self.capacity} points)"

    def to_dict(self) -> dict[str, Any]:
        return {"control_points": [p.to_dict() for p in self._points]}

    @classmethod
    def from_pairs(
        cls,
        pairs: Sequence[tuple[PixelPoint, GeoPoint]],
        config: Optional[EngineConfig] = None,
    ) -> ControlPointSet:
        """Build a set by adding each (pixel, geo) pair in order.

        Raises:
            CapacityExceeded: If more pairs than the capacity are given
        """
        point_set = cls(config)
        for pixel, geo in pairs:
            point_set.add(pixel, geo)
        return point_set

    @classmethod
    def from_dict(cls, data: dict[str, Any], config: Optional[EngineConfig] = None) -> ControlPointSet:
        """Build a set from ``{"control_points": [{"pixel": ..., "geo": ...}, ...]}``.

        Ids in the input are ignored; points are renumbered in file order.

        Raises:
            KeyError: If required keys are missing
            ValueError: If the structure is invalid
            CapacityExceeded: If more points than the capacity are listed
        """
        if not isinstance(data, dict) or "control_points" not in data:
            raise ValueError("Expected a mapping with a 'control_points' list")

        entries = data["control_points"]
        if not isinstance(entries, list):
            raise ValueError(f"'control_points' must be a list, got {type(entries).__name__}")

        pairs = []
        for index, entry in enumerate(entries, start=1):
            try:
                point = ControlPoint.from_dict(entry, default_id=index)
            except ValueError as e:
                raise ValueError(f"Control point entry {index}: {e}") from e
            pairs.append((point.pixel, point.geo))
        return cls.from_pairs(pairs, config)
