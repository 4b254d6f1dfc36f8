"""Pixel coordinate representation."""

from __future__ import annotations

import math
from dataclasses import dataclass

from overlay_georef.types import PixelsFloat


@dataclass(frozen=True)
class PixelPoint:
    """Pixel coordinates in an image or on the map viewport.

    Origin is the top-left corner and y grows downward.

    Attributes:
        x: Pixel x coordinate (column).
        y: Pixel y coordinate (row).
    """

    x: PixelsFloat
    y: PixelsFloat

    @property
    def is_finite(self) -> bool:
        """True when both components are finite numbers."""
        return math.isfinite(self.x) and math.isfinite(self.y)

    def distance_to(self, other: PixelPoint) -> float:
        """Euclidean distance to another pixel point, in pixels."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict) -> PixelPoint:
        """Create a PixelPoint from a ``{"x": ..., "y": ...}`` mapping.

        Raises:
            KeyError: If a key is missing.
            ValueError: If a value cannot be converted to float.
        """
        return cls(x=float(data["x"]), y=float(data["y"]))
