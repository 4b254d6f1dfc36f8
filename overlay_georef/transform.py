"""
Planar affine transform from image pixels to Web-Mercator meters.

Coordinate Systems:
    - Image coordinates: (px, py) in pixels, origin at top-left, y down
    - Planar coordinates: (x, y) in meters on EPSG:3857, y up (north)

The six coefficients follow the usual affine layout:

    planar_x = a * px + b * py + e
    planar_y = c * px + d * py + f

or, as a homogeneous matrix:

    [x]   [a  b  e] [px]
    [y] = [c  d  f] [py]
    [1]   [0  0  1] [ 1]
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import numpy.typing as npt

from overlay_georef.errors import DegenerateConfiguration
from overlay_georef.geo_point import PlanarPoint
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.types import Meters, Radians

COEFFICIENT_NAMES = ("a", "b", "c", "d", "e", "f")


@dataclass(frozen=True)
class PlanarTransform:
    """Immutable pixel -> planar meters affine transform.

    Attributes:
        a, b: planar x per pixel along image x and image y.
        c, d: planar y per pixel along image x and image y.
        e, f: planar translation in meters.
    """

    a: float
    b: float
    c: float
    d: float
    e: float
    f: float

    @classmethod
    def from_similarity(cls, scale: float, rotation: Radians, e: Meters, f: Meters) -> PlanarTransform:
        """Build a uniform-scale rotation plus translation.

        a = s*cos, b = -s*sin, c = s*sin, d = s*cos.

        Args:
            scale: Meters per pixel
            rotation: Counter-clockwise rotation of the pixel axes
            e, f: Translation in meters
        """
        cos_t = math.cos(rotation)
        sin_t = math.sin(rotation)
        return cls(
            a=scale * cos_t,
            b=-scale * sin_t,
            c=scale * sin_t,
            d=scale * cos_t,
            e=e,
            f=f,
        )

    def with_flipped_y(self, height: float) -> PlanarTransform:
        """Compose with the image flip ``y_up = height - y``.

        ``self`` is read as a transform on y-up image coordinates; the result
        takes raw y-down pixels. Applying it twice gives back ``self``.
        """
        return PlanarTransform(
            a=self.a,
            b=-self.b,
            c=self.c,
            d=-self.d,
            e=self.e + self.b * height,
            f=self.f + self.d * height,
        )

    @classmethod
    def from_matrix(cls, matrix: npt.ArrayLike) -> PlanarTransform:
        """Create from a 2x3 or 3x3 affine matrix.

        Raises:
            ValueError: If the matrix shape is wrong
        """
        data = np.asarray(matrix, dtype=np.float64)
        if data.shape not in ((2, 3), (3, 3)):
            raise ValueError(f"Affine matrix must be 2x3 or 3x3, got shape {data.shape}")
        return cls(
            a=float(data[0, 0]),
            b=float(data[0, 1]),
            c=float(data[1, 0]),
            d=float(data[1, 1]),
            e=float(data[0, 2]),
            f=float(data[1, 2]),
        )

    @classmethod
    def identity(cls) -> PlanarTransform:
        return cls(1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

    def as_matrix(self) -> npt.NDArray[np.float64]:
        """Return the 3x3 homogeneous matrix."""
        return np.array(
            [[self.a, self.b, self.e], [self.c, self.d, self.f], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    @property
    def coefficients(self) -> tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)

    @property
    def determinant(self) -> float:
        """Determinant of the linear part. Negative means the image is mirrored."""
        return self.a * self.d - self.b * self.c

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.coefficients)

    @property
    def scale_x(self) -> float:
        """Meters per pixel along the image x axis."""
        return math.hypot(self.a, self.c)

    @property
    def scale_y(self) -> float:
        """Meters per pixel along the image y axis."""
        return math.hypot(self.b, self.d)

    @property
    def rotation_degrees(self) -> float:
        """Angle of the image x axis on the plane, counter-clockwise from east."""
        return math.degrees(math.atan2(self.c, self.a))

    def apply(self, point: PixelPoint) -> PlanarPoint:
        """Map an image pixel to planar meters."""
        return PlanarPoint(
            self.a * point.x + self.b * point.y + self.e,
            self.c * point.x + self.d * point.y + self.f,
        )

    def apply_many(self, points: Sequence[PixelPoint]) -> list[PlanarPoint]:
        """Map several pixels at once (vectorized)."""
        if not points:
            return []
        pixels = np.array([[p.x, p.y, 1.0] for p in points], dtype=np.float64)
        planar = pixels @ self.as_matrix()[:2].T
        return [PlanarPoint(float(x), float(y)) for x, y in planar]

    def inverse(self) -> PlanarTransform:
        """Return the planar -> pixel transform.

        Raises:
            DegenerateConfiguration: If the linear part is singular
        """
        det = self.determinant
        scale = max(abs(self.a), abs(self.b), abs(self.c), abs(self.d), 1e-300)
        if not math.isfinite(det) or abs(det) < 1e-15 * scale * scale:
            raise DegenerateConfiguration("Planar transform is singular and cannot be inverted")

        inv_a = self.d / det
        inv_b = -self.b / det
        inv_c = -self.c / det
        inv_d = self.a / det
        return PlanarTransform(
            a=inv_a,
            b=inv_b,
            c=inv_c,
            d=inv_d,
            e=-(inv_a * self.e + inv_b * self.f),
            f=-(inv_c * self.e + inv_d * self.f),
        )

    def invert_point(self, point: PlanarPoint) -> PixelPoint:
        """Map planar meters back to an image pixel."""
        inv = self.inverse()
        return PixelPoint(
            inv.a * point.x + inv.b * point.y + inv.e,
            inv.c * point.x + inv.d * point.y + inv.f,
        )

    def to_dict(self) -> dict[str, float]:
        return dict(zip(COEFFICIENT_NAMES, self.coefficients))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanarTransform:
        """Create from a mapping with keys a..f.

        Raises:
            KeyError: If a coefficient is missing
            ValueError: If a value cannot be converted to float
        """
        return cls(**{name: float(data[name]) for name in COEFFICIENT_NAMES})
