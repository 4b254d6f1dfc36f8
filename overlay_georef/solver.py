"""
Transform fitting from control point pairs.

Geographic points are projected to Web-Mercator meters first, so scale and
rotation are estimated in a metrically consistent plane. The fitting method
is selected by the number of pairs:

    - 2 points: similarity (uniform scale, rotation, translation) through
      both points exactly.
    - 3 points: the 2-point similarity from the first pair, with half of the
      third point's residual added as translation. This is a damped
      correction, not an exact fit: a noisy third click should not re-rotate
      or re-scale the overlay.
    - 4 points: full affine least squares solved with Gaussian elimination
      and partial pivoting, allowing independent per-axis scale and shear.

For the similarity paths the image y axis is flipped to point up when the
image height is known (``EngineConfig.flip_y``), otherwise a north-up scan
would come out mirrored. The resulting PlanarTransform always takes raw
y-down pixel coordinates.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence, Union

import numpy as np
import numpy.typing as npt

from overlay_georef.config import EngineConfig, resolve_config
from overlay_georef.control_points import ControlPoint, ControlPointSet
from overlay_georef.errors import DegenerateConfiguration, WrongPointCount
from overlay_georef.geo_point import GeoPoint, PlanarPoint
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.projection import WebMercatorProjection, get_default_projection
from overlay_georef.transform import PlanarTransform
from overlay_georef.types import Meters, Radians
from overlay_georef.validation import validate_control_points

logger = logging.getLogger(__name__)

# Below this length a pixel or planar baseline is treated as zero
MIN_BASELINE = 1e-9

ControlPoints = Union[ControlPointSet, Sequence[ControlPoint]]


class FitStrategy(Enum):
    """Fitting method, selected by the number of control points."""

    TWO_POINT_SIMILARITY = "two_point_similarity"
    THREE_POINT_DAMPED = "three_point_damped"
    FOUR_POINT_AFFINE = "four_point_affine"

    @classmethod
    def for_point_count(cls, count: int) -> FitStrategy:
        """Return the strategy for ``count`` points.

        Raises:
            WrongPointCount: If count is not 2, 3 or 4
        """
        try:
            return _STRATEGY_BY_COUNT[count]
        except KeyError:
            raise WrongPointCount(
                f"Cannot fit a transform from {count} control points (need 2, 3 or 4)"
            ) from None


_STRATEGY_BY_COUNT = {
    2: FitStrategy.TWO_POINT_SIMILARITY,
    3: FitStrategy.THREE_POINT_DAMPED,
    4: FitStrategy.FOUR_POINT_AFFINE,
}


@dataclass(frozen=True)
class FitResult:
    """Result of a transform fit.

    Attributes:
        transform: Pixel -> planar meters transform.
        strategy: Method used for the fit.
        residuals_m: Distance in meters between each control point's
            projected map position and where the transform puts its pixel,
            in selection order. Zero for both points of a 2-point fit.
        flipped_y: Whether the similarity was estimated in a y-up frame.
    """

    transform: PlanarTransform
    strategy: FitStrategy
    residuals_m: tuple[Meters, ...] = field(default_factory=tuple)
    flipped_y: bool = False

    @property
    def rms_error_m(self) -> float:
        """Root mean square residual in meters."""
        if not self.residuals_m:
            return 0.0
        return math.sqrt(sum(r * r for r in self.residuals_m) / len(self.residuals_m))

    @property
    def max_error_m(self) -> float:
        return max(self.residuals_m, default=0.0)


def _similarity_from_pair(
    i1: PixelPoint,
    i2: PixelPoint,
    m1: PlanarPoint,
    m2: PlanarPoint,
    frame_height: Optional[float],
) -> PlanarTransform:
    """Similarity mapping pixel i1 -> m1 and i2 -> m2 exactly.

    When ``frame_height`` is given, the similarity is estimated on y-up
    pixels (height - y) and then composed with that flip.
    """
    if frame_height is not None:
        i1 = PixelPoint(i1.x, frame_height - i1.y)
        i2 = PixelPoint(i2.x, frame_height - i2.y)

    di_x, di_y = i2.x - i1.x, i2.y - i1.y
    dm_x, dm_y = m2.x - m1.x, m2.y - m1.y

    len_img = math.hypot(di_x, di_y)
    len_map = math.hypot(dm_x, dm_y)
    if len_img < MIN_BASELINE:
        raise DegenerateConfiguration("Image points coincide; cannot derive scale and rotation")
    if len_map < MIN_BASELINE:
        raise DegenerateConfiguration("Map points coincide; cannot derive scale and rotation")

    scale = len_map / len_img
    theta = Radians(math.atan2(dm_y, dm_x) - math.atan2(di_y, di_x))

    logger.debug(
        f"Similarity: scale={scale:.6f} m/px, rotation={math.degrees(theta):.3f} deg, "
        f"image baseline={len_img:.2f} px, map baseline={len_map:.2f} m"
    )

    linear = PlanarTransform.from_similarity(scale, theta, 0.0, 0.0)
    anchor = linear.apply(i1)
    frame_transform = PlanarTransform.from_similarity(scale, theta, m1.x - anchor.x, m1.y - anchor.y)

    if frame_height is None:
        return frame_transform
    return frame_transform.with_flipped_y(frame_height)


def _fit_two_point(
    pixels: Sequence[PixelPoint],
    planar: Sequence[PlanarPoint],
    frame_height: Optional[float],
    config: EngineConfig,
) -> PlanarTransform:
    return _similarity_from_pair(pixels[0], pixels[1], planar[0], planar[1], frame_height)


def _fit_three_point(
    pixels: Sequence[PixelPoint],
    planar: Sequence[PlanarPoint],
    frame_height: Optional[float],
    config: EngineConfig,
) -> PlanarTransform:
    base = _similarity_from_pair(pixels[0], pixels[1], planar[0], planar[1], frame_height)

    predicted = base.apply(pixels[2])
    offset_x = planar[2].x - predicted.x
    offset_y = planar[2].y - predicted.y
    damping = config.three_point_damping

    logger.debug(
        f"Third point residual ({offset_x:.3f}, {offset_y:.3f}) m, "
        f"applying {damping:.2f} of it as translation"
    )

    return PlanarTransform(
        a=base.a,
        b=base.b,
        c=base.c,
        d=base.d,
        e=base.e + offset_x * damping,
        f=base.f + offset_y * damping,
    )


def solve_gaussian(
    matrix: npt.ArrayLike, rhs: npt.ArrayLike, pivot_tolerance: float = 1e-10
) -> npt.NDArray[np.float64]:
    """Solve a square system ``matrix @ x = rhs`` by Gaussian elimination.

    Uses partial pivoting: at each column the row with the largest absolute
    entry is swapped into place. A pivot smaller than ``pivot_tolerance``
    times the largest absolute matrix entry is treated as zero.

    Args:
        matrix: n x n coefficient matrix
        rhs: right-hand side of length n
        pivot_tolerance: relative pivot threshold

    Returns:
        Solution vector of length n

    Raises:
        DegenerateConfiguration: If a pivot is (near) zero or the solution
            is not finite
        ValueError: If shapes do not match
    """
    a = np.array(matrix, dtype=np.float64)
    b = np.array(rhs, dtype=np.float64)
    n = a.shape[0]
    if a.shape != (n, n) or b.shape != (n,):
        raise ValueError(f"Expected an n x n matrix and length-n vector, got {a.shape} and {b.shape}")

    augmented = np.column_stack([a, b])
    magnitude = float(np.max(np.abs(a))) if a.size else 0.0
    threshold = pivot_tolerance * magnitude

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(augmented[col:, col])))
        pivot = augmented[pivot_row, col]
        if not math.isfinite(pivot) or abs(pivot) <= threshold:
            raise DegenerateConfiguration(
                f"Linear system is singular (pivot {pivot:.3e} in column {col}); "
                f"control points may be collinear or duplicated"
            )
        if pivot_row != col:
            augmented[[col, pivot_row]] = augmented[[pivot_row, col]]

        factors = augmented[col + 1:, col] / augmented[col, col]
        augmented[col + 1:, col:] -= np.outer(factors, augmented[col, col:])

    x = np.zeros(n, dtype=np.float64)
    for row in range(n - 1, -1, -1):
        x[row] = (augmented[row, n] - augmented[row, row + 1:n] @ x[row + 1:]) / augmented[row, row]

    if not np.all(np.isfinite(x)):
        raise DegenerateConfiguration("Linear system solution contains non-finite values")
    return x


def _fit_four_point(
    pixels: Sequence[PixelPoint],
    planar: Sequence[PlanarPoint],
    frame_height: Optional[float],
    config: EngineConfig,
) -> PlanarTransform:
    px = np.array([[p.x, p.y] for p in pixels], dtype=np.float64)
    mp = np.array([[p.x, p.y] for p in planar], dtype=np.float64)

    # Centre and scale pixels, centre targets: keeps the normal matrix well conditioned
    centroid = px.mean(axis=0)
    spread = float(np.mean(np.linalg.norm(px - centroid, axis=1)))
    if spread < MIN_BASELINE:
        raise DegenerateConfiguration("All image points coincide; cannot fit an affine transform")
    normalized = (px - centroid) / spread
    planar_mean = mp.mean(axis=0)
    targets = mp - planar_mean

    design = np.column_stack([normalized, np.ones(len(pixels))])
    normal = design.T @ design

    # planar x unknowns (a, b, e), then planar y unknowns (c, d, f)
    x_coeffs = solve_gaussian(normal, design.T @ targets[:, 0], config.pivot_tolerance)
    y_coeffs = solve_gaussian(normal, design.T @ targets[:, 1], config.pivot_tolerance)

    a, b = x_coeffs[0] / spread, x_coeffs[1] / spread
    c, d = y_coeffs[0] / spread, y_coeffs[1] / spread
    e = planar_mean[0] + x_coeffs[2] - a * centroid[0] - b * centroid[1]
    f = planar_mean[1] + y_coeffs[2] - c * centroid[0] - d * centroid[1]

    return PlanarTransform(float(a), float(b), float(c), float(d), float(e), float(f))


FitFunction = Callable[
    [Sequence[PixelPoint], Sequence[PlanarPoint], Optional[float], EngineConfig], PlanarTransform
]

_FITTERS: dict[FitStrategy, FitFunction] = {
    FitStrategy.TWO_POINT_SIMILARITY: _fit_two_point,
    FitStrategy.THREE_POINT_DAMPED: _fit_three_point,
    FitStrategy.FOUR_POINT_AFFINE: _fit_four_point,
}


class TransformSolver:
    """Fits a PlanarTransform to a validated control point selection.

    Example:
        >>> solver = TransformSolver()
        >>> result = solver.fit(points, image_width=2000, image_height=1500)
        >>> result.strategy
        <FitStrategy.TWO_POINT_SIMILARITY: 'two_point_similarity'>
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        projection: Optional[WebMercatorProjection] = None,
    ):
        self.config = resolve_config(config)
        self.projection = projection if projection is not None else get_default_projection()

    def fit(
        self,
        control_points: ControlPoints,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
    ) -> FitResult:
        """Validate the selection and fit a transform.

        Args:
            control_points: 2 to 4 control points in selection order
            image_width: Image width in pixels (for bounds checks)
            image_height: Image height in pixels (enables the y-up frame)

        Returns:
            FitResult with the transform and per-point residuals

        Raises:
            WrongPointCount, InvalidCoordinate, PointsTooClose: From validation
            DegenerateConfiguration: If the configuration cannot be solved
        """
        points = list(control_points)
        validate_control_points(points, image_width, image_height, self.config)

        strategy = FitStrategy.for_point_count(len(points))
        pixels = [p.pixel for p in points]
        planar = self.projection.project_many([p.geo for p in points])

        frame_height: Optional[float] = None
        if strategy is not FitStrategy.FOUR_POINT_AFFINE and self.config.flip_y:
            if image_height is None:
                logger.warning("Image height unknown, fitting without flipping the image y axis")
            else:
                frame_height = float(image_height)

        transform = _FITTERS[strategy](pixels, planar, frame_height, self.config)

        if not transform.is_finite:
            raise DegenerateConfiguration(
                f"Fit produced non-finite coefficients {transform.coefficients}"
            )

        residuals = tuple(
            transform.apply(pixel).distance_to(target) for pixel, target in zip(pixels, planar)
        )
        result = FitResult(
            transform=transform,
            strategy=strategy,
            residuals_m=residuals,
            flipped_y=frame_height is not None,
        )

        logger.info(
            f"Fitted {strategy.value} transform from {len(points)} points: "
            f"scale=({transform.scale_x:.4f}, {transform.scale_y:.4f}) m/px, "
            f"rotation={transform.rotation_degrees:.2f} deg, rms={result.rms_error_m:.3f} m"
        )
        return result

    def transform_points(self, transform: PlanarTransform, pixels: Sequence[PixelPoint]) -> list[GeoPoint]:
        """Map image pixels to geographic points through ``transform``.

        Used to preview where the selected image points land on the map.
        """
        return transform_points(transform, pixels, self.projection)


def fit_transform(
    control_points: ControlPoints,
    image_width: Optional[int] = None,
    image_height: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    projection: Optional[WebMercatorProjection] = None,
) -> PlanarTransform:
    """Fit a pixel -> planar meters transform to 2, 3 or 4 control points.

    Raises:
        WrongPointCount, InvalidCoordinate, PointsTooClose: From validation
        DegenerateConfiguration: If the configuration cannot be solved
    """
    return TransformSolver(config, projection).fit(control_points, image_width, image_height).transform


def transform_points(
    transform: PlanarTransform,
    pixels: Sequence[PixelPoint],
    projection: Optional[WebMercatorProjection] = None,
) -> list[GeoPoint]:
    """Map image pixels to geographic points through ``transform``."""
    proj = projection if projection is not None else get_default_projection()
    return proj.unproject_many(transform.apply_many(pixels))
