"""
Tests for transform fitting.

Fixtures build control points from a known planar transform: pixels are
mapped through it and unprojected to lat/lng, so a correct fit must give
the same coefficients back.
"""

import math

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from overlay_georef.config import EngineConfig
from overlay_georef.control_points import ControlPoint, ControlPointSet
from overlay_georef.errors import DegenerateConfiguration, PointsTooClose, WrongPointCount
from overlay_georef.geo_point import GeoPoint, PlanarPoint
from overlay_georef.overlay_geometry import derive_anchors
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.projection import project, unproject
from overlay_georef.solver import (
    FitResult,
    FitStrategy,
    TransformSolver,
    fit_transform,
    solve_gaussian,
    transform_points,
)
from overlay_georef.transform import PlanarTransform

ORIGIN = project(GeoPoint(40.4, -3.7))


def _points_from_transform(transform: PlanarTransform, pixels) -> ControlPointSet:
    return ControlPointSet.from_pairs([(p, unproject(transform.apply(p))) for p in pixels])


def _assert_same_transform(actual: PlanarTransform, expected: PlanarTransform) -> None:
    assert actual.a == pytest.approx(expected.a, rel=1e-6, abs=1e-6)
    assert actual.b == pytest.approx(expected.b, rel=1e-6, abs=1e-6)
    assert actual.c == pytest.approx(expected.c, rel=1e-6, abs=1e-6)
    assert actual.d == pytest.approx(expected.d, rel=1e-6, abs=1e-6)
    assert actual.e == pytest.approx(expected.e, abs=1e-3)
    assert actual.f == pytest.approx(expected.f, abs=1e-3)


class TestFitStrategy:
    @pytest.mark.parametrize(
        "count,strategy",
        [
            (2, FitStrategy.TWO_POINT_SIMILARITY),
            (3, FitStrategy.THREE_POINT_DAMPED),
            (4, FitStrategy.FOUR_POINT_AFFINE),
        ],
        ids=["two", "three", "four"],
    )
    def test_for_point_count(self, count: int, strategy: FitStrategy) -> None:
        assert FitStrategy.for_point_count(count) is strategy

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_unsupported_count(self, count: int) -> None:
        with pytest.raises(WrongPointCount):
            FitStrategy.for_point_count(count)


class TestTwoPointFit:
    WIDTH, HEIGHT = 1000, 800

    def test_recovers_flipped_similarity(self) -> None:
        known = PlanarTransform.from_similarity(2.0, 0.35, ORIGIN.x, ORIGIN.y).with_flipped_y(self.HEIGHT)
        points = _points_from_transform(known, [PixelPoint(100, 150), PixelPoint(700, 600)])

        result = TransformSolver().fit(points, self.WIDTH, self.HEIGHT)

        assert result.strategy is FitStrategy.TWO_POINT_SIMILARITY
        assert result.flipped_y
        _assert_same_transform(result.transform, known)
        assert result.max_error_m == pytest.approx(0.0, abs=1e-6)

    def test_north_up_scan_not_mirrored(self) -> None:
        """Moving down the image moves south on the map."""
        known = PlanarTransform.from_similarity(1.0, 0.0, ORIGIN.x, ORIGIN.y).with_flipped_y(self.HEIGHT)
        points = _points_from_transform(known, [PixelPoint(100, 100), PixelPoint(600, 500)])

        transform = fit_transform(points, self.WIDTH, self.HEIGHT)

        top = transform.apply(PixelPoint(0, 0))
        bottom = transform.apply(PixelPoint(0, self.HEIGHT))
        assert top.y > bottom.y
        assert transform.d < 0

    def test_without_flip_recovers_rotation(self) -> None:
        known = PlanarTransform.from_similarity(0.75, -1.2, ORIGIN.x, ORIGIN.y)
        points = _points_from_transform(known, [PixelPoint(50, 60), PixelPoint(900, 300)])

        result = TransformSolver(EngineConfig(flip_y=False)).fit(points, self.WIDTH, self.HEIGHT)

        assert not result.flipped_y
        _assert_same_transform(result.transform, known)

    def test_unknown_height_skips_flip(self, caplog) -> None:
        known = PlanarTransform.from_similarity(1.0, 0.5, ORIGIN.x, ORIGIN.y)
        points = _points_from_transform(known, [PixelPoint(50, 60), PixelPoint(900, 300)])

        with caplog.at_level("WARNING", logger="overlay_georef.solver"):
            result = TransformSolver().fit(points)

        assert not result.flipped_y
        _assert_same_transform(result.transform, known)
        assert "height unknown" in caplog.text

    def test_control_points_map_exactly(self) -> None:
        points = ControlPointSet.from_pairs(
            [
                (PixelPoint(0, 0), GeoPoint(40.4168, -3.7038)),
                (PixelPoint(100, 100), GeoPoint(40.4268, -3.6938)),
            ]
        )
        transform = fit_transform(points, 100, 100)

        landed = transform_points(transform, points.pixel_points)

        for got, expected in zip(landed, points.geo_points):
            assert got.lat == pytest.approx(expected.lat, abs=1e-9)
            assert got.lng == pytest.approx(expected.lng, abs=1e-9)


class TestThreePointFit:
    WIDTH, HEIGHT = 1000, 800

    def test_consistent_third_point_changes_nothing(self) -> None:
        known = PlanarTransform.from_similarity(1.5, 0.2, ORIGIN.x, ORIGIN.y).with_flipped_y(self.HEIGHT)
        pixels = [PixelPoint(100, 100), PixelPoint(800, 200), PixelPoint(400, 700)]
        points = _points_from_transform(known, pixels)

        result = TransformSolver().fit(points, self.WIDTH, self.HEIGHT)

        assert result.strategy is FitStrategy.THREE_POINT_DAMPED
        _assert_same_transform(result.transform, known)

    def test_half_of_third_residual_applied_as_translation(self) -> None:
        known = PlanarTransform.from_similarity(1.0, 0.0, ORIGIN.x, ORIGIN.y).with_flipped_y(self.HEIGHT)
        pixels = [PixelPoint(100, 100), PixelPoint(800, 200), PixelPoint(400, 700)]
        exact = known.apply(pixels[2])
        shifted = unproject(PlanarPoint(exact.x + 40.0, exact.y - 20.0))
        points = ControlPointSet.from_pairs(
            [
                (pixels[0], unproject(known.apply(pixels[0]))),
                (pixels[1], unproject(known.apply(pixels[1]))),
                (pixels[2], shifted),
            ]
        )

        result = TransformSolver().fit(points, self.WIDTH, self.HEIGHT)

        t = result.transform
        assert (t.a, t.b, t.c, t.d) == pytest.approx((known.a, known.b, known.c, known.d), abs=1e-6)
        assert t.e - known.e == pytest.approx(20.0, abs=1e-3)
        assert t.f - known.f == pytest.approx(-10.0, abs=1e-3)
        # the first two points are no longer exact; the third is halfway
        assert result.residuals_m[2] == pytest.approx(math.hypot(20.0, 10.0), abs=1e-3)

    def test_damping_from_config(self) -> None:
        known = PlanarTransform.from_similarity(1.0, 0.0, ORIGIN.x, ORIGIN.y)
        pixels = [PixelPoint(100, 100), PixelPoint(800, 200), PixelPoint(400, 700)]
        exact = known.apply(pixels[2])
        points = ControlPointSet.from_pairs(
            [
                (pixels[0], unproject(known.apply(pixels[0]))),
                (pixels[1], unproject(known.apply(pixels[1]))),
                (pixels[2], unproject(PlanarPoint(exact.x + 10.0, exact.y))),
            ]
        )
        config = EngineConfig(flip_y=False, three_point_damping=0.0)

        result = TransformSolver(config).fit(points, self.WIDTH, self.HEIGHT)

        assert result.transform.e == pytest.approx(known.e, abs=1e-3)


class TestFourPointFit:
    WIDTH, HEIGHT = 1200, 900
    PIXELS = [PixelPoint(100, 80), PixelPoint(1100, 120), PixelPoint(150, 850), PixelPoint(1000, 820)]

    def test_recovers_general_affine(self) -> None:
        known = PlanarTransform(1.8, 0.3, -0.2, -2.4, ORIGIN.x, ORIGIN.y)
        points = _points_from_transform(known, self.PIXELS)

        result = TransformSolver().fit(points, self.WIDTH, self.HEIGHT)

        assert result.strategy is FitStrategy.FOUR_POINT_AFFINE
        assert not result.flipped_y
        _assert_same_transform(result.transform, known)
        assert result.rms_error_m == pytest.approx(0.0, abs=1e-4)

    def test_least_squares_spreads_error(self) -> None:
        known = PlanarTransform(1.0, 0.0, 0.0, -1.0, ORIGIN.x, ORIGIN.y)
        pairs = [(p, unproject(known.apply(p))) for p in self.PIXELS]
        noisy = known.apply(self.PIXELS[3])
        pairs[3] = (self.PIXELS[3], unproject(PlanarPoint(noisy.x + 30.0, noisy.y)))

        result = TransformSolver().fit(ControlPointSet.from_pairs(pairs), self.WIDTH, self.HEIGHT)

        assert all(r > 0.0 for r in result.residuals_m)
        assert result.max_error_m < 30.0

    def test_collinear_points_degenerate(self) -> None:
        pixels = [PixelPoint(0, 0), PixelPoint(100, 100), PixelPoint(200, 200), PixelPoint(300, 300)]
        geos = [
            GeoPoint(40.40, -3.70),
            GeoPoint(40.41, -3.71),
            GeoPoint(40.43, -3.69),
            GeoPoint(40.44, -3.72),
        ]
        points = ControlPointSet.from_pairs(list(zip(pixels, geos)))

        with pytest.raises(DegenerateConfiguration):
            TransformSolver().fit(points, 400, 400)


class TestSolveGaussian:
    def test_matches_numpy(self) -> None:
        matrix = np.array([[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]])
        rhs = np.array([8.0, -11.0, -3.0])

        np.testing.assert_allclose(solve_gaussian(matrix, rhs), [2.0, 3.0, -1.0])

    def test_needs_pivoting(self) -> None:
        """Zero on the diagonal is handled by row swaps."""
        x = solve_gaussian([[0.0, 1.0], [1.0, 0.0]], [3.0, 4.0])
        np.testing.assert_allclose(x, [4.0, 3.0])

    def test_singular_raises(self) -> None:
        with pytest.raises(DegenerateConfiguration):
            solve_gaussian([[1.0, 2.0], [2.0, 4.0]], [1.0, 2.0])

    def test_shape_mismatch_raises(self) -> None:
        with pytest.raises(ValueError):
            solve_gaussian([[1.0, 2.0], [3.0, 4.0]], [1.0, 2.0, 3.0])


class TestValidationBeforeFit:
    def test_close_points_rejected(self) -> None:
        points = [
            ControlPoint(1, PixelPoint(100, 100), GeoPoint(40.0, -3.0)),
            ControlPoint(2, PixelPoint(105, 100), GeoPoint(40.01, -3.0)),
        ]
        with pytest.raises(PointsTooClose):
            fit_transform(points)

    def test_single_point_rejected(self) -> None:
        with pytest.raises(WrongPointCount):
            fit_transform([ControlPoint(1, PixelPoint(0, 0), GeoPoint(40.0, -3.0))])


class TestConcreteScenario:
    """Two Madrid clicks on a 100x100 image."""

    def setup_method(self) -> None:
        self.m1 = GeoPoint(40.4168, -3.7038)
        self.m2 = GeoPoint(40.4268, -3.6938)
        self.points = ControlPointSet.from_pairs([(PixelPoint(0, 0), self.m1), (PixelPoint(100, 100), self.m2)])

    def test_corners_near_clicked_points(self) -> None:
        transform = fit_transform(self.points, 100, 100)
        corners = derive_anchors(transform, 100, 100)

        assert corners.top_left.lat == pytest.approx(self.m1.lat, abs=1e-9)
        assert corners.top_left.lng == pytest.approx(self.m1.lng, abs=1e-9)
        assert corners.bottom_right.lat == pytest.approx(self.m2.lat, abs=1e-9)
        assert corners.bottom_right.lng == pytest.approx(self.m2.lng, abs=1e-9)

        # rotation can swing the other corners out by at most the diagonal extent
        extent = max(self.m2.lat - self.m1.lat, self.m2.lng - self.m1.lng)
        for corner in corners.corners:
            assert self.m1.lat - extent <= corner.lat <= self.m2.lat + extent
            assert self.m1.lng - extent <= corner.lng <= self.m2.lng + extent

    def test_fit_result_is_frozen(self) -> None:
        result = TransformSolver().fit(self.points, 100, 100)
        assert isinstance(result, FitResult)
        with pytest.raises(AttributeError):
            result.strategy = FitStrategy.FOUR_POINT_AFFINE  # type: ignore[misc]


# ============================================================================
# Property Tests
# ============================================================================

@given(
    scale=st.floats(min_value=0.5, max_value=10.0),
    rotation=st.floats(min_value=-math.pi, max_value=math.pi),
    width=st.integers(min_value=400, max_value=4000),
    height=st.integers(min_value=400, max_value=4000),
)
@settings(deadline=None, max_examples=50)
def test_two_point_fit_recovers_similarity(scale: float, rotation: float, width: int, height: int) -> None:
    known = PlanarTransform.from_similarity(scale, rotation, ORIGIN.x, ORIGIN.y).with_flipped_y(height)
    pixels = [PixelPoint(0.1 * width, 0.2 * height), PixelPoint(0.9 * width, 0.7 * height)]

    transform = fit_transform(_points_from_transform(known, pixels), width, height)

    _assert_same_transform(transform, known)


@given(
    a=st.floats(min_value=1.0, max_value=3.0),
    b=st.floats(min_value=-0.5, max_value=0.5),
    c=st.floats(min_value=-0.5, max_value=0.5),
    d=st.floats(min_value=-3.0, max_value=-1.0),
    width=st.integers(min_value=400, max_value=4000),
    height=st.integers(min_value=400, max_value=4000),
)
@settings(deadline=None, max_examples=50)
def test_four_point_fit_corners_invert_to_image_corners(
    a: float, b: float, c: float, d: float, width: int, height: int
) -> None:
    """Projected anchor corners map back to the pixel corners of the image."""
    known = PlanarTransform(a, b, c, d, ORIGIN.x, ORIGIN.y)
    pixels = [
        PixelPoint(0.1 * width, 0.1 * height),
        PixelPoint(0.9 * width, 0.15 * height),
        PixelPoint(0.2 * width, 0.85 * height),
        PixelPoint(0.8 * width, 0.9 * height),
    ]

    transform = fit_transform(_points_from_transform(known, pixels), width, height)
    corners = derive_anchors(transform, width, height)

    expected = [(0, 0), (width, 0), (0, height), (width, height)]
    for corner, (px, py) in zip(corners.corners, expected):
        back = transform.invert_point(project(corner))
        assert back.x == pytest.approx(px, abs=1e-4)
        assert back.y == pytest.approx(py, abs=1e-4)
