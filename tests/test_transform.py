"""Tests for PlanarTransform."""

import math

import numpy as np
import pytest

from overlay_georef.errors import DegenerateConfiguration
from overlay_georef.geo_point import PlanarPoint
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.transform import PlanarTransform
from overlay_georef.types import Meters, Radians


class TestPlanarTransform:
    def test_identity_apply(self) -> None:
        point = PlanarTransform.identity().apply(PixelPoint(3.0, -4.0))
        assert (point.x, point.y) == (3.0, -4.0)

    def test_similarity_rotation_quarter_turn(self) -> None:
        t = PlanarTransform.from_similarity(2.0, math.pi / 2, 10.0, 20.0)
        point = t.apply(PixelPoint(1.0, 0.0))

        assert point.x == pytest.approx(10.0, abs=1e-12)
        assert point.y == pytest.approx(22.0)
        assert t.scale_x == pytest.approx(2.0)
        assert t.rotation_degrees == pytest.approx(90.0)

    def test_similarity_rotation_reads_back_in_degrees(self) -> None:
        t = PlanarTransform.from_similarity(0.5, Radians(math.radians(-30.0)), Meters(0.0), Meters(0.0))

        assert t.rotation_degrees == pytest.approx(-30.0)
        assert t.scale_x == pytest.approx(0.5)
        assert t.scale_y == pytest.approx(0.5)

    def test_flipped_y_maps_top_left_to_bottom(self) -> None:
        """With height H, raw pixel (0, 0) is y-up (0, H)."""
        base = PlanarTransform.from_similarity(1.5, 0.3, 100.0, -50.0)
        flipped = base.with_flipped_y(200.0)

        raw = flipped.apply(PixelPoint(30.0, 0.0))
        expected = base.apply(PixelPoint(30.0, 200.0))
        assert raw.x == pytest.approx(expected.x)
        assert raw.y == pytest.approx(expected.y)
        assert flipped.determinant < 0

    def test_flipped_y_is_involution(self) -> None:
        base = PlanarTransform(1.0, 0.2, -0.3, 2.0, 5.0, 6.0)
        twice = base.with_flipped_y(480.0).with_flipped_y(480.0)
        assert twice.coefficients == pytest.approx(base.coefficients)

    def test_apply_many_matches_apply(self) -> None:
        t = PlanarTransform(1.2, -0.4, 0.3, 0.9, -7.0, 11.0)
        pixels = [PixelPoint(0, 0), PixelPoint(10, 5), PixelPoint(-3, 8)]

        batch = t.apply_many(pixels)

        for pixel, planar in zip(pixels, batch):
            single = t.apply(pixel)
            assert planar.x == pytest.approx(single.x)
            assert planar.y == pytest.approx(single.y)

    def test_apply_many_empty(self) -> None:
        assert PlanarTransform.identity().apply_many([]) == []

    def test_inverse_round_trip(self) -> None:
        t = PlanarTransform(1.2, -0.4, 0.3, 0.9, -7.0, 11.0)
        pixel = PixelPoint(123.0, 456.0)

        back = t.invert_point(t.apply(pixel))

        assert back.x == pytest.approx(pixel.x)
        assert back.y == pytest.approx(pixel.y)

    def test_inverse_matches_numpy(self) -> None:
        t = PlanarTransform(2.0, 1.0, -1.0, 3.0, 4.0, 5.0)
        np.testing.assert_allclose(t.inverse().as_matrix(), np.linalg.inv(t.as_matrix()), atol=1e-12)

    def test_singular_inverse_raises(self) -> None:
        t = PlanarTransform(1.0, 2.0, 2.0, 4.0, 0.0, 0.0)
        with pytest.raises(DegenerateConfiguration):
            t.inverse()

    def test_from_matrix_accepts_2x3_and_3x3(self) -> None:
        rows = [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]
        t = PlanarTransform.from_matrix(rows)

        assert t.coefficients == (1.0, 2.0, 4.0, 5.0, 3.0, 6.0)
        assert PlanarTransform.from_matrix(t.as_matrix()) == t

    def test_from_matrix_wrong_shape(self) -> None:
        with pytest.raises(ValueError):
            PlanarTransform.from_matrix(np.eye(2))

    def test_dict_round_trip(self) -> None:
        t = PlanarTransform(1.0, 0.0, 0.0, -1.0, -412300.0, 4926000.0)
        assert PlanarTransform.from_dict(t.to_dict()) == t

    def test_is_finite(self) -> None:
        assert PlanarTransform.identity().is_finite
        assert not PlanarTransform(float("nan"), 0, 0, 1, 0, 0).is_finite

    def test_planar_point_distance(self) -> None:
        assert PlanarPoint(0.0, 0.0).distance_to(PlanarPoint(3.0, 4.0)) == pytest.approx(5.0)
