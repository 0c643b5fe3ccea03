import numpy as np
import pytest

from embroidery_quant.colour_convert import (
    colour_distance,
    lab_distance,
    lab_to_lch,
    rgb_to_lab,
)
from embroidery_quant.core_types import Color


class TestRgbToLab:
    def test_white_and_black(self):
        lab = rgb_to_lab(np.array([[255, 255, 255], [0, 0, 0]]))
        np.testing.assert_allclose(lab[0], [100.0, 0.0, 0.0], atol=0.05)
        np.testing.assert_allclose(lab[1], [0.0, 0.0, 0.0], atol=1e-9)

    def test_primary_red(self):
        lab = rgb_to_lab(np.array([255, 0, 0]))
        np.testing.assert_allclose(lab, [53.24, 80.09, 67.20], atol=0.05)

    def test_shape_preserved(self):
        rgb = np.zeros((2, 3, 3), dtype=np.uint8)
        assert rgb_to_lab(rgb).shape == (2, 3, 3)
        assert rgb_to_lab(rgb).dtype == np.float64


class TestLch:
    def test_hue_degrees(self):
        lch = lab_to_lch(np.array([[50.0, 0.0, 10.0], [50.0, -10.0, 0.0]]))
        np.testing.assert_allclose(lch[:, 1], [10.0, 10.0])
        np.testing.assert_allclose(lch[:, 2], [90.0, 180.0])


class TestDistance:
    def test_symmetric_and_positive(self):
        red, green = Color(255, 0, 0), Color(0, 255, 0)
        d = colour_distance(red, green)
        assert d > 0
        assert d == pytest.approx(colour_distance(green, red))

    def test_zero_for_same_rgb_any_alpha(self):
        assert colour_distance(Color(10, 20, 30, 255), Color(10, 20, 30, 0)) == 0.0

    def test_matches_lab_distance(self):
        a, b = Color(12, 200, 40), Color(90, 10, 250)
        expected = float(lab_distance(np.array(a.lab), np.array(b.lab)))
        assert a.distance(b) == pytest.approx(expected)
