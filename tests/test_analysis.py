import math

import numpy as np
import pytest

from embroidery_quant.analysis import (
    colour_usage_report,
    edge_preservation,
    global_ssim,
    mean_delta_e,
    psnr,
    quality_metrics,
)
from embroidery_quant.core_types import Palette, Raster
from embroidery_quant.errors import InvalidParameterError


class TestMetrics:
    def test_identical(self, gradient):
        m = quality_metrics(gradient, gradient)
        assert math.isinf(m.psnr)
        assert m.mean_delta_e == 0.0
        assert m.colour_accuracy == 100.0
        assert m.ssim == pytest.approx(1.0)
        assert m.edge_preservation == pytest.approx(1.0)

    def test_known_psnr(self):
        a = Raster.filled(4, 4, (100, 100, 100, 255))
        b = Raster.filled(4, 4, (110, 110, 110, 255))
        assert psnr(a, b) == pytest.approx(10 * math.log10(255 * 255 / 100))

    def test_worse_match_scores_lower(self, gradient):
        flat = Raster.filled(gradient.width, gradient.height, (0, 0, 0, 255))
        assert mean_delta_e(gradient, flat) > 10.0
        assert global_ssim(gradient, flat) < 0.5
        assert edge_preservation(gradient, flat) == 0.0

    def test_size_mismatch(self, gradient, red_2x2):
        with pytest.raises(InvalidParameterError):
            psnr(gradient, red_2x2)


class TestUsageReport:
    def test_counts_visible_only(self):
        arr = np.zeros((1, 4, 4), dtype=np.uint8)
        arr[0, 0] = (255, 0, 0, 255)
        arr[0, 1] = (255, 0, 0, 255)
        arr[0, 2] = (0, 0, 255, 255)
        arr[0, 3] = (0, 255, 0, 0)
        report = colour_usage_report(Raster.from_array(arr))
        assert report == [("#ff0000", 2), ("#0000ff", 1)]

    def test_lists_unused_palette_colours(self, red_2x2):
        palette = Palette.from_rgb([(0, 0, 0), (255, 0, 0)])
        assert colour_usage_report(red_2x2, palette) == [("#ff0000", 4), ("#000000", 0)]
