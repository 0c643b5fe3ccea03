import numpy as np
import pytest

from embroidery_quant.bilateral import (
    bilateral_filter,
    filter_preview,
    optimal_filter_parameters,
    validate_filter_parameters,
)
from embroidery_quant.core_types import FilterParameters, Raster
from embroidery_quant.errors import InvalidParameterError


class TestValidation:
    @pytest.mark.parametrize(
        "params",
        [
            FilterParameters(sigma_space=0.0),
            FilterParameters(sigma_color=-1.0),
            FilterParameters(kernel_size=4),
            FilterParameters(kernel_size=0),
            FilterParameters(iterations=0),
        ],
    )
    def test_rejected(self, params):
        with pytest.raises(InvalidParameterError) as e:
            validate_filter_parameters(params)
        assert e.value.stage == "filter"

    def test_empty_raster(self):
        with pytest.raises(InvalidParameterError):
            bilateral_filter(Raster.empty(), FilterParameters())


class TestBilateralFilter:
    def test_kernel_one_is_identity(self, gradient):
        out = bilateral_filter(gradient, FilterParameters(kernel_size=1))
        assert out == gradient
        assert out is not gradient

    def test_uniform_stays_uniform(self):
        src = Raster.filled(7, 5, (40, 80, 120, 200))
        out = bilateral_filter(src, FilterParameters(kernel_size=5, iterations=2))
        assert out == src

    def test_huge_sigmas_average_in_bounds_neighbours(self, make_raster):
        values = (np.arange(9).reshape(3, 3) * 10).astype(np.uint8)
        src = make_raster(np.repeat(values[..., None], 3, axis=2))
        params = FilterParameters(sigma_space=1e6, sigma_color=1e6, kernel_size=3)
        out = bilateral_filter(src, params).as_array()
        # centre sees all nine pixels, the corner only its four in-bounds ones
        assert out[1, 1, 0] == 40
        assert out[0, 0, 0] == 20
        assert out[2, 2, 0] == 60
        assert np.all(out[..., 3] == 255)

    def test_hard_edge_preserved(self, make_raster):
        rgb = np.zeros((6, 8, 3), dtype=np.uint8)
        rgb[:, 4:] = 255
        src = make_raster(rgb)
        out = bilateral_filter(src, FilterParameters(sigma_space=5, sigma_color=10, kernel_size=5))
        assert out == src

    def test_alpha_is_filtered(self, make_raster):
        arr = np.zeros((3, 3, 4), dtype=np.uint8)
        arr[..., :3] = 100
        arr[..., 3] = 255
        arr[1, 1, 3] = 0
        src = Raster.from_array(arr)
        params = FilterParameters(sigma_space=1e6, sigma_color=1e6, kernel_size=3)
        out = bilateral_filter(src, params).as_array()
        assert out[1, 1, 3] == 227  # 8*255/9 = 226.67

    def test_workers_do_not_change_output(self, rng):
        arr = rng.integers(0, 256, size=(80, 20, 4), dtype=np.uint8)
        src = Raster.from_array(arr)
        params = FilterParameters(sigma_space=4, sigma_color=40, kernel_size=5)
        single = bilateral_filter(src, params, workers=1)
        multi = bilateral_filter(src, params, workers=4)
        assert single == multi

    def test_source_untouched(self, gradient):
        before = gradient.tobytes()
        bilateral_filter(gradient, FilterParameters(kernel_size=5))
        assert gradient.tobytes() == before


class TestHelpers:
    def test_optimal_parameters_by_size(self):
        assert optimal_filter_parameters(2000, 1000).kernel_size == 7
        assert optimal_filter_parameters(800, 800).kernel_size == 9
        assert optimal_filter_parameters(100, 100).kernel_size == 11

    def test_preview_keeps_size(self, gradient):
        out = filter_preview(gradient, FilterParameters(kernel_size=3), max_size=12)
        assert (out.width, out.height) == (gradient.width, gradient.height)

    def test_preview_small_image_matches_full(self, gradient):
        params = FilterParameters(kernel_size=3)
        assert filter_preview(gradient, params, max_size=512) == bilateral_filter(gradient, params)
