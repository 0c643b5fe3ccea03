import threading
import time

import numpy as np
import pytest

from embroidery_quant.core_types import (
    DitherKernel,
    DitherParameters,
    FilterParameters,
    QuantizationParameters,
    Raster,
)
from embroidery_quant.errors import (
    InvalidParameterError,
    PipelineCancelledError,
    PipelineTimeoutError,
)
from embroidery_quant.pipeline import (
    STAGES,
    CancellationToken,
    PipelineRunner,
    apply_existing_palette,
    process_image,
    process_pixels,
)

FP = FilterParameters()
QP = QuantizationParameters(color_count=2)
DP = DitherParameters()


class TestProcessImage:
    def test_uniform_red(self, red_2x2):
        result = process_image(red_2x2, FP, QP, DP)
        assert result.palette.to_rgb_list() == [(255, 0, 0)]
        assert result.final == red_2x2
        assert result.filtered == red_2x2
        assert result.elapsed_ms >= 0.0

    def test_checkerboard_kept(self, checkerboard):
        result = process_image(checkerboard, FilterParameters(15, 30, 3, 1), QP, DP)
        assert sorted(result.palette.to_rgb_list()) == [(0, 0, 0), (255, 255, 255)]
        assert result.final == checkerboard

    def test_final_uses_palette(self, gradient):
        result = process_image(
            gradient,
            FilterParameters(kernel_size=3),
            QuantizationParameters(color_count=6),
            DitherParameters(kernel=DitherKernel.BURKES, intensity=0.5),
        )
        used = {tuple(p) for p in result.final.as_array()[..., :3].reshape(-1, 3).tolist()}
        assert used <= set(result.palette.to_rgb_list())
        assert len(result.palette) == 6

    def test_stage_hook_order(self, red_2x2):
        seen = []
        process_image(red_2x2, FP, QP, DP, on_stage=seen.append)
        assert tuple(seen) == STAGES

    def test_invalid_parameters_before_any_stage(self, red_2x2):
        seen = []
        with pytest.raises(InvalidParameterError):
            process_image(
                red_2x2, FP, QuantizationParameters(color_count=1), DP, on_stage=seen.append
            )
        assert seen == []

    def test_empty_input(self):
        with pytest.raises(InvalidParameterError):
            process_image(Raster.empty(), FP, QP, DP)


class TestCancellation:
    def test_cancelled_before_start(self, red_2x2):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(PipelineCancelledError) as e:
            process_image(red_2x2, FP, QP, DP, token=token)
        assert e.value.stage == "filter"

    def test_cancelled_before_dither(self, red_2x2):
        token = CancellationToken()

        def hook(stage):
            if stage == "dither":
                token.cancel()

        with pytest.raises(PipelineCancelledError) as e:
            process_image(red_2x2, FP, QP, DP, token=token, on_stage=hook)
        assert e.value.stage == "dither"
        assert token.cancelled


class TestExistingPalette:
    def test_reapply(self, gradient, checkerboard):
        palette = process_image(checkerboard, FP, QP, DP).palette
        out = apply_existing_palette(gradient, palette, DP)
        used = {tuple(p) for p in out.as_array()[..., :3].reshape(-1, 3).tolist()}
        assert used <= {(0, 0, 0), (255, 255, 255)}
        assert (out.width, out.height) == (gradient.width, gradient.height)


class TestProcessPixels:
    def test_bytes_round_trip(self, checkerboard):
        out = process_pixels(checkerboard.tobytes(), 4, 4, quant_params=QP)
        assert set(out) == {"filtered_pixels", "palette", "final_pixels", "processing_time_ms"}
        assert out["final_pixels"] == checkerboard.tobytes()
        assert sorted(out["palette"]) == [(0, 0, 0), (255, 255, 255)]

    def test_wrong_length(self):
        with pytest.raises(InvalidParameterError):
            process_pixels(bytes(10), 2, 2)

    def test_values_out_of_range(self):
        values = [0, 0, 0, 255] * 3 + [256, 0, 0, 255]
        with pytest.raises(InvalidParameterError) as e:
            process_pixels(values, 2, 2)
        assert e.value.stage == "pipeline"

    def test_list_input(self, red_2x2):
        out = process_pixels(red_2x2.as_array().tolist(), 2, 2, quant_params=QP)
        assert out["palette"] == [(255, 0, 0)]


class TestRunner:
    def test_submit_and_wait(self, checkerboard):
        with PipelineRunner(2) as runner:
            job = runner.submit(checkerboard, FP, QP, DP)
            result = job.result(timeout=30)
            assert job.done()
        assert result.final == checkerboard

    def test_timeout_cancels_run(self, red_2x2):
        release = threading.Event()

        def hook(stage):
            release.wait(10)

        with PipelineRunner(1) as runner:
            job = runner.submit(red_2x2, FP, QP, DP, on_stage=hook)
            with pytest.raises(PipelineTimeoutError):
                job.result(timeout=0.05)
            assert job.token.cancelled
            release.set()
            with pytest.raises(PipelineCancelledError):
                job.result(timeout=10)

    def test_cancel_job(self, red_2x2):
        started = threading.Event()
        release = threading.Event()

        def hook(stage):
            started.set()
            release.wait(10)

        with PipelineRunner(1) as runner:
            job = runner.submit(red_2x2, FP, QP, DP, on_stage=hook)
            assert started.wait(10)
            job.cancel()
            release.set()
            with pytest.raises(PipelineCancelledError):
                job.result(timeout=10)

    def test_run_returns_result(self, red_2x2):
        with PipelineRunner() as runner:
            result = runner.run(red_2x2, FP, QP, DP, timeout=30)
        np.testing.assert_array_equal(result.final.as_array(), red_2x2.as_array())

    def test_exit_on_error_does_not_wait(self, red_2x2):
        release = threading.Event()

        def hook(stage):
            release.wait(10)

        t0 = time.perf_counter()
        with pytest.raises(PipelineTimeoutError):
            with PipelineRunner(1) as runner:
                job = runner.submit(red_2x2, FP, QP, DP, on_stage=hook)
                job.result(timeout=0.05)
        elapsed = time.perf_counter() - t0
        release.set()
        assert elapsed < 5.0
