# embroidery_quant/pipeline.py
from __future__ import annotations

"""
Pipeline orchestration: filter -> palette -> dither.

Stages run strictly in order and each consumes the previous stage's output.
Cancellation is cooperative: the token is checked before every stage and a
cancelled run raises PipelineCancelledError with no partial result.

PipelineRunner runs pipelines on a thread pool and hands back a PipelineJob
(future + token). A timed-out wait cancels the token so the run stops at the
next stage boundary.
"""

import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np

from .bilateral import bilateral_filter, validate_filter_parameters
from .core_types import (
    DitherParameters,
    FilterParameters,
    Palette,
    QuantizationParameters,
    Raster,
)
from .dither import dither, validate_dither_parameters
from .errors import (
    InvalidParameterError,
    PipelineCancelledError,
    PipelineTimeoutError,
    UnsupportedError,
)
from .palette import build_palette, effective_parameters, validate_quantization_parameters
from .utils import debug_log, format_seconds_compact, key_value_pairs_to_string

STAGE_FILTER = "filter"
STAGE_PALETTE = "palette"
STAGE_DITHER = "dither"
STAGES = (STAGE_FILTER, STAGE_PALETTE, STAGE_DITHER)

StageHook = Callable[[str], None]


class CancellationToken:
    """Thread-safe one-way cancel flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise PipelineCancelledError(f"cancelled before {stage}", stage=stage)


@dataclass(frozen=True)
class ProcessingResult:
    filtered: Raster
    palette: Palette
    final: Raster
    elapsed_ms: float


def _enter_stage(
    stage: str, token: Optional[CancellationToken], on_stage: Optional[StageHook]
) -> None:
    if on_stage is not None:
        on_stage(stage)
    if token is not None:
        token.raise_if_cancelled(stage)


def process_image(
    raster: Raster,
    filter_params: FilterParameters,
    quant_params: QuantizationParameters,
    dither_params: DitherParameters,
    *,
    token: Optional[CancellationToken] = None,
    on_stage: Optional[StageHook] = None,
    workers: int = 1,
    debug: bool = False,
) -> ProcessingResult:
    """
    Run the full pipeline on one raster.

    All parameters are validated before any pixel work. The embroidery
    adjustments (hue reservation, intensity cap) are applied here.

    Args:
      raster: non-empty source raster
      token: optional CancellationToken checked before every stage
      on_stage: optional callback receiving "filter", "palette", "dither"
      workers: threads for the filter and histogram stages
    Raises:
      InvalidParameterError, PipelineCancelledError
    """
    validate_filter_parameters(filter_params)
    validate_quantization_parameters(quant_params)
    validate_dither_parameters(dither_params)
    if raster.is_empty:
        raise InvalidParameterError("input raster is empty", stage="pipeline")
    quant_eff, dither_eff = effective_parameters(quant_params, dither_params)

    t0 = time.perf_counter()

    _enter_stage(STAGE_FILTER, token, on_stage)
    filtered = bilateral_filter(raster, filter_params, workers=workers, debug=debug)
    t_filter = time.perf_counter()

    _enter_stage(STAGE_PALETTE, token, on_stage)
    palette = build_palette(filtered, quant_eff, workers=workers, debug=debug)
    t_palette = time.perf_counter()

    _enter_stage(STAGE_DITHER, token, on_stage)
    final = dither(filtered, palette, dither_eff, debug=debug)
    t_end = time.perf_counter()

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Size", f"{raster.width}x{raster.height}"),
                    ("Filter", format_seconds_compact(t_filter - t0)),
                    ("Palette", format_seconds_compact(t_palette - t_filter)),
                    ("Dither", format_seconds_compact(t_end - t_palette)),
                ]
            )
        )
    return ProcessingResult(filtered, palette, final, (t_end - t0) * 1000.0)


def apply_existing_palette(
    raster: Raster, palette: Palette, dither_params: DitherParameters
) -> Raster:
    """Re-render a raster against a palette kept from an earlier run."""
    return dither(raster, palette, dither_params)


def process_pixels(
    pixels: Any,
    width: int,
    height: int,
    filter_params: Optional[FilterParameters] = None,
    quant_params: Optional[QuantizationParameters] = None,
    dither_params: Optional[DitherParameters] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """
    Byte-level entry point.

    Accepts RGBA8 bytes (or any buffer/array of width*height*4 values) and
    returns plain data:
      filtered_pixels: bytes
      palette: list of (r, g, b)
      final_pixels: bytes
      processing_time_ms: float
    """
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(bytes(pixels), dtype=np.uint8)
    else:
        values = np.asarray(pixels)
        if values.size and (values.min() < 0 or values.max() > 255):
            raise InvalidParameterError(
                "pixel values must be in 0..255", stage="pipeline"
            )
        buf = values.astype(np.uint8).reshape(-1)
    try:
        raster = Raster(width, height, buf)
    except UnsupportedError as e:
        raise InvalidParameterError(e.reason, stage="pipeline") from e

    result = process_image(
        raster,
        filter_params or FilterParameters(),
        quant_params or QuantizationParameters(),
        dither_params or DitherParameters(),
        **kwargs,
    )
    return {
        "filtered_pixels": result.filtered.tobytes(),
        "palette": [c.rgb for c in result.palette],
        "final_pixels": result.final.tobytes(),
        "processing_time_ms": result.elapsed_ms,
    }


class PipelineJob:
    """Handle to one submitted run."""

    def __init__(self, future: "Future[ProcessingResult]", token: CancellationToken):
        self._future = future
        self.token = token

    def cancel(self) -> None:
        """Request cancellation; honoured at the next stage boundary."""
        self.token.cancel()
        self._future.cancel()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> ProcessingResult:
        """
        Wait for the result.

        Raises:
          PipelineTimeoutError if timeout expires (the run is cancelled)
          PipelineCancelledError if the run was cancelled
          whatever the pipeline raised otherwise
        """
        try:
            return self._future.result(timeout=timeout)
        except FutureTimeoutError as e:
            self.token.cancel()
            raise PipelineTimeoutError(
                f"no result within {timeout:g}s", stage="pipeline"
            ) from e
        except CancelledError as e:
            raise PipelineCancelledError("cancelled before start", stage="pipeline") from e


class PipelineRunner:
    """
    Thread-pool runner for pipelines.

    Use as a context manager, or call shutdown() when done.
    """

    def __init__(self, max_workers: int = 1, *, workers_per_job: int = 1):
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)), thread_name_prefix="pipeline"
        )
        self._workers_per_job = max(1, int(workers_per_job))

    def submit(
        self,
        raster: Raster,
        filter_params: FilterParameters,
        quant_params: QuantizationParameters,
        dither_params: DitherParameters,
        *,
        on_stage: Optional[StageHook] = None,
        debug: bool = False,
    ) -> PipelineJob:
        token = CancellationToken()
        future = self._pool.submit(
            process_image,
            raster,
            filter_params,
            quant_params,
            dither_params,
            token=token,
            on_stage=on_stage,
            workers=self._workers_per_job,
            debug=debug,
        )
        return PipelineJob(future, token)

    def run(
        self,
        raster: Raster,
        filter_params: FilterParameters,
        quant_params: QuantizationParameters,
        dither_params: DitherParameters,
        *,
        timeout: Optional[float] = None,
        debug: bool = False,
    ) -> ProcessingResult:
        """Submit and wait; raises PipelineTimeoutError after `timeout` seconds."""
        job = self.submit(raster, filter_params, quant_params, dither_params, debug=debug)
        return job.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "PipelineRunner":
        return self

    def __exit__(self, exc_type: Any, *exc: Any) -> None:
        # Abandoned runs have cancelled tokens and stop at the next stage.
        self.shutdown(wait=exc_type is None)


__all__ = [
    "STAGES",
    "CancellationToken",
    "ProcessingResult",
    "process_image",
    "apply_existing_palette",
    "process_pixels",
    "PipelineJob",
    "PipelineRunner",
]
