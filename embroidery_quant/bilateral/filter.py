# embroidery_quant/bilateral/filter.py
from __future__ import annotations

"""
Edge-preserving bilateral smoothing over RGBA rasters.

Every output pixel is the weighted mean of the in-bounds pixels in a square
window around it. Weights combine a spatial Gaussian on the offset and a
colour Gaussian on the raw RGB difference to the centre pixel. Alpha is
averaged with the same weights.

Hot spot: O(W*H*k^2). The window offsets are walked in Python while each
offset is applied to a whole band of rows in NumPy. Bands are independent
(they only read the shared input), so threading by rows with a halo of
`radius` rows is exact.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import numpy as np

from ..constants import FILTER_PARALLEL_MIN_ROWS, FILTER_SIZE_TIERS, PREVIEW_MAX_SIZE
from ..core_types import FilterParameters, Raster
from ..errors import InvalidParameterError
from ..utils import debug_log, format_seconds_compact, split_rows_with_halo


def validate_filter_parameters(params: FilterParameters) -> None:
    """Reject unusable parameters before any pixel work."""
    if not params.sigma_space > 0:
        raise InvalidParameterError(
            f"sigma_space must be > 0, got {params.sigma_space}", stage="filter"
        )
    if not params.sigma_color > 0:
        raise InvalidParameterError(
            f"sigma_color must be > 0, got {params.sigma_color}", stage="filter"
        )
    if int(params.kernel_size) != params.kernel_size or params.kernel_size <= 0:
        raise InvalidParameterError(
            f"kernel_size must be a positive integer, got {params.kernel_size}",
            stage="filter",
        )
    if int(params.kernel_size) % 2 == 0:
        raise InvalidParameterError(
            f"kernel_size must be odd, got {params.kernel_size}", stage="filter"
        )
    if int(params.iterations) != params.iterations or params.iterations <= 0:
        raise InvalidParameterError(
            f"iterations must be >= 1, got {params.iterations}", stage="filter"
        )


def _filter_band(
    src: np.ndarray,
    band: Tuple[int, int, int, int],
    radius: int,
    sigma_space: float,
    sigma_color: float,
) -> np.ndarray:
    """
    Filter rows [start, end) of src (float64 [H,W,4]) and return uint8 rows.
    Rows in [start_pad, end_pad) are read; anything outside the image is
    masked out rather than padded into the average.
    """
    start, end, start_pad, end_pad = band
    sub = src[start_pad:end_pad]
    band_h, width = sub.shape[0], sub.shape[1]

    padded = np.zeros((band_h + 2 * radius, width + 2 * radius, 4), dtype=np.float64)
    padded[radius : radius + band_h, radius : radius + width] = sub
    valid = np.zeros((band_h + 2 * radius, width + 2 * radius), dtype=np.float64)
    valid[radius : radius + band_h, radius : radius + width] = 1.0

    inv_two_ss = 1.0 / (2.0 * sigma_space * sigma_space)
    inv_two_sc = 1.0 / (2.0 * sigma_color * sigma_color)

    acc = np.zeros((band_h, width, 4), dtype=np.float64)
    weight_sum = np.zeros((band_h, width), dtype=np.float64)
    centre_rgb = sub[..., :3]

    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            ys = slice(radius + dy, radius + dy + band_h)
            xs = slice(radius + dx, radius + dx + width)
            neighbour = padded[ys, xs]
            spatial = np.exp(-float(dx * dx + dy * dy) * inv_two_ss)
            diff = neighbour[..., :3] - centre_rgb
            colour_dist = np.sum(diff * diff, axis=2)
            weight = spatial * np.exp(-colour_dist * inv_two_sc) * valid[ys, xs]
            acc += neighbour * weight[..., None]
            weight_sum += weight

    has_weight = weight_sum > 0.0
    safe_sum = np.where(has_weight, weight_sum, 1.0)
    mean = np.floor(acc / safe_sum[..., None] + 0.5)
    out = np.where(has_weight[..., None], mean, sub)
    out = np.clip(out, 0.0, 255.0).astype(np.uint8)

    core_lo = start - start_pad
    return out[core_lo : core_lo + (end - start)]


def _filter_once(
    src_u8: np.ndarray, radius: int, params: FilterParameters, workers: int
) -> np.ndarray:
    height = src_u8.shape[0]
    src = src_u8.astype(np.float64)
    if workers <= 1 or height < FILTER_PARALLEL_MIN_ROWS:
        return _filter_band(
            src,
            (0, height, 0, height),
            radius,
            params.sigma_space,
            params.sigma_color,
        )

    out = np.empty_like(src_u8)
    bands = split_rows_with_halo(height, workers, radius)

    def run_one(band: Tuple[int, int, int, int]) -> Tuple[int, int, np.ndarray]:
        rows = _filter_band(src, band, radius, params.sigma_space, params.sigma_color)
        return band[0], band[1], rows

    with ThreadPoolExecutor(max_workers=workers) as ex:
        for start, end, rows in ex.map(run_one, bands):
            out[start:end] = rows
    return out


def bilateral_filter(
    raster: Raster,
    params: FilterParameters,
    *,
    workers: int = 1,
    debug: bool = False,
) -> Raster:
    """
    Apply the bilateral filter `params.iterations` times.

    Args:
      raster: source raster (not modified)
      params: FilterParameters, validated before any pixel work
      workers: threads for row bands; output is identical for any value
      debug: print per-iteration timing
    Returns:
      new Raster of the same size
    Raises:
      InvalidParameterError on bad parameters or an empty raster
    """
    validate_filter_parameters(params)
    if raster.is_empty:
        raise InvalidParameterError("cannot filter an empty raster", stage="filter")

    radius = int(params.kernel_size) // 2
    current = raster.as_array()
    if radius == 0:
        return Raster(raster.width, raster.height, raster.pixels)

    for i in range(int(params.iterations)):
        t0 = time.perf_counter()
        current = _filter_once(current, radius, params, workers)
        if debug:
            debug_log(
                f"bilateral pass {i + 1}/{params.iterations}  "
                f"kernel={params.kernel_size}  workers={workers}  "
                f"{format_seconds_compact(time.perf_counter() - t0)}"
            )

    return Raster(raster.width, raster.height, current.reshape(-1))


def optimal_filter_parameters(width: int, height: int) -> FilterParameters:
    """Suggest lighter filtering for larger images."""
    pixel_count = int(width) * int(height)
    for threshold, sigma_space, sigma_color, kernel_size in FILTER_SIZE_TIERS:
        if pixel_count > threshold:
            return FilterParameters(sigma_space, sigma_color, kernel_size, 1)
    _, sigma_space, sigma_color, kernel_size = FILTER_SIZE_TIERS[-1]
    return FilterParameters(sigma_space, sigma_color, kernel_size, 1)


def filter_preview(
    raster: Raster,
    params: FilterParameters,
    *,
    max_size: Optional[int] = None,
    workers: int = 1,
) -> Raster:
    """
    Quick look at the filter on large images: shrink so the longest side is
    at most max_size, filter, then scale back to the source size.
    """
    from ..image_io import resize_raster

    validate_filter_parameters(params)
    if raster.is_empty:
        raise InvalidParameterError("cannot filter an empty raster", stage="filter")

    limit = int(max_size or PREVIEW_MAX_SIZE)
    scale = min(limit / raster.width, limit / raster.height, 1.0)
    if scale >= 1.0:
        return bilateral_filter(raster, params, workers=workers)

    small_w = max(1, int(round(raster.width * scale)))
    small_h = max(1, int(round(raster.height * scale)))
    small = resize_raster(raster, small_w, small_h)
    filtered = bilateral_filter(small, params, workers=workers)
    return resize_raster(filtered, raster.width, raster.height)


__all__ = [
    "validate_filter_parameters",
    "bilateral_filter",
    "optimal_filter_parameters",
    "filter_preview",
]
