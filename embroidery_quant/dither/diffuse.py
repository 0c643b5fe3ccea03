# embroidery_quant/dither/diffuse.py
from __future__ import annotations

"""
Error-diffusion dithering onto a fixed palette.

- Working buffer is float64 RGB so diffused error keeps its sign and fraction.
- Row-major scan; with serpentine on, odd rows run right-to-left and the
  kernel is mirrored.
- Each pixel snaps to the nearest palette colour in Lab (ties -> lowest index).
  Lookups are cached by the rounded, clamped RGB of the accumulated value.
- Error (accumulated - chosen) is scaled by intensity and pushed to the
  in-bounds forward taps. Alpha is copied through untouched.

Hot spot: the per-pixel loop. It is sequential; each pixel depends on the
error of the ones before it.
"""

import math
import time
from typing import Dict, List

import numpy as np

from ..colour_convert import rgb_to_lab
from ..core_types import DitherKernel, DitherParameters, Palette, Raster
from ..errors import InvalidParameterError
from ..utils import (
    debug_log,
    format_seconds_compact,
    nearest_palette_indices_lab_distance,
    unique_rgb_with_inverse,
)
from .kernels import kernel_taps

# Cache guard: clear the lookup cache when it grows past this.
CACHE_MAX_ENTRIES = 300_000


def validate_dither_parameters(params: DitherParameters) -> None:
    """Reject a negative or non-finite intensity before any pixel work."""
    intensity = float(params.intensity)
    if not math.isfinite(intensity) or intensity < 0.0:
        raise InvalidParameterError(
            f"intensity must be a finite value >= 0, got {params.intensity}",
            stage="dither",
        )
    DitherKernel.parse(params.kernel)


def _check_inputs(raster: Raster, palette: Palette) -> None:
    if palette is None or len(palette) == 0:
        raise InvalidParameterError("palette is empty", stage="dither")
    if raster.is_empty:
        raise InvalidParameterError("cannot dither an empty raster", stage="dither")


def map_to_nearest(raster: Raster, palette: Palette) -> Raster:
    """Replace every pixel's RGB with its nearest palette colour; keep alpha."""
    _check_inputs(raster, palette)
    flat = raster.as_array().reshape(-1, 4)
    uniq, inverse = unique_rgb_with_inverse(flat[:, :3])
    idx = nearest_palette_indices_lab_distance(
        rgb_to_lab(uniq.astype(np.float64)), palette.lab_array()
    )
    out = np.empty_like(flat)
    out[:, :3] = palette.rgb_array()[idx][inverse]
    out[:, 3] = flat[:, 3]
    return Raster(raster.width, raster.height, out.reshape(-1))


def dither(
    raster: Raster,
    palette: Palette,
    params: DitherParameters,
    *,
    debug: bool = False,
) -> Raster:
    """
    Dither a raster onto a palette.

    Args:
      raster: source raster (not modified)
      palette: non-empty Palette
      params: kernel, intensity (0 disables diffusion) and serpentine
      debug: print timing and cache statistics
    Returns:
      new Raster whose RGB values all belong to the palette
    Raises:
      InvalidParameterError on an empty palette, an empty raster or a negative
      intensity
    """
    validate_dither_parameters(params)
    _check_inputs(raster, palette)

    kernel = DitherKernel.parse(params.kernel)
    intensity = float(params.intensity)
    if kernel is DitherKernel.NONE or intensity == 0.0:
        return map_to_nearest(raster, palette)

    t0 = time.perf_counter()
    height, width = raster.height, raster.width
    src = raster.as_array()
    work = src[..., :3].astype(np.float64)
    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., 3] = src[..., 3]

    pal_rgb = palette.rgb_array()
    pal_rgb_list: List[List[int]] = pal_rgb.tolist()
    pal_lab = palette.lab_array()

    taps_ltr = kernel_taps(kernel)
    taps_rtl = kernel_taps(kernel, mirror=True)

    cache: Dict[int, int] = {}
    misses = 0

    for y in range(height):
        reverse = bool(params.serpentine) and (y % 2 == 1)
        taps = taps_rtl if reverse else taps_ltr
        xs = range(width - 1, -1, -1) if reverse else range(width)
        for x in xs:
            r, g, b = work[y, x]
            qr = min(255, max(0, int(math.floor(r + 0.5))))
            qg = min(255, max(0, int(math.floor(g + 0.5))))
            qb = min(255, max(0, int(math.floor(b + 0.5))))
            key = (qr << 16) | (qg << 8) | qb

            idx = cache.get(key)
            if idx is None:
                lab = rgb_to_lab(np.array([[qr, qg, qb]], dtype=np.float64))
                idx = int(nearest_palette_indices_lab_distance(lab, pal_lab)[0])
                if len(cache) >= CACHE_MAX_ENTRIES:
                    cache.clear()
                cache[key] = idx
                misses += 1

            cr, cg, cb = pal_rgb_list[idx]
            out[y, x, 0] = cr
            out[y, x, 1] = cg
            out[y, x, 2] = cb

            er = (r - cr) * intensity
            eg = (g - cg) * intensity
            eb = (b - cb) * intensity
            if er == 0.0 and eg == 0.0 and eb == 0.0:
                continue
            for dx, dy, wgt in taps:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < width and ny < height:
                    cell = work[ny, nx]
                    cell[0] += er * wgt
                    cell[1] += eg * wgt
                    cell[2] += eb * wgt

    if debug:
        debug_log(
            f"dither kernel={kernel.value}  intensity={intensity:g}  "
            f"serpentine={'on' if params.serpentine else 'off'}  "
            f"lookups={misses:,}  {format_seconds_compact(time.perf_counter() - t0)}"
        )
    return Raster(width, height, out.reshape(-1))


__all__ = ["CACHE_MAX_ENTRIES", "validate_dither_parameters", "map_to_nearest", "dither"]
