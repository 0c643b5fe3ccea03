"""
Dithering API.

Provides:
  dither(raster, palette, params, debug=False)
    Error diffusion onto a palette; returns a new Raster.
  map_to_nearest(raster, palette)
    Plain nearest-colour mapping, no diffusion.
  kernel_taps(kernel, mirror=False), kernel_weight_sum(kernel)
"""

from .diffuse import dither, map_to_nearest, validate_dither_parameters
from .kernels import KERNELS, kernel_taps, kernel_weight_sum

__all__ = [
    "dither",
    "map_to_nearest",
    "validate_dither_parameters",
    "KERNELS",
    "kernel_taps",
    "kernel_weight_sum",
]
