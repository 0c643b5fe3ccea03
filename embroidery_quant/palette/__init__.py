"""
Palette builder API.

Provides:
  build_palette(raster, params, workers=1, debug=False)
    Histogram -> hue reservation -> weighted variance split -> Palette.
  effective_parameters(quant, dither)
    Embroidery adjustments of the hue reservation and dither intensity.
  colour_histogram(raster, max_samples=None, workers=1)
  top_frequency_palette(raster, color_count)
"""

from .builder import (
    build_palette,
    effective_parameters,
    partition_colours,
    reserve_hue_slots,
    top_frequency_palette,
    validate_quantization_parameters,
)
from .histogram import colour_histogram, frequency_order, sample_rgb

__all__ = [
    "build_palette",
    "effective_parameters",
    "partition_colours",
    "reserve_hue_slots",
    "top_frequency_palette",
    "validate_quantization_parameters",
    "colour_histogram",
    "frequency_order",
    "sample_rgb",
]
