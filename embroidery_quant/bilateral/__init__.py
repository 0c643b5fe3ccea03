"""
Bilateral filter API.

Provides:
  bilateral_filter(raster, params, workers=1, debug=False)
    Edge-preserving smoothing; returns a new Raster.
  validate_filter_parameters(params)
  optimal_filter_parameters(width, height)
  filter_preview(raster, params, max_size=512)
"""

from .filter import (
    bilateral_filter,
    filter_preview,
    optimal_filter_parameters,
    validate_filter_parameters,
)

__all__ = [
    "bilateral_filter",
    "filter_preview",
    "optimal_filter_parameters",
    "validate_filter_parameters",
]
