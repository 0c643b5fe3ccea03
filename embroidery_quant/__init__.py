# embroidery_quant/__init__.py
"""
embroidery_quant package.

Purpose:
  Reduce photos to small, stitchable palettes. See cli.py for the command line.

Public API:
  process_image          : filter -> palette -> dither on one Raster.
  process_pixels         : same, on raw RGBA8 bytes.
  apply_existing_palette : re-render against a kept palette.
  PipelineRunner         : thread-pool runner with cancellation and timeouts.
  bilateral_filter, build_palette, dither : the individual stages.
  core_types             : Raster, Color, Palette, parameter dataclasses.

Quick start:
  from embroidery_quant import Raster, process_image
  from embroidery_quant import FilterParameters, QuantizationParameters, DitherParameters
"""

__version__ = "0.1.0"

from . import colour_convert
from . import core_types
from . import utils
from .bilateral import bilateral_filter
from .core_types import (
    Color,
    DitherKernel,
    DitherParameters,
    FilterParameters,
    Palette,
    QuantizationParameters,
    Raster,
)
from .dither import dither, map_to_nearest
from .errors import (
    EmbroideryQuantError,
    InvalidParameterError,
    PipelineCancelledError,
    PipelineTimeoutError,
    UnsupportedError,
)
from .palette import build_palette, effective_parameters
from .pipeline import (
    CancellationToken,
    PipelineJob,
    PipelineRunner,
    ProcessingResult,
    apply_existing_palette,
    process_image,
    process_pixels,
)

__all__ = [
    "__version__",
    "colour_convert",
    "core_types",
    "utils",
    "Raster",
    "Color",
    "Palette",
    "DitherKernel",
    "FilterParameters",
    "QuantizationParameters",
    "DitherParameters",
    "bilateral_filter",
    "build_palette",
    "effective_parameters",
    "dither",
    "map_to_nearest",
    "CancellationToken",
    "PipelineJob",
    "PipelineRunner",
    "ProcessingResult",
    "process_image",
    "process_pixels",
    "apply_existing_palette",
    "EmbroideryQuantError",
    "InvalidParameterError",
    "UnsupportedError",
    "PipelineCancelledError",
    "PipelineTimeoutError",
]
