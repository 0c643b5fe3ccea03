# embroidery_quant/constants.py
"""
Tunables, parameter bounds and presets used across the project.

- Bilateral filter bounds and size-based suggestions (FILTER_*)
- Palette builder knobs (PALETTE_*, HUE_*)
- Embroidery presets (EMBROIDERY_PRESETS) and filter quality presets
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from .core_types import (
    DitherKernel,
    DitherParameters,
    FilterParameters,
    QuantizationParameters,
)

# =================
# Bilateral filter
# =================

# Images above this many pixels get row-band threading when workers > 1.
FILTER_PARALLEL_MIN_ROWS: int = 64

# Longest side of the quick preview.
PREVIEW_MAX_SIZE: int = 512

# (pixel count threshold, sigma_space, sigma_color, kernel_size); first match wins.
FILTER_SIZE_TIERS: List[Tuple[int, float, float, int]] = [
    (1_000_000, 10.0, 25.0, 7),
    (500_000, 12.0, 30.0, 9),
    (0, 15.0, 35.0, 11),
]

FILTER_QUALITY_PRESETS: Dict[str, FilterParameters] = {
    "draft": FilterParameters(sigma_space=10.0, sigma_color=25.0, kernel_size=5),
    "standard": FilterParameters(sigma_space=15.0, sigma_color=30.0, kernel_size=9),
    "high": FilterParameters(
        sigma_space=15.0, sigma_color=35.0, kernel_size=11, iterations=2
    ),
}

# ================
# Palette builder
# ================
MIN_COLOR_COUNT: int = 2
MAX_COLOR_COUNT: int = 256

# Histogram sample cap; larger rasters are stride-sampled before counting.
PALETTE_MAX_SAMPLES: int = 250_000

# Weighted Lloyd passes after the box split.
PALETTE_REFINE_PASSES: int = 4

# Colours at or below this LCh chroma have no meaningful hue and are not
# eligible for the reserved hue slots.
HUE_MIN_CHROMA: float = 10.0

# Embroidery optimisation
EMBROIDERY_HUE_DIVISOR: int = 8
EMBROIDERY_MIN_HUE_COLORS: int = 2
EMBROIDERY_SMALL_PALETTE: int = 16
EMBROIDERY_MAX_DITHER_INTENSITY: float = 0.05

# ========
# Presets
# ========
EMBROIDERY_PRESETS: Dict[str, Tuple[QuantizationParameters, DitherParameters]] = {
    "embroidery-8": (
        QuantizationParameters(
            color_count=8, min_hue_colors=2, embroidery_optimized=True
        ),
        DitherParameters(DitherKernel.FLOYD_STEINBERG, intensity=0.03),
    ),
    "embroidery-16": (
        QuantizationParameters(
            color_count=16, min_hue_colors=2, embroidery_optimized=True
        ),
        DitherParameters(DitherKernel.ATKINSON, intensity=0.05),
    ),
    "embroidery-32": (
        QuantizationParameters(
            color_count=32, min_hue_colors=3, embroidery_optimized=True
        ),
        DitherParameters(DitherKernel.FLOYD_STEINBERG, intensity=0.08),
    ),
}

# ==============
# Image inputs
# ==============
SUPPORTED_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp")
MAX_FILE_BYTES: int = 5 * 1024 * 1024
LARGE_FILE_BYTES: int = 1024 * 1024
MAX_DIMENSION: int = 4096
