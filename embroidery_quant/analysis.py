# embroidery_quant/analysis.py
from __future__ import annotations

"""
Quality metrics for a processed image against its source.

All metrics use visible (alpha > 0) pixels only, or every pixel when nothing
is visible.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .colour_convert import rgb_to_lab
from .core_types import Palette, Raster, rgb_to_hex
from .errors import InvalidParameterError

# Rec. 601 luma weights used for the structural metrics.
_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)

# SSIM stabilisers for 8-bit data.
_SSIM_C1 = (0.01 * 255.0) ** 2
_SSIM_C2 = (0.03 * 255.0) ** 2


@dataclass(frozen=True)
class QualityMetrics:
    psnr: float
    ssim: float
    mean_delta_e: float
    colour_accuracy: float
    edge_preservation: float


def _paired_rgb(reference: Raster, candidate: Raster) -> Tuple[np.ndarray, np.ndarray]:
    if (reference.width, reference.height) != (candidate.width, candidate.height):
        raise InvalidParameterError(
            f"size mismatch {reference.width}x{reference.height} vs "
            f"{candidate.width}x{candidate.height}",
            stage="analysis",
        )
    if reference.is_empty:
        raise InvalidParameterError("cannot measure an empty raster", stage="analysis")
    ref = reference.as_array().reshape(-1, 4)
    cand = candidate.as_array().reshape(-1, 4)
    visible = ref[:, 3] > 0
    if not np.any(visible):
        visible = np.ones(ref.shape[0], dtype=bool)
    return ref[visible, :3].astype(np.float64), cand[visible, :3].astype(np.float64)


def psnr(reference: Raster, candidate: Raster) -> float:
    """Peak signal-to-noise ratio over RGB in dB; inf for identical images."""
    ref, cand = _paired_rgb(reference, candidate)
    mse = float(np.mean((ref - cand) ** 2))
    if mse == 0.0:
        return math.inf
    return 10.0 * math.log10(255.0 * 255.0 / mse)


def mean_delta_e(reference: Raster, candidate: Raster) -> float:
    """Mean Euclidean Lab distance per pixel."""
    ref, cand = _paired_rgb(reference, candidate)
    diff = rgb_to_lab(ref) - rgb_to_lab(cand)
    return float(np.mean(np.sqrt(np.sum(diff * diff, axis=1))))


def _luma(raster: Raster) -> np.ndarray:
    return raster.as_array()[..., :3].astype(np.float64) @ _LUMA


def global_ssim(reference: Raster, candidate: Raster) -> float:
    """Single-window SSIM on luma; 1.0 for identical images."""
    _paired_rgb(reference, candidate)
    x = _luma(reference).reshape(-1)
    y = _luma(candidate).reshape(-1)
    mx, my = float(x.mean()), float(y.mean())
    vx, vy = float(x.var()), float(y.var())
    cov = float(np.mean((x - mx) * (y - my)))
    num = (2.0 * mx * my + _SSIM_C1) * (2.0 * cov + _SSIM_C2)
    den = (mx * mx + my * my + _SSIM_C1) * (vx + vy + _SSIM_C2)
    return num / den


def _gradient_magnitude(luma: np.ndarray) -> np.ndarray:
    gx = np.zeros_like(luma)
    gy = np.zeros_like(luma)
    gx[:, 1:] = np.abs(luma[:, 1:] - luma[:, :-1])
    gy[1:, :] = np.abs(luma[1:, :] - luma[:-1, :])
    return gx + gy


def edge_preservation(reference: Raster, candidate: Raster) -> float:
    """
    Correlation of luma gradient magnitudes, clipped to [0, 1].
    Flat references (no gradient anywhere) score 1.0.
    """
    _paired_rgb(reference, candidate)
    ga = _gradient_magnitude(_luma(reference)).reshape(-1)
    gb = _gradient_magnitude(_luma(candidate)).reshape(-1)
    sa, sb = float(ga.std()), float(gb.std())
    if sa == 0.0:
        return 1.0
    if sb == 0.0:
        return 0.0
    corr = float(np.mean((ga - ga.mean()) * (gb - gb.mean())) / (sa * sb))
    return max(0.0, min(1.0, corr))


def quality_metrics(reference: Raster, candidate: Raster) -> QualityMetrics:
    """
    All metrics at once. colour_accuracy maps mean delta E onto 0..100
    (100 = identical, 0 = mean delta E of 100 or more).
    """
    de = mean_delta_e(reference, candidate)
    return QualityMetrics(
        psnr=psnr(reference, candidate),
        ssim=global_ssim(reference, candidate),
        mean_delta_e=de,
        colour_accuracy=max(0.0, 100.0 - de),
        edge_preservation=edge_preservation(reference, candidate),
    )


def colour_usage_report(
    raster: Raster, palette: Optional[Palette] = None
) -> List[Tuple[str, int]]:
    """
    Visible pixel count per colour as (hex, count), most used first.

    With a palette, every palette colour is listed (unused ones with 0) and
    ties keep palette order.
    """
    flat = raster.as_array().reshape(-1, 4)
    visible = flat[flat[:, 3] > 0, :3]
    uniques, counts = (
        np.unique(visible, axis=0, return_counts=True)
        if visible.shape[0]
        else (np.zeros((0, 3), dtype=np.uint8), np.zeros((0,), dtype=np.int64))
    )
    usage = {rgb_to_hex(row): int(c) for row, c in zip(uniques.tolist(), counts.tolist())}
    if palette is None:
        return sorted(usage.items(), key=lambda kv: (-kv[1], kv[0]))

    report = [(c.hex, usage.pop(c.hex, 0)) for c in palette]
    report.sort(key=lambda kv: -kv[1])
    report.extend(sorted(usage.items(), key=lambda kv: (-kv[1], kv[0])))
    return report


__all__ = [
    "QualityMetrics",
    "psnr",
    "mean_delta_e",
    "global_ssim",
    "edge_preservation",
    "quality_metrics",
    "colour_usage_report",
]
