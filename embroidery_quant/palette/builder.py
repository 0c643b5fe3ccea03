# embroidery_quant/palette/builder.py
from __future__ import annotations

"""
Palette construction.

Steps:
  1. Exact-match histogram of the (optionally downsampled) raster.
  2. Reserve hue slots: the hue circle is cut into `min_hue_colors` sectors and
     every non-empty sector donates its most frequent chromatic colour, so rare
     accents survive.
  3. Split the remaining slots by weighted variance in Lab: the box with the
     largest weighted SSE is cut at the weighted median of its widest axis,
     then a few weighted Lloyd passes tighten the groups.
  4. Each group is represented by its frequency-weighted RGB centroid.

Everything is deterministic: ties are broken by packed RGB key or index.
"""

from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from ..colour_convert import lab_to_lch, rgb_to_lab
from ..constants import (
    EMBROIDERY_HUE_DIVISOR,
    EMBROIDERY_MAX_DITHER_INTENSITY,
    EMBROIDERY_MIN_HUE_COLORS,
    EMBROIDERY_SMALL_PALETTE,
    HUE_MIN_CHROMA,
    MAX_COLOR_COUNT,
    MIN_COLOR_COUNT,
    PALETTE_MAX_SAMPLES,
    PALETTE_REFINE_PASSES,
)
from ..core_types import DitherParameters, Palette, QuantizationParameters, Raster
from ..errors import InvalidParameterError
from ..utils import debug_log, key_value_pairs_to_string, nearest_palette_indices_lab_distance
from .histogram import colour_histogram, frequency_order


def validate_quantization_parameters(params: QuantizationParameters) -> None:
    """Reject out-of-range colour counts before any pixel work."""
    count = params.color_count
    if int(count) != count or not MIN_COLOR_COUNT <= count <= MAX_COLOR_COUNT:
        raise InvalidParameterError(
            f"color_count must be an integer in [{MIN_COLOR_COUNT}, {MAX_COLOR_COUNT}], got {count}",
            stage="palette",
        )
    if int(params.min_hue_colors) != params.min_hue_colors or params.min_hue_colors < 0:
        raise InvalidParameterError(
            f"min_hue_colors must be >= 0, got {params.min_hue_colors}",
            stage="palette",
        )


def effective_parameters(
    quant: QuantizationParameters, dither: DitherParameters
) -> Tuple[QuantizationParameters, DitherParameters]:
    """
    Apply the embroidery adjustments.

    With embroidery_optimized: min_hue_colors = max(2, color_count // 8), and
    for palettes of 16 colours or fewer the dither intensity is capped at 0.05.
    Without it both inputs are returned unchanged.
    """
    if not quant.embroidery_optimized:
        return quant, dither
    quant_eff = replace(
        quant,
        min_hue_colors=max(
            EMBROIDERY_MIN_HUE_COLORS, int(quant.color_count) // EMBROIDERY_HUE_DIVISOR
        ),
    )
    dither_eff = dither
    if quant.color_count <= EMBROIDERY_SMALL_PALETTE:
        dither_eff = replace(
            dither, intensity=min(EMBROIDERY_MAX_DITHER_INTENSITY, dither.intensity)
        )
    return quant_eff, dither_eff


# Hue reservation


def reserve_hue_slots(
    lab: np.ndarray, counts: np.ndarray, sectors: int, limit: int
) -> List[int]:
    """
    Pick one colour per non-empty hue sector.

    Args:
      lab: [U,3] Lab rows of the distinct colours
      counts: [U] pixel counts
      sectors: number of equal hue sectors (0 disables reservation)
      limit: maximum number of reserved slots
    Returns:
      indices into the distinct colours, most frequent sector first
    """
    if sectors <= 0 or limit <= 0 or lab.shape[0] == 0:
        return []
    lch = lab_to_lch(lab)
    chromatic = lch[:, 1] > HUE_MIN_CHROMA
    sector_width = 360.0 / float(sectors)
    sector_of = np.minimum((lch[:, 2] // sector_width).astype(np.int64), sectors - 1)

    picks: List[Tuple[int, int, int]] = []
    for s in range(sectors):
        members = np.nonzero(chromatic & (sector_of == s))[0]
        if members.size == 0:
            continue
        best = int(members[int(np.argmax(counts[members]))])
        picks.append((-int(counts[best]), s, best))
    picks.sort()
    return [best for _, _, best in picks[:limit]]


# Variance partition


def _weighted_sse(points: np.ndarray, weights: np.ndarray) -> float:
    total = float(weights.sum())
    if total <= 0.0 or points.shape[0] < 2:
        return 0.0
    mean = (points * weights[:, None]).sum(axis=0) / total
    diff = points - mean
    return float((weights * np.sum(diff * diff, axis=1)).sum())


def _split_box(
    members: np.ndarray, lab: np.ndarray, counts: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Cut a box at the weighted median of its highest-variance Lab axis."""
    pts = lab[members]
    w = counts[members].astype(np.float64)
    mean = (pts * w[:, None]).sum(axis=0) / w.sum()
    axis_var = (w[:, None] * (pts - mean) ** 2).sum(axis=0)
    axis = int(np.argmax(axis_var))

    order = np.argsort(pts[:, axis], kind="stable")
    cum = np.cumsum(w[order])
    cut = int(np.searchsorted(cum, cum[-1] / 2.0, side="left")) + 1
    cut = min(max(cut, 1), members.shape[0] - 1)
    return members[order[:cut]], members[order[cut:]]


def partition_colours(
    rgb: np.ndarray,
    lab: np.ndarray,
    counts: np.ndarray,
    groups: int,
    *,
    refine_passes: int = PALETTE_REFINE_PASSES,
) -> np.ndarray:
    """
    Reduce distinct colours to at most `groups` weighted RGB centroids.

    Returns:
      uint8 [G,3] representatives ordered by group weight (heaviest first)
    """
    n = rgb.shape[0]
    if groups <= 0 or n == 0:
        return np.zeros((0, 3), dtype=np.uint8)

    boxes: List[Tuple[float, np.ndarray]] = [
        (_weighted_sse(lab, counts.astype(np.float64)), np.arange(n))
    ]
    while len(boxes) < groups:
        best_i: Optional[int] = None
        for i, (sse, members) in enumerate(boxes):
            if members.shape[0] < 2 or sse <= 0.0:
                continue
            if best_i is None or sse > boxes[best_i][0]:
                best_i = i
        if best_i is None:
            break
        _, members = boxes.pop(best_i)
        for half in _split_box(members, lab, counts):
            w = counts[half].astype(np.float64)
            boxes.insert(best_i, (_weighted_sse(lab[half], w), half))
            best_i += 1

    weights = counts.astype(np.float64)
    labels = np.empty(n, dtype=np.int64)
    for g, (_, members) in enumerate(boxes):
        labels[members] = g

    k = len(boxes)
    for _ in range(max(0, int(refine_passes))):
        sums = np.zeros((k, 3), dtype=np.float64)
        np.add.at(sums, labels, lab * weights[:, None])
        totals = np.bincount(labels, weights=weights, minlength=k)
        centroids = np.zeros((k, 3), dtype=np.float64)
        filled = totals > 0
        centroids[filled] = sums[filled] / totals[filled, None]
        if not np.all(filled):
            # Drop emptied groups; they cannot attract members anymore.
            keep = np.nonzero(filled)[0]
            centroids = centroids[keep]
            k = keep.shape[0]
        new_labels = nearest_palette_indices_lab_distance(lab, centroids)
        if np.array_equal(new_labels, labels):
            break
        labels = new_labels

    totals = np.bincount(labels, weights=weights, minlength=k)
    rgb_sums = np.zeros((k, 3), dtype=np.float64)
    np.add.at(rgb_sums, labels, rgb.astype(np.float64) * weights[:, None])

    used = np.nonzero(totals > 0)[0]
    reps = np.floor(rgb_sums[used] / totals[used, None] + 0.5)
    reps = np.clip(reps, 0, 255).astype(np.uint8)
    order = np.argsort(-totals[used], kind="stable")
    return reps[order]


# Public entry points


def build_palette(
    raster: Raster,
    params: QuantizationParameters,
    *,
    workers: int = 1,
    max_samples: Optional[int] = PALETTE_MAX_SAMPLES,
    debug: bool = False,
) -> Palette:
    """
    Build a palette of exactly `params.color_count` colours, or of every
    distinct colour when the raster has fewer.

    Raises:
      InvalidParameterError for an out-of-range colour count or an empty raster
    """
    validate_quantization_parameters(params)
    if raster.is_empty:
        raise InvalidParameterError("cannot build a palette from an empty raster", stage="palette")
    params, _ = effective_parameters(params, DitherParameters())
    color_count = int(params.color_count)

    rgb, counts = colour_histogram(raster, max_samples=max_samples, workers=workers)
    by_frequency = frequency_order(rgb, counts)
    if rgb.shape[0] <= color_count:
        return Palette.from_rgb(rgb[by_frequency].tolist())

    lab = rgb_to_lab(rgb)
    reserved = reserve_hue_slots(lab, counts, int(params.min_hue_colors), color_count)
    groups = partition_colours(rgb, lab, counts, color_count - len(reserved))

    rows = [rgb[i].tolist() for i in reserved] + groups.tolist()
    palette = Palette.from_rgb(rows)
    if len(palette) < color_count:
        # Duplicate centroids collapsed; top up with frequent exact colours.
        present = set(palette.to_rgb_list())
        extra = []
        for i in by_frequency:
            row = tuple(int(v) for v in rgb[i])
            if row in present:
                continue
            extra.append(row)
            present.add(row)
            if len(palette) + len(extra) >= color_count:
                break
        palette = Palette.from_rgb(rows + extra)

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Distinct colours", int(rgb.shape[0])),
                    ("Hue sectors", int(params.min_hue_colors)),
                    ("Reserved", len(reserved)),
                    ("Palette", len(palette)),
                ]
            )
        )
    return palette


def top_frequency_palette(raster: Raster, color_count: int) -> Palette:
    """The `color_count` most frequent exact colours (no merging)."""
    validate_quantization_parameters(QuantizationParameters(color_count=color_count, min_hue_colors=0))
    rgb, counts = colour_histogram(raster)
    order = frequency_order(rgb, counts)[: int(color_count)]
    return Palette.from_rgb(rgb[order].tolist())


__all__ = [
    "validate_quantization_parameters",
    "effective_parameters",
    "reserve_hue_slots",
    "partition_colours",
    "build_palette",
    "top_frequency_palette",
]
