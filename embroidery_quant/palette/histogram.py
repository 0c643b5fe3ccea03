# embroidery_quant/palette/histogram.py
from __future__ import annotations

"""
Exact-match colour histograms.

Counting splits the sampled pixels into bands, counts each band with
np.unique, then merges the per-band tables with one more reduce.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from ..core_types import Raster
from ..errors import InvalidParameterError
from ..utils import pack_rgb, split_rows_into_parts, unpack_rgb

# Below this many samples threading costs more than it saves.
PARALLEL_MIN_SAMPLES = 65_536


def sample_rgb(raster: Raster, max_samples: Optional[int] = None) -> np.ndarray:
    """
    RGB rows of the visible (alpha > 0) pixels, or of every pixel when none
    is visible. With max_samples, rows are stride-sampled deterministically.
    """
    flat = raster.as_array().reshape(-1, 4)
    visible = flat[:, 3] > 0
    rows = flat[visible, :3] if np.any(visible) else flat[:, :3]
    if max_samples is not None and max_samples > 0 and rows.shape[0] > max_samples:
        step = -(-rows.shape[0] // int(max_samples))
        rows = rows[::step]
    return rows


def _count_keys(keys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    uniq, counts = np.unique(keys, return_counts=True)
    return uniq, counts.astype(np.int64, copy=False)


def colour_histogram(
    raster: Raster,
    *,
    max_samples: Optional[int] = None,
    workers: int = 1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Count distinct RGB triples.

    Returns:
      (uint8 [U,3] colours sorted by packed RGB key, int64 [U] counts)
    Raises:
      InvalidParameterError for an empty raster
    """
    if raster.is_empty:
        raise InvalidParameterError("cannot build a palette from an empty raster", stage="palette")

    keys = pack_rgb(sample_rgb(raster, max_samples))
    if workers <= 1 or keys.shape[0] < PARALLEL_MIN_SAMPLES:
        uniq, counts = _count_keys(keys)
        return unpack_rgb(uniq), counts

    spans = split_rows_into_parts(keys.shape[0], workers)
    with ThreadPoolExecutor(max_workers=workers) as ex:
        parts: List[Tuple[np.ndarray, np.ndarray]] = list(
            ex.map(lambda span: _count_keys(keys[span[0] : span[1]]), spans)
        )

    all_keys = np.concatenate([k for k, _ in parts])
    all_counts = np.concatenate([c for _, c in parts])
    uniq, inverse = np.unique(all_keys, return_inverse=True)
    merged = np.bincount(inverse.reshape(-1), weights=all_counts, minlength=uniq.shape[0])
    return unpack_rgb(uniq), np.rint(merged).astype(np.int64)


def frequency_order(colours: np.ndarray, counts: np.ndarray) -> np.ndarray:
    """Indices sorted by count descending; ties keep packed-key order."""
    keys = pack_rgb(colours)
    return np.lexsort((keys, -counts))


__all__ = ["sample_rgb", "colour_histogram", "frequency_order"]
