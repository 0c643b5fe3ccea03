# embroidery_quant/utils.py
from __future__ import annotations

"""
Shared utilities for embroidery_quant.

Includes duration formatting, row-band splitting for threaded stages,
nearest-palette lookups, and tidy console logging.
"""

import sys
from typing import Any, Iterable, List, Tuple

import numpy as np

from .core_types import Lab


#  Time formatting


def format_seconds_compact(seconds: float) -> str:
    """Human-friendly seconds: '<ms>ms', '<s>s', or 'Mm Ss'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds - 60 * minutes:.1f}s"


# Row bands


def split_rows_into_parts(height: int, parts: int) -> List[Tuple[int, int]]:
    """Partition range [0, height) into ~parts contiguous [start, end) row spans."""
    parts = max(1, int(parts))
    step = max(1, (height + parts - 1) // parts)
    return [(start, min(start + step, height)) for start in range(0, height, step)]


def split_rows_with_halo(
    height: int, parts: int, halo: int
) -> List[Tuple[int, int, int, int]]:
    """
    Split rows into bands plus a halo so neighbourhood ops stay exact across
    seams. Returns (start, end, start_pad, end_pad) per band.
    """
    out: List[Tuple[int, int, int, int]] = []
    for start, end in split_rows_into_parts(height, parts):
        out.append((start, end, max(0, start - halo), min(height, end + halo)))
    return out


# Palette lookups


def nearest_palette_indices_lab_distance(
    src_lab: Lab, pal_lab: Lab, chunk: int = 8192
) -> np.ndarray:
    """
    For each source Lab row, pick the nearest palette row by Euclidean distance.
    Ties resolve to the lowest palette index. Rows are processed in chunks to
    bound the [chunk, P] distance matrix.
    """
    out = np.empty(src_lab.shape[0], dtype=np.int64)
    for start in range(0, src_lab.shape[0], chunk):
        block = src_lab[start : start + chunk]
        diff = pal_lab[None, :, :] - block[:, None, :]
        dist2 = np.sum(diff * diff, axis=2)
        out[start : start + block.shape[0]] = np.argmin(dist2, axis=1)
    return out


def unique_rgb_with_inverse(rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Unique rows of an (N,3) uint8 array plus the inverse index, via packed
    24-bit keys (sorted by key).
    """
    rgb = np.asarray(rgb, dtype=np.uint8).reshape(-1, 3)
    keys = pack_rgb(rgb)
    uniq_keys, inverse = np.unique(keys, return_inverse=True)
    return unpack_rgb(uniq_keys), inverse.reshape(-1)


def pack_rgb(rgb: np.ndarray) -> np.ndarray:
    """(N,3) uint8 -> (N,) uint32 keys 0xRRGGBB."""
    rgb32 = rgb.astype(np.uint32, copy=False)
    return (rgb32[:, 0] << 16) | (rgb32[:, 1] << 8) | rgb32[:, 2]


def unpack_rgb(keys: np.ndarray) -> np.ndarray:
    """(N,) uint32 keys -> (N,3) uint8."""
    keys = np.asarray(keys, dtype=np.uint32)
    out = np.empty((keys.shape[0], 3), dtype=np.uint8)
    out[:, 0] = (keys >> 16) & 0xFF
    out[:, 1] = (keys >> 8) & 0xFF
    out[:, 2] = keys & 0xFF
    return out


# Pretty logging


def format_bool_on_off(value: Any) -> str:
    """Pretty boolean: 'on'/'off' for bools; str(value) otherwise."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def format_number_compact(value: Any) -> str:
    """Pretty number: 1,234 style for ints; compact for floats; passthrough otherwise."""
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    return str(value)


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """Format (name, value) pairs as 'Name: value' blocks separated by sep."""
    out: List[str] = []
    for name, value in pairs:
        display = (
            format_bool_on_off(value)
            if isinstance(value, bool)
            else format_number_compact(value)
        )
        out.append(f"{name}{eq}{display}")
    return sep.join(out)


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    """
    Emit a single human-readable config line, e.g.:
      [filter] Sigma space: 15  Sigma colour: 30  Kernel: 9  Iterations: 1
    Routes to debug_log() when debug=True, else to log().
    """
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    (debug_log if debug else log)(line)


def print_banner(title: str) -> None:
    """Section banner."""
    print(f"\n=== {title} ===", flush=True)


def log(message: str) -> None:
    """Plain log line."""
    print(message, flush=True)


def debug_log(message: str) -> None:
    """Debug log line."""
    print(f"[debug] {message}", flush=True)


def warn(message: str) -> None:
    """Warning log line."""
    print(f"[warn] {message}", flush=True)


def error(message: str) -> None:
    """Error log line to stderr."""
    print(f"[error] {message}", file=sys.stderr, flush=True)


def enable_line_buffered_stdout() -> None:
    """Enable line-buffered stdout when the stream supports .reconfigure()."""
    reconfig = getattr(sys.stdout, "reconfigure", None)
    if callable(reconfig):
        try:
            reconfig(line_buffering=True, write_through=True)
        except (OSError, ValueError):
            pass


__all__ = [
    "format_seconds_compact",
    "split_rows_into_parts",
    "split_rows_with_halo",
    "nearest_palette_indices_lab_distance",
    "unique_rgb_with_inverse",
    "pack_rgb",
    "unpack_rgb",
    "format_bool_on_off",
    "format_number_compact",
    "key_value_pairs_to_string",
    "print_config_line",
    "print_banner",
    "log",
    "debug_log",
    "warn",
    "error",
    "enable_line_buffered_stdout",
]
