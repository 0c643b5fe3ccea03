# embroidery_quant/dither/kernels.py
from __future__ import annotations

"""
Error-diffusion kernels as (dx, dy, weight) taps relative to the current pixel.

Only forward taps: dy > 0, or dy == 0 with dx > 0.
"""

from typing import Dict, Tuple

from ..core_types import DitherKernel, Tap

KernelTaps = Tuple[Tap, ...]


def _scaled(taps: Tuple[Tuple[int, int, int], ...], divisor: int) -> KernelTaps:
    return tuple((dx, dy, w / divisor) for dx, dy, w in taps)


# Floyd-Steinberg (weights sum to 16).
KERNEL_FS: KernelTaps = _scaled(
    (
        (1, 0, 7),
        (-1, 1, 3),
        (0, 1, 5),
        (1, 1, 1),
    ),
    16,
)

# Atkinson diffuses only 6/8 of the error.
KERNEL_ATKINSON: KernelTaps = _scaled(
    (
        (1, 0, 1),
        (2, 0, 1),
        (-1, 1, 1),
        (0, 1, 1),
        (1, 1, 1),
        (0, 2, 1),
    ),
    8,
)

KERNEL_BURKES: KernelTaps = _scaled(
    (
        (1, 0, 8),
        (2, 0, 4),
        (-2, 1, 2),
        (-1, 1, 4),
        (0, 1, 8),
        (1, 1, 4),
        (2, 1, 2),
    ),
    32,
)

KERNEL_STUCKI: KernelTaps = _scaled(
    (
        (1, 0, 8),
        (2, 0, 4),
        (-2, 1, 2),
        (-1, 1, 4),
        (0, 1, 8),
        (1, 1, 4),
        (2, 1, 2),
        (-2, 2, 1),
        (-1, 2, 2),
        (0, 2, 4),
        (1, 2, 2),
        (2, 2, 1),
    ),
    42,
)

# Three-row Sierra.
KERNEL_SIERRA3: KernelTaps = _scaled(
    (
        (1, 0, 5),
        (2, 0, 3),
        (-2, 1, 2),
        (-1, 1, 4),
        (0, 1, 5),
        (1, 1, 4),
        (2, 1, 2),
        (-1, 2, 2),
        (0, 2, 3),
        (1, 2, 2),
    ),
    32,
)

# Two-row Sierra.
KERNEL_SIERRA2: KernelTaps = _scaled(
    (
        (1, 0, 4),
        (2, 0, 3),
        (-2, 1, 1),
        (-1, 1, 2),
        (0, 1, 3),
        (1, 1, 2),
        (2, 1, 1),
    ),
    16,
)

KERNEL_SIERRA_LITE: KernelTaps = _scaled(
    (
        (1, 0, 2),
        (-1, 1, 1),
        (0, 1, 1),
    ),
    4,
)

KERNELS: Dict[DitherKernel, KernelTaps] = {
    DitherKernel.NONE: (),
    DitherKernel.FLOYD_STEINBERG: KERNEL_FS,
    DitherKernel.ATKINSON: KERNEL_ATKINSON,
    DitherKernel.BURKES: KERNEL_BURKES,
    DitherKernel.STUCKI: KERNEL_STUCKI,
    DitherKernel.SIERRA2: KERNEL_SIERRA2,
    DitherKernel.SIERRA3: KERNEL_SIERRA3,
    DitherKernel.SIERRA_LITE: KERNEL_SIERRA_LITE,
}


def kernel_taps(kernel: DitherKernel, mirror: bool = False) -> KernelTaps:
    """Taps for a kernel; mirror flips dx for right-to-left rows."""
    taps = KERNELS[DitherKernel.parse(kernel)]
    if not mirror:
        return taps
    return tuple((-dx, dy, w) for dx, dy, w in taps)


def kernel_weight_sum(kernel: DitherKernel) -> float:
    return float(sum(w for _, _, w in KERNELS[DitherKernel.parse(kernel)]))


__all__ = [
    "KernelTaps",
    "KERNELS",
    "KERNEL_FS",
    "KERNEL_ATKINSON",
    "KERNEL_BURKES",
    "KERNEL_STUCKI",
    "KERNEL_SIERRA2",
    "KERNEL_SIERRA3",
    "KERNEL_SIERRA_LITE",
    "kernel_taps",
    "kernel_weight_sum",
]
