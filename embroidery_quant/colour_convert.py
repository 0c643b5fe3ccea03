# embroidery_quant/colour_convert.py
from __future__ import annotations

"""
Colour conversions and metrics (D65).

Exports:
  rgb_to_linear(srgb)
  rgb_to_lab(rgb)
  lab_to_lch(lab)
  lab_distance(lab1, lab2)
  colour_distance(c1, c2)

All RGB inputs are 0..255 values of any numeric dtype.
"""

from typing import TYPE_CHECKING

import numpy as np

from .core_types import Lab, Lch

if TYPE_CHECKING:
    from .core_types import Color

# Reference white (D65)
XN, YN, ZN = 0.95047, 1.00000, 1.08883

_EPSILON = 216.0 / 24389.0
_KAPPA = 24389.0 / 27.0


# sRGB to linear


def rgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB (non-linear 0..1) to linear RGB (0..1). Vectorised.
    Returns float64 with the input shape.
    """
    srgb_f = np.asarray(srgb, dtype=np.float64)
    return np.where(
        srgb_f <= 0.04045, srgb_f / 12.92, ((srgb_f + 0.055) / 1.055) ** 2.4
    )


# sRGB to Lab (D65)


def rgb_to_lab(rgb: np.ndarray) -> Lab:
    """
    sRGB [0..255] to CIE Lab (D65).
    Preserves shape (...,3). Returns float64.
    """
    rgb_f = np.asarray(rgb, dtype=np.float64) / 255.0

    r_lin = rgb_to_linear(rgb_f[..., 0])
    g_lin = rgb_to_linear(rgb_f[..., 1])
    b_lin = rgb_to_linear(rgb_f[..., 2])

    # Linear RGB -> XYZ (D65)
    X = 0.4124564 * r_lin + 0.3575761 * g_lin + 0.1804375 * b_lin
    Y = 0.2126729 * r_lin + 0.7151522 * g_lin + 0.0721750 * b_lin
    Z = 0.0193339 * r_lin + 0.1191920 * g_lin + 0.9503041 * b_lin

    x, y, z = X / XN, Y / YN, Z / ZN

    def f(t: np.ndarray) -> np.ndarray:
        return np.where(t > _EPSILON, np.cbrt(t), (_KAPPA * t + 16.0) / 116.0)

    fx, fy, fz = f(x), f(y), f(z)

    out = np.empty(rgb_f.shape, dtype=np.float64)
    out[..., 0] = 116.0 * fy - 16.0
    out[..., 1] = 500.0 * (fx - fy)
    out[..., 2] = 200.0 * (fy - fz)
    return out


# Lab to LCh


def lab_to_lch(lab: Lab) -> Lch:
    """
    Lab[...,3] to LCh[...,3] (degrees in [0,360)).
    Shape is preserved.
    """
    orig_shape = lab.shape
    flat = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
    L = flat[:, 0]
    C = np.hypot(flat[:, 1], flat[:, 2])
    h = (np.degrees(np.arctan2(flat[:, 2], flat[:, 1])) + 360.0) % 360.0
    return np.stack([L, C, h], axis=1).reshape(orig_shape)


# Distances


def lab_distance(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """Euclidean Lab distance, broadcasting over leading axes."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def colour_distance(c1: "Color", c2: "Color") -> float:
    """
    Perceptual distance between two colours. Symmetric, zero iff the RGB
    channels match; alpha does not participate.
    """
    if c1.rgb == c2.rgb:
        return 0.0
    return float(lab_distance(np.array(c1.lab), np.array(c2.lab)))


__all__ = [
    "XN",
    "YN",
    "ZN",
    "rgb_to_linear",
    "rgb_to_lab",
    "lab_to_lch",
    "lab_distance",
    "colour_distance",
]
