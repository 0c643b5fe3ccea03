"""Shared raster fixtures."""

import numpy as np
import pytest

from embroidery_quant.core_types import Raster


def make_raster(rgb: np.ndarray, alpha: int = 255) -> Raster:
    rgb = np.asarray(rgb, dtype=np.uint8)
    h, w = rgb.shape[:2]
    rgba = np.empty((h, w, 4), dtype=np.uint8)
    rgba[..., :3] = rgb
    rgba[..., 3] = alpha
    return Raster.from_array(rgba)


@pytest.fixture(name="make_raster")
def make_raster_fixture():
    return make_raster


@pytest.fixture
def red_2x2() -> Raster:
    return Raster.filled(2, 2, (255, 0, 0, 255))


@pytest.fixture
def checkerboard() -> Raster:
    """4x4 alternating black / white."""
    ys, xs = np.mgrid[0:4, 0:4]
    white = ((ys + xs) % 2 == 1)[..., None]
    rgb = np.where(white, 255, 0).repeat(3, axis=2)
    return make_raster(rgb)


@pytest.fixture
def gradient() -> Raster:
    """24x24 colour ramp with many distinct colours."""
    ys, xs = np.mgrid[0:24, 0:24]
    rgb = np.stack([xs * 10, ys * 10, (xs + ys) * 5], axis=2)
    return make_raster(rgb)


@pytest.fixture
def grey_ramp() -> Raster:
    """32x32 horizontal grey ramp."""
    xs = np.linspace(0, 255, 32).round().astype(np.uint8)
    rgb = np.broadcast_to(xs[None, :, None], (32, 32, 3))
    return make_raster(rgb)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
