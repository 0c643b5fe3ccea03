import numpy as np
import pytest

from embroidery_quant.core_types import (
    Color,
    DitherKernel,
    Palette,
    Raster,
    hex_to_rgb,
    rgb_to_hex,
    round_half_up,
)
from embroidery_quant.errors import UnsupportedError


class TestRaster:
    def test_size_mismatch_rejected(self):
        with pytest.raises(UnsupportedError):
            Raster(2, 2, np.zeros(15, dtype=np.uint8))

    def test_pixels_are_copied_and_read_only(self):
        src = np.zeros(16, dtype=np.uint8)
        r = Raster(2, 2, src)
        src[:] = 7
        assert r.pixels.max() == 0
        assert not r.pixels.flags.writeable
        with pytest.raises(ValueError):
            r.as_array()[0, 0, 0] = 1

    def test_from_rgb_array_gets_opaque_alpha(self):
        r = Raster.from_array(np.full((3, 2, 3), 9, dtype=np.uint8))
        assert (r.width, r.height) == (2, 3)
        assert np.all(r.as_array()[..., 3] == 255)

    def test_from_bytes_and_back(self):
        data = bytes(range(16))
        assert Raster.from_bytes(data, 2, 2).tobytes() == data

    def test_empty(self):
        assert Raster.empty().is_empty
        assert Raster.empty().pixel_count == 0

    def test_equality_by_content(self):
        assert Raster.filled(2, 1, (1, 2, 3, 4)) == Raster.filled(2, 1, (1, 2, 3, 4))
        assert Raster.filled(2, 1, (1, 2, 3, 4)) != Raster.filled(2, 1, (1, 2, 3, 5))


class TestColor:
    def test_clamped_and_rounded_half_up(self):
        c = Color(300, -5, 127.5)
        assert c.rgba == (255, 0, 128, 255)

    def test_hex(self):
        assert Color(255, 8, 0).hex == "#ff0800"
        assert rgb_to_hex((1, 2, 3)) == "#010203"
        assert hex_to_rgb("#abc") == (0xAA, 0xBB, 0xCC)

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-0.5) == 0


class TestPalette:
    def test_duplicates_rejected(self):
        with pytest.raises(ValueError):
            Palette((Color(1, 1, 1), Color(1, 1, 1, 0)))

    def test_from_rgb_dedupes_in_order(self):
        p = Palette.from_rgb([(1, 2, 3), (4, 5, 6), (1, 2, 3)])
        assert p.to_rgb_list() == [(1, 2, 3), (4, 5, 6)]
        assert p.rgb_array().shape == (2, 3)
        assert p.lab_array().shape == (2, 3)


class TestDitherKernel:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("FloydSteinberg", DitherKernel.FLOYD_STEINBERG),
            ("floyd-steinberg", DitherKernel.FLOYD_STEINBERG),
            ("sierra_lite", DitherKernel.SIERRA_LITE),
            ("Sierra2", DitherKernel.SIERRA2),
            ("none", DitherKernel.NONE),
            (None, DitherKernel.NONE),
        ],
    )
    def test_parse(self, name, expected):
        assert DitherKernel.parse(name) is expected

    def test_unknown(self):
        with pytest.raises(UnsupportedError) as e:
            DitherKernel.parse("ordered")
        assert e.value.stage == "config"
