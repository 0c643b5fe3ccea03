import numpy as np
from PIL import Image

from embroidery_quant.core_types import Raster
from embroidery_quant.image_io import (
    image_to_raster,
    is_image_file,
    load_raster,
    raster_to_image,
    resize_to_height,
    save_raster,
    validate_image_file,
)


class TestRoundTrip:
    def test_png_keeps_alpha(self, tmp_path, rng):
        src = Raster.from_array(rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8))
        path = save_raster(tmp_path / "out.png", src)
        assert load_raster(path) == src

    def test_jpeg_is_opaque(self, tmp_path, gradient):
        path = save_raster(tmp_path / "out.jpg", gradient)
        loaded = load_raster(path)
        assert (loaded.width, loaded.height) == (gradient.width, gradient.height)
        assert np.all(loaded.as_array()[..., 3] == 255)

    def test_unknown_suffix_becomes_png(self, tmp_path, red_2x2):
        path = save_raster(tmp_path / "out.bmp", red_2x2)
        assert path.suffix == ".png"
        assert is_image_file(path)

    def test_pillow_conversion(self):
        im = Image.new("RGB", (3, 2), (10, 20, 30))
        raster = image_to_raster(im)
        assert raster.as_array()[0, 0].tolist() == [10, 20, 30, 255]
        assert raster_to_image(raster).size == (3, 2)


class TestResize:
    def test_never_upscales(self, gradient):
        assert resize_to_height(gradient, 100, Image.Resampling.NEAREST) is gradient

    def test_keeps_aspect(self, gradient):
        small = resize_to_height(gradient, 12, Image.Resampling.NEAREST)
        assert (small.width, small.height) == (12, 12)


class TestValidation:
    def test_valid_png(self, tmp_path, red_2x2):
        path = save_raster(tmp_path / "ok.png", red_2x2)
        check = validate_image_file(path)
        assert check.is_valid
        assert (check.width, check.height) == (2, 2)
        assert check.has_transparency

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "x.gif"
        Image.new("RGB", (2, 2)).save(path)
        assert not validate_image_file(path).is_valid

    def test_missing(self, tmp_path):
        check = validate_image_file(tmp_path / "missing.png")
        assert not check.is_valid
        assert any("not found" in e for e in check.errors)

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "fake.png"
        path.write_bytes(b"hello")
        assert not validate_image_file(path).is_valid
        assert not is_image_file(path)
