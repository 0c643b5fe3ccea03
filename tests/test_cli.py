import json
import threading
import time

import numpy as np

from embroidery_quant import pipeline
from embroidery_quant.cli import (
    EXIT_CANCELLED,
    EXIT_INVALID,
    EXIT_OK,
    build_arg_parser,
    main,
    resolve_config,
)
from embroidery_quant.core_types import DitherKernel
from embroidery_quant.image_io import load_raster, save_raster


def _write_input(tmp_path, raster):
    return save_raster(tmp_path / "in.png", raster)


class TestResolveConfig:
    def test_flags_override_preset(self):
        args = build_arg_parser().parse_args(
            ["x.png", "--preset", "embroidery-16", "--colors", "12", "--dither", "Burkes"]
        )
        config = resolve_config(args)
        assert config.quantization.color_count == 12
        assert config.quantization.embroidery_optimized
        assert config.dither.kernel is DitherKernel.BURKES
        assert config.dither.intensity == 0.05

    def test_params_file(self, tmp_path):
        path = tmp_path / "p.json"
        path.write_text(json.dumps({"filter": {"kernel_size": 3}}))
        args = build_arg_parser().parse_args(["x.png", "--params", str(path), "--no-serpentine"])
        config = resolve_config(args)
        assert config.filter.kernel_size == 3
        assert config.dither.serpentine is False


class TestMain:
    def test_writes_output(self, tmp_path, checkerboard):
        src = _write_input(tmp_path, checkerboard)
        out = tmp_path / "result.png"
        code = main([str(src), str(out), "--colors", "2", "--workers", "1"])
        assert code == EXIT_OK
        assert load_raster(out) == checkerboard

    def test_default_output_name(self, tmp_path, gradient):
        src = _write_input(tmp_path, gradient)
        code = main([str(src), "--colors", "4", "--kernel-size", "3", "--workers", "1"])
        assert code == EXIT_OK
        out = load_raster(tmp_path / "in_embroidery.png")
        colours = np.unique(out.as_array()[..., :3].reshape(-1, 3), axis=0)
        assert len(colours) <= 4

    def test_folder_with_outdir(self, tmp_path, red_2x2):
        src_dir = tmp_path / "src"
        out_dir = tmp_path / "out"
        src_dir.mkdir()
        out_dir.mkdir()
        save_raster(src_dir / "a.png", red_2x2)
        save_raster(src_dir / "b.png", red_2x2)
        assert main([str(src_dir), "--outdir", str(out_dir), "--colors", "2", "--workers", "1"]) == EXIT_OK
        assert sorted(p.name for p in out_dir.iterdir()) == ["a_embroidery.png", "b_embroidery.png"]

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / "nope.png")]) == EXIT_INVALID

    def test_invalid_colour_count(self, tmp_path, red_2x2):
        src = _write_input(tmp_path, red_2x2)
        assert main([str(src), "--colors", "1", "--workers", "1"]) == EXIT_INVALID

    def test_bad_params_file(self, tmp_path, red_2x2):
        src = _write_input(tmp_path, red_2x2)
        params = tmp_path / "p.json"
        params.write_text(json.dumps({"filter": {"radius": 3}}))
        assert main([str(src), "--params", str(params)]) == EXIT_INVALID

    def test_save_params(self, tmp_path, red_2x2):
        src = _write_input(tmp_path, red_2x2)
        params = tmp_path / "saved.json"
        assert main([str(src), "--colors", "2", "--save-params", str(params), "--workers", "1"]) == EXIT_OK
        assert json.loads(params.read_text())["quantization"]["color_count"] == 2

    def test_timeout_returns_promptly(self, tmp_path, red_2x2, monkeypatch):
        release = threading.Event()
        real_dither = pipeline.dither

        def slow_dither(*args, **kwargs):
            release.wait(10)
            return real_dither(*args, **kwargs)

        monkeypatch.setattr(pipeline, "dither", slow_dither)
        src = _write_input(tmp_path, red_2x2)
        t0 = time.perf_counter()
        code = main([str(src), "--colors", "2", "--timeout", "0.2", "--workers", "1"])
        elapsed = time.perf_counter() - t0
        release.set()
        assert code == EXIT_CANCELLED
        assert elapsed < 5.0
        assert not (tmp_path / "in_embroidery.png").exists()
