#!/usr/bin/env python3
"""
embroidery-quant
Reduce photos to a small thread palette for embroidery: bilateral smoothing,
palette build, then error-diffusion dithering.

Usage:
  embroidery-quant INPUT [OUTPUT] --colors N --dither KERNEL --intensity X
                   --preset NAME --params FILE.json --height H --workers W
                   --timeout SECONDS --debug

Input:
  A .png/.jpg/.jpeg/.webp file, or a folder of them. Alpha is preserved.

Output:
  If OUTPUT is omitted, writes <stem>_embroidery.png next to INPUT
  (or into --outdir).

Parameters are resolved in order: defaults, --preset, --params file, flags.

Exit codes:
  0 ok, 2 invalid input or parameters, 3 cancelled or timed out.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .analysis import colour_usage_report, quality_metrics
from .bilateral import optimal_filter_parameters
from .config import PRESET_NAMES, PipelineConfig, load_config, preset_config, save_config
from .constants import SUPPORTED_SUFFIXES
from .core_types import DitherKernel
from .errors import (
    EmbroideryQuantError,
    PipelineCancelledError,
    PipelineTimeoutError,
)
from .image_io import (
    load_raster,
    pillow_resample_from_name,
    resize_to_height,
    save_raster,
    validate_image_file,
)
from .pipeline import PipelineRunner
from .utils import (
    debug_log,
    enable_line_buffered_stdout,
    error,
    format_seconds_compact,
    key_value_pairs_to_string,
    log,
    print_banner,
    print_config_line,
    warn,
)

EXIT_OK = 0
EXIT_INVALID = 2
EXIT_CANCELLED = 3

OUTPUT_SUFFIX = "_embroidery"


def _default_workers() -> int:
    """Leave a few cores free for the system."""
    n = os.cpu_count() or 4
    reserve = 1 if n <= 6 else 2 if n <= 12 else 3 if n <= 18 else 4
    return max(1, n - reserve)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="embroidery-quant",
        description="Quantise image(s) to an embroidery-friendly palette.",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument("dst", type=Path, nargs="?", default=None, help="Output image (single file only)")
    parser.add_argument("--outdir", type=Path, default=None, help="Output directory (optional)")

    parser.add_argument("--preset", choices=PRESET_NAMES, default=None, help="Named preset")
    parser.add_argument("--params", type=Path, default=None, help="JSON parameter file")
    parser.add_argument("--save-params", type=Path, default=None, help="Write the resolved parameters as JSON")

    grp_f = parser.add_argument_group("filter")
    grp_f.add_argument("--sigma-space", type=float, default=None)
    grp_f.add_argument("--sigma-color", type=float, default=None)
    grp_f.add_argument("--kernel-size", type=int, default=None, help="Odd window size")
    grp_f.add_argument("--iterations", type=int, default=None)
    grp_f.add_argument(
        "--auto-filter",
        action="store_true",
        help="Pick filter strength from the image size",
    )

    grp_q = parser.add_argument_group("palette")
    grp_q.add_argument("--colors", type=int, default=None, help="Palette size (2..256)")
    grp_q.add_argument("--min-hue-colors", type=int, default=None)
    grp_q.add_argument(
        "--embroidery",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Embroidery adjustments (hue reservation, gentle dithering)",
    )

    grp_d = parser.add_argument_group("dither")
    grp_d.add_argument(
        "--dither",
        choices=[k.value for k in DitherKernel],
        default=None,
        help="Error-diffusion kernel",
    )
    grp_d.add_argument("--intensity", type=float, default=None, help="Error scale, 0 disables")
    grp_d.add_argument("--serpentine", action=argparse.BooleanOptionalAction, default=None)

    parser.add_argument("--height", type=int, default=None, help="Resize so height<=H before processing")
    parser.add_argument(
        "--resample",
        choices=["nearest", "bilinear", "bicubic", "lanczos"],
        default="lanczos",
        help="Scaling filter for --height",
    )
    parser.add_argument("--save-filtered", action="store_true", help="Also write the filtered image")
    parser.add_argument("--workers", type=int, default=_default_workers(), help="Internal workers")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after SECONDS per image")
    parser.add_argument("--debug", action="store_true", help="Verbose stage details")
    return parser


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    """Defaults -> preset -> parameter file -> explicit flags."""
    config = PipelineConfig()
    if args.preset:
        config = preset_config(args.preset, config)
    if args.params is not None:
        config = load_config(args.params, config)
    return config.with_overrides(
        {
            "sigma_space": args.sigma_space,
            "sigma_color": args.sigma_color,
            "kernel_size": args.kernel_size,
            "iterations": args.iterations,
        },
        {
            "color_count": args.colors,
            "min_hue_colors": args.min_hue_colors,
            "embroidery_optimized": args.embroidery,
        },
        {
            "kernel": args.dither,
            "intensity": args.intensity,
            "serpentine": args.serpentine,
        },
    )


def _output_path(src: Path, dst: Optional[Path], outdir: Optional[Path]) -> Path:
    if dst is not None:
        return dst
    name = f"{src.stem}{OUTPUT_SUFFIX}.png"
    return (outdir / name) if outdir else src.with_name(name)


def process_file(
    src: Path,
    out_path: Path,
    config: PipelineConfig,
    args: argparse.Namespace,
    runner: PipelineRunner,
) -> None:
    """load -> optional resize -> pipeline -> save -> report."""
    t_start = time.perf_counter()
    print_banner(src.name)

    check = validate_image_file(src)
    for w in check.warnings:
        warn(w)
    if not check.is_valid:
        raise EmbroideryQuantError("; ".join(check.errors), stage="io")

    raster = load_raster(src)
    if args.height is not None:
        raster = resize_to_height(raster, args.height, pillow_resample_from_name(args.resample))
    if args.auto_filter:
        config = PipelineConfig(
            optimal_filter_parameters(raster.width, raster.height),
            config.quantization,
            config.dither,
        )

    f, q, d = config.filter, config.quantization, config.dither
    print_config_line(
        "filter",
        [
            ("Sigma space", f.sigma_space),
            ("Sigma colour", f.sigma_color),
            ("Kernel", f.kernel_size),
            ("Iterations", f.iterations),
        ],
        debug=args.debug,
    )
    print_config_line(
        "palette",
        [
            ("Colours", q.color_count),
            ("Hue colours", q.min_hue_colors),
            ("Embroidery", q.embroidery_optimized),
        ],
        debug=args.debug,
    )
    print_config_line(
        "dither",
        [
            ("Kernel", d.kernel.value),
            ("Intensity", d.intensity),
            ("Serpentine", d.serpentine),
        ],
        debug=args.debug,
    )

    result = runner.run(raster, f, q, d, timeout=args.timeout, debug=args.debug)

    written = save_raster(out_path, result.final)
    if args.save_filtered:
        save_raster(written.with_name(f"{written.stem}_filtered{written.suffix}"), result.filtered)

    log(
        f"Wrote {written.name} | size={raster.width}x{raster.height} | palette_size={len(result.palette)}"
    )
    log("Colours used:")
    for hex_code, count in colour_usage_report(result.final, result.palette):
        log(f"  {hex_code}: {count:,}")

    metrics = quality_metrics(raster, result.final)
    log(
        key_value_pairs_to_string(
            [
                ("PSNR", f"{metrics.psnr:.2f} dB"),
                ("SSIM", metrics.ssim),
                ("Mean dE", metrics.mean_delta_e),
                ("Edges", metrics.edge_preservation),
            ]
        )
    )
    if args.debug:
        debug_log(f"pipeline {format_seconds_compact(result.elapsed_ms / 1000.0)}")
    log(f"Total time {format_seconds_compact(time.perf_counter() - t_start)}")


def _collect_inputs(src: Path) -> List[Path]:
    if not src.is_dir():
        return [src]
    files = [
        p
        for p in src.iterdir()
        if p.is_file()
        and p.suffix.lower() in SUPPORTED_SUFFIXES
        and not p.stem.endswith(OUTPUT_SUFFIX)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    enable_line_buffered_stdout()
    args = build_arg_parser().parse_args(argv)

    print_config_line(
        "run",
        [("CPU cores", os.cpu_count() or 1), ("Workers", args.workers)],
        debug=False,
    )

    if not args.src.exists():
        error(f"not found: {args.src}")
        return EXIT_INVALID
    if args.src.is_dir() and args.dst is not None:
        error("OUTPUT cannot be given for a folder; use --outdir")
        return EXIT_INVALID

    try:
        config = resolve_config(args)
        if args.save_params is not None:
            save_config(args.save_params, config)
            log(f"Saved parameters to {args.save_params}")

        with PipelineRunner(1, workers_per_job=max(1, args.workers)) as runner:
            for path in _collect_inputs(args.src):
                out_path = _output_path(path, args.dst, args.outdir)
                process_file(path, out_path, config, args, runner)
    except (PipelineCancelledError, PipelineTimeoutError) as e:
        error(str(e))
        return EXIT_CANCELLED
    except EmbroideryQuantError as e:
        error(str(e))
        return EXIT_INVALID
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
