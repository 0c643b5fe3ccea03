# embroidery_quant/image_io.py
from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .constants import LARGE_FILE_BYTES, MAX_DIMENSION, MAX_FILE_BYTES, SUPPORTED_SUFFIXES
from .core_types import Raster
from .errors import UnsupportedError

"""
Image I/O helpers (RGBA in sRGB), resize and file validation.

The core never touches files; these helpers decode to and encode from Raster.
"""

try:
    from PIL import ImageCms  # ICC conversion if profile present
except ImportError:  # pragma: no cover
    ImageCms = None  # type: ignore[assignment]


def pillow_resample_from_name(name: str) -> Image.Resampling:
    """Map a string to a Pillow resampling filter enum."""
    if name == "nearest":
        return Image.Resampling.NEAREST
    if name == "bilinear":
        return Image.Resampling.BILINEAR
    if name == "bicubic":
        return Image.Resampling.BICUBIC
    return Image.Resampling.LANCZOS  # default


def _convert_to_srgb_rgba(im: Image.Image) -> Image.Image:
    im = ImageOps.exif_transpose(im)
    icc_bytes = im.info.get("icc_profile")

    if icc_bytes and ImageCms is not None:
        try:
            src_prof = ImageCms.ImageCmsProfile(io.BytesIO(icc_bytes))
            dst_prof = ImageCms.createProfile("sRGB")
            im2 = ImageCms.profileToProfile(
                im,
                src_prof,
                dst_prof,
                renderingIntent=ImageCms.Intent.PERCEPTUAL,
                outputMode="RGBA",
            )
            if im2 is not None:
                return im2
        except (ImageCms.PyCMSError, OSError, ValueError):
            pass

    return im.convert("RGBA")


def image_to_raster(im: Image.Image) -> Raster:
    """Pillow image (any mode) -> RGBA Raster."""
    rgba = im if im.mode == "RGBA" else im.convert("RGBA")
    return Raster.from_array(np.array(rgba, dtype=np.uint8))


def raster_to_image(raster: Raster) -> Image.Image:
    """Raster -> Pillow RGBA image (copy)."""
    return Image.fromarray(np.array(raster.as_array()))


def load_raster(path: Path) -> Raster:
    """Decode an image file into an sRGB RGBA Raster."""
    try:
        with Image.open(path) as im0:
            im = _convert_to_srgb_rgba(im0)
    except (UnidentifiedImageError, OSError) as e:
        raise UnsupportedError(f"cannot read image {path}: {e}", stage="io") from e
    return image_to_raster(im)


def save_raster(path: Path, raster: Raster) -> Path:
    """
    Encode a raster by file suffix (.png, .jpg/.jpeg, .webp).
    JPEG has no alpha, so it is flattened to RGB. Unknown suffixes become .png.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        path = path.with_suffix(".png")
        suffix = ".png"
    im = raster_to_image(raster)
    if suffix in (".jpg", ".jpeg"):
        im.convert("RGB").save(path, quality=95)
    else:
        im.save(path)
    return path


def resize_raster(
    raster: Raster,
    width: int,
    height: int,
    resample: Image.Resampling = Image.Resampling.LANCZOS,
) -> Raster:
    """Resize with Pillow; returns the input unchanged if the size already matches."""
    if (width, height) == (raster.width, raster.height):
        return raster
    im = raster_to_image(raster).resize((int(width), int(height)), resample=resample)
    return image_to_raster(im)


def resize_to_height(
    raster: Raster, dst_h: Optional[int], resample: Image.Resampling
) -> Raster:
    """Downscale so height <= dst_h, keeping aspect. Never upscales."""
    if dst_h is None or dst_h <= 0 or dst_h >= raster.height:
        return raster
    dst_w = max(1, int(round(raster.width * (dst_h / float(raster.height)))))
    return resize_raster(raster, dst_w, int(dst_h), resample)


def is_image_file(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.seek(0)
            im.load()
        return True
    except (UnidentifiedImageError, OSError):
        return False


@dataclass
class FileValidation:
    """Outcome of validate_image_file."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    width: int = 0
    height: int = 0
    has_transparency: bool = False


def _format_bytes(n: int) -> str:
    size = float(n)
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024.0:
            return f"{size:.2f}".rstrip("0").rstrip(".") + f" {unit}"
        size /= 1024.0
    return f"{size:.2f} GB"


def validate_image_file(path: Path) -> FileValidation:
    """
    Check type, byte size and dimensions of an input image before decoding it
    fully. Errors make the file unusable; warnings are informational.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        errors.append(
            f"Unsupported file type: {path.suffix or '?'}. "
            f"Supported types: {', '.join(SUPPORTED_SUFFIXES)}"
        )
    size = path.stat().st_size if path.exists() else 0
    if not path.exists():
        errors.append(f"File not found: {path}")
    elif size > MAX_FILE_BYTES:
        errors.append(
            f"File size ({_format_bytes(size)}) exceeds maximum allowed size "
            f"({_format_bytes(MAX_FILE_BYTES)})"
        )
    elif size > LARGE_FILE_BYTES:
        warnings.append("Large file size may affect performance")

    width = height = 0
    has_alpha = False
    if not errors:
        try:
            with Image.open(path) as im:
                width, height = im.size
                has_alpha = im.mode in ("RGBA", "LA", "PA") or "transparency" in im.info
        except (UnidentifiedImageError, OSError):
            errors.append(f"Not a readable image: {path.name}")
    if max(width, height) > MAX_DIMENSION:
        errors.append(
            f"Image dimensions {width}x{height} exceed {MAX_DIMENSION}px on a side"
        )

    return FileValidation(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        width=width,
        height=height,
        has_transparency=has_alpha,
    )


__all__ = [
    "pillow_resample_from_name",
    "image_to_raster",
    "raster_to_image",
    "load_raster",
    "save_raster",
    "resize_raster",
    "resize_to_height",
    "is_image_file",
    "FileValidation",
    "validate_image_file",
]
