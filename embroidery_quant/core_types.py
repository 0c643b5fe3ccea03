# embroidery_quant/core_types.py
from __future__ import annotations

"""
Core type aliases, value objects and small helpers.

Raster, Color and Palette are immutable; every stage builds new values.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .errors import UnsupportedError

# Basic aliases

RGBTuple = Tuple[int, int, int]
RGBATuple = Tuple[int, int, int, int]
HexStr = str

U8Image = NDArray[np.uint8]  # (H, W, 4)
Lab = NDArray[np.float64]  # (..., 3) CIE Lab
Lch = NDArray[np.float64]  # (..., 3) CIE LCh
Tap = Tuple[int, int, float]  # (dx, dy, weight)


# Small helpers


def clamp_value(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return lo if value < lo else hi if value > hi else value


def round_half_up(value: float) -> int:
    """Round to nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def clamp_channel(value: float) -> int:
    """Round half-up and clamp to a 0..255 channel value."""
    return int(clamp_value(round_half_up(value), 0, 255))


def rgb_to_hex(rgb: Sequence[int]) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{int(rgb[0]):02x}{int(rgb[1]):02x}{int(rgb[2]):02x}"


def hex_to_rgb(hex_str: str) -> RGBTuple:
    """Parse '#rgb' or '#rrggbb' (case-insensitive) into an RGB tuple."""
    s = hex_str.strip().lower()
    if not s.startswith("#"):
        raise ValueError("hex must start with '#'")
    if len(s) == 4:
        r, g, b = s[1], s[2], s[3]
        s = f"#{r}{r}{g}{g}{b}{b}"
    if len(s) != 7:
        raise ValueError("hex must be '#rrggbb' or '#rgb'")
    return (int(s[1:3], 16), int(s[3:5], 16), int(s[5:7], 16))


# Value objects


@dataclass(frozen=True, eq=False)
class Raster:
    """
    RGBA8 pixel buffer.

    pixels is a flat read-only uint8 array with width*height*4 entries.
    A zero-sized raster is representable so stages can reject it explicitly.
    """

    width: int
    height: int
    pixels: NDArray[np.uint8] = field(repr=False)

    def __post_init__(self) -> None:
        if int(self.width) < 0 or int(self.height) < 0:
            raise UnsupportedError("raster dimensions must be non-negative")
        buf = np.array(self.pixels, dtype=np.uint8, copy=True).reshape(-1)
        expected = int(self.width) * int(self.height) * 4
        if buf.size != expected:
            raise UnsupportedError(
                f"pixel buffer has {buf.size} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )
        buf.flags.writeable = False
        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))
        object.__setattr__(self, "pixels", buf)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Raster":
        """Build from a (H,W,4) or (H,W,3) array; RGB input gets opaque alpha."""
        a = np.asarray(arr)
        if a.ndim != 3 or a.shape[-1] not in (3, 4):
            raise UnsupportedError(f"expected (H,W,3) or (H,W,4) array, got {a.shape}")
        height, width = int(a.shape[0]), int(a.shape[1])
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[..., :3] = np.clip(a[..., :3], 0, 255)
        rgba[..., 3] = np.clip(a[..., 3], 0, 255) if a.shape[-1] == 4 else 255
        return cls(width, height, rgba.reshape(-1))

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int) -> "Raster":
        """Build from a raw RGBA8 byte sequence."""
        return cls(width, height, np.frombuffer(bytes(data), dtype=np.uint8))

    @classmethod
    def filled(cls, width: int, height: int, rgba: Sequence[int]) -> "Raster":
        """Uniform raster of one RGBA colour."""
        arr = np.empty((height, width, 4), dtype=np.uint8)
        arr[...] = np.asarray(rgba, dtype=np.uint8)
        return cls(width, height, arr.reshape(-1))

    @classmethod
    def empty(cls) -> "Raster":
        return cls(0, 0, np.zeros((0,), dtype=np.uint8))

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.pixel_count == 0

    def as_array(self) -> U8Image:
        """Read-only (H,W,4) view of the pixels."""
        return self.pixels.reshape(self.height, self.width, 4)

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.pixels, other.pixels)
        )

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class Color:
    """RGBA colour with channels clamped to 0..255 and a lazily cached Lab row."""

    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self) -> None:
        for name in ("r", "g", "b", "a"):
            object.__setattr__(self, name, clamp_channel(float(getattr(self, name))))

    @property
    def rgb(self) -> RGBTuple:
        return (self.r, self.g, self.b)

    @property
    def rgba(self) -> RGBATuple:
        return (self.r, self.g, self.b, self.a)

    @property
    def hex(self) -> HexStr:
        return rgb_to_hex(self.rgb)

    @cached_property
    def lab(self) -> Tuple[float, float, float]:
        """(L*, a*, b*) computed on first access."""
        from .colour_convert import rgb_to_lab

        row = rgb_to_lab(np.array(self.rgb, dtype=np.float64))
        return (float(row[0]), float(row[1]), float(row[2]))

    def distance(self, other: "Color") -> float:
        """Euclidean distance in Lab; alpha is ignored."""
        from .colour_convert import colour_distance

        return colour_distance(self, other)


@dataclass(frozen=True)
class Palette:
    """Ordered, duplicate-free sequence of colours."""

    colors: Tuple[Color, ...]

    def __post_init__(self) -> None:
        colors = tuple(self.colors)
        if len({c.rgb for c in colors}) != len(colors):
            raise ValueError("palette colours must be unique")
        object.__setattr__(self, "colors", colors)

    @classmethod
    def from_colors(cls, colors: Iterable[Color]) -> "Palette":
        """Build a palette, dropping later duplicates (by RGB) in order."""
        seen = set()
        kept: List[Color] = []
        for c in colors:
            if c.rgb in seen:
                continue
            seen.add(c.rgb)
            kept.append(c)
        return cls(tuple(kept))

    @classmethod
    def from_rgb(cls, rows: Iterable[Sequence[int]]) -> "Palette":
        return cls.from_colors(Color(int(r[0]), int(r[1]), int(r[2])) for r in rows)

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)

    def __getitem__(self, index: int) -> Color:
        return self.colors[index]

    def to_rgb_list(self) -> List[RGBTuple]:
        return [c.rgb for c in self.colors]

    def rgb_array(self) -> NDArray[np.uint8]:
        """uint8 [P,3]."""
        return np.array(self.to_rgb_list(), dtype=np.uint8).reshape(-1, 3)

    @cached_property
    def _lab_rows(self) -> Lab:
        from .colour_convert import rgb_to_lab

        return rgb_to_lab(self.rgb_array().astype(np.float64)).reshape(-1, 3)

    def lab_array(self) -> Lab:
        """float64 [P,3] Lab rows, computed once per palette."""
        return self._lab_rows


class DitherKernel(Enum):
    """Error-diffusion kernels. Values are the names used by presets and files."""

    NONE = "none"
    FLOYD_STEINBERG = "FloydSteinberg"
    ATKINSON = "Atkinson"
    BURKES = "Burkes"
    STUCKI = "Stucki"
    SIERRA2 = "Sierra2"
    SIERRA3 = "Sierra3"
    SIERRA_LITE = "SierraLite"

    @classmethod
    def parse(cls, name: Union[str, "DitherKernel", None]) -> "DitherKernel":
        """Resolve 'FloydSteinberg', 'floyd-steinberg', 'sierra_lite', None, ..."""
        if isinstance(name, DitherKernel):
            return name
        if name is None:
            return cls.NONE
        key = "".join(ch for ch in str(name).lower() if ch.isalnum())
        for member in cls:
            if key in (member.value.lower(), member.name.lower().replace("_", "")):
                return member
        raise UnsupportedError(f"unknown dither kernel {name!r}", stage="config")


@dataclass(frozen=True)
class FilterParameters:
    sigma_space: float = 15.0
    sigma_color: float = 30.0
    kernel_size: int = 9
    iterations: int = 1


@dataclass(frozen=True)
class QuantizationParameters:
    color_count: int = 16
    min_hue_colors: int = 2
    embroidery_optimized: bool = False


@dataclass(frozen=True)
class DitherParameters:
    kernel: DitherKernel = DitherKernel.FLOYD_STEINBERG
    intensity: float = 1.0
    serpentine: bool = True


__all__ = [
    # aliases
    "RGBTuple",
    "RGBATuple",
    "HexStr",
    "U8Image",
    "Lab",
    "Lch",
    "Tap",
    # helpers
    "clamp_value",
    "round_half_up",
    "clamp_channel",
    "rgb_to_hex",
    "hex_to_rgb",
    # value objects
    "Raster",
    "Color",
    "Palette",
    "DitherKernel",
    "FilterParameters",
    "QuantizationParameters",
    "DitherParameters",
]
