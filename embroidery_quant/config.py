# embroidery_quant/config.py
"""
Parameter sets, presets and JSON parameter files.

File layout (every section and key optional; missing keys keep defaults):

  {
    "filter":       {"sigma_space": 15, "sigma_color": 30, "kernel_size": 9, "iterations": 1},
    "quantization": {"color_count": 16, "min_hue_colors": 2, "embroidery_optimized": false},
    "dither":       {"kernel": "FloydSteinberg", "intensity": 1.0, "serpentine": true}
  }

Unknown sections or keys are rejected so typos do not silently fall back.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .constants import EMBROIDERY_PRESETS, FILTER_QUALITY_PRESETS
from .core_types import (
    DitherKernel,
    DitherParameters,
    FilterParameters,
    QuantizationParameters,
)
from .errors import InvalidParameterError, UnsupportedError

T = TypeVar("T")

SECTION_FILTER = "filter"
SECTION_QUANT = "quantization"
SECTION_DITHER = "dither"


def _or_empty(value: Any) -> Any:
    return {} if value is None else value


@dataclass(frozen=True)
class PipelineConfig:
    """The three parameter sets one pipeline run needs."""

    filter: FilterParameters = field(default_factory=FilterParameters)
    quantization: QuantizationParameters = field(default_factory=QuantizationParameters)
    dither: DitherParameters = field(default_factory=DitherParameters)

    def with_overrides(
        self,
        filter_overrides: Optional[Mapping[str, Any]] = None,
        quant_overrides: Optional[Mapping[str, Any]] = None,
        dither_overrides: Optional[Mapping[str, Any]] = None,
    ) -> "PipelineConfig":
        """New config with the given non-None values replaced."""
        return PipelineConfig(
            _section_from_dict(FilterParameters, _or_empty(filter_overrides), SECTION_FILTER, self.filter),
            _section_from_dict(
                QuantizationParameters, _or_empty(quant_overrides), SECTION_QUANT, self.quantization
            ),
            _section_from_dict(DitherParameters, _or_empty(dither_overrides), SECTION_DITHER, self.dither),
        )


def _coerce(name: str, value: Any, default: Any, section: str) -> Any:
    if isinstance(default, DitherKernel):
        return DitherKernel.parse(value)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise InvalidParameterError(
                f"{section}.{name} must be true or false, got {value!r}", stage="config"
            )
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
            raise InvalidParameterError(
                f"{section}.{name} must be an integer, got {value!r}", stage="config"
            )
        return int(value)
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParameterError(
                f"{section}.{name} must be a number, got {value!r}", stage="config"
            )
        return float(value)
    return value


def _section_from_dict(cls: Type[T], data: Mapping[str, Any], section: str, base: T) -> T:
    if not isinstance(data, Mapping):
        raise InvalidParameterError(f"section {section!r} must be an object", stage="config")
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidParameterError(
            f"unknown key(s) in {section!r}: {', '.join(unknown)}", stage="config"
        )
    changes = {
        k: _coerce(k, v, getattr(base, k), section) for k, v in data.items() if v is not None
    }
    return replace(base, **changes)  # type: ignore[type-var]


def config_from_dict(data: Mapping[str, Any], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """Build a PipelineConfig from parsed JSON, starting from base (or defaults)."""
    base = base or PipelineConfig()
    if not isinstance(data, Mapping):
        raise InvalidParameterError("parameter file must hold a JSON object", stage="config")
    unknown = sorted(set(data) - {SECTION_FILTER, SECTION_QUANT, SECTION_DITHER})
    if unknown:
        raise InvalidParameterError(
            f"unknown section(s): {', '.join(unknown)}", stage="config"
        )
    return base.with_overrides(
        data.get(SECTION_FILTER), data.get(SECTION_QUANT), data.get(SECTION_DITHER)
    )


def config_to_dict(config: PipelineConfig) -> Dict[str, Dict[str, Any]]:
    dither = asdict(config.dither)
    dither["kernel"] = config.dither.kernel.value
    return {
        SECTION_FILTER: asdict(config.filter),
        SECTION_QUANT: asdict(config.quantization),
        SECTION_DITHER: dither,
    }


def load_config(path: Path, base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Read a JSON parameter file.

    Raises:
      InvalidParameterError for unreadable JSON, unknown keys or bad values
      UnsupportedError for an unknown dither kernel name
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise InvalidParameterError(f"cannot read {path}: {e}", stage="config") from e
    except json.JSONDecodeError as e:
        raise InvalidParameterError(f"invalid JSON in {path}: {e}", stage="config") from e
    return config_from_dict(data, base)


def save_config(path: Path, config: PipelineConfig) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2)
    return path


PRESET_NAMES = tuple(sorted(EMBROIDERY_PRESETS)) + tuple(FILTER_QUALITY_PRESETS)


def preset_config(name: str, base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Apply a named preset on top of base.

    Embroidery presets ("embroidery-8", ...) set quantization and dither;
    quality presets ("draft", "standard", "high") set the filter.
    """
    base = base or PipelineConfig()
    key = name.strip().lower()
    if key in EMBROIDERY_PRESETS:
        quant, dither = EMBROIDERY_PRESETS[key]
        return replace(base, quantization=quant, dither=dither)
    if key in FILTER_QUALITY_PRESETS:
        return replace(base, filter=FILTER_QUALITY_PRESETS[key])
    raise UnsupportedError(
        f"unknown preset {name!r}; choose from {', '.join(PRESET_NAMES)}", stage="config"
    )


__all__ = [
    "PipelineConfig",
    "PRESET_NAMES",
    "config_from_dict",
    "config_to_dict",
    "load_config",
    "save_config",
    "preset_config",
]
