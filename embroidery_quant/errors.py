# embroidery_quant/errors.py
"""
Error taxonomy shared by every stage.

Each error carries the stage that raised it ("filter", "palette", "dither",
"pipeline", "io", "config", "analysis") and a human-readable reason.
"""

from __future__ import annotations

from typing import Optional


class EmbroideryQuantError(Exception):
    """Base exception for embroidery_quant errors."""

    default_stage = "pipeline"

    def __init__(self, reason: str, *, stage: Optional[str] = None):
        self.reason = reason
        self.stage = stage or self.default_stage
        super().__init__(f"[{self.stage}] {reason}")


class InvalidParameterError(EmbroideryQuantError, ValueError):
    """Bad parameters or empty input, rejected before any pixel work."""


class UnsupportedError(EmbroideryQuantError):
    """Input that is well-formed but not handled (array layout, kernel name)."""


class PipelineCancelledError(EmbroideryQuantError):
    """Cooperative cancellation observed between two stages."""


class PipelineTimeoutError(EmbroideryQuantError):
    """The caller's deadline expired; the in-flight run was abandoned."""


__all__ = [
    "EmbroideryQuantError",
    "InvalidParameterError",
    "UnsupportedError",
    "PipelineCancelledError",
    "PipelineTimeoutError",
]
