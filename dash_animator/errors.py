"""Error types raised by the dash animation pipeline."""
from __future__ import annotations

from typing import Optional


class DashAnimatorError(RuntimeError):
    """Base class for every failure surfaced to callers."""


class InvalidDocumentError(DashAnimatorError, ValueError):
    """Raised when the input is not a well-formed SVG document."""


class NoAnimatedShapesError(DashAnimatorError):
    """Raised when an export is requested but no dashed shapes were found."""

    def __init__(self, message: str = "No dashed shapes were detected; nothing to export."):
        super().__init__(message)


class RasterizationError(DashAnimatorError):
    """Raised when the rasterizer rejects a frame."""

    def __init__(self, message: str, frame_index: Optional[int] = None):
        super().__init__(message)
        self.frame_index = frame_index


class EncoderError(DashAnimatorError):
    """Raised when a sequence encoder or transcoder cannot produce output."""


class TranscoderUnavailableError(DashAnimatorError):
    """Raised when no transcoder backend can be loaded."""
