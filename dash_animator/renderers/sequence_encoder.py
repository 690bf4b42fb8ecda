"""Interface shared by the animated-image and video encoders."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from PIL import Image

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class FrameOptions:
    delay_ms: int
    dither: bool = False
    dispose: int = 2
    shared_palette: bool = True


class SequenceEncoder(Protocol):
    extension: str

    def add_frame(self, bitmap: Image.Image, options: FrameOptions) -> None:
        ...

    def finish(self) -> bytes:
        ...


def report_progress(callback: Optional[ProgressCallback], fraction: float) -> None:
    if callback is not None:
        callback(max(0.0, min(1.0, fraction)))
