"""Animated GIF encoding with Pillow."""
from __future__ import annotations

import io
import logging
from typing import List, Optional

from PIL import Image, ImageColor

from dash_animator.errors import EncoderError
from dash_animator.renderers.sequence_encoder import FrameOptions, ProgressCallback, report_progress

logger = logging.getLogger(__name__)


def quantize_method(quality: int) -> Image.Quantize:
    """Map the 1-30 quality scale (lower is better) to a Pillow quantizer."""
    if quality <= 10:
        return Image.Quantize.MEDIANCUT
    return Image.Quantize.FASTOCTREE


class PillowGifEncoder:
    """Collect palettized frames and write a looping GIF on ``finish``.

    Each incoming RGBA bitmap is flattened onto the background colour and
    quantized right away, so the caller can release it after ``add_frame``.
    """

    extension = "gif"

    def __init__(
        self,
        width: int,
        height: int,
        quality: int = 20,
        background: str = "#ffffff",
        expected_frames: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.width = width
        self.height = height
        self.quality = max(1, min(30, int(quality)))
        self.background = ImageColor.getrgb(background)[:3]
        self.expected_frames = expected_frames
        self.on_progress = on_progress
        self._frames: List[Image.Image] = []
        self._durations: List[int] = []
        self._disposal: List[int] = []
        self._palette: Optional[Image.Image] = None

    def _flatten(self, bitmap: Image.Image) -> Image.Image:
        rgba = bitmap if bitmap.mode == "RGBA" else bitmap.convert("RGBA")
        if rgba.size != (self.width, self.height):
            rgba = rgba.resize((self.width, self.height))
        canvas = Image.new("RGB", rgba.size, self.background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas

    def _quantize(self, rgb: Image.Image, options: FrameOptions) -> Image.Image:
        dither = Image.Dither.FLOYDSTEINBERG if options.dither else Image.Dither.NONE
        if options.shared_palette and self._palette is not None:
            return rgb.quantize(palette=self._palette, dither=dither)
        frame = rgb.quantize(colors=256, method=quantize_method(self.quality), dither=dither)
        if options.shared_palette:
            self._palette = frame
        return frame

    def add_frame(self, bitmap: Image.Image, options: FrameOptions) -> None:
        try:
            rgb = self._flatten(bitmap)
            frame = self._quantize(rgb, options)
            rgb.close()
        except (OSError, ValueError) as exc:
            raise EncoderError(f"GIF encoder rejected frame {len(self._frames)}: {exc}") from exc
        self._frames.append(frame)
        self._durations.append(max(1, int(options.delay_ms)))
        self._disposal.append(options.dispose)
        if self.expected_frames:
            report_progress(self.on_progress, len(self._frames) / self.expected_frames)

    def finish(self) -> bytes:
        if not self._frames:
            raise EncoderError("GIF encoder received no frames.")
        buf = io.BytesIO()
        try:
            self._frames[0].save(
                buf,
                format="GIF",
                save_all=True,
                append_images=self._frames[1:],
                duration=self._durations,
                disposal=self._disposal,
                loop=0,
                optimize=False,
            )
        except (OSError, ValueError) as exc:
            raise EncoderError(f"GIF encoding failed: {exc}") from exc
        finally:
            for frame in self._frames:
                frame.close()
            self._frames = []
            self._palette = None
        logger.debug(f"Encoded GIF: {buf.tell()} bytes")
        report_progress(self.on_progress, 1.0)
        return buf.getvalue()
