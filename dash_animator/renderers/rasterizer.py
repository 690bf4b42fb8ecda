"""Rasterize serialized SVG frames into Pillow images."""
from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol

from PIL import Image

logger = logging.getLogger(__name__)


class Rasterizer(Protocol):
    async def rasterize(self, document_text: str, width: int, height: int) -> Image.Image:
        ...


class CairoRasterizer:
    """Render SVG text with cairosvg in a worker thread.

    External resources are never fetched, so a frame referencing one fails
    instead of silently loading it.
    """

    def __init__(self, background_color: str | None = None):
        self.background_color = background_color

    def _render_png(self, document_text: str, width: int, height: int) -> bytes:
        import cairosvg

        return cairosvg.svg2png(
            bytestring=document_text.encode("utf-8"),
            output_width=width,
            output_height=height,
            background_color=self.background_color,
            unsafe=False,
        )

    async def rasterize(self, document_text: str, width: int, height: int) -> Image.Image:
        png = await asyncio.to_thread(self._render_png, document_text, width, height)
        with io.BytesIO(png) as buf:
            with Image.open(buf) as img:
                img.load()
                rgba = img.convert("RGBA")
        if rgba.size != (width, height):
            logger.debug(f"Rasterizer returned {rgba.size}, resizing to {width}x{height}")
            resized = rgba.resize((width, height), Image.Resampling.LANCZOS)
            rgba.close()
            rgba = resized
        return rgba
