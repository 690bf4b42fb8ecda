import asyncio
import io
import sys
import types

import pytest
from PIL import Image

from dash_animator.animation.frame_synthesizer import ExportRequest
from dash_animator.errors import RasterizationError
from dash_animator.renderers.raster_pipeline import render
from dash_animator.renderers.rasterizer import CairoRasterizer
from dash_animator.services.session_service import load_session


def _png(size, color=(10, 20, 30, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def _stub_cairosvg(monkeypatch, svg2png):
    monkeypatch.setitem(sys.modules, "cairosvg", types.SimpleNamespace(svg2png=svg2png))


def test_rasterize_passes_target_size_and_blocks_external_resources(monkeypatch):
    calls = []

    def fake_svg2png(**kwargs):
        calls.append(kwargs)
        return _png((kwargs["output_width"], kwargs["output_height"]))

    _stub_cairosvg(monkeypatch, fake_svg2png)
    bitmap = asyncio.run(CairoRasterizer(background_color="white").rasterize("<svg/>", 30, 20))

    assert bitmap.size == (30, 20)
    assert bitmap.mode == "RGBA"
    assert calls[0]["bytestring"] == b"<svg/>"
    assert calls[0]["unsafe"] is False
    assert calls[0]["background_color"] == "white"


def test_rasterize_resizes_mismatched_output(monkeypatch):
    _stub_cairosvg(monkeypatch, lambda **kwargs: _png((kwargs["output_width"] + 1, kwargs["output_height"])))
    bitmap = asyncio.run(CairoRasterizer().rasterize("<svg/>", 16, 9))
    assert bitmap.size == (16, 9)


def test_renderer_failure_names_the_frame(monkeypatch, config, dashed_svg):
    def broken_svg2png(**kwargs):
        raise ValueError("unreachable resource")

    _stub_cairosvg(monkeypatch, broken_svg2png)
    session = load_session(dashed_svg, config)

    with pytest.raises(RasterizationError) as excinfo:
        asyncio.run(render(session, ExportRequest(), CairoRasterizer(), PixelEncoder(), config))
    assert excinfo.value.frame_index == 0


def _cairo_loads() -> bool:
    try:
        import cairosvg

        cairosvg.svg2png(bytestring=b'<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1"/>')
    except (ImportError, OSError):
        return False
    return True


class PixelEncoder:
    extension = "raw"

    def __init__(self):
        self.frames = []

    def add_frame(self, bitmap, options):
        self.frames.append(bitmap.convert("L").tobytes())

    def finish(self):
        return b""


@pytest.mark.skipif(not _cairo_loads(), reason="libcairo not available")
def test_frames_with_different_offsets_render_different_pixels(config):
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 120 20" width="120" height="20">'
        '<line stroke="#000" stroke-width="10" stroke-dasharray="10 10" x1="0" y1="10" x2="120" y2="10"/>'
        "</svg>"
    )
    session = load_session(svg, config)
    encoder = PixelEncoder()

    result = asyncio.run(
        render(session, ExportRequest(frames_per_second=8, duration_seconds=1), CairoRasterizer("white"), encoder, config)
    )

    assert result.frames_rendered == 8
    assert min(encoder.frames[0]) < 64
    assert max(encoder.frames[0]) > 192
    assert encoder.frames[0] != encoder.frames[1]
    assert encoder.frames[0] != encoder.frames[4]
