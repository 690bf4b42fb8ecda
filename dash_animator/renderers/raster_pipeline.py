"""Render each planned frame of the dash loop and stream it to an encoder."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from PIL import Image

from dash_animator.animation.animation_binder import STYLE_ELEMENT_ID
from dash_animator.animation.dash_detector import DASH_PROPERTY, is_dashed
from dash_animator.animation.frame_synthesizer import (
    ExportRequest,
    FrameState,
    FrameTiming,
    plan_frames,
    resolve_timing,
)
from dash_animator.animation.style_resolver import resolve
from dash_animator.animation.svg_document import (
    SvgDocument,
    apply_inline_style,
    format_exact,
    format_number,
    parse_number,
    strip_ns,
)
from dash_animator.errors import RasterizationError
from dash_animator.renderers.rasterizer import Rasterizer
from dash_animator.renderers.sequence_encoder import FrameOptions, SequenceEncoder
from dash_animator.services.session_service import Session
from dash_animator.utils.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

PREVIEW_STYLE_IDS = (STYLE_ELEMENT_ID, "anim")
DEFAULT_EXPORT_DASHARRAY = "8 8"
GIF_DISPOSE_MODE = 2

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_PATH_COMMAND_RE = re.compile(r"([MmLlHhVvCcSsQqTtAaZz])([^MmLlHhVvCcSsQqTtAaZz]*)")


@dataclass(frozen=True)
class RasterSize:
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class RenderResult:
    size: RasterSize
    timing: FrameTiming
    frames_rendered: int


# =============================================================================
# Size resolution
# =============================================================================

def _viewbox_size(root: ET.Element) -> Optional[Tuple[float, float]]:
    raw = root.get("viewBox")
    if not raw:
        return None
    parts = [p for p in re.split(r"[\s,]+", raw.strip()) if p]
    if len(parts) != 4:
        return None
    try:
        values = [float(p) for p in parts]
    except ValueError:
        return None
    if not all(math.isfinite(v) for v in values):
        return None
    return values[2], values[3]


def _attribute_size(root: ET.Element) -> Optional[Tuple[float, float]]:
    width = parse_number(root.get("width"))
    height = parse_number(root.get("height"))
    if width is None or height is None:
        return None
    # percentages describe the viewport, not the drawing
    if "%" in (root.get("width") or "") or "%" in (root.get("height") or ""):
        return None
    return width, height


def _numbers(text: Optional[str]) -> List[float]:
    return [float(n) for n in _NUMBER_RE.findall(text or "")]


# argument count per segment and which (x, y) pairs it contains
_PATH_SEGMENTS = {
    "M": (2, ((0, 1),)),
    "L": (2, ((0, 1),)),
    "T": (2, ((0, 1),)),
    "C": (6, ((0, 1), (2, 3), (4, 5))),
    "S": (4, ((0, 1), (2, 3))),
    "Q": (4, ((0, 1), (2, 3))),
    "A": (7, ((5, 6),)),
}


def _path_points(d: str) -> List[Tuple[float, float]]:
    """Points visited by path data, with relative segments made absolute.

    Control points are included; arcs contribute only their end points.
    """
    points: List[Tuple[float, float]] = []
    x = y = 0.0
    start_x = start_y = 0.0
    for command, args in _PATH_COMMAND_RE.findall(d or ""):
        upper = command.upper()
        relative = command != upper
        values = _numbers(args)
        if upper == "Z":
            x, y = start_x, start_y
            continue
        if upper in ("H", "V"):
            for value in values:
                if upper == "H":
                    x = x + value if relative else value
                else:
                    y = y + value if relative else value
                points.append((x, y))
            continue
        size, pairs = _PATH_SEGMENTS[upper]
        for offset in range(0, len(values) - size + 1, size):
            segment = values[offset:offset + size]
            base_x, base_y = (x, y) if relative else (0.0, 0.0)
            for ix, iy in pairs:
                points.append((base_x + segment[ix], base_y + segment[iy]))
            x, y = points[-1]
            if upper == "M" and offset == 0:
                start_x, start_y = x, y
    return points


def _shape_points(el: ET.Element) -> List[Tuple[float, float]]:
    tag = strip_ns(el.tag)

    def num(name: str) -> float:
        value = parse_number(el.get(name))
        return value if value is not None else 0.0

    if tag == "rect":
        x, y = num("x"), num("y")
        return [(x, y), (x + num("width"), y + num("height"))]
    if tag == "circle":
        cx, cy, r = num("cx"), num("cy"), num("r")
        return [(cx - r, cy - r), (cx + r, cy + r)]
    if tag == "ellipse":
        cx, cy, rx, ry = num("cx"), num("cy"), num("rx"), num("ry")
        return [(cx - rx, cy - ry), (cx + rx, cy + ry)]
    if tag == "line":
        return [(num("x1"), num("y1")), (num("x2"), num("y2"))]
    if tag in ("polyline", "polygon"):
        values = _numbers(el.get("points"))
        return list(zip(values[0::2], values[1::2]))
    if tag == "path":
        return _path_points(el.get("d") or "")
    return []


def _bounding_box_size(document: SvgDocument) -> Optional[Tuple[float, float]]:
    xs: List[float] = []
    ys: List[float] = []
    for el in document.iter_elements():
        for x, y in _shape_points(el):
            xs.append(x)
            ys.append(y)
    if not xs:
        return None
    width, height = max(xs) - min(xs), max(ys) - min(ys)
    if width <= 0 or height <= 0:
        return None
    return width, height


def measure_svg_size(document: SvgDocument, config: Settings | None = None) -> RasterSize:
    """Pixel size from viewBox, else width/height, else the drawing's bounding box."""
    cfg = config or default_settings
    for source in (_viewbox_size, _attribute_size):
        size = source(document.root)
        if size is not None:
            return RasterSize(max(1, round(size[0])), max(1, round(size[1])))
    bbox = _bounding_box_size(document)
    if bbox is not None:
        return RasterSize(max(1, round(bbox[0])), max(1, round(bbox[1])))
    return RasterSize(cfg.fallback_width, cfg.fallback_height)


def cap_area(size: RasterSize, area_cap_pixels: int) -> RasterSize:
    """Uniformly shrink ``size`` so its pixel area does not exceed the cap."""
    if area_cap_pixels <= 0 or size.area <= area_cap_pixels:
        return size
    factor = math.sqrt(area_cap_pixels / size.area)
    return RasterSize(
        max(1, math.floor(size.width * factor)),
        max(1, math.floor(size.height * factor)),
    )


def target_size(document: SvgDocument, request: ExportRequest, config: Settings | None = None) -> RasterSize:
    measured = measure_svg_size(document, config)
    width = request.width_px or measured.width
    height = request.height_px or measured.height
    scale = request.scale if request.scale and math.isfinite(request.scale) and request.scale > 0 else 1.0
    scaled = RasterSize(max(1, round(width * scale)), max(1, round(height * scale)))
    return cap_area(scaled, request.area_cap_pixels)


# =============================================================================
# Export document preparation
# =============================================================================

def _is_tainting_resource(el: ET.Element) -> bool:
    if strip_ns(el.tag) not in ("style", "link"):
        return False
    if strip_ns(el.tag) == "link" and any(strip_ns(name) == "href" for name in el.attrib):
        return True
    text = "".join(el.itertext()).lower()
    if "@import" in text or "url(" in text:
        return True
    css_class = (el.get("class") or "").lower()
    return "fontimports" in css_class


def prepare_export_document(
    session: Session,
    config: Settings | None = None,
) -> Tuple[SvgDocument, Dict[str, ET.Element]]:
    """Clone the session document into a state fit for frame-by-frame rendering.

    Preview animation styles and external resource references are removed,
    overlays are hidden, running CSS animations are disabled on animated
    shapes, and shapes without a usable dash pattern get a default one.
    """
    cfg = config or default_settings
    document, targets = session.clone_document()

    removable = [
        el for el in document.iter_elements()
        if (strip_ns(el.tag) == "style" and el.get("id") in PREVIEW_STYLE_IDS) or _is_tainting_resource(el)
    ]
    for el in removable:
        document.remove(el)
    if removable:
        logger.debug(f"Removed {len(removable)} style/link element(s) from export document")

    document.hide_elements(cfg.overlay_ids)

    for el in targets.values():
        apply_inline_style(el, "animation:none !important")
        if not is_dashed(resolve(document, el, DASH_PROPERTY)):
            apply_inline_style(el, f"{DASH_PROPERTY}:{DEFAULT_EXPORT_DASHARRAY}")
    return document, targets


def apply_frame(targets: Dict[str, ET.Element], frame: FrameState) -> None:
    for record_id, offset in frame.offsets.items():
        el = targets.get(record_id)
        if el is not None:
            apply_inline_style(el, f"stroke-dashoffset:{format_exact(offset)} !important")


# =============================================================================
# Frame loop
# =============================================================================

def release_bitmap(bitmap: Optional[Image.Image]) -> None:
    if bitmap is None:
        return
    try:
        bitmap.close()
    except Exception as exc:
        logger.warning(f"Ignoring error while releasing frame bitmap: {exc}")


async def iter_frames(
    session: Session,
    request: ExportRequest,
    rasterizer: Rasterizer,
    config: Settings | None = None,
) -> AsyncIterator[Tuple[FrameState, Image.Image]]:
    """Yield ``(frame, bitmap)`` pairs strictly in order, one frame at a time."""
    document, targets = prepare_export_document(session, config)
    size = target_size(session.document, request, config)
    for frame in plan_frames(request, session.records):
        apply_frame(targets, frame)
        text = document.serialize()
        try:
            bitmap = await rasterizer.rasterize(text, size.width, size.height)
        except RasterizationError:
            raise
        except Exception as exc:
            raise RasterizationError(
                f"Rasterizer rejected frame {frame.frame_index}: {exc}", frame_index=frame.frame_index
            ) from exc
        yield frame, bitmap


async def render(
    session: Session,
    request: ExportRequest,
    rasterizer: Rasterizer,
    encoder: SequenceEncoder,
    config: Settings | None = None,
) -> RenderResult:
    """Rasterize every planned frame and forward each bitmap to ``encoder``.

    Bitmaps are released right after the encoder takes them, so only one is
    alive at a time.
    """
    timing = resolve_timing(request)
    document_size = target_size(session.document, request, config)
    options = FrameOptions(
        delay_ms=timing.delay_ms,
        dither=request.dither,
        dispose=GIF_DISPOSE_MODE,
        shared_palette=True,
    )
    logger.info(
        f"Rendering {timing.frame_count} frame(s) at {document_size.width}x{document_size.height}, "
        f"{timing.fps}fps, {format_number(timing.duration_seconds)}s"
        + (" (frame count capped)" if timing.capped else "")
    )
    rendered = 0
    frames = iter_frames(session, request, rasterizer, config)
    try:
        async for frame, bitmap in frames:
            try:
                encoder.add_frame(bitmap, options)
            finally:
                release_bitmap(bitmap)
            rendered += 1
            logger.debug(f"Rendered frame {frame.frame_index + 1}/{timing.frame_count}")
    finally:
        await frames.aclose()
    return RenderResult(size=document_size, timing=timing, frames_rendered=rendered)
