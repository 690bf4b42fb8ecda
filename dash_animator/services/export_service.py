"""Export orchestration: animated SVG, GIF, WebM and WebM-to-GIF outputs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from dash_animator.animation.animation_binder import bind, normalize_preview_duration
from dash_animator.animation.frame_synthesizer import ExportRequest, FrameTiming, clamp_fps, resolve_timing
from dash_animator.animation.svg_document import format_number
from dash_animator.errors import NoAnimatedShapesError
from dash_animator.renderers.gif_encoder import PillowGifEncoder
from dash_animator.renderers.raster_pipeline import RasterSize, render, target_size
from dash_animator.renderers.rasterizer import CairoRasterizer, Rasterizer
from dash_animator.renderers.sequence_encoder import ProgressCallback, SequenceEncoder
from dash_animator.renderers.transcoder import TranscoderBackend, default_backends, transcode_to_gif
from dash_animator.renderers.video_encoder import FfmpegVideoEncoder
from dash_animator.services.session_service import Session
from dash_animator.utils.config import Settings, settings as default_settings
from dash_animator.utils.file_utils import write_output

logger = logging.getLogger(__name__)

ANIMATED_SVG_FILENAME = "animated-dash.svg"


@dataclass(frozen=True)
class ExportResult:
    path: Path
    size: RasterSize
    timing: FrameTiming
    byte_count: int


def build_export_request(config: Settings | None = None, **overrides: Any) -> ExportRequest:
    """ExportRequest from settings, with ``None`` overrides ignored."""
    cfg = config or default_settings
    values = dict(
        frames_per_second=cfg.export_fps,
        duration_seconds=cfg.export_duration,
        scale=cfg.export_scale,
        min_frames=cfg.min_frames,
        max_frames=cfg.max_frames,
        area_cap_pixels=cfg.area_cap_pixels,
        quality=cfg.gif_quality,
        dither=cfg.gif_dither,
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ExportRequest(**values)


def export_filename(size: RasterSize, timing: FrameTiming, extension: str) -> str:
    return (
        f"animated-dash-{size.width}x{size.height}-{timing.fps}fps-"
        f"{format_number(timing.duration_seconds)}s-{timing.frame_count}f.{extension}"
    )


def export_animated_svg(session: Session, duration_seconds: Optional[float] = None, config: Settings | None = None) -> str:
    """Serialize a standalone SVG whose dashed shapes animate with CSS."""
    cfg = config or default_settings
    duration = normalize_preview_duration(
        session.preview_duration if duration_seconds is None else duration_seconds
    )
    document, nodes = session.clone_document()
    document.hide_elements(cfg.overlay_ids)
    bind(document, session.records, nodes.get, duration)
    return document.serialize()


def write_animated_svg(
    session: Session,
    duration_seconds: Optional[float] = None,
    output_dir: str | Path | None = None,
    config: Settings | None = None,
) -> Path:
    cfg = config or default_settings
    text = export_animated_svg(session, duration_seconds, config=cfg)
    path = write_output(output_dir or cfg.output_dir, ANIMATED_SVG_FILENAME, text)
    logger.info(f"Wrote {path}")
    return path


async def export_sequence(
    session: Session,
    request: ExportRequest,
    encoder: SequenceEncoder,
    rasterizer: Optional[Rasterizer] = None,
    output_dir: str | Path | None = None,
    config: Settings | None = None,
) -> ExportResult:
    """Render all frames into ``encoder`` and write the finished file.

    Nothing is written unless every frame rendered and the encoder finished.
    """
    cfg = config or default_settings
    if not session.records:
        raise NoAnimatedShapesError()
    result = await render(session, request, rasterizer or CairoRasterizer(), encoder, config=cfg)
    payload = encoder.finish()
    filename = export_filename(result.size, result.timing, encoder.extension)
    path = write_output(output_dir or cfg.output_dir, filename, payload)
    logger.info(f"Exported {path} ({len(payload)} bytes)")
    return ExportResult(path=path, size=result.size, timing=result.timing, byte_count=len(payload))


async def export_gif(
    session: Session,
    request: ExportRequest,
    rasterizer: Optional[Rasterizer] = None,
    output_dir: str | Path | None = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Settings | None = None,
) -> ExportResult:
    cfg = config or default_settings
    if not session.records:
        raise NoAnimatedShapesError()
    size = target_size(session.document, request, cfg)
    timing = resolve_timing(request)
    encoder = PillowGifEncoder(
        size.width,
        size.height,
        quality=request.quality,
        background=cfg.gif_background,
        expected_frames=timing.frame_count,
        on_progress=on_progress,
    )
    return await export_sequence(session, request, encoder, rasterizer, output_dir, cfg)


async def export_webm(
    session: Session,
    request: ExportRequest,
    rasterizer: Optional[Rasterizer] = None,
    output_dir: str | Path | None = None,
    on_progress: Optional[ProgressCallback] = None,
    backends: Optional[List[TranscoderBackend]] = None,
    config: Settings | None = None,
) -> ExportResult:
    cfg = config or default_settings
    if not session.records:
        raise NoAnimatedShapesError()
    size = target_size(session.document, request, cfg)
    timing = resolve_timing(request)
    encoder = FfmpegVideoEncoder(
        size.width,
        size.height,
        fps=timing.fps,
        quality=request.quality,
        backends=backends if backends is not None else default_backends(cfg),
        expected_frames=timing.frame_count,
        on_progress=on_progress,
    )
    try:
        return await export_sequence(session, request, encoder, rasterizer, output_dir, cfg)
    finally:
        encoder.close()


def transcode_file(
    video_path: str | Path,
    fps: Optional[float] = None,
    output_dir: str | Path | None = None,
    backends: Optional[List[TranscoderBackend]] = None,
    config: Settings | None = None,
) -> Path:
    """Convert an exported WebM into a palette-optimized GIF."""
    cfg = config or default_settings
    source = Path(video_path)
    if not source.exists():
        raise FileNotFoundError(f"Missing file: {video_path}")
    rate = clamp_fps(cfg.export_fps if fps is None else fps)
    payload = transcode_to_gif(
        source.read_bytes(),
        rate,
        backends=backends if backends is not None else default_backends(cfg),
        input_suffix=source.suffix or ".webm",
    )
    path = write_output(output_dir or cfg.output_dir, f"converted-{rate}fps.gif", payload)
    logger.info(f"Transcoded {source.name} -> {path}")
    return path

