"""Plan per-frame dash offsets for one seamless loop of the animation."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from dash_animator.animation.dash_detector import AnimationRecord

MIN_FRAMES = 8
MAX_FRAMES = 120
MIN_FPS = 1
MAX_FPS = 60
MIN_DURATION_SECONDS = 0.1
DEFAULT_AREA_CAP_PIXELS = 300_000


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ExportRequest:
    """Parameters of one raster export; dimensions default to the document's."""
    frames_per_second: float = 12
    duration_seconds: float = 1.5
    scale: float = 1.0
    width_px: Optional[int] = None
    height_px: Optional[int] = None
    min_frames: int = MIN_FRAMES
    max_frames: int = MAX_FRAMES
    area_cap_pixels: int = DEFAULT_AREA_CAP_PIXELS
    quality: int = 20
    dither: bool = False


@dataclass(frozen=True)
class FrameTiming:
    fps: int
    duration_seconds: float
    frame_count: int
    delay_ms: int
    capped: bool = False


@dataclass(frozen=True)
class FrameState:
    frame_index: int
    progress: float
    offsets: Dict[str, float] = field(default_factory=dict)


def clamp_fps(fps: float) -> int:
    try:
        value = float(fps)
    except (TypeError, ValueError):
        return MIN_FPS
    if not math.isfinite(value):
        return MIN_FPS
    return max(MIN_FPS, min(MAX_FPS, round_half_up(value)))


def floor_duration(duration_seconds: float) -> float:
    try:
        value = float(duration_seconds)
    except (TypeError, ValueError):
        return MIN_DURATION_SECONDS
    if not math.isfinite(value):
        return MIN_DURATION_SECONDS
    return max(MIN_DURATION_SECONDS, value)


def resolve_timing(
    request: ExportRequest,
    min_frames: Optional[int] = None,
    max_frames: Optional[int] = None,
) -> FrameTiming:
    """Normalize rate and duration, then clamp the frame count into range."""
    lo = request.min_frames if min_frames is None else min_frames
    hi = request.max_frames if max_frames is None else max_frames
    if hi < lo:
        raise ValueError(f"max_frames ({hi}) must not be below min_frames ({lo})")
    fps = clamp_fps(request.frames_per_second)
    duration = floor_duration(request.duration_seconds)
    requested = round_half_up(fps * duration)
    frame_count = max(lo, min(hi, requested))
    return FrameTiming(
        fps=fps,
        duration_seconds=duration,
        frame_count=frame_count,
        delay_ms=round_half_up(1000 / fps),
        capped=requested > hi,
    )


def offset_at(cycle_length: float, progress: float) -> float:
    """Dash offset at ``progress``; sweeps from -cycle toward 0."""
    return -cycle_length * (1 - progress)


def plan_frames(
    request: ExportRequest,
    records: Sequence[AnimationRecord],
    min_frames: Optional[int] = None,
    max_frames: Optional[int] = None,
) -> List[FrameState]:
    """Return every frame of one loop in index order.

    ``progress`` is ``i / frame_count`` and never reaches 1, so the last frame
    does not duplicate the first when the loop repeats.
    """
    timing = resolve_timing(request, min_frames=min_frames, max_frames=max_frames)
    frames: List[FrameState] = []
    for i in range(timing.frame_count):
        progress = i / timing.frame_count
        offsets = {record.id: offset_at(record.cycle_length, progress) for record in records}
        frames.append(FrameState(frame_index=i, progress=progress, offsets=offsets))
    return frames
