"""Dash animation core.

Components:
- svg_document: parsed SVG tree with parent lookup and inline-style helpers
- style_resolver: attribute/inline-style property resolution up the tree
- dash_detector: classifies dashed shapes and their cycle lengths
- animation_binder: binds looping CSS dash animations for preview
- frame_synthesizer: per-frame dash offsets for raster export
"""

from dash_animator.animation.svg_document import (
    SvgDocument,
    merge_inline_style,
    parse_style_decls,
)

from dash_animator.animation.style_resolver import resolve

from dash_animator.animation.dash_detector import (
    AnimationRecord,
    DetectionResult,
    DEFAULT_CYCLE_LENGTH,
    cycle_length_for,
    detect,
    parse_dash_array,
)

from dash_animator.animation.animation_binder import (
    bind,
    build_dash_css,
)

from dash_animator.animation.frame_synthesizer import (
    ExportRequest,
    FrameState,
    FrameTiming,
    plan_frames,
    resolve_timing,
)

__all__ = [
    # Document
    "SvgDocument",
    "merge_inline_style",
    "parse_style_decls",
    # Style resolution
    "resolve",
    # Detection
    "AnimationRecord",
    "DetectionResult",
    "DEFAULT_CYCLE_LENGTH",
    "cycle_length_for",
    "detect",
    "parse_dash_array",
    # Binding
    "bind",
    "build_dash_css",
    # Frame synthesis
    "ExportRequest",
    "FrameState",
    "FrameTiming",
    "plan_frames",
    "resolve_timing",
]
