"""Bind looping CSS dash-offset animations to detected shapes for preview."""
from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional
from xml.etree import ElementTree as ET

from dash_animator.animation.dash_detector import AnimationRecord
from dash_animator.animation.svg_document import SvgDocument, apply_inline_style, format_number

logger = logging.getLogger(__name__)

STYLE_ELEMENT_ID = "dash-anim-style"
DASH_ID_ATTR = "data-dash-id"
KEYFRAMES_NAME = "dash"
DEFAULT_PREVIEW_DURATION = 4.0

NodeLookup = Callable[[str], Optional[ET.Element]]


def normalize_preview_duration(duration_seconds: Optional[float]) -> float:
    try:
        value = float(duration_seconds)
    except (TypeError, ValueError):
        return DEFAULT_PREVIEW_DURATION
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_PREVIEW_DURATION
    return value


def build_dash_css() -> str:
    """Keyframes sweeping the offset from -cycle to 0, scoped to bound shapes."""
    lines: List[str] = [
        f"[{DASH_ID_ATTR}] {{",
        f"  animation: {KEYFRAMES_NAME} var(--dash-duration, {format_number(DEFAULT_PREVIEW_DURATION)}s) linear infinite;",
        "  will-change: stroke-dashoffset;",
        "}",
        f"@keyframes {KEYFRAMES_NAME} {{",
        "  from { stroke-dashoffset: calc(var(--dash-cycle, 300) * -1); }",
        "  to { stroke-dashoffset: 0; }",
        "}",
    ]
    return "\n".join(lines)


def _ensure_style_element(document: SvgDocument) -> ET.Element:
    existing = document.find_by_id(STYLE_ELEMENT_ID)
    if existing is not None:
        return existing
    style_el = document.make_element("style", {"id": STYLE_ELEMENT_ID})
    style_el.text = build_dash_css()
    document.insert_first(style_el)
    return style_el


def animation_directive(duration_seconds: float) -> str:
    return f"{KEYFRAMES_NAME} {format_number(duration_seconds)}s linear infinite"


def bind(
    document: SvgDocument,
    records: List[AnimationRecord],
    lookup: NodeLookup,
    duration_seconds: float,
) -> int:
    """Attach cycle, duration and the playback directive to each record's node.

    Rebinding overwrites the duration only; cycle and unrelated attributes are
    left as they were. Returns the number of nodes bound.
    """
    if not records:
        return 0
    duration = normalize_preview_duration(duration_seconds)
    _ensure_style_element(document)
    bound = 0
    for record in records:
        el = lookup(record.id)
        if el is None:
            logger.warning(f"No node for animation record {record.id}")
            continue
        el.set(DASH_ID_ATTR, record.id)
        apply_inline_style(
            el,
            f"--dash-cycle:{format_number(record.cycle_length)};"
            f"--dash-duration:{format_number(duration)}s;"
            f"animation:{animation_directive(duration)} !important",
        )
        bound += 1
    logger.debug(f"Bound {bound} node(s) with duration {duration}s")
    return bound
