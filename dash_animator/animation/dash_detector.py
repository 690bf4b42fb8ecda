"""Find dashed shapes in an SVG document and compute their dash cycle lengths."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from xml.etree import ElementTree as ET

from dash_animator.animation.style_resolver import resolve
from dash_animator.animation.svg_document import SvgDocument, parse_number, strip_ns

logger = logging.getLogger(__name__)

SHAPE_TAGS = frozenset({"path", "line", "polyline", "polygon", "circle", "rect", "ellipse"})
DASH_PROPERTY = "stroke-dasharray"
DEFAULT_CYCLE_LENGTH = 300.0
DEFAULT_FALLBACK_CONTAINER_ID = "items"

_DASH_SPLIT_RE = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class AnimationRecord:
    """One animated shape: its session id and one full dash cycle."""
    id: str
    cycle_length: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.cycle_length) and self.cycle_length > 0):
            raise ValueError(f"cycle_length must be positive, got {self.cycle_length!r}")


@dataclass
class DetectionResult:
    records: List[AnimationRecord] = field(default_factory=list)
    # record id -> document-order index of the shape
    node_index: Dict[str, int] = field(default_factory=dict)
    used_fallback: bool = False


def parse_dash_array(value: Optional[str]) -> List[float]:
    """Parse "5, 7" / "5px 7px" / "5 7" into [5.0, 7.0].

    Tokens without a finite, non-negative leading number are dropped.
    """
    numbers: List[float] = []
    for token in _DASH_SPLIT_RE.split(str(value or "").strip()):
        if not token:
            continue
        number = parse_number(token)
        if number is None or number < 0:
            continue
        numbers.append(number)
    return numbers


def cycle_length_for(value: Optional[str]) -> float:
    """Sum of the dash pattern, or the default cycle when it is not positive."""
    total = sum(parse_dash_array(value))
    return total if total > 0 else DEFAULT_CYCLE_LENGTH


def is_dashed(value: Optional[str]) -> bool:
    text = (value or "").strip()
    return bool(text) and text.lower() != "none"


def _iter_shapes(document: SvgDocument) -> Iterable[ET.Element]:
    for el in document.iter_elements():
        if strip_ns(el.tag) in SHAPE_TAGS:
            yield el


def _fallback_candidates(document: SvgDocument, container_id: str) -> List[ET.Element]:
    """Paths inside ``g[stroke-dasharray]`` groups under the fallback container."""
    candidates: List[ET.Element] = []
    seen = set()
    for container in document.iter_elements():
        if container.get("id") != container_id:
            continue
        for child in container:
            for group in child.iter():
                if strip_ns(group.tag) != "g" or DASH_PROPERTY not in group.attrib:
                    continue
                for el in group.iter():
                    if strip_ns(el.tag) == "path" and el not in seen:
                        seen.add(el)
                        candidates.append(el)
    # restore document order when groups nest or containers repeat
    candidates.sort(key=document.index_of)
    return candidates


def detect(
    document: SvgDocument,
    fallback_container_id: str = DEFAULT_FALLBACK_CONTAINER_ID,
) -> DetectionResult:
    """Classify every drawable shape and assign ``dash-<n>`` ids in document order.

    When no shape resolves to a dash pattern, paths inside dashed groups of the
    fallback container are marked instead, each with the default cycle length.
    The document is not modified.
    """
    result = DetectionResult()
    seq = 0
    for el in _iter_shapes(document):
        dash_value = resolve(document, el, DASH_PROPERTY)
        if not is_dashed(dash_value):
            continue
        seq += 1
        record = AnimationRecord(id=f"dash-{seq}", cycle_length=cycle_length_for(dash_value))
        result.records.append(record)
        result.node_index[record.id] = document.index_of(el)

    if result.records:
        logger.info(f"Detected {len(result.records)} dashed shape(s)")
        return result

    fallback = _fallback_candidates(document, fallback_container_id)
    for idx, el in enumerate(fallback, start=1):
        record = AnimationRecord(id=f"dash-{idx}", cycle_length=DEFAULT_CYCLE_LENGTH)
        result.records.append(record)
        result.node_index[record.id] = document.index_of(el)
    result.used_fallback = True
    if fallback:
        logger.warning(
            f"No dashed shapes resolved; force-marked {len(fallback)} path(s) under #{fallback_container_id}"
        )
    else:
        logger.info("No dashed shapes detected")
    return result
