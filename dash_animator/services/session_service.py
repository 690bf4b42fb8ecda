"""Preview sessions: one loaded document with its detected dash animations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import uuid4
from xml.etree import ElementTree as ET

from dash_animator.animation.animation_binder import bind, normalize_preview_duration
from dash_animator.animation.dash_detector import AnimationRecord, detect
from dash_animator.animation.svg_document import SvgDocument
from dash_animator.utils.config import Settings, settings as default_settings
from dash_animator.utils.file_utils import read_text_file

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """State carried from detection through binding to export.

    Nothing here is global, so independent sessions never interfere.
    """
    source_text: str
    document: SvgDocument
    records: List[AnimationRecord]
    nodes: Dict[str, ET.Element]
    used_fallback: bool = False
    preview_duration: Optional[float] = None
    session_id: str = field(default_factory=lambda: uuid4().hex[:12])

    def node_for(self, record_id: str) -> Optional[ET.Element]:
        return self.nodes.get(record_id)

    def clone_document(self) -> Tuple[SvgDocument, Dict[str, ET.Element]]:
        """Deep-copy the document and map each record id to its copied node."""
        clone = self.document.clone()
        mapped: Dict[str, ET.Element] = {}
        for record_id, el in self.nodes.items():
            copy_el = clone.node_at(self.document.index_of(el))
            if copy_el is not None:
                mapped[record_id] = copy_el
        return clone, mapped


def load_session(svg_text: str, config: Settings | None = None) -> Session:
    """Parse ``svg_text`` and detect its dashed shapes."""
    cfg = config or default_settings
    document = SvgDocument.from_text(svg_text)
    detection = detect(document, fallback_container_id=cfg.fallback_container_id)
    nodes: Dict[str, ET.Element] = {}
    for record_id, index in detection.node_index.items():
        el = document.node_at(index)
        if el is not None:
            nodes[record_id] = el
    session = Session(
        source_text=svg_text,
        document=document,
        records=list(detection.records),
        nodes=nodes,
        used_fallback=detection.used_fallback,
    )
    logger.info(
        f"Session {session.session_id}: {len(session.records)} animated shape(s)"
        + (" (fallback)" if session.used_fallback and session.records else "")
    )
    return session


def load_session_file(path: str | Path, config: Settings | None = None) -> Session:
    return load_session(read_text_file(path), config=config)


def build_preview(session: Session, duration_seconds: float | None = None, config: Settings | None = None) -> int:
    """Hide overlays and bind the looping dash animation to the session document."""
    cfg = config or default_settings
    duration = normalize_preview_duration(
        cfg.preview_duration if duration_seconds is None else duration_seconds
    )
    session.document.hide_elements(cfg.overlay_ids)
    bound = bind(session.document, session.records, session.node_for, duration)
    session.preview_duration = duration
    return bound
