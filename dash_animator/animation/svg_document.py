"""Parsed SVG document with parent lookup, cloning and inline-style helpers."""
from __future__ import annotations

import copy
import logging
import math
import re
from decimal import Decimal
from typing import Dict, Iterator, List, Optional
from xml.etree import ElementTree as ET

from dash_animator.errors import InvalidDocumentError

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _register_svg_namespace() -> None:
    """Ensure the default SVG namespace is registered for serialization."""
    ET.register_namespace("", SVG_NS)
    ET.register_namespace("xlink", XLINK_NS)


def strip_ns(tag: str) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse the leading numeric literal of ``value`` ("12px" -> 12.0).

    Returns None when there is no finite leading number.
    """
    if value is None:
        return None
    match = _LEADING_NUMBER_RE.match(str(value))
    if not match:
        return None
    number = float(match.group(1))
    if not math.isfinite(number):
        return None
    return number


def format_number(value: float) -> str:
    """Format a number for style values and file names (12.0 -> "12")."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def format_exact(value: float) -> str:
    """Positional notation carrying every significant digit of ``value``."""
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def parse_style_decls(style_text: Optional[str]) -> Dict[str, str]:
    """Parse an inline ``style`` attribute into an ordered map.

    Keys are lower-cased and the first declaration of a key wins.
    """
    decls: Dict[str, str] = {}
    for chunk in str(style_text or "").split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        idx = chunk.find(":")
        if idx <= 0:
            continue
        key = chunk[:idx].strip().lower()
        value = chunk[idx + 1:].strip()
        if key not in decls:
            decls[key] = value
    return decls


def merge_inline_style(original: Optional[str], patch: Optional[str]) -> str:
    """Merge ``patch`` declarations over ``original``; later keys override."""
    merged: Dict[str, str] = {}
    for text in (original or "", patch or ""):
        for chunk in text.split(";"):
            chunk = chunk.strip()
            if not chunk:
                continue
            idx = chunk.find(":")
            if idx <= 0:
                continue
            merged[chunk[:idx].strip()] = chunk[idx + 1:].strip()
    return ";".join(f"{k}:{v}" for k, v in merged.items())


def apply_inline_style(el: ET.Element, patch: str) -> None:
    el.set("style", merge_inline_style(el.get("style") or "", patch))


class SvgDocument:
    """An SVG element tree plus the parent map ElementTree does not keep.

    Document order (``root.iter()``) doubles as a stable node index, so a
    node found in one document can be located again in any clone of it.
    """

    def __init__(self, root: ET.Element):
        self.root = root
        self._parents: Dict[ET.Element, ET.Element] = {}
        self._order: List[ET.Element] = []
        self._positions: Dict[ET.Element, int] = {}
        self.reindex()

    @classmethod
    def from_text(cls, svg_text: str) -> "SvgDocument":
        if svg_text is None or not str(svg_text).strip():
            raise InvalidDocumentError("Document is empty.")
        try:
            root = ET.fromstring(str(svg_text).strip())
        except ET.ParseError as exc:
            raise InvalidDocumentError(f"Document is not well-formed XML: {exc}") from exc
        if strip_ns(root.tag).lower() != "svg":
            raise InvalidDocumentError(f"Root element is <{strip_ns(root.tag)}>, expected <svg>.")
        return cls(root)

    def reindex(self) -> None:
        """Rebuild the parent map and node order after a structural change."""
        self._parents = {child: parent for parent in self.root.iter() for child in parent}
        self._order = list(self.root.iter())
        self._positions = {el: idx for idx, el in enumerate(self._order)}

    def parent_of(self, el: ET.Element) -> Optional[ET.Element]:
        return self._parents.get(el)

    def iter_elements(self) -> Iterator[ET.Element]:
        return iter(self._order)

    def index_of(self, el: ET.Element) -> int:
        try:
            return self._positions[el]
        except KeyError:
            raise ValueError("Element does not belong to this document") from None

    def node_at(self, index: int) -> Optional[ET.Element]:
        if 0 <= index < len(self._order):
            return self._order[index]
        return None

    def find_by_id(self, element_id: str) -> Optional[ET.Element]:
        for el in self._order:
            if el.get("id") == element_id:
                return el
        return None

    def find_all(self, tag: str) -> List[ET.Element]:
        return [el for el in self._order if strip_ns(el.tag) == tag]

    def make_element(self, tag: str, attrib: Optional[Dict[str, str]] = None) -> ET.Element:
        """Create an element in the root's namespace."""
        if self.root.tag.startswith("{"):
            ns = self.root.tag[1:].split("}", 1)[0]
            tag = f"{{{ns}}}{tag}"
        return ET.Element(tag, attrib or {})

    def insert_first(self, el: ET.Element) -> None:
        self.root.insert(0, el)
        self.reindex()

    def remove(self, el: ET.Element) -> bool:
        parent = self.parent_of(el)
        if parent is None:
            return False
        parent.remove(el)
        self.reindex()
        return True

    def clone(self) -> "SvgDocument":
        return SvgDocument(copy.deepcopy(self.root))

    def serialize(self) -> str:
        _register_svg_namespace()
        return ET.tostring(self.root, encoding="unicode")

    def hide_elements(self, element_ids: List[str]) -> int:
        """Merge ``display:none`` into every element whose id is listed."""
        hidden = 0
        for element_id in element_ids:
            el = self.find_by_id(element_id)
            if el is None:
                continue
            apply_inline_style(el, "display:none")
            hidden += 1
        if hidden:
            logger.debug(f"Hid {hidden} overlay element(s)")
        return hidden
