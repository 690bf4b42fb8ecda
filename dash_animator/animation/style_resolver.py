"""Resolve presentation properties from attributes and inline styles.

Only the element's own attribute and its ``style`` declarations are
consulted, walking up through ancestors. Stylesheets and the computed
cascade are ignored so results do not depend on a live rendering context.
"""
from __future__ import annotations

from typing import Optional
from xml.etree import ElementTree as ET

from dash_animator.animation.svg_document import SvgDocument, parse_style_decls


def _local_value(el: ET.Element, name: str) -> str:
    attr = el.get(name)
    if attr is not None and attr.strip():
        return attr.strip()
    style_attr = el.get("style")
    if style_attr:
        value = parse_style_decls(style_attr).get(name, "")
        if value:
            return value
    return ""


def resolve(document: SvgDocument, node: ET.Element, property_name: str) -> str:
    """Return the effective value of ``property_name`` for ``node``.

    Each element from ``node`` up to the root is checked for a same-named
    attribute, then for a declaration in its inline style. Returns an empty
    string when nothing is found.
    """
    name = str(property_name or "").lower()
    if not name:
        return ""
    current: Optional[ET.Element] = node
    while current is not None:
        value = _local_value(current, name)
        if value:
            return value
        current = document.parent_of(current)
    return ""
