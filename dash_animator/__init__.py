"""Detect dashed strokes in SVG documents and animate them as marching ants."""

__version__ = "0.1.0"
