"""File utilities."""
from __future__ import annotations

from pathlib import Path


def ensure_dir(path: str | Path) -> Path:
    """Ensure directory exists and return Path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def read_text_file(path: str | Path) -> str:
    """Read a whole document as UTF-8 text.

    Falls back to ignoring undecodable bytes so a stray byte in a comment
    does not reject an otherwise valid drawing.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing file: {path}")
    try:
        return p.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return p.read_text(encoding="utf-8", errors="ignore")


def write_output(output_dir: str | Path, filename: str, payload: bytes | str) -> Path:
    """Write a finished export into ``output_dir`` and return its path."""
    target = ensure_dir(output_dir) / filename
    if isinstance(payload, str):
        target.write_text(payload, encoding="utf-8")
    else:
        target.write_bytes(payload)
    return target
