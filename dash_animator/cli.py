"""CLI interface."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from dash_animator.errors import DashAnimatorError
from dash_animator.services.export_service import (
    build_export_request,
    export_gif,
    export_webm,
    transcode_file,
    write_animated_svg,
)
from dash_animator.services.session_service import build_preview, load_session_file
from dash_animator.utils.config import settings

app = typer.Typer(add_completion=False, help="Animate dashed strokes in SVG files.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-frame progress.")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def detect(file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SVG file.")):
    """List the dashed shapes and their cycle lengths."""
    try:
        session = load_session_file(file)
    except DashAnimatorError as exc:
        _fail(exc)
    payload = {
        "fallback": session.used_fallback,
        "records": [{"id": r.id, "cycle": r.cycle_length} for r in session.records],
    }
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def preview(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SVG file."),
    duration: float = typer.Option(settings.preview_duration, "--duration", "-d", help="Seconds per dash cycle."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o"),
):
    """Write a self-animating SVG (animated-dash.svg)."""
    try:
        session = load_session_file(file)
        build_preview(session, duration)
        path = write_animated_svg(session, duration, output_dir=output_dir)
    except DashAnimatorError as exc:
        _fail(exc)
    typer.echo(str(path))


@app.command()
def export(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SVG file."),
    fmt: str = typer.Option("gif", "--format", "-f", help="gif or webm."),
    fps: Optional[float] = typer.Option(None, "--fps", help="Frames per second (1-60)."),
    duration: Optional[float] = typer.Option(None, "--duration", "-d", help="Loop length in seconds."),
    scale: Optional[float] = typer.Option(None, "--scale", "-s"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="1-30, lower is better."),
    dither: Optional[bool] = typer.Option(None, "--dither/--no-dither"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o"),
):
    """Render one loop of the dash animation to GIF or WebM."""
    fmt = fmt.strip().lower()
    if fmt not in ("gif", "webm"):
        raise typer.BadParameter("Format must be gif or webm")
    request = build_export_request(
        settings,
        frames_per_second=fps,
        duration_seconds=duration,
        scale=scale,
        quality=quality,
        dither=dither,
    )

    def progress(fraction: float) -> None:
        logging.getLogger(__name__).debug(f"Encoding {fraction * 100:.0f}%")

    exporter = export_gif if fmt == "gif" else export_webm
    try:
        session = load_session_file(file)
        result = asyncio.run(exporter(session, request, output_dir=output_dir, on_progress=progress))
    except DashAnimatorError as exc:
        _fail(exc)
    typer.echo(str(result.path))


@app.command()
def transcode(
    video: Path = typer.Argument(..., exists=True, dir_okay=False, help="WebM file."),
    fps: Optional[float] = typer.Option(None, "--fps"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o"),
):
    """Convert a WebM export into a palette-optimized GIF with ffmpeg."""
    try:
        path = transcode_file(video, fps, output_dir=output_dir)
    except DashAnimatorError as exc:
        _fail(exc)
    typer.echo(str(path))


if __name__ == "__main__":
    app()
