import asyncio
import subprocess
from pathlib import Path

import pytest
from PIL import Image

from tests.fakes import FakeRasterizer, RecordingEncoder, StripeRasterizer
from dash_animator.animation.frame_synthesizer import ExportRequest
from dash_animator.errors import EncoderError, NoAnimatedShapesError, RasterizationError, TranscoderUnavailableError
from dash_animator.services.export_service import (
    ANIMATED_SVG_FILENAME,
    build_export_request,
    export_animated_svg,
    export_gif,
    export_sequence,
    transcode_file,
    write_animated_svg,
)
from dash_animator.services.session_service import build_preview, load_session
from dash_animator.renderers.transcoder import TranscoderBackend


def test_gif_export_writes_one_loop(config, dashed_svg, tmp_path):
    session = load_session(dashed_svg, config)
    progress = []

    result = asyncio.run(
        export_gif(
            session,
            ExportRequest(frames_per_second=12, duration_seconds=1),
            rasterizer=StripeRasterizer(),
            output_dir=tmp_path,
            on_progress=progress.append,
            config=config,
        )
    )

    assert result.path == tmp_path / "animated-dash-120x60-12fps-1s-12f.gif"
    assert result.byte_count == result.path.stat().st_size
    with Image.open(result.path) as gif:
        assert gif.format == "GIF"
        assert gif.size == (120, 60)
        assert gif.n_frames == 12
        assert gif.info.get("loop") == 0
    assert progress[-1] == 1.0
    assert progress == sorted(progress)


def test_export_without_animated_shapes_is_rejected(config, tmp_path):
    session = load_session('<svg xmlns="http://www.w3.org/2000/svg"><rect width="4" height="4"/></svg>', config)
    out = tmp_path / "out"
    with pytest.raises(NoAnimatedShapesError):
        asyncio.run(export_gif(session, ExportRequest(), rasterizer=StripeRasterizer(), output_dir=out, config=config))
    assert not out.exists()


def test_failed_render_writes_nothing(config, dashed_svg, tmp_path):
    session = load_session(dashed_svg, config)
    encoder = RecordingEncoder()
    out = tmp_path / "out"
    with pytest.raises(RasterizationError):
        asyncio.run(
            export_sequence(session, ExportRequest(), encoder, rasterizer=FakeRasterizer(fail_at=2), output_dir=out, config=config)
        )
    assert encoder.finished is False
    assert not out.exists()


def test_export_sequence_names_file_after_size_and_timing(config, dashed_svg, tmp_path):
    session = load_session(dashed_svg, config)
    result = asyncio.run(
        export_sequence(
            session,
            ExportRequest(frames_per_second=10, duration_seconds=2.5, scale=0.5),
            RecordingEncoder(),
            rasterizer=FakeRasterizer(),
            output_dir=tmp_path,
            config=config,
        )
    )
    assert result.path.name == "animated-dash-60x30-10fps-2.5s-25f.bin"
    assert result.path.read_bytes() == b"x" * 25


def test_build_export_request_ignores_missing_overrides(config):
    request = build_export_request(config, frames_per_second=24, duration_seconds=None)
    assert request.frames_per_second == 24
    assert request.duration_seconds == config.export_duration
    assert request.quality == config.gif_quality


def test_animated_svg_export_leaves_session_untouched(config, dashed_svg):
    session = load_session(dashed_svg, config)
    before = session.document.serialize()

    text = export_animated_svg(session, 3, config=config)

    assert "@keyframes dash" in text
    assert 'data-dash-id="dash-1"' in text
    assert "--dash-duration:3s" in text
    assert text.startswith('<svg xmlns="http://www.w3.org/2000/svg"')
    assert session.document.serialize() == before


def test_animated_svg_uses_preview_duration(config, dashed_svg, tmp_path):
    session = load_session(dashed_svg, config)
    build_preview(session, 2.5, config)

    path = write_animated_svg(session, output_dir=tmp_path, config=config)

    assert path == tmp_path / ANIMATED_SVG_FILENAME
    content = path.read_text(encoding="utf-8")
    assert content.count("@keyframes dash") == 1
    assert "dash 2.5s linear infinite" in content


def _fake_ffmpeg(calls):
    def run(cmd, check, stdout, stderr, text, timeout):
        calls.append(cmd)
        if cmd[0].endswith("bad"):
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="Invalid data found\n")
        Path(cmd[-1]).write_bytes(b"GIF89a")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    return run


def test_transcode_falls_back_to_next_backend(monkeypatch, config, tmp_path):
    calls = []
    monkeypatch.setattr("dash_animator.renderers.transcoder.shutil.which", lambda name: f"/opt/bin/{name}")
    monkeypatch.setattr("dash_animator.renderers.transcoder.subprocess.run", _fake_ffmpeg(calls))
    video = tmp_path / "clip.webm"
    video.write_bytes(b"\x1aE\xdf\xa3")

    path = transcode_file(
        video,
        fps=15,
        output_dir=tmp_path / "out",
        backends=[TranscoderBackend("broken", "bad"), TranscoderBackend("system", "good")],
        config=config,
    )

    assert path == tmp_path / "out" / "converted-15fps.gif"
    assert path.read_bytes() == b"GIF89a"
    assert [c[0] for c in calls] == ["/opt/bin/bad", "/opt/bin/good"]
    filter_arg = calls[1][calls[1].index("-filter_complex") + 1]
    assert filter_arg.startswith("fps=15,split[s0][s1]")
    assert "paletteuse=dither=floyd_steinberg" in filter_arg


def test_transcode_reports_last_failure(monkeypatch, config, tmp_path):
    monkeypatch.setattr("dash_animator.renderers.transcoder.shutil.which", lambda name: f"/opt/bin/{name}")
    monkeypatch.setattr("dash_animator.renderers.transcoder.subprocess.run", _fake_ffmpeg([]))
    video = tmp_path / "clip.webm"
    video.write_bytes(b"data")

    with pytest.raises(EncoderError, match="Invalid data found"):
        transcode_file(video, output_dir=tmp_path, backends=[TranscoderBackend("broken", "bad")], config=config)
    assert not (tmp_path / "converted-12fps.gif").exists()


def test_transcode_without_ffmpeg(monkeypatch, config, tmp_path):
    monkeypatch.setattr("dash_animator.renderers.transcoder.shutil.which", lambda name: None)
    video = tmp_path / "clip.webm"
    video.write_bytes(b"data")

    with pytest.raises(TranscoderUnavailableError):
        transcode_file(video, output_dir=tmp_path, config=config)
