"""Stream frames into ffmpeg to produce a WebM video."""
from __future__ import annotations

import io
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from PIL import Image

from dash_animator.errors import EncoderError
from dash_animator.renderers.sequence_encoder import FrameOptions, ProgressCallback, report_progress
from dash_animator.renderers.transcoder import TranscoderBackend, default_backends, first_available

logger = logging.getLogger(__name__)


def video_quality(gif_quality: int) -> float:
    """Map GIF quality 1-30 (lower is better) to a 0.4-0.99 video quality."""
    q = max(1, min(30, int(gif_quality)))
    value = 1 - (q - 1) / 29 * 0.6
    return max(0.4, min(0.99, value))


def crf_for(quality: float) -> int:
    return int(round((1 - quality) * 63))


class FfmpegVideoEncoder:
    """Pipe PNG frames to ``ffmpeg -f image2pipe`` and collect a VP9 WebM.

    Frames are written as they arrive; ffmpeg's stderr goes to a file in the
    scratch directory so a chatty encoder cannot block the pipe.
    """

    extension = "webm"

    def __init__(
        self,
        width: int,
        height: int,
        fps: int,
        quality: int = 20,
        backends: Sequence[TranscoderBackend] | None = None,
        expected_frames: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.crf = crf_for(video_quality(quality))
        self.backends = list(backends) if backends is not None else default_backends()
        self.expected_frames = expected_frames
        self.on_progress = on_progress
        self._frames = 0
        self._tmp: Optional[tempfile.TemporaryDirectory] = None
        self._proc: Optional[subprocess.Popen] = None
        self._stderr = None

    def _command(self, executable: str, output_path: Path) -> List[str]:
        return [
            executable, "-hide_banner", "-loglevel", "error", "-y",
            "-f", "image2pipe", "-framerate", str(self.fps), "-c:v", "png", "-i", "-",
            "-c:v", "libvpx-vp9", "-pix_fmt", "yuva420p", "-b:v", "0", "-crf", str(self.crf),
            "-s", f"{self.width}x{self.height}",
            str(output_path),
        ]

    def _start(self) -> None:
        executable = first_available(self.backends)
        self._tmp = tempfile.TemporaryDirectory(prefix="dash_video_")
        workdir = Path(self._tmp.name)
        self._stderr = open(workdir / "ffmpeg.log", "w+", encoding="utf-8")
        cmd = self._command(executable, workdir / "out.webm")
        logger.debug(f"Starting {' '.join(cmd)}")
        try:
            self._proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL, stderr=self._stderr)
        except OSError as exc:
            self.close()
            raise EncoderError(f"Could not start ffmpeg: {exc}") from exc

    def _stderr_tail(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.flush()
        self._stderr.seek(0)
        lines = [line.strip() for line in self._stderr.read().splitlines() if line.strip()]
        return " | ".join(lines[-8:])

    def add_frame(self, bitmap: Image.Image, options: FrameOptions) -> None:
        if self._proc is None:
            self._start()
        with io.BytesIO() as buf:
            bitmap.save(buf, format="PNG")
            payload = buf.getvalue()
        try:
            self._proc.stdin.write(payload)
        except (BrokenPipeError, OSError) as exc:
            tail = self._stderr_tail()
            self.close()
            raise EncoderError(f"ffmpeg stopped accepting frames: {tail or exc}") from exc
        self._frames += 1
        if self.expected_frames:
            report_progress(self.on_progress, self._frames / self.expected_frames)

    def finish(self) -> bytes:
        if self._proc is None or not self._frames:
            self.close()
            raise EncoderError("Video encoder received no frames.")
        try:
            self._proc.stdin.close()
            code = self._proc.wait()
            if code != 0:
                raise EncoderError(f"ffmpeg exited with status {code}: {self._stderr_tail()}")
            output_path = Path(self._tmp.name) / "out.webm"
            if not output_path.exists():
                raise EncoderError("ffmpeg produced no output.")
            data = output_path.read_bytes()
        finally:
            self.close()
        report_progress(self.on_progress, 1.0)
        return data

    def close(self) -> None:
        """Stop ffmpeg if still running and remove the scratch directory."""
        if self._proc is not None and self._proc.poll() is None:
            self._proc.kill()
            self._proc.wait()
        self._proc = None
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None
        if self._tmp is not None:
            try:
                self._tmp.cleanup()
            except OSError as exc:
                logger.warning(f"Could not remove encoder scratch directory: {exc}")
            self._tmp = None
