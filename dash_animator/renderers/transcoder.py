"""Re-encode exported video into a palette-optimized GIF with ffmpeg.

Backends are tried in order and the first one that succeeds wins. Which
executables are tried is a policy of the caller; the frame pipeline never
depends on a transcoder being present.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from dash_animator.errors import EncoderError, TranscoderUnavailableError
from dash_animator.utils.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_LOG_TAIL_LINES = 8


@dataclass(frozen=True)
class TranscoderBackend:
    name: str
    executable: str

    def resolve(self) -> Optional[str]:
        """Absolute path of the executable, or None when it cannot be found."""
        return shutil.which(self.executable)


def default_backends(config: Settings | None = None) -> List[TranscoderBackend]:
    cfg = config or default_settings
    backends: List[TranscoderBackend] = []
    if cfg.ffmpeg_path:
        backends.append(TranscoderBackend(name="configured", executable=cfg.ffmpeg_path))
    backends.append(TranscoderBackend(name="system", executable="ffmpeg"))
    return backends


def first_available(backends: Sequence[TranscoderBackend]) -> str:
    for backend in backends:
        path = backend.resolve()
        if path:
            return path
    names = ", ".join(b.executable for b in backends) or "none configured"
    raise TranscoderUnavailableError(f"ffmpeg is not available (tried: {names}).")


def palette_filter(fps: int) -> str:
    return (
        f"fps={fps},split[s0][s1];"
        "[s0]palettegen=stats_mode=full[p];"
        "[s1][p]paletteuse=dither=floyd_steinberg"
    )


def _log_tail(stderr: str) -> str:
    lines = [line for line in (stderr or "").splitlines() if line.strip()]
    return " | ".join(lines[-_LOG_TAIL_LINES:])


def run_ffmpeg(executable: str, args: List[str], timeout: float = 300) -> None:
    cmd = [executable, "-hide_banner", "-loglevel", "error"] + args
    logger.debug(f"Running {' '.join(cmd)}")
    subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, timeout=timeout)


def transcode_to_gif(
    video: bytes,
    fps: int,
    backends: Sequence[TranscoderBackend] | None = None,
    input_suffix: str = ".webm",
) -> bytes:
    """Convert ``video`` to a looping GIF using the first working backend."""
    candidates = list(backends) if backends is not None else default_backends()
    last_error = ""
    attempted = 0
    with tempfile.TemporaryDirectory(prefix="dash_transcode_") as tmp_dir:
        workdir = Path(tmp_dir)
        input_path = workdir / f"in{input_suffix}"
        output_path = workdir / "out.gif"
        input_path.write_bytes(video)
        for backend in candidates:
            executable = backend.resolve()
            if not executable:
                logger.debug(f"Transcoder backend {backend.name} unavailable ({backend.executable})")
                continue
            attempted += 1
            try:
                run_ffmpeg(
                    executable,
                    ["-y", "-i", str(input_path), "-filter_complex", palette_filter(fps), "-loop", "0", str(output_path)],
                )
            except subprocess.CalledProcessError as exc:
                last_error = _log_tail(exc.stderr)
                logger.warning(f"Transcoder backend {backend.name} failed: {last_error}")
                continue
            except (OSError, subprocess.TimeoutExpired) as exc:
                last_error = str(exc)
                logger.warning(f"Transcoder backend {backend.name} failed: {last_error}")
                continue
            if output_path.exists():
                logger.info(f"Transcoded with {backend.name} backend")
                return output_path.read_bytes()
            last_error = "no output produced"
    if not attempted:
        names = ", ".join(b.executable for b in candidates) or "none configured"
        raise TranscoderUnavailableError(f"ffmpeg is not available (tried: {names}).")
    raise EncoderError(f"Transcoding failed: {last_error}")
