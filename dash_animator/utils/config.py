"""Application configuration.

Values are read from .env and environment variables prefixed with
``DASH_ANIMATOR_`` (for example ``DASH_ANIMATOR_EXPORT_FPS=24``).
"""
from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from .env and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DASH_ANIMATOR_",
        extra="ignore",
    )

    preview_duration: float = 4.0
    export_fps: int = 12
    export_duration: float = 1.5
    export_scale: float = 1.0
    area_cap_pixels: int = 300_000
    min_frames: int = 8
    max_frames: int = 120
    gif_quality: int = Field(default=20, ge=1, le=30)
    gif_dither: bool = False
    gif_background: str = "#ffffff"
    output_dir: str = "outputs"
    ffmpeg_path: str = ""
    fallback_container_id: str = "items"
    overlay_ids: List[str] = Field(default_factory=lambda: ["w1d0ieb11a48gsq"])
    fallback_width: int = 1024
    fallback_height: int = 768


settings = Settings()
