import tempfile
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Render Worker"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Clients send sha256(api_secret) in the x-api-key header
    api_secret: str = "admin"

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Render settings
    render_tmp_dir: str = Field(default_factory=tempfile.gettempdir)
    render_max_images: int = Field(20, ge=1)
    render_min_image_duration: float = Field(1.0, gt=0)
    render_background_volume: float = Field(0.3, ge=0)
    render_narration_volume: float = Field(1.0, ge=0)

    # Zoom/fade chain, off unless explicitly enabled
    render_motion_effect: bool = False
    render_fps: int = Field(25, ge=1)
    render_fade_s: float = Field(0.5, ge=0)

    # Subprocess timeouts (seconds)
    render_probe_timeout_s: float = Field(30.0, gt=0)
    render_ffmpeg_timeout_s: float = Field(1800.0, gt=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v


@lru_cache
def get_settings() -> Settings:
    return Settings()
