import tempfile
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Scene Composer"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3001

    # Shared secret expected in "Authorization: Bearer <secret>"
    api_secret: str = ""

    # Worker pool
    worker_pool_size: int = 2
    max_queued_jobs: int = 16

    # Job registry retention
    job_retention_seconds: int = 3600  # 1 hour
    sweep_interval_seconds: int = 300  # 5 minutes

    # Scratch storage for downloads and intermediate clips
    scratch_root: str = tempfile.gettempdir()
    scratch_prefix: str = "compose-"

    # Asset downloads
    download_timeout_seconds: float = 120.0
    download_chunk_size: int = 1024 * 1024

    # Media backend
    media_backend: Literal["ffmpeg"] = "ffmpeg"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_timeout_seconds: int = 1800

    # Render settings
    render_output_width: int = 1920
    render_output_height: int = 1080
    render_fps: int = 30
    render_video_codec: str = "libx264"
    render_preset: str = "fast"
    render_crf: int = 23
    render_audio_codec: str = "aac"
    render_audio_bitrate: str = "192k"
    render_audio_sample_rate: int = 44100
    thumbnail_width: int = 640
    default_fade_duration_ms: int = 500

    # Storage
    use_local_storage: bool = True  # Set to False in production
    local_storage_path: str = "/tmp/scene-composer-storage"
    local_storage_base_url: str = "http://localhost:3001/files"
    gcs_bucket_name: str = "scene-composer-renders"
    gcs_project_id: str = ""
    # CDN in front of the bucket; falls back to the storage URL when empty
    public_base_url: str = ""

    # Webhook delivery
    webhook_timeout_seconds: float = 10.0
    webhook_max_attempts: int = 3
    webhook_backoff_min_seconds: float = 1.0
    webhook_backoff_max_seconds: float = 10.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
