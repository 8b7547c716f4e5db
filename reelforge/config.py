from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Reelforge API"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://localhost:6379/0"

    # Job queue
    worker_concurrency: int = 2  # Fixed worker pool size
    job_max_attempts: int = 3
    job_backoff_base_seconds: float = 1.0  # Exponential: base * 2**retries
    job_result_ttl_seconds: int = 3600  # Retention window for finished jobs
    job_wait_timeout_seconds: int = 900  # How long the API waits for a result

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    engine_timeout_seconds: int = 600  # 10 minutes per engine invocation
    probe_timeout_seconds: int = 30

    # Downloads
    download_timeout_seconds: float = 120.0
    download_chunk_size: int = 1024 * 1024

    # Per-job workspaces
    temp_dir: str = "/tmp/reelforge/jobs"

    # Background asset cache (container lifetime)
    cache_dir: str = "/tmp/reelforge/cache/backgrounds"
    cache_max_entries: int = 32
    cache_max_bytes: int = 10 * 1024 ** 3  # 10 GiB
    cache_ttl_seconds: int = 7 * 24 * 3600

    # Object storage
    use_local_storage: bool = True  # Set to False in production
    local_storage_path: str = "/tmp/reelforge-storage"
    local_public_url: str = "http://localhost:8000/files"
    gcs_bucket_name: str = "reelforge-renders"
    gcs_project_id: str = ""
    storage_path_prefix: str = ""

    # Bundled assets
    overlay_assets_dir: str = "assets/overlays"
    fonts_dir: str = ""  # Passed to the ass filter when set

    # Render settings
    render_fps: int = 30
    render_crf: int = 23
    render_preset: str = "fast"
    render_audio_bitrate: str = "192k"
    render_audio_sample_rate: int = 44100

    # Caption timing: how to treat out-of-order / overlapping word timestamps
    caption_timestamp_policy: Literal["clamp", "reject"] = "clamp"


@lru_cache
def get_settings() -> Settings:
    return Settings()
