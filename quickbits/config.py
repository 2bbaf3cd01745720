"""Application configuration."""
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "QuickBits"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/videos.db"

    # Data directories
    data_dir: Path = Path("./data")
    videos_dir: Path = Path("./videos")  # Working directory for downloads and clips
    backlog_path: Path = Path("./videos.json")  # Older channel videos, see scripts/

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # yt-dlp settings
    ytdlp_path: str = "yt-dlp"

    # Export settings
    export_video_codec: str = "libx264"
    export_video_preset: str = "veryfast"
    export_video_crf: int = 18
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "192k"

    # Chapter selection
    quick_bits_names: List[str] = [
        "quick bits intro",
        "quick bits",
        "quick intro",
        "quaint blips",
    ]
    clip_padding_seconds: int = 2  # Lead-in and lead-out around the chapter
    silence_threshold_db: float = -90.0  # Mean volume at or below this is silent

    # Publishing
    platforms: List[str] = ["youtube", "twitter"]

    # YouTube Data API
    youtube_api_key: str = ""
    channel_id: str = ""
    latest_videos_count: int = 5

    # YouTube uploads (OAuth)
    youtube_client_id: str = ""
    youtube_client_secret: str = ""
    youtube_refresh_token: str = ""
    youtube_category_id: str = "28"  # Science & Technology
    youtube_privacy_status: str = "public"
    youtube_tags: List[str] = ["quick bits"]

    # Twitter/X uploads (OAuth 2.0 user context)
    twitter_access_token: Optional[str] = None

    # Batch runs
    scheduler_enabled: bool = True
    run_interval_seconds: int = 60 * 60
    max_videos_per_day: int = 5
    last_run_hour: int = 23  # Hour whose run also drains the backlog


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.videos_dir.mkdir(parents=True, exist_ok=True)
