"""yt-dlp utilities for YouTube video download."""
import asyncio
import logging
import shutil
from pathlib import Path

from quickbits.config import settings

logger = logging.getLogger(__name__)


class YtdlpError(Exception):
    """yt-dlp related error."""
    pass


def check_ytdlp_available() -> bool:
    """Check if yt-dlp is available."""
    return shutil.which(settings.ytdlp_path) is not None


def video_url(video_id: str) -> str:
    """Watch URL for a YouTube video id."""
    return f"https://www.youtube.com/watch?v={video_id}"


async def download_video(url: str, output_path: str | Path) -> Path:
    """
    Download a YouTube video as a single mp4 file.

    Args:
        url: YouTube URL
        output_path: Exact path of the file to write

    Returns:
        Path to downloaded video file

    Raises:
        YtdlpError: If the download fails
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ytdlp_path,
        "-f", "mp4",
        "-o", str(output_path),
        "--no-playlist",
        "--quiet",
        "--no-warnings",
        "--force-overwrites",
        url
    ]

    logger.info(f"Running yt-dlp command: {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise YtdlpError(f"yt-dlp not found: {e}") from e

    try:
        _, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    if proc.returncode != 0:
        error_msg = stderr.decode("utf-8", errors="ignore").strip()
        logger.error(f"yt-dlp failed for {url}:\n{error_msg}")
        raise YtdlpError(f"Download failed for {url}: {error_msg.splitlines()[-1] if error_msg else proc.returncode}")

    if not output_path.exists():
        raise YtdlpError(f"Download completed but video file not found: {output_path}")

    return output_path
