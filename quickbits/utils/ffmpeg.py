"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from quickbits.config import settings

logger = logging.getLogger(__name__)

# Centered crop to 9:16, full source height
VERTICAL_CROP_FILTER = "crop=ih*9/16:ih"

_MEAN_VOLUME_RE = re.compile(r"mean_volume:\s*(-?\d+(?:\.\d+)?)\s*dB")


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


class ExtractionFailed(FFmpegError):
    """Raised when cutting a clip out of the source fails."""
    pass


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


async def _run_process(*cmd: str) -> tuple[int, str, str]:
    """
    Run an external tool to completion.

    Returns:
        Tuple of (returncode, stdout, stderr)

    Raises:
        FFmpegError: If the executable cannot be started
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"{cmd[0]} not found: {e}") from e

    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
    return (
        proc.returncode,
        stdout.decode("utf-8", errors="ignore") if stdout else "",
        stderr.decode("utf-8", errors="ignore") if stderr else "",
    )


def _tail(text: str, lines: int = 10) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


async def probe_streams(video_path: str | Path) -> Optional[list]:
    """
    Get stream metadata using ffprobe.

    Returns:
        List of stream dictionaries, or None if ffprobe printed
        something that isn't usable stream metadata

    Raises:
        FFmpegError: If ffprobe fails
    """
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_streams",
        str(video_path)
    ]

    returncode, stdout, stderr = await _run_process(*cmd)
    if returncode != 0:
        raise FFmpegError(f"ffprobe failed for {video_path}: {_tail(stderr) or returncode}")

    try:
        data = json.loads(stdout)
    except json.JSONDecodeError:
        logger.warning(f"Unparseable ffprobe output for {video_path}")
        return None

    streams = data.get("streams") if isinstance(data, dict) else None
    return streams if isinstance(streams, list) else None


async def detect_mean_volume(video_path: str | Path) -> Optional[float]:
    """
    Measure the mean volume of a file's audio with the volumedetect filter.

    Returns:
        Mean volume in dB, or None when ffmpeg reported no figure

    Raises:
        FFmpegError: If ffmpeg fails
    """
    cmd = [
        settings.ffmpeg_path,
        "-hide_banner",
        "-nostats",
        "-i", str(video_path),
        "-af", "volumedetect",
        "-vn",
        "-f", "null",
        "-"
    ]

    returncode, _, stderr = await _run_process(*cmd)
    if returncode != 0:
        raise FFmpegError(f"Volume detection failed for {video_path}: {_tail(stderr) or returncode}")

    # FFmpeg outputs filter reports to stderr
    match = _MEAN_VOLUME_RE.search(stderr or "")
    if not match:
        return None
    return float(match.group(1))


async def extract_chapter(
    input_path: str | Path,
    output_path: str | Path,
    start_seconds: float,
    duration_seconds: float,
) -> Path:
    """
    Cut a section of the source and crop it to a vertical 9:16 frame.

    Args:
        input_path: Path to source video
        output_path: Path for output file
        start_seconds: Seek position in seconds
        duration_seconds: Length of the cut in seconds

    Returns:
        Path to extracted clip

    Raises:
        ExtractionFailed: If ffmpeg fails
    """
    output_path = Path(output_path)

    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-ss", str(start_seconds),
        "-i", str(input_path),
        "-t", str(duration_seconds),
        "-vf", VERTICAL_CROP_FILTER,
        "-c:v", settings.export_video_codec,
        "-preset", settings.export_video_preset,
        "-crf", str(settings.export_video_crf),
        "-c:a", settings.export_audio_codec,
        "-b:a", settings.export_audio_bitrate,
        "-movflags", "+faststart",
        str(output_path)
    ]

    logger.debug(f"Running ffmpeg command: {' '.join(cmd)}")
    try:
        returncode, _, stderr = await _run_process(*cmd)
    except FFmpegError as e:
        raise ExtractionFailed(str(e)) from e

    if returncode != 0:
        raise ExtractionFailed(f"Error extracting chapter: {_tail(stderr) or returncode}")

    logger.info(f"Chapter extracted to {output_path}")
    return output_path
