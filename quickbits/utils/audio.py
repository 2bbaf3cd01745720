"""Audio presence checks used to reject silent or broken media."""
import asyncio
import logging
from pathlib import Path

from quickbits.config import settings
from quickbits.utils.ffmpeg import detect_mean_volume, probe_streams

logger = logging.getLogger(__name__)


async def has_audio_track(path: str | Path) -> bool:
    """Check if the file has at least one audio stream."""
    streams = await probe_streams(path)
    if not streams:
        return False
    return any(
        isinstance(stream, dict) and stream.get("codec_type") == "audio"
        for stream in streams
    )


async def are_audio_levels_audible(path: str | Path) -> bool:
    """Check the mean volume is above the silence threshold."""
    mean_volume = await detect_mean_volume(path)
    if mean_volume is None:
        logger.debug(f"No mean volume reported for {path}")
        return False
    return mean_volume > settings.silence_threshold_db


async def has_sound(path: str | Path) -> bool:
    """
    Check a file has an audio track that is actually audible.

    Both probes run concurrently. Probe failures propagate; they are
    not the same thing as a silent file.
    """
    has_track, is_audible = await asyncio.gather(
        has_audio_track(path),
        are_audio_levels_audible(path),
    )
    return has_track and is_audible
