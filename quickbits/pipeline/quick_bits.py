"""Quick Bits extraction pipeline.

Downloads a video, finds its Quick Bits chapter, cuts it into a vertical clip
and checks the clip actually has sound. Usage::

    async with extract_quick_bits(video) as clip:
        await publisher.upload_to_platforms(clip)

Every file in the working directory that belongs to the video is removed when
the block exits, whether it succeeded or not.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Sequence

from quickbits.config import settings
from quickbits.pipeline.chapters import find_quick_bits_chapter
from quickbits.utils.audio import has_sound
from quickbits.utils.ffmpeg import extract_chapter
from quickbits.utils.youtube_api import Video
from quickbits.utils.ytdlp import download_video, video_url

logger = logging.getLogger(__name__)


class QuickBitsError(Exception):
    """A video that can't produce a usable clip. Skip it and move on."""
    pass


class NoChapterFound(QuickBitsError):
    pass


class NoAudioInSource(QuickBitsError):
    pass


class SilentClip(QuickBitsError):
    pass


@dataclass
class Clip:
    """An extracted, validated clip ready for publishing."""
    id: str
    title: str
    path: Path
    published_at: str


def source_path(video_id: str, work_dir: Path) -> Path:
    return work_dir / f"{video_id}.mp4"


def clip_path(video_id: str, work_dir: Path) -> Path:
    return work_dir / f"{video_id}_quick_bits.mp4"


def cleanup_video_files(video_id: str, work_dir: Path) -> None:
    """Delete every file in ``work_dir`` whose name starts with ``video_id``."""
    try:
        paths = [path for path in work_dir.glob(f"{video_id}*") if path.is_file()]
    except OSError as e:
        logger.warning(f"Could not list {work_dir} for cleanup: {e}")
        return

    for path in paths:
        try:
            path.unlink()
            logger.debug(f"Removed {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {e}")


@asynccontextmanager
async def extract_quick_bits(
    video: Video,
    work_dir: Optional[Path] = None,
    candidate_names: Optional[Sequence[str]] = None,
) -> AsyncIterator[Clip]:
    """
    Produce the Quick Bits clip for a video.

    Raises:
        NoChapterFound: If neither a named nor a fallback chapter exists
        NoAudioInSource: If the downloaded video has no sound
        SilentClip: If the extracted clip has no sound
        ExtractionFailed: If ffmpeg fails to cut the clip
    """
    work_dir = Path(work_dir or settings.videos_dir)
    video_path = source_path(video.video_id, work_dir)
    output_path = clip_path(video.video_id, work_dir)

    try:
        logger.info(f"Processing video {video.video_id} - {video.title}")

        # Download video and find chapter concurrently
        lookup = asyncio.ensure_future(find_quick_bits_chapter(video.video_id, candidate_names))
        download = asyncio.ensure_future(download_video(video_url(video.video_id), video_path))
        try:
            chapter, _ = await asyncio.gather(lookup, download)
        except BaseException:
            # Don't leave a download writing files after cleanup
            for task in (lookup, download):
                task.cancel()
            await asyncio.gather(lookup, download, return_exceptions=True)
            raise

        if chapter is None:
            raise NoChapterFound(f"No Quick Bits chapter found for {video.video_id}")
        logger.info(f"Using chapter '{chapter.title}' ({chapter.start}s, {chapter.duration}s) of {video.video_id}")

        if not await has_sound(video_path):
            raise NoAudioInSource(f"Source video {video.video_id} has no sound")

        padding = settings.clip_padding_seconds
        await extract_chapter(
            video_path,
            output_path,
            max(0, chapter.start - padding),
            chapter.duration + 2 * padding,
        )

        if not await has_sound(output_path):
            raise SilentClip(f"Extracted clip for {video.video_id} has no sound")

        yield Clip(
            id=video.video_id,
            title=video.title,
            path=output_path,
            published_at=video.published_at,
        )
    finally:
        logger.info(f"Removing downloaded files for {video.video_id}...")
        cleanup_video_files(video.video_id, work_dir)
