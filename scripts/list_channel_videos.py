#!/usr/bin/env python3
"""
CLI tool to write every channel video to the backlog file.

The backlog is processed on the last run of each day, oldest video first.

Usage:
    python scripts/list_channel_videos.py [--output <file>]

Example:
    python scripts/list_channel_videos.py --output ./videos.json
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from quickbits.config import settings
from quickbits.utils.youtube_api import YouTubeApiError, list_channel_videos


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


async def write_backlog(output: Path) -> int:
    """Fetch all channel videos (newest first) and write them as JSON."""
    videos = await list_channel_videos()
    output.write_text(
        json.dumps([video.to_dict() for video in videos], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info(f"Wrote {len(videos)} videos to {output}")
    return len(videos)


def main():
    parser = argparse.ArgumentParser(
        description="List every video on the configured channel into the backlog file"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=settings.backlog_path,
        help=f"Backlog file to write (default: {settings.backlog_path})"
    )
    args = parser.parse_args()

    if not settings.youtube_api_key or not settings.channel_id:
        logger.error("YOUTUBE_API_KEY and CHANNEL_ID must be set")
        sys.exit(1)

    try:
        asyncio.run(write_backlog(args.output))
    except YouTubeApiError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
