"""Batch runs: pick up new videos, extract their clips and publish them."""
import asyncio
import json
import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from quickbits.config import settings
from quickbits.pipeline.chapters import InvalidDurationFormat
from quickbits.pipeline.quick_bits import QuickBitsError, extract_quick_bits
from quickbits.services.ledger import UploadLedger
from quickbits.services.publish_service import PlatformOutcome, PublishService
from quickbits.utils.ffmpeg import FFmpegError
from quickbits.utils.youtube_api import Video, YouTubeApiError, get_latest_videos
from quickbits.utils.ytdlp import YtdlpError

logger = logging.getLogger(__name__)

# Failures that only concern the current video
VIDEO_ERRORS = (QuickBitsError, InvalidDurationFormat, FFmpegError, YtdlpError, YouTubeApiError)


def load_backlog(path: Optional[Path] = None) -> List[Video]:
    """Read the backlog file, oldest video first."""
    path = Path(path or settings.backlog_path)
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read backlog {path}: {e}")
        return []
    return [Video.from_dict(item) for item in reversed(data)]


@dataclass
class RunReport:
    """What one batch run did."""
    started_at: datetime = field(default_factory=datetime.utcnow)
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: dict = field(default_factory=dict)
    outcomes: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "started_at": self.started_at.isoformat(),
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "outcomes": {
                video_id: [outcome.to_dict() for outcome in outcomes]
                for video_id, outcomes in self.outcomes.items()
            },
        }


class QuickBitsRunner:
    """
    Sequential batch driver.

    Each run fetches the latest videos (plus the backlog on the last run of
    the day), skips those already on every platform and publishes the rest,
    up to ``max_videos_per_day`` per day. One video failing never stops the
    run.
    """

    def __init__(
        self,
        ledger: UploadLedger,
        publisher: Optional[PublishService] = None,
        fetch_latest: Callable[[], Awaitable[List[Video]]] = get_latest_videos,
        backlog_loader: Callable[[], List[Video]] = load_backlog,
        max_videos_per_day: Optional[int] = None,
        work_dir: Optional[Path] = None,
    ):
        self.ledger = ledger
        self.publisher = publisher or PublishService(ledger)
        self.fetch_latest = fetch_latest
        self.backlog_loader = backlog_loader
        self.max_videos_per_day = max_videos_per_day or settings.max_videos_per_day
        self.work_dir = work_dir

        self.videos_today = 0
        self._day: Optional[date] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._triggered: Optional[asyncio.Task] = None
        self.last_report: Optional[RunReport] = None

    @property
    def is_running(self) -> bool:
        if self._triggered is not None and not self._triggered.done():
            return True
        return self._lock.locked()

    def _reset_day_if_needed(self, now: datetime):
        if self._day != now.date():
            self._day = now.date()
            self.videos_today = 0

    async def process_video(self, video: Video) -> List[PlatformOutcome]:
        """Extract and publish a single video."""
        async with extract_quick_bits(video, work_dir=self.work_dir) as clip:
            outcomes = await self.publisher.upload_to_platforms(clip)
        for outcome in outcomes:
            if outcome.status in ("failed", "unrecorded"):
                logger.warning(f"Upload of {video.video_id} to {outcome.platform} {outcome.status}: {outcome.error}")
        return outcomes

    async def run_once(self, now: Optional[datetime] = None) -> RunReport:
        """Run one batch over the latest videos."""
        async with self._lock:
            now = now or datetime.now()
            self._reset_day_if_needed(now)
            report = RunReport()

            videos = await self.fetch_latest()
            is_last_run_of_day = now.hour == settings.last_run_hour
            if is_last_run_of_day:
                logger.info("Last run of the day, also processing the backlog")
                videos = [*videos, *self.backlog_loader()]
            else:
                logger.info(f"Processing {len(videos)} latest videos")

            seen = set()
            for video in videos:
                # The backlog overlaps the latest videos
                if video.video_id in seen:
                    continue
                seen.add(video.video_id)

                if self.videos_today >= self.max_videos_per_day:
                    logger.info(f"Reached {self.max_videos_per_day} videos for today, stopping")
                    break

                if await self.ledger.is_uploaded_to_all_platforms(video.video_id):
                    report.skipped.append(video.video_id)
                    continue

                try:
                    report.outcomes[video.video_id] = await self.process_video(video)
                    report.processed.append(video.video_id)
                    self.videos_today += 1
                except VIDEO_ERRORS as e:
                    logger.info(f"Skipping video {video.video_id} - {video.title}: {e}")
                    report.failed[video.video_id] = str(e)
                except Exception as e:
                    logger.error(
                        f"Error handling video {video.video_id} - {video.title}: {e}\n{traceback.format_exc()}"
                    )
                    report.failed[video.video_id] = str(e)

            if is_last_run_of_day:
                logger.info(f"Videos uploaded today: {self.videos_today}")
                self.videos_today = 0

            self.last_report = report
            return report

    async def _loop(self, interval: float):
        # Runs start every `interval` seconds, however long each one takes
        next_start = time.monotonic()
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Batch run failed: {e}")

            next_start += interval
            delay = next_start - time.monotonic()
            if delay < 0:
                logger.warning(f"Batch run overran the {interval}s interval by {-delay:.0f}s")
                next_start = time.monotonic()
                delay = 0
            await asyncio.sleep(delay)

    def trigger(self) -> bool:
        """
        Start a single run in the background.

        Returns False without starting anything when a run is already in
        progress or queued.
        """
        if self.is_running:
            return False

        async def _run():
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Triggered run failed: {e}")

        self._triggered = asyncio.create_task(_run())
        return True

    def start(self, interval: Optional[float] = None):
        """Start running batches periodically in the background."""
        if self._task is None or self._task.done():
            if interval is None:
                interval = settings.run_interval_seconds
            self._task = asyncio.create_task(self._loop(interval))

    async def shutdown(self):
        """Stop the periodic task."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
