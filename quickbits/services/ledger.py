"""Upload ledger: which videos went to which platforms, and what failed."""
import logging
import traceback
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from quickbits.config import settings
from quickbits.db.database import Database
from quickbits.models.upload import Platform, UploadError, VideoUpload

logger = logging.getLogger(__name__)


def _platform_key(platform: str | Platform) -> str:
    return platform.value if isinstance(platform, Platform) else platform


class UploadLedger:
    """
    Durable record of uploads per ``(video_id, platform)``.

    A row in ``video_uploads`` is the only thing that says a video is on a
    platform. Errors are appended to ``upload_errors`` for diagnostics and
    never consulted when deciding whether to upload.
    """

    def __init__(self, db: Database, platforms: Optional[Iterable[str]] = None):
        self.db = db
        self.platforms = [
            _platform_key(platform)
            for platform in (platforms if platforms is not None else settings.platforms)
        ]

    async def is_uploaded_to_platform(self, video_id: str, platform: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                select(VideoUpload.platform_id).where(
                    VideoUpload.video_id == video_id,
                    VideoUpload.platform == _platform_key(platform),
                )
            )
            return result.first() is not None

    async def is_uploaded_to_all_platforms(self, video_id: str) -> bool:
        """True iff every configured platform has a record for the video."""
        async with self.db.session() as session:
            result = await session.execute(
                select(VideoUpload.platform).where(VideoUpload.video_id == video_id).distinct()
            )
            recorded = set(result.scalars().all())
        return set(self.platforms) <= recorded

    async def save_upload(self, video_id: str, platform: str, platform_id: str) -> None:
        """Record a successful upload. Calling it again replaces the record."""
        now = datetime.utcnow()
        stmt = insert(VideoUpload).values(
            video_id=video_id,
            platform=_platform_key(platform),
            platform_id=platform_id,
            published_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VideoUpload.video_id, VideoUpload.platform],
            set_={"platform_id": stmt.excluded.platform_id, "published_at": stmt.excluded.published_at},
        )
        async with self.db.session() as session:
            await session.execute(stmt)
        logger.debug(f"Recorded upload of {video_id} to {_platform_key(platform)} as {platform_id}")

    async def log_upload_error(self, video_id: str, platform: str, error: BaseException | str) -> None:
        """Append an error record for a failed upload attempt."""
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            stack_trace = None
            if error.__traceback__ is not None:
                stack_trace = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )
        else:
            message = str(error)
            stack_trace = None

        async with self.db.session() as session:
            session.add(UploadError(
                video_id=video_id,
                platform=_platform_key(platform),
                error_message=message,
                stack_trace=stack_trace,
            ))

    async def get_uploads(self, video_id: str) -> List[VideoUpload]:
        async with self.db.session() as session:
            result = await session.execute(
                select(VideoUpload)
                .where(VideoUpload.video_id == video_id)
                .order_by(VideoUpload.platform)
            )
            return list(result.scalars().all())

    async def get_upload_errors(self, video_id: str, platform: Optional[str] = None) -> List[UploadError]:
        """Error history for a video, oldest first."""
        query = select(UploadError).where(UploadError.video_id == video_id)
        if platform is not None:
            query = query.where(UploadError.platform == _platform_key(platform))
        async with self.db.session() as session:
            result = await session.execute(query.order_by(UploadError.id))
            return list(result.scalars().all())
