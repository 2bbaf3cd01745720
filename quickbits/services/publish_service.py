"""Publish service for multi-platform clip distribution."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from quickbits.pipeline.quick_bits import Clip
from quickbits.services.ledger import UploadLedger
from quickbits.services.upload_service import Uploader, build_uploaders

logger = logging.getLogger(__name__)

# "unrecorded": the upload went through but the ledger write failed
OutcomeStatus = Literal["uploaded", "skipped", "failed", "unrecorded"]


@dataclass
class PlatformOutcome:
    """Result of publishing a clip to one platform."""
    platform: str
    status: OutcomeStatus
    platform_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "platform": self.platform,
            "status": self.status,
            "platform_id": self.platform_id,
            "error": self.error,
        }


class PublishService:
    """
    Fan a clip out to every configured platform at most once.

    Platforms are uploaded concurrently. A failing platform is logged to the
    ledger and reported in its outcome; it never stops the others.
    """

    def __init__(self, ledger: UploadLedger, uploaders: Optional[Dict[str, Uploader]] = None):
        self.ledger = ledger
        self.uploaders = uploaders if uploaders is not None else build_uploaders(ledger.platforms)

    async def _publish(self, clip: Clip, platform: str, upload: Uploader) -> PlatformOutcome:
        if await self.ledger.is_uploaded_to_platform(clip.id, platform):
            logger.info(f"Video {clip.id} already uploaded to {platform}, skipping")
            return PlatformOutcome(platform=platform, status="skipped")

        try:
            platform_id = await upload(clip)
        except Exception as e:
            logger.error(f"Error uploading video {clip.id} to {platform}: {e}")
            await self._record_error(clip, platform, e)
            return PlatformOutcome(platform=platform, status="failed", error=str(e))

        logger.info(f"Video {clip.id} uploaded successfully to {platform}: {platform_id}")
        try:
            await self.ledger.save_upload(clip.id, platform, platform_id)
        except Exception as e:
            # The clip is live but unrecorded; the next run would upload it again
            logger.error(
                f"Video {clip.id} is on {platform} as {platform_id} but could not be recorded: {e}"
            )
            await self._record_error(
                clip, platform, f"Uploaded as {platform_id} but not recorded: {e}"
            )
            return PlatformOutcome(
                platform=platform,
                status="unrecorded",
                platform_id=platform_id,
                error=str(e),
            )
        return PlatformOutcome(platform=platform, status="uploaded", platform_id=platform_id)

    async def _record_error(self, clip: Clip, platform: str, error) -> None:
        """Best-effort error log; a failing ledger must not hide the outcome."""
        try:
            await self.ledger.log_upload_error(clip.id, platform, error)
        except Exception as log_error:
            logger.warning(f"Could not record upload error for {clip.id} on {platform}: {log_error}")

    async def upload_to_platforms(self, clip: Clip) -> List[PlatformOutcome]:
        """Upload a clip everywhere it isn't yet. Outcomes follow platform order."""
        platforms = list(self.uploaders.items())
        results = await asyncio.gather(
            *(self._publish(clip, platform, upload) for platform, upload in platforms),
            return_exceptions=True,
        )

        outcomes = []
        for (platform, _), result in zip(platforms, results):
            if isinstance(result, BaseException):
                # Ledger reads/writes failing around an upload
                logger.error(f"Publishing {clip.id} to {platform} failed: {result}")
                outcomes.append(PlatformOutcome(platform=platform, status="failed", error=str(result)))
            else:
                outcomes.append(result)
        return outcomes
