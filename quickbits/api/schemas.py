"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Upload Ledger Schemas
# =============================================================================

class UploadRecordResponse(BaseModel):
    """A successful upload of a video to a platform."""
    video_id: str
    platform: str
    platform_id: str
    published_at: Optional[datetime]

    class Config:
        from_attributes = True


class VideoUploadsResponse(BaseModel):
    """Upload state of one video."""
    video_id: str
    uploaded_to_all_platforms: bool
    platforms: List[str] = Field(..., description="Configured platforms")
    uploads: List[UploadRecordResponse]


class UploadErrorResponse(BaseModel):
    """A failed upload attempt."""
    id: int
    video_id: str
    platform: str
    error_message: str
    stack_trace: Optional[str] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


# =============================================================================
# Run Schemas
# =============================================================================

class PlatformOutcomeResponse(BaseModel):
    """Result of publishing a clip to one platform."""
    platform: str
    status: str
    platform_id: Optional[str] = None
    error: Optional[str] = None


class RunReportResponse(BaseModel):
    """Summary of a batch run."""
    started_at: datetime
    processed: List[str]
    skipped: List[str]
    failed: Dict[str, str]
    outcomes: Dict[str, List[PlatformOutcomeResponse]]


class RunStartedResponse(BaseModel):
    """Response when a run was triggered."""
    status: str
    message: str


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    ytdlp_available: bool
    message: Optional[str] = None
