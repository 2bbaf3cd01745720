"""API routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from quickbits.services.ledger import UploadLedger
from quickbits.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from quickbits.utils.ytdlp import check_ytdlp_available
from quickbits.workers.runner import QuickBitsRunner
from quickbits.api.schemas import (
    HealthResponse,
    RunReportResponse,
    RunStartedResponse,
    UploadErrorResponse,
    UploadRecordResponse,
    VideoUploadsResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_ledger(request: Request) -> UploadLedger:
    """Dependency to get the upload ledger."""
    return request.app.state.ledger


def get_runner(request: Request) -> QuickBitsRunner:
    """Dependency to get the batch runner."""
    return request.app.state.runner


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()
    ytdlp_ok = check_ytdlp_available()

    all_ok = ffmpeg_ok and ffprobe_ok and ytdlp_ok

    message = None
    if not all_ok:
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        if not ytdlp_ok:
            missing.append("yt-dlp")
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        ytdlp_available=ytdlp_ok,
        message=message
    )


# =============================================================================
# Upload Ledger
# =============================================================================

@router.get("/uploads/{video_id}", response_model=VideoUploadsResponse)
async def get_video_uploads(
    video_id: str,
    ledger: UploadLedger = Depends(get_ledger)
):
    """Get which platforms a video has been uploaded to."""
    uploads = await ledger.get_uploads(video_id)
    return VideoUploadsResponse(
        video_id=video_id,
        uploaded_to_all_platforms=await ledger.is_uploaded_to_all_platforms(video_id),
        platforms=ledger.platforms,
        uploads=[UploadRecordResponse.model_validate(upload) for upload in uploads],
    )


@router.get("/uploads/{video_id}/errors", response_model=List[UploadErrorResponse])
async def get_video_upload_errors(
    video_id: str,
    platform: Optional[str] = Query(None),
    ledger: UploadLedger = Depends(get_ledger)
):
    """Get the upload error history of a video."""
    errors = await ledger.get_upload_errors(video_id, platform)
    return [UploadErrorResponse.model_validate(error) for error in errors]


# =============================================================================
# Runs
# =============================================================================

@router.post("/runs", response_model=RunStartedResponse, status_code=202)
async def trigger_run(runner: QuickBitsRunner = Depends(get_runner)):
    """Start a batch run in the background."""
    if not runner.trigger():
        raise HTTPException(status_code=409, detail="A run is already in progress")
    return RunStartedResponse(status="started", message="Run started")


@router.get("/runs/last", response_model=RunReportResponse)
async def get_last_run(runner: QuickBitsRunner = Depends(get_runner)):
    """Get the report of the most recent run."""
    if runner.last_report is None:
        raise HTTPException(status_code=404, detail="No run has completed yet")
    return RunReportResponse(**runner.last_report.to_dict())
