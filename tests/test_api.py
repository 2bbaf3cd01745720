"""Tests for the HTTP routes."""
from datetime import datetime

import pytest
from fastapi import HTTPException

from quickbits.api import routes
from quickbits.services.publish_service import PlatformOutcome
from quickbits.workers.runner import RunReport


class _FakeRunner:
    def __init__(self, running=False, last_report=None):
        self.is_running = running
        self.last_report = last_report
        self.triggered = 0

    def trigger(self):
        if self.is_running:
            return False
        self.triggered += 1
        self.is_running = True
        return True


@pytest.mark.asyncio
async def test_health_reports_missing_tools(monkeypatch):
    monkeypatch.setattr(routes, "check_ffmpeg_available", lambda: True)
    monkeypatch.setattr(routes, "check_ffprobe_available", lambda: True)
    monkeypatch.setattr(routes, "check_ytdlp_available", lambda: False)

    health = await routes.health_check()

    assert health.status == "degraded"
    assert health.message == "Missing dependencies: yt-dlp"


@pytest.mark.asyncio
async def test_video_uploads(ledger):
    await ledger.save_upload("v1", "youtube", "yt-1")

    response = await routes.get_video_uploads("v1", ledger=ledger)

    assert response.video_id == "v1"
    assert response.uploaded_to_all_platforms is False
    assert response.platforms == ["youtube", "twitter"]
    assert [(u.platform, u.platform_id) for u in response.uploads] == [("youtube", "yt-1")]


@pytest.mark.asyncio
async def test_video_upload_errors(ledger):
    await ledger.log_upload_error("v1", "youtube", "quota")
    await ledger.log_upload_error("v1", "twitter", "forbidden")

    errors = await routes.get_video_upload_errors("v1", platform="twitter", ledger=ledger)

    assert [e.error_message for e in errors] == ["forbidden"]


@pytest.mark.asyncio
async def test_trigger_run_starts_in_background():
    runner = _FakeRunner()

    response = await routes.trigger_run(runner=runner)

    assert response.status == "started"
    assert runner.triggered == 1


@pytest.mark.asyncio
async def test_second_trigger_conflicts_before_run_starts():
    runner = _FakeRunner()

    await routes.trigger_run(runner=runner)
    with pytest.raises(HTTPException) as exc:
        await routes.trigger_run(runner=runner)

    assert exc.value.status_code == 409
    assert runner.triggered == 1


@pytest.mark.asyncio
async def test_trigger_run_conflict():
    with pytest.raises(HTTPException) as exc:
        await routes.trigger_run(runner=_FakeRunner(running=True))
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_last_run_missing():
    with pytest.raises(HTTPException) as exc:
        await routes.get_last_run(runner=_FakeRunner())
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_last_run_report():
    report = RunReport(started_at=datetime(2024, 5, 1, 9, 0), processed=["a"], failed={"b": "no chapter"})
    report.outcomes["a"] = [PlatformOutcome(platform="youtube", status="uploaded", platform_id="yt-a")]

    response = await routes.get_last_run(runner=_FakeRunner(last_report=report))

    assert response.processed == ["a"]
    assert response.failed == {"b": "no chapter"}
    assert response.outcomes["a"][0].platform_id == "yt-a"
