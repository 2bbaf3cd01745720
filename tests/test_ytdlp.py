"""Tests for the yt-dlp wrapper."""
import asyncio

import pytest

from conftest import FakeProcess
from quickbits.utils.ytdlp import YtdlpError, download_video, video_url


@pytest.mark.asyncio
async def test_download_writes_exact_path(fake_exec, tmp_path):
    output = tmp_path / "videos" / "abc.mp4"

    def respond(cmd):
        output.write_bytes(b"video")
        return FakeProcess(returncode=0)

    calls = fake_exec(respond)

    assert await download_video(video_url("abc"), output) == output
    cmd = calls[0]
    assert cmd[cmd.index("-o") + 1] == str(output)
    assert cmd[cmd.index("-f") + 1] == "mp4"
    assert cmd[-1] == "https://www.youtube.com/watch?v=abc"


@pytest.mark.asyncio
async def test_failure_reports_last_line(fake_exec, tmp_path):
    fake_exec(lambda cmd: FakeProcess(returncode=1, stderr=b"WARNING: retrying\nERROR: Video unavailable"))

    with pytest.raises(YtdlpError, match="Video unavailable"):
        await download_video(video_url("abc"), tmp_path / "abc.mp4")


@pytest.mark.asyncio
async def test_missing_output_file(fake_exec, tmp_path):
    fake_exec(lambda cmd: FakeProcess(returncode=0))

    with pytest.raises(YtdlpError, match="not found"):
        await download_video(video_url("abc"), tmp_path / "abc.mp4")


@pytest.mark.asyncio
async def test_missing_binary(monkeypatch, tmp_path):
    async def _missing(*cmd, **kwargs):
        raise FileNotFoundError("yt-dlp")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _missing)

    with pytest.raises(YtdlpError, match="not found"):
        await download_video(video_url("abc"), tmp_path / "abc.mp4")


@pytest.mark.asyncio
async def test_cancel_kills_process(monkeypatch, tmp_path):
    class HangingProcess(FakeProcess):
        killed = False

        async def communicate(self):
            await asyncio.sleep(10)

        def kill(self):
            self.killed = True

    proc = HangingProcess()

    async def _exec(*cmd, **kwargs):
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _exec)

    task = asyncio.ensure_future(download_video(video_url("abc"), tmp_path / "abc.mp4"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert proc.killed
