"""Tests for the Quick Bits extraction pipeline."""
import asyncio

import pytest

from quickbits.pipeline import quick_bits
from quickbits.pipeline.chapters import Chapter
from quickbits.pipeline.quick_bits import (
    Clip,
    NoAudioInSource,
    NoChapterFound,
    QuickBitsError,
    SilentClip,
    cleanup_video_files,
    extract_quick_bits,
)
from quickbits.utils.ffmpeg import ExtractionFailed
from quickbits.utils.youtube_api import Video
from quickbits.utils.ytdlp import YtdlpError


VIDEO = Video(video_id="vid123", title="Weekly News", published_at="2024-05-01T12:00:00Z")
CHAPTER = Chapter(title="Quick Bits", start=90, end=120, duration=30)


class _FakePipeline:
    """Records calls and lets each stage be swapped for a failure."""

    def __init__(self, work_dir, chapter=CHAPTER, source_sound=True, clip_sound=True):
        self.work_dir = work_dir
        self.chapter = chapter
        self.sound = {"source": source_sound, "clip": clip_sound}
        self.extract_args = None
        self.download_error = None
        self.extract_error = None
        self.events = []

    async def find_chapter(self, video_id, candidate_names=None):
        self.events.append("chapter")
        return self.chapter

    async def download(self, url, output_path):
        self.events.append("download")
        if self.download_error:
            raise self.download_error
        output_path.write_bytes(b"source")
        # yt-dlp leftovers also belong to the video
        (self.work_dir / "vid123.mp4.part").write_bytes(b"partial")
        return output_path

    async def has_sound(self, path):
        kind = "clip" if path.name.endswith("_quick_bits.mp4") else "source"
        self.events.append(f"sound:{kind}")
        return self.sound[kind]

    async def extract(self, input_path, output_path, start, duration):
        self.events.append("extract")
        self.extract_args = (input_path, output_path, start, duration)
        if self.extract_error:
            raise self.extract_error
        output_path.write_bytes(b"clip")
        return output_path


@pytest.fixture
def pipeline(monkeypatch, tmp_path):
    fake = _FakePipeline(tmp_path)
    monkeypatch.setattr(quick_bits, "find_quick_bits_chapter", fake.find_chapter)
    monkeypatch.setattr(quick_bits, "download_video", fake.download)
    monkeypatch.setattr(quick_bits, "has_sound", fake.has_sound)
    monkeypatch.setattr(quick_bits, "extract_chapter", fake.extract)
    return fake


@pytest.fixture
def other_file(tmp_path):
    path = tmp_path / "other456.mp4"
    path.write_bytes(b"other")
    return path


def _remaining(tmp_path):
    return sorted(path.name for path in tmp_path.iterdir())


@pytest.mark.asyncio
async def test_yields_clip_and_cleans_up(pipeline, tmp_path, other_file):
    async with extract_quick_bits(VIDEO, work_dir=tmp_path) as clip:
        assert isinstance(clip, Clip)
        assert clip.id == "vid123"
        assert clip.title == "Weekly News"
        assert clip.published_at == "2024-05-01T12:00:00Z"
        assert clip.path == tmp_path / "vid123_quick_bits.mp4"
        # The clip is usable inside the block
        assert clip.path.read_bytes() == b"clip"

    assert _remaining(tmp_path) == ["other456.mp4"]
    assert pipeline.events[-3:] == ["sound:source", "extract", "sound:clip"]


@pytest.mark.asyncio
async def test_extraction_is_padded(pipeline, tmp_path):
    async with extract_quick_bits(VIDEO, work_dir=tmp_path):
        pass

    input_path, output_path, start, duration = pipeline.extract_args
    assert input_path == tmp_path / "vid123.mp4"
    assert output_path == tmp_path / "vid123_quick_bits.mp4"
    assert start == 88
    assert duration == 34


@pytest.mark.asyncio
async def test_padding_does_not_seek_before_start(pipeline, tmp_path):
    pipeline.chapter = Chapter(title="Quick Bits", start=1, end=31, duration=30)
    async with extract_quick_bits(VIDEO, work_dir=tmp_path):
        pass
    assert pipeline.extract_args[2] == 0


@pytest.mark.asyncio
async def test_no_chapter(pipeline, tmp_path, other_file):
    pipeline.chapter = None

    with pytest.raises(NoChapterFound):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            pytest.fail("should not yield")

    assert "extract" not in pipeline.events
    assert _remaining(tmp_path) == ["other456.mp4"]


@pytest.mark.asyncio
async def test_silent_source_is_not_extracted(pipeline, tmp_path):
    pipeline.sound["source"] = False

    with pytest.raises(NoAudioInSource):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            pytest.fail("should not yield")

    assert "extract" not in pipeline.events
    assert _remaining(tmp_path) == []


@pytest.mark.asyncio
async def test_silent_clip(pipeline, tmp_path):
    pipeline.sound["clip"] = False

    with pytest.raises(SilentClip):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            pytest.fail("should not yield")

    assert _remaining(tmp_path) == []


@pytest.mark.asyncio
async def test_extraction_failure_cleans_up(pipeline, tmp_path):
    pipeline.extract_error = ExtractionFailed("ffmpeg exploded")

    with pytest.raises(ExtractionFailed):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            pass

    assert _remaining(tmp_path) == []


@pytest.mark.asyncio
async def test_download_failure_propagates(pipeline, tmp_path):
    pipeline.download_error = YtdlpError("Download failed")

    with pytest.raises(YtdlpError):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            pass


@pytest.mark.asyncio
async def test_consumer_error_still_cleans_up(pipeline, tmp_path):
    with pytest.raises(RuntimeError, match="consumer"):
        async with extract_quick_bits(VIDEO, work_dir=tmp_path):
            raise RuntimeError("consumer failed")

    assert _remaining(tmp_path) == []


@pytest.mark.asyncio
async def test_lookup_and_download_run_concurrently(monkeypatch, pipeline, tmp_path):
    started = asyncio.Event()

    async def slow_chapter(video_id, candidate_names=None):
        # Only finishes once the download has started
        await asyncio.wait_for(started.wait(), timeout=1)
        return CHAPTER

    async def download(url, output_path):
        started.set()
        output_path.write_bytes(b"source")
        return output_path

    monkeypatch.setattr(quick_bits, "find_quick_bits_chapter", slow_chapter)
    monkeypatch.setattr(quick_bits, "download_video", download)

    async with extract_quick_bits(VIDEO, work_dir=tmp_path) as clip:
        assert clip.id == "vid123"


def test_pipeline_errors_share_base():
    for error in (NoChapterFound, NoAudioInSource, SilentClip):
        assert issubclass(error, QuickBitsError)


def test_cleanup_removes_only_video_files(tmp_path):
    for name in ("abc.mp4", "abc_quick_bits.mp4", "abc.mp4.part", "xyz.mp4"):
        (tmp_path / name).write_bytes(b"x")

    cleanup_video_files("abc", tmp_path)

    assert _remaining(tmp_path) == ["xyz.mp4"]


def test_cleanup_failure_is_logged_not_raised(tmp_path, monkeypatch, caplog):
    from pathlib import Path

    (tmp_path / "abc.mp4").write_bytes(b"x")

    def _unlink(self, missing_ok=False):
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "unlink", _unlink)

    cleanup_video_files("abc", tmp_path)

    assert "Failed to remove" in caplog.text


def test_cleanup_missing_directory(tmp_path):
    cleanup_video_files("abc", tmp_path / "does-not-exist")
