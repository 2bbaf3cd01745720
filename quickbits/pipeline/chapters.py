"""Chapter parsing and selection.

Chapters come from free-text video descriptions: every line that starts with a
``M:SS``, ``MM:SS`` or ``H:MM:SS`` timestamp opens a chapter which runs until
the next one (or the end of the video).
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from quickbits.config import settings

logger = logging.getLogger(__name__)


class InvalidDurationFormat(ValueError):
    """Raised when a duration token cannot be parsed."""
    pass


@dataclass(frozen=True)
class Chapter:
    """A named, timed sub-range of a video (seconds)."""
    title: str
    start: int
    end: int
    duration: int


_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)

# Timestamp at the start of a line, optional dash/colon/pipe separators, title
_CHAPTER_RE = re.compile(
    r"^\s*(?:(?P<h>\d{1,2}):)?(?P<m>\d{1,2}):(?P<s>\d{2})(?!\d)"
    r"(?:\s*[-–—:|]+)*\s*(?P<title>[^\s\-–—:|].*)$"
)


def parse_duration(text: str) -> int:
    """
    Parse an ISO-8601 duration such as ``PT1H2M3S`` into seconds.

    Each component is optional; a token with no component at all
    (``PT``) is rejected.

    Raises:
        InvalidDurationFormat: If the token doesn't match
    """
    match = _DURATION_RE.match(text.strip()) if text else None
    if not match or all(value is None for value in match.groupdict().values()):
        raise InvalidDurationFormat(f"Invalid duration format: {text!r}")

    parts = {key: int(value or 0) for key, value in match.groupdict().items()}
    return (
        parts["days"] * 86400
        + parts["hours"] * 3600
        + parts["minutes"] * 60
        + parts["seconds"]
    )


def parse_chapters(description: str, total_duration: int) -> List[Chapter]:
    """
    Parse chapters from a video description.

    Chapters keep the order they appear in. Chapters starting after the end of
    the video are dropped, and every end is clamped to ``total_duration``.
    """
    starts: List[tuple[str, int]] = []
    for line in (description or "").splitlines():
        match = _CHAPTER_RE.match(line)
        if not match:
            continue
        hours = int(match.group("h") or 0)
        start = hours * 3600 + int(match.group("m")) * 60 + int(match.group("s"))
        if start > total_duration:
            logger.debug(f"Dropping chapter past end of video: {line.strip()}")
            continue
        starts.append((match.group("title").strip(), start))

    chapters = []
    for i, (title, start) in enumerate(starts):
        end = starts[i + 1][1] if i + 1 < len(starts) else total_duration
        # Unsorted descriptions: never let a chapter end before it starts
        end = max(start, min(end, total_duration))
        chapters.append(Chapter(title=title, start=start, end=end, duration=end - start))

    return chapters


def find_chapter_by_name(
    chapters: Sequence[Chapter],
    candidate_names: Sequence[str],
) -> Optional[Chapter]:
    """
    Find a chapter matching one of ``candidate_names`` (priority order).

    Exact matches win over chapters containing a name, which win over names
    containing a chapter title. Comparison is case-insensitive.
    """
    names = [name.strip().lower() for name in candidate_names if name and name.strip()]
    if not chapters or not names:
        return None

    titles = [chapter.title.strip().lower() for chapter in chapters]

    # Exact: longest name first, then earliest chapter
    exact = [
        (len(name), -index)
        for index, title in enumerate(titles)
        for name in names
        if title == name
    ]
    if exact:
        _, neg_index = max(exact)
        return chapters[-neg_index]

    for name in names:
        for chapter, title in zip(chapters, titles):
            if name in title:
                return chapter

    for name in names:
        for chapter, title in zip(chapters, titles):
            if title and title in name:
                return chapter

    return None


def find_fallback_chapter(
    chapters: Sequence[Chapter],
    total_duration: Optional[int] = None,
) -> Optional[Chapter]:
    """Find the shortest chapter starting near the middle of the video."""
    if not chapters:
        return None

    if total_duration is None:
        total_duration = max(chapter.end for chapter in chapters)
    middle = total_duration / 2

    best: Optional[Chapter] = None
    for chapter in chapters:
        if abs(chapter.start - middle) >= total_duration / 4:
            continue
        if best is None or chapter.duration < best.duration:
            best = chapter
    return best


def select_chapter(
    chapters: Sequence[Chapter],
    candidate_names: Sequence[str],
) -> Optional[Chapter]:
    """Named match, else the middle-of-video fallback."""
    chapter = find_chapter_by_name(chapters, candidate_names)
    if chapter is not None:
        return chapter
    return find_fallback_chapter(chapters)


async def find_quick_bits_chapter(
    video_id: str,
    candidate_names: Optional[Sequence[str]] = None,
) -> Optional[Chapter]:
    """Look up a video's chapters and pick the Quick Bits one."""
    from quickbits.utils.youtube_api import get_video_chapters

    chapters = await get_video_chapters(video_id)
    if not chapters:
        logger.info(f"No chapters found in the description of {video_id}")
        return None

    return select_chapter(chapters, candidate_names or settings.quick_bits_names)
