"""YouTube Data API v3 client for channel videos and chapter metadata."""
import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from quickbits.config import settings
from quickbits.pipeline.chapters import Chapter, parse_chapters, parse_duration

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3"
API_HTTP_TIMEOUT_SECONDS = 15.0


class YouTubeApiError(Exception):
    """Raised when the YouTube Data API can't be reached or rejects a request."""
    pass


@dataclass
class Video:
    """A video published on the channel."""
    video_id: str
    title: str
    published_at: str

    @classmethod
    def from_search_item(cls, item: Dict[str, Any]) -> "Video":
        snippet = item.get("snippet") or {}
        return cls(
            video_id=item["id"]["videoId"],
            title=html.unescape(snippet.get("title", "")),
            published_at=snippet.get("publishedAt", ""),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Video":
        """Load from the backlog file format."""
        return cls(
            video_id=data["videoId"],
            title=html.unescape(data.get("title", "")),
            published_at=data.get("publishedAt", ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "publishedAt": self.published_at,
        }


async def _get(path: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """GET an API resource and return the decoded payload."""
    params = {**params, "key": settings.youtube_api_key}
    try:
        async with httpx.AsyncClient(timeout=API_HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{YOUTUBE_API_URL}/{path}", params=params)
    except httpx.TimeoutException as exc:
        raise YouTubeApiError(f"YouTube API request to {path} timed out") from exc
    except httpx.RequestError as exc:
        raise YouTubeApiError(f"Unable to reach YouTube API: {exc}") from exc

    if response.status_code != 200:
        raise YouTubeApiError(f"YouTube API {path} returned HTTP {response.status_code}: {response.text[:200]}")

    try:
        return response.json()
    except ValueError as exc:
        raise YouTubeApiError(f"YouTube API {path} returned invalid JSON") from exc


async def get_latest_videos(max_results: Optional[int] = None) -> List[Video]:
    """Fetch the channel's most recent videos, newest first."""
    payload = await _get("search", {
        "channelId": settings.channel_id,
        "order": "date",
        "part": "snippet",
        "type": "video",
        "maxResults": max_results or settings.latest_videos_count,
    })
    return [Video.from_search_item(item) for item in payload.get("items", [])]


async def list_channel_videos() -> List[Video]:
    """Fetch every video on the channel, following pagination."""
    videos: List[Video] = []
    page_token = ""

    while True:
        params = {
            "channelId": settings.channel_id,
            "order": "date",
            "part": "snippet",
            "type": "video",
            "maxResults": 50,
        }
        if page_token:
            params["pageToken"] = page_token

        payload = await _get("search", params)
        videos.extend(Video.from_search_item(item) for item in payload.get("items", []))

        page_token = payload.get("nextPageToken") or ""
        if not page_token:
            break

    logger.info(f"Found {len(videos)} videos on channel {settings.channel_id}")
    return videos


async def get_video_details(video_id: str) -> Dict[str, Any]:
    """Fetch snippet and content details for one video."""
    payload = await _get("videos", {
        "part": "snippet,contentDetails",
        "id": video_id,
    })
    items = payload.get("items") or []
    if not items:
        raise YouTubeApiError(f"Video {video_id} not found")
    return items[0]


async def get_video_chapters(video_id: str) -> List[Chapter]:
    """Parse the chapters listed in a video's description."""
    details = await get_video_details(video_id)
    duration = parse_duration(details["contentDetails"]["duration"])
    description = (details.get("snippet") or {}).get("description", "")
    return parse_chapters(description, duration)
