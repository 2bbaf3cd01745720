"""Platform uploaders. Each takes a clip and returns the platform's id for it."""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from quickbits.config import settings
from quickbits.models.upload import Platform
from quickbits.pipeline.quick_bits import Clip

logger = logging.getLogger(__name__)
OAUTH_HTTP_TIMEOUT_SECONDS = 15.0
UPLOAD_HTTP_TIMEOUT_SECONDS = 120.0

Uploader = Callable[[Clip], Awaitable[str]]


class UploadFailed(RuntimeError):
    """Raised when a platform rejects or can't receive an upload."""

    def __init__(self, platform: str, message: str):
        super().__init__(f"{platform}: {message}")
        self.platform = platform


def _extract_error_detail(response: httpx.Response) -> str:
    """Extract concise error detail from provider response."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            # Google API error envelope
            message = error.get("message")
            if message:
                return f"HTTP {response.status_code}: {message}"
        parts: List[str] = []
        if isinstance(error, str):
            parts.append(error)
        for key in ("error_description", "detail", "title"):
            if payload.get(key):
                parts.append(str(payload[key]))
        if parts:
            return ": ".join(parts)

    return f"HTTP {response.status_code}"


def clip_description(clip: Clip) -> str:
    """Text posted alongside a clip."""
    return f"{clip.title}\n\nFull video: https://www.youtube.com/watch?v={clip.id}"


class YouTubeUploader:
    """
    Upload clips to YouTube as Shorts.

    Uses a stored OAuth refresh token to get a fresh access token for every
    upload, then the resumable upload protocol of the Data API.
    """

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ):
        self.client_id = client_id or settings.youtube_client_id
        self.client_secret = client_secret or settings.youtube_client_secret
        self.refresh_token = refresh_token or settings.youtube_refresh_token

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if not (self.client_id and self.client_secret and self.refresh_token):
            raise UploadFailed(Platform.YOUTUBE.value, "YouTube API credentials not configured")

        response = await client.post(
            self.TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code != 200:
            raise UploadFailed(
                Platform.YOUTUBE.value,
                f"Token refresh failed: {_extract_error_detail(response)}",
            )
        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise UploadFailed(Platform.YOUTUBE.value, "Token refresh failed: access token missing")
        return token

    async def __call__(self, clip: Clip) -> str:
        video_path = Path(clip.path)
        if not video_path.exists():
            raise UploadFailed(Platform.YOUTUBE.value, f"Video file not found: {video_path}")

        body = {
            "snippet": {
                "title": clip.title[:100],  # YouTube max title length
                "description": clip_description(clip)[:5000],
                "tags": settings.youtube_tags,
                "categoryId": settings.youtube_category_id,
            },
            "status": {
                "privacyStatus": settings.youtube_privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }
        file_size = video_path.stat().st_size

        timeout = httpx.Timeout(UPLOAD_HTTP_TIMEOUT_SECONDS, connect=OAUTH_HTTP_TIMEOUT_SECONDS)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                access_token = await self._access_token(client)

                # Step 1: Create upload session
                response = await client.post(
                    f"{self.UPLOAD_URL}?uploadType=resumable&part=snippet,status",
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                        "X-Upload-Content-Length": str(file_size),
                        "X-Upload-Content-Type": "video/mp4",
                    },
                    json=body,
                )
                if response.status_code != 200:
                    raise UploadFailed(
                        Platform.YOUTUBE.value,
                        f"Failed to initiate upload: {_extract_error_detail(response)}",
                    )

                upload_url = response.headers.get("Location")
                if not upload_url:
                    raise UploadFailed(Platform.YOUTUBE.value, "No upload URL received")

                # Step 2: Upload video content
                response = await client.put(
                    upload_url,
                    headers={
                        "Content-Type": "video/mp4",
                        "Content-Length": str(file_size),
                    },
                    content=video_path.read_bytes(),
                )
                if response.status_code not in (200, 201):
                    raise UploadFailed(
                        Platform.YOUTUBE.value,
                        f"Failed to upload video: {_extract_error_detail(response)}",
                    )
        except httpx.TimeoutException as exc:
            raise UploadFailed(Platform.YOUTUBE.value, "Upload timed out") from exc
        except httpx.RequestError as exc:
            raise UploadFailed(Platform.YOUTUBE.value, f"Unable to reach YouTube: {exc}") from exc

        try:
            video_id = response.json().get("id")
        except ValueError:
            video_id = None
        if not video_id:
            raise UploadFailed(Platform.YOUTUBE.value, "Upload response did not include a video id")

        logger.info(f"Uploaded {clip.id} to YouTube: https://youtube.com/shorts/{video_id}")
        return video_id


class TwitterUploader:
    """
    Post clips to X (Twitter).

    Chunked media upload (initialize, append, finalize, wait for processing)
    followed by a post carrying the media id. Needs an OAuth 2.0 user access
    token with the ``media.write`` and ``tweet.write`` scopes.
    """

    API_URL = "https://api.x.com/2"
    CHUNK_SIZE = 4 * 1024 * 1024
    MAX_STATUS_CHECKS = 60

    def __init__(self, access_token: Optional[str] = None, poll_interval: float = 5.0):
        self.access_token = access_token or settings.twitter_access_token
        self.poll_interval = poll_interval

    def _fail(self, step: str, response: httpx.Response) -> UploadFailed:
        return UploadFailed(Platform.TWITTER.value, f"{step} failed: {_extract_error_detail(response)}")

    async def _wait_for_processing(self, client: httpx.AsyncClient, media_id: str, info: Optional[dict]):
        for _ in range(self.MAX_STATUS_CHECKS):
            state = (info or {}).get("state")
            if state in (None, "succeeded"):
                return
            if state == "failed":
                error = (info.get("error") or {}).get("message", "unknown error")
                raise UploadFailed(Platform.TWITTER.value, f"Media processing failed: {error}")

            await asyncio.sleep(info.get("check_after_secs", self.poll_interval))
            response = await client.get(
                f"{self.API_URL}/media/upload",
                params={"command": "STATUS", "media_id": media_id},
            )
            if response.status_code != 200:
                raise self._fail("Media status", response)
            info = response.json().get("data", {}).get("processing_info")

        raise UploadFailed(Platform.TWITTER.value, "Media processing did not finish in time")

    async def __call__(self, clip: Clip) -> str:
        if not self.access_token:
            raise UploadFailed(Platform.TWITTER.value, "Twitter access token not configured")

        video_path = Path(clip.path)
        if not video_path.exists():
            raise UploadFailed(Platform.TWITTER.value, f"Video file not found: {video_path}")
        file_size = video_path.stat().st_size

        timeout = httpx.Timeout(UPLOAD_HTTP_TIMEOUT_SECONDS, connect=OAUTH_HTTP_TIMEOUT_SECONDS)
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=timeout, headers=headers) as client:
                response = await client.post(
                    f"{self.API_URL}/media/upload/initialize",
                    json={
                        "media_type": "video/mp4",
                        "media_category": "tweet_video",
                        "total_bytes": file_size,
                    },
                )
                if response.status_code not in (200, 201, 202):
                    raise self._fail("Media initialize", response)
                media_id = response.json()["data"]["id"]

                with open(video_path, "rb") as video_file:
                    segment = 0
                    while chunk := video_file.read(self.CHUNK_SIZE):
                        response = await client.post(
                            f"{self.API_URL}/media/upload/{media_id}/append",
                            data={"segment_index": str(segment)},
                            files={"media": ("chunk", chunk, "application/octet-stream")},
                        )
                        if response.status_code not in (200, 201, 202, 204):
                            raise self._fail("Media append", response)
                        segment += 1

                response = await client.post(f"{self.API_URL}/media/upload/{media_id}/finalize")
                if response.status_code not in (200, 201, 202):
                    raise self._fail("Media finalize", response)
                await self._wait_for_processing(
                    client, media_id, response.json().get("data", {}).get("processing_info")
                )

                response = await client.post(
                    f"{self.API_URL}/tweets",
                    json={"text": clip_description(clip)[:280], "media": {"media_ids": [media_id]}},
                )
                if response.status_code not in (200, 201):
                    raise self._fail("Post", response)
                post_id = response.json()["data"]["id"]
        except httpx.TimeoutException as exc:
            raise UploadFailed(Platform.TWITTER.value, "Upload timed out") from exc
        except httpx.RequestError as exc:
            raise UploadFailed(Platform.TWITTER.value, f"Unable to reach X: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise UploadFailed(Platform.TWITTER.value, f"Unexpected response from X: {exc}") from exc

        logger.info(f"Posted {clip.id} to X: {post_id}")
        return post_id


def build_uploaders(platforms: Optional[List[str]] = None) -> Dict[str, Uploader]:
    """Uploaders for the configured platforms, in configuration order."""
    available: Dict[str, Callable[[], Uploader]] = {
        Platform.YOUTUBE.value: YouTubeUploader,
        Platform.TWITTER.value: TwitterUploader,
    }
    uploaders: Dict[str, Uploader] = {}
    for platform in platforms if platforms is not None else settings.platforms:
        if platform not in available:
            raise ValueError(f"No uploader for platform: {platform}")
        uploaders[platform] = available[platform]()
    return uploaders
