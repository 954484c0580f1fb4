"""
Metrics provider adapter - fetches engagement counters of a TikTok video.

Responses are parsed into ``MetricsFound`` / ``ContentNotFound`` /
``ProviderUnavailable`` here; raw API payloads never leave this module.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

import aiohttp
import structlog

from campaign_rewards.core.config import settings
from campaign_rewards.core.exceptions import ExternalServiceError
from campaign_rewards.services.eligibility import ContentMetrics

logger = structlog.get_logger(__name__)

VIDEO_METRIC_FIELDS = "id,title,video_description,like_count,comment_count,share_count,view_count"
VIDEO_LIST_FIELDS = (
    "id,title,video_description,duration,cover_image_url,share_url,create_time,"
    "like_count,comment_count,share_count,view_count"
)

_CONTENT_ID_PATTERNS = (
    re.compile(r"video/(\d+)"),
    re.compile(r"/v/(\d+)"),
)


@dataclass(frozen=True)
class MetricsFound:
    metrics: ContentMetrics


@dataclass(frozen=True)
class ContentNotFound:
    content_id: str


@dataclass(frozen=True)
class ProviderUnavailable:
    reason: str


MetricsResult = Union[MetricsFound, ContentNotFound, ProviderUnavailable]


@dataclass
class ContentItem:
    """A video listed from the submitter's account."""
    id: str
    title: str
    description: str = ""
    duration: Optional[int] = None
    cover_url: Optional[str] = None
    share_url: Optional[str] = None
    create_time: Optional[int] = None
    metrics: ContentMetrics = field(default_factory=ContentMetrics)


@dataclass
class ContentPage:
    items: List[ContentItem]
    cursor: Optional[int] = None
    has_more: bool = False


class MetricsProvider(Protocol):
    """Interface the submission workflow depends on."""

    async def fetch(self, content_id: str, credential: str) -> MetricsResult: ...

    async def list_content(self, credential: str, cursor: Optional[int] = None) -> ContentPage: ...


def extract_content_id(url: str) -> Optional[str]:
    """
    Extract the numeric video id from a TikTok URL.

    Handles ``https://www.tiktok.com/@user/video/<id>`` and ``.../v/<id>``.
    Short share links would need a redirect lookup and return None.
    """
    if not url:
        return None
    for pattern in _CONTENT_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def parse_video_metrics(video: Dict[str, Any]) -> ContentMetrics:
    """
    Map TikTok counter names onto ContentMetrics; missing counters are zero.

    Raises ValueError or TypeError when a counter is not numeric.
    """
    return ContentMetrics.from_counts({
        "views": video.get("view_count"),
        "likes": video.get("like_count"),
        "comments": video.get("comment_count"),
        "shares": video.get("share_count"),
    })


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_content_item(video: Dict[str, Any]) -> ContentItem:
    """Raises ValueError or TypeError on non-numeric counters."""
    return ContentItem(
        id=str(video.get("id")),
        title=video.get("title") or video.get("video_description") or "Untitled",
        description=video.get("video_description") or "",
        duration=_optional_int(video.get("duration")),
        cover_url=video.get("cover_image_url"),
        share_url=video.get("share_url"),
        create_time=_optional_int(video.get("create_time")),
        metrics=parse_video_metrics(video),
    )


def _videos_from_payload(payload: Any) -> Optional[List[Dict[str, Any]]]:
    """Return the ``data.videos`` list, or None when the payload is malformed."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        return None
    videos = data.get("videos") or []
    if not isinstance(videos, list):
        return None
    return [v for v in videos if isinstance(v, dict)]


class TikTokMetricsProvider:
    """TikTok Display API client for video metrics."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        self.base_url = (base_url or settings.tiktok_api_base_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.tiktok_request_timeout)
        self.logger = logger.bind(service="tiktok_metrics")

    async def fetch(self, content_id: str, credential: str) -> MetricsResult:
        """Query the counters of one video visible to ``credential``."""
        url = f"{self.base_url}/video/query/"
        body = {"filters": {"video_ids": [content_id]}}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    url,
                    params={"fields": VIDEO_METRIC_FIELDS},
                    json=body,
                    headers=self._headers(credential),
                ) as response:
                    if response.status != 200:
                        text = await response.text()
                        self.logger.warning(
                            "Video query returned error status",
                            content_id=content_id,
                            status=response.status,
                            body=text[:500]
                        )
                        return ProviderUnavailable(f"HTTP {response.status}")
                    payload = await response.json(content_type=None)

        except asyncio.TimeoutError:
            self.logger.warning("Video query timed out", content_id=content_id)
            return ProviderUnavailable("timeout")
        except (aiohttp.ClientError, ValueError) as e:
            self.logger.warning("Video query failed", content_id=content_id, error=str(e))
            return ProviderUnavailable(str(e))

        videos = _videos_from_payload(payload)
        if videos is None:
            return ProviderUnavailable("malformed response")
        if not videos:
            return ContentNotFound(content_id)

        try:
            metrics = parse_video_metrics(videos[0])
        except (TypeError, ValueError) as e:
            self.logger.warning(
                "Video query returned malformed counters",
                content_id=content_id,
                error=str(e)
            )
            return ProviderUnavailable("malformed response")
        return MetricsFound(metrics)

    async def list_content(self, credential: str, cursor: Optional[int] = None) -> ContentPage:
        """List the most recent videos of the account behind ``credential``."""
        url = f"{self.base_url}/video/list/"
        params: Dict[str, Any] = {"fields": VIDEO_LIST_FIELDS}
        if cursor:
            params["cursor"] = cursor

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    url,
                    params=params,
                    json={"max_count": 20},
                    headers=self._headers(credential),
                ) as response:
                    if response.status != 200:
                        raise ExternalServiceError(
                            "Failed to fetch videos",
                            {"status": response.status}
                        )
                    payload = await response.json(content_type=None)

        except asyncio.TimeoutError:
            raise ExternalServiceError("Failed to fetch videos", {"reason": "timeout"})
        except (aiohttp.ClientError, ValueError) as e:
            raise ExternalServiceError("Failed to fetch videos", {"reason": str(e)})

        videos = _videos_from_payload(payload)
        if videos is None:
            raise ExternalServiceError("Failed to fetch videos", {"reason": "malformed response"})

        data = payload.get("data") or {}
        try:
            return ContentPage(
                items=[parse_content_item(v) for v in videos],
                cursor=int(data["cursor"]) if data.get("cursor") is not None else None,
                has_more=bool(data.get("has_more")),
            )
        except (TypeError, ValueError) as e:
            raise ExternalServiceError("Failed to fetch videos", {"reason": f"malformed response: {e}"})

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
