"""
Core data structures shared by the mining pipeline, extractors and API.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from crawler.pipelines.dedupe import stable_id


class VideoSource(str, Enum):
    SHOPEE = "shopee"
    ALIEXPRESS = "aliexpress"
    PINTEREST = "pinterest"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    FACEBOOK = "facebook"


class TaskStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.TIMED_OUT)


@dataclass(frozen=True)
class ProductIdentity:
    """
    What the adapters know about the product being mined. Built once per
    request and shared read-only across concurrent adapters.
    """

    canonical_url: str
    name: str
    keywords: Tuple[str, ...]
    item_id: Optional[str] = None
    shop_id: Optional[str] = None

    @property
    def primary_keyword(self) -> str:
        return self.keywords[0]

    @property
    def main_phrase(self) -> str:
        return self.keywords[1] if len(self.keywords) > 1 else self.keywords[0]


@dataclass
class VideoRecord:
    """Normalized video found by any source."""

    source: VideoSource
    video_url: str
    title: str = ""
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None
    author: Optional[str] = None
    source_url: Optional[str] = None
    is_search_link: bool = False
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id and self.video_url:
            self.id = stable_id(self.source.value, self.video_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "videoUrl": self.video_url,
            "thumbnailUrl": self.thumbnail_url,
            "title": self.title,
            "duration": self.duration,
            "author": self.author,
            "sourceUrl": self.source_url,
            "isSearchLink": self.is_search_link,
        }


@dataclass
class HealthStatus:
    name: str
    healthy: bool
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    items_last_fetch: int = 0
    latency_ms: Optional[float] = None
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class MiningResult:
    success: bool
    product_name: str = ""
    keywords: List[str] = field(default_factory=list)
    videos: List[VideoRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    health: List[HealthStatus] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str) -> "MiningResult":
        return cls(success=False, errors=[message])

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "productName": self.product_name,
            "keywords": list(self.keywords),
            "videos": [video.to_dict() for video in self.videos],
            "totalFound": len(self.videos),
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        if not self.success and self.errors:
            payload["error"] = self.errors[0]
        return payload


@dataclass
class ShopeeProduct:
    title: str = ""
    images: List[str] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "title": self.title, "images": list(self.images)}
        if self.method:
            payload["method"] = self.method
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ExtractedVideo:
    original_url: str
    video_url: Optional[str] = None
    title: Optional[str] = None
    creator: Optional[str] = None
    thumbnail_url: Optional[str] = None
    success: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "videoUrl": self.video_url,
            "title": self.title,
            "creator": self.creator,
            "thumbnailUrl": self.thumbnail_url,
            "originalUrl": self.original_url,
            "error": self.error,
        }


@dataclass
class SoraVideoData:
    original_url: str
    video_url: Optional[str] = None
    video_url_no_watermark: Optional[str] = None
    title: Optional[str] = None
    prompt: Optional[str] = None
    thumbnail_url: Optional[str] = None
    creator: Optional[str] = None
    has_watermark: bool = True
    success: bool = False
    error: Optional[str] = None
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "videoUrl": self.video_url,
            "videoUrlNoWatermark": self.video_url_no_watermark,
            "title": self.title,
            "prompt": self.prompt,
            "thumbnailUrl": self.thumbnail_url,
            "creator": self.creator,
            "hasWatermark": self.has_watermark,
            "originalUrl": self.original_url,
            "method": self.method,
            "error": self.error,
        }


@dataclass(frozen=True)
class GenerationTask:
    task_id: str
    status: TaskStatus = TaskStatus.QUEUED
    elapsed: float = 0.0
    progress: float = 0.0
    video_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "elapsed": round(self.elapsed, 1),
            "progress": round(self.progress),
            "videoUrl": self.video_url,
            "error": self.error,
        }
