"""
Social video adapters backed by Apify actors (TikTok, Instagram, Facebook Ad
Library). Actor items have a loose, drifting shape; every field is read
through a list of candidate paths and normalised here, at the boundary.
"""
from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from crawler.extractors.clean import clip
from crawler.infra.http import FETCH_ERRORS
from miner.adapters.base import AdapterContext, health_for
from miner.adapters.search_links import search_link_record
from miner.fallback import FallbackChain, FallbackStep
from miner.models import HealthStatus, ProductIdentity, VideoRecord, VideoSource
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

DEFAULT_ACTORS = {
    VideoSource.TIKTOK: "clockworks~tiktok-scraper",
    VideoSource.INSTAGRAM: "apify~instagram-hashtag-scraper",
    VideoSource.FACEBOOK: "curious_coder~facebook-ads-library-scraper",
}


def pick(item: Dict[str, Any], *paths: str) -> Optional[Any]:
    """First truthy value among dotted paths (``"video.playAddr"``)."""
    for path in paths:
        value: Any = item
        for part in path.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        if value:
            return value
    return None


def clean_query(text: str, limit: int) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", " ", (text or "")[:limit])).strip()


def hashtag_for(identity: ProductIdentity) -> str:
    return re.sub(r"[^\w]", "", identity.main_phrase).lower()[:30]


def _seconds(value: Any) -> Optional[str]:
    try:
        return f"{int(float(value))}s" if value else None
    except (TypeError, ValueError):
        return None


def normalize_tiktok_item(item: Dict[str, Any], query: str) -> Optional[VideoRecord]:
    video_url = pick(item, "videoUrl", "video.downloadAddr", "video.playAddr", "downloadUrl")
    if not isinstance(video_url, str):
        return None
    covers = item.get("covers")
    thumbnail = covers[0] if isinstance(covers, list) and covers else pick(item, "video.cover", "coverUrl")
    return VideoRecord(
        source=VideoSource.TIKTOK,
        video_url=video_url,
        title=clip(pick(item, "text", "desc", "description") or f"TikTok - {query}", 100),
        thumbnail_url=thumbnail,
        author=pick(item, "authorMeta.name", "author.nickname"),
        duration=_seconds(pick(item, "videoMeta.duration")),
        source_url=pick(item, "webVideoUrl"),
    )


def normalize_instagram_item(item: Dict[str, Any], hashtag: str) -> Optional[VideoRecord]:
    is_video = item.get("type") == "Video" or item.get("isVideo") or item.get("videoUrl")
    video_url = pick(item, "videoUrl", "video_url")
    if not is_video or not isinstance(video_url, str):
        return None
    short_code = item.get("shortCode")
    return VideoRecord(
        source=VideoSource.INSTAGRAM,
        video_url=video_url,
        title=clip(pick(item, "caption", "alt") or f"Reel #{hashtag}", 100),
        thumbnail_url=pick(item, "displayUrl", "thumbnailUrl", "previewUrl"),
        author=pick(item, "ownerUsername", "owner.username"),
        duration=_seconds(item.get("videoDuration")),
        source_url=item.get("url") or (f"https://www.instagram.com/p/{short_code}/" if short_code else None),
    )


def normalize_facebook_item(item: Dict[str, Any], query: str) -> Optional[VideoRecord]:
    video_url = pick(item, "videoUrl", "video.url", "mediaUrl")
    if not isinstance(video_url, str):
        return None
    return VideoRecord(
        source=VideoSource.FACEBOOK,
        video_url=video_url,
        title=clip(pick(item, "adText", "bodyText") or f"Facebook Ad - {query}", 100),
        thumbnail_url=pick(item, "thumbnailUrl", "imageUrl", "snapshotUrl"),
        author=pick(item, "pageName", "advertiserName"),
        source_url=pick(item, "adUrl", "snapshotUrl"),
    )


class ApifyVideoAdapter:
    source: VideoSource
    error_message = "Erro ao buscar vídeos"

    def __init__(self, context: AdapterContext, actor: Optional[str] = None) -> None:
        self.apify = context.apify
        actors = context.config.get("apify_actors") or {}
        self.actor = actor or actors.get(self.source.value) or DEFAULT_ACTORS[self.source]
        self.results = context.limit("apify", "results", 15)
        self.take = context.limit("apify", "take", 10)
        self.name = f"{self.source.value}:apify"

    def build_input(self, identity: ProductIdentity) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def normalize(self, item: Dict[str, Any], identity: ProductIdentity) -> Optional[VideoRecord]:
        raise NotImplementedError

    async def run_actor(self, identity: ProductIdentity) -> List[VideoRecord]:
        """Empty when the actor cannot run; raises on transport/actor failure."""
        actor_input = self.build_input(identity)
        if not self.apify.configured or actor_input is None:
            return []
        items = await self.apify.run_actor(self.actor, actor_input)
        records: List[VideoRecord] = []
        for item in items[: self.take]:
            record = self.normalize(item, identity)
            if record:
                records.append(record)
        return records

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        try:
            records = await self.run_actor(identity)
        except FETCH_ERRORS as exc:
            logger.warning("%s failed: %s", self.name, exc)
            return [], health_for(self.name, [], self.error_message, start, now, detail=redact_secrets(str(exc)))
        return records, health_for(self.name, records, None, start, now)


class SearchLinkFallbackMixin:
    """Actor first; a platform search link when the actor yields nothing."""

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        chain: FallbackChain[ProductIdentity, List[VideoRecord]] = FallbackChain(
            self.name,
            [
                FallbackStep("apify", self.run_actor),
                FallbackStep("search-link", self._search_link),
            ],
        )
        result = await chain.run(identity)
        records = result.value or []
        status = health_for(self.name, records, None, start, now, detail="; ".join(result.failures) or None)
        if result.step:
            status.extra["method"] = result.step
        return records, status

    async def _search_link(self, identity: ProductIdentity) -> List[VideoRecord]:
        return [search_link_record(self.source, identity)]


class TikTokVideoAdapter(SearchLinkFallbackMixin, ApifyVideoAdapter):
    source = VideoSource.TIKTOK
    error_message = "Erro ao buscar vídeos no TikTok"

    def build_input(self, identity: ProductIdentity) -> Optional[Dict[str, Any]]:
        query = clean_query(identity.name, 50)
        if not query:
            return None
        return {
            "searchQueries": [query],
            "resultsPerPage": self.results,
            "shouldDownloadVideos": False,
            "shouldDownloadCovers": False,
        }

    def normalize(self, item: Dict[str, Any], identity: ProductIdentity) -> Optional[VideoRecord]:
        return normalize_tiktok_item(item, clean_query(identity.name, 50))


class InstagramVideoAdapter(SearchLinkFallbackMixin, ApifyVideoAdapter):
    source = VideoSource.INSTAGRAM
    error_message = "Erro ao buscar reels no Instagram"

    def build_input(self, identity: ProductIdentity) -> Optional[Dict[str, Any]]:
        hashtag = hashtag_for(identity)
        if len(hashtag) < 3:
            return None
        return {"hashtags": [hashtag], "resultsLimit": self.results, "resultsType": "posts"}

    def normalize(self, item: Dict[str, Any], identity: ProductIdentity) -> Optional[VideoRecord]:
        return normalize_instagram_item(item, hashtag_for(identity))


class FacebookAdsVideoAdapter(ApifyVideoAdapter):
    source = VideoSource.FACEBOOK
    error_message = "Erro ao buscar anúncios no Facebook"

    def build_input(self, identity: ProductIdentity) -> Optional[Dict[str, Any]]:
        query = clean_query(identity.name, 40)
        if not query:
            return None
        return {
            "searchTerms": [query],
            "countryCode": "BR",
            "adType": "all",
            "mediaType": "video",
            "maxItems": self.results,
        }

    def normalize(self, item: Dict[str, Any], identity: ProductIdentity) -> Optional[VideoRecord]:
        return normalize_facebook_item(item, clean_query(identity.name, 40))
