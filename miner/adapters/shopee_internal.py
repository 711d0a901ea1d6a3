"""
Unauthenticated Shopee product lookup through the web front end's JSON API.

The API answers differently depending on who asks, so the client rotates
through header profiles and endpoint variants until one returns a payload
with images.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from crawler.infra.http import BOT_UA, DESKTOP_UA, MOBILE_UA, TRANSPORT_ERRORS, ClientProfile, HttpFetcher
from crawler.pipelines.dedupe import unique_strings
from miner.adapters.base import AdapterContext, health_for
from miner.models import HealthStatus, ProductIdentity, VideoRecord, VideoSource

logger = logging.getLogger(__name__)

SHOPEE_BASE = "https://shopee.com.br"
CDN_BASE = "https://down-br.img.susercontent.com/file/"

ENDPOINT_VARIANTS = (
    "/api/v4/item/get?itemid={item_id}&shopid={shop_id}",
    "/api/v4/pdp/get_pc?item_id={item_id}&shop_id={shop_id}",
    "/api/v2/item/get?itemid={item_id}&shopid={shop_id}",
)

CLIENT_PROFILES = (
    ClientProfile(
        "desktop",
        DESKTOP_UA,
        {"Accept": "application/json", "Referer": SHOPEE_BASE + "/", "X-API-SOURCE": "pc", "X-Requested-With": "XMLHttpRequest"},
    ),
    ClientProfile("mobile", MOBILE_UA, {"Accept": "application/json", "Referer": SHOPEE_BASE + "/", "X-API-SOURCE": "rn"}),
    ClientProfile("bot", BOT_UA, {"Accept": "application/json"}),
)


@dataclass
class ShopeeItem:
    title: str = ""
    images: List[str] = field(default_factory=list)
    videos: List[Dict[str, Any]] = field(default_factory=list)


def image_url(value: str, cdn_base: str = CDN_BASE) -> str:
    if value.startswith("http"):
        return value
    return cdn_base + value


def parse_item_payload(payload: Any, cdn_base: str = CDN_BASE) -> Optional[ShopeeItem]:
    """Pull title, main/gallery/variation images and product videos from an item payload."""
    if not isinstance(payload, dict) or payload.get("error") not in (None, 0):
        return None
    item = payload.get("data") or payload.get("item")
    if isinstance(item, dict) and isinstance(item.get("item"), dict):
        item = item["item"]
    if not isinstance(item, dict):
        return None

    hashes: List[Optional[str]] = [item.get("image")]
    hashes.extend(item.get("images") or [])
    for variation in item.get("tier_variations") or []:
        if isinstance(variation, dict):
            hashes.extend(variation.get("images") or [])

    videos: List[Dict[str, Any]] = []
    for video in item.get("video_info_list") or []:
        if not isinstance(video, dict):
            continue
        url = (video.get("default_format") or {}).get("url") or video.get("url")
        if not url:
            continue
        videos.append(
            {
                "url": url,
                "thumbnail": image_url(video["thumb_url"], cdn_base) if video.get("thumb_url") else None,
                "duration": video.get("duration"),
            }
        )

    return ShopeeItem(
        title=(item.get("name") or item.get("title") or "").strip(),
        images=unique_strings(image_url(h, cdn_base) for h in hashes if isinstance(h, str) and h),
        videos=videos,
    )


class ShopeeInternalApiClient:
    def __init__(self, fetcher: HttpFetcher, *, base_url: str = SHOPEE_BASE, cdn_base: str = CDN_BASE) -> None:
        self.fetcher = fetcher
        self.base_url = base_url
        self.cdn_base = cdn_base

    async def fetch_item(self, item_id: str, shop_id: str) -> Optional[ShopeeItem]:
        for profile in CLIENT_PROFILES:
            for variant in ENDPOINT_VARIANTS:
                url = self.base_url + variant.format(item_id=item_id, shop_id=shop_id)
                try:
                    response = await self.fetcher.get(url, headers=profile.headers())
                except TRANSPORT_ERRORS as exc:
                    logger.debug("Shopee API %s (%s) failed: %s", variant, profile.name, exc)
                    continue
                if response.status_code != 200:
                    logger.debug("Shopee API %s (%s) -> HTTP %s", variant, profile.name, response.status_code)
                    continue
                try:
                    payload = response.json()
                except ValueError:
                    continue
                item = parse_item_payload(payload, self.cdn_base)
                if item and item.images:
                    logger.info("Shopee API hit via %s profile on %s", profile.name, variant.split("?")[0])
                    return item
        return None


class ShopeeItemVideoAdapter:
    """Videos attached to the product listing itself."""

    source = VideoSource.SHOPEE
    error_message = "Erro ao buscar vídeos do produto Shopee"

    def __init__(self, context: AdapterContext) -> None:
        self.client = ShopeeInternalApiClient(context.fetcher)
        self.name = "shopee:item-videos"

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        if not (identity.item_id and identity.shop_id):
            return [], health_for(self.name, [], None, start, now)
        item = await self.client.fetch_item(identity.item_id, identity.shop_id)
        if item is None:
            return [], health_for(self.name, [], self.error_message, start, now)
        records: List[VideoRecord] = []
        for video in item.videos:
            duration = video.get("duration")
            records.append(
                VideoRecord(
                    source=self.source,
                    video_url=video["url"],
                    title=item.title or identity.name,
                    thumbnail_url=video.get("thumbnail"),
                    duration=f"{duration}s" if duration else None,
                    source_url=identity.canonical_url,
                )
            )
        return records, health_for(self.name, records, None, start, now)
