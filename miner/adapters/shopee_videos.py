"""
Shopee mining layers that resolve to Shopee Video pages: other products of
the same shop (Affiliate API) and the Shopee video search (Firecrawl).
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote_plus

from crawler.extractors.patterns import collect_matches, compile_all
from crawler.infra.http import FETCH_ERRORS
from crawler.pipelines.dedupe import unique_strings
from miner.adapters.base import AdapterContext, health_for
from miner.errors import MinerError
from miner.extractors.shopee_video import ShopeeVideoExtractor
from miner.models import ExtractedVideo, HealthStatus, ProductIdentity, VideoRecord, VideoSource
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

SEARCH_URL = "https://shopee.com.br/search?keyword={query}&type=video"

VIDEO_LINK_PATTERNS = compile_all([
    r"https?://sv\.shopee\.com\.br/[^\s\"'<>]+",
    r"https?://shopee\.com\.br/share-video[^\s\"'<>]+",
    r"https?://s\.shopee\.com\.br/[A-Za-z0-9]+",
])
PRODUCT_HREF_PATTERNS = compile_all([r'href="([^"]*-i\.\d+\.\d+[^"]*)"'])


async def extract_many(extractor: ShopeeVideoExtractor, links: Sequence[str]) -> List[Tuple[str, ExtractedVideo]]:
    videos = await asyncio.gather(*(extractor.extract(link) for link in links), return_exceptions=True)
    found = []
    for link, video in zip(links, videos):
        if isinstance(video, Exception):
            logger.warning("Shopee video extraction failed for %s: %s", link, redact_secrets(str(video)))
            continue
        if video.success and video.video_url:
            found.append((link, video))
    return found


def record_from_video(
    video: ExtractedVideo,
    *,
    source_url: str,
    fallback_title: str,
    fallback_thumbnail: Optional[str] = None,
) -> VideoRecord:
    return VideoRecord(
        source=VideoSource.SHOPEE,
        video_url=video.video_url or "",
        title=video.title or fallback_title,
        thumbnail_url=video.thumbnail_url or fallback_thumbnail,
        author=video.creator,
        source_url=source_url,
    )


class ShopeeShopVideoAdapter:
    source = VideoSource.SHOPEE
    error_message = "Erro ao buscar vídeos da loja Shopee"

    def __init__(self, context: AdapterContext, offers: Optional[int] = None, products: Optional[int] = None) -> None:
        self.affiliate = context.affiliate
        self.extractor = context.video_extractor
        self.offer_limit = offers or context.limit("shop_videos", "offers", 20)
        self.product_limit = products or context.limit("shop_videos", "products", 5)
        self.name = "shopee:shop-videos"

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        if not identity.shop_id or not self.affiliate.configured:
            logger.info("%s skipped (shop id or affiliate credentials missing)", self.name)
            return [], health_for(self.name, [], None, start, now)
        try:
            offers = await self.affiliate.product_offers(shop_id=identity.shop_id, limit=self.offer_limit)
        except (MinerError, *FETCH_ERRORS) as exc:
            logger.warning("%s failed: %s", self.name, exc)
            return [], health_for(self.name, [], self.error_message, start, now, detail=redact_secrets(str(exc)))

        siblings = [offer for offer in offers if offer.item_id != identity.item_id and offer.product_link]
        siblings = siblings[: self.product_limit]
        by_link = {offer.product_link: offer for offer in siblings}
        records = [
            record_from_video(
                video,
                source_url=link,
                fallback_title=by_link[link].product_name,
                fallback_thumbnail=by_link[link].image_url,
            )
            for link, video in await extract_many(self.extractor, list(by_link))
        ]
        return records, health_for(self.name, records, None, start, now)


class ShopeeSearchVideoAdapter:
    source = VideoSource.SHOPEE
    error_message = "Erro ao buscar vídeos na pesquisa Shopee"

    def __init__(self, context: AdapterContext, links: Optional[int] = None, extract: Optional[int] = None) -> None:
        self.firecrawl = context.firecrawl
        self.extractor = context.video_extractor
        self.link_limit = links or context.limit("shopee_search", "links", 15)
        self.extract_limit = extract or context.limit("shopee_search", "extract", 8)
        self.name = "shopee:search-videos"

    def collect_links(self, html: str) -> List[str]:
        video_links = collect_matches(html, VIDEO_LINK_PATTERNS, limit=10)
        product_links = [
            href if href.startswith("http") else f"https://shopee.com.br{href}"
            for href in collect_matches(html, PRODUCT_HREF_PATTERNS, group=1)
        ]
        return unique_strings(video_links + product_links, limit=self.link_limit)

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        if not self.firecrawl.configured:
            logger.info("%s skipped (Firecrawl not configured)", self.name)
            return [], health_for(self.name, [], None, start, now)
        query = identity.primary_keyword
        try:
            html = await self.firecrawl.render_html(
                SEARCH_URL.format(query=quote_plus(query)), wait_for_ms=5000, timeout_ms=30000
            )
        except FETCH_ERRORS as exc:
            logger.warning("%s failed: %s", self.name, exc)
            return [], health_for(self.name, [], self.error_message, start, now, detail=redact_secrets(str(exc)))

        links = self.collect_links(html)[: self.extract_limit]
        logger.info("%s: %s candidate links for %r", self.name, len(links), query)
        records = [
            record_from_video(video, source_url=link, fallback_title=f"Vídeo Shopee - {query}")
            for link, video in await extract_many(self.extractor, links)
        ]
        return records, health_for(self.name, records, None, start, now)
