"""
AliExpress mining layer: search listing -> product pages -> first MP4 each.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import quote_plus

from crawler.extractors.patterns import collect_matches, compile_all, first_match
from crawler.infra.http import FETCH_ERRORS
from miner.adapters.base import AdapterContext, health_for
from miner.models import HealthStatus, ProductIdentity, VideoRecord, VideoSource
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

SEARCH_URL = "https://pt.aliexpress.com/wholesale?SearchText={query}"

PRODUCT_LINK_PATTERNS = compile_all([
    r'href="([^"]*/item/\d+\.html[^"]*)"',
    r'href="([^"]*aliexpress\.[a-z]+/item/[^"]*)"',
])
VIDEO_PATTERNS = compile_all([
    r"(https?://[^\"'\s]*alicdn\.com[^\"'\s]*\.mp4)",
    r'"videoUrl"\s*:\s*"([^"]+\.mp4[^"]*)"',
    r'"video"\s*:\s*\{[^}]*"url"\s*:\s*"([^"]+)"',
])


def absolute_product_link(href: str) -> str:
    if href.startswith("//"):
        return "https:" + href
    if href.startswith("http"):
        return href
    return "https://pt.aliexpress.com" + href


class AliExpressVideoAdapter:
    source = VideoSource.ALIEXPRESS
    error_message = "Erro ao buscar vídeos no AliExpress"

    def __init__(
        self,
        context: AdapterContext,
        products: Optional[int] = None,
        render: Optional[int] = None,
        videos: Optional[int] = None,
    ) -> None:
        self.firecrawl = context.firecrawl
        self.product_limit = products or context.limit("aliexpress", "products", 5)
        self.render_limit = render or context.limit("aliexpress", "render", 3)
        self.video_limit = videos or context.limit("aliexpress", "videos", 3)
        self.name = "aliexpress:search"

    async def _video_on_page(self, link: str) -> Optional[str]:
        try:
            html = await self.firecrawl.render_html(link, wait_for_ms=3000, timeout_ms=20000)
        except FETCH_ERRORS as exc:
            logger.debug("AliExpress product render failed for %s: %s", link, exc)
            return None
        return first_match(html, VIDEO_PATTERNS, validator=lambda url: ".mp4" in url)

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        if not self.firecrawl.configured:
            logger.info("%s skipped (Firecrawl not configured)", self.name)
            return [], health_for(self.name, [], None, start, now)
        query = identity.primary_keyword
        try:
            html = await self.firecrawl.render_html(
                SEARCH_URL.format(query=quote_plus(query)), wait_for_ms=4000, timeout_ms=30000
            )
        except FETCH_ERRORS as exc:
            logger.warning("%s failed: %s", self.name, exc)
            return [], health_for(self.name, [], self.error_message, start, now, detail=redact_secrets(str(exc)))

        links = [absolute_product_link(h) for h in collect_matches(html, PRODUCT_LINK_PATTERNS, group=1)]
        links = list(dict.fromkeys(links))[: self.product_limit][: self.render_limit]
        found = await asyncio.gather(*(self._video_on_page(link) for link in links))

        records = [
            VideoRecord(
                source=self.source,
                video_url=video_url,
                title=f"Vídeo AliExpress - {query}",
                source_url=link,
            )
            for link, video_url in zip(links, found)
            if video_url
        ][: self.video_limit]
        return records, health_for(self.name, records, None, start, now)
