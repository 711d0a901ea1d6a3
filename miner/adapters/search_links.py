"""
Search-link synthesis: when a platform cannot be scraped, hand the user a
ready-made search URL for the product instead.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Dict, List, Tuple
from urllib.parse import urlencode

from miner.adapters.base import AdapterContext, health_for
from miner.models import HealthStatus, ProductIdentity, VideoRecord, VideoSource

# (base URL, query parameter, extra fixed params)
SEARCH_ENDPOINTS: Dict[VideoSource, Tuple[str, str, Dict[str, str]]] = {
    VideoSource.TIKTOK: ("https://www.tiktok.com/search/video", "q", {}),
    VideoSource.INSTAGRAM: ("https://www.instagram.com/explore/search/keyword/", "q", {}),
    VideoSource.YOUTUBE: ("https://www.youtube.com/results", "search_query", {"sp": "EgIYAQ=="}),
    VideoSource.PINTEREST: ("https://br.pinterest.com/search/videos/", "q", {}),
}

PLATFORM_LABELS = {
    VideoSource.TIKTOK: "TikTok",
    VideoSource.INSTAGRAM: "Instagram",
    VideoSource.YOUTUBE: "YouTube Shorts",
    VideoSource.PINTEREST: "Pinterest",
}


def build_search_url(source: VideoSource, keyword: str) -> str:
    base, param, extra = SEARCH_ENDPOINTS[source]
    params = {param: keyword}
    params.update(extra)
    return f"{base}?{urlencode(params)}"


def search_link_record(source: VideoSource, identity: ProductIdentity) -> VideoRecord:
    keyword = identity.main_phrase
    url = build_search_url(source, keyword)
    return VideoRecord(
        source=source,
        video_url=url,
        title=f"Buscar \"{keyword}\" no {PLATFORM_LABELS[source]}",
        source_url=url,
        is_search_link=True,
    )


class SearchLinkAdapter:
    def __init__(self, context: AdapterContext, source: str) -> None:
        self.source = VideoSource(source)
        self.name = f"{self.source.value}:search-link"

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        start = time.time()
        records = [search_link_record(self.source, identity)]
        return records, health_for(self.name, records, None, start, now)
