"""
Adapter protocol + registry for pluggable video sources.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Type

from crawler.infra.apify import ApifyClient
from crawler.infra.firecrawl import FirecrawlClient
from crawler.infra.http import HttpFetcher
from miner.adapters.shopee_affiliate import ShopeeAffiliateClient
from miner.extractors.shopee_video import ShopeeVideoExtractor
from miner.models import HealthStatus, ProductIdentity, VideoRecord, VideoSource
from miner.settings import MinerSettings


class SourceAdapter(Protocol):
    name: str
    source: VideoSource

    async def fetch(self, identity: ProductIdentity, *, now: datetime) -> Tuple[List[VideoRecord], HealthStatus]:
        ...


@dataclass
class AdapterContext:
    """Request-scoped clients shared by every adapter of one mining run."""

    settings: MinerSettings
    fetcher: HttpFetcher
    affiliate: ShopeeAffiliateClient
    firecrawl: FirecrawlClient
    apify: ApifyClient
    video_extractor: ShopeeVideoExtractor
    config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, settings: MinerSettings, fetcher: HttpFetcher, config: Optional[Dict[str, Any]] = None) -> "AdapterContext":
        return cls(
            settings=settings,
            fetcher=fetcher,
            affiliate=ShopeeAffiliateClient(
                settings.shopee_app_id,
                settings.shopee_app_secret,
                fetcher,
                endpoint=settings.shopee_affiliate_endpoint,
            ),
            firecrawl=FirecrawlClient(settings.firecrawl_api_key, fetcher),
            apify=ApifyClient(settings.apify_api_token, fetcher),
            video_extractor=ShopeeVideoExtractor(fetcher),
            config=config or {},
        )

    def limit(self, section: str, key: str, default: int) -> int:
        value = (self.config.get("limits") or {}).get(section, {}).get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default


def health_for(
    name: str,
    records: List[VideoRecord],
    error: Optional[str],
    started: float,
    now: datetime,
    detail: Optional[str] = None,
) -> HealthStatus:
    status = HealthStatus(
        name=name,
        healthy=error is None,
        last_error=error,
        last_success=now if error is None else None,
        items_last_fetch=len(records),
        latency_ms=(time.time() - started) * 1000,
    )
    if detail:
        status.extra["detail"] = detail
    return status


@dataclass
class AdapterFactory:
    adapter_cls: Type[Any]
    config: Dict[str, object] = field(default_factory=dict)

    def build(self, context: AdapterContext) -> SourceAdapter:
        return self.adapter_cls(context, **self.config)


class AdapterRegistry:
    """
    Maps each source flag to the adapters it switches on, in invocation order.
    """

    def __init__(self) -> None:
        self._factories: List[Tuple[VideoSource, AdapterFactory]] = []

    def register(self, source: VideoSource, factory: AdapterFactory) -> None:
        self._factories.append((source, factory))

    def build(self, sources: Iterable[VideoSource], context: AdapterContext) -> List[SourceAdapter]:
        enabled = set(sources)
        return [factory.build(context) for source, factory in self._factories if source in enabled]

    def sources(self) -> List[VideoSource]:
        seen: List[VideoSource] = []
        for source, _ in self._factories:
            if source not in seen:
                seen.append(source)
        return seen
