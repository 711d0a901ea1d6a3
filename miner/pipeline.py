"""
Mining orchestration: identity -> concurrent adapters -> merge + dedupe.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

import httpx

from crawler.infra.http import HttpFetcher
from crawler.pipelines.dedupe import dedupe_by_key
from miner.adapters.aliexpress import AliExpressVideoAdapter
from miner.adapters.apify import FacebookAdsVideoAdapter, InstagramVideoAdapter, TikTokVideoAdapter
from miner.adapters.base import AdapterContext, AdapterFactory, AdapterRegistry, SourceAdapter, health_for
from miner.adapters.search_links import SearchLinkAdapter
from miner.adapters.shopee_internal import ShopeeItemVideoAdapter
from miner.adapters.shopee_videos import ShopeeSearchVideoAdapter, ShopeeShopVideoAdapter
from miner.config_loader import load_sources_config
from miner.errors import IdentityNotFoundError
from miner.identity import ProductIdentityExtractor
from miner.models import HealthStatus, MiningResult, ProductIdentity, VideoRecord, VideoSource
from miner.settings import MinerSettings
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_FLAGS: Dict[str, bool] = {
    VideoSource.SHOPEE.value: True,
    VideoSource.ALIEXPRESS.value: True,
    VideoSource.TIKTOK.value: True,
    VideoSource.INSTAGRAM.value: True,
    VideoSource.FACEBOOK.value: True,
    VideoSource.YOUTUBE.value: False,
    VideoSource.PINTEREST.value: False,
}

SourceFlags = Union[Mapping[str, Any], Iterable[str], None]


def default_registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(VideoSource.SHOPEE, AdapterFactory(ShopeeItemVideoAdapter))
    registry.register(VideoSource.SHOPEE, AdapterFactory(ShopeeShopVideoAdapter))
    registry.register(VideoSource.SHOPEE, AdapterFactory(ShopeeSearchVideoAdapter))
    registry.register(VideoSource.ALIEXPRESS, AdapterFactory(AliExpressVideoAdapter))
    registry.register(VideoSource.TIKTOK, AdapterFactory(TikTokVideoAdapter))
    registry.register(VideoSource.INSTAGRAM, AdapterFactory(InstagramVideoAdapter))
    registry.register(VideoSource.FACEBOOK, AdapterFactory(FacebookAdsVideoAdapter))
    registry.register(VideoSource.YOUTUBE, AdapterFactory(SearchLinkAdapter, {"source": "youtube"}))
    registry.register(VideoSource.PINTEREST, AdapterFactory(SearchLinkAdapter, {"source": "pinterest"}))
    return registry


def resolve_sources(requested: SourceFlags, defaults: Mapping[str, bool]) -> Set[VideoSource]:
    """
    Request flags win over configured defaults. Accepts a ``{name: bool}``
    mapping (missing names fall back to the default) or a list of names to
    enable. Unknown names are ignored.
    """
    flags = dict(defaults)
    if isinstance(requested, Mapping):
        flags.update({str(k).lower(): bool(v) for k, v in requested.items()})
    elif requested is not None:
        names = {str(name).lower() for name in requested}
        flags = {key: key in names for key in flags}
    enabled: Set[VideoSource] = set()
    for key, on in flags.items():
        if not on:
            continue
        try:
            enabled.add(VideoSource(key))
        except ValueError:
            logger.warning("Unknown source flag '%s'; ignoring", key)
    return enabled


class MiningPipeline:
    def __init__(
        self,
        settings: MinerSettings,
        registry: Optional[AdapterRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or default_registry()
        self.config = config if config is not None else load_sources_config()
        self.client_factory = client_factory
        self.default_flags = dict(DEFAULT_SOURCE_FLAGS)
        configured = self.config.get("sources")
        if isinstance(configured, dict):
            self.default_flags.update({str(k).lower(): bool(v) for k, v in configured.items()})
        self._health: Dict[str, HealthStatus] = {}

    def new_fetcher(self) -> HttpFetcher:
        client = self.client_factory() if self.client_factory else None
        return HttpFetcher(client, timeout=self.settings.http_timeout)

    async def mine(self, url: str, sources: SourceFlags = None) -> MiningResult:
        enabled = resolve_sources(sources, self.default_flags)
        async with self.new_fetcher() as fetcher:
            context = AdapterContext.build(self.settings, fetcher, self.config)
            extractor = ProductIdentityExtractor(fetcher, context.affiliate)
            try:
                identity = await extractor.extract(url)
            except IdentityNotFoundError as exc:
                logger.info("Mining aborted for %s: %s", url, exc.message)
                return MiningResult.failed(exc.message)

            adapters = self.registry.build(enabled, context)
            logger.info(
                "Mining %r with %s adapters (%s)",
                identity.name,
                len(adapters),
                ", ".join(sorted(s.value for s in enabled)) or "none",
            )
            return await self.run(identity, adapters)

    async def run(self, identity: ProductIdentity, adapters: List[SourceAdapter]) -> MiningResult:
        now = datetime.now(timezone.utc)
        outcomes = await asyncio.gather(*(self._guarded_fetch(adapter, identity, now) for adapter in adapters))

        records: List[VideoRecord] = []
        errors: List[str] = []
        health: List[HealthStatus] = []
        for adapter, (items, status) in zip(adapters, outcomes):
            records.extend(items)
            health.append(status)
            self._health[status.name] = status
            if status.last_error:
                errors.append(f"{adapter.source.value}: {status.last_error}")

        videos = dedupe_by_key(
            (record for record in records if record.video_url),
            key_fn=lambda record: record.video_url,
        )
        logger.info("Mining finished: %s videos, %s source errors", len(videos), len(errors))
        return MiningResult(
            success=True,
            product_name=identity.name,
            keywords=list(identity.keywords),
            videos=videos,
            errors=errors,
            generated_at=now,
            health=health,
        )

    async def _guarded_fetch(self, adapter: SourceAdapter, identity: ProductIdentity, now: datetime):
        start = time.time()
        timeout = self.settings.adapter_timeout
        try:
            return await asyncio.wait_for(adapter.fetch(identity, now=now), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Adapter %s timed out after %ss", adapter.name, timeout)
            return [], health_for(adapter.name, [], f"tempo esgotado após {timeout:g}s", start, now)
        except Exception as exc:  # adapters should not raise; keep the run alive if one does
            logger.error("Adapter %s failed: %s", adapter.name, exc, exc_info=True)
            return [], health_for(adapter.name, [], redact_secrets(str(exc)) or type(exc).__name__, start, now)

    def get_health(self) -> List[HealthStatus]:
        return list(self._health.values())
