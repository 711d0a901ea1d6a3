"""
Public API for the product video miner.

Every call opens its own request-scoped HTTP client; nothing is shared
between calls except the settings and the adapter health snapshot.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from crawler.infra.firecrawl import FirecrawlClient
from miner.adapters.shopee_affiliate import ShopeeAffiliateClient
from miner.errors import GenerationTimeoutError, UpstreamError
from miner.extractors.shopee_product import ShopeeProductExtractor
from miner.extractors.shopee_video import ShopeeVideoExtractor
from miner.extractors.sora_video import SoraVideoExtractor, download_video
from miner.gateway import AiGatewayClient
from miner.generation import GenerationPoller, GenerationRequest, PollResponse, SeedanceClient
from miner.models import ExtractedVideo, GenerationTask, MiningResult, ShopeeProduct, SoraVideoData, TaskStatus
from miner.pinterest import PinterestClient
from miner.pipeline import MiningPipeline, SourceFlags
from miner.settings import MinerSettings, load_settings
from miner.status import build_status

SETTINGS: MinerSettings = load_settings()
_pipeline = MiningPipeline(SETTINGS)


def configure(
    settings: Optional[MinerSettings] = None,
    *,
    config: Optional[Dict[str, Any]] = None,
    client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
) -> MiningPipeline:
    """Rebuild the module pipeline (tests inject a mock transport through ``client_factory``)."""
    global SETTINGS, _pipeline
    SETTINGS = settings or load_settings()
    _pipeline = MiningPipeline(SETTINGS, config=config, client_factory=client_factory)
    return _pipeline


def _affiliate(fetcher) -> ShopeeAffiliateClient:
    settings = _pipeline.settings
    return ShopeeAffiliateClient(
        settings.shopee_app_id,
        settings.shopee_app_secret,
        fetcher,
        endpoint=settings.shopee_affiliate_endpoint,
    )


async def mine_product_videos(url: str, sources: SourceFlags = None) -> MiningResult:
    return await _pipeline.mine(url, sources)


async def extract_shopee_product(url: str) -> ShopeeProduct:
    async with _pipeline.new_fetcher() as fetcher:
        return await ShopeeProductExtractor(fetcher, _affiliate(fetcher)).extract(url)


async def extract_shopee_video(url: str) -> ExtractedVideo:
    async with _pipeline.new_fetcher() as fetcher:
        return await ShopeeVideoExtractor(fetcher).extract(url)


async def extract_sora_video(url: str) -> SoraVideoData:
    async with _pipeline.new_fetcher() as fetcher:
        firecrawl = FirecrawlClient(_pipeline.settings.firecrawl_api_key, fetcher)
        return await SoraVideoExtractor(fetcher, firecrawl).extract(url)


async def download_sora_video(video_url: str) -> Tuple[bytes, str]:
    async with _pipeline.new_fetcher() as fetcher:
        return await download_video(fetcher, video_url)


async def create_generation(request: GenerationRequest) -> Dict[str, Any]:
    async with _pipeline.new_fetcher() as fetcher:
        return await SeedanceClient(_pipeline.settings.xskill_api_key, fetcher).create(request)


async def query_generation(task_id: str) -> PollResponse:
    async with _pipeline.new_fetcher() as fetcher:
        return await SeedanceClient(_pipeline.settings.xskill_api_key, fetcher).query(task_id)


async def generate_video(
    request: GenerationRequest,
    on_update: Optional[Callable[[GenerationTask], None]] = None,
) -> GenerationTask:
    """Create and poll to the end; failures and client-side timeouts raise."""
    settings = _pipeline.settings
    async with _pipeline.new_fetcher() as fetcher:
        poller = GenerationPoller(
            SeedanceClient(settings.xskill_api_key, fetcher),
            interval=settings.poll_interval,
            budget=settings.poll_budget,
        )
        task = await poller.run(request, on_update)
    if task.status == TaskStatus.TIMED_OUT:
        raise GenerationTimeoutError(task.error)
    if task.status == TaskStatus.FAILED:
        raise UpstreamError(task.error)
    return task


async def video_caption(product_title: str, video_title: Optional[str] = None, platform: str = "pinterest") -> str:
    async with _pipeline.new_fetcher() as fetcher:
        return await _gateway(fetcher).video_caption(product_title, video_title, platform)


async def rewrite_title(original: str) -> str:
    async with _pipeline.new_fetcher() as fetcher:
        return await _gateway(fetcher).rewrite_title(original)


async def rewrite_caption(original: str) -> str:
    async with _pipeline.new_fetcher() as fetcher:
        return await _gateway(fetcher).rewrite_caption(original)


async def pin_caption(product_title: str, scene_description: Optional[str] = None) -> Dict[str, str]:
    async with _pipeline.new_fetcher() as fetcher:
        return await _gateway(fetcher).pin_caption(product_title, scene_description)


async def pinterest_image(product_title: str, **options: Any) -> Dict[str, str]:
    async with _pipeline.new_fetcher() as fetcher:
        return await _gateway(fetcher).pinterest_image(product_title, **options)


def _gateway(fetcher) -> AiGatewayClient:
    settings = _pipeline.settings
    return AiGatewayClient(settings.ai_gateway_api_key, fetcher, url=settings.ai_gateway_url)


def pinterest_client(fetcher) -> PinterestClient:
    settings = _pipeline.settings
    return PinterestClient(
        fetcher,
        client_id=settings.pinterest_client_id,
        client_secret=settings.pinterest_client_secret,
        redirect_uri=settings.pinterest_redirect_uri,
    )


def pinterest_auth_url(redirect_uri: Optional[str] = None) -> str:
    return pinterest_client(None).authorization_url(redirect_uri)


async def pinterest_exchange_code(code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
    async with _pipeline.new_fetcher() as fetcher:
        token = await pinterest_client(fetcher).exchange_code(code, redirect_uri)
    return token.to_dict()


async def pinterest_boards(access_token: Optional[str]) -> List[Dict[str, Any]]:
    async with _pipeline.new_fetcher() as fetcher:
        return await pinterest_client(fetcher).list_boards(access_token)


async def pinterest_create_pin(access_token: Optional[str], **pin: Any) -> Dict[str, Any]:
    async with _pipeline.new_fetcher() as fetcher:
        return await pinterest_client(fetcher).create_pin(access_token, **pin)


def get_health_snapshot():
    return _pipeline.get_health()


def get_pipeline_status():
    """Expose a structured status payload for health dashboards."""
    return build_status(_pipeline, _pipeline.settings)
