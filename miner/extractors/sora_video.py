"""
Single-URL extraction of a public Sora video, plus the download proxy.

Probe order: CDN mirror, CDN proxy, OpenAI CDN (HEAD probes keyed by the
``s_...`` video id), then a Firecrawl render and a direct fetch of the page.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from urllib.parse import quote, urlsplit

import httpx

from crawler.extractors.patterns import compile_all, decode_unicode, first_match
from crawler.infra.firecrawl import FirecrawlClient
from crawler.infra.http import DESKTOP_UA, TRANSPORT_ERRORS, HttpFetcher
from miner.errors import UpstreamError
from miner.fallback import FallbackChain, FallbackStep
from miner.models import SoraVideoData

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Não foi possível extrair o vídeo. Verifique se o link está correto e é público."
MIN_VIDEO_BYTES = 100_000

MIRROR_TEMPLATES = (
    "https://oscdn2.dyysy.com/MP4/{video_id}.mp4",
    "https://oscdn.dyysy.com/MP4/{video_id}.mp4",
)
PROXY_TEMPLATES = (
    "https://api.soracdn.workers.dev/download-proxy?url={quoted_url}",
    "https://api.soracdn.workers.dev/video/{video_id}",
)
OPENAI_TEMPLATES = (
    "https://cdn.openai.com/sora/videos/{video_id}.mp4",
    "https://cdn.openai.com/MP4/{video_id}.mp4",
    "https://videos.openai.com/{video_id}.mp4",
)

ID_PATTERNS = compile_all([
    r"/p/(s_[a-zA-Z0-9_-]+)",
    r"/video/(s_[a-zA-Z0-9_-]+)",
    r"/(s_[a-zA-Z0-9_-]+)(?:/|$)",
    r"[?&]id=(s_[a-zA-Z0-9_-]+)",
])
GENERIC_ID = re.compile(r"([a-zA-Z0-9_-]{10,})")

VIDEO_URL_PATTERNS = compile_all([
    r'"videoUrl"\s*:\s*"([^"]+)"',
    r'"video_url"\s*:\s*"([^"]+)"',
    r'"mp4Url"\s*:\s*"([^"]+)"',
    r'"downloadUrl"\s*:\s*"([^"]+)"',
    r'src="(https?://[^"]*\.mp4[^"]*)"',
    r'"url"\s*:\s*"(https?://[^"]*(?:\.mp4|video|blob)[^"]*)"',
    r'data-video-url="([^"]+)"',
    r'<video[^>]+src="([^"]+)"',
    r'"playbackUrl"\s*:\s*"([^"]+)"',
    r'"streamUrl"\s*:\s*"([^"]+)"',
])
PROMPT_PATTERNS = compile_all([
    r'"prompt"\s*:\s*"([^"]+)"',
    r'"text"\s*:\s*"([^"]{20,})"',
    r'"description"\s*:\s*"([^"]{20,})"',
    r'data-prompt="([^"]+)"',
    r'"input"\s*:\s*"([^"]+)"',
])
TITLE_PATTERNS = compile_all([
    r'<meta\s+property="og:title"\s+content="([^"]+)"',
    r'<title>([^<]+)</title>',
    r'"title"\s*:\s*"([^"]+)"',
    r'"name"\s*:\s*"([^"]+)"',
])
THUMBNAIL_PATTERNS = compile_all([
    r'<meta\s+property="og:image"\s+content="([^"]+)"',
    r'"thumbnail"\s*:\s*"([^"]+)"',
    r'"posterUrl"\s*:\s*"([^"]+)"',
    r'"cover"\s*:\s*"([^"]+)"',
    r'"image"\s*:\s*"(https?://[^"]+)"',
])
CREATOR_PATTERNS = compile_all([
    r'"username"\s*:\s*"([^"]+)"',
    r'"creator"\s*:\s*"([^"]+)"',
    r'"author"\s*:\s*"([^"]+)"',
    r'"user"\s*:\s*\{[^}]*"name"\s*:\s*"([^"]+)"',
])


def extract_video_id(url: str) -> Optional[str]:
    video_id = first_match(url, ID_PATTERNS)
    if video_id:
        return video_id
    parts = urlsplit(url)
    generic = GENERIC_ID.search(f"{parts.path}?{parts.query}")
    return generic.group(1) if generic else None


def parse_sora_page(url: str, html: str) -> Optional[SoraVideoData]:
    video_url = first_match(html, VIDEO_URL_PATTERNS)
    if not video_url:
        return None
    return SoraVideoData(
        original_url=url,
        video_url=video_url,
        video_url_no_watermark=video_url,
        title=first_match(html, TITLE_PATTERNS),
        prompt=first_match(html, PROMPT_PATTERNS, validator=lambda text: len(text) > 10),
        thumbnail_url=first_match(html, THUMBNAIL_PATTERNS),
        creator=first_match(html, CREATOR_PATTERNS),
        success=True,
    )


@dataclass(frozen=True)
class SoraTarget:
    url: str
    video_id: Optional[str]


def _looks_like_video(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    try:
        length = int(response.headers.get("content-length") or 0)
    except ValueError:
        length = 0
    return "video" in content_type or length > MIN_VIDEO_BYTES


class SoraVideoExtractor:
    def __init__(self, fetcher: HttpFetcher, firecrawl: Optional[FirecrawlClient] = None) -> None:
        self.fetcher = fetcher
        self.firecrawl = firecrawl
        self.chain: FallbackChain[SoraTarget, SoraVideoData] = FallbackChain(
            "sora-video",
            [
                FallbackStep("cdn-direct-dyysy", self._from_mirror),
                FallbackStep("cdn-proxy-workers", self._from_proxy),
                FallbackStep("cdn-openai", self._from_openai_cdn),
                FallbackStep("firecrawl", self._from_firecrawl),
                FallbackStep("direct-fetch", self._from_direct_fetch),
            ],
            is_empty=lambda data: data is None or not data.video_url,
        )

    async def extract(self, url: str) -> SoraVideoData:
        url = url.strip()
        target = SoraTarget(url=url, video_id=extract_video_id(url))
        logger.info("Sora extraction for %s (video id %s)", url, target.video_id)
        result = await self.chain.run(target)
        if not result.found:
            return SoraVideoData(original_url=url, error=FAILURE_MESSAGE)
        data = result.value
        data.method = result.step
        return data

    async def _probe(self, candidates: Sequence[str], *, require_video: bool) -> Optional[str]:
        for candidate in candidates:
            response = await self.fetcher.head(candidate, headers={"User-Agent": DESKTOP_UA})
            if response is None or not response.is_success:
                continue
            if require_video and not _looks_like_video(response):
                continue
            return candidate
        return None

    def _probe_result(self, target: SoraTarget, video_url: str, *, has_watermark: bool) -> SoraVideoData:
        return SoraVideoData(
            original_url=target.url,
            video_url=video_url,
            video_url_no_watermark=video_url,
            title=f"Sora Video - {target.video_id}",
            has_watermark=has_watermark,
            success=True,
        )

    async def _from_mirror(self, target: SoraTarget) -> Optional[SoraVideoData]:
        if not target.video_id:
            return None
        found = await self._probe([t.format(video_id=target.video_id) for t in MIRROR_TEMPLATES], require_video=True)
        return self._probe_result(target, found, has_watermark=False) if found else None

    async def _from_proxy(self, target: SoraTarget) -> Optional[SoraVideoData]:
        if not target.video_id:
            return None
        candidates = [
            t.format(video_id=target.video_id, quoted_url=quote(target.url, safe="")) for t in PROXY_TEMPLATES
        ]
        found = await self._probe(candidates, require_video=True)
        return self._probe_result(target, found, has_watermark=False) if found else None

    async def _from_openai_cdn(self, target: SoraTarget) -> Optional[SoraVideoData]:
        if not target.video_id:
            return None
        found = await self._probe([t.format(video_id=target.video_id) for t in OPENAI_TEMPLATES], require_video=False)
        return self._probe_result(target, found, has_watermark=True) if found else None

    async def _from_firecrawl(self, target: SoraTarget) -> Optional[SoraVideoData]:
        if not self.firecrawl or not self.firecrawl.configured:
            return None
        html = await self.firecrawl.render_html(target.url, wait_for_ms=5000)
        return parse_sora_page(target.url, html)

    async def _from_direct_fetch(self, target: SoraTarget) -> Optional[SoraVideoData]:
        html = await self.fetcher.get_text(target.url)
        return parse_sora_page(target.url, html)


async def download_video(fetcher: HttpFetcher, video_url: str) -> Tuple[bytes, str]:
    """Fetch a remote MP4 on the caller's behalf (the browser cannot, CORS)."""
    clean_url = decode_unicode(video_url)
    try:
        response = await fetcher.get(clean_url, headers={"User-Agent": DESKTOP_UA, "Accept": "*/*"}, timeout=120.0)
    except TRANSPORT_ERRORS as exc:
        logger.warning("Sora download failed for %s: %s", clean_url, exc)
        raise UpstreamError("Falha ao baixar o vídeo.") from exc
    if response.status_code >= 400:
        raise UpstreamError(f"Falha ao baixar o vídeo: HTTP {response.status_code}", status_code=response.status_code)
    return response.content, "video/mp4"
