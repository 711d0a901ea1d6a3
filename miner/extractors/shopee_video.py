"""
Single-URL extraction of a Shopee Video (sv.shopee / share-video / short link).
"""
from __future__ import annotations

import logging
import re
from typing import Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlsplit

from crawler.infra.http import FETCH_ERRORS, HTML_ACCEPT, MOBILE_UA, FetchError, HttpFetcher
from crawler.extractors.patterns import compile_all, first_match
from miner.models import ExtractedVideo

logger = logging.getLogger(__name__)

SHOPEE_VIDEO_HEADERS = {
    "User-Agent": MOBILE_UA,
    "Accept": HTML_ACCEPT,
    "Referer": "https://shopee.com.br/",
}

NO_VIDEO_MESSAGE = "Nenhum vídeo encontrado neste link da Shopee."
FETCH_FAILED_MESSAGE = "Não foi possível acessar o link da Shopee."

VIDEO_URL_PATTERNS = compile_all([
    r'"playUrl"\s*:\s*"([^"]+)"',
    r'"play_url"\s*:\s*"([^"]+)"',
    r'"video_url"\s*:\s*"([^"]+)"',
    r'"videoUrl"\s*:\s*"([^"]+)"',
    r'"url"\s*:\s*"([^"]+\.mp4[^"]*)"',
    r'"download_url"\s*:\s*"([^"]+)"',
    r'"hls_url"\s*:\s*"([^"]+)"',
    r'src="([^"]+\.mp4[^"]*)"',
    r'"video"\s*:\s*"([^"]+\.mp4[^"]*)"',
    r'(https?://[^"\'\s]*sv\.shopee[^"\'\s]*\.mp4[^"\'\s]*)',
    r'(https?://[^"\'\s]*cf\.shopee[^"\'\s]*video[^"\'\s]*)',
])

TITLE_PATTERNS = compile_all([
    r'<meta[^>]+property="og:title"[^>]+content="([^"]+)"',
    r'<meta[^>]+content="([^"]+)"[^>]+property="og:title"',
    r'<meta[^>]+name="title"[^>]+content="([^"]+)"',
    r'<title>([^<]+)</title>',
    r'"title"\s*:\s*"([^"]+)"',
    r'"desc"\s*:\s*"([^"]+)"',
])

THUMBNAIL_PATTERNS = compile_all([
    r'<meta[^>]+property="og:image"[^>]+content="([^"]+)"',
    r'<meta[^>]+content="([^"]+)"[^>]+property="og:image"',
    r'"thumbnail(?:Url|_url)?"\s*:\s*"([^"]+)"',
    r'"cover(?:Url|_url)?"\s*:\s*"([^"]+)"',
    r'"poster"\s*:\s*"([^"]+)"',
])

CREATOR_PATTERNS = compile_all([
    r'"(?:author|creator|username|nickname|nick_name)"\s*:\s*"([^"]+)"',
    r'"user_name"\s*:\s*"([^"]+)"',
    r'<meta[^>]+name="author"[^>]+content="([^"]+)"',
])

_SOFT_REDIRECT = re.compile(
    r'(?:http-equiv="refresh"[^>]+url=|window\.location(?:\.href)?\s*=\s*["\'])([^"\'>\s]+)',
    re.IGNORECASE,
)


def looks_like_video_url(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith(("http", "//")) and any(token in lowered for token in (".mp4", "video", "playback"))


def is_direct_video_page(url: str) -> bool:
    return "sv.shopee" in url or "share-video" in url


def redir_target(url: str) -> Optional[str]:
    values = parse_qs(urlsplit(url).query).get("redir")
    return values[0] if values else None


def parse_video_page(original_url: str, html: str) -> ExtractedVideo:
    video_url = first_match(html, VIDEO_URL_PATTERNS, validator=looks_like_video_url)
    if video_url and video_url.startswith("//"):
        video_url = "https:" + video_url
    thumbnail = first_match(html, THUMBNAIL_PATTERNS, validator=lambda u: u.startswith("http"))
    return ExtractedVideo(
        original_url=original_url,
        video_url=video_url,
        title=first_match(html, TITLE_PATTERNS),
        creator=first_match(html, CREATOR_PATTERNS),
        thumbnail_url=thumbnail,
        success=bool(video_url),
        error=None if video_url else NO_VIDEO_MESSAGE,
    )


class ShopeeVideoExtractor:
    def __init__(self, fetcher: HttpFetcher) -> None:
        self.fetcher = fetcher

    async def load_page(self, url: str) -> Tuple[str, str]:
        """Follow HTTP redirects, a ``redir`` parameter and one soft (meta/JS) redirect."""
        response = await self.fetcher.resolve(url, headers=SHOPEE_VIDEO_HEADERS)
        final_url = str(response.url)
        target = redir_target(final_url)
        if not target and not is_direct_video_page(final_url):
            soft = _SOFT_REDIRECT.search(response.text or "")
            target = urljoin(final_url, soft.group(1)) if soft else None
        if target and target != final_url:
            response = await self.fetcher.resolve(target, headers=SHOPEE_VIDEO_HEADERS)
            final_url = str(response.url)
        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code} for {final_url}")
        return final_url, response.text

    async def extract(self, url: str) -> ExtractedVideo:
        try:
            final_url, html = await self.load_page(url)
        except FETCH_ERRORS as exc:
            logger.warning("Shopee video page fetch failed for %s: %s", url, exc)
            return ExtractedVideo(original_url=url, error=FETCH_FAILED_MESSAGE)
        video = parse_video_page(url, html)
        logger.info("Shopee video %s -> %s", final_url, "found" if video.success else "no video")
        return video
