"""
Product metadata from JSON-LD, OpenGraph and plain <img> tags.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from crawler.extractors.clean import strip_site_suffix
from crawler.pipelines.dedupe import unique_strings

MAX_IMAGES = 10

REJECT_MARKERS = (
    "logo", "favicon", "icon", "sprite", "pixel", "badge", "placeholder", "avatar",
    "spacer", "blank", "loading",
    "facebook", "twitter", "instagram", "whatsapp", "pinterest", "youtube", "tiktok",
    "appstore", "googleplay",
)
REJECT_EXTENSIONS = (".svg", ".gif", ".ico")

CDN_IMAGE_PATTERN = re.compile(
    r"https?://(?:cf\.shopee\.com\.br|down-[a-z]+\.img\.susercontent\.com)/file/[A-Za-z0-9_\-]+(?:\.(?:jpe?g|png|webp))?",
    re.IGNORECASE,
)


@dataclass
class ProductPage:
    title: Optional[str] = None
    images: List[str] = field(default_factory=list)


def is_product_image(url: Optional[str]) -> bool:
    """Reject data URIs, vector/animated formats and obvious chrome (logos, icons, badges...)."""
    if not url or not url.startswith(("http://", "https://", "//")):
        return False
    path = urlsplit(url.lower()).path
    if path.endswith(REJECT_EXTENSIONS):
        return False
    tokens = [t for t in re.split(r"[^a-z0-9]+", path) if t]
    return not any(token.startswith(marker) for token in tokens for marker in REJECT_MARKERS)


def clean_image_url(url: str) -> str:
    """Strip query/fragment and thumbnail size markers (``_tn``, ``/tn/``, ``_thumb``)."""
    if url.startswith("//"):
        url = "https:" + url
    parts = urlsplit(url)
    path = parts.path.replace("/tn/", "/").replace("_thumb", "")
    path = re.sub(r"_tn(?=\.|$)", "", path)
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def filter_images(candidates: Iterable[Optional[str]], limit: int = MAX_IMAGES) -> List[str]:
    return unique_strings((clean_image_url(u) for u in candidates if is_product_image(u)), limit=limit)


def parse_product_page(html: str, base_url: Optional[str] = None, limit: int = MAX_IMAGES) -> ProductPage:
    soup = BeautifulSoup(html or "", "lxml")
    titles: List[str] = []
    candidates: List[str] = []

    for payload in _json_ld_blocks(soup):
        name = payload.get("name")
        if isinstance(name, str):
            titles.append(name)
        candidates.extend(_image_values(payload.get("image")))

    for tag in soup.select('meta[property="og:image"], meta[name="og:image"], meta[property="og:image:secure_url"]'):
        if tag.get("content"):
            candidates.append(tag["content"].strip())
    for tag in soup.select('meta[property="og:title"], meta[name="og:title"]'):
        if tag.get("content"):
            titles.append(tag["content"].strip())
    if soup.title and soup.title.string:
        titles.append(soup.title.string.strip())

    candidates.extend(m.group(0) for m in CDN_IMAGE_PATTERN.finditer(html or ""))

    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if src:
            candidates.append(urljoin(base_url, src) if base_url else src)

    page = ProductPage(images=filter_images(candidates, limit=limit))
    for raw in titles:
        title = strip_site_suffix(raw)
        if title:
            page.title = title
            break
    return page


def _json_ld_blocks(soup: BeautifulSoup) -> List[dict]:
    blocks: List[dict] = []
    for tag in soup.select('script[type="application/ld+json"]'):
        try:
            payload = json.loads(tag.string or "{}")
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict) and isinstance(payload.get("@graph"), list):
            payload = payload["@graph"]
        if isinstance(payload, list):
            blocks.extend(item for item in payload if isinstance(item, dict))
        elif isinstance(payload, dict):
            blocks.append(payload)
    # Product blocks first, other typed blocks after.
    return sorted(blocks, key=lambda block: block.get("@type") != "Product")


def _image_values(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return [url] if isinstance(url, str) else []
    if isinstance(value, list):
        return [url for item in value for url in _image_values(item)]
    return []
