"""
Turn a raw (possibly shortened) product link into a ProductIdentity.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup

from crawler.extractors.clean import strip_site_suffix
from crawler.infra.http import DESKTOP_UA, FETCH_ERRORS, TRANSPORT_ERRORS, HttpFetcher
from miner.adapters.shopee_affiliate import ShopeeAffiliateClient
from miner.errors import ConfigurationError, IdentityNotFoundError, MinerError
from miner.models import ProductIdentity
from utils.keywords import generate_keywords

logger = logging.getLogger(__name__)

_SLUG = re.compile(r"/([^/]+)-i\.\d+\.\d+")
_DOTTED_IDS = re.compile(r"i\.(\d+)\.(\d+)")
_PATH_IDS = re.compile(r"/[a-zA-Z][\w.-]*/(\d+)/(\d+)")


def parse_ids(url: str) -> Tuple[Optional[str], Optional[str]]:
    """(shop_id, item_id) from ``-i.{shop}.{item}`` or ``/{seller}/{shop}/{item}``."""
    for pattern in (_DOTTED_IDS, _PATH_IDS):
        match = pattern.search(url)
        if match:
            return match.group(1), match.group(2)
    return None, None


def name_from_path(url: str) -> Optional[str]:
    match = _SLUG.search(urlsplit(url).path)
    if not match:
        return None
    name = unquote(match.group(1)).replace("-", " ").strip()
    return name or None


def name_from_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html or "", "lxml")
    if not soup.title or not soup.title.string:
        return None
    title = strip_site_suffix(soup.title.string)
    # a title that only names the marketplace is no product name
    if len(title) <= 5 or "shopee" in title.lower():
        return None
    return title


@dataclass
class ResolvedLink:
    """Everything learned from a product link before keywords are derived."""

    original_url: str
    canonical_url: str
    shop_id: Optional[str] = None
    item_id: Optional[str] = None
    name: Optional[str] = None
    html: str = ""


class ProductIdentityExtractor:
    def __init__(self, fetcher: HttpFetcher, affiliate: Optional[ShopeeAffiliateClient] = None) -> None:
        self.fetcher = fetcher
        self.affiliate = affiliate

    async def resolve(self, url: str) -> ResolvedLink:
        """
        Follow redirects and collect identifiers and a display name. Never
        raises for transport errors: the input URL is then the only evidence.
        """
        url = url.strip()
        canonical, html = url, ""
        try:
            response = await self.fetcher.resolve(url, headers={"User-Agent": DESKTOP_UA})
            canonical = str(response.url)
            if response.status_code < 400:
                html = response.text
        except TRANSPORT_ERRORS as exc:
            logger.warning("Could not resolve %s: %s", url, exc)

        shop_id, item_id = parse_ids(canonical)
        if not item_id:
            shop_id, item_id = parse_ids(url)
        link = ResolvedLink(
            original_url=url,
            canonical_url=canonical,
            shop_id=shop_id,
            item_id=item_id,
            name=name_from_path(canonical) or name_from_path(url),
            html=html,
        )
        if not link.name and html:
            link.name = name_from_title(html)
        if not link.name and link.shop_id and link.item_id:
            link.name = await self._name_from_affiliate(link.shop_id, link.item_id)
        logger.info(
            "Resolved %s -> shop=%s item=%s name=%r", url, link.shop_id, link.item_id, link.name
        )
        return link

    async def _name_from_affiliate(self, shop_id: str, item_id: str) -> Optional[str]:
        if not self.affiliate or not self.affiliate.configured:
            return None
        try:
            offer = await self.affiliate.find_product(item_id, shop_id=shop_id)
        except (MinerError, *FETCH_ERRORS) as exc:
            if not isinstance(exc, ConfigurationError):
                logger.warning("Affiliate name lookup failed for %s/%s: %s", shop_id, item_id, exc)
            return None
        return offer.product_name if offer and offer.product_name else None

    async def extract(self, url: str) -> ProductIdentity:
        link = await self.resolve(url)
        keywords = generate_keywords(link.name or "")
        if not keywords:
            raise IdentityNotFoundError()
        return ProductIdentity(
            canonical_url=link.canonical_url,
            name=link.name or "",
            keywords=tuple(keywords),
            item_id=link.item_id,
            shop_id=link.shop_id,
        )
