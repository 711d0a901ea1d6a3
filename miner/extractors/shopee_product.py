"""
Single-URL extraction of a Shopee product's title and images.
"""
from __future__ import annotations

import logging
from typing import Optional

from crawler.extractors.og_jsonld import MAX_IMAGES, filter_images, parse_product_page
from crawler.infra.http import HttpFetcher
from miner.adapters.shopee_affiliate import ProductOffer, ShopeeAffiliateClient
from miner.adapters.shopee_internal import ShopeeInternalApiClient
from miner.fallback import FallbackChain, FallbackStep
from miner.identity import ProductIdentityExtractor, ResolvedLink
from miner.models import ShopeeProduct

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = "URL inválida. Por favor, forneça um link válido da Shopee."
NOT_FOUND_MESSAGE = "Não foi possível extrair as imagens deste produto."
DEFAULT_TITLE = "Produto Shopee"


def _offer_product(offer: Optional[ProductOffer]) -> Optional[ShopeeProduct]:
    if offer is None or not offer.image_url:
        return None
    return ShopeeProduct(title=offer.product_name, images=filter_images([offer.image_url]))


class ShopeeProductExtractor:
    """Internal API -> Affiliate (shop) -> Affiliate (keyword) -> HTML scrape."""

    def __init__(
        self,
        fetcher: HttpFetcher,
        affiliate: Optional[ShopeeAffiliateClient] = None,
        internal: Optional[ShopeeInternalApiClient] = None,
    ) -> None:
        self.fetcher = fetcher
        self.affiliate = affiliate
        self.internal = internal or ShopeeInternalApiClient(fetcher)
        # Naming through the affiliate API is a chain step here, not part of resolving.
        self.identity = ProductIdentityExtractor(fetcher)
        self.chain: FallbackChain[ResolvedLink, ShopeeProduct] = FallbackChain(
            "shopee-product",
            [
                FallbackStep("internal-api", self._from_internal_api),
                FallbackStep("affiliate-shop", self._from_affiliate_shop),
                FallbackStep("affiliate-keyword", self._from_affiliate_keyword),
                FallbackStep("html-scrape", self._from_html),
            ],
            is_empty=lambda product: product is None or not product.images,
        )

    async def extract(self, url: str) -> ShopeeProduct:
        if not url or "shopee" not in url.lower():
            return ShopeeProduct(error=INVALID_URL_MESSAGE)

        link = await self.identity.resolve(url)
        result = await self.chain.run(link)
        if not result.found:
            return ShopeeProduct(title=link.name or DEFAULT_TITLE, error=NOT_FOUND_MESSAGE)

        product = result.value
        product.title = product.title or link.name or DEFAULT_TITLE
        product.images = product.images[:MAX_IMAGES]
        product.success = True
        product.method = result.step
        return product

    def _affiliate_ready(self, link: ResolvedLink) -> bool:
        return bool(self.affiliate and self.affiliate.configured and link.item_id)

    async def _from_internal_api(self, link: ResolvedLink) -> Optional[ShopeeProduct]:
        if not (link.item_id and link.shop_id):
            return None
        item = await self.internal.fetch_item(link.item_id, link.shop_id)
        if item is None:
            return None
        return ShopeeProduct(title=item.title, images=filter_images(item.images))

    async def _from_affiliate_shop(self, link: ResolvedLink) -> Optional[ShopeeProduct]:
        if not (self._affiliate_ready(link) and link.shop_id):
            return None
        return _offer_product(await self.affiliate.find_product(link.item_id, shop_id=link.shop_id))

    async def _from_affiliate_keyword(self, link: ResolvedLink) -> Optional[ShopeeProduct]:
        if not (self._affiliate_ready(link) and link.name):
            return None
        return _offer_product(await self.affiliate.find_product(link.item_id, keyword=link.name[:60]))

    async def _from_html(self, link: ResolvedLink) -> Optional[ShopeeProduct]:
        html = link.html or await self.fetcher.get_text(link.canonical_url)
        page = parse_product_page(html, base_url=link.canonical_url)
        return ShopeeProduct(title=page.title or link.name or "", images=page.images)
