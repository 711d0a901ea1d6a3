"""
Signed client for the Shopee Affiliate GraphQL API (productOfferV2).
"""
from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from crawler.infra.http import HttpFetcher, response_json
from miner.errors import ConfigurationError, MalformedPayloadError, UpstreamError
from miner.settings import DEFAULT_AFFILIATE_ENDPOINT
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)

OFFER_FIELDS = "productName productLink itemId imageUrl shopId"


def sign_payload(app_id: str, timestamp: int, payload: str, secret: str) -> str:
    """Hex sha256 over appId + timestamp + payload + secret."""
    base = f"{app_id}{timestamp}{payload}{secret}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def authorization_header(app_id: str, timestamp: int, signature: str) -> str:
    return f"SHA256 Credential={app_id}, Timestamp={timestamp}, Signature={signature}"


@dataclass(frozen=True)
class ProductOffer:
    item_id: str
    product_name: str = ""
    product_link: str = ""
    image_url: Optional[str] = None
    shop_id: Optional[str] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "ProductOffer":
        return cls(
            item_id=str(node.get("itemId") or ""),
            product_name=(node.get("productName") or "").strip(),
            product_link=node.get("productLink") or "",
            image_url=node.get("imageUrl") or None,
            shop_id=str(node["shopId"]) if node.get("shopId") else None,
        )

    def matches(self, item_id: str) -> bool:
        if not item_id:
            return False
        if self.item_id == item_id:
            return True
        # digit boundaries so item 123 never matches a link for 51234
        return bool(self.product_link and re.search(rf"(?<!\d){re.escape(item_id)}(?!\d)", self.product_link))


def match_offer(offers: Iterable[ProductOffer], item_id: str) -> Optional[ProductOffer]:
    """Exact item match only; an unrelated first result is never returned."""
    for offer in offers:
        if offer.matches(item_id):
            return offer
    return None


class ShopeeAffiliateClient:
    def __init__(
        self,
        app_id: str,
        app_secret: str,
        fetcher: HttpFetcher,
        *,
        endpoint: str = DEFAULT_AFFILIATE_ENDPOINT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.fetcher = fetcher
        self.endpoint = endpoint
        self.clock = clock

    @property
    def configured(self) -> bool:
        return is_configured_key(self.app_id) and is_configured_key(self.app_secret)

    def build_query(self, *, shop_id: Optional[str] = None, keyword: Optional[str] = None, limit: int = 50) -> str:
        if shop_id:
            selector = f"shopId: {int(shop_id)}"
        elif keyword:
            selector = f"keyword: {json.dumps(keyword, ensure_ascii=False)}"
        else:
            raise ValueError("shop_id or keyword is required")
        return (
            f"{{productOfferV2({selector} listType: 0 sortType: 1 page: 0 limit: {int(limit)})"
            f"{{nodes{{{OFFER_FIELDS}}}}}}}"
        )

    async def product_offers(
        self, *, shop_id: Optional[str] = None, keyword: Optional[str] = None, limit: int = 50
    ) -> List[ProductOffer]:
        if not self.configured:
            raise ConfigurationError("Shopee Affiliate API não configurada.")

        payload = json.dumps({"query": self.build_query(shop_id=shop_id, keyword=keyword, limit=limit)})
        timestamp = int(self.clock())
        signature = sign_payload(self.app_id, timestamp, payload, self.app_secret)
        response = await self.fetcher.post_json(
            self.endpoint,
            content=payload,
            headers={"Authorization": authorization_header(self.app_id, timestamp, signature)},
        )
        if response.status_code >= 400:
            raise UpstreamError(
                f"Shopee Affiliate HTTP {response.status_code}: {redact_secrets(response.text[:200])}"
            )
        data = response_json(response)
        if not isinstance(data, dict):
            raise MalformedPayloadError("Shopee Affiliate: resposta não é um objeto JSON.")
        if data.get("errors"):
            messages = [str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in data["errors"]]
            raise UpstreamError(f"Shopee Affiliate: {'; '.join(messages)}")

        nodes = ((data.get("data") or {}).get("productOfferV2") or {}).get("nodes")
        if not isinstance(nodes, list):
            raise MalformedPayloadError("Shopee Affiliate: campo productOfferV2.nodes ausente.")
        offers = [ProductOffer.from_node(node) for node in nodes if isinstance(node, dict)]
        logger.debug("Affiliate productOfferV2 returned %s offers (shop=%s, keyword=%s)", len(offers), shop_id, keyword)
        return offers

    async def find_product(
        self, item_id: str, *, shop_id: Optional[str] = None, keyword: Optional[str] = None
    ) -> Optional[ProductOffer]:
        offers = await self.product_offers(shop_id=shop_id, keyword=keyword, limit=50)
        offer = match_offer(offers, item_id)
        if offer is None:
            logger.info("Affiliate lookup found no exact match for item %s among %s offers", item_id, len(offers))
        return offer
