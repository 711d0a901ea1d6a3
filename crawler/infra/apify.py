"""
Apify actor runner (synchronous run returning dataset items).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from crawler.infra.http import FetchError, HttpFetcher, response_json
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)


class ApifyClient:
    base_url = "https://api.apify.com/v2/acts"

    def __init__(self, token: str, fetcher: HttpFetcher, *, timeout: float = 60.0) -> None:
        self.token = token
        self.fetcher = fetcher
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return is_configured_key(self.token)

    async def run_actor(self, actor: str, actor_input: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not self.configured:
            raise FetchError("APIFY_API_TOKEN not configured")
        url = f"{self.base_url}/{quote(actor, safe='~')}/run-sync-get-dataset-items"
        response = await self.fetcher.post_json(
            url, dict(actor_input), params={"token": self.token}, timeout=self.timeout
        )
        if response.status_code >= 400:
            raise FetchError(
                f"Apify actor {actor} HTTP {response.status_code}: {redact_secrets(response.text[:200])}"
            )
        items = response_json(response)
        if not isinstance(items, list):
            raise FetchError(f"Apify actor {actor} returned {type(items).__name__}, expected a list")
        logger.info("Apify actor %s returned %s items", actor, len(items))
        return [item for item in items if isinstance(item, dict)]
