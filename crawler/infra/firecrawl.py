"""
Firecrawl rendering client: fetches JavaScript-rendered HTML for a URL.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from crawler.infra.http import FetchError, HttpFetcher, response_json
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)


class FirecrawlClient:
    endpoint = "https://api.firecrawl.dev/v1/scrape"

    def __init__(
        self,
        api_key: str,
        fetcher: HttpFetcher,
        *,
        wait_for_ms: int = 5000,
        timeout_ms: Optional[int] = None,
    ) -> None:
        self.api_key = api_key
        self.fetcher = fetcher
        self.wait_for_ms = wait_for_ms
        self.timeout_ms = timeout_ms

    @property
    def configured(self) -> bool:
        return is_configured_key(self.api_key)

    async def render_html(
        self,
        url: str,
        *,
        wait_for_ms: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ) -> str:
        """
        Return the rendered HTML of ``url`` ("" when Firecrawl produced none).

        Raises FetchError when the key is missing or Firecrawl rejects the call.
        """
        if not self.configured:
            raise FetchError("FIRECRAWL_API_KEY not configured")

        body: Dict[str, Any] = {
            "url": url,
            "formats": ["html"],
            "waitFor": wait_for_ms if wait_for_ms is not None else self.wait_for_ms,
        }
        timeout = timeout_ms if timeout_ms is not None else self.timeout_ms
        if timeout:
            body["timeout"] = timeout

        # Firecrawl may hold the connection for the whole render.
        http_timeout = max(self.fetcher.timeout, (timeout or body["waitFor"]) / 1000 + 10)
        response = await self.fetcher.post_json(
            self.endpoint,
            body,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=http_timeout,
        )
        if response.status_code >= 400:
            raise FetchError(
                f"Firecrawl HTTP {response.status_code}: {redact_secrets(response.text[:200])}"
            )
        payload = response_json(response)
        data = payload.get("data") if isinstance(payload, dict) else None
        html = data.get("html") if isinstance(data, dict) else None
        if not html:
            logger.info("Firecrawl returned no html for %s", url)
            return ""
        return html
