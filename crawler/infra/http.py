"""
Async HTTP fetching utilities shared by source adapters and extractors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from utils.security import redact_secrets

logger = logging.getLogger(__name__)

DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MOBILE_UA = (
    "Mozilla/5.0 (Linux; Android 10; SM-G975F) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
BOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
ACCEPT_LANGUAGE = "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7"


class FetchError(RuntimeError):
    """Raised when an upstream answers with something we cannot use."""


# httpx.InvalidURL does not derive from httpx.HTTPError
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)
FETCH_ERRORS = TRANSPORT_ERRORS + (FetchError,)


@dataclass(frozen=True)
class ClientProfile:
    """A named bundle of request headers impersonating one kind of client."""

    name: str
    user_agent: str
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept-Language": ACCEPT_LANGUAGE}
        headers.update(self.extra_headers)
        return headers


class HttpFetcher:
    """
    Thin wrapper over httpx.AsyncClient with browser-like defaults.

    One fetcher is shared by every adapter of a request; it owns the client
    only when it created it.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 20.0,
        user_agent: str = DESKTOP_UA,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.timeout = timeout
        self.default_headers = {
            "User-Agent": user_agent,
            "Accept": HTML_ACCEPT,
            "Accept-Language": ACCEPT_LANGUAGE,
        }

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _merge(self, headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
        merged = dict(self.default_headers)
        if headers:
            merged.update(headers)
        return merged

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        return await self.client.get(
            url,
            headers=self._merge(headers),
            params=params,
            follow_redirects=True,
            timeout=timeout or self.timeout,
        )

    async def get_text(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> str:
        response = await self.get(url, headers=headers)
        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code} for {redact_secrets(url)}")
        return response.text

    async def resolve(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        """GET with redirects followed; ``response.url`` is the final location."""
        response = await self.get(url, headers=headers)
        if response.history:
            logger.debug("Resolved %s -> %s", redact_secrets(url), redact_secrets(str(response.url)))
        return response

    async def head(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> Optional[httpx.Response]:
        """HEAD probe; transport failures come back as None."""
        try:
            return await self.client.head(
                url, headers=self._merge(headers), follow_redirects=True, timeout=self.timeout
            )
        except TRANSPORT_ERRORS as exc:
            logger.debug("HEAD %s failed: %s", redact_secrets(url), exc)
            return None

    async def post_json(
        self,
        url: str,
        payload: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        content: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        request_headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        kwargs: Dict[str, Any] = {"headers": request_headers, "params": params, "timeout": timeout or self.timeout}
        if content is not None:
            kwargs["content"] = content
        else:
            kwargs["json"] = payload
        return await self.client.post(url, **kwargs)

    async def post_form(
        self,
        url: str,
        data: Mapping[str, str],
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        return await self.client.post(url, data=dict(data), headers=dict(headers or {}), timeout=self.timeout)


def response_json(response: httpx.Response) -> Any:
    """Decode a JSON body or raise FetchError with a redacted excerpt."""
    try:
        return response.json()
    except ValueError as exc:
        excerpt = redact_secrets(response.text[:200])
        raise FetchError(f"Invalid JSON payload (HTTP {response.status_code}): {excerpt}") from exc
