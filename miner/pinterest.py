"""
Thin Pinterest API v5 client: OAuth code exchange, boards, pin creation.

The access token belongs to the caller and is passed per call; nothing is
stored server-side.
"""
from __future__ import annotations

import base64
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from crawler.infra.http import FetchError, HttpFetcher, response_json
from miner.errors import ConfigurationError, InvalidUrlError, MalformedPayloadError, NotConnectedError, UpstreamError
from utils.security import is_configured_key, redact_secrets

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://www.pinterest.com/oauth/"
API_BASE = "https://api.pinterest.com/v5"
SCOPES = "boards:read,pins:read,pins:write,user_accounts:read"

TITLE_LIMIT = 100
DESCRIPTION_LIMIT = 500


def require_token(access_token: Optional[str]) -> str:
    """Fail fast, before any I/O, when the caller has not connected Pinterest."""
    if not access_token or not access_token.strip():
        raise NotConnectedError()
    return access_token.strip()


def split_data_url(image: str) -> Dict[str, str]:
    """``data:image/jpeg;base64,AAA`` -> content type + raw base64 payload."""
    match = re.match(r"data:(image/[\w.+-]+);base64,(.*)", image, re.DOTALL)
    if match:
        return {"content_type": match.group(1), "data": match.group(2)}
    return {"content_type": "image/png", "data": image.split(",", 1)[-1]}


@dataclass
class PinterestToken:
    access_token: str
    refresh_token: str = ""
    expires_in: int = 3600

    def to_dict(self) -> Dict[str, Any]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token, "expiresIn": self.expires_in}


class PinterestClient:
    def __init__(
        self,
        fetcher: HttpFetcher,
        *,
        client_id: str = "",
        client_secret: str = "",
        redirect_uri: str = "",
    ) -> None:
        self.fetcher = fetcher
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def authorization_url(self, redirect_uri: Optional[str] = None, state: Optional[str] = None) -> str:
        if not is_configured_key(self.client_id):
            raise ConfigurationError("Pinterest App ID não configurado.")
        target = redirect_uri or self.redirect_uri
        if not target:
            raise InvalidUrlError("redirectUri é obrigatório.")
        params = {
            "client_id": self.client_id,
            "redirect_uri": target,
            "response_type": "code",
            "scope": SCOPES,
            "state": state or uuid.uuid4().hex,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> PinterestToken:
        if not (is_configured_key(self.client_id) and is_configured_key(self.client_secret)):
            raise ConfigurationError("Credenciais do Pinterest não configuradas.")
        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        response = await self.fetcher.post_form(
            f"{API_BASE}/oauth/token",
            {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri or self.redirect_uri},
            headers={"Authorization": f"Basic {basic}"},
        )
        data = self._json(response)
        if response.status_code >= 400 or not data.get("access_token"):
            raise UpstreamError(data.get("message") or "Falha ao trocar o código pelo token do Pinterest.")
        return PinterestToken(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or "",
            expires_in=int(data.get("expires_in") or 3600),
        )

    async def list_boards(self, access_token: Optional[str]) -> List[Dict[str, Any]]:
        token = require_token(access_token)
        response = await self.fetcher.get(
            f"{API_BASE}/boards",
            params={"page_size": 100},
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        data = self._checked(response, "Falha ao buscar as pastas do Pinterest.")
        return [
            {
                "id": board.get("id"),
                "name": board.get("name"),
                "description": board.get("description"),
                "pinCount": board.get("pin_count"),
                "privacy": board.get("privacy"),
                "imageUrl": (board.get("media") or {}).get("image_cover_url"),
            }
            for board in data.get("items") or []
            if isinstance(board, dict)
        ]

    async def create_pin(
        self,
        access_token: Optional[str],
        *,
        board_id: str,
        image_base64: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Dict[str, Any]:
        token = require_token(access_token)
        if not board_id:
            raise ValueError("board_id is required")
        if not image_base64:
            raise ValueError("image is required")
        media = split_data_url(image_base64)
        payload: Dict[str, Any] = {
            "board_id": board_id,
            "media_source": {"source_type": "image_base64", **media},
        }
        if title:
            payload["title"] = title[:TITLE_LIMIT]
        if description:
            payload["description"] = description[:DESCRIPTION_LIMIT]
        if link:
            payload["link"] = link
        response = await self.fetcher.post_json(f"{API_BASE}/pins", payload, headers={"Authorization": f"Bearer {token}"})
        pin = self._checked(response, f"Falha ao criar o pin: HTTP {response.status_code}")
        logger.info("Pinterest pin %s created on board %s", pin.get("id"), board_id)
        return {
            "id": pin.get("id"),
            "link": pin.get("link"),
            "title": pin.get("title"),
            "description": pin.get("description"),
            "boardId": pin.get("board_id"),
            "createdAt": pin.get("created_at"),
        }

    def _json(self, response) -> Dict[str, Any]:
        try:
            data = response_json(response)
        except FetchError as exc:
            raise MalformedPayloadError(str(exc)) from exc
        if not isinstance(data, dict):
            raise MalformedPayloadError("Pinterest: resposta não é um objeto JSON.")
        return data

    def _checked(self, response, fallback_message: str) -> Dict[str, Any]:
        if response.status_code == 401:
            raise NotConnectedError()
        data = self._json(response)
        if response.status_code >= 400:
            logger.error("Pinterest HTTP %s: %s", response.status_code, redact_secrets(str(data)[:300]))
            raise UpstreamError(data.get("message") or fallback_message)
        return data
