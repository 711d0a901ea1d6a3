"""
Centralised settings for the miner (env-first, read once at the edge and
passed down as constructor arguments).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from utils.config import get_float_env, get_int_env, get_str_env
from utils.security import is_configured_key

logger = logging.getLogger(__name__)

DEFAULT_AFFILIATE_ENDPOINT = "https://open-api.affiliate.shopee.com.br/graphql"
DEFAULT_AI_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"


@dataclass
class MinerSettings:
    shopee_app_id: str = ""
    shopee_app_secret: str = ""
    shopee_affiliate_endpoint: str = DEFAULT_AFFILIATE_ENDPOINT
    firecrawl_api_key: str = ""
    apify_api_token: str = ""
    ai_gateway_api_key: str = ""
    ai_gateway_url: str = DEFAULT_AI_GATEWAY_URL
    xskill_api_key: str = ""
    pinterest_client_id: str = ""
    pinterest_client_secret: str = ""
    pinterest_redirect_uri: str = ""
    access_pin: str = ""
    adapter_timeout: float = 15.0
    http_timeout: float = 20.0
    poll_interval: float = 5.0
    poll_budget: float = 180.0

    @property
    def affiliate_configured(self) -> bool:
        return is_configured_key(self.shopee_app_id) and is_configured_key(self.shopee_app_secret)

    def integrations(self) -> Dict[str, bool]:
        """Which external integrations have credentials (never the values)."""
        return {
            "shopee_affiliate": self.affiliate_configured,
            "firecrawl": is_configured_key(self.firecrawl_api_key),
            "apify": is_configured_key(self.apify_api_token),
            "ai_gateway": is_configured_key(self.ai_gateway_api_key),
            "seedance": is_configured_key(self.xskill_api_key),
            "pinterest": is_configured_key(self.pinterest_client_id)
            and is_configured_key(self.pinterest_client_secret),
            "access_pin": bool(self.access_pin),
        }


def load_settings() -> MinerSettings:
    settings = MinerSettings(
        shopee_app_id=get_str_env("SHOPEE_APP_ID"),
        shopee_app_secret=get_str_env("SHOPEE_APP_SECRET"),
        shopee_affiliate_endpoint=get_str_env("SHOPEE_AFFILIATE_ENDPOINT", DEFAULT_AFFILIATE_ENDPOINT),
        firecrawl_api_key=get_str_env("FIRECRAWL_API_KEY"),
        apify_api_token=get_str_env("APIFY_API_TOKEN"),
        ai_gateway_api_key=get_str_env("AI_GATEWAY_API_KEY"),
        ai_gateway_url=get_str_env("AI_GATEWAY_URL", DEFAULT_AI_GATEWAY_URL),
        xskill_api_key=get_str_env("XSKILL_API_KEY"),
        pinterest_client_id=get_str_env("PINTEREST_CLIENT_ID"),
        pinterest_client_secret=get_str_env("PINTEREST_CLIENT_SECRET"),
        pinterest_redirect_uri=get_str_env("PINTEREST_REDIRECT_URI"),
        access_pin=get_str_env("APP_ACCESS_PIN"),
        adapter_timeout=get_float_env("MINER_ADAPTER_TIMEOUT", 15.0),
        http_timeout=get_float_env("MINER_HTTP_TIMEOUT", 20.0),
        poll_interval=get_float_env("MINER_POLL_INTERVAL", 5.0),
        poll_budget=float(get_int_env("MINER_POLL_BUDGET", 180)),
    )
    missing = [name for name, ready in settings.integrations().items() if not ready and name != "access_pin"]
    if missing:
        logger.info("Integrations without credentials: %s", ", ".join(missing))
    return settings
