"""
Status/health helpers for the miner.

The payload is meant for API/UI consumption and never contains credential
values, only whether each integration is configured.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from miner.models import HealthStatus
from miner.pipeline import MiningPipeline
from miner.settings import MinerSettings


def _health_to_dict(status: HealthStatus) -> Dict[str, Any]:
    return {
        "name": status.name,
        "healthy": status.healthy,
        "last_error": status.last_error,
        "last_success": status.last_success.isoformat() if status.last_success else None,
        "items_last_fetch": status.items_last_fetch,
        "latency_ms": status.latency_ms,
        "extra": status.extra,
    }


def build_status(pipeline: MiningPipeline, settings: MinerSettings) -> Dict[str, Any]:
    health = [_health_to_dict(entry) for entry in pipeline.get_health()]
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "pipeline": {
            "health": health,
            "adapter_count": len(health),
            "default_sources": sorted(name for name, on in pipeline.default_flags.items() if on),
        },
        "integrations": settings.integrations(),
        "config": {
            "adapter_timeout": settings.adapter_timeout,
            "http_timeout": settings.http_timeout,
            "poll_interval": settings.poll_interval,
            "poll_budget": settings.poll_budget,
        },
    }
