"""Utility functions for the video miner web app."""
from __future__ import annotations

import asyncio
import hmac
import logging
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional, TypeVar

logger = logging.getLogger("videominer")

T = TypeVar("T")


def get_env(name: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """Get environment variable with optional validation.

    Args:
        name: Environment variable name.
        default: Default value if variable is not set.
        required: Whether the variable is required.

    Returns:
        The environment variable value or default.
    """
    env_value = os.getenv(name, default)
    if required and (not env_value or env_value.startswith("YOUR_")):
        logger.warning("Environment variable %s missing; the matching feature is disabled", name)
        return None
    return env_value


def get_current_timestamp() -> str:
    """Get current UTC timestamp in ISO format.

    Returns:
        ISO formatted timestamp string.
    """
    return datetime.now(timezone.utc).isoformat()


def run_async(coro: Awaitable[T]) -> T:
    """Drive a coroutine to completion from a synchronous Flask view."""
    return asyncio.run(coro)  # type: ignore[arg-type]


def pin_matches(expected: Optional[str], supplied: Optional[Any]) -> bool:
    """True when no PIN is configured or the supplied one matches."""
    if not expected:
        return True
    if not supplied:
        return False
    return hmac.compare_digest(str(expected), str(supplied))
