import logging
import os

logger = logging.getLogger(__name__)


def get_int_env(name: str, default: int) -> int:
    """Positive int from env; blanks, junk and non-positive values give the default."""
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int value for %s=%s; using default %s", name, raw, default)
        return default
    return value if value > 0 else default


def get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float value for %s=%s; using default %s", name, raw, default)
        return default
    return value if value > 0 else default


def get_str_env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()
