import re
from urllib.parse import urlsplit, urlunsplit


def normalize_url(url: str) -> str:
    """Drop query and fragment; keep scheme/host/path."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def clip(text: str, n: int = 100) -> str:
    return (text or "").strip()[:n]


def strip_site_suffix(title: str, site: str = "Shopee") -> str:
    """'Fone Bluetooth | Shopee Brasil' -> 'Fone Bluetooth'."""
    cleaned = re.sub(rf"\s*\|\s*{site}\s*Brasil.*$", "", title or "", flags=re.IGNORECASE)
    cleaned = re.sub(rf"\s*-\s*{site}.*$", "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()
