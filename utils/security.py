import re


def redact_secrets(text: str) -> str:
    """Redact credentials from log lines and upstream error strings."""
    if not isinstance(text, str):
        return text

    redacted = text

    # Query params like token= (Apify), api_key=, key=, secret=
    redacted = re.sub(r"(?i)(api[_-]?key|key|token|secret)=([^&\s]+)", r"\1=***REDACTED***", redacted)

    # Authorization: Bearer <token>
    redacted = re.sub(r"(?i)Bearer\s+[A-Za-z0-9._\-]+", "Bearer ***REDACTED***", redacted)

    # Affiliate API signed header
    redacted = re.sub(r"(?i)(Credential|Signature)=([^,\s]+)", r"\1=***REDACTED***", redacted)

    # Basic auth used by the OAuth token exchange
    redacted = re.sub(r"(?i)Basic\s+[A-Za-z0-9+/=]+", "Basic ***REDACTED***", redacted)

    return redacted


def is_configured_key(value) -> bool:
    """Return True if an env var-like key is configured (not empty or placeholder)."""
    if not value:
        return False
    s = str(value).strip()
    if not s:
        return False
    return ("YOUR_" not in s) and ("your_" not in s)
