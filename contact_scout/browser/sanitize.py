"""Secret masking for log output"""

import re
from typing import Any, Dict, List, Union


REDACTED = "***REDACTED***"

_SECRET_PATTERNS = [
    # Google API keys
    (re.compile(r"AIza[0-9A-Za-z_\-]{35}"), REDACTED),
    # key=... in request URLs
    (re.compile(r"([?&]key=)[^&\s\"']+", re.IGNORECASE), r"\1" + REDACTED),
    # Authorization headers
    (re.compile(r"(bearer\s+)[a-zA-Z0-9_\-\.=]+", re.IGNORECASE), r"\1" + REDACTED),
    # api_key: xxx / token=xxx
    (re.compile(r"((?:api[_-]?key|token|secret)[\"']?\s*[:=]\s*[\"']?)[a-zA-Z0-9_\-\.]{8,}", re.IGNORECASE),
     r"\1" + REDACTED),
]

_SENSITIVE_KEYS = {"apikey", "key", "token", "secret", "password", "authorization"}


def mask_api_key(key: str) -> str:
    """Display form of an API key: first 10 chars + '...' + last 4"""
    if not key:
        return ""
    if len(key) <= 14:
        return key[:4] + "..."
    return key[:10] + "..." + key[-4:]


def mask_secrets(data: Union[str, Dict[str, Any], List[Any]]) -> Union[str, Dict[str, Any], List[Any]]:
    """
    Mask API keys and tokens in strings, dicts, or lists

    Args:
        data: Value that may be logged

    Returns:
        Same shape with secrets replaced by ***REDACTED***
    """
    if isinstance(data, str):
        sanitized = data
        for pattern, replacement in _SECRET_PATTERNS:
            sanitized = pattern.sub(replacement, sanitized)
        return sanitized
    if isinstance(data, dict):
        result = {}
        for k, v in data.items():
            normalized = str(k).lower().replace("_", "").replace("-", "")
            if normalized in _SENSITIVE_KEYS or normalized.endswith("apikey"):
                result[k] = REDACTED
            else:
                result[k] = mask_secrets(v)
        return result
    if isinstance(data, list):
        return [mask_secrets(item) for item in data]
    return data
