"""Token redaction for debug dumps.

Request and response payloads written by the HTTP store's debug dump pass
through :func:`redact` first.  The bearer token is never present in the
output: values under sensitive keys are masked and any occurrence of the
token inside other strings is replaced.
"""

from __future__ import annotations

import copy
import re
from typing import Any

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "authorization",
    "cookie",
    "api_key",
})

# Serialized bloc content can be large; dumps keep the head only.
_MAX_STRING_LENGTH = 2000


def _mask_token(value: str, token: str | None) -> str:
    if token and token in value:
        suffix = token[-4:] if len(token) >= 4 else "****"
        placeholder = f"<redacted:...{suffix}>"
        if token in placeholder:
            placeholder = "<redacted>"
        value = value.replace(token, placeholder)
    return re.sub(r"(Bearer\s+)\S+", lambda m: f"{m.group(1)}<redacted>", value)


def _redact_value(value: Any, token: str | None) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, token)
    if isinstance(value, list):
        return [_redact_value(item, token) for item in value]
    if isinstance(value, str):
        if token:
            value = _mask_token(value, token)
        if len(value) > _MAX_STRING_LENGTH:
            return f"{value[:_MAX_STRING_LENGTH]}<truncated:{len(value)}_chars>"
        return value
    return value


def _redact_dict(d: dict, token: str | None) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            result[key] = _mask_token(value, token) if isinstance(value, str) else "<redacted>"
        else:
            result[key] = _redact_value(value, token)
    return result


def redact(payload: dict, token: str | None = None) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize (a request body or a set of headers).
    token:
        The store token.  Any occurrence of this exact string anywhere in
        the payload is replaced.

    Returns
    -------
    dict
        A new dictionary; *payload* is never mutated.

    Examples
    --------
    >>> redact({"Authorization": "Bearer abc123"})
    {'Authorization': 'Bearer <redacted>'}
    """
    return _redact_dict(copy.deepcopy(payload), token)
