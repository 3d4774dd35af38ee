"""Redaction of credentials and personal data in debug logs.

Request tracing (``MapchConfig.trace_requests``) logs headers, query
parameters, JSON bodies, form fields and raw response text. Sign-up and
token refresh traffic carries passwords, Firebase id/refresh tokens and
email addresses, so everything goes through :func:`redact_for_log` first.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

# Compared lowercased with ``-`` and ``_`` removed.
_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "newpassword",
        "idtoken",
        "refreshtoken",
        "accesstoken",
        "token",
        "oobcode",
        "authorization",
        "cookie",
        "setcookie",
        "key",
    }
)
_EMAIL_KEYS: frozenset[str] = frozenset({"email", "mail"})

_EMAIL_RE = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")
# "idToken": "..." pairs inside raw (possibly truncated) JSON text.
_JSON_SECRET_RE = re.compile(
    r'("(?:password|idToken|id_token|refreshToken|refresh_token|access_token|oobCode)"\s*:\s*)"[^"]*"',
    re.IGNORECASE,
)


def _normalize_key(key: str) -> str:
    return key.lower().replace("-", "").replace("_", "")


def mask_email(value: str) -> str:
    """Keep the first character of the local part and the domain: ``u***@example.com``."""
    return _EMAIL_RE.sub(r"\1***@\2", value)


def redact_text(text: str, *, max_string: int = 512) -> str:
    """Scrub bearer tokens, JSON secret fields and emails from free text."""
    text = _JSON_SECRET_RE.sub(rf'\1"{REDACTED}"', text)
    text = _BEARER_RE.sub(rf"\1{REDACTED}", text)
    text = mask_email(text)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def _redact_field(key: str, value: Any, *, max_string: int, depth: int) -> Any:
    normalized = _normalize_key(key)
    if normalized in _SECRET_KEYS:
        return REDACTED
    if normalized in _EMAIL_KEYS and isinstance(value, str):
        return mask_email(value)
    return redact_for_log(value, max_string=max_string, _depth=depth + 1)


def _is_field_pair(value: Any) -> bool:
    return isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Mappings and ``(name, value)`` form pairs have secret fields replaced
    and email fields masked; strings are scrubbed with :func:`redact_text`;
    binary photo data is summarized by size.
    """
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        return redact_text(value, max_string=max_string)

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): _redact_field(str(k), v, max_string=max_string, depth=_depth) for k, v in value.items()
        }

    if isinstance(value, Sequence):
        if value and all(_is_field_pair(item) for item in value):
            return [(name, _redact_field(name, v, max_string=max_string, depth=_depth)) for name, v in value]
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
