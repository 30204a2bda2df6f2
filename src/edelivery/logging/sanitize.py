"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts credentials (API
secrets, bearer tokens, passwords) and the signature part of signed
download URLs before data is written to log files.
"""

from __future__ import annotations

import re
from typing import Any

# Dict keys whose values are always credentials
_SECRET_KEYS = frozenset(
    {
        "api_key",
        "api_secret",
        "apisecret",
        "access_token",
        "accesstoken",
        "authorization",
        "password",
        "secret_access_key",
        "token",
        "token_secret",
    }
)

# Query string of an http(s) URL; signed URLs carry their signature there
_URL_QUERY_RE = re.compile(r"(https?://[^\s?#]+)\?[^\s#]*")

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE)

REDACTED = "[REDACTED]"


def sanitize_url(url: str) -> str:
    """Drop the query string of every URL in *url*.

    Keeps scheme, host and path so the object being served is still
    visible in the log.
    """
    return _URL_QUERY_RE.sub(rf"\1?{REDACTED}", url)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Handles dicts (credential keys are redacted), lists, tuples and
    plain strings (bearer tokens and URL query strings are redacted).
    Non-sensitive data passes through unchanged.
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if str(k).lower() in _SECRET_KEYS else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str):
        return sanitize_url(_BEARER_RE.sub(rf"\1{REDACTED}", data))

    return data
