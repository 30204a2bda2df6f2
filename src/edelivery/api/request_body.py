"""JSON request body helpers."""

from __future__ import annotations

from typing import Any

from flask import request

from edelivery.app.errors import ValidationError


def json_object() -> dict[str, Any]:
    """Return the request body as a JSON object.

    Raises
    ------
    ValidationError
        The body is missing, not JSON, or not an object.

    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        msg = "request body must be a JSON object"
        raise ValidationError(msg)
    return payload


def optional_string(payload: dict[str, Any], *keys: str) -> str | None:
    """First non-empty value among *keys*, as a string.

    Accepts alternative spellings (``orderId`` / ``order_id``).
    """
    for key in keys:
        value = payload.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            msg = f"{key} must be a string"
            raise ValidationError(msg)
        return str(value)
    return None
