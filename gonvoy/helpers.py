"""Helpers for reading context properties and building JSON replies."""

from __future__ import annotations

import json
import time
from typing import Any


def must_get_property(ctx: Any, name: str, default: str) -> str:
    """Return the named property from ``ctx``, or ``default`` if it is absent.

    Errors raised while reading the property propagate to the caller.
    """
    return ctx.get_property(name, default)


def new_minimal_json_response(code: str, message: str, *args: BaseException) -> bytes:
    """Build a minimal JSON body holding a code, message and error list."""
    body = {
        "code": code,
        "message": message,
        "errors": [str(err) for err in args],
        "data": {},
        "serverTime": time.time_ns() // 1_000_000,
    }
    return json.dumps(body, sort_keys=True, separators=(",", ":")).encode()