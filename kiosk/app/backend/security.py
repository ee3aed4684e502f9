"""API key checks for the kiosk HTTP surface."""
from __future__ import annotations

import hmac
from typing import Optional

API_KEY_HEADER = "x-api-key"

_OPEN_PATHS = {"/health", "/events", "/favicon.ico"}
_OPEN_PREFIXES = ("/public/", "/ws/")


def is_public_path(path: str) -> bool:
    """Paths that monitors reach through EventSource, WebSocket and <img> tags."""

    return path in _OPEN_PATHS or path.startswith(_OPEN_PREFIXES)


def api_key_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


__all__ = ["API_KEY_HEADER", "api_key_matches", "is_public_path"]
