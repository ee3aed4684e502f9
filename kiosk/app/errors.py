"""Error taxonomy surfaced by the kiosk service to the HTTP layer."""
from __future__ import annotations

from typing import Optional


class KioskError(RuntimeError):
    """Base error carrying a message that is safe to show to the client."""

    status_code = 400

    def __init__(self, user_message: str, *, log_message: Optional[str] = None) -> None:
        super().__init__(log_message or user_message)
        self.user_message = user_message


class ValidationError(KioskError):
    """Raised before any state mutation when request input is rejected."""

    status_code = 400


class SessionNotFound(KioskError):
    status_code = 404


class SessionGone(KioskError):
    """The session existed but has already expired or been used."""

    status_code = 410


class DeliveryFailed(KioskError):
    """Snapshot composition or email dispatch failed; the session stays active."""

    status_code = 502


__all__ = ["KioskError", "ValidationError", "SessionNotFound", "SessionGone", "DeliveryFailed"]
