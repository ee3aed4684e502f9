"""Snapshot email delivery through the Mandrill HTTP API."""
from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

EMAIL_BODY = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <p>Your remix is ready. This is YOUR Superstar look! Drop it on your feed.</p>
  <p>Tag #SuperstarPrimer and enter the challenge to win tickets to Primer Festival.</p>
  <p>Ready to join?</p>
</div>
"""

_DELIVERED = {"sent", "queued"}


def mask_address(address: str) -> str:
    local, _, domain = address.partition("@")
    return f"{local[:1]}***@{domain}"


class MandrillMailer:
    """Thin wrapper around Mandrill's `/messages/send` endpoint."""

    def __init__(self, settings: Settings, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.mandrill_api_url,
            timeout=settings.email_timeout_seconds,
        )

    def build_message(self, address: str, image: bytes, session_id: str) -> Dict[str, Any]:
        return {
            "key": self.settings.mandrill_api_key,
            "message": {
                "html": EMAIL_BODY,
                "subject": self.settings.email_subject,
                "from_email": self.settings.email_from,
                "to": [{"email": address, "type": "to"}],
                "attachments": [
                    {
                        "type": "image/png",
                        "name": f"adidas-superstar-snapshot-{session_id}.png",
                        "content": base64.b64encode(image).decode("ascii"),
                    }
                ],
            },
        }

    async def send(self, address: str, image: bytes, session_id: str) -> bool:
        """Return True once Mandrill accepts the message; never raises for delivery problems."""

        if not self.settings.mandrill_api_key:
            logger.error("Mandrill API key not configured; cannot email session %s", session_id)
            return False

        try:
            resp = await self._client.post("/messages/send", json=self.build_message(address, image, session_id))
            resp.raise_for_status()
            results = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Snapshot email for session %s failed: %s", session_id, exc)
            return False

        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            logger.error("Unexpected Mandrill response for session %s: %s", session_id, results)
            return False
        status = results[0].get("status")
        if status not in _DELIVERED:
            logger.warning(
                "Mandrill refused snapshot email to %s status=%s reason=%s",
                mask_address(address),
                status,
                results[0].get("reject_reason"),
            )
            return False

        logger.info("Snapshot email for session %s sent to %s", session_id, mask_address(address))
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["MandrillMailer", "mask_address"]
