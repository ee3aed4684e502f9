"""Session orchestration for the outfit kiosk."""
from __future__ import annotations

import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from .backend.mailer import MandrillMailer
from .catalog import OutfitCatalog
from .config import Settings, get_settings
from .errors import DeliveryFailed, SessionGone, SessionNotFound, ValidationError
from .events import EventBroadcaster
from .imaging import compose_snapshot, resize_preview
from .session_store import Clock, SessionStore
from .state import Gender, Session, SessionStatus, SessionTerminated, UploadSource

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send(self, address: str, image: bytes, session_id: str) -> bool:
        ...

    async def aclose(self) -> None:
        ...


class KioskService:
    """Coordinates the session store, monitor broadcasts, imaging and email."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        catalog: Optional[OutfitCatalog] = None,
        mailer: Optional[Mailer] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog or OutfitCatalog.from_directory(self.settings.outfits_dir)
        self.store = SessionStore(
            self.catalog,
            ttl_ms=self.settings.session_ttl_ms,
            retention_ms=self.settings.terminated_retention_ms,
            clock=clock,
        )
        self.broadcaster = EventBroadcaster(idle_interval=self.settings.idle_interval_seconds)
        self.mailer: Mailer = mailer or MandrillMailer(self.settings)
        self.store.add_listener(self._handle_session_terminated)
        self._background_tasks: list[asyncio.Task[Any]] = []

    async def start(self) -> None:
        logger.info("Starting kiosk service")
        self.broadcaster.start()
        self._background_tasks.append(asyncio.create_task(self._sweep_loop(), name="session-sweep"))

    async def stop(self) -> None:
        logger.info("Stopping kiosk service")
        for task in self._background_tasks:
            task.cancel()
        for task in self._background_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._background_tasks.clear()
        self.store.close()
        await self.broadcaster.stop()
        await self.mailer.aclose()

    async def create_session(
        self,
        gender: Optional[str],
        photo: Optional[bytes],
        source: Optional[str] = None,
    ) -> Session:
        parsed_gender = self._parse_gender(gender)
        parsed_source = self._parse_source(source)
        if not photo:
            raise ValidationError("Photo is required")
        if len(photo) > self.settings.max_photo_bytes:
            raise ValidationError("Photo exceeds the upload size limit")
        try:
            preview = await asyncio.to_thread(resize_preview, photo)
        except ValueError as exc:
            raise ValidationError("Photo buffer is empty or invalid", log_message=str(exc)) from exc

        session = self.store.create(parsed_gender, photo, on_timeout=self._handle_timeout, source=parsed_source)
        self.broadcaster.publish_session(
            session_id=session.id,
            gender=session.gender,
            outfits=session.selected_outfits,
            user_photo_token="data:image/jpeg;base64," + base64.b64encode(preview).decode("ascii"),
            source=session.source,
        )
        return session

    async def send_email(self, session_id: str, email: Optional[str]) -> None:
        if not email or "@" not in email:
            raise ValidationError("Valid email is required")

        session = self._require_active(session_id, distinguish_gone=True)
        # Keep references: a timer firing during the awaits below purges the session object.
        photo, outfits = session.user_photo, session.selected_outfits
        rotate = self.settings.rotate_user_photo and session.source is not UploadSource.MANUAL

        snapshot = await asyncio.to_thread(
            compose_snapshot,
            photo,
            outfits,
            self.settings.outfits_dir,
            rotate=rotate,
        )
        if not await self.mailer.send(email, snapshot, session_id):
            raise DeliveryFailed("Failed to send email")

        if not self.store.complete(session_id):
            logger.info("Session %s ended while its email was in flight", session_id)

    async def skip_session(self, session_id: str) -> None:
        self._require_active(session_id, distinguish_gone=False)
        self.store.complete(session_id)

    def outfits(self) -> Dict[str, Any]:
        return {
            "files": self.catalog.list_all(),
            "randomOutfits": self.catalog.pick_idle_set().to_dict(),
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "activeSessions": self.store.active_count(),
            "subscribers": self.broadcaster.subscriber_count,
        }

    def _require_active(self, session_id: str, *, distinguish_gone: bool) -> Session:
        session = self.store.get(session_id)
        if session is not None:
            return session
        if distinguish_gone and self.store.status(session_id) is SessionStatus.TERMINATED:
            raise SessionGone("Session expired or already used")
        raise SessionNotFound("Session not found" if distinguish_gone else "Session not found or has expired")

    @staticmethod
    def _parse_gender(value: Optional[str]) -> Gender:
        try:
            return Gender(value)
        except ValueError:
            raise ValidationError("Invalid gender. Must be male, female, or neutral") from None

    @staticmethod
    def _parse_source(value: Optional[str]) -> Optional[UploadSource]:
        if not value:
            return None
        try:
            return UploadSource(value)
        except ValueError:
            raise ValidationError("Invalid source. Must be mobile or manual") from None

    def _handle_timeout(self, session_id: str) -> None:
        logger.info("Session %s timed out", session_id)

    def _handle_session_terminated(self, event: SessionTerminated) -> None:
        self.broadcaster.return_to_idle(timed_out=event.reason.is_expiry)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                self.store.sweep()
            except Exception:  # pragma: no cover
                logger.exception("Session sweep failed")


__all__ = ["KioskService", "Mailer"]
