"""Pub/sub relay between the session lifecycle and monitor displays."""
from __future__ import annotations

import asyncio
import enum
import logging
from asyncio import QueueEmpty
from typing import AsyncIterator, List, Optional

from .state import Gender, OutfitSelection, SessionEvent, UploadSource

logger = logging.getLogger(__name__)

DEFAULT_IDLE_INTERVAL_SECONDS = 10.0
DEFAULT_QUEUE_SIZE = 16


class BroadcastMode(str, enum.Enum):
    IDLE = "idle"
    SESSION = "session"


class EventBroadcaster:
    """Fans lifecycle events out to every subscriber and runs the idle heartbeat.

    Subscribers only see events published after they register; there is no
    replay. While in idle mode a single ticker task publishes an ``idle`` event
    every ``idle_interval`` seconds. ``publish`` never awaits, so it is safe to
    call from timer callbacks on the event loop.
    """

    def __init__(
        self,
        *,
        idle_interval: float = DEFAULT_IDLE_INTERVAL_SECONDS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.idle_interval = idle_interval
        self.queue_size = queue_size
        self._subscribers: List[asyncio.Queue[SessionEvent]] = []
        self._idle_task: Optional[asyncio.Task[None]] = None
        self._mode = BroadcastMode.IDLE
        self._stopped = False

    @property
    def mode(self) -> BroadcastMode:
        return self._mode

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def idle_ticker_running(self) -> bool:
        return self._idle_task is not None and not self._idle_task.done()

    def start(self) -> None:
        self._stopped = False
        self.start_idle()

    async def stop(self) -> None:
        self._stopped = True
        task = self._idle_task
        self.stop_idle()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def register(self) -> asyncio.Queue[SessionEvent]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.append(queue)
        return queue

    def unregister(self, queue: asyncio.Queue[SessionEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def subscribe(self) -> AsyncIterator[SessionEvent]:
        queue = self.register()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unregister(queue)

    def publish(self, event: SessionEvent) -> None:
        logger.debug("Broadcasting %s event to %d subscribers", event.type.value, len(self._subscribers))
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except QueueEmpty:
                    pass
            queue.put_nowait(event)

    def publish_session(
        self,
        *,
        session_id: str,
        gender: Gender,
        outfits: OutfitSelection,
        user_photo_token: str,
        source: Optional[UploadSource] = None,
    ) -> None:
        self.stop_idle()
        self._mode = BroadcastMode.SESSION
        self.publish(
            SessionEvent.session_active(
                session_id=session_id,
                gender=gender,
                outfits=outfits,
                user_photo_token=user_photo_token,
                source=source,
            )
        )

    def return_to_idle(self, *, timed_out: bool = False) -> None:
        if timed_out:
            self.publish(SessionEvent.timeout())
        self.start_idle()

    def start_idle(self) -> None:
        """Publish ``idle`` now and restart the periodic ticker from zero.

        A stopped broadcaster only records the mode change.
        """

        self.stop_idle()
        self._mode = BroadcastMode.IDLE
        if self._stopped:
            return
        self.publish(SessionEvent.idle())
        self._idle_task = asyncio.get_running_loop().create_task(self._idle_loop(), name="idle-ticker")

    def stop_idle(self) -> None:
        if self._idle_task is not None:
            self._idle_task.cancel()
            self._idle_task = None

    async def _idle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.idle_interval)
            try:
                self.publish(SessionEvent.idle())
            except Exception:  # pragma: no cover
                logger.exception("Idle tick failed")


__all__ = ["BroadcastMode", "EventBroadcaster"]
