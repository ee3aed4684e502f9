"""Shared session and event definitions for the outfit kiosk."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"


class BodySlot(str, enum.Enum):
    """Body regions an outfit asset fills, in display order."""

    HEAD = "head"
    TOP = "top"
    BOTTOM = "bottom"
    SHOES = "shoes"
    LEFT = "left"
    RIGHT = "right"


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"
    UNKNOWN = "unknown"


class TerminationReason(str, enum.Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    EXPIRED_ON_READ = "expired_on_read"
    SWEPT = "swept"

    @property
    def is_expiry(self) -> bool:
        return self is not TerminationReason.COMPLETED


class UploadSource(str, enum.Enum):
    """Where the visitor photo came from; mobile uploads arrive rotated."""

    MOBILE = "mobile"
    MANUAL = "manual"


class SessionEventType(str, enum.Enum):
    IDLE = "idle"
    SESSION_ACTIVE = "session"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class OutfitSelection:
    """One asset filename per body slot, fixed for the lifetime of a session."""

    head: str
    top: str
    bottom: str
    shoes: str
    left: str
    right: str

    def __post_init__(self) -> None:
        for slot, value in asdict(self).items():
            if not value:
                raise ValueError(f"Outfit slot {slot!r} must not be empty")

    def get(self, slot: BodySlot) -> str:
        return getattr(self, slot.value)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class Session:
    """One kiosk visit. Only the session store mutates these fields."""

    id: str
    gender: Gender
    user_photo: Optional[bytes]
    selected_outfits: Optional[OutfitSelection]
    created_at: datetime
    expires_at: datetime
    source: Optional[UploadSource] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def purge(self) -> None:
        self.user_photo = None
        self.selected_outfits = None


@dataclass(frozen=True)
class SessionTerminated:
    """Domain event raised by the store after a session's first terminal transition."""

    session_id: str
    reason: TerminationReason


@dataclass
class SessionEvent:
    """Event payload distributed to monitor clients over SSE or WebSocket."""

    type: SessionEventType
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def idle(cls) -> "SessionEvent":
        return cls(type=SessionEventType.IDLE)

    @classmethod
    def timeout(cls) -> "SessionEvent":
        return cls(type=SessionEventType.TIMEOUT)

    @classmethod
    def session_active(
        cls,
        *,
        session_id: str,
        gender: Gender,
        outfits: OutfitSelection,
        user_photo_token: str,
        source: Optional[UploadSource] = None,
    ) -> "SessionEvent":
        data: Dict[str, Any] = {
            "sessionId": session_id,
            "gender": gender.value,
            "outfits": outfits.to_dict(),
            "userPhotoToken": user_photo_token,
        }
        if source is not None:
            data["source"] = source.value
        return cls(type=SessionEventType.SESSION_ACTIVE, data=data)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value}
        if self.data:
            payload["data"] = self.data
        return payload


__all__ = [
    "BodySlot",
    "Gender",
    "OutfitSelection",
    "Session",
    "SessionEvent",
    "SessionEventType",
    "SessionStatus",
    "SessionTerminated",
    "TerminationReason",
    "UploadSource",
]
