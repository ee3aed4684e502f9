"""Shared test fixtures."""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import cv2
import numpy as np
import pytest

from kiosk.app.catalog import OutfitCatalog
from kiosk.app.config import Settings
from kiosk.app.kiosk_service import KioskService


def encode_jpeg(width: int = 30, height: int = 40, value: int = 128) -> bytes:
    success, encoded = cv2.imencode(".jpg", np.full((height, width, 3), value, dtype=np.uint8))
    assert success
    return encoded.tobytes()


OUTFIT_FILES = {
    "female_head": ["female_head_1.png", "female_head_2.png"],
    "female_top": ["female_top_1.png", "female_top_2.png", "female_top_3.png"],
    "female_bottom": ["female_bottom_1.png"],
    "female_shoes": ["female_shoes_1.png", "female_shoes_2.png"],
    "female_left": ["female_left_1.png"],
    "female_right": ["female_right_1.png"],
    "male_top": ["male_top_1.png"],
}


@dataclass
class FakeClock:
    """Manually advanced UTC clock."""

    now: datetime = field(default_factory=lambda: datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakeMailer:
    """Mailer double that records deliveries."""

    succeed: bool = True
    sent: list[tuple[str, bytes, str]] = field(default_factory=list)
    closed: bool = False

    async def send(self, address: str, image: bytes, session_id: str) -> bool:
        self.sent.append((address, image, session_id))
        return self.succeed

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def photo() -> bytes:
    return encode_jpeg()


@pytest.fixture
def catalog() -> OutfitCatalog:
    return OutfitCatalog(OUTFIT_FILES, rng=random.Random(7))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        public_dir=tmp_path / "public",
        outfits_dir=tmp_path / "public" / "outfits",
        mandrill_api_key="test-key",
    )


@pytest.fixture
def service(settings: Settings, catalog: OutfitCatalog, mailer: FakeMailer) -> KioskService:
    return KioskService(settings=settings, catalog=catalog, mailer=mailer)
