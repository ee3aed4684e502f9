"""Central configuration for the outfit kiosk backend."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = ROOT_DIR / ".env"


class Settings(BaseSettings):
    """Environment-driven settings for the kiosk backend."""

    host: str = Field("0.0.0.0", description="Host interface for the FastAPI server")
    port: int = Field(3001, description="Port for the FastAPI server")
    log_level: str = Field("INFO", description="Logging level for the backend")
    access_log: bool = Field(False, description="Emit uvicorn per-request access lines")

    public_dir: Path = Field(ROOT_DIR / "public", description="Directory served under /public")
    outfits_dir: Path = Field(ROOT_DIR / "public" / "outfits", description="Outfit artwork and logos")

    session_ttl_ms: int = Field(90_000, description="Fixed lifetime of a visitor session")
    terminated_retention_ms: int = Field(
        3_600_000, description="How long ended session ids are remembered to answer 410 instead of 404"
    )
    idle_interval_seconds: float = Field(10.0, description="Period of idle heartbeats sent to monitors")
    sweep_interval_seconds: float = Field(30.0, description="Period of the expired-session sweep")
    keepalive_seconds: float = Field(15.0, description="Silence after which push channels send a keepalive")
    max_photo_bytes: int = Field(10 * 1024 * 1024, description="Upper bound for uploaded visitor photos")
    rotate_user_photo: bool = Field(True, description="Rotate mobile uploads upright in the emailed snapshot")

    api_key: Optional[str] = Field(None, description="Shared key required in x-api-key; unset disables the check")

    mandrill_api_key: Optional[str] = Field(None, description="Mandrill API key used for snapshot emails")
    mandrill_api_url: str = Field("https://mandrillapp.com/api/1.0", description="Mandrill REST base URL")
    email_from: str = Field("noreply@superstarprimer.com", description="Sender address for snapshot emails")
    email_subject: str = Field("Your Superstar Look is Here.", description="Subject line for snapshot emails")
    email_timeout_seconds: float = Field(60.0, description="Timeout for a single email dispatch")

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
