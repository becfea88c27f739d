"""Configuration helpers for the studio booking bot."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    verify_token: str
    api_key: str
    database_path: Path
    whatsapp_token: Optional[str] = None
    phone_number_id: Optional[str] = None
    app_secret: Optional[str] = None
    graph_api_version: str = "v20.0"
    timezone: str = "Europe/Warsaw"
    contact_url: str = "https://agnieszkapilatesklasyczny.pl/"
    send_max_attempts: int = 3
    send_backoff_seconds: float = 0.5
    instructor_template_name: Optional[str] = None
    template_language: str = "pl"

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_token and self.phone_number_id)


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    db_path = Path(os.getenv("DATABASE_PATH", "studio_bot.db")).expanduser()

    verify_token = os.getenv("WHATSAPP_VERIFY_TOKEN")
    api_key = os.getenv("API_KEY")

    if not verify_token:
        raise RuntimeError("WHATSAPP_VERIFY_TOKEN must be configured")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    return Settings(
        verify_token=verify_token,
        api_key=api_key,
        database_path=db_path,
        whatsapp_token=os.getenv("WHATSAPP_TOKEN") or None,
        phone_number_id=os.getenv("WHATSAPP_PHONE_NUMBER_ID") or None,
        app_secret=os.getenv("WHATSAPP_APP_SECRET") or None,
        graph_api_version=os.getenv("GRAPH_API_VERSION", "v20.0"),
        timezone=os.getenv("STUDIO_TIMEZONE", "Europe/Warsaw"),
        contact_url=os.getenv("STUDIO_CONTACT_URL", "https://agnieszkapilatesklasyczny.pl/"),
        send_max_attempts=int(os.getenv("SEND_MAX_ATTEMPTS", "3")),
        send_backoff_seconds=float(os.getenv("SEND_BACKOFF_SECONDS", "0.5")),
        instructor_template_name=os.getenv("INSTRUCTOR_TEMPLATE_NAME") or None,
        template_language=os.getenv("TEMPLATE_LANGUAGE", "pl"),
    )


__all__ = ["Settings", "load_settings"]
