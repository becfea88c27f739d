"""Explicitly constructed dependencies shared by the engine and the conversation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional
from zoneinfo import ZoneInfo

from .config import Settings
from .db import Database

if TYPE_CHECKING:
    from .notifications import InstructorNotifier
    from .whatsapp_client import WhatsAppClient


class StudioClock:
    """Wall clock in the studio's local time zone."""

    def __init__(self, timezone: str = "Europe/Warsaw") -> None:
        self._zone = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._zone)

    def today(self) -> date:
        return self.now().date()


@dataclass(slots=True)
class StudioContext:
    settings: Settings
    database: Database
    messenger: "WhatsAppClient"
    clock: StudioClock
    notifier: Optional["InstructorNotifier"] = None


__all__ = ["StudioClock", "StudioContext"]
