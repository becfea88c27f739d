"""Post-commit instructor notifications for newly reported absences."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import messages
from .config import Settings
from .db import Database
from .models import AbsenceReported
from .whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)


class InstructorNotifier:
    """Queue of absence events delivered to instructors outside any transaction.

    A failed delivery is logged and dropped; it never affects the absence itself.
    """

    def __init__(self, settings: Settings, database: Database, messenger: WhatsAppClient) -> None:
        self.settings = settings
        self.database = database
        self.messenger = messenger
        self._queue: asyncio.Queue[AbsenceReported] = asyncio.Queue()

    def publish(self, event: AbsenceReported) -> None:
        self._queue.put_nowait(event)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self) -> None:  # pragma: no cover - long-running consumer
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def drain(self) -> int:
        """Deliver every queued event now; return how many were processed."""

        processed = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()
            processed += 1
        return processed

    async def _deliver(self, event: AbsenceReported) -> None:
        try:
            await self._notify(event)
        except Exception:
            logger.exception("Instructor notification for absence %s failed", event.absence_id)

    async def _notify(self, event: AbsenceReported) -> Optional[bool]:
        if event.instructor_id is None:
            return None
        instructor = self.database.get_instructor(event.instructor_id)
        if instructor is None:
            return None
        to = instructor["phone_e164"] or instructor["phone_raw"]
        if not to:
            logger.info("Instructor %s has no phone; skipping notification", event.instructor_id)
            return None

        day = event.session_date.strftime("%d/%m")
        if self.settings.instructor_template_name:
            result = await self.messenger.send_template(
                to,
                self.settings.instructor_template_name,
                self.settings.template_language,
                [event.member_name, day, event.start_time, event.group_name],
            )
        else:
            result = await self.messenger.send_text(
                to,
                messages.INSTRUCTOR_ABSENCE_NOTICE.format(
                    name=event.member_name, day=day, time=event.start_time, group=event.group_name
                ),
            )
        if not result.ok:
            logger.warning(
                "Instructor notification for absence %s not delivered: %s",
                event.absence_id,
                result.reason,
            )
        return result.ok


__all__ = ["InstructorNotifier"]
