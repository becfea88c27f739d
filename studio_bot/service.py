"""Core orchestration for inbound webhook payloads."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from . import reports
from .config import Settings
from .context import StudioClock, StudioContext
from .conversation import ConversationHandler
from .db import Database
from .directory import resolve_sender
from .engine import ReconciliationEngine
from .models import InboundMessage
from .notifications import InstructorNotifier
from .webhook import extract_messages, extract_statuses
from .whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)


class StudioBotService:
    """High-level service that processes webhook events and exposes query helpers."""

    def __init__(self, context: StudioContext) -> None:
        self.context = context
        self.database = context.database
        self.engine = ReconciliationEngine(context.database, context.clock, context.notifier)
        self.conversation = ConversationHandler(context, self.engine)

    # region Webhook processing
    async def handle_payload(self, payload: Dict[str, Any]) -> int:
        """Process one webhook delivery; return how many messages were acted on."""

        handled = 0
        for message in extract_messages(payload):
            try:
                if await self.process_message(message):
                    handled += 1
            except Exception:
                logger.exception("Dropping inbound message %s from %s", message.provider_uid, message.sender)

        for receipt in extract_statuses(payload):
            try:
                self.database.update_delivery_status(receipt.message_id, receipt.status)
            except Exception:
                logger.exception("Could not record status %s for %s", receipt.status, receipt.message_id)
        return handled

    async def process_message(self, message: InboundMessage) -> bool:
        sent_ts = (
            datetime.fromtimestamp(message.timestamp, tz=timezone.utc).isoformat()
            if message.timestamp is not None
            else None
        )
        inserted = self.database.record_inbound(
            {
                "source": "whatsapp",
                "provider_uid": message.provider_uid,
                "message_direction": "inbound",
                "message_type": message.kind,
                "from_wa_id": message.sender,
                "text_body": message.text or message.reply_title or "",
                "sent_ts": sent_ts,
                "payload_json": message.payload,
            }
        )
        if not inserted:
            logger.info("Skipping redelivered message %s", message.provider_uid)
            return False

        sender = resolve_sender(self.database, message.sender)
        await self.conversation.handle(message, sender)
        return True

    # endregion

    # region Query helpers
    def today(self) -> date:
        return self.context.clock.today()

    def get_roster(self, day: date, instructor_id: Optional[int] = None) -> List[Dict[str, Any]]:
        return reports.roster_for_day(self.database, day, instructor_id)

    def get_absences(self, day: date, days: int = 1) -> List[Dict[str, Any]]:
        return reports.absences_between(self.database, day, day + timedelta(days=days - 1))

    def get_open_slots(self) -> List[Dict[str, Any]]:
        return reports.open_slots(self.database, self.today())

    def get_credit_balance(self, phone: str) -> Optional[Dict[str, Any]]:
        return reports.credit_balance(self.database, phone)

    # endregion


def build_context(
    settings: Settings,
    *,
    clock: Optional[StudioClock] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StudioContext:
    database = Database(settings.database_path)
    messenger = WhatsAppClient(settings, database, transport=transport)
    notifier = InstructorNotifier(settings, database, messenger)
    return StudioContext(
        settings=settings,
        database=database,
        messenger=messenger,
        clock=clock or StudioClock(settings.timezone),
        notifier=notifier,
    )


__all__ = ["StudioBotService", "build_context"]
