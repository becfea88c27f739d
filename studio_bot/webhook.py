"""Parsing and verification of WhatsApp webhook deliveries."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterator
from typing import Any, Dict, Optional

from .models import DeliveryStatus, InboundMessage

SIGNATURE_HEADER = "x-hub-signature-256"


def verify_signature(secret: str, body: bytes, header: Optional[str]) -> bool:
    """Check a ``sha256=<hex>`` HMAC of the raw request body."""

    if not header:
        return False
    prefix, _, received = header.partition("=")
    if prefix != "sha256" or not received:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(received.lower(), expected)


def _objects(value: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                yield item


def _values(payload: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    for entry in _objects(payload.get("entry")):
        for change in _objects(entry.get("changes")):
            value = change.get("value")
            if isinstance(value, dict):
                yield value


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _object(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_message(raw: Dict[str, Any]) -> Optional[InboundMessage]:
    """Map one provider message to an InboundMessage; malformed parts are left empty."""

    provider_uid = raw.get("id")
    sender = raw.get("from")
    if not provider_uid or not sender:
        return None

    message_type = str(raw.get("type") or "unknown")
    message = InboundMessage(
        provider_uid=str(provider_uid),
        sender=str(sender),
        kind=message_type,
        timestamp=_to_int(raw.get("timestamp")),
        payload=raw,
    )

    if message_type == "text":
        body = _object(raw.get("text")).get("body")
        message.text = body if isinstance(body, str) else None
    elif message_type == "interactive":
        interactive = _object(raw.get("interactive"))
        reply_kind = interactive.get("type")
        reply = _object(interactive.get(reply_kind)) if reply_kind in ("button_reply", "list_reply") else {}
        if reply.get("id"):
            message.kind = reply_kind
            message.reply_id = str(reply["id"])
            message.reply_title = reply.get("title")
    elif message_type == "button":
        # Quick-reply button on a template message.
        button = _object(raw.get("button"))
        if button.get("payload"):
            message.kind = "button_reply"
            message.reply_id = str(button["payload"])
            message.reply_title = button.get("text")
    return message


def extract_messages(payload: Dict[str, Any]) -> Iterator[InboundMessage]:
    for value in _values(payload):
        for raw in _objects(value.get("messages")):
            message = parse_message(raw)
            if message is not None:
                yield message


def extract_statuses(payload: Dict[str, Any]) -> Iterator[DeliveryStatus]:
    for value in _values(payload):
        for raw in _objects(value.get("statuses")):
            if not raw.get("id") or not raw.get("status"):
                continue
            yield DeliveryStatus(
                message_id=str(raw["id"]),
                status=str(raw["status"]),
                recipient=raw.get("recipient_id"),
                timestamp=_to_int(raw.get("timestamp")),
            )


__all__ = [
    "SIGNATURE_HEADER",
    "verify_signature",
    "parse_message",
    "extract_messages",
    "extract_statuses",
]
