"""HTTP client for the WhatsApp Cloud API (Graph API messages endpoint)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .config import Settings
from .db import Database
from .models import SendResult

GRAPH_API_BASE = "https://graph.facebook.com"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

# Provider limits for interactive messages.
ROW_TITLE_LIMIT = 24
ROW_DESCRIPTION_LIMIT = 72
SECTION_TITLE_LIMIT = 24
BUTTON_TITLE_LIMIT = 20
HEADER_LIMIT = 60

logger = logging.getLogger(__name__)


class WhatsAppApiError(RuntimeError):
    """Raised when a Graph API call fails."""

    def __init__(
        self, reason: str, *, retryable: bool = False, retry_after: Optional[float] = None
    ) -> None:
        super().__init__(f"WhatsApp API error: {reason}")
        self.reason = reason
        self.retryable = retryable
        self.retry_after = retry_after


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class WhatsAppClient:
    """Async sender for text, list, button and template messages.

    Every attempt, successful or not, is written to ``outbound_messages``.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._database = database
        self._sleep = sleep
        headers = {"Content-Type": "application/json"}
        if settings.whatsapp_token:
            headers["Authorization"] = f"Bearer {settings.whatsapp_token}"
        self._client = httpx.AsyncClient(
            base_url=f"{GRAPH_API_BASE}/{settings.graph_api_version}",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send_text(self, to: str, body: str, *, user_id: Optional[int] = None) -> SendResult:
        payload = {"type": "text", "text": {"body": body}}
        return await self._dispatch(to, payload, "text", body, user_id=user_id)

    async def send_list(
        self,
        to: str,
        header: str,
        body: str,
        sections: List[Dict[str, Any]],
        *,
        button: str = "Wybierz",
        footer: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> SendResult:
        """Send an interactive list; ``sections`` is ``[{title, rows: [{id, title, description?}]}]``."""

        wire_sections = []
        titles: List[str] = []
        for section in sections:
            rows = []
            for row in section["rows"]:
                wire_row = {"id": row["id"], "title": _clip(row["title"], ROW_TITLE_LIMIT)}
                if row.get("description"):
                    wire_row["description"] = _clip(row["description"], ROW_DESCRIPTION_LIMIT)
                rows.append(wire_row)
                titles.append(row["title"])
            wire_sections.append(
                {"title": _clip(section.get("title", ""), SECTION_TITLE_LIMIT), "rows": rows}
            )

        interactive: Dict[str, Any] = {
            "type": "list",
            "header": {"type": "text", "text": _clip(header, HEADER_LIMIT)},
            "body": {"text": body},
            "action": {"button": _clip(button, BUTTON_TITLE_LIMIT), "sections": wire_sections},
        }
        if footer:
            interactive["footer"] = {"text": footer}
        summary = f"{header}: " + " | ".join(titles)
        return await self._dispatch(
            to, {"type": "interactive", "interactive": interactive}, "interactive_list", summary,
            user_id=user_id,
        )

    async def send_buttons(
        self,
        to: str,
        body: str,
        buttons: List[Dict[str, str]],
        *,
        user_id: Optional[int] = None,
    ) -> SendResult:
        interactive = {
            "type": "button",
            "body": {"text": body},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": b["id"], "title": _clip(b["title"], BUTTON_TITLE_LIMIT)},
                    }
                    for b in buttons
                ]
            },
        }
        summary = f"{body} " + " ".join(f"[{b['title']}]" for b in buttons)
        return await self._dispatch(
            to, {"type": "interactive", "interactive": interactive}, "interactive_buttons", summary,
            user_id=user_id,
        )

    async def send_template(
        self,
        to: str,
        template_name: str,
        language_code: str,
        parameters: List[str],
        *,
        user_id: Optional[int] = None,
    ) -> SendResult:
        template: Dict[str, Any] = {"name": template_name, "language": {"code": language_code}}
        if parameters:
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": value} for value in parameters],
                }
            ]
        return await self._dispatch(
            to,
            {"type": "template", "template": template},
            "template",
            f"TEMPLATE {template_name}",
            user_id=user_id,
            template_name=template_name,
            variables=parameters,
        )

    async def _dispatch(
        self,
        to: str,
        payload: Dict[str, Any],
        message_type: str,
        summary: str,
        *,
        user_id: Optional[int],
        template_name: Optional[str] = None,
        variables: Optional[List[str]] = None,
    ) -> SendResult:
        to_norm = str(to).lstrip("+")
        audit = {
            "user_id": user_id,
            "to_phone": to_norm,
            "message_type": message_type,
            "body": summary,
            "template_name": template_name,
            "variables": variables,
        }

        if not self._settings.whatsapp_configured:
            self._database.record_outbound({**audit, "status": "skipped", "reason": "missing_config"})
            return SendResult(ok=False, reason="missing_config")

        wire = {"messaging_product": "whatsapp", "to": to_norm, **payload}
        attempts = max(self._settings.send_max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                message_id = await self._post(wire)
            except WhatsAppApiError as exc:
                self._database.record_outbound(
                    {**audit, "status": "error", "reason": exc.reason, "attempt": attempt}
                )
                if not exc.retryable or attempt == attempts:
                    logger.warning("Send to %s failed after %s attempt(s): %s", to_norm, attempt, exc.reason)
                    return SendResult(ok=False, reason=exc.reason)
                delay = exc.retry_after
                if delay is None:
                    delay = self._settings.send_backoff_seconds * (2 ** (attempt - 1))
                await self._sleep(delay)
                continue

            self._database.record_outbound(
                {**audit, "status": "sent", "wa_message_id": message_id, "attempt": attempt}
            )
            return SendResult(ok=True, message_id=message_id)

        return SendResult(ok=False, reason="send_failed")

    async def _post(self, payload: Dict[str, Any]) -> Optional[str]:
        path = f"{self._settings.phone_number_id}/messages"
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TransportError as exc:
            raise WhatsAppApiError("transport_error", retryable=True) from exc

        if response.is_success:
            try:
                data = response.json()
            except ValueError:
                return None
            messages = data.get("messages") or [{}]
            return messages[0].get("id")

        raise WhatsAppApiError(
            f"http_{response.status_code}",
            retryable=response.status_code in RETRYABLE_STATUS,
            retry_after=_retry_after(response),
        )


__all__ = ["WhatsAppClient", "WhatsAppApiError", "GRAPH_API_BASE"]
