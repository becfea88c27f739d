"""FastAPI application exposing the WhatsApp webhook and the reporting API."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import PlainTextResponse

from .config import Settings, load_settings
from .context import StudioContext
from .service import StudioBotService, build_context
from .webhook import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None, context: Optional[StudioContext] = None
) -> FastAPI:
    settings = settings or (context.settings if context else load_settings())
    context = context or build_context(settings)
    service = StudioBotService(context)
    background: dict[str, asyncio.Task] = {}

    async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> None:
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    def date_dependency(value: Optional[str] = None) -> date:
        if not value:
            return service.today()
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD") from exc

    app = FastAPI(title="Studio Bot API", version="1.0.0")
    app.state.service = service

    @app.on_event("startup")
    async def startup_event() -> None:  # pragma: no cover - io bound
        if context.notifier is not None:
            background["notifier"] = asyncio.create_task(context.notifier.run())

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        task = background.pop("notifier", None)
        if task is not None:
            task.cancel()
        if context.notifier is not None:
            await context.notifier.drain()
        await context.messenger.close()

    def get_service() -> StudioBotService:
        return service

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/webhook", response_class=PlainTextResponse)
    async def verify_subscription(
        mode: Optional[str] = Query(None, alias="hub.mode"),
        token: Optional[str] = Query(None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(None, alias="hub.challenge"),
    ) -> str:
        if mode == "subscribe" and token == settings.verify_token and challenge is not None:
            return challenge
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="verification failed")

    @app.post("/webhook")
    async def receive_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        svc: StudioBotService = Depends(get_service),
    ) -> Response:
        body = await request.body()
        if settings.app_secret and not verify_signature(
            settings.app_secret, body, request.headers.get(SIGNATURE_HEADER)
        ):
            logger.warning("Rejected webhook delivery with a bad signature")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Bad signature")
        try:
            payload = json.loads(body or b"{}")
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="invalid json") from exc

        if isinstance(payload, dict) and payload.get("entry"):
            # Acknowledge first; the provider redelivers on slow responses.
            background_tasks.add_task(svc.handle_payload, payload)
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/api/roster")
    async def get_roster(
        date_param: Optional[str] = Query(None, alias="date"),
        instructor_id: Optional[int] = None,
        _: None = Depends(verify_api_key),
        svc: StudioBotService = Depends(get_service),
    ) -> dict[str, object]:
        day = date_dependency(date_param)
        return {"date": day.isoformat(), "classes": svc.get_roster(day, instructor_id)}

    @app.get("/api/absences")
    async def get_absences(
        date_param: Optional[str] = Query(None, alias="date"),
        days: int = Query(1, ge=1, le=31),
        _: None = Depends(verify_api_key),
        svc: StudioBotService = Depends(get_service),
    ) -> dict[str, object]:
        day = date_dependency(date_param)
        return {"date": day.isoformat(), "absences": svc.get_absences(day, days)}

    @app.get("/api/slots/open")
    async def get_open_slots(
        _: None = Depends(verify_api_key),
        svc: StudioBotService = Depends(get_service),
    ) -> dict[str, object]:
        return {"date": svc.today().isoformat(), "slots": svc.get_open_slots()}

    @app.get("/api/credits/{phone}")
    async def get_credits(
        phone: str,
        _: None = Depends(verify_api_key),
        svc: StudioBotService = Depends(get_service),
    ) -> dict[str, object]:
        balance = svc.get_credit_balance(phone)
        if balance is None:
            raise HTTPException(status_code=404, detail="member not found")
        return balance

    return app


__all__ = ["create_app"]
