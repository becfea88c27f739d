"""MCP server exposing read-only studio reports to staff assistants."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .service import StudioBotService, build_context

mcp = FastMCP("studio-bot")

_settings = load_settings()
_service = StudioBotService(build_context(_settings))


def _ensure_date(day_str: Optional[str] = None):
    if not day_str:
        return _service.today()
    return datetime.strptime(day_str, "%Y-%m-%d").date()


@mcp.tool()
async def get_roster(date: Optional[str] = None, instructor_id: Optional[int] = None) -> dict:
    """Return who is expected in each class on the date (defaults to today)."""

    day = _ensure_date(date)
    return {"date": day.isoformat(), "classes": _service.get_roster(day, instructor_id)}


@mcp.tool()
async def get_absences(date: Optional[str] = None, days: int = 7) -> dict:
    """Return absences reported for sessions in the window starting at the date."""

    day = _ensure_date(date)
    return {"date": day.isoformat(), "absences": _service.get_absences(day, days)}


@mcp.tool()
async def get_open_slots() -> dict:
    """Return open make-up slots for the next two weeks."""

    return {"date": _service.today().isoformat(), "slots": _service.get_open_slots()}


@mcp.tool()
async def get_credit_balance(phone: str) -> dict:
    """Return a member's unused make-up credits."""

    balance = _service.get_credit_balance(phone)
    if balance is None:
        raise ValueError("member not found")
    return balance


if __name__ == "__main__":  # pragma: no cover
    mcp.run()


__all__ = [
    "mcp",
    "get_roster",
    "get_absences",
    "get_open_slots",
    "get_credit_balance",
]
