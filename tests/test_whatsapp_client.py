import json
from dataclasses import replace

import httpx
import pytest

from studio_bot.whatsapp_client import WhatsAppClient


class GraphStub:
    """Serves queued responses and remembers every request body."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def bodies(self):
        return [json.loads(request.content) for request in self.requests]


def ok(message_id="wamid.out.1"):
    return httpx.Response(200, json={"messages": [{"id": message_id}]})


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(settings, database, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    def _make(stub, **overrides):
        return WhatsAppClient(
            replace(settings, **overrides) if overrides else settings,
            database,
            transport=httpx.MockTransport(stub),
            sleep=fake_sleep,
        )

    return _make


@pytest.mark.asyncio
async def test_send_text_posts_to_phone_number_endpoint(make_client, database):
    stub = GraphStub(ok("wamid.abc"))
    client = make_client(stub)

    result = await client.send_text("+48600000001", "Cześć", user_id=7)

    assert result.ok
    assert result.message_id == "wamid.abc"
    [request] = stub.requests
    assert request.url.path == "/v20.0/1234567890/messages"
    assert request.headers["Authorization"] == "Bearer wa-token"
    assert stub.bodies[0] == {
        "messaging_product": "whatsapp",
        "to": "48600000001",
        "type": "text",
        "text": {"body": "Cześć"},
    }
    [audit] = database.get_outbound()
    assert audit["status"] == "sent"
    assert audit["wa_message_id"] == "wamid.abc"
    assert audit["user_id"] == 7
    await client.close()


@pytest.mark.asyncio
async def test_list_rows_are_clipped_to_provider_limits(make_client):
    stub = GraphStub(ok())
    client = make_client(stub)

    await client.send_list(
        "48600000001",
        "Nagłówek",
        "Treść",
        [{"title": "Sekcja", "rows": [{"id": "absence_2025-11-12_1", "title": "x" * 40, "description": "y" * 100}]}],
        footer="Stopka",
    )

    interactive = stub.bodies[0]["interactive"]
    row = interactive["action"]["sections"][0]["rows"][0]
    assert interactive["type"] == "list"
    assert interactive["footer"] == {"text": "Stopka"}
    assert row["id"] == "absence_2025-11-12_1"
    assert len(row["title"]) == 24
    assert len(row["description"]) == 72
    await client.close()


@pytest.mark.asyncio
async def test_buttons_and_template_payloads(make_client):
    stub = GraphStub(ok("wamid.1"), ok("wamid.2"))
    client = make_client(stub)

    await client.send_buttons("48600000001", "Dalej?", [{"id": "absence_more_yes", "title": "Tak"}])
    await client.send_template("48500000001", "absence_notice", "pl", ["Ola", "12/11"])

    buttons, template = stub.bodies
    assert buttons["interactive"]["action"]["buttons"] == [
        {"type": "reply", "reply": {"id": "absence_more_yes", "title": "Tak"}}
    ]
    assert template["template"]["name"] == "absence_notice"
    assert template["template"]["language"] == {"code": "pl"}
    assert [p["text"] for p in template["template"]["components"][0]["parameters"]] == ["Ola", "12/11"]
    await client.close()


@pytest.mark.asyncio
async def test_retries_server_errors_with_backoff(make_client, database, sleeps):
    stub = GraphStub(httpx.Response(500), httpx.Response(503), ok())
    client = make_client(stub, send_backoff_seconds=0.5)

    result = await client.send_text("48600000001", "Cześć")

    assert result.ok
    assert sleeps == [0.5, 1.0]
    audits = database.get_outbound()
    assert [(a["status"], a["reason"], a["attempt"]) for a in audits] == [
        ("error", "http_500", 1),
        ("error", "http_503", 2),
        ("sent", None, 3),
    ]
    await client.close()


@pytest.mark.asyncio
async def test_honours_retry_after(make_client, sleeps):
    stub = GraphStub(httpx.Response(429, headers={"Retry-After": "3"}), ok())
    client = make_client(stub)

    assert (await client.send_text("48600000001", "Cześć")).ok
    assert sleeps == [3.0]
    await client.close()


@pytest.mark.asyncio
async def test_transport_errors_are_retried(make_client):
    stub = GraphStub(httpx.ConnectError("boom"), ok())
    client = make_client(stub)

    assert (await client.send_text("48600000001", "Cześć")).ok
    assert len(stub.requests) == 2
    await client.close()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(make_client, database, sleeps):
    stub = GraphStub(httpx.Response(400, json={"error": {"message": "bad"}}))
    client = make_client(stub)

    result = await client.send_text("48600000001", "Cześć")

    assert not result.ok
    assert result.reason == "http_400"
    assert sleeps == []
    assert [a["status"] for a in database.get_outbound()] == ["error"]
    await client.close()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(make_client, database):
    stub = GraphStub(httpx.Response(502), httpx.Response(502), httpx.Response(502))
    client = make_client(stub)

    result = await client.send_text("48600000001", "Cześć")

    assert result.reason == "http_502"
    assert len(database.get_outbound()) == 3
    await client.close()


@pytest.mark.asyncio
async def test_missing_config_is_audited_and_skipped(make_client, database):
    stub = GraphStub()
    client = make_client(stub, whatsapp_token=None)

    result = await client.send_text("48600000001", "Cześć")

    assert not result.ok
    assert result.reason == "missing_config"
    assert stub.requests == []
    [audit] = database.get_outbound()
    assert (audit["status"], audit["reason"]) == ("skipped", "missing_config")
    await client.close()
