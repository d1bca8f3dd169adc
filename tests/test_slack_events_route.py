"""
Tests for POST /slack/events.

The route is exercised through the ASGI app with InboundRelay wired to the
in-memory database and the Slack client double.
"""

import json
import time

import pytest
from httpx import ASGITransport, AsyncClient

from support_bridge.config import settings
from support_bridge.db.mongodb import close_db
from support_bridge.dependencies import get_inbound_relay
from support_bridge.main import app
from support_bridge.services import slack_gateway
from support_bridge.services.inbound_relay import InboundRelay

from tests.conftest import TEST_BOT_ID

THREAD_TS = "1700000000.000001"


@pytest.fixture
async def client(verifier, registry, store, gateway):
    relay = InboundRelay(verifier, registry, store, gateway, bot_id=TEST_BOT_ID)
    app.dependency_overrides[get_inbound_relay] = lambda: relay

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def signed_headers(verifier, raw_body: bytes):
    timestamp = str(int(time.time()))
    return {
        "Content-Type": "application/json",
        "X-Slack-Request-Timestamp": timestamp,
        "X-Slack-Signature": verifier.compute_signature(timestamp, raw_body),
    }


def reply_body(thread_ts=THREAD_TS) -> bytes:
    return json.dumps({
        "type": "event_callback",
        "event": {
            "type": "app_mention",
            "user": "U0STAFF",
            "text": f"<@{TEST_BOT_ID}> on it",
            "thread_ts": thread_ts,
        },
    }).encode()


class TestSlackEventsRoute:

    @pytest.mark.asyncio
    async def test_challenge_is_echoed_as_plain_text(self, client, verifier):
        body = json.dumps({"type": "url_verification", "challenge": "abc123"}).encode()

        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))

        assert response.status_code == 200
        assert response.text == "abc123"
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, client):
        response = await client.post(
            "/slack/events",
            content=reply_body(),
            headers={"X-Slack-Request-Timestamp": "1", "X-Slack-Signature": "v0=nope"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_thread_is_404(self, client, verifier):
        body = reply_body()
        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ambiguous_thread_is_409(self, client, verifier, test_db):
        await test_db["support"].insert_many([
            {"_id": "users/a/support/default", "slackThreadTs": THREAD_TS},
            {"_id": "users/b/support/default", "slackThreadTs": THREAD_TS},
        ])
        body = reply_body()

        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_reply_is_stored(self, client, verifier, registry, test_db):
        await registry.create_binding("user-1", THREAD_TS)
        body = reply_body()

        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))

        assert response.status_code == 200
        assert response.text == ""
        stored = await test_db["messages"].find_one({"userId": "user-1"})
        assert stored["message"] == "on it"

    @pytest.mark.asyncio
    async def test_ignored_event_is_200(self, client, verifier, test_db):
        body = reply_body(thread_ts=None)

        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))

        assert response.status_code == 200
        assert await test_db["messages"].count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_500(self, client, verifier):
        body = json.dumps({"type": "event_callback"}).encode()
        response = await client.post("/slack/events", content=body, headers=signed_headers(verifier, body))
        assert response.status_code == 500


class TestUnconfiguredSlack:

    @pytest.mark.asyncio
    async def test_unsigned_request_is_401_without_bot_token(self, monkeypatch):
        """Building the relay must not need a Slack token; the signature check runs first."""
        monkeypatch.setattr(settings, "SLACK_BOT_TOKEN", "")
        monkeypatch.setattr(slack_gateway, "_slack_client", None)
        monkeypatch.setattr(slack_gateway, "_chat_gateway", None)
        app.dependency_overrides.clear()

        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                response = await ac.post(
                    "/slack/events",
                    content=reply_body(),
                    headers={"X-Slack-Request-Timestamp": "1", "X-Slack-Signature": "v0=nope"},
                )
        finally:
            await close_db()

        assert response.status_code == 401
