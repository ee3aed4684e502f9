"""Tests for Mandrill email delivery."""

import asyncio
import base64
import json

import httpx
import pytest

from kiosk.app.backend.mailer import MandrillMailer, mask_address
from kiosk.app.config import Settings


def _mailer(settings: Settings, handler) -> MandrillMailer:
    client = httpx.AsyncClient(base_url=settings.mandrill_api_url, transport=httpx.MockTransport(handler))
    return MandrillMailer(settings, client=client)


def test_send_posts_message_with_attachment(settings: Settings) -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"email": "visitor@example.com", "status": "sent"}])

    mailer = _mailer(settings, handler)
    assert asyncio.run(mailer.send("visitor@example.com", b"png-bytes", "session_1")) is True

    assert captured["path"] == "/api/1.0/messages/send"
    body = captured["body"]
    assert body["key"] == "test-key"
    message = body["message"]
    assert message["to"] == [{"email": "visitor@example.com", "type": "to"}]
    assert message["subject"] == settings.email_subject
    attachment = message["attachments"][0]
    assert attachment["name"] == "adidas-superstar-snapshot-session_1.png"
    assert base64.b64decode(attachment["content"]) == b"png-bytes"


def test_send_reports_rejection(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"status": "rejected", "reject_reason": "hard-bounce"}])

    assert asyncio.run(_mailer(settings, handler).send("a@b.c", b"x", "session_1")) is False


@pytest.mark.parametrize("payload", [["sent"], [], {"status": "sent"}, [{"status": "scheduled"}]])
def test_send_rejects_unexpected_responses(settings: Settings, payload) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    assert asyncio.run(_mailer(settings, handler).send("a@b.c", b"x", "session_1")) is False


def test_send_accepts_queued(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"status": "queued"}])

    assert asyncio.run(_mailer(settings, handler).send("a@b.c", b"x", "session_1")) is True

def test_send_reports_http_errors(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"status": "error"})

    assert asyncio.run(_mailer(settings, handler).send("a@b.c", b"x", "session_1")) is False


def test_send_reports_transport_errors(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert asyncio.run(_mailer(settings, handler).send("a@b.c", b"x", "session_1")) is False


def test_send_without_api_key_does_not_call_out(settings: Settings) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[{"status": "sent"}])

    unconfigured = settings.model_copy(update={"mandrill_api_key": None})
    assert asyncio.run(_mailer(unconfigured, handler).send("a@b.c", b"x", "session_1")) is False
    assert calls == []


def test_mask_address() -> None:
    assert mask_address("visitor@example.com") == "v***@example.com"
