import json

import httpx
import pytest

from apps.api.services.mailer import Mailer
from core.config import settings


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "mail_api_key", "key")
    monkeypatch.setattr(settings, "mail_from", "noreply@matcha.test")


def _mailer(handler) -> Mailer:
    return Mailer(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_verification_escapes_first_name(configured):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(202)

    mailer = _mailer(handler)
    assert await mailer.send_verification("eve@example.com", "<b>Eve</b>", "tok") is True
    await mailer.close()

    body = sent[0]["content"][0]["value"]
    assert "&lt;b&gt;Eve&lt;/b&gt;" in body
    assert "<b>Eve</b>" not in body
    assert "/verify-email/tok" in body


@pytest.mark.asyncio
async def test_password_reset_escapes_first_name(configured):
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(202)

    mailer = _mailer(handler)
    await mailer.send_password_reset("eve@example.com", 'Eve"&', "tok")
    await mailer.close()

    assert "Eve&quot;&amp;" in sent[0]["content"][0]["value"]


@pytest.mark.asyncio
async def test_delivery_failure_is_reported(configured):
    mailer = _mailer(lambda request: httpx.Response(500))

    assert await mailer.send("eve@example.com", "Subject", "<p>hi</p>") is False
    await mailer.close()


@pytest.mark.asyncio
async def test_unconfigured_mailer_skips(monkeypatch):
    monkeypatch.setattr(settings, "mail_api_key", "")
    calls = []
    mailer = _mailer(lambda request: calls.append(request) or httpx.Response(202))

    assert await mailer.send("eve@example.com", "Subject", "<p>hi</p>") is False
    assert calls == []
    await mailer.close()
