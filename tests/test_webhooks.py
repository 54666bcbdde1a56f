import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from app.core.config import settings
from app.flow.dispatcher import TurnOutcome
from app.main import app

client = TestClient(app)

TWILIO_URL = "https://bot.example.com/twilio/webhook"
TWILIO_FORM = {
    "From": "whatsapp:+263772000001",
    "Body": "menu",
    "MessageSid": "SM123",
    "ProfileName": "Tariro",
}


@pytest.fixture
def dispatcher(monkeypatch):
    """Replaces the turn engine so the webhook layer is tested alone."""
    process = AsyncMock(return_value=TurnOutcome(transport="twilio", to_phone="+263772000001"))
    deliver = AsyncMock()
    monkeypatch.setattr("app.api.twilio_webhook.process_inbound", process)
    monkeypatch.setattr("app.api.twilio_webhook.deliver_outcome", deliver)
    monkeypatch.setattr("app.api.meta_webhook.process_inbound", process)
    monkeypatch.setattr("app.api.meta_webhook.deliver_outcome", deliver)
    return process, deliver


@pytest.fixture
def twilio_secrets(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "twilio-secret")
    monkeypatch.setattr(settings, "TWILIO_WEBHOOK_URL", TWILIO_URL)
    return RequestValidator("twilio-secret").compute_signature(TWILIO_URL, TWILIO_FORM)


def test_twilio_rejects_bad_signature(dispatcher, twilio_secrets):
    response = client.post(
        "/twilio/webhook",
        data=TWILIO_FORM,
        headers={"X-Twilio-Signature": "not-a-signature"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "TRANSPORT_AUTH_FAILED"
    dispatcher[0].assert_not_called()


def test_twilio_accepts_signed_message(dispatcher, twilio_secrets):
    response = client.post(
        "/twilio/webhook",
        data=TWILIO_FORM,
        headers={"X-Twilio-Signature": twilio_secrets},
    )
    assert response.status_code == 200
    assert "<Response></Response>" in response.text

    process, deliver = dispatcher
    message = process.call_args.args[0]
    assert message.phone == "+263772000001"
    assert message.text == "menu"
    assert message.transport == "twilio"
    deliver.assert_awaited_once()


def test_twilio_acknowledges_even_when_processing_fails(dispatcher, monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "")
    dispatcher[0].side_effect = RuntimeError("boom")

    response = client.post("/twilio/webhook", data=TWILIO_FORM)
    assert response.status_code == 200
    dispatcher[1].assert_not_called()


def test_meta_verification_handshake(monkeypatch):
    monkeypatch.setattr(settings, "META_VERIFY_TOKEN", "verify-me")

    ok = client.get("/meta/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345",
    })
    assert ok.status_code == 200
    assert ok.text == "12345"

    wrong = client.get("/meta/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "12345",
    })
    assert wrong.status_code == 403


def _meta_payload():
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "changes": [{
                "value": {
                    "contacts": [{"wa_id": "263772000001", "profile": {"name": "Tariro"}}],
                    "messages": [{
                        "from": "263772000001",
                        "id": "wamid.1",
                        "type": "interactive",
                        "interactive": {"type": "button_reply", "button_reply": {"id": "new_invoice", "title": "Invoice"}},
                    }],
                },
            }],
        }],
    }


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def test_meta_rejects_bad_hmac(dispatcher, monkeypatch):
    monkeypatch.setattr(settings, "META_APP_SECRET", "meta-secret")
    body = json.dumps(_meta_payload()).encode()

    response = client.post(
        "/meta/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": _sign(body, "wrong")},
    )
    assert response.status_code == 403
    dispatcher[0].assert_not_called()


def test_meta_processes_signed_button_reply(dispatcher, monkeypatch):
    monkeypatch.setattr(settings, "META_APP_SECRET", "meta-secret")
    body = json.dumps(_meta_payload()).encode()

    response = client.post(
        "/meta/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": _sign(body, "meta-secret")},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    message = dispatcher[0].call_args.args[0]
    assert message.transport == "meta"
    assert message.interactive_id == "new_invoice"
    assert message.message_id == "wamid.1"


def test_meta_status_callbacks_are_acknowledged(dispatcher, monkeypatch):
    monkeypatch.setattr(settings, "META_APP_SECRET", "")
    payload = {"entry": [{"changes": [{"value": {"statuses": [{"id": "wamid.1", "status": "read"}]}}]}]}

    response = client.post("/meta/webhook", json=payload)
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    dispatcher[0].assert_not_called()


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]"])
def test_meta_acknowledges_unreadable_body(dispatcher, monkeypatch, body):
    monkeypatch.setattr(settings, "META_APP_SECRET", "meta-secret")

    response = client.post(
        "/meta/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": _sign(body, "meta-secret")},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    dispatcher[0].assert_not_called()
