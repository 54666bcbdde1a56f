import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

from app.core.exceptions import RenderError
from app.flow import dispatcher
from app.flow.dispatcher import TurnOutcome, deliver_outcome
from app.schemas.outbound import (
    DocumentPlan,
    LogoJob,
    Notification,
    Option,
    RenderJob,
    TextPlan,
    options,
    text,
)
from app.services import outbound_service
from app.services.outbound_service import render_for_meta, render_for_twilio
from utils.constants import DOCUMENT_PDF_UNAVAILABLE


def choices(n):
    return [Option(id=f"opt_{i}", title=f"Option {i}") for i in range(1, n + 1)]


def test_twilio_numbers_the_options():
    body, media = render_for_twilio(options("Pick one", choices(2)))
    assert media is None
    assert "1) Option 1" in body
    assert "2) Option 2" in body


def test_twilio_sends_documents_as_media():
    body, media = render_for_twilio(DocumentPlan(url="https://x/INV-1.pdf", filename="INV-1.pdf", caption="Invoice"))
    assert media == "https://x/INV-1.pdf"
    assert body == "Invoice"


def test_meta_uses_buttons_for_three_or_fewer():
    payload = render_for_meta(options("Pick one", choices(3)))
    assert payload["interactive"]["type"] == "button"
    ids = [b["reply"]["id"] for b in payload["interactive"]["action"]["buttons"]]
    assert ids == ["opt_1", "opt_2", "opt_3"]


def test_meta_uses_a_list_up_to_ten():
    payload = render_for_meta(options("Pick one", choices(7), button_label="Menu"))
    assert payload["interactive"]["type"] == "list"
    rows = payload["interactive"]["action"]["sections"][0]["rows"]
    assert [r["id"] for r in rows] == [f"opt_{i}" for i in range(1, 8)]


def test_meta_falls_back_to_numbered_text_above_ten():
    payload = render_for_meta(options("Pick one", choices(12)))
    assert payload["type"] == "text"
    assert "12) Option 12" in payload["text"]["body"]


def test_send_plan_reports_provider_failure(monkeypatch):
    monkeypatch.setattr(
        outbound_service, "twilio_service",
        SimpleNamespace(send_message=AsyncMock(return_value={"success": False, "error": "down"})),
    )
    assert asyncio.run(outbound_service.send_plan("twilio", "+263772000001", text("hi"))) is False


def test_send_plan_swallows_transport_exceptions(monkeypatch):
    monkeypatch.setattr(
        outbound_service, "meta_service",
        SimpleNamespace(send_payload=AsyncMock(side_effect=RuntimeError("network"))),
    )
    assert asyncio.run(outbound_service.send_plan("meta", "+263772000001", text("hi"))) is False


def _patch_delivery(monkeypatch):
    deliver = AsyncMock(return_value=1)
    send_plan = AsyncMock(return_value=True)
    monkeypatch.setattr(dispatcher, "deliver", deliver)
    monkeypatch.setattr(dispatcher, "send_plan", send_plan)
    return deliver, send_plan


def test_render_failure_tells_the_user(monkeypatch):
    deliver, send_plan = _patch_delivery(monkeypatch)
    monkeypatch.setattr(dispatcher, "render_document", AsyncMock(side_effect=RenderError("renderer down")))

    outcome = TurnOutcome(
        transport="twilio",
        to_phone="+263772000001",
        tenant_id="t1",
        plans=[text("✅ created")],
        jobs=[RenderJob(document_id="d1", number="INV-000001")],
    )
    asyncio.run(deliver_outcome(outcome))

    deliver.assert_awaited_once()
    sent = send_plan.call_args.args[2]
    assert isinstance(sent, TextPlan)
    assert sent.text == DOCUMENT_PDF_UNAVAILABLE.format(number="INV-000001")


def test_rendered_document_is_sent(monkeypatch):
    _, send_plan = _patch_delivery(monkeypatch)
    document = SimpleNamespace(pdf_url="https://cdn/INV-000001.pdf", number="INV-000001")
    monkeypatch.setattr(dispatcher, "render_document", AsyncMock(return_value=document))

    outcome = TurnOutcome(
        transport="meta",
        to_phone="+263772000001",
        tenant_id="t1",
        jobs=[RenderJob(document_id="d1", number="INV-000001", caption="📄 Invoice INV-000001")],
    )
    asyncio.run(deliver_outcome(outcome))

    sent = send_plan.call_args.args[2]
    assert isinstance(sent, DocumentPlan)
    assert sent.filename == "INV-000001.pdf"
    assert sent.url == "https://cdn/INV-000001.pdf"


def test_notifications_go_to_their_recipient(monkeypatch):
    _, send_plan = _patch_delivery(monkeypatch)
    outcome = TurnOutcome(
        transport="twilio",
        to_phone="+263772000002",
        notifications=[Notification(to_phone="+263772000001", plan=text("joined"))],
    )
    asyncio.run(deliver_outcome(outcome))
    assert send_plan.call_args.args[1] == "+263772000001"


def test_deliver_outcome_never_raises(monkeypatch):
    monkeypatch.setattr(dispatcher, "deliver", AsyncMock(side_effect=RuntimeError("boom")))
    monkeypatch.setattr(dispatcher, "store_logo", AsyncMock(side_effect=RuntimeError("boom")))

    outcome = TurnOutcome(
        transport="twilio",
        to_phone="+263772000001",
        plans=[text("hi")],
        jobs=[LogoJob(tenant_id="t1", media_url="https://x/logo.png")],
    )
    asyncio.run(deliver_outcome(outcome))
