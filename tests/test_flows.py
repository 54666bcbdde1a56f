import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from app.core.config import settings
from app.core.exceptions import PersistenceError
from app.flow.dispatcher import process_inbound
from app.flow.handlers import documents
from app.flow.menus import numbered_menu
from app.flow.session import DocumentSession, ExpenseSession
from app.models.records import LineItem
from app.schemas.outbound import RenderJob
from app.schemas.webhook import parse_meta_payload
from app.services import tenant_service
from app.services.business_service import list_branches, record_upgrade_request, save_client
from app.services.document_service import commit_document
from app.services.identity_service import accept_invite, get_active_principal, upsert_invite
from app.services.ledger_service import commit_expense
from app.services.tenant_service import load_tenant
from utils.constants import (
    ACCESS_DENIED,
    ASK_BUSINESS_NAME,
    CANCELLED,
    COMMIT_FAILED,
    JOIN_NO_INVITE,
    PAYMENT_EXCEEDS_BALANCE,
    TRIAL_EXPIRED,
)

from conftest import (
    CLERK,
    OWNER,
    STRANGER,
    bodies,
    converse,
    inbound,
    load,
    make_business,
    option_ids_of,
)


def commit_invoice(tenant_id):
    async def run():
        tenant = await load_tenant(tenant_id)
        owner = await get_active_principal(tenant_id, OWNER)
        session = DocumentSession(
            doc_type="invoice",
            client_name="Chipo",
            items=[LineItem(description="Website design", quantity=1, unit_price=620)],
        )
        document, _ = await commit_document(tenant, session, owner)
        return document
    return asyncio.run(run())


def test_owner_creates_invoice_with_saved_client(db, business):
    asyncio.run(save_client(business, "Chipo", "+263771111111", key="seed"))

    outcomes = converse(
        (OWNER, "1"),               # new invoice
        (OWNER, "1"),               # saved client
        (OWNER, "1"),               # Chipo
        (OWNER, "Website design"),
        (OWNER, "1"),               # quantity, not a menu choice
        (OWNER, "500"),
        (OWNER, "1"),               # add item
        (OWNER, "Hosting"),
        (OWNER, "12"),
        (OWNER, "10"),
        (OWNER, "2"),               # review
        (OWNER, "1"),               # generate
    )

    assert "Who is it for?" in bodies(outcomes[0].plans)[0]
    assert "USD 620.00" in bodies(outcomes[10].plans)[0]

    final = outcomes[-1]
    assert "INV-000001" in bodies(final.plans)[0]
    assert [type(job) for job in final.jobs] == [RenderJob]

    document = load(db, "documents", {"tenant_id": business})
    assert document["total"] == 620.0
    assert document["client_name"] == "Chipo"
    assert len(document["items"]) == 2
    assert load(db, "tenants", {"_id": business})["current_state"] == "ready"


def test_clerk_is_denied_settings(db, business, clerk):
    (outcome,) = converse((CLERK, "settings_menu"))

    assert bodies(outcome.plans)[0] == ACCESS_DENIED
    menu = outcome.plans[-1]
    numbered = numbered_menu("clerk")
    assert option_ids_of(menu) == [numbered[str(i)] for i in range(1, len(numbered) + 1)]
    assert load(db, "tenants", {"_id": business})["current_state"] == "ready"


def test_payment_over_balance_keeps_state(db, business):
    invoice = commit_invoice(business)

    outcomes = converse(
        (OWNER, "4"),       # record payment
        (OWNER, "1"),       # first unpaid invoice
        (OWNER, "1000"),
    )

    assert bodies(outcomes[-1].plans)[0].startswith(PAYMENT_EXCEEDS_BALANCE.split("\n")[0])
    assert load(db, "tenants", {"_id": business})["current_state"] == "payment_amount"
    stored = load(db, "documents", {"_id": invoice.id})
    assert stored["balance"] == 620.0
    assert stored["amount_paid"] == 0


def test_payment_recorded_and_receipt_issued(db, business):
    invoice = commit_invoice(business)

    outcomes = converse(
        (OWNER, "record_payment"),
        (OWNER, "1"),
        (OWNER, "200"),
        (OWNER, "1"),       # cash
    )

    assert "Payment recorded" in bodies(outcomes[-1].plans)[0]
    stored = load(db, "documents", {"_id": invoice.id})
    assert stored["balance"] == 420.0
    assert stored["status"] == "partial"
    assert load(db, "documents", {"doc_type": "receipt"})["number"] == "RCPT-000001"
    assert load(db, "tenants", {"_id": business})["current_state"] == "ready"


def test_menu_and_cancel_reset_the_session(db, business):
    outcomes = converse(
        (OWNER, "1"),
        (OWNER, "menu"),
        (OWNER, "1"),
        (OWNER, "cancel"),
    )

    assert load(db, "tenants", {"_id": business})["current_state"] == "ready"
    assert CANCELLED in bodies(outcomes[3].plans)
    assert option_ids_of(outcomes[1].plans[-1])[0] == "new_invoice"


def test_duplicate_message_is_ignored(db, business):
    async def run():
        first = await process_inbound(inbound(OWNER, "1", message_id="SM-dup"))
        second = await process_inbound(inbound(OWNER, "1", message_id="SM-dup"))
        return first, second

    first, second = asyncio.run(run())
    assert first.plans
    assert second.plans == []
    assert load(db, "tenants", {"_id": business})["current_state"] == "doc_choose_client"


def test_new_phone_onboards_a_business(db):
    outcomes = converse(
        (STRANGER, "hi"),
        (STRANGER, "1"),                # create business
        (STRANGER, "Moyo Hardware"),
        (STRANGER, "2"),                # ZWL
        (STRANGER, "2"),                # skip logo
    )

    assert option_ids_of(outcomes[0].plans[0])[0] == "create_business"
    assert bodies(outcomes[1].plans) == [ASK_BUSINESS_NAME]
    assert "Moyo Hardware" in bodies(outcomes[-1].plans)[0]

    owner = load(db, "principals", {"phone": STRANGER})
    tenant = load(db, "tenants", {"_id": owner["tenant_id"]})
    assert owner["role"] == "owner"
    assert tenant["name"] == "Moyo Hardware"
    assert tenant["currency"] == "ZWL"
    assert tenant["package"] == "trial"
    assert tenant["current_state"] == "ready"


def test_join_without_invite(db):
    (outcome,) = converse((STRANGER, "JOIN"))
    assert bodies(outcome.plans) == [JOIN_NO_INVITE]


def test_join_with_invite_notifies_inviter(db, business):
    branch_id = asyncio.run(db["branches"].find_one({"tenant_id": business}))["_id"]
    asyncio.run(upsert_invite(business, STRANGER, "manager", branch_id, invited_by=OWNER))

    (outcome,) = converse((STRANGER, "join"))

    assert "Invitation accepted" in bodies(outcome.plans)[0]
    assert [n.to_phone for n in outcome.notifications] == [OWNER]
    principal = load(db, "principals", {"phone": STRANGER})
    assert principal["pending"] is False
    assert load(db, "active_bindings", {"_id": STRANGER})["tenant_id"] == business


def test_trial_owner_is_offered_upgrade_for_quotes(db):
    tenant_id = make_business(db, package="trial")

    outcomes = converse(
        (OWNER, "new_quote"),
        (OWNER, "", "pkg_silver"),      # button reply
    )

    prompt = outcomes[0].plans[0]
    assert "Quotations" in prompt.text
    assert "pkg_bronze" in option_ids_of(prompt)

    link = bodies(outcomes[1].plans)[0]
    assert settings.CHECKOUT_URL in link
    assert "package=silver" in link
    assert load(db, "upgrade_requests", {"tenant_id": tenant_id})["package"] == "silver"
    assert load(db, "tenants", {"_id": tenant_id})["current_state"] == "ready"


def test_expired_trial_blocks_new_documents(db):
    tenant_id = make_business(db, package="trial")
    asyncio.run(db["tenants"].update_one(
        {"_id": tenant_id},
        {"$set": {"trial_ends_at": datetime.utcnow() - timedelta(days=1)}},
    ))

    (outcome,) = converse((OWNER, "1"))

    assert outcome.plans[0].text.startswith(TRIAL_EXPIRED)
    assert load(db, "tenants", {"_id": tenant_id})["current_state"] == "upgrade_pick_package"


def test_owner_invites_a_clerk(db, business):
    outcomes = converse(
        (OWNER, "invite_user"),
        (OWNER, "0772000003"),
        (OWNER, "", "role_clerk"),
    )

    assert "Invitation created" in bodies(outcomes[-1].plans)[0]
    invited = load(db, "principals", {"phone": "+263772000003"})
    assert invited["pending"] is True
    assert invited["role"] == "clerk"
    assert invited["tenant_id"] == business


def test_daily_report(db, business):
    commit_invoice(business)

    async def spend():
        owner = await get_active_principal(business, OWNER)
        session = ExpenseSession(category="fuel", description="Diesel", amount=50)
        await commit_expense(business, session, owner, "cash")
    asyncio.run(spend())

    (outcome,) = converse((OWNER, "report_daily"))

    report = bodies(outcome.plans)[0]
    assert "Today" in report
    assert "Sales: USD 620.00" in report
    assert "Expenses: USD 50.00" in report
    assert "Net cash: USD -50.00" in report
    assert "Outstanding: USD 620.00" in report


def test_settings_updates_invoice_prefix(db, business):
    outcomes = converse(
        (OWNER, "set_invoice_prefix"),
        (OWNER, "bill"),
    )

    tenant = load(db, "tenants", {"_id": business})
    assert tenant["invoice_prefix"] == "BILL"
    assert tenant["current_state"] == "settings_menu"
    assert "updated" in bodies(outcomes[-1].plans)[0]

    commit_invoice(business)
    assert load(db, "documents", {"tenant_id": business})["number"] == "BILL-000001"


def meta_reply(phone, kind, option_id, title):
    payload = {"entry": [{"changes": [{"value": {
        "contacts": [{"wa_id": phone.lstrip("+"), "profile": {"name": "Tariro"}}],
        "messages": [{
            "from": phone.lstrip("+"),
            "id": f"wamid.{kind}",
            "type": "interactive",
            "interactive": {"type": kind, kind: {"id": option_id, "title": title}},
        }],
    }}]}]}
    (message,) = parse_meta_payload(payload)
    return message


@pytest.mark.parametrize("kind", ["button_reply", "list_reply"])
def test_both_transports_get_the_same_replies(db, business, kind):
    twilio, _ = converse(
        (OWNER, "1"),
        (OWNER, "menu"),
    )

    async def via_meta():
        # The title is free text the handler must not see
        return await process_inbound(meta_reply(OWNER, kind, "new_invoice", "2"))

    meta = asyncio.run(via_meta())
    assert meta.transport == "meta"
    assert [p.model_dump() for p in meta.plans] == [p.model_dump() for p in twilio.plans]
    assert load(db, "tenants", {"_id": business})["current_state"] == "doc_choose_client"


def test_expired_trial_still_navigates_but_blocks_settings_changes(db):
    tenant_id = make_business(db, package="trial")
    asyncio.run(db["tenants"].update_one(
        {"_id": tenant_id},
        {"$set": {"trial_ends_at": datetime.utcnow() - timedelta(days=1)}},
    ))

    menu, change = converse(
        (OWNER, "settings_menu"),
        (OWNER, "set_terms"),
    )

    assert "set_terms" in option_ids_of(menu.plans[-1])
    assert change.plans[0].text.startswith(TRIAL_EXPIRED)
    assert load(db, "tenants", {"_id": tenant_id})["current_state"] == "upgrade_pick_package"


def make_manager(business, phone):
    async def setup():
        branch = (await list_branches(business))[0]
        await upsert_invite(business, phone, "manager", branch.id, invited_by=OWNER)
        await accept_invite(phone, "Rudo")
    asyncio.run(setup())


def test_demoted_user_is_stopped_mid_flow(db, business):
    make_manager(business, CLERK)
    converse((CLERK, "set_terms"))
    assert load(db, "tenants", {"_id": business})["current_state"] == "settings_terms"

    asyncio.run(db["principals"].update_one(
        {"tenant_id": business, "phone": CLERK},
        {"$set": {"role": "clerk"}},
    ))
    (outcome,) = converse((CLERK, "45"))

    assert bodies(outcome.plans)[0] == ACCESS_DENIED
    tenant = load(db, "tenants", {"_id": business})
    assert tenant["current_state"] == "ready"
    assert tenant["payment_terms_days"] == 30


INVOICE_TO_CONFIRM = (
    (OWNER, "1"),                   # new invoice
    (OWNER, "1"),                   # saved client
    (OWNER, "1"),                   # Chipo
    (OWNER, "Website design"),
    (OWNER, "1"),
    (OWNER, "500"),
    (OWNER, "2"),                   # review
)


def test_failed_commit_keeps_the_draft_for_a_retry(db, business, monkeypatch):
    asyncio.run(save_client(business, "Chipo", "+263771111111", key="seed"))
    converse(*INVOICE_TO_CONFIRM)
    generation = load(db, "tenants", {"_id": business})["session"]["generation"]

    monkeypatch.setattr(documents, "commit_document", AsyncMock(side_effect=PersistenceError("db down")))
    (failed,) = converse((OWNER, "1"))

    assert bodies(failed.plans)[0] == COMMIT_FAILED.format(label="invoice")
    assert "generate_document" in option_ids_of(failed.plans[-1])
    tenant = load(db, "tenants", {"_id": business})
    assert tenant["current_state"] == "doc_confirm"
    assert tenant["session"]["generation"] == generation
    assert tenant["session"]["items"][0]["description"] == "Website design"

    monkeypatch.setattr(documents, "commit_document", commit_document)
    (done,) = converse((OWNER, "1"))

    assert "INV-000001" in bodies(done.plans)[0]
    assert load(db, "documents", {"tenant_id": business})["source_generation"] == generation


def test_concurrent_generate_commits_once(db, business):
    asyncio.run(save_client(business, "Chipo", "+263771111111", key="seed"))
    converse(*INVOICE_TO_CONFIRM)

    async def run():
        return await asyncio.gather(
            process_inbound(inbound(OWNER, "", "generate_document")),
            process_inbound(inbound(OWNER, "", "generate_document")),
        )

    outcomes = asyncio.run(run())

    replies = [bodies(o.plans)[0] for o in outcomes]
    assert sum("INV-000001" in r for r in replies) == 1
    assert asyncio.run(db["documents"].count_documents({"tenant_id": business})) == 1
    tenant = load(db, "tenants", {"_id": business})
    assert tenant["counters"]["invoice"] == 1
    assert tenant["current_state"] == "ready"
    assert tenant_service.active_tenant_locks() == 0


def test_version_conflict_is_retried_without_burning_numbers(db, business, monkeypatch):
    asyncio.run(save_client(business, "Chipo", "+263771111111", key="seed"))
    converse(*INVOICE_TO_CONFIRM)

    original = tenant_service.save_dialog
    saves = []

    async def save_after_another_process(tenant):
        saves.append(tenant.version)
        if len(saves) == 1:
            await db["tenants"].update_one({"_id": tenant.id}, {"$inc": {"version": 1}})
        return await original(tenant)

    monkeypatch.setattr(tenant_service, "save_dialog", save_after_another_process)
    (outcome,) = converse((OWNER, "1"))

    assert len(saves) == 2
    assert saves[1] == saves[0] + 1
    assert "INV-000001" in bodies(outcome.plans)[0]
    assert asyncio.run(db["documents"].count_documents({"tenant_id": business})) == 1
    tenant = load(db, "tenants", {"_id": business})
    assert tenant["counters"]["invoice"] == 1
    assert tenant["current_state"] == "ready"


def test_upgrade_request_is_recorded_once_per_flow(db):
    tenant_id = make_business(db, package="trial")

    async def run():
        first = await record_upgrade_request(tenant_id, "silver", OWNER, key="gen-1")
        again = await record_upgrade_request(tenant_id, "silver", OWNER, key="gen-1")
        other = await record_upgrade_request(tenant_id, "gold", OWNER, key="gen-2")
        count = await db["upgrade_requests"].count_documents({"tenant_id": tenant_id})
        return first, again, other, count

    first, again, other, count = asyncio.run(run())
    assert first == again
    assert other != first
    assert count == 2
