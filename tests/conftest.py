import asyncio
from uuid import uuid4

import pytest
from mongomock_motor import AsyncMongoMockClient

from app.db import mongo
from app.db.indexes import create_indexes
from app.schemas.outbound import ButtonsPlan, ListPlan, TextPlan
from app.schemas.webhook import InboundMessage
from app.services.business_service import list_branches
from app.services.identity_service import accept_invite, upsert_invite
from app.services.tenant_service import create_tenant, reset_tenant_locks

OWNER = "+263772000001"
CLERK = "+263772000002"
STRANGER = "+263772000009"


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["zimquote_test"]
    mongo.use_database(database)
    asyncio.run(create_indexes())
    reset_tenant_locks()
    yield database
    mongo.use_database(None)
    reset_tenant_locks()


def make_business(db, package="gold", name="Acme Designs"):
    """An onboarded business at rest in the main menu, owned by OWNER."""
    async def setup():
        tenant = await create_tenant(OWNER, "Tariro")
        await db["tenants"].update_one(
            {"_id": tenant.id},
            {"$set": {
                "name": name,
                "package": package,
                "current_state": "ready",
                "session": {"flow": "ready"},
            }},
        )
        return tenant.id
    return asyncio.run(setup())


@pytest.fixture
def business(db):
    return make_business(db)


@pytest.fixture
def clerk(db, business):
    async def setup():
        branch = (await list_branches(business))[0]
        await upsert_invite(business, CLERK, "clerk", branch.id, invited_by=OWNER)
        await accept_invite(CLERK, "Rudo")
    asyncio.run(setup())
    return CLERK


def inbound(phone, text="", interactive_id=None, transport="twilio", media=None, message_id=None):
    return InboundMessage(
        phone=phone,
        text=text,
        message_id=message_id or f"SM{uuid4().hex}",
        transport=transport,
        interactive_id=interactive_id,
        media=media,
    )


def bodies(plans):
    """Text of every text / interactive plan, in order."""
    return [p.text for p in plans if isinstance(p, (TextPlan, ButtonsPlan, ListPlan))]


def option_ids_of(plan):
    return [o.id for o in plan.options]


def converse(*turns):
    """
    Runs (phone, text[, interactive_id]) turns in order on one event loop
    and returns each turn's outcome.
    """
    from app.flow.dispatcher import process_inbound

    async def run():
        outcomes = []
        for turn in turns:
            outcomes.append(await process_inbound(inbound(*turn)))
        return outcomes
    return asyncio.run(run())


def load(db, collection, query):
    return asyncio.run(db[collection].find_one(query))
