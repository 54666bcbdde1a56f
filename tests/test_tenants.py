import asyncio
from datetime import datetime

from app.services import tenant_service
from app.services.tenant_service import count_document, tenant_lock, tenant_transaction

from conftest import load


def test_lock_map_only_holds_busy_tenants(db, business):
    async def run():
        seen = []

        async def hold(tenant_id):
            async with tenant_lock(tenant_id):
                seen.append(tenant_service.active_tenant_locks())
                await asyncio.sleep(0)

        await asyncio.gather(hold("t1"), hold("t1"), hold("t2"))
        async with tenant_transaction(business):
            seen.append(tenant_service.active_tenant_locks())
        return seen

    seen = asyncio.run(run())
    assert max(seen[:3]) == 2
    assert seen[3] == 1
    assert tenant_service.active_tenant_locks() == 0


def test_lock_is_released_when_the_turn_fails(db, business):
    async def run():
        try:
            async with tenant_lock(business):
                raise RuntimeError("handler blew up")
        except RuntimeError:
            pass
        async with tenant_lock(business):
            return tenant_service.active_tenant_locks()

    assert asyncio.run(run()) == 1
    assert tenant_service.active_tenant_locks() == 0


def test_monthly_count_rolls_over(db, business):
    asyncio.run(db["tenants"].update_one(
        {"_id": business},
        {"$set": {"document_count_month_key": "2026-01", "document_count_month": 7}},
    ))

    async def run():
        await count_document(business, datetime(2026, 2, 3, 9, 0))
        await count_document(business, datetime(2026, 2, 20, 9, 0))
    asyncio.run(run())

    tenant = load(db, "tenants", {"_id": business})
    assert tenant["document_count_month_key"] == "2026-02"
    assert tenant["document_count_month"] == 2


def test_monthly_count_rollover_happens_once_under_concurrency(db, business):
    asyncio.run(db["tenants"].update_one(
        {"_id": business},
        {"$set": {"document_count_month_key": "2026-01", "document_count_month": 7}},
    ))
    february = datetime(2026, 2, 3, 9, 0)

    async def run():
        await asyncio.gather(*(count_document(business, february) for _ in range(3)))
    asyncio.run(run())

    assert load(db, "tenants", {"_id": business})["document_count_month"] == 3
