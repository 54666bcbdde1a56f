"""
app/services/tenant_service.py

Purpose: Tenant persistence and per-tenant serialization

- Load / save a tenant's dialog state as one atomic unit
- Per-tenant asyncio lock (in-process) plus optimistic version check
  (across processes)
- Atomic counter allocation for document numbering
- Monthly document allowance bookkeeping
- Business creation at onboarding
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflict, PersistenceError, ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from app.db.mongo import (
    get_bindings_collection,
    get_branches_collection,
    get_principals_collection,
    get_tenants_collection,
)
from app.flow.session import OnboardingSession
from app.flow.states import DialogState
from app.models.principal import Principal
from app.models.records import Branch
from app.models.tenant import Tenant
from utils.time_utils import month_key

logger = get_logger(__name__)

_tenant_locks: Dict[str, asyncio.Lock] = {}
_lock_holders: Dict[str, int] = {}


@asynccontextmanager
async def tenant_lock(tenant_id: str) -> AsyncIterator[None]:
    """
    Serializes turns for one tenant. The lock is dropped from the map once
    nobody holds or waits on it, so the map only holds busy tenants.
    """
    lock = _tenant_locks.get(tenant_id)
    if lock is None:
        lock = asyncio.Lock()
        _tenant_locks[tenant_id] = lock
    _lock_holders[tenant_id] = _lock_holders.get(tenant_id, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_holders[tenant_id] -= 1
        if not _lock_holders[tenant_id]:
            del _lock_holders[tenant_id]
            _tenant_locks.pop(tenant_id, None)


def active_tenant_locks() -> int:
    return len(_tenant_locks)


def reset_tenant_locks() -> None:
    """Drops all locks (locks are bound to the event loop that first contends them)."""
    _tenant_locks.clear()
    _lock_holders.clear()


async def load_tenant(tenant_id: str) -> Tenant:
    """
    Raises:
        ResourceNotFoundError: if the tenant does not exist
    """
    doc = await get_tenants_collection().find_one({"_id": tenant_id})
    if not doc:
        raise ResourceNotFoundError(f"Business {tenant_id} not found")
    return Tenant.model_validate(doc)


async def save_dialog(tenant: Tenant) -> Tenant:
    """
    Persists the dialog state and any edited profile fields, guarded by
    the version the tenant was loaded with.

    Counters and the monthly document count are never written here; they
    only move through atomic $inc updates.

    Raises:
        ConcurrencyConflict: if another writer saved the tenant first
        PersistenceError: on database failure
    """
    now = datetime.utcnow()
    update = {
        "current_state": tenant.current_state.value,
        "session": tenant.session.model_dump(),
        "updated_at": now,
    }
    update.update(tenant.dirty_profile())

    try:
        result = await get_tenants_collection().find_one_and_update(
            {"_id": tenant.id, "version": tenant.version},
            {"$set": update, "$inc": {"version": 1}},
            projection={"version": 1},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not save business state") from e

    if result is None:
        raise ConcurrencyConflict(details={"tenant_id": tenant.id, "version": tenant.version})

    tenant.version = result["version"]
    tenant.updated_at = now
    return tenant


@asynccontextmanager
async def tenant_transaction(tenant_id: str) -> AsyncIterator[Tenant]:
    """
    Load, mutate and persist a tenant as one unit.

    Usage:
        async with tenant_transaction(tenant_id) as tenant:
            tenant.go(DialogState.DOC_CONFIRM, session)

    The tenant is saved only if the block exits normally.
    """
    async with tenant_lock(tenant_id):
        tenant = await load_tenant(tenant_id)
        with LogContext(tenant_id=tenant_id, state=tenant.current_state.value):
            yield tenant
            await save_dialog(tenant)


async def allocate_number(tenant_id: str, doc_type: str) -> int:
    """
    Atomically increments and returns the counter for `doc_type`.
    A value handed out here is never handed out again.

    Raises:
        PersistenceError
    """
    try:
        result = await get_tenants_collection().find_one_and_update(
            {"_id": tenant_id},
            {"$inc": {f"counters.{doc_type}": 1}},
            projection={"counters": 1},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not allocate document number") from e

    if result is None:
        raise PersistenceError(f"Business {tenant_id} not found while numbering")

    value = result["counters"][doc_type]
    logger.info(f"🔢 Allocated {doc_type} #{value}")
    return value


def documents_used_this_month(tenant: Tenant, now: Optional[datetime] = None) -> int:
    if tenant.document_count_month_key != month_key(now):
        return 0
    return tenant.document_count_month


async def count_document(tenant_id: str, now: Optional[datetime] = None) -> None:
    """Adds one to the current month's document count, starting a new month at 1."""
    key = month_key(now)
    tenants = get_tenants_collection()
    try:
        for _ in range(2):
            result = await tenants.update_one(
                {"_id": tenant_id, "document_count_month_key": key},
                {"$inc": {"document_count_month": 1}},
            )
            if result.matched_count:
                return
            # Roll over only while the stored month is still stale
            result = await tenants.update_one(
                {"_id": tenant_id, "document_count_month_key": {"$ne": key}},
                {"$set": {"document_count_month_key": key, "document_count_month": 1}},
            )
            if result.matched_count:
                return
        logger.warning(f"Monthly document count for {tenant_id} not updated")
    except PyMongoError as e:
        logger.error(f"Failed to update monthly document count: {e}")


async def create_tenant(owner_phone: str, owner_name: Optional[str] = None) -> Tenant:
    """
    Creates a business on the trial package with its default branch,
    the owner's membership and the owner's active binding. The new
    business starts in the onboarding name step.

    Raises:
        PersistenceError
    """
    now = datetime.utcnow()
    tenant = Tenant(
        _id=uuid4().hex,
        package="trial",
        subscription_status="trial",
        trial_started_at=now,
        trial_ends_at=now + timedelta(hours=settings.TRIAL_HOURS),
        created_at=now,
        updated_at=now,
    )
    tenant.go(DialogState.ONBOARDING_NAME, OnboardingSession())

    branch = Branch(_id=uuid4().hex, tenant_id=tenant.id, name="Main Branch", is_default=True)
    owner = Principal(
        _id=uuid4().hex,
        tenant_id=tenant.id,
        phone=owner_phone,
        role="owner",
        branch_id=branch.id,
        pending=False,
        display_name=owner_name,
        joined_at=now,
    )

    try:
        await get_tenants_collection().insert_one(tenant.to_document())
        await get_branches_collection().insert_one(branch.to_document())
        await get_principals_collection().insert_one(owner.model_dump(by_alias=True))
        await get_bindings_collection().update_one(
            {"_id": owner_phone},
            {"$set": {"tenant_id": tenant.id, "updated_at": now}},
            upsert=True,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not create business") from e

    logger.info(f"🏢 Created business {tenant.id}")
    return tenant
