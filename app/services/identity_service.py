"""
app/services/identity_service.py

Purpose: Identity & tenant resolution

- phone -> active business binding (one per phone)
- (business, phone) -> active principal; pending invites never resolve
- Accepting an invite (JOIN) and creating invites
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import PersistenceError, UnknownTenantError
from app.core.logging import get_logger
from app.db.mongo import get_bindings_collection, get_principals_collection
from app.models.principal import ActiveBinding, Principal

logger = get_logger(__name__)


async def resolve_tenant_id(phone: str) -> str:
    """
    Raises:
        UnknownTenantError: if the phone is not bound to any business
    """
    doc = await get_bindings_collection().find_one({"_id": phone})
    if not doc or not doc.get("tenant_id"):
        raise UnknownTenantError(details={"phone": phone})
    return ActiveBinding.model_validate(doc).tenant_id


async def get_active_principal(tenant_id: str, phone: str) -> Optional[Principal]:
    """The sender's non-pending membership in a business, re-read every turn."""
    doc = await get_principals_collection().find_one(
        {"tenant_id": tenant_id, "phone": phone, "pending": False}
    )
    return Principal.model_validate(doc) if doc else None


async def bind_phone(phone: str, tenant_id: str) -> None:
    await get_bindings_collection().update_one(
        {"_id": phone},
        {"$set": {"tenant_id": tenant_id, "updated_at": datetime.utcnow()}},
        upsert=True,
    )


async def find_pending_invite(phone: str) -> Optional[Principal]:
    doc = await get_principals_collection().find_one(
        {"phone": phone, "pending": True},
        sort=[("created_at", -1)],
    )
    return Principal.model_validate(doc) if doc else None


async def accept_invite(phone: str, display_name: Optional[str] = None) -> Optional[Principal]:
    """
    Activates the newest pending invite for `phone` and makes that
    business the phone's active one.

    Returns:
        The activated principal, or None when there is no pending invite

    Raises:
        PersistenceError
    """
    invite = await find_pending_invite(phone)
    if invite is None:
        return None

    now = datetime.utcnow()
    try:
        doc = await get_principals_collection().find_one_and_update(
            {"_id": invite.id, "pending": True},
            {"$set": {"pending": False, "joined_at": now, "display_name": display_name or invite.display_name}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            # Accepted by a concurrent delivery of the same JOIN
            doc = await get_principals_collection().find_one({"_id": invite.id})
        await bind_phone(phone, invite.tenant_id)
    except PyMongoError as e:
        raise PersistenceError("Could not accept invitation") from e

    logger.info("🤝 Invitation accepted")
    return Principal.model_validate(doc)


async def upsert_invite(
    tenant_id: str,
    phone: str,
    role: str,
    branch_id: str,
    invited_by: str,
) -> Principal:
    """
    Creates or refreshes a pending membership for `phone`.

    Raises:
        PersistenceError
    """
    now = datetime.utcnow()
    try:
        doc = await get_principals_collection().find_one_and_update(
            {"tenant_id": tenant_id, "phone": phone},
            {
                "$set": {
                    "role": role,
                    "branch_id": branch_id,
                    "pending": True,
                    "invited_by": invited_by,
                },
                "$setOnInsert": {"_id": uuid4().hex, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not create invitation") from e
    return Principal.model_validate(doc)


async def list_members(tenant_id: str) -> List[Principal]:
    cursor = get_principals_collection().find({"tenant_id": tenant_id}).sort("created_at", 1)
    return [Principal.model_validate(doc) async for doc in cursor]


async def count_members(tenant_id: str) -> int:
    """Active and pending members both use a seat."""
    return await get_principals_collection().count_documents({"tenant_id": tenant_id})
