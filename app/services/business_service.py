"""
app/services/business_service.py

Purpose: Tenant-scoped reference data

- Clients (inline creation during document drafting, standalone add)
- Product catalogue
- Branches
- Upgrade requests raised from chat
"""

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import PersistenceError
from app.core.logging import get_logger
from app.db.mongo import (
    get_branches_collection,
    get_clients_collection,
    get_products_collection,
    get_upgrade_requests_collection,
)
from app.models.records import Branch, Client, Product

logger = get_logger(__name__)


# ============================================================
# CLIENTS
# ============================================================

async def recent_clients(tenant_id: str, limit: int = 9) -> List[Client]:
    cursor = (
        get_clients_collection()
        .find({"tenant_id": tenant_id})
        .sort("created_at", -1)
        .limit(limit)
    )
    return [Client.model_validate(doc) async for doc in cursor]


async def get_client(tenant_id: str, client_id: str) -> Optional[Client]:
    doc = await get_clients_collection().find_one({"_id": client_id, "tenant_id": tenant_id})
    return Client.model_validate(doc) if doc else None


async def save_client(tenant_id: str, name: str, phone: Optional[str], key: str) -> Client:
    """
    Creates a client once per `key` (the dialog generation that asked
    for it), so a redelivered message does not create a duplicate.

    Raises:
        PersistenceError
    """
    try:
        doc = await get_clients_collection().find_one_and_update(
            {"tenant_id": tenant_id, "source_key": key},
            {
                "$setOnInsert": {
                    "_id": uuid4().hex,
                    "tenant_id": tenant_id,
                    "name": name,
                    "phone": phone,
                    "source_key": key,
                    "created_at": datetime.utcnow(),
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not save client") from e
    return Client.model_validate(doc)


# ============================================================
# PRODUCTS
# ============================================================

async def list_products(tenant_id: str, limit: int = 9) -> List[Product]:
    cursor = (
        get_products_collection()
        .find({"tenant_id": tenant_id, "is_active": True})
        .sort("name", 1)
        .limit(limit)
    )
    return [Product.model_validate(doc) async for doc in cursor]


async def get_product(tenant_id: str, product_id: str) -> Optional[Product]:
    doc = await get_products_collection().find_one(
        {"_id": product_id, "tenant_id": tenant_id, "is_active": True}
    )
    return Product.model_validate(doc) if doc else None


async def save_product(tenant_id: str, name: str, unit_price: float, key: str) -> Product:
    """
    Raises:
        PersistenceError
    """
    try:
        doc = await get_products_collection().find_one_and_update(
            {"tenant_id": tenant_id, "source_key": key},
            {
                "$setOnInsert": {
                    "_id": uuid4().hex,
                    "tenant_id": tenant_id,
                    "name": name,
                    "unit_price": unit_price,
                    "is_active": True,
                    "source_key": key,
                    "created_at": datetime.utcnow(),
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not save product") from e
    return Product.model_validate(doc)


# ============================================================
# BRANCHES
# ============================================================

async def list_branches(tenant_id: str) -> List[Branch]:
    cursor = get_branches_collection().find({"tenant_id": tenant_id}).sort("created_at", 1)
    return [Branch.model_validate(doc) async for doc in cursor]


async def get_branch(tenant_id: str, branch_id: str) -> Optional[Branch]:
    doc = await get_branches_collection().find_one({"_id": branch_id, "tenant_id": tenant_id})
    return Branch.model_validate(doc) if doc else None


async def count_branches(tenant_id: str) -> int:
    return await get_branches_collection().count_documents({"tenant_id": tenant_id})


async def create_branch(tenant_id: str, name: str, key: str) -> Branch:
    """
    Raises:
        PersistenceError
    """
    try:
        doc = await get_branches_collection().find_one_and_update(
            {"tenant_id": tenant_id, "source_key": key},
            {
                "$setOnInsert": {
                    "_id": uuid4().hex,
                    "tenant_id": tenant_id,
                    "name": name,
                    "is_default": False,
                    "source_key": key,
                    "created_at": datetime.utcnow(),
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not create branch") from e
    logger.info(f"🏬 Branch ready: {name}")
    return Branch.model_validate(doc)


# ============================================================
# UPGRADES
# ============================================================

async def record_upgrade_request(tenant_id: str, package: str, requested_by: str, key: str) -> str:
    """
    Stores an upgrade request for the billing side to complete.
    A retried turn with the same `key` gets the request it already made.

    Returns:
        Request id (used as the checkout reference)

    Raises:
        PersistenceError
    """
    try:
        doc = await get_upgrade_requests_collection().find_one_and_update(
            {"tenant_id": tenant_id, "source_key": key},
            {
                "$setOnInsert": {
                    "_id": uuid4().hex,
                    "tenant_id": tenant_id,
                    "package": package,
                    "requested_by": requested_by,
                    "status": "pending",
                    "source_key": key,
                    "created_at": datetime.utcnow(),
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as e:
        raise PersistenceError("Could not record upgrade request") from e
    logger.info(f"💳 Upgrade requested: {package}")
    return doc["_id"]
