"""
app/db/indexes.py

Purpose: Database index management

- Unique indexes that back idempotent commits and phone bindings
- Lookup indexes for menus and reports
- TTL index for inbound message de-duplication
"""

from app.db.mongo import (
    get_principals_collection,
    get_branches_collection,
    get_clients_collection,
    get_products_collection,
    get_documents_collection,
    get_payments_collection,
    get_expenses_collection,
    get_processed_messages_collection,
    get_upgrade_requests_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        logger.info("Creating database indexes...")

        # ==============================================
        # PRINCIPALS
        # ==============================================
        principals = get_principals_collection()
        await principals.create_index(
            [("tenant_id", 1), ("phone", 1)],
            unique=True,
            name="tenant_phone_unique"
        )
        await principals.create_index("phone", name="phone_idx")

        # ==============================================
        # BRANCHES / CLIENTS / PRODUCTS
        # ==============================================
        await get_branches_collection().create_index("tenant_id", name="tenant_idx")
        await get_clients_collection().create_index(
            [("tenant_id", 1), ("created_at", -1)],
            name="tenant_recent_idx"
        )
        await get_products_collection().create_index(
            [("tenant_id", 1), ("is_active", 1)],
            name="tenant_active_idx"
        )

        # ==============================================
        # DOCUMENTS
        # ==============================================
        documents = get_documents_collection()
        await documents.create_index(
            [("tenant_id", 1), ("doc_type", 1), ("number", 1)],
            unique=True,
            name="tenant_type_number_unique"
        )
        # One committed document per dialog generation
        await documents.create_index(
            [("tenant_id", 1), ("source_generation", 1)],
            unique=True,
            name="tenant_generation_unique"
        )
        await documents.create_index(
            [("tenant_id", 1), ("doc_type", 1), ("created_at", -1)],
            name="tenant_type_recent_idx"
        )
        await documents.create_index(
            [("tenant_id", 1), ("client_id", 1)],
            name="tenant_client_idx"
        )

        # ==============================================
        # LEDGER
        # ==============================================
        for collection in (get_payments_collection(), get_expenses_collection()):
            await collection.create_index(
                [("tenant_id", 1), ("source_generation", 1)],
                unique=True,
                name="tenant_generation_unique"
            )
            await collection.create_index(
                [("tenant_id", 1), ("created_at", -1)],
                name="tenant_recent_idx"
            )

        # ==============================================
        # UPGRADES
        # ==============================================
        await get_upgrade_requests_collection().create_index(
            [("tenant_id", 1), ("source_key", 1)],
            unique=True,
            name="tenant_key_unique"
        )

        # ==============================================
        # INBOUND DE-DUPLICATION
        # ==============================================
        await get_processed_messages_collection().create_index(
            "received_at",
            expireAfterSeconds=172800,  # 2 days
            name="received_ttl_idx"
        )

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Error creating indexes: {str(e)}", exc_info=True)
        raise
