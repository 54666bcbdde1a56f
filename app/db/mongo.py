"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collection accessors for tenants, principals, documents, ledger
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
                tz_aware=False,
            )
            _database = _client[settings.MONGODB_DB_NAME]

            await _client.admin.command("ping")

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def use_database(database: Optional[AsyncIOMotorDatabase]):
    """
    Installs an already-built database handle (tests, scripts).
    """
    global _database
    _database = database


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            return _database is not None

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_tenants_collection() -> AsyncIOMotorCollection:
    """
    Businesses, including dialog state.

    Fields: _id, name, currency, address, payment_terms_days, logo_url,
    vat_percent, invoice_prefix, quote_prefix, receipt_prefix, counters,
    package, subscription_status, trial_started_at, trial_ends_at,
    document_count_month, document_count_month_key, current_state,
    session, version, created_at, updated_at
    """
    return get_database()["tenants"]


def get_principals_collection() -> AsyncIOMotorCollection:
    """Role memberships: (tenant_id, phone) -> role, branch_id, pending."""
    return get_database()["principals"]


def get_bindings_collection() -> AsyncIOMotorCollection:
    """Active business pointer per phone (_id is the phone)."""
    return get_database()["active_bindings"]


def get_branches_collection() -> AsyncIOMotorCollection:
    return get_database()["branches"]


def get_clients_collection() -> AsyncIOMotorCollection:
    return get_database()["clients"]


def get_products_collection() -> AsyncIOMotorCollection:
    return get_database()["products"]


def get_documents_collection() -> AsyncIOMotorCollection:
    """Committed invoices, quotes and receipts."""
    return get_database()["documents"]


def get_payments_collection() -> AsyncIOMotorCollection:
    return get_database()["payments"]


def get_expenses_collection() -> AsyncIOMotorCollection:
    return get_database()["expenses"]


def get_processed_messages_collection() -> AsyncIOMotorCollection:
    """Inbound provider message ids already handled (_id is transport:message_id)."""
    return get_database()["processed_messages"]


def get_upgrade_requests_collection() -> AsyncIOMotorCollection:
    return get_database()["upgrade_requests"]
