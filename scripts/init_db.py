"""
Database initialization script

Creates the ZimQuote indexes and prints what each collection ends up with:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are read
load_dotenv()

from app.core.logging import get_logger, setup_logging
from app.db.indexes import create_indexes
from app.db.mongo import close_mongo_connection, connect_to_mongo, get_database

logger = get_logger(__name__)

COLLECTIONS = [
    "tenants",
    "principals",
    "active_bindings",
    "branches",
    "clients",
    "products",
    "documents",
    "payments",
    "expenses",
    "processed_messages",
    "upgrade_requests",
]


async def main():
    await connect_to_mongo()
    try:
        await create_indexes()
        db = get_database()
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            logger.info(f"📋 {name}: {', '.join(sorted(indexes))}")
        logger.info("✅ Database ready")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
