import logging
from chatline.core.config import settings
from .mysql import init_mysql_db, close_mysql_db, check_mysql_connection
from .mongodb import init_mongodb, close_mongo_connection, check_mongo_connection

logger = logging.getLogger(__name__)


def uses_mongo() -> bool:
    return settings.message_store == "mongo"


async def init_databases():
    """Initialize MySQL and, for the mongo message store, MongoDB"""
    try:
        await init_mysql_db()
        logger.info("MySQL initialization completed")

        if uses_mongo():
            await init_mongodb()
            logger.info("MongoDB initialization completed")

        logger.info("All databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    try:
        await close_mysql_db()
        await close_mongo_connection()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


async def check_database_health():
    """Check health of all database connections"""
    mysql_status = await check_mysql_connection()
    mongo_status = await check_mongo_connection() if uses_mongo() else None

    return {
        "mysql": mysql_status,
        "mongodb": mongo_status,
        "overall": mysql_status and mongo_status is not False
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health"
]
