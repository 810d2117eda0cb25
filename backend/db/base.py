from db.session import Base, engine
from db.models.account import AccountModel  # noqa: F401  registers the table
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

async def initialize_database(bind: Optional[AsyncEngine] = None):
    """Create tables only."""
    bind = bind or engine
    try:
        assert isinstance(bind, AsyncEngine)
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise e
