import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from dreamlog.db.base import Base

logger = logging.getLogger(__name__)


async def init_models(engine: AsyncEngine, drop: bool = False) -> None:
    # Importing the models registers their tables on Base.metadata
    from dreamlog import models  # noqa: F401

    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping all tables before create")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
