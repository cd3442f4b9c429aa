# smas/infrastructure/database.py
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy.ext.asyncio.engine import create_async_engine, AsyncEngine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from smas.config import DATABASE_URL

logger = structlog.get_logger(__name__)

engine: AsyncEngine = create_async_engine(DATABASE_URL, echo=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    # table classes register on SQLModel.metadata when imported
    from smas.accounts import models as _account_models  # noqa: F401
    from smas.models import contribution, credential, playlist, sharing_link  # noqa: F401

    async with bind.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    logger.info("db_initialized")


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
