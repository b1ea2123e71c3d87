from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.config import settings
from app.logger.logger import get_logger

logger = get_logger("db")

async_engine = create_async_engine(
    settings.DB_URL,
    echo=settings.DB_ECHO,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    # ledger locks must never be taken on a dead pooled connection
    pool_pre_ping=True,
    connect_args={"server_settings": {"application_name": settings.APP_NAME}},
)

# Objects stay readable after commit; the ledger and the publish sweep commit
# per unit of work and keep using the rows they just wrote.
SessionLocal = sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def init_db() -> None:
    import app.models  # noqa: F401  registers the tables on the metadata

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables are in place")


async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Rolling back request session: {e}")
            await session.rollback()
            raise
