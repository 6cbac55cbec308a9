"""
Database connection configuration.
"""
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from config import settings
from exceptions import DatabaseError


def _engine_options(url: str) -> dict:
    # SQLite connections are opened per use rather than pooled
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_size": settings().db_pool_size,
        "max_overflow": settings().db_pool_max_overflow,
        "pool_pre_ping": True,
    }


DATABASE_URL = settings().database_url

engine = create_async_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


async def get_db():
    """
    Dependency to get a database session.

    Driver and ORM failures are rolled back and surface as DatabaseError.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError(f"Database operation failed: {e.__class__.__name__}") from e


async def init_db():
    """Initialize the database by creating all tables."""
    # Register the models on Base.metadata
    import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """Drop every table. Used by the test suite."""
    import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def ping_db(session: AsyncSession) -> None:
    """Run a trivial query to prove the connection works."""
    await session.execute(text("SELECT 1"))
