"""Async SQLAlchemy engine, session factory, and FastAPI dependency.

Import this module (and ``db_models``) before calling ``create_tables()``
so that all ORM models are registered with ``Base.metadata``.

SQLite connections switch on ``PRAGMA foreign_keys`` so that the
``ON DELETE CASCADE`` / ``SET NULL`` rules declared in the schema are
enforced by the database itself.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import DATA_DIR, settings

_is_sqlite = settings.database_url.startswith("sqlite")

if _is_sqlite:
    DATA_DIR.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    # One connection per session; aiosqlite connections are bound to the
    # event loop that opened them.
    **({"poolclass": NullPool} if _is_sqlite else {}),
)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine, expire_on_commit=False
)


if _is_sqlite:

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""

    pass


async def create_tables() -> None:
    """Create all database tables that do not yet exist.

    Must be called after all ORM models have been imported so that
    ``Base.metadata`` contains every table definition.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    """Drop every table known to ``Base.metadata`` (used by the test suite)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a scoped async database session.

    Usage::

        async def my_endpoint(db: AsyncSession = Depends(get_db)) -> ...:
    """
    async with AsyncSessionLocal() as session:
        yield session
