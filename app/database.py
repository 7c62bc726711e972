"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

Architecture note:
  SQLite (via aiosqlite) is the default so the gateway runs with no external
  services. Moving to PostgreSQL only needs a DATABASE_URL change (asyncpg
  driver).

  SQLite has no row locks, so on SQLite every transaction opens with
  BEGIN IMMEDIATE and holds the database write lock from its first read.
  Two operations on the same transaction therefore run one after the other,
  and the second validates against what the first committed.

Session lifecycle:
  Each API request gets its own session via get_db(). The store commits its
  own writes at the end of each atomic block; get_db() commits anything left
  over on success and rolls back on exception.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)


def use_immediate_transactions(async_engine: AsyncEngine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE. No-op on other backends.

    The driver's own BEGIN is turned off and SQLAlchemy's "begin" event emits
    ours instead, so the write lock is taken before the first SELECT rather
    than at the first INSERT.
    """
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


use_immediate_transactions(engine)

# expire_on_commit=False prevents lazy-load errors after commit: accessing
# attributes on a committed object would otherwise trigger a synchronous
# DB call, which fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.post("/capture")
        async def capture(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
