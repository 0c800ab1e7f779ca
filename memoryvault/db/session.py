"""Database engine and session factory construction."""

import json

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _json_dumps(value) -> str:
    # Keep non-ASCII tags searchable with LIKE
    return json.dumps(value, ensure_ascii=False)


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create the async engine. SQLite connections get foreign key enforcement."""
    engine = create_async_engine(database_url, echo=echo, json_serializer=_json_dumps)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
