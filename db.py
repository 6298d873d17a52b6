# db.py
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Iterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import event, insert, select
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from core.asset_types import (
    LINK_TYPE_NAMES,
    MONITORED_SUBTYPES,
    SUBTYPE_NAMES,
    TYPE_NAMES,
)
from core.errors import AssetError, ConflictError, InternalError, NotFoundError
from db_base import Base

logger = logging.getLogger(__name__)


# ---------- Row Store ----------

def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class RowStore:
    """
    Typed query/execute wrapper over one async connection.

    Statement construction belongs to the callers; this class only runs
    statements, shapes their results and turns driver exceptions into
    ``AssetError`` subclasses.
    """

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    @property
    def dialect_name(self) -> str:
        return self._conn.dialect.name

    def _wrap(self, exc: SQLAlchemyError, key: str | None) -> AssetError:
        message = _driver_message(exc)
        logger.error("database error (key=%s): %s", key, message)
        if isinstance(exc, IntegrityError):
            return ConflictError(message, key=key)
        return InternalError(message, key=key)

    async def _run(self, stmt, key: str | None):
        try:
            return await self._conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise self._wrap(exc, key) from exc

    async def execute(self, stmt, key: str | None = None) -> int:
        """Run a write statement and return the number of affected rows."""
        result = await self._run(stmt, key)
        return max(result.rowcount, 0)

    async def insert(self, stmt, key: str | None = None) -> int:
        """Run a single-row insert and return the generated id."""
        result = await self._run(stmt, key)
        pk = result.inserted_primary_key
        if pk is not None and pk[0] is not None:
            return int(pk[0])
        return int(result.lastrowid)

    async def select(self, stmt, key: str | None = None) -> Iterator[Row]:
        """Rows of a query as a single-pass iterator."""
        result = await self._run(stmt, key)
        return iter(result)

    async def select_row(self, stmt, key: str | None = None) -> Row:
        """First row of a query; ``NotFoundError`` when there is none."""
        result = await self._run(stmt, key)
        row = result.first()
        if row is None:
            raise NotFoundError(key=key)
        return row

    async def select_value(self, stmt, key: str | None = None) -> Any:
        row = await self.select_row(stmt, key)
        return row[0]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["RowStore"]:
        """
        Run the enclosed block in one transaction.

        Commits when the block completes and rolls back on any exception.
        Reads issued earlier on the same connection are closed out first.
        """
        try:
            if self._conn.in_transaction():
                await self._conn.commit()
            async with self._conn.begin():
                yield self
        except SQLAlchemyError as exc:
            raise self._wrap(exc, None) from exc


# ---------- Engine & connection factory (async) ----------

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_memory_url(url: str) -> bool:
    database = url.split("://", 1)[-1].lstrip("/")
    return database in ("", ":memory:")


class ConnectionFactory:
    """Owns the engine for the life of the process and hands out Row Stores."""

    def __init__(self, url: str, echo: bool = False):
        if not url:
            raise RuntimeError("DATABASE_URL is not configured")
        kwargs: dict[str, Any] = {"echo": echo, "future": True}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite and _is_memory_url(url):
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        self.engine: AsyncEngine = create_async_engine(url, **kwargs)
        if is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[RowStore]:
        async with self.engine.connect() as conn:
            yield RowStore(conn)

    async def dispose(self) -> None:
        await self.engine.dispose()


# ---------- Schema init helper (dev and tests) ----------

def _dictionary_rows() -> list[tuple[type, list[dict]]]:
    import db_models

    return [
        (db_models.AssetElementType, [{"id": int(t), "name": n} for t, n in TYPE_NAMES.items()]),
        (db_models.AssetDeviceType, [{"id": int(s), "name": n} for s, n in SUBTYPE_NAMES.items()]),
        (db_models.AssetLinkType, [{"id": int(t), "name": n} for t, n in LINK_TYPE_NAMES.items()]),
        (
            db_models.MonitorDeviceType,
            [{"id": i, "name": SUBTYPE_NAMES[s]} for i, s in enumerate(MONITORED_SUBTYPES, start=1)],
        ),
    ]


async def seed_dictionaries(conn: AsyncConnection) -> None:
    """Insert the type dictionaries that are not present yet."""
    for model, rows in _dictionary_rows():
        result = await conn.execute(select(model.id))
        existing = {row[0] for row in result}
        missing = [row for row in rows if row["id"] not in existing]
        if missing:
            await conn.execute(insert(model), missing)


async def init_db(engine: AsyncEngine) -> None:
    """
    Create tables from ORM metadata and seed the dictionaries.

    In production, prefer Alembic migrations.
    """
    # Import models so they are registered on Base.metadata
    import db_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await seed_dictionaries(conn)


# ---------- FastAPI dependency ----------

async def get_store(request: Request) -> AsyncGenerator[RowStore, None]:
    """Provide a Row Store bound to a fresh connection."""
    factory: ConnectionFactory = request.app.state.connections
    async with factory.connect() as store:
        yield store
