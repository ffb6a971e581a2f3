from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    event,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import Settings, settings as default_settings
from .errors import ConflictError, LedgerError, NotFoundError, StorageError
from .store import TABLES, InMemoryStore

logger = logging.getLogger(__name__)

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

categories_table = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("is_custom", Boolean, nullable=False, default=False),
    Column("owner_id", Integer, ForeignKey("users.id"), nullable=True),
)

records_table = Table(
    "records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("amount", Float, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("idx_categories_owner", categories_table.c.owner_id)
Index("idx_records_user", records_table.c.user_id, records_table.c.created_at)
Index("idx_records_category", records_table.c.category_id, records_table.c.created_at)

SQL_TABLES: dict[str, Table] = {
    "users": users_table,
    "categories": categories_table,
    "records": records_table,
}


def _check_table(table: str) -> str:
    if table not in TABLES:
        raise ValueError(f"unknown table: {table}")
    return table


class UnitOfWork:
    """Repository operations bound to one transaction.

    Rows are plain dicts keyed by column name. ``criteria`` match by equality,
    ``None`` matches a null column. ``for_update`` locks the row until the
    transaction ends where the backend supports row locks.
    """

    def find_by_id(self, table: str, entity_id: int, for_update: bool = False) -> dict[str, Any] | None:
        raise NotImplementedError

    def find_where(self, table: str, **criteria: Any) -> list[dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def delete(self, table: str, entity_id: int) -> bool:
        raise NotImplementedError

    def delete_where(self, table: str, **criteria: Any) -> int:
        raise NotImplementedError


class Persistence:
    def transaction(self) -> Any:
        """Context manager yielding a UnitOfWork; commits on exit, rolls back on error."""
        raise NotImplementedError

    def debug_counts(self) -> dict[str, int]:
        with self.transaction() as uow:
            return {table: len(uow.find_where(table)) for table in TABLES}


class InMemoryUnitOfWork(UnitOfWork):
    """Works on the live tables and keeps an undo log of its own writes."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.undo: list[tuple[str, str, int, dict[str, Any] | None]] = []
        self.saved_ids: dict[str, int] | None = None

    def _rows(self, table: str) -> dict[int, dict[str, Any]]:
        return self.store.tables[_check_table(table)]

    def rollback(self) -> None:
        for action, table, entity_id, row in reversed(self.undo):
            rows = self.store.tables[table]
            if action == "insert":
                rows.pop(entity_id, None)
            else:
                rows[entity_id] = row
        if self.saved_ids is not None:
            self.store.next_ids = self.saved_ids
        self.undo.clear()

    def find_by_id(self, table: str, entity_id: int, for_update: bool = False) -> dict[str, Any] | None:
        row = self._rows(table).get(entity_id)
        return dict(row) if row is not None else None

    def find_where(self, table: str, **criteria: Any) -> list[dict[str, Any]]:
        rows = self._rows(table)
        return [
            dict(rows[key])
            for key in sorted(rows)
            if all(rows[key].get(column) == value for column, value in criteria.items())
        ]

    def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        rows = self._rows(table)
        if self.saved_ids is None:
            self.saved_ids = dict(self.store.next_ids)
        entity_id = self.store.make_id(table)
        row = {"id": entity_id, **values}
        rows[entity_id] = row
        self.undo.append(("insert", table, entity_id, None))
        return dict(row)

    def delete(self, table: str, entity_id: int) -> bool:
        row = self._rows(table).pop(entity_id, None)
        if row is None:
            return False
        self.undo.append(("delete", table, entity_id, row))
        return True

    def delete_where(self, table: str, **criteria: Any) -> int:
        rows = self._rows(table)
        hits = [key for key, row in rows.items() if all(row.get(column) == value for column, value in criteria.items())]
        for key in hits:
            self.undo.append(("delete", table, key, rows.pop(key)))
        return len(hits)


class InMemoryPersistence(Persistence):
    def __init__(self, store: InMemoryStore | None = None) -> None:
        self.store = store or InMemoryStore()

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        # The lock is held for the whole unit so readers never see a half-applied cascade.
        with self.store.lock:
            uow = InMemoryUnitOfWork(self.store)
            try:
                yield uow
            except BaseException:
                uow.rollback()
                raise


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    @staticmethod
    def _table(table: str) -> Table:
        return SQL_TABLES[_check_table(table)]

    @staticmethod
    def _clauses(table: Table, criteria: dict[str, Any]) -> list[Any]:
        clauses = []
        for column, value in criteria.items():
            col = table.c[column]
            clauses.append(col.is_(None) if value is None else col == value)
        return clauses

    def find_by_id(self, table: str, entity_id: int, for_update: bool = False) -> dict[str, Any] | None:
        t = self._table(table)
        stmt = select(t).where(t.c.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def find_where(self, table: str, **criteria: Any) -> list[dict[str, Any]]:
        t = self._table(table)
        stmt = select(t).where(*self._clauses(t, criteria)).order_by(t.c.id)
        return [dict(row) for row in self.conn.execute(stmt).mappings().all()]

    def insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        result = self.conn.execute(insert(t).values(**values).returning(*t.c))
        return dict(result.mappings().one())

    def delete(self, table: str, entity_id: int) -> bool:
        t = self._table(table)
        result = self.conn.execute(delete(t).where(t.c.id == entity_id))
        return result.rowcount > 0

    def delete_where(self, table: str, **criteria: Any) -> int:
        t = self._table(table)
        result = self.conn.execute(delete(t).where(*self._clauses(t, criteria)))
        return result.rowcount


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _translate_integrity_error(exc: IntegrityError) -> LedgerError:
    # PostgreSQL reports a SQLSTATE, SQLite only a message
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    message = str(exc.orig).lower()
    if sqlstate == "23503" or "foreign key" in message:
        return NotFoundError("Referenced entity does not exist")
    if sqlstate == "23505" or "unique" in message:
        return ConflictError("write conflicts with existing data")
    logger.exception("integrity violation")
    return StorageError(f"database error: {exc.__class__.__name__}")


class SqlPersistence(Persistence):
    def __init__(self, database_url: str) -> None:
        self.engine: Engine = create_engine(database_url, future=True, pool_pre_ping=True)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.exception("schema creation failed")
            raise StorageError(f"database error: {exc.__class__.__name__}") from exc

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        try:
            with self.engine.begin() as conn:
                yield SqlUnitOfWork(conn)
        except IntegrityError as exc:
            raise _translate_integrity_error(exc) from exc
        except SQLAlchemyError as exc:
            logger.exception("database transaction failed")
            raise StorageError(f"database error: {exc.__class__.__name__}") from exc

    def dispose(self) -> None:
        self.engine.dispose()


def get_persistence(config: Settings | None = None) -> Persistence:
    config = config or default_settings
    if config.storage_backend in {"sql", "postgres"}:
        return SqlPersistence(config.database_url)
    return InMemoryPersistence()
