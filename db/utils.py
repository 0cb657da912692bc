"""Shared helpers for working with the game store database."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence
from urllib.parse import unquote, urlparse

from flask import g, has_app_context
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

# MySQL server error numbers surfaced by PyMySQL as ``exc.args[0]``.
MYSQL_DUPLICATE_ENTRY = 1062
MYSQL_ROW_IS_REFERENCED = frozenset({1217, 1451})


class _DBRow(Mapping[str, Any]):
    """Lightweight row wrapper supporting mapping-style access."""

    __slots__ = ("_columns", "_values", "_mapping")

    def __init__(self, columns: Sequence[str], values: Sequence[Any]):
        self._columns = list(columns)
        self._values = list(values)
        self._mapping = dict(zip(self._columns, self._values))

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, int):
            return self._values[key]
        return self._mapping[key]

    def get(self, key: str, default: Any | None = None) -> Any | None:
        return self._mapping.get(key, default)

    def keys(self) -> Sequence[str]:
        return list(self._columns)

    def __iter__(self):
        return iter(self._columns)

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._columns)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"_DBRow({self._mapping!r})"


class _CursorWrapper:
    """Thin wrapper normalizing DB-API cursor behaviour."""

    def __init__(self, cursor: Any):
        self._cursor = cursor
        description = cursor.description or []
        self._columns = [col[0] for col in description]

    def _wrap_row(self, values: Sequence[Any]) -> _DBRow:
        return _DBRow(self._columns, values)

    def fetchone(self) -> _DBRow | None:
        row = self._cursor.fetchone()
        if row is None:
            return None
        return self._wrap_row(row)

    def fetchall(self) -> list[_DBRow]:
        rows = self._cursor.fetchall()
        return [self._wrap_row(row) for row in rows]

    def close(self) -> None:
        self._cursor.close()

    @property
    def rowcount(self) -> int:  # pragma: no cover - passthrough
        return getattr(self._cursor, "rowcount", -1)

    @property
    def lastrowid(self) -> Any:  # pragma: no cover - passthrough
        return getattr(self._cursor, "lastrowid", None)

    def __getattr__(self, item):  # pragma: no cover - passthrough
        return getattr(self._cursor, item)


class DatabaseEngine:
    """Holds the process-wide SQLAlchemy engine and its connection pool."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Return the underlying SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""

        return self._engine


class DatabaseHandle:
    """Per-request proxy holding one pooled DB-API connection.

    SQL is written with ``?`` placeholders and rewritten for drivers using the
    ``format``/``pyformat`` paramstyle.
    """

    def __init__(self, engine: DatabaseEngine):
        self._engine_wrapper = engine
        self._connection: Any | None = None

    @property
    def engine(self) -> Engine:
        return self._engine_wrapper.engine

    def _get_connection(self) -> Any:
        if self._connection is None:
            self._connection = self._engine_wrapper.engine.raw_connection()
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self) -> Iterator["DatabaseHandle"]:
        """Commit statements executed inside the block, or roll them all back."""

        conn = self._get_connection()
        try:
            yield self
        except Exception:
            conn.rollback()
            raise
        conn.commit()

    def _normalize_sql(self, sql: str) -> str:
        dialect = self.engine.dialect
        paramstyle = getattr(dialect, "paramstyle", "qmark")
        if paramstyle in {"format", "pyformat"} and "?" in sql:
            return sql.replace("?", "%s")
        return sql

    def _wrap_cursor(self, cursor: Any):
        if getattr(cursor, "description", None) is None:
            return cursor
        return _CursorWrapper(cursor)

    def execute(
        self,
        sql: str,
        parameters: Sequence[Any] | Mapping[str, Any] | None = None,
    ):
        conn = self._get_connection()
        if isinstance(conn.dbapi_connection, sqlite3.Connection):
            return conn.execute(sql, parameters or ())

        cursor = conn.cursor()
        try:
            cursor.execute(self._normalize_sql(sql), parameters or ())
        except Exception:
            cursor.close()
            raise
        return self._wrap_cursor(cursor)


_fallback_connection: DatabaseHandle | DatabaseEngine | None = None


def set_fallback_connection(conn: DatabaseHandle | DatabaseEngine | None) -> None:
    """Configure the engine used when routes ask for a database handle."""

    global _fallback_connection
    _fallback_connection = conn


def _configure_sqlite_connection(conn: Any, *, busy_timeout: float | None = None) -> Any:
    """Apply timeout tuning and foreign-key enforcement to SQLite connections."""

    if not isinstance(conn, sqlite3.Connection):
        return conn

    busy_timeout_ms = None
    if busy_timeout is not None:
        busy_timeout_ms = int(max(busy_timeout, 0) * 1000)
        if busy_timeout_ms <= 0:
            busy_timeout_ms = None

    pragmas: tuple[tuple[str, str | int | None, bool], ...] = (
        ("foreign_keys", "ON", False),
        ("busy_timeout", busy_timeout_ms, False),
        ("journal_mode", "WAL", True),
    )

    for name, value, fetch_result in pragmas:
        if value is None:
            continue
        try:
            cursor = conn.execute(f"PRAGMA {name}={value}")
            if fetch_result:
                cursor.fetchone()
        except sqlite3.OperationalError:  # pragma: no cover - best effort only
            continue

    return conn


def _resolve_sqlite_path_from_dsn(dsn: str) -> str:
    """Extract a filesystem path from a ``sqlite:///`` DSN string."""

    parsed = urlparse(dsn)
    if parsed.scheme != "sqlite":
        raise ValueError(f"Unsupported DSN scheme for SQLite resolver: {parsed.scheme}")

    path = unquote(parsed.path or "")
    if parsed.netloc and parsed.netloc not in {"", "localhost"}:
        path = f"//{parsed.netloc}{path}"

    if not path:
        raise ValueError("SQLite DSN must include a filesystem path")

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = candidate.resolve()
    return os.fspath(candidate)


def build_engine_from_dsn(
    dsn: str,
    *,
    timeout: float | None = None,
    pool_size: int = 10,
    pool_recycle: int = 1_800,
    pool_pre_ping: bool = True,
) -> DatabaseEngine:
    """Return a :class:`DatabaseEngine` configured from ``dsn``."""

    parsed = urlparse(dsn)
    connect_args: dict[str, object] = {}
    effective_timeout = timeout if timeout is not None else 5.0
    dialect_name = parsed.scheme.split("+", 1)[0]

    if dialect_name == "sqlite":
        normalized_dsn = f"sqlite:///{_resolve_sqlite_path_from_dsn(dsn)}"
        connect_args["check_same_thread"] = False
    else:
        normalized_dsn = dsn
        if dialect_name in {"mysql", "mariadb"}:
            connect_args["connect_timeout"] = max(int(effective_timeout), 1)

    engine = create_engine(
        normalized_dsn,
        pool_size=pool_size,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        connect_args=connect_args,
    )

    if dialect_name == "sqlite":

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_conn, connection_record):  # type: ignore[override]
            dbapi_conn.row_factory = sqlite3.Row
            _configure_sqlite_connection(dbapi_conn, busy_timeout=effective_timeout)

    return DatabaseEngine(engine)


def get_db(
    connection_factory: Callable[[], DatabaseHandle | DatabaseEngine] | None = None,
    *,
    context_key: str = 'db',
) -> DatabaseHandle:
    """Return the request's :class:`DatabaseHandle`, creating one if necessary."""

    def _coerce_handle(value: DatabaseHandle | DatabaseEngine) -> DatabaseHandle:
        if isinstance(value, DatabaseHandle):
            return value
        if isinstance(value, DatabaseEngine):
            return DatabaseHandle(value)
        raise TypeError('connection_factory must return DatabaseHandle or DatabaseEngine')

    def _new_handle() -> DatabaseHandle:
        if connection_factory is not None:
            return _coerce_handle(connection_factory())
        if _fallback_connection is None:
            raise RuntimeError('Database connection is not configured')
        return _coerce_handle(_fallback_connection)

    if not has_app_context():
        return _new_handle()

    if not hasattr(g, context_key):
        setattr(g, context_key, _new_handle())
    return getattr(g, context_key)


def close_db(context_key: str = 'db') -> None:
    """Return the request's pooled connection, if one was checked out."""

    handle = g.pop(context_key, None)
    if handle is not None:
        handle.close()


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert a ``sqlite3.Row`` or :class:`_DBRow` into a plain dict."""

    return {key: row[key] for key in row.keys()}


def _driver_error_code(exc: BaseException) -> int | None:
    args = getattr(exc, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_duplicate_key_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` reports a unique-constraint violation."""

    if _driver_error_code(exc) == MYSQL_DUPLICATE_ENTRY:
        return True
    return isinstance(exc, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(exc)


def is_row_referenced_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` reports a delete blocked by a foreign key."""

    if _driver_error_code(exc) in MYSQL_ROW_IS_REFERENCED:
        return True
    return (
        isinstance(exc, sqlite3.IntegrityError)
        and "FOREIGN KEY constraint failed" in str(exc)
    )


__all__ = [
    "DatabaseEngine",
    "DatabaseHandle",
    "build_engine_from_dsn",
    "close_db",
    "get_db",
    "is_duplicate_key_error",
    "is_row_referenced_error",
    "row_to_dict",
    "set_fallback_connection",
]
