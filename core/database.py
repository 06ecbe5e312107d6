# ============================================================
# nlql - Natural Language SQL Terminal
# core/database.py - Database gateway (Postgres, MySQL, SQLite)
# ============================================================
#
# All calls here are blocking driver calls. The session
# controller runs them through asyncio.to_thread under its
# connection lock; nothing in this module is async.
# ============================================================

import math
import os
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Any, Tuple, Iterable
from urllib.parse import SplitResult, urlsplit, unquote

import psycopg2
import mysql.connector
from mysql.connector import Error as MySQLError
from loguru import logger

from core.errors import ConnectionUrlError, DatabaseError

DRIVER_ERRORS = (sqlite3.Error, psycopg2.Error, MySQLError)

UNSUPPORTED = "<unsupported>"
TABLE_MARKER = "TABLE "


class Dialect(Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @property
    def display_name(self) -> str:
        return {
            Dialect.POSTGRES: "PostgreSQL",
            Dialect.MYSQL: "MySQL",
            Dialect.SQLITE: "SQLite",
        }[self]


SCHEMES = {
    "postgres": Dialect.POSTGRES,
    "postgresql": Dialect.POSTGRES,
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
    "sqlite": Dialect.SQLITE,
}


# ── Connection URL ────────────────────────────────────────────

@dataclass(frozen=True)
class ConnectionInfo:
    """What a connection URL points at, parsed without connecting."""
    url: str
    dialect: Dialect
    host: str
    database: str
    port: Optional[int] = None

    @classmethod
    def parse(cls, url: str) -> "ConnectionInfo":
        url = (url or "").strip()
        if not url:
            raise ConnectionUrlError("connection url is empty")

        dialect = detect_dialect(url)

        if dialect is Dialect.SQLITE:
            path = sqlite_path(url)
            if not path:
                raise ConnectionUrlError("sqlite url has no file path")
            name = path.rstrip("/").rsplit("/", 1)[-1] or path
            return cls(url=url, dialect=dialect, host="local", database=name)

        parts = urlsplit(url)
        port = parse_port(parts)
        host = parts.hostname or "localhost"
        database = unquote(parts.path.lstrip("/")) or "default"
        return cls(url=url, dialect=dialect, host=host, database=database, port=port)


def parse_port(parts: SplitResult) -> Optional[int]:
    """Port of a split URL, or None; anything outside 1-65535 is rejected."""
    try:
        port = parts.port
    except ValueError:
        port = 0
    if port == 0:
        raise ConnectionUrlError("port must be a number from 1 to 65535")
    return port


def detect_dialect(url: str) -> Dialect:
    """Dialect from the URL scheme; a bare path is treated as a SQLite file."""
    if "://" not in url:
        return Dialect.SQLITE
    scheme = url.split("://", 1)[0].lower()
    try:
        return SCHEMES[scheme]
    except KeyError:
        raise ConnectionUrlError(f"unsupported database scheme: {scheme}") from None


def sqlite_path(url: str) -> str:
    for prefix in ("sqlite://", "sqlite:"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    return url.split("?", 1)[0]


# ── Results ───────────────────────────────────────────────────

@dataclass
class QueryResult:
    """Rows come back already normalized to JSON-compatible values."""
    columns: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    row_count: int = 0
    affected_rows: int = 0
    elapsed_ms: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dict(self) -> dict:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "row_count": self.row_count,
            "affected_rows": self.affected_rows,
        }

    def __repr__(self):
        return f"<QueryResult rows={self.row_count} cols={len(self.columns)} time={self.elapsed_ms}ms>"


def normalize_value(value: Any) -> Any:
    """Coerce a driver value to str, int, float, bool or None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date, dtime)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return UNSUPPORTED


def format_schema(rows: Iterable[Tuple[str, str, str]]) -> str:
    """
    Render (table, column, type) rows, ordered by table, as
    TABLE blocks separated by blank lines.
    """
    blocks: List[str] = []
    current: Optional[str] = None
    lines: List[str] = []

    for table, column, dtype in rows:
        if table != current:
            if current is not None:
                blocks.append("\n".join(lines) + "\n)")
            current = table
            lines = [f"{TABLE_MARKER}{table} ("]
        lines.append(f"  {column} {dtype}")

    if current is not None:
        blocks.append("\n".join(lines) + "\n)")

    return "\n\n".join(blocks)


def count_tables(schema: str) -> int:
    return schema.count(TABLE_MARKER)


def format_explain(result: QueryResult) -> str:
    lines = []
    for row in result.rows:
        lines.append(" | ".join("NULL" if v is None else str(v) for v in row))
    return "\n".join(lines)


# ── Gateway ───────────────────────────────────────────────────

POSTGRES_SCHEMA_SQL = """
    SELECT table_name::text, column_name::text, data_type::text
    FROM information_schema.columns
    WHERE table_schema = 'public'
    ORDER BY table_name, ordinal_position
"""

MYSQL_SCHEMA_SQL = """
    SELECT table_name, column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = DATABASE()
    ORDER BY table_name, ordinal_position
"""

SQLITE_TABLES_SQL = (
    "SELECT name FROM sqlite_master "
    "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
)


class Database:
    """
    One open connection to a Postgres, MySQL or SQLite database.
    Use Database.connect(url); the constructor takes an already
    open DB-API connection.
    """

    def __init__(self, info: ConnectionInfo, connection):
        self.info = info
        self._connection = connection

    # ── Connection Management ─────────────────────────────────

    @classmethod
    def connect(cls, url: str) -> "Database":
        info = ConnectionInfo.parse(url)
        start = time.time()
        try:
            if info.dialect is Dialect.POSTGRES:
                connection = cls._connect_postgres(info.url)
            elif info.dialect is Dialect.MYSQL:
                connection = cls._connect_mysql(info.url)
            else:
                connection = cls._connect_sqlite(sqlite_path(info.url))
        except DRIVER_ERRORS as e:
            logger.error(f"{info.dialect.value} connection failed: {e}")
            raise DatabaseError(str(e).strip()) from e

        elapsed = int((time.time() - start) * 1000)
        logger.info(f"Connected to {info.dialect.value} at {info.host}/{info.database} ({elapsed}ms)")
        return cls(info, connection)

    @staticmethod
    def _connect_postgres(url: str):
        connection = psycopg2.connect(url, connect_timeout=30)
        connection.autocommit = True
        return connection

    @staticmethod
    def _connect_mysql(url: str):
        parts = urlsplit(url)
        params = {
            "host": parts.hostname or "localhost",
            "port": parse_port(parts) or 3306,
            "autocommit": True,
            "connection_timeout": 30,
        }
        if parts.username:
            params["user"] = unquote(parts.username)
        if parts.password:
            params["password"] = unquote(parts.password)
        database = parts.path.lstrip("/")
        if database:
            params["database"] = unquote(database)
        return mysql.connector.connect(**params)

    @staticmethod
    def _connect_sqlite(path: str):
        if path != ":memory:" and not os.path.exists(path):
            raise DatabaseError(f"database file not found: {path}")
        return sqlite3.connect(path, check_same_thread=False, isolation_level=None)

    def close(self):
        """Close the connection; errors are logged, not raised."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Disconnected from {self.info.dialect.value} {self.info.database}")
        except DRIVER_ERRORS as e:
            logger.warning(f"Error during disconnect: {e}")
        finally:
            self._connection = None

    @property
    def dialect(self) -> Dialect:
        return self.info.dialect

    @property
    def dialect_name(self) -> str:
        return self.info.dialect.value

    @property
    def host(self) -> str:
        return self.info.host

    @property
    def database(self) -> str:
        return self.info.database

    @property
    def url(self) -> str:
        return self.info.url

    # ── Query Execution ───────────────────────────────────────

    def _cursor(self):
        if self._connection is None:
            raise DatabaseError("connection is closed")
        if self.info.dialect is Dialect.MYSQL:
            return self._connection.cursor(buffered=True)
        return self._connection.cursor()

    def _fetch(self, sql: str, params: tuple = ()) -> Tuple[List[str], List[tuple], int]:
        cursor = self._cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            if cursor.description:
                columns = [str(desc[0]) for desc in cursor.description]
                return columns, list(cursor.fetchall()), 0
            return [], [], max(cursor.rowcount, 0)
        finally:
            cursor.close()

    def execute(self, sql: str) -> QueryResult:
        """Run one statement and return normalized rows."""
        start = time.time()
        try:
            columns, raw_rows, affected = self._fetch(sql)
        except DRIVER_ERRORS as e:
            logger.error(f"Query failed: {e}\nQuery: {sql}")
            raise DatabaseError(str(e).strip()) from e

        rows = [[normalize_value(v) for v in row] for row in raw_rows]
        elapsed = int((time.time() - start) * 1000)
        logger.debug(f"Query OK rows={len(rows)} affected={affected} ({elapsed}ms)")
        return QueryResult(
            columns=columns,
            rows=rows,
            row_count=len(rows),
            affected_rows=affected,
            elapsed_ms=elapsed,
        )

    def explain(self, sql: str) -> str:
        """Query plan of a statement, one row per line."""
        keyword = "EXPLAIN QUERY PLAN" if self.info.dialect is Dialect.SQLITE else "EXPLAIN"
        return format_explain(self.execute(f"{keyword} {sql}"))

    # ── Schema Introspection ──────────────────────────────────

    def schema(self) -> str:
        """Table/column listing used as generation context."""
        try:
            if self.info.dialect is Dialect.SQLITE:
                rows = self._sqlite_columns()
            else:
                sql = POSTGRES_SCHEMA_SQL if self.info.dialect is Dialect.POSTGRES else MYSQL_SCHEMA_SQL
                _, rows, _ = self._fetch(sql)
        except DRIVER_ERRORS as e:
            logger.error(f"Schema introspection failed: {e}")
            raise DatabaseError(str(e).strip()) from e

        schema = format_schema((str(t), str(c), str(d)) for t, c, d in rows)
        logger.info(f"Schema loaded: {count_tables(schema)} tables")
        return schema

    def _sqlite_columns(self) -> List[Tuple[str, str, str]]:
        _, tables, _ = self._fetch(SQLITE_TABLES_SQL)
        rows = []
        for (table,) in tables:
            quoted = table.replace('"', '""')
            _, columns, _ = self._fetch(f'PRAGMA table_info("{quoted}")')
            for _cid, name, dtype, *_rest in columns:
                rows.append((table, name, dtype or ""))
        return rows

    def __repr__(self):
        return f"<Database {self.dialect_name} {self.host}/{self.database}>"
