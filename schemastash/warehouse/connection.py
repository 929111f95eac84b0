"""
Async SQL connections for PostgreSQL (psycopg3 pool) and SQLite (aiosqlite)

Both implementations expose the same small surface so the cache engine and
the relational JSON database are engine-agnostic. Queries are written with
"%s" placeholders; the SQLite connection rewrites them to "?".
"""
import asyncio
import sqlite3
from abc import ABC, abstractmethod

import aiosqlite
from psycopg import Error as PsycopgError
from psycopg import OperationalError
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from schemastash.config import MEMORY, StashConfig
from schemastash.core.errors import ConfigurationError
from schemastash.observability.logger import get_logger

logger = get_logger(__name__)

# Driver and pool failures, for callers that report errors instead of raising
STORAGE_ERRORS = (sqlite3.Error, PsycopgError, PoolTimeout)


def quote_identifier(name: str) -> str:
    """Double-quote a table or column name (both engines keep case when quoted)."""
    return '"' + name.replace('"', '""') + '"'


class AsyncSqlConnection(ABC):
    """
    Async SQL connection interface.

    Attributes:
        dialect: "postgres" or "sqlite"
        primary_key_type: Column type of an auto-increment integer primary key
        float_type: Column type for JSON Schema "number"
    """

    dialect: str
    primary_key_type: str
    float_type: str

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def execute_query(self, query: str, params: tuple | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results

        Returns:
            List of dictionaries (one per row)
        """
        pass

    @abstractmethod
    async def execute_command(self, command: str, params: tuple | None = None) -> int:
        """
        Execute an INSERT/UPDATE/DELETE/DDL command and commit

        Returns:
            Number of rows affected
        """
        pass

    @abstractmethod
    async def insert_returning_id(self, command: str, params: tuple | None = None) -> int | None:
        """
        Execute an INSERT and return the new row's id

        Returns:
            The id, or None when nothing was inserted (ON CONFLICT DO NOTHING)
        """
        pass

    @abstractmethod
    async def table_exists(self, table_name: str) -> bool:
        pass

    @staticmethod
    @abstractmethod
    def is_unique_violation(exc: BaseException) -> bool:
        """True when exc is this engine's unique-constraint violation."""
        pass

    async def __aenter__(self) -> "AsyncSqlConnection":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class PostgresConnectionPool(AsyncSqlConnection):
    """
    PostgreSQL connection pool manager using psycopg3

    Provides efficient connection pooling with automatic reconnection
    and connection lifecycle management.
    """

    dialect = "postgres"
    primary_key_type = "SERIAL PRIMARY KEY"
    float_type = "DOUBLE PRECISION"

    def __init__(
        self,
        conninfo: str,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            conninfo: libpq connection string
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Connection timeout in seconds
        """
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self._pool: AsyncConnectionPool | None = None

    async def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = AsyncConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                await pool.open(wait=True, timeout=self.timeout)
            except (OperationalError, PoolTimeout) as e:
                await pool.close()
                if attempt == max_retries:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e
                logger.warning(
                    "Database connection attempt failed",
                    extra={"attempt": attempt, "error_message": str(e)},
                )
                await asyncio.sleep(retry_delay)
            else:
                self._pool = pool
                return

    async def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    def _require_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")
        return self._pool

    async def execute_query(self, query: str, params: tuple | None = None) -> list[dict]:
        async with self._require_pool().connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def execute_command(self, command: str, params: tuple | None = None) -> int:
        async with self._require_pool().connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(command, params)
                rowcount = cur.rowcount
            await conn.commit()
            return rowcount

    async def insert_returning_id(self, command: str, params: tuple | None = None) -> int | None:
        async with self._require_pool().connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"{command} RETURNING id", params)
                row = await cur.fetchone()
            await conn.commit()
            return row["id"] if row else None

    async def table_exists(self, table_name: str) -> bool:
        rows = await self.execute_query(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s",
            (table_name,),
        )
        return bool(rows)

    @staticmethod
    def is_unique_violation(exc: BaseException) -> bool:
        return isinstance(exc, pg_errors.UniqueViolation)


class SqliteConnection(AsyncSqlConnection):
    """
    SQLite connection using aiosqlite

    A single connection is shared; commands are serialized with a lock so
    one statement and its commit never interleave with another's.
    """

    dialect = "sqlite"
    primary_key_type = "INTEGER PRIMARY KEY AUTOINCREMENT"
    float_type = "REAL"

    def __init__(self, path: str = MEMORY) -> None:
        self.path = path
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        if self._conn is not None:
            return
        conn = await aiosqlite.connect(self.path)
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.commit()
        except sqlite3.Error:
            await conn.close()
            raise
        self._conn = conn

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite connection is not open. Call open() first.")
        return self._conn

    @staticmethod
    def _adapt(query: str) -> str:
        return query.replace("%s", "?")

    async def execute_query(self, query: str, params: tuple | None = None) -> list[dict]:
        conn = self._require_conn()
        async with self._lock:
            async with conn.execute(self._adapt(query), params or ()) as cur:
                rows = await cur.fetchall()
        return [dict(row) for row in rows]

    async def execute_command(self, command: str, params: tuple | None = None) -> int:
        conn = self._require_conn()
        async with self._lock:
            try:
                async with conn.execute(self._adapt(command), params or ()) as cur:
                    rowcount = cur.rowcount
                await conn.commit()
            except sqlite3.Error:
                await conn.rollback()
                raise
        return rowcount

    async def insert_returning_id(self, command: str, params: tuple | None = None) -> int | None:
        conn = self._require_conn()
        async with self._lock:
            try:
                async with conn.execute(self._adapt(command), params or ()) as cur:
                    inserted = cur.rowcount > 0
                    row_id = cur.lastrowid
                await conn.commit()
            except sqlite3.Error:
                await conn.rollback()
                raise
        return row_id if inserted else None

    async def table_exists(self, table_name: str) -> bool:
        rows = await self.execute_query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = %s",
            (table_name,),
        )
        return bool(rows)

    @staticmethod
    def is_unique_violation(exc: BaseException) -> bool:
        return isinstance(exc, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(exc)


def create_sql_connection(config: StashConfig) -> AsyncSqlConnection:
    """
    Build the (unopened) SQL connection selected by the configuration.

    Raises:
        ConfigurationError: If PostgreSQL is selected without a password
    """
    if config.uses_postgres:
        return PostgresConnectionPool(
            conninfo=config.postgres_conninfo,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            timeout=config.pool_timeout,
        )
    if config.sql_engine == "sqlite":
        return SqliteConnection(config.sqlite_path)
    raise ConfigurationError(f"unsupported SQL engine: {config.sql_engine}")
