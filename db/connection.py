"""
db/connection.py
----------------
Manages the PostgreSQL connection pool behind an explicit handle.

A ConnectionHandle is opened from a resolved DBConfig, used for a unit
of work and closed again. It wraps psycopg2's ThreadedConnectionPool and
adds what that pool lacks: callers beyond the connection ceiling block
instead of failing, and connections are retired after a maximum
lifetime.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Iterator, NamedTuple, Optional, Sequence

import psycopg2
from psycopg2 import extras, pool
from psycopg2.extensions import make_dsn

from db.errors import HandleClosedError, StoreError
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DBConfig:
    """
    Resolved connection settings.

    Attributes:
        host, port, user, password, dbname: libpq connection parameters.
        max_open_conns: Ceiling on simultaneously checked-out connections.
        max_idle_conns: Connections kept open while idle.
        conn_max_lifetime: Seconds after which a connection is retired.
        connect_timeout: Seconds libpq waits when establishing a connection.
    """
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    dbname: str = "postgres"
    max_open_conns: int = 25
    max_idle_conns: int = 5
    conn_max_lifetime: float = 300.0
    connect_timeout: int = 5

    def dsn(self) -> str:
        """Build the libpq connection string."""
        return make_dsn(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password or None,
            dbname=self.dbname,
            connect_timeout=self.connect_timeout,
        )


class ExecResult(NamedTuple):
    """Outcome of a statement run through `exec`."""
    rowcount: int
    row: Optional[dict]


class ConnectionHandle:
    """
    Pooled connection to the store with an open/closed lifecycle.

    Usage:
        with ConnectionHandle.open(config) as db:
            db.exec("UPDATE articles SET views = views + 1 WHERE id = %s", [1])
    """

    def __init__(self, config: DBConfig, db_pool: pool.AbstractConnectionPool):
        self.config = config
        self._pool = db_pool
        self._slots = threading.BoundedSemaphore(config.max_open_conns)
        self._born: dict[int, float] = {}
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, config: DBConfig) -> "ConnectionHandle":
        """
        Open the pool and probe the store.

        Raises:
            StoreError: If the pool cannot be created or the liveness
                probe fails. Nothing is left open in that case.
        """
        min_conn = min(config.max_idle_conns, config.max_open_conns)
        try:
            db_pool = pool.ThreadedConnectionPool(min_conn, config.max_open_conns, config.dsn())
        except psycopg2.Error as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise StoreError("database unreachable", e) from e

        handle = cls(config, db_pool)
        try:
            handle.ping()
        except StoreError:
            handle.close()
            raise
        logger.info(
            f"Database connection pool opened ({config.host}:{config.port}/{config.dbname}, "
            f"max_open={config.max_open_conns}, max_idle={config.max_idle_conns})"
        )
        return handle

    # ── Lifecycle ─────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close all pooled connections. Closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._pool.closeall()
        self._born.clear()
        logger.info("Database connection pool closed.")

    def __enter__(self) -> "ConnectionHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise HandleClosedError("Connection handle is closed.")

    # ── Pool plumbing ─────────────────────────────────────

    def _expired(self, conn) -> bool:
        born = self._born.get(id(conn))
        return born is not None and time.monotonic() - born > self.config.conn_max_lifetime

    def acquire(self):
        """
        Check a connection out of the pool, blocking while the pool is
        at its ceiling.

        Returns:
            A psycopg2 connection. Hand it back with `release`.
        """
        self._check_open()
        self._slots.acquire()
        try:
            self._check_open()
            conn = self._pool.getconn()
            while self._expired(conn) or conn.closed:
                self._discard(conn)
                conn = self._pool.getconn()
            self._born.setdefault(id(conn), time.monotonic())
            return conn
        except psycopg2.Error as e:
            self._slots.release()
            raise StoreError("failed to acquire connection", e) from e
        except BaseException:
            self._slots.release()
            raise

    def release(self, conn) -> None:
        """Return a connection to the pool, retiring it if it is too old."""
        try:
            if self._closed:
                return
            if self._expired(conn) or conn.closed:
                self._discard(conn)
            else:
                self._pool.putconn(conn)
                if conn.closed:
                    # the pool closes connections beyond its idle size
                    self._born.pop(id(conn), None)
        finally:
            self._slots.release()

    def _discard(self, conn) -> None:
        self._born.pop(id(conn), None)
        self._pool.putconn(conn, close=True)

    # ── Execution ─────────────────────────────────────────

    def ping(self) -> None:
        """Run a trivial statement to prove the store is reachable."""
        try:
            self.exec("SELECT 1")
        except StoreError as e:
            logger.error(f"Database liveness probe failed: {e}")
            raise StoreError("database unreachable", e.original) from e

    def exec(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecResult:
        """
        Execute one statement and commit.

        Returns:
            ExecResult with the affected-row count and the first row the
            statement returned (for RETURNING clauses), if any.

        Raises:
            StoreError: If the statement fails; the transaction is rolled back.
        """
        conn = self.acquire()
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                logger.debug(f"exec: {sql} | {params!r}")
                cur.execute(sql, params)
                row = cur.fetchone() if cur.description is not None else None
                rowcount = cur.rowcount
            conn.commit()
            return ExecResult(rowcount, dict(row) if row is not None else None)
        except psycopg2.Error as e:
            if not conn.closed:
                conn.rollback()
            logger.error(f"Statement failed: {e}")
            raise StoreError("statement execution failed", e) from e
        finally:
            self.release(conn)

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> "RowCursor":
        """
        Run a query and return a cursor over its rows.

        The cursor holds a pooled connection until it is exhausted or
        closed; use it as a context manager.
        """
        conn = self.acquire()
        try:
            cur = conn.cursor(cursor_factory=extras.RealDictCursor)
            logger.debug(f"query: {sql} | {params!r}")
            cur.execute(sql, params)
        except psycopg2.Error as e:
            if not conn.closed:
                conn.rollback()
            self.release(conn)
            logger.error(f"Query failed: {e}")
            raise StoreError("query execution failed", e) from e
        except BaseException:
            if not conn.closed:
                conn.rollback()
            self.release(conn)
            raise
        return RowCursor(self, conn, cur)

    def query_row(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[dict]:
        """Run a query and return its first row, or None."""
        with self.query(sql, params) as rows:
            return rows.fetchone()


class RowCursor:
    """
    Forward-only sequence of rows (as dicts).

    The underlying psycopg2 cursor is client-side: the store sends the
    whole result set when the query runs and it is buffered in memory.
    Rows are converted and handed out one at a time. Use LIMIT (raw SQL)
    for large tables.

    Owns one pooled connection until closed. Closing is idempotent and
    happens automatically once the rows are exhausted.
    """

    def __init__(self, handle: ConnectionHandle, conn, cur):
        self._handle = handle
        self._conn = conn
        self._cur = cur
        self._closed = False
        self.columns: list[str] = [d[0] for d in cur.description] if cur.description else []

    @property
    def closed(self) -> bool:
        return self._closed

    def fetchone(self) -> Optional[dict]:
        """Return the next row, or None (and close) when exhausted."""
        if self._closed:
            return None
        try:
            row = self._cur.fetchone() if self._cur.description is not None else None
        except psycopg2.Error as e:
            self.close(failed=True)
            raise StoreError("failed to read row", e) from e
        if row is None:
            self.close()
            return None
        return dict(row)

    def fetchall(self) -> list[dict]:
        """Drain the remaining rows and close."""
        return list(self)

    def __iter__(self) -> Iterator[dict]:
        while True:
            row = self.fetchone()
            if row is None:
                return
            yield row

    def close(self, failed: bool = False) -> None:
        """Release the cursor and return its connection to the pool."""
        if self._closed:
            return
        self._closed = True
        try:
            self._cur.close()
            if not self._conn.closed:
                if failed:
                    self._conn.rollback()
                else:
                    self._conn.commit()
        except psycopg2.Error as e:
            logger.error(f"Failed to release cursor: {e}")
            raise StoreError("failed to release cursor", e) from e
        finally:
            self._handle.release(self._conn)

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(failed=exc_type is not None)
