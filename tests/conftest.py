"""Pytest configuration and shared fixtures.

Unit tests never touch a real database: FakeHandle stands in for a
ConnectionHandle, FakePool for psycopg2's ThreadedConnectionPool.
Tests marked `integration` run against PostgreSQL and are skipped
unless TEST_DB_NAME is set.
"""

import os
import sys
from pathlib import Path

import psycopg2
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from db.connection import ExecResult  # noqa: E402


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: needs a PostgreSQL server (TEST_DB_NAME)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless a test database is configured."""
    if os.getenv("TEST_DB_NAME"):
        return
    skip = pytest.mark.skip(reason="Set TEST_DB_NAME to run integration tests")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


# ---------------------------------------------------------------------------
# Handle-level fake
# ---------------------------------------------------------------------------

class FakeRows:
    """Minimal RowCursor look-alike over a list of dicts."""

    def __init__(self, rows):
        self._rows = list(rows)
        self.closed = False

    def fetchone(self):
        if not self._rows:
            self.closed = True
            return None
        return self._rows.pop(0)

    def __iter__(self):
        while self._rows:
            yield self._rows.pop(0)
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


class FakeHandle:
    """
    Records every statement instead of running it.

    Queue results with `exec_results` (ExecResult or exception) and
    `query_results` (list of row dicts or exception), consumed in order.
    """

    def __init__(self):
        self.statements = []
        self.exec_results = []
        self.query_results = []
        self.cursors = []

    def exec(self, sql, params=None):
        self.statements.append((sql, list(params or [])))
        if self.exec_results:
            result = self.exec_results.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result
        return ExecResult(1, None)

    def query(self, sql, params=None):
        self.statements.append((sql, list(params or [])))
        rows = self.query_results.pop(0) if self.query_results else []
        if isinstance(rows, BaseException):
            raise rows
        cursor = FakeRows(rows)
        self.cursors.append(cursor)
        return cursor

    def query_row(self, sql, params=None):
        with self.query(sql, params) as rows:
            return rows.fetchone()

    @property
    def sql(self):
        return [s for s, _ in self.statements]


@pytest.fixture()
def handle():
    return FakeHandle()


# ---------------------------------------------------------------------------
# Driver-level fakes
# ---------------------------------------------------------------------------

class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._rows = []
        self.closed = False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        if self.conn.fail_with is not None:
            raise self.conn.fail_with
        rows = list(self.conn.rows)
        self._rows = rows
        self.description = [(k,) for k in rows[0]] if rows else (
            [("?column?",)] if sql.lstrip().upper().startswith("SELECT") else None
        )
        self.rowcount = len(rows) if rows else self.conn.rowcount

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeConnection:
    def __init__(self):
        self.closed = 0
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.rows = []
        self.rowcount = 0
        self.fail_with = None

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = 1


class FakePool:
    """Stand-in for psycopg2.pool.ThreadedConnectionPool."""

    instances = []
    fail_connect = None

    def __init__(self, minconn, maxconn, dsn):
        if FakePool.fail_connect is not None:
            raise FakePool.fail_connect
        self.minconn = minconn
        self.maxconn = maxconn
        self.dsn = dsn
        self.idle = []
        self.used = []
        self.created = []
        self.closed_all = False
        FakePool.instances.append(self)

    def getconn(self):
        conn = self.idle.pop() if self.idle else FakeConnection()
        if conn not in self.created:
            self.created.append(conn)
        self.used.append(conn)
        return conn

    def putconn(self, conn, close=False):
        self.used.remove(conn)
        if close:
            conn.close()
        else:
            self.idle.append(conn)

    def closeall(self):
        for conn in self.idle + self.used:
            conn.close()
        self.closed_all = True


@pytest.fixture()
def fake_pool(monkeypatch):
    """Patch the psycopg2 pool used by db.connection and return the class."""
    from psycopg2 import pool

    FakePool.instances = []
    FakePool.fail_connect = None
    monkeypatch.setattr(pool, "ThreadedConnectionPool", FakePool)
    return FakePool


@pytest.fixture()
def unique_violation():
    return psycopg2.errors.UniqueViolation(
        'duplicate key value violates unique constraint "articles_title_key"'
    )
