"""
Test configuration and fixtures for the pgdeck test suite.

Unit tests run against in-memory stand-ins for an asyncpg pool and
connection; no database server is needed. Tests marked ``integration`` run
against the server named by TEST_DATABASE_URL and are skipped when it is not
set.
"""

import os
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import asyncpg
import pytest
import pytest_asyncio

from pgdeck.session import Session


# Database configuration
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

TEST_SCHEMA = "pgdeck_test"

# Test schema SQL for the integration tests
TEST_SCHEMA_SQL = """
DROP SCHEMA IF EXISTS pgdeck_test CASCADE;
CREATE SCHEMA pgdeck_test;

CREATE TABLE pgdeck_test.items (
    id INTEGER PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    price NUMERIC(10,2),
    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
);

CREATE TABLE pgdeck_test.item_tags (
    item_id INTEGER NOT NULL REFERENCES pgdeck_test.items(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    PRIMARY KEY (item_id, tag)
);

CREATE INDEX item_tags_tag_idx ON pgdeck_test.item_tags (tag);

INSERT INTO pgdeck_test.items (id, code, price) VALUES
    (1, 'a', 1.50),
    (2, 'b', 2.00),
    (3, 'c', NULL);

INSERT INTO pgdeck_test.item_tags (item_id, tag) VALUES (1, 'red'), (2, 'blue');
"""


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.transactions += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.conn.commits += 1
        else:
            self.conn.rollbacks += 1
        return False


class FakePreparedStatement:
    def __init__(self, attributes, records):
        self._attributes = attributes
        self.fetch = AsyncMock(return_value=records)

    def get_attributes(self):
        return self._attributes


class FakeConnection:
    """Connection double: queries are AsyncMocks, transactions are counted."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="UPDATE 1")
        self.prepare = AsyncMock()
        self.transactions = 0
        self.commits = 0
        self.rollbacks = 0

    def transaction(self):
        return FakeTransaction(self)


class _Acquire:
    def __init__(self, pool):
        self.pool = pool

    async def __aenter__(self):
        self.pool.acquired += 1
        return self.pool.conn

    async def __aexit__(self, exc_type, exc, tb):
        self.pool.released += 1
        return False


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.acquired = 0
        self.released = 0
        self.close = AsyncMock()
        self.terminated = False

    def acquire(self):
        return _Acquire(self)

    def terminate(self):
        self.terminated = True


def make_attribute(name, type_name, type_schema="pg_catalog"):
    """Shape of asyncpg's prepared statement attribute entries."""
    return SimpleNamespace(name=name, type=SimpleNamespace(name=type_name, schema=type_schema, kind="scalar"))


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn) -> FakePool:
    return FakePool(fake_conn)


@pytest.fixture
def session(fake_pool) -> Session:
    """A connected Session backed by the fake pool."""
    return Session.from_pool(fake_pool, server_version="PostgreSQL 16.2")


@pytest.fixture
def attribute():
    return make_attribute


@pytest.fixture
def prepared():
    def factory(attributes, records):
        return FakePreparedStatement(attributes, records)

    return factory


def assert_sql_contains(sql: str, expected_parts: list[str]) -> None:
    """Assert that SQL contains all expected parts."""
    sql_lower = sql.lower()
    for part in expected_parts:
        assert part.lower() in sql_lower, f"Expected '{part}' in SQL: {sql}"


@pytest.fixture
def sql_contains():
    return assert_sql_contains


@pytest_asyncio.fixture
async def db_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a connection pool for one integration test."""
    if not TEST_DATABASE_URL:
        pytest.skip("TEST_DATABASE_URL is not set")
    pool = await asyncpg.create_pool(TEST_DATABASE_URL, min_size=1, max_size=4)
    try:
        yield pool
    finally:
        await pool.close()


@pytest_asyncio.fixture
async def setup_test_schema(db_pool: asyncpg.Pool) -> AsyncGenerator[str, None]:
    """Create the test schema and drop it again afterwards."""
    async with db_pool.acquire() as conn:
        await conn.execute(TEST_SCHEMA_SQL)
    try:
        yield TEST_SCHEMA
    finally:
        async with db_pool.acquire() as conn:
            await conn.execute(f"DROP SCHEMA IF EXISTS {TEST_SCHEMA} CASCADE")


@pytest_asyncio.fixture
async def live_session(db_pool: asyncpg.Pool, setup_test_schema) -> Session:
    """A Session over the live pool, with the test schema in place."""
    async with db_pool.acquire() as conn:
        version = await conn.fetchval("SELECT version()")
    return Session.from_pool(db_pool, server_version=version)
