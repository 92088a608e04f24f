"""
Tests for the HTTP surface: DeckRouter routes and the error handler.
"""

import asyncpg
import pytest
from fastapi.testclient import TestClient

from pgdeck.api import create_app
from pgdeck.config import DeckSettings
from pgdeck.introspection import queries
from pgdeck.router.router import DeckRouter
from pgdeck.session import Session

USERS_TABLE = {"schema_name": "public", "name": "users", "comment": None, "size": 8192, "row_count": 2}
ID_COLUMN = {
    "name": "id",
    "data_type": "bigint",
    "is_nullable": False,
    "default_value": None,
    "comment": None,
    "max_length": None,
    "array_dimensions": None,
}


@pytest.fixture
def settings():
    return DeckSettings(database_url="postgresql://localhost/app", page_size=10)


@pytest.fixture
def client(session, settings):
    router = DeckRouter(settings=settings, session=session)
    return TestClient(create_app(settings, router))


class TestLifespan:

    def test_connected_session_is_reused_and_closed(self, session, settings, fake_pool):
        router = DeckRouter(settings=settings, session=session)

        with TestClient(create_app(settings, router)) as client:
            response = client.get("/server")
            assert response.status_code == 200
            assert response.json() == {"version": "PostgreSQL 16.2"}

        fake_pool.close.assert_awaited_once()
        assert not session.is_connected

    def test_connection_string_overrides_settings(self, settings):
        router = DeckRouter("postgresql://other/db", settings=settings)

        assert router.session.dsn == "postgresql://other/db"
        assert not router.session.is_connected


class TestCatalogRoutes:

    def test_tables(self, client, fake_conn):
        fake_conn.fetch.return_value = [USERS_TABLE]

        response = client.get("/tables", params={"schema": "public"})

        assert response.status_code == 200
        assert response.json()[0]["name"] == "users"
        assert fake_conn.fetch.call_args.args[1] == "public"

    def test_columns(self, client, fake_conn):
        fake_conn.fetch.side_effect = [[ID_COLUMN], [{"column_name": "id"}], []]

        response = client.get("/tables/public/users/columns")

        assert response.status_code == 200
        assert response.json()[0]["is_primary_key"] is True

    def test_table_ddl(self, client, fake_conn):
        async def fetch(sql, *args):
            if sql == queries.COLUMNS_QUERY:
                return [ID_COLUMN]
            if sql == queries.PRIMARY_KEY_QUERY:
                return [{"column_name": "id"}]
            if sql == queries.FOREIGN_KEY_QUERY:
                return []
            return [USERS_TABLE]

        fake_conn.fetch.side_effect = fetch

        response = client.get("/tables/public/users/ddl")

        assert response.status_code == 200
        assert "id BIGINT PRIMARY KEY" in response.json()["ddl"]

    def test_table_ddl_unknown_table(self, client, fake_conn):
        fake_conn.fetch.return_value = [USERS_TABLE]

        response = client.get("/tables/public/missing/ddl")

        assert response.status_code == 404

    def test_functions(self, client, fake_conn):
        fake_conn.fetch.return_value = [
            {
                "schema_name": "public", "name": "now_utc", "return_type": "timestamp with time zone",
                "arguments": "", "identity_arguments": "", "function_type": "FUNCTION",
                "returns_set": False, "language": "sql", "is_security_definer": False,
                "is_stable": True, "definition": None,
            },
        ]

        response = client.get("/functions")

        assert response.status_code == 200
        assert response.json()[0]["parameters"] == []


class TestDataRoutes:

    def test_rows_default_page_size(self, client, fake_conn, attribute, prepared):
        statement = prepared([attribute("id", "int8"), attribute("avatar", "bytea")], [(1, b"\x01")])
        fake_conn.fetch.return_value = [{"column_name": "id"}]
        fake_conn.prepare.return_value = statement

        response = client.get("/tables/public/users/rows")

        body = response.json()
        assert response.status_code == 200
        assert body["limit"] == 10
        assert body["rows"][0]["values"]["id"] == {"kind": "int", "value": 1}
        assert body["rows"][0]["values"]["avatar"] == {"kind": "bytes", "value": "AQ=="}

    def test_rows_rejects_bad_paging(self, client):
        response = client.get("/tables/public/users/rows", params={"limit": 0})

        assert response.status_code == 422

    def test_count(self, client, fake_conn):
        fake_conn.fetchval.return_value = 7

        response = client.get("/tables/public/users/count")

        assert response.json() == {"count": 7}


class TestErrorMapping:

    def test_query_failed(self, client, fake_conn):
        fake_conn.fetch.side_effect = asyncpg.PostgresError("permission denied")

        response = client.get("/tables")

        assert response.status_code == 502
        assert response.json() == {"detail": "permission denied"}

    def test_not_connected(self, settings):
        router = DeckRouter(settings=settings, session=Session())
        client = TestClient(create_app(settings, router))

        response = client.get("/tables")

        assert response.status_code == 503
