"""
Tests for application assembly and the command line entry point.
"""

import json
from unittest.mock import patch

import pytest

from pgdeck.__main__ import main
from pgdeck.api import create_app, pgdeck_error_handler
from pgdeck.config import DeckSettings
from pgdeck.errors import Cancelled, NoPrimaryKey, NotConnected, PgDeckError, QueryFailed, RowApplyFailed
from pgdeck.router.router import DeckRouter


class TestCreateApp:

    def test_router_is_mounted(self, session):
        settings = DeckSettings()
        router = DeckRouter(settings=settings, session=session)

        app = create_app(settings, router)

        paths = {route.path for route in app.routes}
        assert "/tables" in paths
        assert "/tables/{schema}/{table}/rows" in paths
        assert app.state.deck is router

    def test_default_router_from_settings(self):
        app = create_app(DeckSettings(database_url="postgresql://localhost/app"))

        assert app.state.deck.session.dsn == "postgresql://localhost/app"


class TestErrorHandler:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status",
        [
            (NotConnected(), 503),
            (QueryFailed("syntax error"), 502),
            (Cancelled(), 409),
            (NoPrimaryKey("public.logs"), 409),
            (RowApplyFailed("UPDATE", "gone", key={"id": 1}), 400),
            (PgDeckError("other"), 400),
        ],
    )
    async def test_status_codes(self, error, status):
        response = await pgdeck_error_handler(None, error)

        assert response.status_code == status
        assert json.loads(response.body) == {"detail": str(error)}


class TestMain:

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.delenv("PGDECK_DATABASE_URL", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 2

    def test_runs_uvicorn(self, monkeypatch):
        monkeypatch.setenv("PGDECK_DATABASE_URL", "postgresql://localhost/app")
        monkeypatch.setenv("PGDECK_PORT", "9001")

        with patch("pgdeck.__main__.uvicorn.run") as run:
            main()

        _, kwargs = run.call_args
        assert kwargs["port"] == 9001
        assert kwargs["host"] == "127.0.0.1"
