"""
Tests for settings loading.
"""

import pytest
from pydantic import ValidationError

from pgdeck.config import DeckSettings, load_settings
from pgdeck.session import Session

PGDECK_VARS = [
    "PGDECK_DATABASE_URL",
    "PGDECK_POOL_MIN_SIZE",
    "PGDECK_POOL_MAX_SIZE",
    "PGDECK_COMMAND_TIMEOUT",
    "PGDECK_PAGE_SIZE",
    "PGDECK_ERROR_DISPLAY_LIMIT",
    "PGDECK_HOST",
    "PGDECK_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in PGDECK_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings()

        assert settings.database_url is None
        assert settings.page_size == 100
        assert settings.error_display_limit == 5
        assert (settings.pool_min_size, settings.pool_max_size) == (1, 10)

    def test_environment_values(self, monkeypatch):
        monkeypatch.setenv("PGDECK_DATABASE_URL", "postgresql://u@db/app")
        monkeypatch.setenv("PGDECK_PAGE_SIZE", "250")
        monkeypatch.setenv("PGDECK_COMMAND_TIMEOUT", "2.5")

        settings = load_settings()

        assert settings.database_url == "postgresql://u@db/app"
        assert settings.page_size == 250
        assert settings.command_timeout == 2.5

    def test_empty_values_ignored(self, monkeypatch):
        monkeypatch.setenv("PGDECK_PAGE_SIZE", "")

        assert load_settings().page_size == 100

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("PGDECK_PAGE_SIZE", "0")

        with pytest.raises(ValidationError):
            load_settings()

    def test_session_from_settings(self):
        settings = DeckSettings(database_url="postgresql://db/app", pool_max_size=3, command_timeout=5)

        session = Session.from_settings(settings)

        assert session.dsn == "postgresql://db/app"
        assert session.max_size == 3
        assert session.command_timeout == 5
        assert not session.is_connected
