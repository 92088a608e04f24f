"""
Tests for the logging configuration helpers.
"""

import logging

import pytest

from pgdeck.logging_config import get_log_format, get_log_level, get_logger, get_logging_config, log_performance


class TestLoggingConfig:

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("PGDECK_LOG_LEVEL", "debug")

        assert get_log_level() == "DEBUG"
        assert get_logging_config()["loggers"]["pgdeck"]["level"] == "DEBUG"

    def test_production_format_includes_location(self, monkeypatch):
        monkeypatch.setenv("PGDECK_ENV", "production")

        assert "%(pathname)s:%(lineno)d" in get_log_format()

    def test_file_handler(self, monkeypatch, tmp_path):
        log_file = tmp_path / "pgdeck.log"
        monkeypatch.setenv("PGDECK_LOG_FILE", str(log_file))

        config = get_logging_config()

        assert config["handlers"]["file"]["filename"] == str(log_file)
        assert "file" in config["loggers"]["pgdeck"]["handlers"]

    def test_no_file_handler_by_default(self, monkeypatch):
        monkeypatch.delenv("PGDECK_LOG_FILE", raising=False)

        assert "file" not in get_logging_config()["handlers"]

    @pytest.mark.parametrize("value,level", [("1", "INFO"), ("true", "INFO"), ("", "WARNING"), ("no", "WARNING")])
    def test_sql_echo(self, monkeypatch, value, level):
        monkeypatch.setenv("PGDECK_LOG_SQL", value)

        assert get_logging_config()["loggers"]["pgdeck.sql"]["level"] == level

    def test_library_loggers(self):
        loggers = get_logging_config()["loggers"]

        assert loggers["asyncpg"]["level"] == "WARNING"
        assert loggers["uvicorn"]["propagate"] is False

    def test_logger_names(self):
        assert get_logger("pgdeck.session").name == "pgdeck.session"
        assert get_logger("tools").name == "pgdeck.tools"
        assert get_logger("__main__").name == "pgdeck.main"


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestLogPerformance:

    @pytest.fixture
    def captured(self):
        logger = logging.getLogger("pgdeck.tests.performance")
        handler = _ListHandler()
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        yield logger, handler.records
        logger.removeHandler(handler)

    def test_sync(self, captured):
        logger, records = captured

        @log_performance(logger, "add")
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert "Operation 'add' completed" in records[-1].getMessage()

    @pytest.mark.asyncio
    async def test_async_failure_is_reraised(self, captured):
        logger, records = captured

        @log_performance(logger, "explode")
        async def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await explode()
        assert records[-1].levelno == logging.ERROR
        assert "boom" in records[-1].getMessage()
