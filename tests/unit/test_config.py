"""Unit tests for settings and logging configuration."""

import logging
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from plist_table.config import PlistTableSettings, get_settings, reset_settings
from plist_table.logging import bind_context, clear_context, configure_logging, table_context
from plist_table.logging import structured_logger
from plist_table.logging.structured_logger import PACKAGE_LOGGER, add_app_context


class TestSettings:
    """Test PlistTableSettings."""

    def test_defaults(self):
        """Test default values."""
        settings = PlistTableSettings()

        assert settings.resource_paths == []
        assert settings.resource_extension == ".plist"
        assert settings.strict_mapping is False
        assert settings.log_level == "INFO"
        assert settings.metrics_enabled is True

    def test_environment_overrides(self, monkeypatch):
        """Test PLIST_TABLE_ variables override defaults."""
        monkeypatch.setenv("PLIST_TABLE_STRICT_MAPPING", "true")
        monkeypatch.setenv("PLIST_TABLE_RESOURCE_PATHS", '["data", "/opt/plists"]')
        monkeypatch.setenv("PLIST_TABLE_LOG_LEVEL", "debug")

        settings = PlistTableSettings()

        assert settings.strict_mapping is True
        assert settings.resource_paths == [Path("data"), Path("/opt/plists")]
        assert settings.log_level == "DEBUG"

    def test_env_file(self, tmp_path):
        """Test a .env file in the working directory is read."""
        (tmp_path / ".env").write_text("PLIST_TABLE_RESOURCE_EXTENSION=xml\n")

        assert PlistTableSettings().resource_extension == ".xml"

    def test_invalid_log_level(self):
        """Test unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            PlistTableSettings(log_level="LOUD")

    def test_empty_extension(self):
        """Test the extension cannot be empty."""
        with pytest.raises(ValidationError):
            PlistTableSettings(resource_extension="")

    def test_get_settings_is_cached(self, monkeypatch):
        """Test get_settings returns one instance until reset."""
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("PLIST_TABLE_JSON_LOGS", "true")
        assert get_settings().json_logs is False

        reset_settings()
        assert get_settings().json_logs is True


class TestLogging:
    """Test structured logging helpers."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        handlers = list(package_logger.handlers)
        level, propagate = package_logger.level, package_logger.propagate
        yield
        clear_context()
        structlog.reset_defaults()
        for handler in list(package_logger.handlers):
            if handler not in handlers:
                package_logger.removeHandler(handler)
        package_logger.setLevel(level)
        package_logger.propagate = propagate

    def test_add_app_context(self):
        """Test the app name is added without overriding explicit values."""
        assert add_app_context(None, "info", {})["app"] == "plist-table"
        assert add_app_context(None, "info", {"app": "mine"})["app"] == "mine"

    def test_configure_binds_service(self):
        """Test configuration succeeds and binds the service name."""
        configure_logging(log_level="DEBUG", json_logs=True, service_name="tests")
        bind_context(request_id="r1")

        context = structlog.contextvars.get_contextvars()
        assert context["request_id"] == "r1"
        assert context["service"] == "tests"

        structlog.get_logger("plist_table.tests").info("test_event", value=1)
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_defaults_come_from_settings(self):
        """Test the level falls back to the configured settings."""
        configure_logging(settings=PlistTableSettings(log_level="error"))

        assert logging.getLogger(PACKAGE_LOGGER).level == logging.ERROR

    def test_reconfiguring_replaces_handler(self):
        """Test repeated configuration keeps one package handler."""
        package_logger = logging.getLogger(PACKAGE_LOGGER)

        configure_logging(log_level="INFO")
        first = list(package_logger.handlers)
        configure_logging(log_level="WARNING")

        assert len(package_logger.handlers) == len(first)
        assert structured_logger._handler in package_logger.handlers
        assert structured_logger._handler not in first
        assert package_logger.level == logging.WARNING
        assert package_logger.propagate is False

    def test_table_context(self):
        """Test table and operation are bound only inside the block."""
        with table_context("countries", "find_all"):
            assert structlog.contextvars.get_contextvars() == {
                "table": "countries", "operation": "find_all"
            }

        assert structlog.contextvars.get_contextvars() == {}

    def test_queries_bind_table_context(self, countries):
        """Test records are evaluated with the query's table context bound."""
        seen = []

        countries.find_all_matching(lambda record: seen.append(structlog.contextvars.get_contextvars()))

        assert seen[0] == {"table": "countries", "operation": "find_all_matching"}
