"""
Tests for settings, structured logging and the exception hierarchy.
"""

import json
import logging

import pytest

from src.app.config import Settings, get_settings
from src.core.exceptions import (
    CycleDetectedError,
    ErrorCategory,
    HierarchyInconsistentError,
    PersistenceError,
)
from src.core.observability.logging import JSONFormatter, setup_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("HIERARCHY_MAX_DEPTH", raising=False)
        settings = Settings(_env_file=None)

        assert settings.hierarchy_max_depth is None
        assert settings.org_service_page_size == 100
        assert settings.org_service_max_retries == 3

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ORG_SERVICE_URL", "https://orgs.example.com/api/")
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("HIERARCHY_MAX_DEPTH", "5")

        settings = get_settings()

        assert settings.org_service_url == "https://orgs.example.com/api"
        assert settings.log_level == "WARNING"
        assert settings.hierarchy_max_depth == 5

    def test_only_hierarchy_settings_declared(self):
        assert set(Settings.model_fields) == {
            "environment",
            "log_level",
            "org_service_url",
            "org_service_api_key",
            "org_service_timeout_seconds",
            "org_service_connect_timeout_seconds",
            "org_service_page_size",
            "org_service_max_retries",
            "hierarchy_max_depth",
        }

    def test_settings_cached(self):
        assert get_settings() is get_settings()

    def test_is_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert get_settings().is_production is True


class TestLogging:
    def test_json_formatter_includes_context(self):
        record = logging.LogRecord(
            name="src.core.services.org_hierarchy.coordinator",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Moved organization %s",
            args=("acme-fr",),
            exc_info=None,
        )
        record.org_id = "acme-fr"
        record.new_parent_id = "globex"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["severity"] == "INFO"
        assert entry["message"] == "Moved organization acme-fr"
        assert entry["org_id"] == "acme-fr"
        assert entry["new_parent_id"] == "globex"
        assert "error_code" not in entry

    def test_setup_logging_uses_json_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging()
            assert isinstance(root.handlers[-1].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_setup_logging_plain_in_development(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging()
            assert not isinstance(root.handlers[-1].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestExceptions:
    def test_to_dict(self):
        exc = CycleDetectedError("acme", context={"new_parent_id": "acme-paris"})
        data = exc.to_dict()

        assert data["error"] == "CYCLE_DETECTED"
        assert data["category"] == ErrorCategory.DATA_INTEGRITY.value
        assert data["context"] == {"org_id": "acme", "new_parent_id": "acme-paris"}

    def test_wrapper_hides_details(self):
        cause = CycleDetectedError("acme")
        exc = HierarchyInconsistentError(cause)

        assert str(exc) == "Hierarchy data inconsistent"
        assert exc.original_error is cause
        assert exc.to_dict()["original_error"] == cause.message

    @pytest.mark.parametrize("retryable", [True, False])
    def test_persistence_error_retryable(self, retryable):
        assert PersistenceError("down", retryable=retryable).is_retryable() is retryable
