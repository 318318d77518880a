import contextvars
import json
import logging

import pytest
from sqlalchemy.exc import OperationalError

from ppqsa.infrastructure.config import (
    AdminConfig,
    DatabaseConfig,
    LoggingConfig,
    StorageConfig,
    get_settings,
    reset_settings,
)
from ppqsa.infrastructure.exceptions import (
    InviteNotFoundError,
    SnapshotImportError,
    StorageError,
    ValidationError,
    create_user_friendly_error_message,
    handle_storage_error,
    log_error_details,
)
from ppqsa.infrastructure.logging import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    context_filter,
    get_logger,
    log_operation,
)


class TestConfig:
    """Settings sections and their environment overrides."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.storage.snapshots_key == "ppqsa_snapshots_v1"
        assert settings.storage.legacy_snapshots_key == "ppqsa_results_snapshots_v1"
        assert settings.storage.dedup_window_seconds == 60.0
        assert settings.storage.default_target_score24 == 18.0
        assert get_settings() is settings

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("STORAGE_DEDUP_WINDOW_SECONDS", "5")
        monkeypatch.setenv("ADMIN_CODE", "  letmein ")
        reset_settings()
        settings = get_settings()
        assert settings.storage.dedup_window_seconds == 5.0
        assert settings.admin.code == "letmein"
        assert settings.admin.gate_enabled is True

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            StorageConfig(dedup_window_seconds=0)
        with pytest.raises(ValueError):
            StorageConfig(default_target_score24=30)

    def test_database_urls(self, tmp_path):
        config = DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "data" / "store"))
        assert config.get_connection_url() == f"sqlite:///{tmp_path / 'data' / 'store.db'}"
        assert (tmp_path / "data").is_dir()
        assert config.get_engine_options()["connect_args"] == {"check_same_thread": False}
        with pytest.raises(ValueError):
            DatabaseConfig(backend="memory").get_connection_url()

    def test_admin_gate_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("ADMIN_CODE", raising=False)
        assert AdminConfig().gate_enabled is False


class TestLogging:
    def test_logger_names_are_namespaced(self):
        assert get_logger("thing").name == "ppqsa.thing"
        assert get_logger("ppqsa.domain").name == "ppqsa.domain"
        assert get_logger("ppqsa").name == "ppqsa"

    def test_structured_formatter_includes_context(self):
        record = logging.LogRecord("ppqsa.test", logging.INFO, __file__, 10, "saved %s", ("t1",), None)
        record.token = "t1"
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "saved t1"
        assert entry["level"] == "INFO"
        assert entry["token"] == "t1"

    def test_log_context_restores_previous(self):
        with LogContext(token="outer"):
            with LogContext(token="inner", operation="x"):
                assert context_filter.context["token"] == "inner"
            assert context_filter.context["token"] == "outer"
            assert "operation" not in context_filter.context

    def test_log_context_is_isolated_per_context(self):
        def handle(token):
            with LogContext(token=token):
                return dict(context_filter.context)

        with LogContext(token="main"):
            assert contextvars.Context().run(handle, "other") == {"token": "other"}
            assert contextvars.Context().run(lambda: dict(context_filter.context)) == {}
            assert context_filter.context == {"token": "main"}
        assert context_filter.context == {}

    def test_configure_logging_writes_json_file(self, tmp_path):
        path = tmp_path / "logs" / "ppqsa.log"
        configure_logging(LoggingConfig(level="INFO", console_enabled=False, file_path=str(path)))
        try:
            with LogContext(token="t1"):
                get_logger("test").info("hello")
            for handler in logging.getLogger("ppqsa").handlers:
                handler.flush()
            entry = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
            assert entry["message"] == "hello"
            assert entry["logger"] == "ppqsa.test"
            assert entry["token"] == "t1"
        finally:
            configure_logging(LoggingConfig(level="WARNING", console_enabled=False))

    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("APP_ENVIRONMENT", "production")
        assert get_settings().logging.level == "WARNING"
        reset_settings()
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_settings().logging.level == "DEBUG"

    def test_log_operation_reraises(self):
        @log_operation("explode")
        def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode()


class TestExceptions:
    def test_user_messages(self):
        assert create_user_friendly_error_message(ValidationError("target_score24", "must be finite")) == (
            "Invalid target score24: must be finite"
        )
        assert "could not be found" in InviteNotFoundError("abc").user_message
        assert "Import failed" in SnapshotImportError("bad").user_message
        assert create_user_friendly_error_message(KeyError("x")).startswith("Required information")

    def test_handle_storage_error(self):
        error = handle_storage_error(OperationalError("stmt", {}, Exception("database is locked")), "storage.put")
        assert isinstance(error, StorageError)
        assert error.operation == "storage.put"
        assert error.details["transient"] is True
        assert str(error).startswith("StorageError: Storage error during storage.put")

    def test_log_error_details(self):
        details = log_error_details(InviteNotFoundError("abc"), {"route": "revoke"})
        assert details["error_type"] == "InviteNotFoundError"
        assert details["context"] == {"route": "revoke"}
        assert details["error_details"] == {"token": "abc"}
