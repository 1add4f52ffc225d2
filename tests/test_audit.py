"""
Tests for the audit logger and configuration.
"""

import asyncio
import logging

import pytest

from balance_history.audit import AuditLogger, configure_logging, create_correlation_id
from balance_history.config import AppSettings, FetchSettings, get_settings
from balance_history.models import AuditEvent, AuditEventType, AuditSeverity
from balance_history.services.storage import InMemoryAuditStorage


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("sink is down")


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_log_without_storage(self):
        """Test local-only logging reports success."""
        audit = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.ANCHOR_SET, description="Balance set")

        assert asyncio.run(audit.log(event)) is True

    def test_log_persists_to_storage(self):
        """Test events reach the storage backend."""
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(audit.log_history_requested(
            requester_id="user-1",
            account_ids=[],
            combined=True,
            correlation_id=correlation_id,
        ))
        asyncio.run(audit.log_history_computed(
            requester_id="user-1",
            account_ids=["a", "b"],
            point_count=4,
            combined=True,
            correlation_id=correlation_id,
        ))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.COMBINED_HISTORY_REQUESTED,
            AuditEventType.COMBINED_HISTORY_COMPUTED,
        ]
        assert "all accounts" in events[0].description

    def test_storage_failure_does_not_raise(self):
        """Test a failing sink is reported, not raised."""
        audit = AuditLogger(BrokenAuditStorage())
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="System error: test",
        )

        assert asyncio.run(audit.log(event)) is False

    def test_recent_events_newest_first(self):
        """Test get_recent_events ordering and limit."""
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        for n in range(3):
            asyncio.run(audit.log_error(error_type=f"e{n}", error_message="boom"))

        events = asyncio.run(storage.get_recent_events(limit=2))
        assert [e.description for e in events] == ["System error: e2", "System error: e1"]

    def test_correlation_ids_are_unique(self):
        """Test each request gets its own correlation ID."""
        assert create_correlation_id() != create_correlation_id()


class TestSettings:
    """Tests for configuration."""

    def test_defaults(self):
        """Test documented defaults."""
        fetch = FetchSettings()
        app = AppSettings()
        assert fetch.retry_attempts == 3
        assert app.default_currency == "USD"

    def test_environment_override(self, monkeypatch):
        """Test values come from prefixed environment variables."""
        monkeypatch.setenv("BALANCE_HISTORY_FETCH_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("BALANCE_HISTORY_LOG_LEVEL", "debug")
        get_settings.cache_clear()
        try:
            settings = get_settings()
            assert settings.fetch.retry_attempts == 5
            assert settings.app.log_level == "DEBUG"
        finally:
            get_settings.cache_clear()

    def test_wait_bounds_validated(self):
        """Test max wait cannot be below min wait."""
        with pytest.raises(ValueError, match="cannot be below"):
            FetchSettings(retry_min_wait_seconds=2, retry_max_wait_seconds=1)

    def test_unknown_log_level(self):
        """Test log level must be a stdlib level name."""
        with pytest.raises(ValueError, match="Unknown log level"):
            AppSettings(log_level="chatty")

    def test_configure_logging_sets_package_level(self):
        """Test configure_logging applies the level to the package logger."""
        configure_logging("debug")
        assert logging.getLogger("balance_history").level == logging.DEBUG
        configure_logging("warning")
        assert logging.getLogger("balance_history").level == logging.WARNING
