"""Tests for the audit logger."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from finance_aggregator.audit import AuditLogger, create_correlation_id
from finance_aggregator.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finance_aggregator.services.storage import InMemoryAuditStorage


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event: AuditEvent) -> bool:
        raise RuntimeError("sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger persistence behaviour."""

    async def test_events_are_persisted(self):
        """Test events reach storage with their correlation ID."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        await logger.log_balance_recorded(
            account_id="house",
            reading_id=uuid4(),
            amount=Decimal("350000"),
            source="manual",
            correlation_id=correlation_id,
        )

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [AuditEventType.BALANCE_RECORDED]
        assert events[0].entity_id == "house"

    async def test_storage_failure_is_swallowed(self):
        """Test a broken audit sheet never breaks the caller."""
        logger = AuditLogger(FailingAuditStorage())
        ok = await logger.log(AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            description="boom",
        ))
        assert ok is False

    async def test_local_only(self):
        """Test logging without storage succeeds."""
        logger = AuditLogger()
        assert await logger.log(AuditEvent(
            event_type=AuditEventType.FETCH_COMPLETED,
            description="done",
        )) is True

    async def test_recent_events_newest_first(self):
        """Test recent events are returned newest first."""
        storage = InMemoryAuditStorage()
        older = AuditEventBuilder.balances_cleared(3)
        newer = AuditEventBuilder.stale_accounts_detected(["a"], threshold_days=7)
        older.timestamp = datetime(2024, 1, 1)
        newer.timestamp = datetime(2024, 1, 2)
        await storage.append_event(newer)
        await storage.append_event(older)

        recent = await storage.get_recent_events(limit=1)
        assert recent[0].event_type == AuditEventType.STALE_ACCOUNTS_DETECTED
