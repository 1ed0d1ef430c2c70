"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from orchestration.models import (
    AgentMetrics,
    AgentRequest,
    AgentStatus,
    EventRecord,
    EventSeverity,
    EventType,
    LastError,
    Message,
    MessagePriority,
    MessageType,
    ReplayRecord,
)


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "event_records" in tables
            assert "replay_records" in tables
            assert "bus_messages" in tables
            assert "agent_statuses" in tables

    async def test_uninitialized_storage_raises(self):
        from orchestration.storage import Storage

        with pytest.raises(RuntimeError):
            await Storage(":memory:").get_event_records()


class TestStorageEventRecords:
    """Tests for EventRecord storage."""

    async def test_save_and_filter(self, storage):
        now = datetime.now(timezone.utc)
        await storage.save_event_record(
            EventRecord("e1", EventType.INFO, "broker", "started", now - timedelta(seconds=2))
        )
        await storage.save_event_record(
            EventRecord(
                "e2",
                EventType.ERROR,
                "agent-a",
                "failed",
                now,
                severity=EventSeverity.HIGH,
                data={"attempt": 2},
            )
        )

        records = await storage.get_event_records()
        assert [r.id for r in records] == ["e2", "e1"]
        assert records[0].severity == EventSeverity.HIGH
        assert records[0].data == {"attempt": 2}

        errors = await storage.get_event_records(types=[EventType.ERROR])
        assert [r.id for r in errors] == ["e2"]

        from_broker = await storage.get_event_records(source="broker")
        assert [r.id for r in from_broker] == ["e1"]

        recent = await storage.get_event_records(after=now - timedelta(seconds=1))
        assert [r.id for r in recent] == ["e2"]


class TestStorageReplayRecords:
    """Tests for ReplayRecord storage."""

    async def test_save_get_delete(self, storage):
        base = datetime.now(timezone.utc)
        for i in range(3):
            await storage.save_replay_record(
                ReplayRecord(
                    id=f"r{i}",
                    agent_id="a",
                    input={"operation": "echo", "data": i},
                    output={"status": "success"},
                    outcome=1.0,
                    priority=0.5,
                    timestamp=base + timedelta(seconds=i),
                    metadata={"n": i},
                )
            )

        records = await storage.get_replay_records()
        assert [r.id for r in records] == ["r0", "r1", "r2"]
        assert records[1].input == {"operation": "echo", "data": 1}
        assert records[1].metadata == {"n": 1}

        await storage.delete_replay_records(["r0", "r2"])
        assert [r.id for r in await storage.get_replay_records()] == ["r1"]

    async def test_delete_nothing(self, storage):
        await storage.delete_replay_records([])


class TestStorageBusMessages:
    """Tests for bus message storage."""

    async def test_save_message_with_dataclass_content(self, storage):
        """Test that typed content is stored as JSON with its kind."""
        message = Message(
            id="m1",
            type=MessageType.QUERY,
            sender_id="broker",
            recipient_id="a",
            content=AgentRequest("echo", {"x": 1}),
            timestamp=datetime.now(timezone.utc),
            correlation_id="c1",
            priority=MessagePriority.HIGH,
            requires_acknowledgment=True,
            metadata={"access_level": "admin"},
        )
        await storage.save_bus_message(message)

        [loaded] = await storage.get_bus_messages()
        assert loaded.id == "m1"
        assert loaded.type == MessageType.QUERY
        assert loaded.content == {"operation": "echo", "data": {"x": 1}, "kind": "request"}
        assert loaded.correlation_id == "c1"
        assert loaded.priority == MessagePriority.HIGH
        assert loaded.requires_acknowledgment is True
        assert loaded.metadata == {"access_level": "admin"}


class TestStorageAgentStatus:
    """Tests for AgentStatus storage."""

    async def test_save_and_get(self, storage):
        now = datetime.now(timezone.utc)
        status = AgentStatus(
            id="a",
            healthy=False,
            metrics=AgentMetrics(
                requests_processed=10,
                errors_encountered=2,
                avg_processing_time_ms=12.5,
                last_health_check_time=now,
                custom={"consecutive_failures": 1},
            ),
            last_error=LastError(message="status exploded", timestamp=now),
        )
        await storage.save_agent_status(status)

        loaded = await storage.get_agent_status("a")
        assert loaded.healthy is False
        assert loaded.metrics.requests_processed == 10
        assert loaded.metrics.custom == {"consecutive_failures": 1}
        assert loaded.metrics.last_health_check_time == now
        assert loaded.last_error.message == "status exploded"

    async def test_save_replaces(self, storage):
        await storage.save_agent_status(AgentStatus(id="a", healthy=False))
        await storage.save_agent_status(AgentStatus(id="a", healthy=True))

        loaded = await storage.get_agent_status("a")
        assert loaded.healthy is True

    async def test_get_missing(self, storage):
        assert await storage.get_agent_status("nobody") is None


class TestStorageClear:
    """Tests for clear()."""

    async def test_clear(self, storage):
        await storage.save_agent_status(AgentStatus(id="a"))
        await storage.save_event_record(
            EventRecord("e1", EventType.INFO, "a", "x", datetime.now(timezone.utc))
        )

        await storage.clear()

        assert await storage.get_agent_status("a") is None
        assert await storage.get_event_records() == []
