"""SQLite storage implementation."""

import dataclasses
import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    AgentMetrics,
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


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        # shallow; json calls back here for nested values
        data = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        kind = getattr(value, "kind", None)
        if kind:
            data["kind"] = kind
        return data
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


def dumps(value: Any) -> str:
    """Serialize message contents, event data and replay payloads."""
    return json.dumps(value, default=_json_default)


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class IStorage(Protocol):
    """Persistent storage for events, replay records, messages and statuses."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # EventRecords
    async def save_event_record(self, record: EventRecord) -> None:
        """Save an event record."""
        ...

    async def get_event_records(
        self,
        after: datetime | None = None,
        types: list[EventType] | None = None,
        source: str | None = None,
        limit: int = 100,
    ) -> list[EventRecord]:
        """Get event records with optional filters (newest first)."""
        ...

    # ReplayRecords
    async def save_replay_record(self, record: ReplayRecord) -> None:
        """Save a replay record."""
        ...

    async def get_replay_records(self, limit: int | None = None) -> list[ReplayRecord]:
        """Get replay records (oldest first)."""
        ...

    async def delete_replay_records(self, record_ids: list[str]) -> None:
        """Delete replay records by id."""
        ...

    # BusMessages
    async def save_bus_message(self, message: Message) -> None:
        """Save a bus message."""
        ...

    async def get_bus_messages(self, limit: int = 100) -> list[Message]:
        """Get bus messages (newest first)."""
        ...

    # AgentStatus
    async def save_agent_status(self, status: AgentStatus) -> None:
        """Save an agent status snapshot."""
        ...

    async def get_agent_status(self, agent_id: str) -> AgentStatus | None:
        """Get the last saved status of an agent."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        # Read and execute schema
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # EventRecords
    async def save_event_record(self, record: EventRecord) -> None:
        """Save an event record."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO event_records (id, type, severity, source, message, data, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.type.value,
                record.severity.value if record.severity else None,
                record.source,
                record.message,
                dumps(record.data),
                record.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_event_records(
        self,
        after: datetime | None = None,
        types: list[EventType] | None = None,
        source: str | None = None,
        limit: int = 100,
    ) -> list[EventRecord]:
        """Get event records with optional filters (newest first)."""
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list[Any] = []

        if after:
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if types:
            placeholders = ",".join("?" * len(types))
            conditions.append(f"type IN ({placeholders})")
            params.extend(EventType(t).value for t in types)
        if source:
            conditions.append("source = ?")
            params.append(source)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, type, severity, source, message, data, timestamp
            FROM event_records
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            EventRecord(
                id=row[0],
                type=EventType(row[1]),
                severity=EventSeverity(row[2]) if row[2] else None,
                source=row[3],
                message=row[4],
                data=json.loads(row[5]) if row[5] else None,
                timestamp=_parse_ts(row[6]),
            )
            for row in rows
        ]

    # ReplayRecords
    async def save_replay_record(self, record: ReplayRecord) -> None:
        """Save a replay record."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO replay_records
            (id, agent_id, input, output, outcome, priority, metadata, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.agent_id,
                dumps(record.input),
                dumps(record.output),
                record.outcome,
                record.priority,
                dumps(record.metadata),
                record.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_replay_records(self, limit: int | None = None) -> list[ReplayRecord]:
        """Get replay records (oldest first)."""
        conn = self._require_conn()

        query = """
            SELECT id, agent_id, input, output, outcome, priority, metadata, timestamp
            FROM replay_records
            ORDER BY timestamp ASC
        """
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            ReplayRecord(
                id=row[0],
                agent_id=row[1],
                input=json.loads(row[2]),
                output=json.loads(row[3]),
                outcome=row[4],
                priority=row[5],
                metadata=json.loads(row[6]) if row[6] else {},
                timestamp=_parse_ts(row[7]),
            )
            for row in rows
        ]

    async def delete_replay_records(self, record_ids: list[str]) -> None:
        """Delete replay records by id."""
        conn = self._require_conn()
        if not record_ids:
            return

        placeholders = ",".join("?" * len(record_ids))
        await conn.execute(
            f"DELETE FROM replay_records WHERE id IN ({placeholders})",
            list(record_ids),
        )
        await conn.commit()

    # BusMessages
    async def save_bus_message(self, message: Message) -> None:
        """Save a bus message."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO bus_messages
            (id, type, sender_id, recipient_id, content, correlation_id,
             priority, requires_acknowledgment, metadata, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.type.value,
                message.sender_id,
                message.recipient_id,
                dumps(message.content),
                message.correlation_id,
                message.priority.value,
                int(message.requires_acknowledgment),
                dumps(dict(message.metadata)),
                message.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_bus_messages(self, limit: int = 100) -> list[Message]:
        """Get bus messages (newest first). Contents come back as plain JSON."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, type, sender_id, recipient_id, content, correlation_id,
                   priority, requires_acknowledgment, metadata, timestamp
            FROM bus_messages
            ORDER BY timestamp DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()

        return [
            Message(
                id=row[0],
                type=MessageType(row[1]),
                sender_id=row[2],
                recipient_id=row[3],
                content=json.loads(row[4]) if row[4] else None,
                correlation_id=row[5],
                priority=MessagePriority(row[6]),
                requires_acknowledgment=bool(row[7]),
                metadata=json.loads(row[8]) if row[8] else {},
                timestamp=_parse_ts(row[9]),
            )
            for row in rows
        ]

    # AgentStatus
    async def save_agent_status(self, status: AgentStatus) -> None:
        """Save an agent status snapshot."""
        conn = self._require_conn()

        last_error = None
        if status.last_error:
            last_error = dumps(
                {
                    "message": status.last_error.message,
                    "timestamp": status.last_error.timestamp.isoformat(),
                    "details": status.last_error.details,
                }
            )

        await conn.execute(
            """
            INSERT OR REPLACE INTO agent_statuses
            (agent_id, active, healthy, metrics, last_error, updated_at)
            VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            (
                status.id,
                int(status.active),
                int(status.healthy),
                dumps(status.metrics.to_dict()),
                last_error,
            ),
        )
        await conn.commit()

    async def get_agent_status(self, agent_id: str) -> AgentStatus | None:
        """Get the last saved status of an agent."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT agent_id, active, healthy, metrics, last_error
            FROM agent_statuses
            WHERE agent_id = ?
            """,
            (agent_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        raw_metrics = json.loads(row[3])
        last_check = raw_metrics.pop("last_health_check_time", None)
        metrics = AgentMetrics(
            requests_processed=raw_metrics.pop("requests_processed", 0),
            errors_encountered=raw_metrics.pop("errors_encountered", 0),
            avg_processing_time_ms=raw_metrics.pop("avg_processing_time_ms", 0.0),
            last_health_check_time=_parse_ts(last_check) if last_check else None,
            custom=raw_metrics,
        )

        last_error = None
        if row[4]:
            raw_error = json.loads(row[4])
            last_error = LastError(
                message=raw_error["message"],
                timestamp=_parse_ts(raw_error["timestamp"]),
                details=raw_error.get("details"),
            )

        return AgentStatus(
            id=row[0],
            active=bool(row[1]),
            healthy=bool(row[2]),
            metrics=metrics,
            last_error=last_error,
        )

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "event_records",
            "replay_records",
            "bus_messages",
            "agent_statuses",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
