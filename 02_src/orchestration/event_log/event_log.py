"""EventLog implementation: append-only structured operational events."""

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from ..logging_config import get_logger
from ..models import EventRecord, EventSeverity, EventType, LoggerConfig, RemoteLogServiceConfig
from ..storage import IStorage, dumps

logger = get_logger(__name__)

_LEVELS = {
    EventType.INFO: logging.INFO,
    EventType.WARNING: logging.WARNING,
    EventType.ERROR: logging.ERROR,
}


class IEventSink(Protocol):
    """Asynchronous destination for event records."""

    async def write(self, record: EventRecord) -> None:
        """Persist or forward one record."""
        ...


class IEventLog(Protocol):
    """Append-only structured event sink shared by every component."""

    def log(
        self,
        type: EventType,
        source: str,
        message: str,
        *,
        severity: EventSeverity | None = None,
        data: Any = None,
    ) -> EventRecord | None:
        """Append an event. Never raises and never waits on remote I/O."""
        ...

    def get_events(
        self,
        type: EventType | None = None,
        severity: EventSeverity | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """Query the in-memory history (newest first)."""
        ...


class StorageEventSink:
    """Writes event records to Storage."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def write(self, record: EventRecord) -> None:
        await self._storage.save_event_record(record)


class RemoteEventSink:
    """POSTs event records to a remote log collector."""

    def __init__(
        self,
        service: RemoteLogServiceConfig,
        client: httpx.AsyncClient | None = None,
    ):
        self._service = service
        self._client = client or httpx.AsyncClient(timeout=5.0)

    async def write(self, record: EventRecord) -> None:
        headers = {"Content-Type": "application/json"}
        if self._service.api_key:
            headers["Authorization"] = f"Bearer {self._service.api_key}"
        response = await self._client.post(
            self._service.url,
            content=dumps(record.to_dict()),
            headers=headers,
        )
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


class EventLog:
    """Keeps recent events in memory, mirrors them to logging and sinks."""

    def __init__(
        self,
        config: LoggerConfig | None = None,
        sinks: list[IEventSink] | None = None,
    ):
        self._config = config or LoggerConfig()
        self._records: deque[EventRecord] = deque(maxlen=self._config.max_records)
        self._sinks: list[IEventSink] = list(sinks or [])
        self._pending: set[asyncio.Task] = set()

        if self._config.remote and self._config.remote_service:
            self._sinks.append(RemoteEventSink(self._config.remote_service))

    def add_sink(self, sink: IEventSink) -> None:
        """Attach another destination for subsequent events."""
        self._sinks.append(sink)

    def log(
        self,
        type: EventType,
        source: str,
        message: str,
        *,
        severity: EventSeverity | None = None,
        data: Any = None,
    ) -> EventRecord | None:
        """Append an event. Never raises and never waits on remote I/O."""
        try:
            record = EventRecord(
                id=str(uuid.uuid4()),
                type=EventType(type),
                severity=EventSeverity(severity) if severity else None,
                source=source,
                message=message,
                data=data,
                timestamp=datetime.now(timezone.utc),
            )
            self._records.append(record)

            logger.log(
                _LEVELS[record.type],
                "[%s] %s",
                source,
                message,
                extra={"context": record.to_dict()},
            )

            self._dispatch(record)
            return record
        except Exception as e:
            logger.error("Failed to record event from %s: %s", source, e)
            return None

    def info(self, source: str, message: str, data: Any = None) -> EventRecord | None:
        return self.log(EventType.INFO, source, message, data=data)

    def warning(
        self,
        source: str,
        message: str,
        severity: EventSeverity | None = None,
        data: Any = None,
    ) -> EventRecord | None:
        return self.log(EventType.WARNING, source, message, severity=severity, data=data)

    def error(
        self,
        source: str,
        message: str,
        severity: EventSeverity | None = EventSeverity.HIGH,
        data: Any = None,
    ) -> EventRecord | None:
        return self.log(EventType.ERROR, source, message, severity=severity, data=data)

    def get_events(
        self,
        type: EventType | None = None,
        severity: EventSeverity | None = None,
        source: str | None = None,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """Query the in-memory history (newest first)."""
        events = [
            record
            for record in reversed(self._records)
            if (type is None or record.type == type)
            and (severity is None or record.severity == severity)
            and (source is None or record.source == source)
        ]
        return events[:limit] if limit is not None else events

    async def flush(self) -> None:
        """Wait for all background sink writes issued so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Flush pending writes and release sink resources."""
        await self.flush()
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                await close()

    def clear(self) -> None:
        """Drop the in-memory history."""
        self._records.clear()

    def _dispatch(self, record: EventRecord) -> None:
        if not self._sinks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, event %s kept in memory only", record.id)
            return

        for sink in self._sinks:
            task = loop.create_task(sink.write(record))
            self._pending.add(task)
            task.add_done_callback(self._on_sink_done)

    def _on_sink_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Event sink write failed: %s", error)
