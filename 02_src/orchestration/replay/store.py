"""Replay store: append-only experience records with bounded capacity."""

import asyncio
import json
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

from ..config import DEFAULT_REPLAY_PATH, resolve_project_path
from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models import Message, MessagePriority, MessageType, ReplayBufferConfig, ReplayRecord
from ..storage import IStorage, dumps

logger = get_logger(__name__)

_BASE_PRIORITY = {
    MessagePriority.LOW: 0.2,
    MessagePriority.NORMAL: 0.5,
    MessagePriority.HIGH: 0.7,
}


def experience_priority(message: Message, success: bool) -> float:
    """Score how interesting the handling of a message is, within [0, 1]."""
    priority = _BASE_PRIORITY.get(message.priority, 0.5)
    if message.type == MessageType.ERROR:
        priority += 0.2
    elif message.type == MessageType.COMMAND:
        priority += 0.1
    if not success:
        priority += 0.3
    if message.requires_acknowledgment:
        priority += 0.1
    return min(max(priority, 0.0), 1.0)


class IReplayStore(Protocol):
    """Append-only store of experience records."""

    def append(self, record: ReplayRecord) -> None:
        """Append a record, evicting if over capacity."""
        ...

    def sample(self, n: int | None = None, prioritized: bool | None = None) -> list[ReplayRecord]:
        """Retrieve up to n records."""
        ...

    def add_experience(
        self,
        agent_id: str,
        input: Any,
        output: Any,
        outcome: float,
        priority: float,
        metadata: dict[str, Any] | None = None,
    ) -> ReplayRecord:
        """Build and append a record."""
        ...


class IReplayPersistence(Protocol):
    """Backend mirroring the in-memory records."""

    def record_appended(self, record: ReplayRecord) -> None:
        ...

    def records_removed(self, record_ids: list[str]) -> None:
        ...

    async def load(self) -> list[ReplayRecord]:
        ...

    async def flush(self) -> None:
        ...


def _record_from_dict(raw: dict[str, Any]) -> ReplayRecord:
    ts = datetime.fromisoformat(raw["timestamp"])
    return ReplayRecord(
        id=raw["id"],
        agent_id=raw["agent_id"],
        input=raw.get("input"),
        output=raw.get("output"),
        outcome=float(raw.get("outcome", 0.0)),
        priority=float(raw.get("priority", 0.0)),
        timestamp=ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc),
        metadata=raw.get("metadata") or {},
    )


class FileReplayPersistence:
    """JSON-lines file; removals are appended as tombstones."""

    def __init__(self, path: Path):
        self._path = path

    def record_appended(self, record: ReplayRecord) -> None:
        self._write({"record": record.to_dict()})

    def records_removed(self, record_ids: list[str]) -> None:
        if record_ids:
            self._write({"removed": list(record_ids)})

    async def load(self) -> list[ReplayRecord]:
        if not self._path.exists():
            return []
        records: dict[str, ReplayRecord] = {}
        with open(self._path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = json.loads(line)
                if "record" in entry:
                    record = _record_from_dict(entry["record"])
                    records[record.id] = record
                for record_id in entry.get("removed", []):
                    records.pop(record_id, None)
        return list(records.values())

    async def flush(self) -> None:
        return None

    def _write(self, entry: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(dumps(entry) + "\n")


class StorageReplayPersistence:
    """Write-behind mirror into Storage, applied in call order."""

    def __init__(self, storage: IStorage):
        self._storage = storage
        self._tail: asyncio.Task | None = None

    def record_appended(self, record: ReplayRecord) -> None:
        self._schedule(lambda: self._storage.save_replay_record(record))

    def records_removed(self, record_ids: list[str]) -> None:
        if record_ids:
            ids = list(record_ids)
            self._schedule(lambda: self._storage.delete_replay_records(ids))

    async def load(self) -> list[ReplayRecord]:
        await self.flush()
        return await self._storage.get_replay_records()

    async def flush(self) -> None:
        if self._tail is not None:
            await asyncio.gather(self._tail, return_exceptions=True)

    def _schedule(self, operation: Callable[[], Awaitable[None]]) -> None:
        previous = self._tail

        async def run() -> None:
            if previous is not None:
                await asyncio.gather(previous, return_exceptions=True)
            try:
                await operation()
            except Exception as e:
                logger.error("Replay persistence failed: %s", e)

        try:
            self._tail = asyncio.get_running_loop().create_task(run())
        except RuntimeError:
            logger.warning("No running loop, replay change not persisted")


class ReplayStore:
    """In-memory replay store with priority or FIFO eviction."""

    def __init__(
        self,
        config: ReplayBufferConfig | None = None,
        persistence: IReplayPersistence | None = None,
    ):
        self._config = config or ReplayBufferConfig()
        self._persistence = persistence
        self._records: list[ReplayRecord] = []

    @property
    def config(self) -> ReplayBufferConfig:
        return self._config

    async def load(self) -> int:
        """Restore records from the persistence backend."""
        if self._persistence is None:
            return 0
        restored = await self._persistence.load()
        restored.sort(key=lambda r: r.timestamp)
        self._records = []
        for record in restored:
            self._records.append(record)
            self._evict_overflow(persist=False)
        return len(self._records)

    def append(self, record: ReplayRecord) -> None:
        """Append a record, evicting if over capacity."""
        self._records.append(record)
        if self._persistence is not None:
            self._persistence.record_appended(record)
        self._evict_overflow(persist=True)

    def add_experience(
        self,
        agent_id: str,
        input: Any,
        output: Any,
        outcome: float,
        priority: float,
        metadata: dict[str, Any] | None = None,
    ) -> ReplayRecord:
        """Build and append a record."""
        record = ReplayRecord(
            id=f"exp_{uuid.uuid4()}",
            agent_id=agent_id,
            input=input,
            output=output,
            outcome=outcome,
            priority=priority,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata or {},
        )
        self.append(record)
        return record

    def sample(self, n: int | None = None, prioritized: bool | None = None) -> list[ReplayRecord]:
        """
        Retrieve up to n records.

        Prioritized sampling returns the highest-priority records first
        (ties oldest first); otherwise records come oldest first.
        """
        if prioritized is None:
            prioritized = self._config.use_prioritized_sampling

        if prioritized:
            ordered = [
                record
                for _, record in sorted(
                    enumerate(self._records), key=lambda item: (-item[1].priority, item[0])
                )
            ]
        else:
            ordered = list(self._records)

        return ordered if n is None else ordered[:n]

    def sample_by_agent(self, agent_id: str, n: int | None = None) -> list[ReplayRecord]:
        records = [r for r in self.sample(prioritized=None) if r.agent_id == agent_id]
        return records if n is None else records[:n]

    def high_priority_records(self) -> list[ReplayRecord]:
        """Records at or above the configured priority threshold."""
        return [r for r in self._records if r.priority >= self._config.priority_threshold]

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop records older than retention_days. Returns how many went."""
        if self._config.retention_days <= 0:
            return 0
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self._config.retention_days)
        expired = [r.id for r in self._records if r.timestamp < cutoff]
        if expired:
            gone = set(expired)
            self._records = [r for r in self._records if r.id not in gone]
            if self._persistence is not None:
                self._persistence.records_removed(expired)
        return len(expired)

    def size(self) -> int:
        return len(self._records)

    def get_all(self) -> list[ReplayRecord]:
        return list(self._records)

    def clear(self) -> None:
        removed = [r.id for r in self._records]
        self._records = []
        if self._persistence is not None:
            self._persistence.records_removed(removed)

    def statistics(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        recent_cutoff = now - timedelta(minutes=10)
        return {
            "total_records": len(self._records),
            "by_agent": dict(Counter(r.agent_id for r in self._records)),
            "by_outcome": {
                "success": sum(1 for r in self._records if r.outcome > 0),
                "failure": sum(1 for r in self._records if r.outcome <= 0),
            },
            "high_priority": len(self.high_priority_records()),
            "recent_additions": sum(1 for r in self._records if r.timestamp > recent_cutoff),
        }

    async def flush(self) -> None:
        """Wait for the persistence backend to catch up."""
        if self._persistence is not None:
            await self._persistence.flush()

    def _evict_overflow(self, persist: bool) -> None:
        evicted: list[str] = []
        while len(self._records) > self._config.max_size:
            if self._config.use_prioritized_sampling:
                # lowest priority first, oldest first among equals
                index = min(
                    range(len(self._records)),
                    key=lambda i: (self._records[i].priority, i),
                )
            else:
                index = 0
            evicted.append(self._records.pop(index).id)

        if evicted and persist and self._persistence is not None:
            self._persistence.records_removed(evicted)


def create_replay_store(
    config: ReplayBufferConfig, storage: IStorage | None = None
) -> ReplayStore:
    """Build a replay store with the persistence backend selected by configuration."""
    if config.type == "in-memory" or not config.persist_experiences:
        return ReplayStore(config)
    if config.type == "file":
        path = resolve_project_path(config.file_path, DEFAULT_REPLAY_PATH)
        return ReplayStore(config, FileReplayPersistence(path))
    if config.type == "database":
        if storage is None:
            raise ConfigurationError("Replay type 'database' requires a storage backend")
        return ReplayStore(config, StorageReplayPersistence(storage))
    raise ConfigurationError(
        f"Replay buffer type '{config.type}' is not supported by this build",
        {"type": config.type},
    )
