"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .broker import MasterControlProgram
from .config import resolve_db_path
from .config_store import ConfigStore
from .event_log import EventLog, StorageEventSink
from .logging_config import get_logger
from .manager import AgentManager, AgentRegistry, default_registry
from .message_bus import IMessageBus, create_message_bus
from .replay import ReplayStore, create_replay_store
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Wires one broker and one agent manager per process."""

    def __init__(
        self,
        config_store: ConfigStore | None = None,
        db_path: str | None = None,
        registry: AgentRegistry | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._config_store = config_store or ConfigStore.from_env()
        self._registry = registry or default_registry()

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_log: EventLog | None = None
        self._message_bus: IMessageBus | None = None
        self._replay_store: ReplayStore | None = None
        self._broker: MasterControlProgram | None = None
        self._manager: AgentManager | None = None

    @property
    def config_store(self) -> ConfigStore:
        return self._config_store

    @property
    def storage(self) -> IStorage:
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def event_log(self) -> EventLog:
        if not self._event_log:
            raise RuntimeError("Application not started")
        return self._event_log

    @property
    def replay_store(self) -> ReplayStore:
        if not self._replay_store:
            raise RuntimeError("Application not started")
        return self._replay_store

    @property
    def broker(self) -> MasterControlProgram:
        if not self._broker:
            raise RuntimeError("Application not started")
        return self._broker

    @property
    def manager(self) -> AgentManager:
        if not self._manager:
            raise RuntimeError("Application not started")
        return self._manager

    async def start(self) -> None:
        """Initialize components in dependency order."""
        config = self._config_store.config
        logger.info("Starting %s (%s)", config.system_name, config.environment)

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventLog (mirrors records into Storage)
        self._event_log = EventLog(config.logger, [StorageEventSink(self._storage)])

        # 3. MessageBus (persists published messages)
        self._message_bus = create_message_bus(config.message_broker, self._storage)

        # 4. ReplayStore
        self._replay_store = create_replay_store(config.replay_buffer, self._storage)
        restored = await self._replay_store.load()
        if restored:
            logger.info("Restored %s replay records", restored)

        # 5. Broker
        self._broker = MasterControlProgram(
            self._event_log,
            self._message_bus,
            self._replay_store,
            config.message_broker,
            execute_timeout_s=config.monitoring.execute_timeout_s,
        )

        # 6. AgentManager
        self._manager = AgentManager(
            self._config_store,
            self._broker,
            self._event_log,
            self._replay_store,
            registry=self._registry,
            storage=self._storage,
        )
        await self._manager.initialize_agents()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._manager:
            self._manager.shutdown()
        if self._replay_store:
            await self._replay_store.flush()
        if self._message_bus:
            await self._message_bus.close()
        if self._event_log:
            await self._event_log.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        # 1. Stop supervising
        if self._manager:
            self._manager.shutdown()

        # 2. Clear in-memory history and storage
        if self._event_log:
            await self._event_log.flush()
            self._event_log.clear()
        if self._replay_store:
            self._replay_store.clear()
            await self._replay_store.flush()
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        # 3. Fresh broker and agents
        if self._broker and self._manager:
            for agent in self._broker.get_all_agents():
                self._broker.unregister_agent(agent.id)
            await self._manager.initialize_agents()
