"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from orchestration.agents import BaseAgent  # noqa: E402
from orchestration.models import (  # noqa: E402
    AgentConfig,
    AgentContext,
    AgentRequest,
    AgentResponse,
    AgentSystemConfig,
    MonitoringConfig,
    PerformanceThresholds,
    ReplayBufferConfig,
)


class StubAgent(BaseAgent):
    """Test double: echoes, fails on demand, can break its status check."""

    def __init__(self, agent_id: str, name: str | None = None, capabilities=("echo",)):
        super().__init__(agent_id, name or f"Agent {agent_id}", set(capabilities))
        self.received = []
        self.status_error: Exception | None = None
        self.healthy = True

    async def process(self, request: AgentRequest, context: AgentContext) -> AgentResponse:
        if request.operation == "echo":
            return AgentResponse.success(request.data)
        if request.operation == "context":
            return AgentResponse.success(
                {
                    "correlation_id": context.correlation_id,
                    "access_level": context.access_level,
                    "parameters": context.parameters,
                }
            )
        if request.operation == "fail":
            raise RuntimeError("boom")
        if request.operation == "reject":
            return AgentResponse.error("rejected")
        return self.unsupported_operation(request)

    async def process_message(self, message) -> None:
        self.received.append(message)
        await super().process_message(message)

    async def get_status(self):
        if self.status_error is not None:
            error, self.status_error = self.status_error, None
            raise error
        report = await super().get_status()
        report.healthy = self.healthy
        return report


class BrokenAgent(StubAgent):
    """Test double whose message handling always raises."""

    async def process_message(self, message) -> None:
        self.received.append(message)
        raise RuntimeError("delivery exploded")


def stub_factory(config: AgentConfig) -> StubAgent:
    return StubAgent(config.id, config.name, config.capabilities or ("echo",))


@pytest.fixture
def stub_agent_cls():
    """The StubAgent test double class."""
    return StubAgent


@pytest.fixture
def broken_agent_cls():
    """The BrokenAgent test double class."""
    return BrokenAgent


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from orchestration.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_log():
    """Create an EventLog without sinks."""
    from orchestration.event_log import EventLog

    return EventLog()


@pytest.fixture
def message_bus():
    """Create an in-memory MessageBus without persistence."""
    from orchestration.message_bus import InMemoryMessageBus

    return InMemoryMessageBus()


@pytest.fixture
def replay_store():
    """Create an in-memory ReplayStore."""
    from orchestration.replay import ReplayStore

    return ReplayStore(ReplayBufferConfig(max_size=1000))


@pytest.fixture
def broker(event_log, message_bus, replay_store):
    """Create a broker wired to the shared event log, bus and replay store."""
    from orchestration.broker import MasterControlProgram

    return MasterControlProgram(event_log, message_bus, replay_store, execute_timeout_s=2.0)


@pytest.fixture
def register(broker, replay_store):
    """Register and initialize an agent with the broker."""

    async def _register(agent: BaseAgent) -> BaseAgent:
        await broker.register_agent(agent)
        await agent.initialize(broker, replay_store)
        return agent

    return _register


@pytest.fixture
def monitoring():
    """Monitoring intervals long enough that tickers never fire during a test."""
    return MonitoringConfig(
        health_check_interval_s=3600,
        performance_check_interval_s=3600,
        status_timeout_s=0.5,
        execute_timeout_s=2.0,
    )


@pytest.fixture
def config_store(monitoring):
    """ConfigStore with two stub agents, A and B."""
    from orchestration.config_store import ConfigStore

    return ConfigStore(
        AgentSystemConfig(
            agents=(
                AgentConfig(
                    id="A",
                    name="Agent A",
                    capabilities=("echo",),
                    performance_thresholds=PerformanceThresholds(max_error_rate=0.1),
                ),
                AgentConfig(id="B", name="Agent B", capabilities=("echo", "review")),
                AgentConfig(id="C", name="Agent C", enabled=False),
            ),
            monitoring=monitoring,
        )
    )


@pytest.fixture
def registry():
    """Registry mapping the test roster to StubAgent."""
    from orchestration.manager import AgentRegistry

    return AgentRegistry({"A": stub_factory, "B": stub_factory, "C": stub_factory})


@pytest_asyncio.fixture
async def manager(config_store, broker, event_log, replay_store, registry, monitoring):
    """Create an AgentManager; shut down after the test."""
    from orchestration.manager import AgentManager

    mgr = AgentManager(
        config_store,
        broker,
        event_log,
        replay_store,
        registry=registry,
        monitoring=monitoring,
    )
    yield mgr
    mgr.shutdown()
