"""Agent factory table keyed by agent id."""

from typing import Callable, Iterator

from ..agents import ECHO_AGENT_ID, BaseAgent, EchoAgent
from ..models import AgentConfig

AgentFactory = Callable[[AgentConfig], BaseAgent]


class AgentRegistry:
    """Maps configured agent ids to the factories that build them."""

    def __init__(self, factories: dict[str, AgentFactory] | None = None):
        self._factories: dict[str, AgentFactory] = dict(factories or {})

    def register(self, agent_id: str, factory: AgentFactory) -> None:
        self._factories[agent_id] = factory

    def get(self, agent_id: str) -> AgentFactory | None:
        return self._factories.get(agent_id)

    def create(self, config: AgentConfig) -> BaseAgent | None:
        """Build the agent for a config, or None if no factory is known."""
        factory = self._factories.get(config.id)
        if factory is None:
            return None
        return factory(config)

    def ids(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)


def default_registry() -> AgentRegistry:
    """Registry with the agents that ship with the package."""
    return AgentRegistry({ECHO_AGENT_ID: EchoAgent.from_config})
