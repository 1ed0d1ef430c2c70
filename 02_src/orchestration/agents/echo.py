"""Echo agent: diagnostic agent used to smoke-test the broker."""

from ..logging_config import get_logger
from ..models import AgentConfig, AgentContext, AgentRequest, AgentResponse
from .base import BaseAgent

logger = get_logger(__name__)

ECHO_AGENT_ID = "echo-agent"


class EchoAgent(BaseAgent):
    """Minimal agent that returns what it receives."""

    def __init__(self, agent_id: str = ECHO_AGENT_ID, name: str = "Echo Agent", capabilities=None):
        super().__init__(agent_id, name, capabilities or {"echo", "ping"})

    @classmethod
    def from_config(cls, config: AgentConfig) -> "EchoAgent":
        return cls(config.id, config.name, set(config.capabilities) or None)

    async def process(self, request: AgentRequest, context: AgentContext) -> AgentResponse:
        if request.operation == "echo":
            context.log("debug", f"Echoing request {context.execution_id}")
            return AgentResponse.success(request.data, message="Echo")
        if request.operation == "ping":
            return AgentResponse.success(
                {"pong": True, "agent_id": self.id, "timestamp": context.timestamp.isoformat()},
                message="Pong",
            )

        logger.info("EchoAgent %s got unsupported operation %s", self.id, request.operation)
        return self.unsupported_operation(request)
