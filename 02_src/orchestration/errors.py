"""Exception hierarchy for the orchestration core."""

from typing import Any


class OrchestrationError(Exception):
    """Base error carrying structured context for the event log."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": str(self),
            "context": self.context,
        }


class ConfigurationError(OrchestrationError):
    """Missing or unsupported configuration."""


class AgentNotFoundError(OrchestrationError):
    """No agent is registered under the requested id."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent with ID {agent_id} not found", {"agent_id": agent_id})
        self.agent_id = agent_id


class DuplicateAgentError(OrchestrationError):
    """An agent with the same id is already registered."""

    def __init__(self, agent_id: str):
        super().__init__(
            f"Agent with ID {agent_id} already registered", {"agent_id": agent_id}
        )
        self.agent_id = agent_id


class MessageDeliveryError(OrchestrationError):
    """A message could not be handed to a recipient."""


class AgentTimeoutError(OrchestrationError):
    """An agent call exceeded its time budget."""

    def __init__(self, agent_id: str, operation: str, timeout: float):
        super().__init__(
            f"Agent {agent_id} timed out after {timeout}s during {operation}",
            {"agent_id": agent_id, "operation": operation, "timeout": timeout},
        )
        self.agent_id = agent_id
        self.timeout = timeout


class WorkflowNotFoundError(OrchestrationError):
    """No workflow is registered under the requested id."""

    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow with ID {workflow_id} not found", {"workflow_id": workflow_id})
        self.workflow_id = workflow_id


class WorkflowDisabledError(OrchestrationError):
    """The requested workflow exists but is disabled."""

    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow with ID {workflow_id} is disabled", {"workflow_id": workflow_id})
        self.workflow_id = workflow_id
