"""Agent orchestration core."""

from .agents import BaseAgent, EchoAgent
from .app import Application, IApplication
from .broker import BROKER_ID, Broker, IBroker, MasterControlProgram
from .config_store import ConfigStore
from .errors import (
    AgentNotFoundError,
    AgentTimeoutError,
    ConfigurationError,
    DuplicateAgentError,
    MessageDeliveryError,
    OrchestrationError,
    WorkflowDisabledError,
    WorkflowNotFoundError,
)
from .event_log import EventLog, IEventLog
from .manager import AgentManager, AgentRegistry, IAgentManager
from .message_bus import IMessageBus, InMemoryMessageBus
from .models import (
    AgentConfig,
    AgentContext,
    AgentRequest,
    AgentResponse,
    AgentStatus,
    AgentSystemConfig,
    EventRecord,
    Message,
    MessageFilter,
    MessageType,
    ReplayRecord,
    ValidationResult,
    Workflow,
    WorkflowResult,
    WorkflowStep,
)
from .replay import IReplayStore, ReplayStore
from .scheduling import Ticker
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "AgentConfig",
    "AgentContext",
    "AgentRequest",
    "AgentResponse",
    "AgentStatus",
    "AgentSystemConfig",
    "EventRecord",
    "Message",
    "MessageFilter",
    "MessageType",
    "ReplayRecord",
    "ValidationResult",
    "Workflow",
    "WorkflowResult",
    "WorkflowStep",
    # Errors
    "OrchestrationError",
    "ConfigurationError",
    "AgentNotFoundError",
    "DuplicateAgentError",
    "MessageDeliveryError",
    "AgentTimeoutError",
    "WorkflowNotFoundError",
    "WorkflowDisabledError",
    # Components
    "IStorage",
    "Storage",
    "IEventLog",
    "EventLog",
    "IMessageBus",
    "InMemoryMessageBus",
    "IReplayStore",
    "ReplayStore",
    "BaseAgent",
    "EchoAgent",
    "BROKER_ID",
    "IBroker",
    "Broker",
    "MasterControlProgram",
    "IAgentManager",
    "AgentManager",
    "AgentRegistry",
    "ConfigStore",
    "Ticker",
]
