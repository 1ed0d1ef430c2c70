"""Core data models for the agent orchestration system."""

from .agents import (
    AgentContext,
    AgentIdentity,
    AgentLifecycle,
    AgentMetrics,
    AgentStatus,
    AgentStatusReport,
    HealthReport,
    IssueSeverity,
    LastError,
    ValidationIssue,
    ValidationResult,
)
from .config import (
    AgentConfig,
    AgentSystemConfig,
    DashboardAuth,
    DashboardConfig,
    LoggerConfig,
    MessageBrokerConfig,
    MessageBrokerTopics,
    MonitoringConfig,
    PerformanceThresholds,
    RemoteLogServiceConfig,
    ReplayBufferConfig,
    SecurityConfig,
    TrainingConfig,
)
from .events import EventRecord, EventSeverity, EventType
from .messages import (
    BROADCAST,
    Acknowledgment,
    AgentEvent,
    AgentRequest,
    AgentResponse,
    AssistanceRequest,
    Message,
    MessageContent,
    MessageFilter,
    MessagePriority,
    MessageType,
    RegistrationNotice,
    StatusQuery,
    SystemHealthNotice,
    content_action,
)
from .replay import ReplayRecord
from .workflows import Workflow, WorkflowError, WorkflowResult, WorkflowStatus, WorkflowStep

__all__ = [
    # Agents
    "AgentContext",
    "AgentIdentity",
    "AgentLifecycle",
    "AgentMetrics",
    "AgentStatus",
    "AgentStatusReport",
    "HealthReport",
    "IssueSeverity",
    "LastError",
    "ValidationIssue",
    "ValidationResult",
    # Configuration
    "AgentConfig",
    "AgentSystemConfig",
    "DashboardAuth",
    "DashboardConfig",
    "LoggerConfig",
    "MessageBrokerConfig",
    "MessageBrokerTopics",
    "MonitoringConfig",
    "PerformanceThresholds",
    "RemoteLogServiceConfig",
    "ReplayBufferConfig",
    "SecurityConfig",
    "TrainingConfig",
    # Events
    "EventRecord",
    "EventSeverity",
    "EventType",
    # Messages
    "BROADCAST",
    "Acknowledgment",
    "AgentEvent",
    "AgentRequest",
    "AgentResponse",
    "AssistanceRequest",
    "Message",
    "MessageContent",
    "MessageFilter",
    "MessagePriority",
    "MessageType",
    "RegistrationNotice",
    "StatusQuery",
    "SystemHealthNotice",
    "content_action",
    # Replay
    "ReplayRecord",
    # Workflows
    "Workflow",
    "WorkflowError",
    "WorkflowResult",
    "WorkflowStatus",
    "WorkflowStep",
]
