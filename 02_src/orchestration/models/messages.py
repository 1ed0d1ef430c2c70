"""Message envelope and typed message contents."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Literal, Mapping, Union

BROADCAST = "all"


class MessageType(str, Enum):
    """Kind of message travelling through the broker."""

    QUERY = "query"
    COMMAND = "command"
    EVENT = "event"
    RESPONSE = "response"
    BROADCAST = "broadcast"
    ERROR = "error"
    STATUS_UPDATE = "status_update"


class MessagePriority(str, Enum):
    """Delivery priority hint."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "normal": 2, "high": 3}[self.value]


@dataclass(frozen=True)
class AgentRequest:
    """Operation request executed by Agent.process()."""

    kind: ClassVar[str] = "request"

    operation: str
    data: Any = None

    @classmethod
    def from_value(cls, value: "AgentRequest | Mapping[str, Any]") -> "AgentRequest":
        """Accept either a request or a plain {"operation", "data"} mapping."""
        if isinstance(value, AgentRequest):
            return value
        if not isinstance(value, Mapping) or "operation" not in value:
            raise ValueError("request must carry an 'operation'")
        return cls(operation=str(value["operation"]), data=value.get("data"))


@dataclass
class AgentResponse:
    """Result of Agent.process()."""

    kind: ClassVar[str] = "response"

    status: Literal["success", "error"]
    message: str = ""
    data: Any = field(default_factory=dict)
    correlation_id: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, data: Any = None, message: str = "") -> "AgentResponse":
        return cls(status="success", message=message, data={} if data is None else data)

    @classmethod
    def error(cls, message: str, data: Any = None) -> "AgentResponse":
        return cls(status="error", message=message, data={} if data is None else data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "data": self.data,
            "correlation_id": self.correlation_id,
            "metrics": self.metrics,
        }


@dataclass(frozen=True)
class AssistanceRequest:
    """Escalation raised when an agent breaches a performance threshold."""

    kind: ClassVar[str] = "assistance_request"
    action: ClassVar[str] = "assistance_request"

    assistance_request_id: str
    agent_id: str
    issue_type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Acknowledgment:
    """Reply confirming that a message was received."""

    kind: ClassVar[str] = "acknowledgment"

    acknowledged_message_id: str


@dataclass(frozen=True)
class StatusQuery:
    """Ask an agent for its get_status() report."""

    kind: ClassVar[str] = "status_query"


@dataclass(frozen=True)
class AgentEvent:
    """Notification that something happened."""

    kind: ClassVar[str] = "event"

    event: str
    data: Any = None


@dataclass(frozen=True)
class RegistrationNotice:
    """Announces that an agent joined the broker."""

    kind: ClassVar[str] = "registration"

    agent_id: str
    name: str
    capabilities: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SystemHealthNotice:
    """Broadcast after every health-check pass."""

    kind: ClassVar[str] = "system_health"
    action: ClassVar[str] = "system_health"

    status: Literal["healthy", "degraded"]
    unhealthy_agents: tuple[str, ...] = ()
    total_agents: int = 0

    @property
    def unhealthy_agent_count(self) -> int:
        return len(self.unhealthy_agents)


# Concrete-agent payloads outside these variants travel as plain values.
MessageContent = Union[
    AgentRequest,
    AgentResponse,
    AssistanceRequest,
    Acknowledgment,
    StatusQuery,
    AgentEvent,
    RegistrationNotice,
    SystemHealthNotice,
    Any,
]


def content_action(content: Any) -> str | None:
    """Return the action/event/operation tag a content carries, if any."""
    if isinstance(content, (AssistanceRequest, SystemHealthNotice)):
        return content.action
    if isinstance(content, AgentRequest):
        return content.operation
    if isinstance(content, AgentEvent):
        return content.event
    if isinstance(content, Mapping):
        for key in ("action", "event", "operation"):
            if key in content:
                return str(content[key])
    return None


@dataclass(frozen=True)
class Message:
    """Transport envelope exchanged through the broker."""

    id: str
    type: MessageType
    sender_id: str
    recipient_id: str  # agent id or "all"
    content: MessageContent
    timestamp: datetime
    correlation_id: str | None = None
    priority: MessagePriority = MessagePriority.NORMAL
    requires_acknowledgment: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only once built
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def is_broadcast(self) -> bool:
        return self.recipient_id == BROADCAST

    @property
    def in_reply_to(self) -> str | None:
        return self.metadata.get("in_reply_to")


@dataclass(frozen=True)
class MessageFilter:
    """Subscription filter; unset fields match everything."""

    sender_id: str | None = None
    recipient_id: str | None = None
    types: frozenset[MessageType] | None = None
    correlation_id: str | None = None
    content_action: str | None = None
    min_priority: MessagePriority | None = None

    def __post_init__(self) -> None:
        if self.types is not None and not isinstance(self.types, frozenset):
            object.__setattr__(self, "types", frozenset(self.types))

    def matches(self, message: Message) -> bool:
        if self.sender_id and message.sender_id != self.sender_id:
            return False
        if self.recipient_id and message.recipient_id != self.recipient_id:
            return False
        if self.types and message.type not in self.types:
            return False
        if self.correlation_id and message.correlation_id != self.correlation_id:
            return False
        if self.content_action and content_action(message.content) != self.content_action:
            return False
        if self.min_priority and message.priority.rank < self.min_priority.rank:
            return False
        return True
