"""Agent-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable


class AgentLifecycle(str, Enum):
    """Coarse lifecycle of a single agent."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    PROCESSING = "processing"
    IDLE = "idle"
    SHUTDOWN = "shutdown"


class IssueSeverity(str, Enum):
    """Severity of a validation issue."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class AgentIdentity:
    """Stable identity of an agent, fixed at construction."""

    id: str
    name: str
    capabilities: frozenset[str] = frozenset()


@dataclass
class ValidationIssue:
    """A single problem found in an agent input."""

    field: str
    type: str
    description: str
    severity: IssueSeverity = IssueSeverity.MEDIUM


@dataclass
class ValidationResult:
    """Outcome of Agent.validate_input()."""

    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    validated_data: Any = None

    @classmethod
    def ok(cls, validated_data: Any = None) -> "ValidationResult":
        return cls(is_valid=True, validated_data=validated_data)

    @classmethod
    def failed(cls, *issues: ValidationIssue) -> "ValidationResult":
        return cls(is_valid=False, issues=list(issues))


LogFunction = Callable[[str, str, Any], None]


def _noop_log(level: str, message: str, data: Any = None) -> None:
    return None


@dataclass
class AgentContext:
    """Execution context handed to Agent.process()."""

    execution_id: str
    timestamp: datetime
    access_level: str = "system"
    correlation_id: str | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    log_function: LogFunction = _noop_log

    def log(self, level: str, message: str, data: Any = None) -> None:
        """Log through the broker on behalf of the executing agent."""
        self.log_function(level, message, data)


@dataclass
class AgentStatusReport:
    """What an agent reports about itself from get_status()."""

    id: str
    healthy: bool
    metrics: dict[str, Any] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)
    state: AgentLifecycle = AgentLifecycle.IDLE


@dataclass
class AgentMetrics:
    """Counters tracked for each managed agent."""

    requests_processed: int = 0
    errors_encountered: int = 0
    avg_processing_time_ms: float = 0.0
    last_health_check_time: datetime | None = None
    custom: dict[str, Any] = field(default_factory=dict)

    def error_rate(self) -> float | None:
        """Errors per processed request, None before the first request."""
        if self.requests_processed == 0:
            return None
        return self.errors_encountered / self.requests_processed

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests_processed": self.requests_processed,
            "errors_encountered": self.errors_encountered,
            "avg_processing_time_ms": self.avg_processing_time_ms,
            "last_health_check_time": (
                self.last_health_check_time.isoformat()
                if self.last_health_check_time
                else None
            ),
            **self.custom,
        }


@dataclass
class LastError:
    """Most recent failure observed for an agent."""

    message: str
    timestamp: datetime
    details: Any = None


@dataclass
class AgentStatus:
    """Manager-owned status of a registered agent."""

    id: str
    active: bool = True
    healthy: bool = True
    metrics: AgentMetrics = field(default_factory=AgentMetrics)
    last_error: LastError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "active": self.active,
            "healthy": self.healthy,
            "metrics": self.metrics.to_dict(),
            "last_error": (
                {
                    "message": self.last_error.message,
                    "timestamp": self.last_error.timestamp.isoformat(),
                    "details": self.last_error.details,
                }
                if self.last_error
                else None
            ),
        }


@dataclass
class HealthReport:
    """Point-in-time snapshot of every managed agent's status."""

    timestamp: datetime
    system_status: str  # healthy, degraded or critical
    agents: list[tuple[str, AgentStatus]] = field(default_factory=list)

    @property
    def agent_count(self) -> int:
        return len(self.agents)

    @property
    def healthy_agent_count(self) -> int:
        return sum(1 for _, status in self.agents if status.healthy)

    @property
    def unhealthy_agent_count(self) -> int:
        return self.agent_count - self.healthy_agent_count

    def to_dict(self) -> dict[str, Any]:
        agents = []
        for name, status in self.agents:
            data = status.to_dict()
            data["name"] = name
            data["status"] = "healthy" if status.healthy else "unhealthy"
            agents.append(data)
        return {
            "timestamp": self.timestamp.isoformat(),
            "system_status": self.system_status,
            "agent_count": self.agent_count,
            "healthy_agent_count": self.healthy_agent_count,
            "unhealthy_agent_count": self.unhealthy_agent_count,
            "agents": agents,
        }
