"""Agent system configuration models."""

from dataclasses import dataclass, field
from typing import Any, Literal

Environment = Literal["development", "staging", "production"]
BrokerType = Literal["in-memory", "redis", "kafka", "mqtt"]
ReplayBackend = Literal["in-memory", "redis", "database", "file"]
LogLevel = Literal["debug", "info", "warn", "error"]


@dataclass(frozen=True)
class MessageBrokerTopics:
    """Topic names used by networked broker backends."""

    broadcast: str = "agents.broadcast"
    system: str = "agents.system"
    errors: str = "agents.errors"


@dataclass(frozen=True)
class MessageBrokerConfig:
    """Message bus backend selection."""

    type: BrokerType = "in-memory"
    endpoint: str | None = None
    topics: MessageBrokerTopics = field(default_factory=MessageBrokerTopics)
    history_size: int = 1000


@dataclass(frozen=True)
class ReplayBufferConfig:
    """Replay store capacity, eviction and persistence."""

    type: ReplayBackend = "in-memory"
    max_size: int = 10000
    priority_threshold: float = 0.7
    use_prioritized_sampling: bool = True
    persist_experiences: bool = False
    file_path: str | None = None
    retention_days: int = 30  # 0 keeps records indefinitely


@dataclass(frozen=True)
class TrainingConfig:
    """Carried for completeness; the orchestration core never trains."""

    trigger_type: Literal["buffer-size", "time-interval", "manual"] = "buffer-size"
    buffer_size_threshold: int | None = 1000
    interval_ms: int | None = None
    batch_size: int = 100
    auto_apply: bool = False


@dataclass(frozen=True)
class PerformanceThresholds:
    """Limits that trigger an assistance request when exceeded."""

    max_error_rate: float | None = None  # 0..1
    max_avg_processing_time_ms: float | None = None
    max_consecutive_failures: int | None = None

    def __post_init__(self) -> None:
        if self.max_error_rate is not None and not 0 <= self.max_error_rate <= 1:
            raise ValueError("max_error_rate must be within [0, 1]")


@dataclass(frozen=True)
class AgentConfig:
    """Declarative configuration of one agent."""

    id: str
    name: str
    capabilities: tuple[str, ...] = ()
    enabled: bool = True
    performance_thresholds: PerformanceThresholds | None = None
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoteLogServiceConfig:
    """Remote log collector."""

    type: Literal["elasticsearch", "datadog", "custom"] = "custom"
    url: str = ""
    api_key: str | None = None


@dataclass(frozen=True)
class LoggerConfig:
    """Where operational events go."""

    level: LogLevel = "info"
    console: bool = True
    file: bool = False
    file_path: str | None = None
    remote: bool = False
    remote_service: RemoteLogServiceConfig | None = None
    max_records: int = 10000  # in-memory history kept by the EventLog


@dataclass(frozen=True)
class DashboardAuth:
    required: bool = False
    username: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class DashboardConfig:
    enabled: bool = False
    port: int = 8080
    host: str = "0.0.0.0"
    refresh_interval_ms: int = 5000
    auth: DashboardAuth | None = None


@dataclass(frozen=True)
class SecurityConfig:
    encrypt_sensitive_data: bool = False
    encryption_key: str | None = None


@dataclass(frozen=True)
class MonitoringConfig:
    """Intervals and timeouts of the manager's periodic loops."""

    health_check_interval_s: float = 60.0
    performance_check_interval_s: float = 300.0
    status_timeout_s: float = 5.0
    execute_timeout_s: float = 30.0


@dataclass(frozen=True)
class AgentSystemConfig:
    """Complete agent system configuration."""

    system_name: str = "Spatialest Agent System"
    version: str = "1.0.0"
    environment: Environment = "development"
    message_broker: MessageBrokerConfig = field(default_factory=MessageBrokerConfig)
    replay_buffer: ReplayBufferConfig = field(default_factory=ReplayBufferConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    agents: tuple[AgentConfig, ...] = ()
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    security: SecurityConfig | None = None
