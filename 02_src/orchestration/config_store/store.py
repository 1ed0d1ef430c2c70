"""ConfigStore: environment-selected, read-only agent system configuration."""

import json
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models import (
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

logger = get_logger(__name__)

ENVIRONMENTS = ("development", "staging", "production")


def _agent(
    agent_id: str,
    name: str,
    capabilities: tuple[str, ...],
    max_error_rate: float | None = None,
    max_avg_processing_time_ms: float | None = None,
    max_consecutive_failures: int | None = None,
    enabled: bool = True,
) -> AgentConfig:
    return AgentConfig(
        id=agent_id,
        name=name,
        capabilities=capabilities,
        enabled=enabled,
        performance_thresholds=PerformanceThresholds(
            max_error_rate=max_error_rate,
            max_avg_processing_time_ms=max_avg_processing_time_ms,
            max_consecutive_failures=max_consecutive_failures,
        ),
    )


DEFAULT_AGENTS: tuple[AgentConfig, ...] = (
    # Leadership
    _agent(
        "architect-prime",
        "Architect Prime",
        (
            "system_architecture",
            "vision_maintenance",
            "architectural_decision_making",
            "system_integrity_validation",
            "cross_component_dependency_management",
        ),
        0.02, 3000, 1,
    ),
    _agent(
        "integration-coordinator",
        "Integration Coordinator",
        (
            "api_contract_management",
            "integration_checkpoint_management",
            "cross_component_dependency_tracking",
            "integration_validation",
            "component_synchronization",
        ),
        0.05, 4000, 2,
    ),
    _agent(
        "bsbcmaster-lead",
        "BSBCmaster Lead",
        (
            "component_management",
            "authentication_management",
            "user_management",
            "permission_control",
            "data_foundation",
            "service_discovery",
        ),
        0.05, 5000, 2,
    ),
    # Domain
    _agent(
        "data-validation-agent",
        "Data Validation Agent",
        ("property:validation", "data:validation"),
        0.1, 5000, 3,
    ),
    _agent(
        "legal-compliance-agent",
        "Legal Compliance Agent",
        ("compliance:check", "regulation:validation"),
        max_error_rate=0.05,
        max_consecutive_failures=2,
    ),
    _agent(
        "valuation-agent",
        "Valuation Agent",
        ("property:valuation", "market:analysis"),
        max_error_rate=0.1,
        max_avg_processing_time_ms=10000,
    ),
    _agent(
        "workflow-agent",
        "Workflow Agent",
        ("workflow:orchestration", "task:delegation"),
        max_error_rate=0.05,
        max_consecutive_failures=3,
    ),
    # Development
    _agent(
        "god-tier-builder",
        "God Tier Builder",
        (
            "model_creation",
            "parameter_optimization",
            "feature_selection",
            "code_generation",
            "feature_implementation",
            "bug_fixing",
            "refactoring",
        ),
        0.08, 8000, 2,
    ),
    _agent(
        "tdd-validator",
        "TDD Validator",
        (
            "model_testing",
            "regression_testing",
            "validation_reporting",
            "code_verification",
            "test_generation",
            "code_quality_analysis",
        ),
        0.05, 6000, 2,
    ),
    # Diagnostics
    _agent("echo-agent", "Echo Agent", ("echo", "ping"), 0.5, 1000, 5),
)


def development_config() -> AgentSystemConfig:
    return AgentSystemConfig(environment="development", agents=DEFAULT_AGENTS)


def staging_config() -> AgentSystemConfig:
    base = development_config()
    return replace(
        base,
        environment="staging",
        replay_buffer=replace(base.replay_buffer, type="database", persist_experiences=True),
        logger=LoggerConfig(level="info", console=True, file=True, file_path="04_logs/agent-system.log"),
    )


def production_config() -> AgentSystemConfig:
    base = development_config()
    return replace(
        base,
        environment="production",
        replay_buffer=replace(base.replay_buffer, type="database", persist_experiences=True),
        logger=LoggerConfig(level="warn", console=True, file=True, file_path="04_logs/agent-system.log"),
        dashboard=replace(
            base.dashboard,
            enabled=True,
            auth=DashboardAuth(
                required=True,
                username=os.getenv("DASHBOARD_USERNAME", "admin"),
                password=os.getenv("DASHBOARD_PASSWORD", "password"),
            ),
        ),
        security=SecurityConfig(
            encrypt_sensitive_data=True,
            encryption_key=os.getenv("ENCRYPTION_KEY"),
        ),
    )


_VARIANTS = {
    "development": development_config,
    "staging": staging_config,
    "production": production_config,
}


class ConfigStore:
    """Holds one AgentSystemConfig; never mutated after construction."""

    def __init__(self, config: AgentSystemConfig | None = None):
        self._config = config or development_config()

    @classmethod
    def for_environment(cls, environment: str) -> "ConfigStore":
        factory = _VARIANTS.get(environment)
        if factory is None:
            raise ConfigurationError(
                f"Unknown environment '{environment}'",
                {"environment": environment, "known": list(ENVIRONMENTS)},
            )
        return cls(factory())

    @classmethod
    def from_env(cls) -> "ConfigStore":
        """Select the variant named by APP_ENV (default: development)."""
        environment = os.getenv("APP_ENV", "development").strip().lower() or "development"
        logger.info("Loading %s configuration", environment)
        return cls.for_environment(environment)

    @classmethod
    def from_file(cls, path: str | Path) -> "ConfigStore":
        """Load a JSON document shaped like AgentSystemConfig (camelCase accepted)."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", {"path": str(path)}) from e
        return cls(parse_system_config(raw))

    @property
    def config(self) -> AgentSystemConfig:
        return self._config

    @property
    def environment(self) -> str:
        return self._config.environment

    def enabled_agents(self) -> list[AgentConfig]:
        return [agent for agent in self._config.agents if agent.enabled]

    def get_agent_config(self, agent_id: str) -> AgentConfig | None:
        for agent in self._config.agents:
            if agent.id == agent_id:
                return agent
        return None


# JSON parsing

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

# keys whose names differ beyond camelCase -> snake_case
_ALIASES = {
    "max_avg_processing_time": "max_avg_processing_time_ms",
    "refresh_interval": "refresh_interval_ms",
}


def _snake(data: Mapping[str, Any]) -> dict[str, Any]:
    result = {}
    for key, value in data.items():
        name = _CAMEL.sub("_", key).lower()
        result[_ALIASES.get(name, name)] = value
    return result


def _build(cls, raw: Mapping[str, Any] | None, **nested):
    if raw is None:
        return None
    data = _snake(raw)
    fields = cls.__dataclass_fields__
    kwargs = {k: v for k, v in data.items() if k in fields}
    kwargs.update({k: v for k, v in nested.items() if v is not None})
    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {cls.__name__}: {e}", {"value": dict(raw)}) from e


def parse_agent_config(raw: Mapping[str, Any]) -> AgentConfig:
    data = _snake(raw)
    if "id" not in data or "name" not in data:
        raise ConfigurationError("Agent config requires 'id' and 'name'", {"value": dict(raw)})
    return _build(
        AgentConfig,
        raw,
        capabilities=tuple(data.get("capabilities") or ()),
        performance_thresholds=_build(PerformanceThresholds, data.get("performance_thresholds")),
        settings=dict(data.get("settings") or {}),
    )


def parse_system_config(raw: Mapping[str, Any]) -> AgentSystemConfig:
    data = _snake(raw)
    environment = data.get("environment", "development")
    if environment not in ENVIRONMENTS:
        raise ConfigurationError(f"Unknown environment '{environment}'", {"environment": environment})

    broker = data.get("message_broker")
    logger_raw = data.get("logger")
    dashboard = data.get("dashboard")

    return _build(
        AgentSystemConfig,
        raw,
        message_broker=_build(
            MessageBrokerConfig,
            broker,
            topics=_build(MessageBrokerTopics, _snake(broker).get("topics") if broker else None),
        ),
        replay_buffer=_build(ReplayBufferConfig, data.get("replay_buffer")),
        training=_build(TrainingConfig, data.get("training")),
        agents=tuple(parse_agent_config(a) for a in data.get("agents") or ()),
        logger=_build(
            LoggerConfig,
            logger_raw,
            remote_service=_build(
                RemoteLogServiceConfig,
                _snake(logger_raw).get("remote_service") if logger_raw else None,
            ),
        ),
        dashboard=_build(
            DashboardConfig,
            dashboard,
            auth=_build(DashboardAuth, _snake(dashboard).get("auth") if dashboard else None),
        ),
        monitoring=_build(MonitoringConfig, data.get("monitoring")),
        security=_build(SecurityConfig, data.get("security")),
    )
