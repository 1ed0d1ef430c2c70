"""AgentManager: builds agents from configuration and supervises them."""

import asyncio
import copy
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from ..agents import BaseAgent
from ..broker import IBroker
from ..config_store import ConfigStore
from ..errors import DuplicateAgentError
from ..event_log import IEventLog
from ..logging_config import get_logger
from ..models import (
    BROADCAST,
    AgentConfig,
    AgentMetrics,
    AgentStatus,
    AgentStatusReport,
    AssistanceRequest,
    EventSeverity,
    HealthReport,
    LastError,
    MessagePriority,
    MessageType,
    MonitoringConfig,
    SystemHealthNotice,
)
from ..replay import IReplayStore
from ..scheduling import Ticker
from ..storage import IStorage
from .registry import AgentRegistry, default_registry

logger = get_logger(__name__)

MANAGER_ID = "agent-manager"

_BASE_METRICS = ("requests_processed", "errors_encountered", "avg_processing_time_ms")

# more unhealthy agents than this share of the fleet is critical
CRITICAL_UNHEALTHY_RATIO = 0.3


class IAgentManager(Protocol):
    """Supervisor of configured agents."""

    async def initialize_agents(self) -> None:
        ...

    async def initialize_agent(self, config: AgentConfig) -> BaseAgent | None:
        ...

    def get_agent(self, agent_id: str) -> BaseAgent | None:
        ...

    def get_agent_status(self, agent_id: str) -> AgentStatus | None:
        ...

    def get_health_report(self) -> HealthReport:
        ...

    async def run_health_checks(self) -> None:
        ...

    async def run_performance_checks(self) -> None:
        ...

    def shutdown(self) -> None:
        ...


class AgentManager:
    """
    Instantiates agents from configuration and watches over them.

    Owns the AgentStatus map: only the health-check and performance-check
    passes mutate it. Each pass runs sequentially over the agents, and
    passes never overlap.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        broker: IBroker,
        event_log: IEventLog,
        replay_store: IReplayStore | None = None,
        registry: AgentRegistry | None = None,
        storage: IStorage | None = None,
        monitoring: MonitoringConfig | None = None,
    ):
        self._config_store = config_store
        self._broker = broker
        self._event_log = event_log
        self._replay_store = replay_store
        self._registry = registry or default_registry()
        self._storage = storage
        self._monitoring = monitoring or config_store.config.monitoring

        self._agents: dict[str, BaseAgent] = {}
        self._configs: dict[str, AgentConfig] = {}
        self._status: dict[str, AgentStatus] = {}

        self._check_lock = asyncio.Lock()
        self._health_ticker: Ticker | None = None
        self._performance_ticker: Ticker | None = None
        self._shut_down = False

        self._event_log.info(MANAGER_ID, "Agent Manager initialized")

    # Lifecycle

    async def initialize_agents(self) -> None:
        """Initialize every enabled agent, then start the monitoring loops."""
        self._shut_down = False
        for config in self._config_store.enabled_agents():
            try:
                await self.initialize_agent(config)
            except Exception as e:
                self._event_log.error(
                    MANAGER_ID,
                    f"Failed to initialize agent {config.id}: {e}",
                    severity=EventSeverity.HIGH,
                    data={"agent_id": config.id},
                )

        self.start_monitoring()

        self._event_log.info(
            MANAGER_ID,
            f"Initialized {len(self._agents)} agents",
            data={"agent_count": len(self._agents)},
        )

    async def initialize_agent(self, config: AgentConfig) -> BaseAgent | None:
        """Build, register and initialize one agent. Returns None for unknown ids."""
        if config.id in self._agents:
            self._event_log.warning(
                MANAGER_ID,
                f"Agent {config.id} already initialized",
                severity=EventSeverity.LOW,
                data={"agent_id": config.id},
            )
            return self._agents[config.id]

        agent = self._registry.create(config)
        if agent is None:
            self._event_log.error(
                MANAGER_ID,
                f"Unknown agent type for ID {config.id}",
                severity=EventSeverity.HIGH,
                data={"agent_id": config.id},
            )
            return None

        try:
            await self._broker.register_agent(agent)
        except DuplicateAgentError:
            existing = self._broker.get_agent(config.id)
            self._event_log.warning(
                MANAGER_ID,
                f"Agent {config.id} is already registered with the broker",
                severity=EventSeverity.LOW,
            )
            return existing

        try:
            await agent.initialize(self._broker, self._replay_store)
        except Exception:
            # roll back so a retry starts clean
            self._broker.unregister_agent(agent.id)
            raise

        self._agents[agent.id] = agent
        self._configs[agent.id] = config
        self._status[agent.id] = AgentStatus(id=agent.id, active=True, healthy=True)

        self._event_log.info(
            agent.id,
            f"Agent registered: {agent.name} ({agent.id})",
            data={"capabilities": sorted(agent.capabilities)},
        )
        return agent

    def start_monitoring(self) -> None:
        """(Re)start the health-check and performance-check loops."""
        self._stop_tickers()
        self._health_ticker = Ticker(
            self._monitoring.health_check_interval_s,
            self.run_health_checks,
            name="health-check",
        )
        self._performance_ticker = Ticker(
            self._monitoring.performance_check_interval_s,
            self.run_performance_checks,
            name="performance-check",
        )
        self._health_ticker.start()
        self._performance_ticker.start()

    @property
    def monitoring(self) -> bool:
        return self._health_ticker is not None and self._health_ticker.running

    def shutdown(self) -> None:
        """Stop the monitoring loops and release agents. Safe to call twice."""
        self._stop_tickers()
        if self._shut_down:
            return
        self._shut_down = True

        count = len(self._agents)
        for agent in self._agents.values():
            try:
                agent.shutdown()
            except Exception as e:
                logger.error("Agent %s failed to shut down: %s", agent.id, e)

        self._event_log.info(
            MANAGER_ID,
            f"Agent Manager shutting down, managed {count} agents",
            data={"agent_count": count},
        )
        self._agents.clear()
        self._configs.clear()
        self._status.clear()

    def _stop_tickers(self) -> None:
        for ticker in (self._health_ticker, self._performance_ticker):
            if ticker is not None:
                ticker.stop()
        self._health_ticker = None
        self._performance_ticker = None

    # Reads

    def get_agent(self, agent_id: str) -> BaseAgent | None:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> list[BaseAgent]:
        return list(self._agents.values())

    def get_agent_status(self, agent_id: str) -> AgentStatus | None:
        return self._status.get(agent_id)

    def get_all_agent_status(self) -> list[AgentStatus]:
        return list(self._status.values())

    def get_health_report(self) -> HealthReport:
        """Snapshot of every managed agent's status with an overall verdict."""
        agents = []
        for agent_id, status in self._status.items():
            agent = self._agents.get(agent_id)
            agents.append((agent.name if agent else agent_id, copy.deepcopy(status)))

        unhealthy = sum(1 for _, status in agents if not status.healthy)
        if unhealthy > math.floor(len(agents) * CRITICAL_UNHEALTHY_RATIO):
            system_status = "critical"
        elif unhealthy:
            system_status = "degraded"
        else:
            system_status = "healthy"

        return HealthReport(timestamp=datetime.now(timezone.utc), system_status=system_status, agents=agents)

    # Health checks

    async def run_health_checks(self) -> None:
        """One sequential health-check pass over every agent, then a system-health broadcast."""
        async with self._check_lock:
            for agent_id, agent in list(self._agents.items()):
                status = self._status.get(agent_id)
                if status is None:
                    continue
                await self._check_health(agent, status)

            if self._storage is not None:
                await self._persist_statuses()

            unhealthy = tuple(s.id for s in self._status.values() if not s.healthy)
            total = len(self._status)

        if total == 0:
            return
        if unhealthy:
            self._event_log.warning(
                MANAGER_ID,
                f"{len(unhealthy)} unhealthy agents detected during health check",
                severity=EventSeverity.MEDIUM,
                data={"unhealthy_agents": list(unhealthy)},
            )
        await self._broadcast_system_health(
            SystemHealthNotice(
                status="degraded" if unhealthy else "healthy",
                unhealthy_agents=unhealthy,
                total_agents=total,
            )
        )

    async def _check_health(self, agent: BaseAgent, status: AgentStatus) -> None:
        now = datetime.now(timezone.utc)
        try:
            report = await asyncio.wait_for(agent.get_status(), self._monitoring.status_timeout_s)
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                message = f"status check timed out after {self._monitoring.status_timeout_s}s"
            else:
                message = str(e) or type(e).__name__
            self._event_log.error(
                agent.id,
                f"Error checking health for agent {agent.id}: {message}",
                severity=EventSeverity.HIGH,
                data={"error": type(e).__name__},
            )
            status.healthy = False
            status.last_error = LastError(message=message, timestamp=now, details=type(e).__name__)
            status.metrics.last_health_check_time = now
            return

        was_healthy = status.healthy
        status.healthy = bool(report.healthy)
        _merge_metrics(status.metrics, report)
        status.metrics.last_health_check_time = now

        if was_healthy and not status.healthy:
            self._event_log.warning(
                agent.id,
                f"Agent {agent.id} is reporting as unhealthy",
                severity=EventSeverity.HIGH,
                data={"status": report},
            )
        elif not was_healthy and status.healthy:
            self._event_log.info(
                agent.id,
                f"Agent {agent.id} has recovered to healthy status",
                data={"status": report},
            )

    async def _broadcast_system_health(self, notice: SystemHealthNotice) -> None:
        message = self._broker.create_message(
            MessageType.STATUS_UPDATE,
            MANAGER_ID,
            BROADCAST,
            notice,
            priority=MessagePriority.HIGH,
        )
        try:
            await asyncio.wait_for(self._broker.send_message(message), self._monitoring.status_timeout_s)
        except Exception as e:
            self._event_log.error(
                MANAGER_ID,
                f"Error broadcasting health status: {_describe(e, self._monitoring.status_timeout_s)}",
                severity=EventSeverity.MEDIUM,
                data={"status": notice.status},
            )

    async def _persist_statuses(self) -> None:
        for status in self._status.values():
            try:
                await self._storage.save_agent_status(status)
            except Exception as e:
                logger.error("Failed to persist status of %s: %s", status.id, e)

    # Performance checks

    async def run_performance_checks(self) -> None:
        """Compare active, healthy agents' metrics to their thresholds."""
        escalations: list[tuple[str, str, dict[str, Any]]] = []
        async with self._check_lock:
            for agent_id, status in list(self._status.items()):
                if not status.active or not status.healthy:
                    continue
                config = self._configs.get(agent_id)
                if config is None or config.performance_thresholds is None:
                    continue
                escalations.extend(self._check_performance(agent_id, status, config))

        # sent outside the lock so a slow peer cannot stall the next pass
        for agent_id, issue_type, data in escalations:
            await self.request_assistance(agent_id, issue_type, data)

    def _check_performance(
        self, agent_id: str, status: AgentStatus, config: AgentConfig
    ) -> list[tuple[str, str, dict[str, Any]]]:
        """Log every breached threshold and return the assistance requests to send."""
        thresholds = config.performance_thresholds
        metrics = status.metrics
        escalations = []

        error_rate = metrics.error_rate()
        if (
            thresholds.max_error_rate is not None
            and error_rate is not None
            and error_rate > thresholds.max_error_rate
        ):
            self._event_log.warning(
                agent_id,
                f"Agent {agent_id} has a high error rate of {error_rate * 100:.2f}%, "
                f"exceeding threshold of {thresholds.max_error_rate * 100:.2f}%",
                severity=EventSeverity.MEDIUM,
                data={
                    "error_rate": error_rate,
                    "threshold": thresholds.max_error_rate,
                    "errors_encountered": metrics.errors_encountered,
                    "requests_processed": metrics.requests_processed,
                },
            )
            escalations.append(
                (
                    agent_id,
                    "high_error_rate",
                    {"error_rate": error_rate, "threshold": thresholds.max_error_rate, "metrics": metrics.to_dict()},
                )
            )

        if (
            thresholds.max_avg_processing_time_ms is not None
            and metrics.avg_processing_time_ms > thresholds.max_avg_processing_time_ms
        ):
            self._event_log.warning(
                agent_id,
                f"Agent {agent_id} has a high average processing time of "
                f"{metrics.avg_processing_time_ms:.0f}ms, exceeding threshold of "
                f"{thresholds.max_avg_processing_time_ms:.0f}ms",
                severity=EventSeverity.MEDIUM,
                data={
                    "avg_processing_time_ms": metrics.avg_processing_time_ms,
                    "threshold": thresholds.max_avg_processing_time_ms,
                },
            )
            escalations.append(
                (
                    agent_id,
                    "slow_processing",
                    {
                        "avg_processing_time_ms": metrics.avg_processing_time_ms,
                        "threshold": thresholds.max_avg_processing_time_ms,
                        "metrics": metrics.to_dict(),
                    },
                )
            )

        failures = metrics.custom.get("consecutive_failures", 0)
        if (
            thresholds.max_consecutive_failures is not None
            and failures > thresholds.max_consecutive_failures
        ):
            self._event_log.warning(
                agent_id,
                f"Agent {agent_id} has {failures} consecutive failures, "
                f"exceeding threshold of {thresholds.max_consecutive_failures}",
                severity=EventSeverity.MEDIUM,
                data={"consecutive_failures": failures, "threshold": thresholds.max_consecutive_failures},
            )
            escalations.append(
                (
                    agent_id,
                    "consecutive_failures",
                    {"consecutive_failures": failures, "threshold": thresholds.max_consecutive_failures},
                )
            )

        return escalations

    async def request_assistance(self, agent_id: str, issue_type: str, data: dict[str, Any]) -> None:
        """
        Broadcast an assistance request on behalf of an agent. Never raises.

        The broadcast is bounded by the monitoring status timeout; a peer
        that does not finish handling it in time is logged as an ERROR.
        """
        if agent_id not in self._agents:
            return

        try:
            message = self._broker.create_message(
                MessageType.QUERY,
                agent_id,
                BROADCAST,
                AssistanceRequest(
                    assistance_request_id=f"assist_{uuid.uuid4()}",
                    agent_id=agent_id,
                    issue_type=issue_type,
                    data=data,
                ),
                priority=MessagePriority.HIGH,
                requires_acknowledgment=True,
            )
            await asyncio.wait_for(self._broker.send_message(message), self._monitoring.status_timeout_s)

            self._event_log.info(
                agent_id,
                f"Agent {agent_id} requested assistance for issue type: {issue_type}",
                data={"issue_type": issue_type, "data": data},
            )
        except Exception as e:
            self._event_log.error(
                agent_id,
                f"Error requesting assistance for agent {agent_id}: {_describe(e, self._monitoring.status_timeout_s)}",
                severity=EventSeverity.ERROR,
                data={"issue_type": issue_type, "error": type(e).__name__},
            )


def _describe(error: Exception, timeout: float) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return f"timed out after {timeout}s"
    return str(error) or type(error).__name__


def _merge_metrics(metrics: AgentMetrics, report: AgentStatusReport) -> None:
    reported = dict(report.metrics or {})
    if "requests_processed" in reported:
        metrics.requests_processed = int(reported["requests_processed"])
    if "errors_encountered" in reported:
        metrics.errors_encountered = int(reported["errors_encountered"])
    if "avg_processing_time_ms" in reported:
        metrics.avg_processing_time_ms = float(reported["avg_processing_time_ms"])

    # errors can never outnumber requests
    metrics.errors_encountered = min(metrics.errors_encountered, metrics.requests_processed)

    for key, value in reported.items():
        if key not in _BASE_METRICS and key != "last_health_check_time":
            metrics.custom[key] = value
