"""MasterControlProgram: in-process message broker connecting agents."""

import asyncio
import inspect
import re
import time
import uuid
from collections import OrderedDict, deque
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from ..agents import BaseAgent
from ..errors import (
    AgentNotFoundError,
    AgentTimeoutError,
    DuplicateAgentError,
    MessageDeliveryError,
    WorkflowDisabledError,
    WorkflowNotFoundError,
)
from ..event_log import IEventLog
from ..logging_config import get_logger
from ..message_bus import IMessageBus, MessageHandler, Unsubscribe
from ..models import (
    BROADCAST,
    AgentRequest,
    AgentResponse,
    EventSeverity,
    EventType,
    Message,
    MessageBrokerConfig,
    MessageFilter,
    MessagePriority,
    MessageType,
    RegistrationNotice,
    Workflow,
    WorkflowError,
    WorkflowResult,
    WorkflowStep,
)
from ..replay import IReplayStore, experience_priority

logger = get_logger(__name__)

BROKER_ID = "master-control-program"


class IBroker(Protocol):
    """Registers agents and routes messages between them."""

    async def register_agent(self, agent: BaseAgent) -> None:
        ...

    def unregister_agent(self, agent_id: str) -> bool:
        ...

    def get_agent(self, agent_id: str) -> BaseAgent | None:
        ...

    def create_message(
        self,
        type: MessageType,
        sender_id: str,
        recipient_id: str,
        content: Any,
        **options: Any,
    ) -> Message:
        ...

    async def send_message(self, message: Message) -> None:
        ...

    def subscribe_to_messages(
        self,
        subscriber_id: str,
        handler: MessageHandler,
        message_filter: MessageFilter | None = None,
    ) -> Unsubscribe:
        ...

    async def execute_agent(
        self,
        agent_id: str,
        request: AgentRequest | Mapping[str, Any],
        **options: Any,
    ) -> AgentResponse:
        ...


class MasterControlProgram:
    """
    Message broker owning agent registration and pending-call correlation.

    Point-to-point and broadcast messages are delivered straight to
    agents' process_message(); every message is also published on the
    message bus so subscribers see it. Deliveries run concurrently and
    a failing recipient never blocks its siblings.
    """

    def __init__(
        self,
        event_log: IEventLog,
        message_bus: IMessageBus,
        replay_store: IReplayStore | None = None,
        config: MessageBrokerConfig | None = None,
        execute_timeout_s: float = 30.0,
    ):
        self._event_log = event_log
        self._message_bus = message_bus
        self._replay_store = replay_store
        self._config = config or MessageBrokerConfig()
        self._execute_timeout_s = execute_timeout_s

        self._agents: dict[str, BaseAgent] = {}
        self._capabilities: dict[str, list[str]] = {}
        self._history: deque[Message] = deque(maxlen=self._config.history_size)
        self._pending: dict[str, asyncio.Future] = {}
        self._workflows: dict[str, Workflow] = {}
        self._workflow_history: OrderedDict[str, WorkflowResult] = OrderedDict()

    # Registration

    async def register_agent(self, agent: BaseAgent) -> None:
        """Register an agent. Raises DuplicateAgentError if the id is taken."""
        if agent.id in self._agents:
            self._event_log.warning(
                BROKER_ID,
                f"Agent with ID {agent.id} already registered",
                severity=EventSeverity.LOW,
                data={"agent_id": agent.id},
            )
            raise DuplicateAgentError(agent.id)

        self._agents[agent.id] = agent
        for capability in agent.capabilities:
            self._capabilities.setdefault(capability, []).append(agent.id)

        self._event_log.info(
            BROKER_ID,
            f"Registered agent: {agent.name} ({agent.id})",
            data={"agent_id": agent.id, "capabilities": sorted(agent.capabilities)},
        )

        notice = self.create_message(
            MessageType.EVENT,
            BROKER_ID,
            BROADCAST,
            RegistrationNotice(agent_id=agent.id, name=agent.name, capabilities=agent.capabilities),
        )
        self._history.append(notice)
        await self._message_bus.publish(notice)

    def unregister_agent(self, agent_id: str) -> bool:
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            return False
        for capability in agent.capabilities:
            ids = self._capabilities.get(capability, [])
            if agent_id in ids:
                ids.remove(agent_id)
            if not ids:
                self._capabilities.pop(capability, None)
        self._event_log.info(BROKER_ID, f"Unregistered agent: {agent.name} ({agent_id})")
        return True

    def get_agent(self, agent_id: str) -> BaseAgent | None:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> list[BaseAgent]:
        return list(self._agents.values())

    def get_agents_by_capability(self, capability: str) -> list[BaseAgent]:
        return [self._agents[i] for i in self._capabilities.get(capability, []) if i in self._agents]

    def find_agents(self, pattern: str | re.Pattern) -> list[BaseAgent]:
        """Agents having a capability equal to a string or matching a regex."""
        found: dict[str, BaseAgent] = {}
        for capability, agent_ids in self._capabilities.items():
            if isinstance(pattern, str):
                matched = capability == pattern
            else:
                matched = pattern.search(capability) is not None
            if matched:
                for agent_id in agent_ids:
                    if agent_id in self._agents:
                        found[agent_id] = self._agents[agent_id]
        return list(found.values())

    # Messaging

    def create_message(
        self,
        type: MessageType,
        sender_id: str,
        recipient_id: str,
        content: Any,
        *,
        correlation_id: str | None = None,
        priority: MessagePriority = MessagePriority.NORMAL,
        requires_acknowledgment: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> Message:
        """Build a message with a fresh id. Does not send it."""
        return Message(
            id=f"msg_{uuid.uuid4()}",
            type=MessageType(type),
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id,
            priority=MessagePriority(priority),
            requires_acknowledgment=requires_acknowledgment,
            metadata=dict(metadata or {}),
        )

    async def send_message(self, message: Message) -> None:
        """Deliver to the recipient agent(s) and to matching subscribers."""
        self._history.append(message)
        logger.debug(
            "Message %s (%s) from %s to %s",
            message.id,
            message.type.value,
            message.sender_id,
            message.recipient_id,
        )

        self._resolve_pending(message)

        if message.is_broadcast:
            recipients = list(self._agents.values())
        elif message.recipient_id in self._agents:
            recipients = [self._agents[message.recipient_id]]
        else:
            recipients = []
            if message.recipient_id != BROKER_ID:
                self._event_log.error(
                    BROKER_ID,
                    f"Recipient {message.recipient_id} not found for message {message.id}",
                    severity=EventSeverity.MEDIUM,
                    data={"message_id": message.id, "sender_id": message.sender_id},
                )

        await asyncio.gather(
            *[self._deliver(agent, message) for agent in recipients],
            self._publish(message),
        )

    def subscribe_to_messages(
        self,
        subscriber_id: str,
        handler: MessageHandler,
        message_filter: MessageFilter | None = None,
    ) -> Unsubscribe:
        """Subscribe to every routed message matching the filter."""
        unsubscribe = self._message_bus.subscribe(subscriber_id, handler, message_filter)
        self._event_log.info(
            BROKER_ID,
            f"Agent {subscriber_id} subscribed to messages",
            data={"filter": message_filter},
        )
        return unsubscribe

    def get_messages(
        self,
        agent_id: str | None = None,
        message_filter: MessageFilter | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """Recent messages addressed to an agent (or to all), newest first."""
        messages = [
            m
            for m in reversed(self._history)
            if (agent_id is None or m.recipient_id in (agent_id, BROADCAST))
            and (message_filter is None or message_filter.matches(m))
        ]
        return messages[:limit] if limit is not None else messages

    # Execution

    async def execute_agent(
        self,
        agent_id: str,
        request: AgentRequest | Mapping[str, Any],
        *,
        access_level: str = "system",
        correlation_id: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> AgentResponse:
        """
        Run one request on an agent and return its response.

        Raises AgentNotFoundError for an unregistered id. Every other
        failure (invalid input, exception in process(), timeout) comes
        back as an error response carrying the same correlation id.
        """
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        correlation_id = correlation_id or f"corr_{uuid.uuid4()}"
        started = time.perf_counter()

        try:
            agent_request = AgentRequest.from_value(request)
            validation = agent.validate_input(agent_request)
            if inspect.isawaitable(validation):
                validation = await validation
        except Exception as e:
            response = AgentResponse.error(f"Invalid request for agent {agent_id}: {e}")
        else:
            if validation.is_valid:
                response = await self._dispatch(
                    agent,
                    agent_request,
                    correlation_id,
                    access_level,
                    parameters or {},
                    timeout if timeout is not None else self._execute_timeout_s,
                )
            else:
                response = AgentResponse.error(
                    f"Input validation failed for agent {agent_id}",
                    {"issues": [asdict(issue) for issue in validation.issues]},
                )

        response.correlation_id = correlation_id
        response.metrics["execution_time_ms"] = (time.perf_counter() - started) * 1000
        return response

    async def _dispatch(
        self,
        agent: BaseAgent,
        request: AgentRequest,
        correlation_id: str,
        access_level: str,
        parameters: Mapping[str, Any],
        timeout: float,
    ) -> AgentResponse:
        message = self.create_message(
            MessageType.QUERY,
            BROKER_ID,
            agent.id,
            request,
            correlation_id=correlation_id,
            metadata={"access_level": access_level, "parameters": dict(parameters)},
        )
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[message.id] = future

        # delivery runs as its own task so the timeout also covers process()
        send = asyncio.ensure_future(self.send_message(message))
        send.add_done_callback(lambda task: self._fail_pending(message.id, task))
        try:
            reply = await asyncio.wait_for(future, timeout)
            await asyncio.wait({send}, timeout=timeout)
        except asyncio.TimeoutError:
            error = AgentTimeoutError(agent.id, request.operation, timeout)
            self._event_log.error(agent.id, str(error), data=error.context)
            return AgentResponse.error(str(error))
        except Exception as e:
            return AgentResponse.error(str(e) or type(e).__name__)
        finally:
            self._pending.pop(message.id, None)
            if not send.done():
                send.cancel()

        if isinstance(reply, AgentResponse):
            return reply
        return AgentResponse.error(
            f"Agent {agent.id} replied with unexpected content",
            {"content": reply},
        )

    # Workflows

    def register_workflow(self, workflow: Workflow) -> None:
        """Register a workflow, replacing any previous one with the same id."""
        if workflow.id in self._workflows:
            self._event_log.warning(
                BROKER_ID,
                f"Workflow with ID {workflow.id} already registered, replacing it",
                severity=EventSeverity.LOW,
                data={"workflow_id": workflow.id},
            )
        self._workflows[workflow.id] = workflow
        self._event_log.info(
            BROKER_ID,
            f"Registered workflow: {workflow.name} ({workflow.id})",
            data={"workflow_id": workflow.id, "steps": [step.id for step in workflow.steps]},
        )

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    def get_all_workflows(self) -> list[Workflow]:
        return list(self._workflows.values())

    async def execute_workflow(
        self,
        workflow_id: str,
        input: Any = None,
        *,
        access_level: str = "system",
        correlation_id: str | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> WorkflowResult:
        """
        Run a workflow's steps in order through execute_agent().

        Raises WorkflowNotFoundError / WorkflowDisabledError up front.
        Step failures never raise: a failing step stops the run with
        status "error" unless it is marked continue_on_error, in which
        case the run ends as "partial_success".
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        if not workflow.enabled:
            raise WorkflowDisabledError(workflow_id)

        result = WorkflowResult(
            workflow_id=workflow.id,
            execution_id=f"wf_{uuid.uuid4()}",
            start_time=datetime.now(timezone.utc),
        )
        correlation_id = correlation_id or result.execution_id
        step_parameters = {**workflow.parameters, **(parameters or {})}

        self._event_log.info(
            BROKER_ID,
            f"Starting workflow execution: {workflow.name} ({result.execution_id})",
            data={"workflow_id": workflow.id, "correlation_id": correlation_id},
        )

        data: dict[str, Any] = {"input": input, "output": {}, "steps": {}}
        for step in workflow.steps:
            if step.condition and not _get_path(data, step.condition):
                self._event_log.info(
                    BROKER_ID,
                    f"Skipping step {step.id} in workflow {workflow.name}: condition not met",
                    data={"execution_id": result.execution_id, "condition": step.condition},
                )
                continue

            response = await self._run_step(
                step,
                data,
                access_level,
                correlation_id,
                {
                    **step_parameters,
                    "workflow_id": workflow.id,
                    "execution_id": result.execution_id,
                    "step_id": step.id,
                },
            )
            result.step_results[step.id] = response
            data["steps"][step.id] = response
            data["last_step_result"] = response

            if response.ok:
                for target, source in step.output_mapping.items():
                    _set_path(data, target, _get_path(response, source))
                continue

            result.errors.append(WorkflowError(step.id, response.message, response.data or None))
            if not step.continue_on_error:
                result.status = "error"
                break
            result.status = "partial_success"

        result.output = data.get("output") or {}
        result.end_time = datetime.now(timezone.utc)
        self._workflow_history[result.execution_id] = result
        while len(self._workflow_history) > self._config.history_size:
            self._workflow_history.popitem(last=False)

        self._event_log.info(
            BROKER_ID,
            f"Completed workflow execution: {workflow.name} ({result.execution_id}) "
            f"with status {result.status}",
            data={
                "workflow_id": workflow.id,
                "duration_ms": result.duration_ms,
                "error_count": len(result.errors),
            },
        )
        return result

    async def _run_step(
        self,
        step: WorkflowStep,
        data: Mapping[str, Any],
        access_level: str,
        correlation_id: str,
        parameters: Mapping[str, Any],
    ) -> AgentResponse:
        if step.input_mapping:
            step_input: dict[str, Any] = {}
            for target, source in step.input_mapping.items():
                _set_path(step_input, target, _get_path(data, source))
        else:
            step_input = data["input"]
        request = {"operation": step.operation, "data": step_input} if step.operation else step_input

        try:
            return await self.execute_agent(
                step.agent_id,
                request,
                access_level=access_level,
                correlation_id=correlation_id,
                parameters=parameters,
                timeout=step.timeout_s,
            )
        except Exception as e:
            return AgentResponse.error(str(e) or type(e).__name__, {"step_id": step.id})

    def get_workflow_history(self, limit: int = 100) -> list[WorkflowResult]:
        """Recent workflow executions, newest first."""
        return list(reversed(self._workflow_history.values()))[:limit]

    def get_workflow_execution(self, execution_id: str) -> WorkflowResult | None:
        return self._workflow_history.get(execution_id)

    def _resolve_pending(self, message: Message) -> None:
        if message.type != MessageType.RESPONSE or not message.in_reply_to:
            return
        future = self._pending.get(message.in_reply_to)
        if future is not None and not future.done():
            future.set_result(message.content)

    def _fail_pending(self, message_id: str, send: asyncio.Future) -> None:
        if send.cancelled() or send.exception() is None:
            return
        future = self._pending.get(message_id)
        if future is not None and not future.done():
            future.set_exception(send.exception())

    async def _deliver(self, agent: BaseAgent, message: Message) -> None:
        success = True
        try:
            await agent.process_message(message)
        except Exception as e:
            success = False
            self._event_log.error(
                BROKER_ID,
                f"Failed to deliver message {message.id} to {agent.id}: {e}",
                severity=EventSeverity.HIGH,
                data={"message_id": message.id, "recipient_id": agent.id},
            )
            future = self._pending.get(message.id)
            if future is not None and not future.done():
                future.set_exception(
                    MessageDeliveryError(
                        f"Agent {agent.id} failed to process message {message.id}: {e}",
                        {"agent_id": agent.id, "message_id": message.id},
                    )
                )

        if self._replay_store is not None:
            self._replay_store.add_experience(
                agent_id=agent.id,
                input=message,
                output={"delivered": success},
                outcome=1.0 if success else 0.0,
                priority=experience_priority(message, success),
                metadata={"message_id": message.id, "message_type": message.type.value},
            )

    async def _publish(self, message: Message) -> None:
        failures = await self._message_bus.publish(message)
        for failure in failures:
            self._event_log.log(
                EventType.ERROR,
                BROKER_ID,
                f"Subscriber {failure.subscriber_id} failed on message {message.id}: {failure.error}",
                severity=EventSeverity.MEDIUM,
                data={"subscription_id": failure.subscription_id},
            )


Broker = MasterControlProgram


def _get_path(value: Any, path: str) -> Any:
    """Resolve a dotted path through mappings, sequences and attributes."""
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, (list, tuple)) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else None
        else:
            value = getattr(value, part, None)
    return value


def _set_path(target: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = target[part] = {}
        target = child
    target[parts[-1]] = value
