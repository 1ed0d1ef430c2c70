"""Base agent contract and default message handling."""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from ..errors import AgentTimeoutError
from ..logging_config import get_logger
from ..models import (
    Acknowledgment,
    AgentContext,
    AgentIdentity,
    AgentLifecycle,
    AgentRequest,
    AgentResponse,
    AgentStatusReport,
    AssistanceRequest,
    IssueSeverity,
    Message,
    MessagePriority,
    MessageType,
    StatusQuery,
    ValidationIssue,
    ValidationResult,
)
from ..replay import IReplayStore, experience_priority

logger = get_logger(__name__)

_CONTEXT_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class IMessageRouter(Protocol):
    """What an agent needs from the broker to talk to other agents."""

    async def send_message(self, message: Message) -> None:
        ...


class BaseAgent(ABC):
    """
    Polymorphic unit of domain logic.

    Subclasses implement process(); everything else has a working default.
    Messages arrive through process_message(), which routes replies to
    send_and_wait() callers, assistance requests to
    handle_assistance_request() and everything else by message type.
    """

    def __init__(self, agent_id: str, name: str, capabilities: frozenset[str] | set[str] = frozenset()):
        self.identity = AgentIdentity(id=agent_id, name=name, capabilities=frozenset(capabilities))
        self.state = AgentLifecycle.UNINITIALIZED

        self._router: IMessageRouter | None = None
        self._replay_store: IReplayStore | None = None
        self._waiters: dict[str, asyncio.Future] = {}

        self.requests_processed = 0
        self.errors_encountered = 0
        self.consecutive_failures = 0
        self._total_processing_ms = 0.0

    @property
    def id(self) -> str:
        return self.identity.id

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def capabilities(self) -> frozenset[str]:
        return self.identity.capabilities

    async def initialize(self, message_bus: IMessageRouter, replay_store: IReplayStore | None = None) -> None:
        """Wire the agent to the shared router and replay store."""
        self._router = message_bus
        self._replay_store = replay_store
        self.state = AgentLifecycle.INITIALIZED
        logger.info("Agent %s initialized", self.name)

    # Contract

    def validate_input(self, request: AgentRequest) -> ValidationResult:
        """Check a request before process() sees it."""
        if not request.operation:
            return ValidationResult.failed(
                ValidationIssue(
                    field="operation",
                    type="missing",
                    description="operation is required",
                    severity=IssueSeverity.HIGH,
                )
            )
        return ValidationResult.ok(request)

    @abstractmethod
    async def process(self, request: AgentRequest, context: AgentContext) -> AgentResponse:
        """Execute one operation."""

    async def get_status(self) -> AgentStatusReport:
        return AgentStatusReport(
            id=self.id,
            healthy=True,
            metrics={
                "requests_processed": self.requests_processed,
                "errors_encountered": self.errors_encountered,
                "avg_processing_time_ms": self.avg_processing_time_ms,
                "consecutive_failures": self.consecutive_failures,
            },
            details={"name": self.name, "capabilities": sorted(self.capabilities)},
            state=self.state,
        )

    @property
    def avg_processing_time_ms(self) -> float:
        if self.requests_processed == 0:
            return 0.0
        return self._total_processing_ms / self.requests_processed

    def unsupported_operation(self, request: AgentRequest) -> AgentResponse:
        return AgentResponse.error(
            f"Unsupported operation '{request.operation}' for agent {self.name}",
            {"operation": request.operation},
        )

    async def handle_request(
        self,
        request: AgentRequest,
        context: AgentContext,
        message: Message | None = None,
    ) -> AgentResponse:
        """Run process() with counters, timing and replay recording; never raises."""
        self.state = AgentLifecycle.PROCESSING
        started = time.perf_counter()
        try:
            response = await self.process(request, context)
        except Exception as e:
            logger.exception("Agent %s failed on %s", self.id, request.operation)
            response = AgentResponse.error(str(e) or type(e).__name__)
        finally:
            self.state = AgentLifecycle.IDLE

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.requests_processed += 1
        self._total_processing_ms += elapsed_ms
        if response.ok:
            self.consecutive_failures = 0
        else:
            self.errors_encountered += 1
            self.consecutive_failures += 1

        response.correlation_id = context.correlation_id
        response.metrics.setdefault("processing_time_ms", elapsed_ms)

        if self._replay_store is not None:
            self._record_experience(request, response, message)
        return response

    def shutdown(self) -> None:
        for future in self._waiters.values():
            if not future.done():
                future.cancel()
        self._waiters.clear()
        self.state = AgentLifecycle.SHUTDOWN
        logger.info("Agent %s shut down", self.name)

    # Messaging

    def create_message(
        self,
        type: MessageType,
        recipient_id: str,
        content: Any,
        *,
        correlation_id: str | None = None,
        priority: MessagePriority = MessagePriority.NORMAL,
        requires_acknowledgment: bool = False,
        metadata: Mapping[str, Any] | None = None,
    ) -> Message:
        return Message(
            id=f"msg_{uuid.uuid4()}",
            type=type,
            sender_id=self.id,
            recipient_id=recipient_id,
            content=content,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or f"corr_{uuid.uuid4()}",
            priority=priority,
            requires_acknowledgment=requires_acknowledgment,
            metadata=dict(metadata or {}),
        )

    async def send_message(self, message: Message) -> None:
        if self._router is None:
            logger.error("Agent %s cannot send message %s: not initialized", self.id, message.id)
            return
        await self._router.send_message(message)

    async def send_and_wait(self, message: Message, timeout: float = 30.0) -> Message:
        """Send a message and wait for the reply carrying its id as in_reply_to."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters[message.id] = future
        try:
            await self.send_message(message)
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise AgentTimeoutError(self.id, f"reply to {message.id}", timeout) from None
        finally:
            self._waiters.pop(message.id, None)

    async def reply(self, original: Message, content: Any, type: MessageType = MessageType.RESPONSE) -> None:
        await self.send_message(
            self.create_message(
                type,
                original.sender_id,
                content,
                correlation_id=original.correlation_id,
                metadata={"in_reply_to": original.id},
            )
        )

    async def acknowledge_message(self, original: Message) -> None:
        await self.reply(original, Acknowledgment(acknowledged_message_id=original.id))

    # Dispatch

    async def process_message(self, message: Message) -> None:
        """Bus-facing entry point."""
        logger.debug("Agent %s processing message %s", self.id, message.id)

        waiter = self._waiters.get(message.in_reply_to) if message.in_reply_to else None
        if waiter is not None and not waiter.done():
            waiter.set_result(message)
            return

        if isinstance(message.content, AssistanceRequest):
            await self.handle_assistance_request(message)
        elif message.type == MessageType.QUERY:
            await self.handle_query(message)
        elif message.type == MessageType.COMMAND:
            await self.handle_command(message)
        elif message.type in (MessageType.EVENT, MessageType.BROADCAST):
            await self.handle_event(message)
        elif message.type == MessageType.STATUS_UPDATE:
            await self.handle_status_update(message)
        elif message.type == MessageType.RESPONSE:
            await self.handle_response(message)
        else:
            await self.handle_unrecognized(message)

    async def handle_query(self, message: Message) -> None:
        if isinstance(message.content, StatusQuery):
            await self.reply(message, await self.get_status())
        elif isinstance(message.content, AgentRequest):
            await self._execute_from_message(message)
        else:
            await self.handle_unrecognized(message)

    async def handle_command(self, message: Message) -> None:
        if isinstance(message.content, AgentRequest):
            await self._execute_from_message(message)
        else:
            await self.handle_unrecognized(message)

    async def handle_event(self, message: Message) -> None:
        logger.debug("Agent %s received event %s", self.id, message.id)
        if message.requires_acknowledgment:
            await self.acknowledge_message(message)

    async def handle_status_update(self, message: Message) -> None:
        logger.debug("Agent %s received status update from %s", self.id, message.sender_id)

    async def handle_response(self, message: Message) -> None:
        logger.debug("Agent %s received response %s", self.id, message.id)

    async def handle_assistance_request(self, message: Message) -> None:
        request = message.content
        logger.info(
            "Agent %s received assistance request %s for %s (%s)",
            self.id,
            request.assistance_request_id,
            request.agent_id,
            request.issue_type,
        )
        if message.requires_acknowledgment and message.sender_id != self.id:
            await self.acknowledge_message(message)

    async def handle_unrecognized(self, message: Message) -> None:
        """Fallback for content this agent has no handler for."""
        logger.warning(
            "Agent %s has no handler for %s message %s",
            self.id,
            message.type.value,
            message.id,
        )
        if message.type in (MessageType.QUERY, MessageType.COMMAND):
            await self.reply(
                message,
                AgentResponse.error(
                    f"{message.type.value.capitalize()} not implemented by {self.name}"
                ),
            )
        elif message.requires_acknowledgment:
            await self.acknowledge_message(message)

    async def _execute_from_message(self, message: Message) -> None:
        context = AgentContext(
            execution_id=f"exec_{uuid.uuid4()}",
            timestamp=datetime.now(timezone.utc),
            access_level=message.metadata.get("access_level", "system"),
            correlation_id=message.correlation_id,
            parameters=dict(message.metadata.get("parameters") or {}),
            log_function=self._context_log,
        )
        response = await self.handle_request(message.content, context, message)
        await self.reply(message, response)

    def _context_log(self, level: str, message: str, data: Any = None) -> None:
        logger.log(
            _CONTEXT_LEVELS.get(level.lower(), logging.INFO),
            "[%s] %s",
            self.id,
            message,
            extra={"context": {"agent_id": self.id, "data": data}},
        )

    def _record_experience(
        self,
        request: AgentRequest,
        response: AgentResponse,
        message: Message | None,
    ) -> None:
        if message is not None:
            priority = experience_priority(message, response.ok)
        else:
            priority = 0.5 if response.ok else 0.8
        self._replay_store.add_experience(
            agent_id=self.id,
            input=request,
            output=response.to_dict(),
            outcome=1.0 if response.ok else 0.0,
            priority=priority,
            metadata={"message_id": message.id if message else None},
        )
