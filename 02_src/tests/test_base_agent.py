"""Tests for the BaseAgent contract and EchoAgent."""

from datetime import datetime, timezone

import pytest

from orchestration.agents import EchoAgent
from orchestration.errors import AgentTimeoutError
from orchestration.models import (
    Acknowledgment,
    AgentContext,
    AgentLifecycle,
    AgentRequest,
    AgentResponse,
    AgentStatusReport,
    AssistanceRequest,
    MessageFilter,
    MessageType,
    StatusQuery,
)


def make_context(**overrides) -> AgentContext:
    fields = {"execution_id": "exec_1", "timestamp": datetime.now(timezone.utc)}
    fields.update(overrides)
    return AgentContext(**fields)


class TestHandleRequest:
    """Tests for BaseAgent.handle_request() counters."""

    @pytest.mark.asyncio
    async def test_counters_after_mixed_outcomes(self, stub_agent_cls):
        """Test that N successes and M failures are all counted."""
        agent = stub_agent_cls("A")
        for _ in range(3):
            await agent.handle_request(AgentRequest("echo", 1), make_context())
        await agent.handle_request(AgentRequest("fail"), make_context())
        await agent.handle_request(AgentRequest("reject"), make_context())

        status = await agent.get_status()
        assert status.metrics["requests_processed"] >= 5
        assert status.metrics["errors_encountered"] >= 2
        assert status.metrics["errors_encountered"] <= status.metrics["requests_processed"]
        assert status.metrics["consecutive_failures"] == 2

    @pytest.mark.asyncio
    async def test_exception_becomes_error_response(self, stub_agent_cls):
        """Test that a raising process() never propagates."""
        agent = stub_agent_cls("A")
        response = await agent.handle_request(AgentRequest("fail"), make_context(correlation_id="c1"))

        assert response.status == "error"
        assert response.message == "boom"
        assert response.data == {}
        assert response.correlation_id == "c1"
        assert agent.state == AgentLifecycle.IDLE

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_failures(self, stub_agent_cls):
        agent = stub_agent_cls("A")
        await agent.handle_request(AgentRequest("fail"), make_context())
        await agent.handle_request(AgentRequest("echo"), make_context())

        assert agent.consecutive_failures == 0
        assert agent.errors_encountered == 1

    @pytest.mark.asyncio
    async def test_records_experience(self, stub_agent_cls, broker, replay_store):
        agent = stub_agent_cls("A")
        await agent.initialize(broker, replay_store)
        await agent.handle_request(AgentRequest("echo", {"x": 1}), make_context())

        records = replay_store.sample_by_agent("A")
        assert len(records) == 1
        assert records[0].outcome == 1.0


class TestValidation:
    """Tests for validate_input()."""

    def test_requires_operation(self, stub_agent_cls):
        agent = stub_agent_cls("A")

        result = agent.validate_input(AgentRequest(operation=""))

        assert not result.is_valid
        assert result.issues[0].field == "operation"

    def test_valid_request(self, stub_agent_cls):
        request = AgentRequest("echo")
        result = stub_agent_cls("A").validate_input(request)

        assert result.is_valid
        assert result.validated_data is request


class TestProcessMessage:
    """Tests for message dispatch."""

    @pytest.mark.asyncio
    async def test_query_with_request_is_answered(self, broker, register, stub_agent_cls):
        """Test that a query carrying a request gets a correlated response."""
        agent = await register(stub_agent_cls("A"))
        replies = []

        async def capture(msg):
            replies.append(msg)

        broker.subscribe_to_messages("test", capture, MessageFilter(types={MessageType.RESPONSE}))
        query = broker.create_message(
            MessageType.QUERY, "someone", "A", AgentRequest("echo", {"x": 1}), correlation_id="c9"
        )
        await agent.process_message(query)

        assert len(replies) == 1
        assert replies[0].correlation_id == "c9"
        assert replies[0].in_reply_to == query.id
        assert replies[0].content.data == {"x": 1}

    @pytest.mark.asyncio
    async def test_status_query(self, broker, register, stub_agent_cls):
        agent = await register(stub_agent_cls("A"))
        replies = []

        async def capture(msg):
            replies.append(msg)

        broker.subscribe_to_messages("test", capture, MessageFilter(sender_id="A"))
        await agent.process_message(
            broker.create_message(MessageType.QUERY, "someone", "A", StatusQuery())
        )

        assert isinstance(replies[0].content, AgentStatusReport)
        assert replies[0].content.id == "A"

    @pytest.mark.asyncio
    async def test_unrecognized_query_gets_not_implemented(self, broker, register, stub_agent_cls):
        """Test that unknown content reaches the default handler."""
        agent = await register(stub_agent_cls("A"))
        replies = []

        async def capture(msg):
            replies.append(msg)

        broker.subscribe_to_messages("test", capture, MessageFilter(sender_id="A"))
        await agent.process_message(
            broker.create_message(MessageType.QUERY, "someone", "A", {"question": "?"})
        )

        assert replies[0].content.status == "error"
        assert "not implemented" in replies[0].content.message

    @pytest.mark.asyncio
    async def test_event_acknowledged_when_required(self, broker, register, stub_agent_cls):
        agent = await register(stub_agent_cls("A"))
        replies = []

        async def capture(msg):
            replies.append(msg)

        broker.subscribe_to_messages("test", capture, MessageFilter(sender_id="A"))
        event = broker.create_message(
            MessageType.EVENT, "someone", "A", {"event": "done"}, requires_acknowledgment=True
        )
        await agent.process_message(event)

        assert isinstance(replies[0].content, Acknowledgment)
        assert replies[0].content.acknowledged_message_id == event.id

    @pytest.mark.asyncio
    async def test_assistance_request_acknowledged(self, broker, register, stub_agent_cls):
        agent = await register(stub_agent_cls("A"))
        replies = []

        async def capture(msg):
            replies.append(msg)

        broker.subscribe_to_messages("test", capture, MessageFilter(sender_id="A"))
        request = broker.create_message(
            MessageType.QUERY,
            "B",
            "all",
            AssistanceRequest("assist_1", "B", "high_error_rate"),
            requires_acknowledgment=True,
        )
        await agent.process_message(request)

        assert len(replies) == 1
        assert isinstance(replies[0].content, Acknowledgment)
        assert replies[0].recipient_id == "B"


class TestSendAndWait:
    """Tests for send_and_wait()."""

    @pytest.mark.asyncio
    async def test_reply_is_returned(self, register, stub_agent_cls):
        """Test that one agent can query another and await its reply."""
        a = await register(stub_agent_cls("A"))
        await register(stub_agent_cls("B"))

        query = a.create_message(MessageType.QUERY, "B", AgentRequest("echo", "hi"))
        reply = await a.send_and_wait(query, timeout=1.0)

        assert reply.sender_id == "B"
        assert reply.content.data == "hi"

    @pytest.mark.asyncio
    async def test_timeout(self, register, stub_agent_cls):
        a = await register(stub_agent_cls("A"))
        await register(stub_agent_cls("B"))

        status_update = a.create_message(MessageType.STATUS_UPDATE, "B", {"state": "busy"})
        with pytest.raises(AgentTimeoutError):
            await a.send_and_wait(status_update, timeout=0.05)

    @pytest.mark.asyncio
    async def test_send_without_initialize_is_logged(self, stub_agent_cls):
        agent = stub_agent_cls("A")
        await agent.send_message(agent.create_message(MessageType.EVENT, "B", None))


class TestEchoAgent:
    """Tests for EchoAgent."""

    @pytest.mark.asyncio
    async def test_echo(self):
        response = await EchoAgent().process(AgentRequest("echo", {"x": 1}), make_context())
        assert response == AgentResponse.success({"x": 1}, message="Echo")

    @pytest.mark.asyncio
    async def test_ping(self):
        response = await EchoAgent().process(AgentRequest("ping"), make_context())
        assert response.data["pong"] is True
        assert response.data["agent_id"] == "echo-agent"

    @pytest.mark.asyncio
    async def test_unsupported_operation(self):
        response = await EchoAgent().process(AgentRequest("dance"), make_context())
        assert response.status == "error"
        assert "dance" in response.message

    def test_shutdown(self):
        agent = EchoAgent()
        agent.shutdown()
        assert agent.state == AgentLifecycle.SHUTDOWN
