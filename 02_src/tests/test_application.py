"""Tests for Application."""

import pytest

from orchestration.app import Application
from orchestration.config_store import ConfigStore
from orchestration.models import EventSeverity, EventType


class TestApplicationStart:
    """Tests for Application.start()."""

    @pytest.mark.asyncio
    async def test_start_initializes_components(self):
        """Test that start initializes all components."""
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            assert app.storage is not None
            assert app.event_log is not None
            assert app.replay_store is not None
            assert app.broker is not None
            assert app.manager is not None
        finally:
            await app.stop()

    def test_components_unavailable_before_start(self):
        app = Application(ConfigStore(), db_path=":memory:")

        with pytest.raises(RuntimeError):
            app.broker

    @pytest.mark.asyncio
    async def test_start_initializes_in_correct_order(self):
        """Test that components share the same dependencies."""
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            assert app.broker._event_log is app.event_log
            assert app.broker._replay_store is app.replay_store
            assert app.manager._broker is app.broker
            assert app.manager._storage is app.storage
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_start_registers_echo_agent(self):
        """Test that only agents with a known factory are registered."""
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            assert [a.id for a in app.broker.get_all_agents()] == ["echo-agent"]

            unknown = [
                e
                for e in app.event_log.get_events(type=EventType.ERROR)
                if e.message.startswith("Unknown agent type")
            ]
            assert len(unknown) == len(app.config_store.enabled_agents()) - 1
            assert all(e.severity == EventSeverity.HIGH for e in unknown)
        finally:
            await app.stop()


class TestApplicationFlow:
    """End-to-end flow through a started application."""

    @pytest.mark.asyncio
    async def test_execute_echo(self):
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            response = await app.broker.execute_agent(
                "echo-agent", {"operation": "echo", "data": {"hello": "world"}}, correlation_id="e2e"
            )

            assert response.ok
            assert response.data == {"hello": "world"}
            assert response.correlation_id == "e2e"
            assert app.replay_store.size() >= 1
        finally:
            await app.stop()

    @pytest.mark.asyncio
    async def test_events_mirrored_to_storage(self):
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            await app.event_log.flush()
            records = await app.storage.get_event_records(source="agent-manager")
            assert any("Agent Manager initialized" == r.message for r in records)
        finally:
            await app.stop()


class TestApplicationReset:
    """Tests for Application.reset()."""

    @pytest.mark.asyncio
    async def test_reset_clears_and_reinitializes(self):
        app = Application(ConfigStore(), db_path=":memory:")
        await app.start()
        try:
            await app.broker.execute_agent("echo-agent", {"operation": "ping"})
            assert app.replay_store.size() > 0

            await app.reset()

            assert app.replay_store.size() == 0
            assert [a.id for a in app.broker.get_all_agents()] == ["echo-agent"]
            response = await app.broker.execute_agent("echo-agent", {"operation": "ping"})
            assert response.ok
        finally:
            await app.stop()
