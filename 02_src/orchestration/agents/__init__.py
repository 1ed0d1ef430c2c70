"""Agent base contract and built-in agents."""

from .base import BaseAgent, IMessageRouter
from .echo import ECHO_AGENT_ID, EchoAgent

__all__ = ["BaseAgent", "IMessageRouter", "ECHO_AGENT_ID", "EchoAgent"]
