"""Agent manager module."""

from .manager import MANAGER_ID, AgentManager, IAgentManager
from .registry import AgentFactory, AgentRegistry, default_registry

__all__ = [
    "MANAGER_ID",
    "AgentManager",
    "IAgentManager",
    "AgentFactory",
    "AgentRegistry",
    "default_registry",
]
