"""Configuration store module."""

from .store import (
    DEFAULT_AGENTS,
    ENVIRONMENTS,
    ConfigStore,
    development_config,
    parse_agent_config,
    parse_system_config,
    production_config,
    staging_config,
)

__all__ = [
    "DEFAULT_AGENTS",
    "ENVIRONMENTS",
    "ConfigStore",
    "development_config",
    "parse_agent_config",
    "parse_system_config",
    "production_config",
    "staging_config",
]
