"""Replay store module."""

from .store import (
    FileReplayPersistence,
    IReplayPersistence,
    IReplayStore,
    ReplayStore,
    StorageReplayPersistence,
    create_replay_store,
    experience_priority,
)

__all__ = [
    "FileReplayPersistence",
    "IReplayPersistence",
    "IReplayStore",
    "ReplayStore",
    "StorageReplayPersistence",
    "create_replay_store",
    "experience_priority",
]
