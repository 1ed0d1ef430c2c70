"""EventLog module."""

from .event_log import EventLog, IEventLog, IEventSink, RemoteEventSink, StorageEventSink

__all__ = ["EventLog", "IEventLog", "IEventSink", "RemoteEventSink", "StorageEventSink"]
