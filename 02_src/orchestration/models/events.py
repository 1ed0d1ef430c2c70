"""Structured event models written to the EventLog."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Event log entry type."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EventSeverity(str, Enum):
    """Optional severity attached to warnings and errors."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    ERROR = "ERROR"


@dataclass(frozen=True)
class EventRecord:
    """A single append-only operational event."""

    id: str
    type: EventType
    source: str  # component or agent id that raised it
    message: str
    timestamp: datetime
    severity: EventSeverity | None = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value if self.severity else None,
            "source": self.source,
            "message": self.message,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }
