"""Replay store models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ReplayRecord:
    """An appended (input, output, outcome) experience."""

    id: str
    agent_id: str
    input: Any
    output: Any
    outcome: float  # reward-like score, 1.0 success / 0.0 failure
    priority: float
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "input": self.input,
            "output": self.output,
            "outcome": self.outcome,
            "priority": self.priority,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }
