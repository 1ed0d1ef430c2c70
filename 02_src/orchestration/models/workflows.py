"""Workflow definitions and execution results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from .messages import AgentResponse

WorkflowStatus = Literal["success", "error", "partial_success"]


@dataclass(frozen=True)
class WorkflowStep:
    """
    One agent call inside a workflow.

    input_mapping and output_mapping map a dotted target path to a
    dotted source path. Inputs read from the workflow data ("input",
    "output", step results by id), outputs read from the step's
    response and write under the workflow data.
    """

    id: str
    agent_id: str
    operation: str | None = None
    input_mapping: dict[str, str] = field(default_factory=dict)
    output_mapping: dict[str, str] = field(default_factory=dict)
    condition: str | None = None
    continue_on_error: bool = False
    timeout_s: float | None = None


@dataclass(frozen=True)
class Workflow:
    """Named sequence of steps run in order by the broker."""

    id: str
    name: str
    steps: tuple[WorkflowStep, ...] = ()
    description: str = ""
    enabled: bool = True
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkflowError:
    """Failure recorded for one step."""

    step_id: str
    message: str
    details: Any = None


@dataclass
class WorkflowResult:
    """Outcome of one workflow execution."""

    workflow_id: str
    execution_id: str
    start_time: datetime
    status: WorkflowStatus = "success"
    step_results: dict[str, AgentResponse] = field(default_factory=dict)
    output: dict[str, Any] = field(default_factory=dict)
    end_time: datetime | None = None
    errors: list[WorkflowError] = field(default_factory=list)

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "status": self.status,
            "step_results": {k: v.to_dict() for k, v in self.step_results.items()},
            "output": self.output,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "errors": [
                {"step_id": e.step_id, "message": e.message, "details": e.details}
                for e in self.errors
            ],
        }
