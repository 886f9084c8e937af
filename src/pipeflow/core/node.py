"""PipelineNode and Edge dataclasses, NodeStatus enum, and execution logs."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class NodeStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class LogEntry:
    type: str  # "stdout" | "stderr" | "system"
    message: str
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass
class ExecutionLogs:
    """Captured output of a node run, flattened to one entry per line."""

    logs: list[LogEntry] = field(default_factory=list)
    start_time: str | None = None
    end_time: str | None = None
    duration_ms: float | None = None
    exit_code: int | None = None

    def add_lines(self, stream: str, text: str | None) -> None:
        """Append every non-blank line of *text* tagged with *stream*."""
        if not text:
            return
        for line in text.split("\n"):
            if line.strip():
                self.logs.append(LogEntry(type=stream, message=line))


@dataclass
class PipelineNode:
    """A typed unit of work in the pipeline graph.

    ``config`` is kind-specific and opaque to the orchestrator. ``status``,
    ``status_message`` and ``execution_logs`` are written by the runner
    during a run and can be observed while it progresses.
    """

    id: str
    type: str
    label: str = ""
    config: dict[str, Any] = field(default_factory=dict)
    status: NodeStatus = NodeStatus.IDLE
    status_message: str | None = None
    execution_logs: ExecutionLogs | None = None

    def __post_init__(self) -> None:
        if not self.label:
            self.label = self.id


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
