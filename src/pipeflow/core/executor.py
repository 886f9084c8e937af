"""NodeExecutor ABC, Outcome dataclass, and per-kind Dispatcher."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Self

from pipeflow.core.binding import BindingError
from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.graph import Graph
from pipeflow.core.node import ExecutionLogs, PipelineNode


@dataclass
class Outcome:
    """Normalized result of dispatching one node.

    ``output`` is what the runner registers for the node on success.
    ``config_update`` asks the runner to merge keys into the node's config;
    executors never modify the graph themselves.
    """

    success: bool
    message: str = ""
    output_path: str | None = None
    named_outputs: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    file_count: int | None = None
    output: NodeOutput | None = None
    execution_logs: ExecutionLogs | None = None
    config_update: dict[str, Any] | None = None
    status_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, *, message: str | None = None, **kwargs: Any) -> Self:
        return cls(success=False, message=message or error, error=error, **kwargs)


class NodeExecutor(ABC):
    """Abstract base class for the per-kind dispatch step."""

    @abstractmethod
    async def run(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome: ...

    async def execute(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        """Run the executor with timing metadata; never raises ``Exception``."""
        start = time.monotonic()
        try:
            outcome = await self.run(node, graph, ctx)
        except BindingError as e:
            outcome = Outcome.failure(str(e), message=e.summary, status_message=e.status_text)
        except Exception as e:
            outcome = Outcome.failure(str(e) or type(e).__name__)
        elapsed_ms = (time.monotonic() - start) * 1000
        outcome.metadata.setdefault("duration_ms", round(elapsed_ms, 1))
        return outcome

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Dispatcher:
    """Map node kinds to executors, with a fallback for unknown kinds."""

    def __init__(self, default: NodeExecutor) -> None:
        self.default = default
        self._executors: dict[str, NodeExecutor] = {}

    def register(self, kind: str, executor: NodeExecutor) -> Self:
        self._executors[kind] = executor
        return self

    def for_kind(self, kind: str) -> NodeExecutor:
        return self._executors.get(kind, self.default)

    @property
    def kinds(self) -> list[str]:
        return list(self._executors)

    async def dispatch(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        return await self.for_kind(node.type).execute(node, graph, ctx)
