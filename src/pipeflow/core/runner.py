"""Runner — execute a pipeline graph node by node with fail-fast semantics."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Self

from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import Dispatcher, Outcome
from pipeflow.core.graph import Graph
from pipeflow.core.node import NodeStatus, PipelineNode

logger = logging.getLogger(__name__)

StatusObserver = Callable[[PipelineNode], None]


class GraphEmptyError(Exception):
    """Raised when a run is requested for a graph without nodes."""

    def __init__(self) -> None:
        super().__init__("No nodes in the pipeline. Please add at least one node.")


@dataclass
class ExecutionResult:
    node_id: str
    node_label: str
    node_type: str
    success: bool
    message: str = ""
    output_path: str | None = None
    output_paths: dict[str, str] | None = None
    error: str | None = None
    file_count: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_outcome(cls, node: PipelineNode, outcome: Outcome) -> Self:
        return cls(
            node_id=node.id,
            node_label=node.label,
            node_type=node.type,
            success=outcome.success,
            message=outcome.message,
            output_path=outcome.output_path,
            output_paths=dict(outcome.named_outputs) if outcome.named_outputs else None,
            error=None if outcome.success else outcome.error,
            file_count=outcome.file_count,
            metadata=dict(outcome.metadata),
        )


@dataclass
class RunReport:
    results: list[ExecutionResult] = field(default_factory=list)
    outputs: dict[str, NodeOutput] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    omitted: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed(self) -> ExecutionResult | None:
        """The failing entry, which is always the last one reported."""
        for r in self.results:
            if not r.success:
                return r
        return None

    @property
    def node_ids(self) -> list[str]:
        return [r.node_id for r in self.results]

    def summary(self) -> dict[str, Any]:
        failed = self.failed
        return {
            "total": len(self.results),
            "planned": len(self.order),
            "succeeded": sum(1 for r in self.results if r.success),
            "failed_node": failed.node_id if failed else None,
            "omitted": list(self.omitted),
            "duration_ms": self.duration_ms,
            "success": self.success,
        }


class Runner:
    """Run a graph in topological order, stopping at the first failure.

    By default nodes run one at a time in ``Graph.execution_order``. With
    ``parallel=True`` every node whose predecessors have all completed is
    started at once; the first failure cancels the siblings still running
    and nothing new is started.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        parallel: bool = False,
        detect_cycles: bool = False,
        on_status: StatusObserver | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.parallel = parallel
        self.detect_cycles = detect_cycles
        self.on_status = on_status

    async def run(self, graph: Graph, ctx: RunContext | None = None) -> RunReport:
        if len(graph) == 0:
            raise GraphEmptyError()
        if self.detect_cycles:
            graph.check_acyclic()

        ctx = ctx if ctx is not None else RunContext()
        start = time.monotonic()
        order = graph.execution_order
        report = RunReport(order=order, omitted=graph.unreachable)

        logger.info("Execution order: %s", order)
        if report.omitted:
            logger.warning("Not running %d node(s) blocked by a cycle: %s", len(report.omitted), report.omitted)

        if self.parallel:
            await self._run_parallel(graph, order, ctx, report)
        else:
            await self._run_sequential(graph, order, ctx, report)

        report.outputs = ctx.snapshot()
        report.duration_ms = round((time.monotonic() - start) * 1000, 1)
        return report

    async def _run_sequential(
        self, graph: Graph, order: list[str], ctx: RunContext, report: RunReport
    ) -> None:
        for node_id in order:
            result = await self._run_node(graph.get_node(node_id), graph, ctx)
            report.results.append(result)
            if not result.success:
                logger.warning("Fail-fast: stopping after %s", node_id)
                break

    async def _run_parallel(
        self, graph: Graph, order: list[str], ctx: RunContext, report: RunReport
    ) -> None:
        position = {nid: i for i, nid in enumerate(order)}
        waiting = {nid: len(graph.predecessors(nid)) for nid in order}
        ready: deque[str] = deque(nid for nid in order if waiting[nid] == 0)
        in_flight: dict[asyncio.Task[ExecutionResult], PipelineNode] = {}
        previous: dict[str, tuple[NodeStatus, str | None]] = {}
        failed = False

        while ready or in_flight:
            while ready and not failed:
                node = graph.get_node(ready.popleft())
                previous[node.id] = (node.status, node.status_message)
                in_flight[asyncio.create_task(self._run_node(node, graph, ctx))] = node

            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            # Successes finishing in the same wakeup are reported before the
            # failure; further failures in it are treated as cancelled.
            finished = sorted(
                ((in_flight.pop(task), task.result()) for task in done),
                key=lambda item: (not item[1].success, position[item[0].id]),
            )
            for node, result in finished:
                if failed:
                    status, message = previous[node.id]
                    self._set_status(node, status, message)
                    continue
                report.results.append(result)
                if not result.success:
                    failed = True
                    continue
                for succ in graph.successors(node.id):
                    if succ not in waiting:
                        continue
                    waiting[succ] -= 1
                    if waiting[succ] == 0:
                        ready.append(succ)

            if failed:
                logger.warning("Fail-fast: cancelling %d running node(s)", len(in_flight))
                await self._cancel(in_flight, previous)
                break

    async def _cancel(
        self,
        in_flight: dict[asyncio.Task[ExecutionResult], PipelineNode],
        previous: dict[str, tuple[NodeStatus, str | None]],
    ) -> None:
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)
        for node in in_flight.values():
            status, message = previous[node.id]
            self._set_status(node, status, message)
        in_flight.clear()

    async def _run_node(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> ExecutionResult:
        logger.info("Running %s (%s)", node.id, node.type)
        self._set_status(node, NodeStatus.RUNNING, "Executing...")

        outcome = await self.dispatcher.dispatch(node, graph, ctx)

        if outcome.execution_logs is not None:
            node.execution_logs = outcome.execution_logs

        if outcome.success:
            output = outcome.output or NodeOutput(
                path=outcome.output_path or "", named_outputs=dict(outcome.named_outputs)
            )
            ctx.register(node.id, output)
            if outcome.config_update:
                logger.info("Updating config of %s: %s", node.id, sorted(outcome.config_update))
                node.config.update(outcome.config_update)
            self._set_status(node, NodeStatus.COMPLETED, outcome.status_message or outcome.message)
        else:
            self._set_status(
                node, NodeStatus.ERROR, outcome.status_message or outcome.message or outcome.error
            )

        logger.info("Finished %s: %s", node.id, node.status.value)
        return ExecutionResult.from_outcome(node, outcome)

    def _set_status(self, node: PipelineNode, status: NodeStatus, message: str | None) -> None:
        node.status = status
        node.status_message = message
        if self.on_status is not None:
            self.on_status(node)
