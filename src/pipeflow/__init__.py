"""Execution orchestrator for ML/data pipeline graphs."""

from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import Dispatcher, NodeExecutor, Outcome
from pipeflow.core.graph import CycleError, Graph
from pipeflow.core.node import Edge, NodeStatus, PipelineNode
from pipeflow.core.runner import ExecutionResult, GraphEmptyError, Runner, RunReport

__all__ = [
    "CycleError",
    "Dispatcher",
    "Edge",
    "ExecutionResult",
    "Graph",
    "GraphEmptyError",
    "NodeExecutor",
    "NodeOutput",
    "NodeStatus",
    "Outcome",
    "PipelineNode",
    "RunContext",
    "RunReport",
    "Runner",
]
