"""DatasetExecutor — connectivity/listing check for a dataset source."""

from pipeflow.capabilities import DatasetChecker
from pipeflow.core.binding import resolve_template
from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import NodeExecutor, Outcome
from pipeflow.core.graph import Graph
from pipeflow.core.node import PipelineNode


class DatasetExecutor(NodeExecutor):
    """Check that the configured dataset is reachable.

    ``config["path"]`` may reference an upstream output, e.g.
    ``{{sourceNode.OUTPUT_PATH}}``, so a dataset node can pick up a file
    produced earlier in the pipeline. The resolved path becomes the node's
    primary output.
    """

    def __init__(self, checker: DatasetChecker) -> None:
        self.checker = checker

    async def run(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        path = node.config.get("path") or ""
        resolved = resolve_template(path, node.id, graph, ctx)

        result = await self.checker.check({**node.config, "path": resolved})

        if not result.success:
            error = result.error or "Connection failed"
            return Outcome.failure(error, file_count=result.file_count, output_path=resolved)

        message = f"Found {result.file_count} files"
        return Outcome(
            success=True,
            message=message,
            output_path=resolved,
            file_count=result.file_count,
            output=NodeOutput(path=resolved, file_count=result.file_count),
        )
