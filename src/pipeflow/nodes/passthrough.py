"""PassthroughExecutor — no-op for node kinds without an executor yet."""

from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import NodeExecutor, Outcome
from pipeflow.core.graph import Graph
from pipeflow.core.node import PipelineNode


class PassthroughExecutor(NodeExecutor):
    """Forward the upstream output unchanged and report success.

    Used for training, experiment, report and unknown kinds so that an
    unfinished node does not block the rest of the pipeline. With no
    upstream output the node publishes an empty one.
    """

    async def run(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        source_id = graph.source_link(node.id).source_id
        upstream = ctx.get(source_id) if source_id else None

        return Outcome(
            success=True,
            message="Node type not yet implemented for execution",
            status_message="Skipped (not implemented)",
            output=upstream if upstream is not None else NodeOutput(path=""),
        )
