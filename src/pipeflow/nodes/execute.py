"""ExecuteExecutor — run a node's enabled script steps through a ScriptRunner."""

import logging
import time
from typing import Any

from pipeflow.capabilities import ScriptRunner, ScriptRunResult, ScriptStep
from pipeflow.core.binding import BindingError, resolve_template
from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import NodeExecutor, Outcome
from pipeflow.core.graph import Graph
from pipeflow.core.node import ExecutionLogs, LogEntry, PipelineNode, utc_timestamp

logger = logging.getLogger(__name__)

INPUT_PATH_SOURCE = "inputPath"


class MissingInputError(BindingError):
    """A step needs the data source variable but nothing upstream produced a path."""

    summary = "No input data path available"
    status_text = "No input data path"

    def __init__(self) -> None:
        super().__init__("No input data path available. Please connect a Dataset node.")


def enabled_steps(config: dict[str, Any]) -> list[dict[str, Any]]:
    return [s for s in config.get("steps") or [] if s.get("enabled")]


class ExecuteExecutor(NodeExecutor):
    """Execute scripts step by step and publish their output variables.

    The input path is the primary path of the source node's output. Each
    step's ``dataSourceMappings`` bind script variables to either that path
    (``inputPath``) or a ``{{sourceNode.NAME}}`` reference. After the run,
    step *i*'s ``outputVariables[j]`` is published as a named output with the
    *j*-th path the step reported, and ``outputPath`` holds the run's primary
    output.
    """

    def __init__(self, runner: ScriptRunner) -> None:
        self.runner = runner

    async def run(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        raw_steps = enabled_steps(node.config)
        input_path = self._input_path(node.id, graph, ctx)

        if not input_path and any(s.get("useDataSourceVariable") is not False for s in raw_steps):
            raise MissingInputError()

        steps = [
            ScriptStep.from_config(raw, self._bind_variables(raw, input_path, node, graph, ctx))
            for raw in raw_steps
        ]
        logger.debug("%s: running %d step(s) on %r", node.id, len(steps), input_path)

        started_at = utc_timestamp()
        start = time.monotonic()
        result = await self.runner.run_steps(steps, input_path)
        logs = self._collect_logs(result, started_at, (time.monotonic() - start) * 1000)

        named_outputs: dict[str, str] = {}
        if result.success:
            for step, step_result in zip(steps, result.step_results):
                for name, value in zip(step.output_variables, step_result.output_paths):
                    if value:
                        named_outputs[name] = value
        if result.output_path:
            named_outputs["outputPath"] = result.output_path

        if not result.success:
            return Outcome.failure(
                result.message or "Script execution failed",
                output_path=result.output_path,
                named_outputs=named_outputs,
                execution_logs=logs,
            )

        return Outcome(
            success=True,
            message=result.message,
            output_path=result.output_path,
            named_outputs=named_outputs,
            execution_logs=logs,
            output=NodeOutput(path=result.output_path or input_path, named_outputs=named_outputs),
        )

    @staticmethod
    def _input_path(node_id: str, graph: Graph, ctx: RunContext) -> str:
        source_id = graph.source_link(node_id).source_id
        if source_id is None:
            return ""
        output = ctx.get(source_id)
        return output.path if output else ""

    @staticmethod
    def _bind_variables(
        raw: dict[str, Any],
        input_path: str,
        node: PipelineNode,
        graph: Graph,
        ctx: RunContext,
    ) -> dict[str, str]:
        if raw.get("useDataSourceVariable") is False:
            return {}

        mappings = raw.get("dataSourceMappings") or []
        if not mappings:
            return {raw.get("dataSourceVariable") or "DATA_SOURCE": input_path}

        variables: dict[str, str] = {}
        for mapping in mappings:
            name = mapping.get("variableName")
            if not name:
                continue
            source = mapping.get("sourceOutput") or INPUT_PATH_SOURCE
            if source == INPUT_PATH_SOURCE:
                variables[name] = input_path
            else:
                variables[name] = resolve_template(source, node.id, graph, ctx)
        return variables

    @staticmethod
    def _collect_logs(result: ScriptRunResult, started_at: str, duration_ms: float) -> ExecutionLogs | None:
        if not result.step_results:
            return None

        logs = ExecutionLogs(
            start_time=started_at,
            end_time=utc_timestamp(),
            duration_ms=round(duration_ms, 1),
            exit_code=0 if result.success else 1,
        )
        for step_result in result.step_results:
            if not result.success and step_result.error:
                logs.logs.append(LogEntry(type="stderr", message=f"Error: {step_result.error}"))
            logs.add_lines("stdout", step_result.stdout)
            logs.add_lines("stderr", step_result.stderr)
        return logs
