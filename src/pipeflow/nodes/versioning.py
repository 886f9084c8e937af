"""VersioningExecutor — list/download/create/version datasets via a VersioningClient."""

import logging
from typing import Any

from pipeflow.capabilities import VersioningClient, VersioningRequest, VersioningResult
from pipeflow.core.binding import resolve_template
from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import NodeExecutor, Outcome
from pipeflow.core.graph import Graph
from pipeflow.core.node import PipelineNode

logger = logging.getLogger(__name__)

DEFAULT_ACTIONS = {"dvc": "push"}
INPUT_PATHS_SEPARATOR = ","


class VersioningExecutor(NodeExecutor):
    """Run a dataset-versioning action.

    Inputs come from ``inputPaths``/``inputPath`` in the config (templates
    allowed) or, when neither is set, from the source node's primary path.
    A successful ``create`` can ask for the node to switch to ``version``
    mode so the next run adds a version to the dataset it just created.
    """

    def __init__(self, client: VersioningClient) -> None:
        self.client = client

    async def run(self, node: PipelineNode, graph: Graph, ctx: RunContext) -> Outcome:
        config = node.config
        inputs = self._input_paths(node, graph, ctx)
        request = self._build_request(config, inputs)
        logger.debug("%s: %s %s with %d input(s)", node.id, request.tool, request.action, len(inputs))

        result = await self.client.run_action(request)
        if not result.success:
            return Outcome.failure(result.message or "Versioning action failed")

        named_outputs = self._named_outputs(result, inputs)
        output_path = named_outputs.get("outputPath", "")
        return Outcome(
            success=True,
            message=result.message,
            output_path=output_path or None,
            named_outputs=named_outputs,
            output=NodeOutput(path=output_path, named_outputs=named_outputs),
            config_update=self._config_update(config, request.action, result),
        )

    @staticmethod
    def _input_paths(node: PipelineNode, graph: Graph, ctx: RunContext) -> list[str]:
        config = node.config
        paths = [
            resolve_template(p, node.id, graph, ctx) for p in config.get("inputPaths") or [] if p
        ]
        if not paths and config.get("inputPath"):
            paths = [resolve_template(config["inputPath"], node.id, graph, ctx)]
        if paths:
            return paths

        source_id = graph.source_link(node.id).source_id
        upstream = ctx.get(source_id) if source_id else None
        return [upstream.path] if upstream and upstream.path else []

    @staticmethod
    def _build_request(config: dict[str, Any], inputs: list[str]) -> VersioningRequest:
        tool = config.get("tool") or "clearml-data"
        action = config.get("clearmlAction") or config.get("action") or DEFAULT_ACTIONS.get(tool, "list")
        selected = config.get("selectedDataset") or {}
        creating = action == "create"

        return VersioningRequest(
            tool=tool,
            action=action,
            connection_id=config.get("connectionId"),
            credentials=config.get("credentials"),
            dataset_id=None if creating else config.get("selectedDatasetId") or selected.get("id"),
            dataset_name=config.get("newDatasetName") if creating else selected.get("name"),
            dataset_project=config.get("newDatasetProject") if creating else selected.get("project"),
            input_path=inputs[0] if inputs else None,
            input_paths=inputs,
            output_path=config.get("outputPath"),
            version=config.get("version"),
            tags=list(config.get("datasetTags") or []),
            remote_url=config.get("remoteUrl"),
        )

    @staticmethod
    def _named_outputs(result: VersioningResult, inputs: list[str]) -> dict[str, str]:
        used = result.input_paths or inputs
        primary_input = result.input_path or (used[0] if used else "")

        named: dict[str, str] = {}
        output_path = result.output_path or primary_input
        if output_path:
            named["outputPath"] = output_path
        if primary_input:
            named["inputPath"] = primary_input
        if len(used) > 1:
            for i, path in enumerate(used):
                named[f"inputPaths[{i}]"] = path
            named["inputPaths"] = INPUT_PATHS_SEPARATOR.join(used)
        return named

    @staticmethod
    def _config_update(
        config: dict[str, Any], action: str, result: VersioningResult
    ) -> dict[str, Any] | None:
        if action != "create":
            return None
        auto_switch = config.get("autoVersionAfterCreate") is not False and bool(result.dataset_id)
        if not (result.should_switch_to_version or auto_switch):
            return None

        update: dict[str, Any] = {"clearmlAction": "version"}
        if result.dataset_id:
            update["selectedDatasetId"] = result.dataset_id
        if result.created_dataset:
            update["selectedDataset"] = dict(result.created_dataset)
        return update
