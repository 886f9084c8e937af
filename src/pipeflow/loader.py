"""Pipeline files — load a Graph from YAML/JSON and dump it back."""

from pathlib import Path
from typing import Any

import yaml

from pipeflow.core.graph import Graph
from pipeflow.core.node import NodeStatus, PipelineNode


class PipelineFileError(ValueError):
    """Raised when a pipeline file cannot be turned into a graph."""


def _parse_node(raw: Any, index: int) -> PipelineNode:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise PipelineFileError(f"Node #{index} must be a mapping with an 'id'")

    # Editor exports nest the node fields under "data".
    data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
    node_type = data.get("type") or raw.get("type")
    if not node_type:
        raise PipelineFileError(f"Node {raw['id']!r} has no type")

    config = data.get("config") or {}
    if not isinstance(config, dict):
        raise PipelineFileError(f"Node {raw['id']!r}: config must be a mapping")

    try:
        status = NodeStatus(data.get("status") or "idle")
    except ValueError:
        status = NodeStatus.IDLE

    return PipelineNode(
        id=str(raw["id"]),
        type=str(node_type),
        label=str(data.get("label") or ""),
        config=dict(config),
        status=status,
        status_message=data.get("statusMessage"),
    )


def graph_from_dict(data: Any) -> Graph:
    """Build a Graph from ``{"nodes": [...], "edges": [...]}``."""
    if not isinstance(data, dict):
        raise PipelineFileError("Pipeline must be a mapping with 'nodes' and 'edges'")

    graph = Graph()
    for i, raw in enumerate(data.get("nodes") or []):
        graph.add_node(_parse_node(raw, i))

    for i, raw in enumerate(data.get("edges") or []):
        if not isinstance(raw, dict) or "source" not in raw or "target" not in raw:
            raise PipelineFileError(f"Edge #{i} must have 'source' and 'target'")
        try:
            graph.add_edge(str(raw["source"]), str(raw["target"]))
        except ValueError as e:
            raise PipelineFileError(f"Edge #{i}: {e}") from e

    return graph


def load_pipeline(path: str | Path) -> Graph:
    """Load a pipeline file. JSON files parse as YAML too."""
    try:
        data = yaml.safe_load(Path(path).read_text())
    except yaml.YAMLError as e:
        raise PipelineFileError(f"Invalid pipeline file {path}: {e}") from e
    return graph_from_dict(data)


def dump_pipeline(graph: Graph) -> dict[str, Any]:
    """Serialize nodes (with their current status) and edges."""
    nodes = []
    for node in graph.nodes:
        entry: dict[str, Any] = {
            "id": node.id,
            "type": node.type,
            "label": node.label,
            "config": node.config,
            "status": node.status.value,
        }
        if node.status_message:
            entry["statusMessage"] = node.status_message
        nodes.append(entry)

    return {
        "nodes": nodes,
        "edges": [{"source": e.source, "target": e.target} for e in graph.edges],
    }


def save_pipeline(graph: Graph, path: str | Path) -> None:
    Path(path).write_text(yaml.safe_dump(dump_pipeline(graph), sort_keys=False))
