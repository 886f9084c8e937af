"""RunContext — run-scoped table of node outputs."""

from dataclasses import dataclass, field


@dataclass
class NodeOutput:
    """Data a successful node hands downstream."""

    path: str
    named_outputs: dict[str, str] = field(default_factory=dict)
    file_count: int | None = None


class RunContext:
    """Outputs of the nodes that succeeded so far in one run, keyed by node id.

    The runner registers an output after each successful node; executors
    read upstream outputs with ``get()``. A context belongs to a single run
    and is returned to the caller with the run report.
    """

    def __init__(self, initial: dict[str, NodeOutput] | None = None) -> None:
        self._outputs: dict[str, NodeOutput] = dict(initial) if initial else {}

    def get(self, node_id: str) -> NodeOutput | None:
        return self._outputs.get(node_id)

    def register(self, node_id: str, output: NodeOutput) -> None:
        self._outputs[node_id] = output

    def snapshot(self) -> dict[str, NodeOutput]:
        """Return a shallow copy of the output table."""
        return dict(self._outputs)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def __repr__(self) -> str:
        return f"RunContext({self._outputs!r})"
