"""Graph — pipeline nodes and edges with a deterministic execution order."""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Self

from pipeflow.core.node import Edge, PipelineNode


class CycleError(Exception):
    """Raised when the graph contains a cycle."""

    def __init__(self, node_ids: list[str]) -> None:
        self.node_ids = node_ids
        super().__init__(
            f"Graph contains a cycle; {len(node_ids)} node(s) can never run: "
            + ", ".join(node_ids)
        )


class SourceKind(Enum):
    NONE = "none"
    SINGLE = "single"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class SourceLink:
    """The upstream producer consulted for a node's variable bindings.

    With several incoming edges the first one (in edge insertion order) is
    used; the others are listed in ``ignored``.
    """

    kind: SourceKind
    source_id: str | None = None
    ignored: tuple[str, ...] = ()


class Graph:
    """Directed graph of pipeline nodes.

    Nodes are added with ``add_node``, edges with ``add_edge(source, target)``
    meaning *source's output feeds target*. Both keep insertion order, which
    is what makes ``execution_order`` deterministic.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, PipelineNode] = {}
        self._edges: list[Edge] = []
        self._successors: dict[str, list[str]] = {}
        self._predecessors: dict[str, list[str]] = {}

    def add_node(self, node: PipelineNode) -> Self:
        self._nodes[node.id] = node
        self._successors.setdefault(node.id, [])
        self._predecessors.setdefault(node.id, [])
        return self

    def add_edge(self, source: str, target: str) -> Self:
        """Add a dependency edge: *source* must finish before *target* starts."""
        if source not in self._nodes:
            raise ValueError(f"Unknown source node: {source!r}")
        if target not in self._nodes:
            raise ValueError(f"Unknown target node: {target!r}")
        self._edges.append(Edge(source, target))
        self._successors[source].append(target)
        self._predecessors[target].append(source)
        return self

    def get_node(self, node_id: str) -> PipelineNode:
        return self._nodes[node_id]

    def predecessors(self, node_id: str) -> list[str]:
        return list(self._predecessors.get(node_id, []))

    def successors(self, node_id: str) -> list[str]:
        return list(self._successors.get(node_id, []))

    def source_link(self, node_id: str) -> SourceLink:
        preds = self._predecessors.get(node_id, [])
        if not preds:
            return SourceLink(SourceKind.NONE)
        if len(preds) == 1:
            return SourceLink(SourceKind.SINGLE, preds[0])
        return SourceLink(SourceKind.MULTIPLE, preds[0], tuple(preds[1:]))

    @property
    def nodes(self) -> list[PipelineNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def execution_order(self) -> list[str]:
        """Kahn's algorithm with a FIFO worklist.

        Roots are seeded in node insertion order. Nodes on a cycle, or fed
        only through one, never reach in-degree zero and are left out; see
        ``unreachable`` and ``check_acyclic``.
        """
        in_degree: dict[str, int] = {nid: len(self._predecessors[nid]) for nid in self._nodes}
        queue: deque[str] = deque(nid for nid, deg in in_degree.items() if deg == 0)
        order: list[str] = []

        while queue:
            nid = queue.popleft()
            order.append(nid)
            for succ in self._successors[nid]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    queue.append(succ)

        return order

    @property
    def unreachable(self) -> list[str]:
        """Node ids omitted from ``execution_order`` because of a cycle."""
        ordered = set(self.execution_order)
        return [nid for nid in self._nodes if nid not in ordered]

    def check_acyclic(self) -> None:
        """Raise ``CycleError`` if any node is excluded by a cycle."""
        blocked = self.unreachable
        if blocked:
            raise CycleError(blocked)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"
