"""Variable bindings — resolve ``{{sourceNode.NAME}}`` against upstream outputs.

A node's configuration may reference an output of its source node (the
producer on its first incoming edge) with a template token such as
``{{sourceNode.OUTPUT_PATH}}`` or ``{{sourceNode.inputPaths[1]}}``. Names
are matched exactly against the source's named outputs; ``outputPath`` and
``path`` (any case) fall back to the source's primary path.
"""

import re

from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.graph import Graph, SourceKind

TEMPLATE_RE = re.compile(r"\{\{sourceNode\.(\w+(?:\[\d+\])?)\}\}")
PATH_ALIASES = frozenset({"outputpath", "path"})


class BindingError(Exception):
    """A template reference could not be resolved.

    ``summary`` is the short message reported for the node, ``status_text``
    the shorter text shown as its status (``summary`` when unset), and the
    exception text is the full explanation.
    """

    summary = "Variable binding failed"
    status_text: str | None = None

    def __init__(
        self, detail: str, summary: str | None = None, status_text: str | None = None
    ) -> None:
        super().__init__(detail)
        if summary is not None:
            self.summary = summary
        if status_text is not None:
            self.status_text = status_text


class NoSourceConnected(BindingError):
    summary = "No source node connected"
    status_text = "No source connected"

    def __init__(self) -> None:
        super().__init__("No source node connected. Connect a node that produces output.")


class NoSourceOutput(BindingError):
    summary = "No source output available"
    status_text = "No source output"

    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        super().__init__(
            "Source node has no output. Ensure the source node executed successfully."
        )


class UnresolvedVariable(BindingError):
    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(
            f'Variable "{name}" not found in source node output. '
            f"Available: {', '.join(available) if available else 'outputPath'}",
            summary=f"Could not resolve {{{{sourceNode.{name}}}}}",
            status_text=f"Variable {name} not found",
        )


def has_template(value: object) -> bool:
    return isinstance(value, str) and TEMPLATE_RE.search(value) is not None


def source_output(node_id: str, graph: Graph, ctx: RunContext) -> NodeOutput:
    """Return the output recorded for *node_id*'s source node."""
    link = graph.source_link(node_id)
    if link.kind is SourceKind.NONE or link.source_id is None:
        raise NoSourceConnected()
    output = ctx.get(link.source_id)
    if output is None:
        raise NoSourceOutput(link.source_id)
    return output


def lookup_variable(output: NodeOutput, name: str) -> str:
    if name in output.named_outputs:
        return output.named_outputs[name]
    if name.lower() in PATH_ALIASES:
        return output.path
    raise UnresolvedVariable(name, list(output.named_outputs))


def resolve_template(value: str, node_id: str, graph: Graph, ctx: RunContext) -> str:
    """Replace every ``{{sourceNode.NAME}}`` token in *value*.

    Values without a token are returned unchanged and do not require a
    connected source.
    """
    if not has_template(value):
        return value

    output = source_output(node_id, graph, ctx)
    return TEMPLATE_RE.sub(lambda m: lookup_variable(output, m.group(1)), value)
