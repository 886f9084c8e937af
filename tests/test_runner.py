"""Tests for Runner."""

import asyncio

import pytest

from pipeflow.core.binding import resolve_template
from pipeflow.core.context import NodeOutput, RunContext
from pipeflow.core.executor import Dispatcher, NodeExecutor, Outcome
from pipeflow.core.graph import CycleError, Graph
from pipeflow.core.node import NodeStatus, PipelineNode
from pipeflow.core.runner import GraphEmptyError, Runner
from pipeflow.nodes.passthrough import PassthroughExecutor


class SuccessExecutor(NodeExecutor):
    """Publishes ``config["path"]`` (templates resolved) as its output."""

    def __init__(self, delay: float = 0) -> None:
        self.delay = delay
        self.seen: list[str] = []

    async def run(self, node, graph, ctx) -> Outcome:
        self.seen.append(node.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        path = resolve_template(node.config.get("path", f"/out/{node.id}"), node.id, graph, ctx)
        named = dict(node.config.get("named", {}))
        return Outcome(
            success=True,
            message=f"ran {node.id}",
            output_path=path,
            named_outputs=named,
            output=NodeOutput(path=path, named_outputs=named),
        )


class FailExecutor(NodeExecutor):
    async def run(self, node, graph, ctx) -> Outcome:
        return Outcome.failure(node.config.get("error", "connection failed"))


class RaisingExecutor(NodeExecutor):
    async def run(self, node, graph, ctx) -> Outcome:
        raise RuntimeError("kaboom")


class MutatingExecutor(NodeExecutor):
    async def run(self, node, graph, ctx) -> Outcome:
        return Outcome(success=True, message="created", config_update={"clearmlAction": "version"})


def dispatcher(**executors: NodeExecutor) -> Dispatcher:
    d = Dispatcher(default=PassthroughExecutor())
    d.register("ok", executors.pop("ok", SuccessExecutor()))
    d.register("fail", executors.pop("fail", FailExecutor()))
    d.register("boom", RaisingExecutor())
    d.register("mutate", MutatingExecutor())
    for kind, executor in executors.items():
        d.register(kind, executor)
    return d


def build(nodes: list[tuple[str, str]], edges: list[tuple[str, str]] = ()) -> Graph:
    g = Graph()
    for nid, kind in nodes:
        g.add_node(PipelineNode(id=nid, type=kind))
    for src, tgt in edges:
        g.add_edge(src, tgt)
    return g


class TestRunnerBasic:
    @pytest.mark.asyncio
    async def test_single_node_success(self):
        g = build([("a", "ok")])
        report = await Runner(dispatcher()).run(g)
        assert report.success
        assert report.node_ids == ["a"]
        assert g.get_node("a").status == NodeStatus.COMPLETED
        assert g.get_node("a").status_message == "ran a"

    @pytest.mark.asyncio
    async def test_single_node_failure(self):
        g = build([("a", "fail")])
        report = await Runner(dispatcher()).run(g)
        assert not report.success
        assert report.failed.node_id == "a"
        assert report.failed.error == "connection failed"
        assert g.get_node("a").status == NodeStatus.ERROR

    @pytest.mark.asyncio
    async def test_empty_graph_rejected(self):
        with pytest.raises(GraphEmptyError):
            await Runner(dispatcher()).run(Graph())

    @pytest.mark.asyncio
    async def test_result_fields(self):
        g = Graph().add_node(PipelineNode(id="a", type="ok", label="Load data"))
        report = await Runner(dispatcher()).run(g)
        result = report.results[0]
        assert result.node_label == "Load data"
        assert result.node_type == "ok"
        assert result.output_path == "/out/a"
        assert result.error is None
        assert "duration_ms" in result.metadata


class TestOutputRegistration:
    @pytest.mark.asyncio
    async def test_outputs_registered_for_successes_only(self):
        g = build([("a", "ok"), ("b", "fail")], [("a", "b")])
        ctx = RunContext()
        report = await Runner(dispatcher()).run(g, ctx)
        assert "a" in ctx
        assert "b" not in ctx
        assert set(report.outputs) == {"a"}

    @pytest.mark.asyncio
    async def test_downstream_resolves_upstream_named_output(self):
        g = build([("a", "ok"), ("b", "ok")], [("a", "b")])
        g.get_node("a").config["named"] = {"OUT": "/x"}
        g.get_node("b").config["path"] = "{{sourceNode.OUT}}"
        report = await Runner(dispatcher()).run(g)
        assert report.results[1].output_path == "/x"

    @pytest.mark.asyncio
    async def test_outcome_without_output_registers_primary_path(self):
        g = build([("a", "mutate")])
        ctx = RunContext()
        await Runner(dispatcher()).run(g, ctx)
        assert ctx.get("a") == NodeOutput(path="")


class TestFailFast:
    @pytest.mark.asyncio
    async def test_report_is_prefix_of_order(self):
        g = build([("d", "fail"), ("e", "ok"), ("v", "ok")], [("d", "e"), ("e", "v")])
        report = await Runner(dispatcher()).run(g)
        assert report.node_ids == ["d"]
        assert report.order == ["d", "e", "v"]
        assert g.get_node("e").status == NodeStatus.IDLE
        assert g.get_node("v").status == NodeStatus.IDLE

    @pytest.mark.asyncio
    async def test_independent_branch_not_attempted_after_failure(self):
        ok = SuccessExecutor()
        g = build([("a", "fail"), ("b", "ok")])
        report = await Runner(dispatcher(ok=ok)).run(g)
        assert report.node_ids == ["a"]
        assert ok.seen == []

    @pytest.mark.asyncio
    async def test_failure_is_last_entry(self):
        g = build([("a", "ok"), ("b", "ok"), ("c", "fail"), ("d", "ok")], [("a", "b"), ("b", "c"), ("c", "d")])
        report = await Runner(dispatcher()).run(g)
        assert report.node_ids == ["a", "b", "c"]
        assert [r.success for r in report.results] == [True, True, False]
        assert report.results[-1] is report.failed

    @pytest.mark.asyncio
    async def test_raised_exception_becomes_failure(self):
        g = build([("a", "boom"), ("b", "ok")], [("a", "b")])
        report = await Runner(dispatcher()).run(g)
        assert report.node_ids == ["a"]
        assert report.failed.error == "kaboom"
        assert report.failed.message == "kaboom"
        assert g.get_node("a").status_message == "kaboom"

    @pytest.mark.asyncio
    async def test_binding_error_becomes_failure(self):
        g = build([("a", "ok"), ("b", "ok")], [("a", "b")])
        g.get_node("b").config["path"] = "{{sourceNode.MISSING}}"
        report = await Runner(dispatcher()).run(g)
        assert report.failed.node_id == "b"
        assert report.failed.message == "Could not resolve {{sourceNode.MISSING}}"
        assert "MISSING" in report.failed.error
        assert g.get_node("b").status_message == "Variable MISSING not found"

    @pytest.mark.asyncio
    async def test_unconnected_template_status(self):
        g = build([("a", "ok")])
        g.get_node("a").config["path"] = "{{sourceNode.OUT}}"
        report = await Runner(dispatcher()).run(g)
        assert report.failed.message == "No source node connected"
        assert g.get_node("a").status_message == "No source connected"

    @pytest.mark.asyncio
    async def test_missing_source_output_status(self):
        g = build([("a", "fail"), ("b", "ok")], [("a", "b")])
        g.get_node("b").config["path"] = "{{sourceNode.OUT}}"
        outcome = await dispatcher().dispatch(g.get_node("b"), g, RunContext())
        assert outcome.message == "No source output available"
        assert outcome.status_message == "No source output"


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_observer_sees_running_then_completed(self):
        seen: list[tuple[str, NodeStatus]] = []
        g = build([("a", "ok"), ("b", "fail")], [("a", "b")])
        runner = Runner(dispatcher(), on_status=lambda n: seen.append((n.id, n.status)))
        await runner.run(g)
        assert seen == [
            ("a", NodeStatus.RUNNING),
            ("a", NodeStatus.COMPLETED),
            ("b", NodeStatus.RUNNING),
            ("b", NodeStatus.ERROR),
        ]

    @pytest.mark.asyncio
    async def test_config_update_applied(self):
        g = build([("v", "mutate")])
        g.get_node("v").config["clearmlAction"] = "create"
        await Runner(dispatcher()).run(g)
        assert g.get_node("v").config["clearmlAction"] == "version"


class TestCycles:
    @pytest.mark.asyncio
    async def test_cycle_silently_omitted(self):
        seen: list[str] = []
        g = build([("a", "ok"), ("b", "ok"), ("c", "ok")], [("a", "b"), ("b", "c"), ("c", "a")])
        report = await Runner(dispatcher(), on_status=lambda n: seen.append(n.id)).run(g)
        assert report.results == []
        assert report.order == []
        assert report.omitted == ["a", "b", "c"]
        assert seen == []

    @pytest.mark.asyncio
    async def test_detect_cycles_raises_before_running(self):
        ok = SuccessExecutor()
        g = build([("root", "ok"), ("x", "ok"), ("y", "ok")], [("x", "y"), ("y", "x")])
        with pytest.raises(CycleError):
            await Runner(dispatcher(ok=ok), detect_cycles=True).run(g)
        assert ok.seen == []


class TestParallel:
    @pytest.mark.asyncio
    async def test_independent_nodes_overlap(self):
        ok = SuccessExecutor(delay=0.05)
        g = build([("p1", "ok"), ("p2", "ok"), ("p3", "ok")])
        loop = asyncio.get_running_loop()
        start = loop.time()
        report = await Runner(dispatcher(ok=ok), parallel=True).run(g)
        assert report.success
        assert sorted(report.node_ids) == ["p1", "p2", "p3"]
        assert loop.time() - start < 0.14

    @pytest.mark.asyncio
    async def test_dependencies_respected(self):
        g = build([("a", "ok"), ("b", "ok"), ("c", "ok")], [("a", "b"), ("a", "c"), ("b", "c")])
        report = await Runner(dispatcher(), parallel=True).run(g)
        assert report.node_ids == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failure_cancels_running_siblings(self):
        slow = SuccessExecutor(delay=1.0)
        g = build([("bad", "fail"), ("slow", "slow"), ("after", "ok")], [("slow", "after")])
        report = await Runner(dispatcher(slow=slow), parallel=True).run(g)
        assert report.node_ids == ["bad"]
        assert g.get_node("slow").status == NodeStatus.IDLE
        assert g.get_node("after").status == NodeStatus.IDLE

    @pytest.mark.asyncio
    async def test_no_new_work_after_failure(self):
        ok = SuccessExecutor()
        g = build([("bad", "fail"), ("a", "ok"), ("b", "ok")], [("bad", "b"), ("a", "b")])
        report = await Runner(dispatcher(ok=ok), parallel=True).run(g)
        assert "b" not in report.node_ids
        assert "b" not in ok.seen

    @pytest.mark.asyncio
    async def test_root_feeding_cycle(self):
        g = build([("a", "ok"), ("b", "ok"), ("c", "ok")], [("a", "b"), ("b", "c"), ("c", "b")])
        report = await Runner(dispatcher(), parallel=True).run(g)
        assert report.node_ids == ["a"]
        assert report.omitted == ["b", "c"]
        assert report.success
        assert g.get_node("b").status == NodeStatus.IDLE

    @pytest.mark.asyncio
    async def test_failure_reported_last(self):
        g = build([("bad", "fail"), ("good", "ok")])
        report = await Runner(dispatcher(), parallel=True).run(g)
        assert report.results[-1] is report.failed
        assert report.failed.node_id == "bad"
        assert set(report.outputs) == {r.node_id for r in report.results if r.success}

    @pytest.mark.asyncio
    async def test_only_first_simultaneous_failure_reported(self):
        g = build([("x", "fail"), ("y", "fail")])
        report = await Runner(dispatcher(), parallel=True).run(g)
        assert report.node_ids == ["x"]
        assert g.get_node("x").status == NodeStatus.ERROR
        assert g.get_node("y").status == NodeStatus.IDLE


class TestRunReport:
    @pytest.mark.asyncio
    async def test_summary(self):
        g = build([("a", "ok"), ("b", "fail")], [("a", "b")])
        report = await Runner(dispatcher()).run(g)
        s = report.summary()
        assert s["total"] == 2
        assert s["planned"] == 2
        assert s["succeeded"] == 1
        assert s["failed_node"] == "b"
        assert s["success"] is False
        assert s["duration_ms"] >= 0
