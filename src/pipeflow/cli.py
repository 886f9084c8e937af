"""CLI entry point for pipeflow."""

import argparse
import asyncio
import logging
import sys

from pipeflow.backend import BackendClient
from pipeflow.core.graph import CycleError
from pipeflow.core.runner import GraphEmptyError, Runner
from pipeflow.loader import PipelineFileError, load_pipeline, save_pipeline
from pipeflow.nodes import build_dispatcher
from pipeflow.settings import load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipeflow",
        description="Run ML/data pipeline graphs against the pipeline backend",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    order = sub.add_parser("order", help="Print the execution order of a pipeline")
    order.add_argument("--pipeline", required=True, help="Path to the pipeline YAML/JSON file")

    run = sub.add_parser("run", help="Execute a pipeline")
    run.add_argument("--pipeline", required=True, help="Path to the pipeline YAML/JSON file")
    run.add_argument("--parallel", action="store_true", default=None, help="Run independent branches concurrently")
    run.add_argument("--detect-cycles", action="store_true", default=None, help="Refuse to run a graph with a cycle")
    run.add_argument("--backend-url", default=None, help="Override PIPEFLOW_BACKEND_URL")
    run.add_argument("--output", default=None, help="Write the pipeline with updated statuses here")

    return parser


def _print_order(args: argparse.Namespace) -> int:
    graph = load_pipeline(args.pipeline)
    print(f"Pipeline: {args.pipeline}")
    print(f"Nodes: {len(graph)}")
    for i, node_id in enumerate(graph.execution_order, start=1):
        node = graph.get_node(node_id)
        print(f"  {i}. {node.label} [{node.type}]")
    if graph.unreachable:
        print(f"Blocked by a cycle: {graph.unreachable}")
    return 0


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.backend_url:
        settings.backend_url = args.backend_url.rstrip("/")

    graph = load_pipeline(args.pipeline)

    async with BackendClient.from_settings(settings) as client:
        runner = Runner(
            build_dispatcher(dataset_checker=client, script_runner=client, versioning_client=client),
            parallel=settings.parallel if args.parallel is None else args.parallel,
            detect_cycles=settings.detect_cycles if args.detect_cycles is None else args.detect_cycles,
        )
        try:
            report = await runner.run(graph)
        except (GraphEmptyError, CycleError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    print(f"\nDone in {report.duration_ms:.0f}ms")
    for result in report.results:
        mark = "ok" if result.success else "FAILED"
        print(f"  [{mark}] {result.node_label} ({result.node_type}): {result.message}")
        if result.output_paths:
            for name, value in result.output_paths.items():
                print(f"        {name} = {value}")

    if args.output:
        save_pipeline(graph, args.output)

    failed = report.failed
    if failed is not None:
        print(f"\nFailed at {failed.node_label}: {failed.error}")
        return 1

    return 0


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        if args.command == "order":
            code = _print_order(args)
        elif args.command == "run":
            code = asyncio.run(_run(args))
        else:
            parser.print_help()
            code = 1
    except (PipelineFileError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    sys.exit(code)
