"""Built-in executors, one per node kind."""

from pipeflow.capabilities import DatasetChecker, ScriptRunner, VersioningClient
from pipeflow.core.executor import Dispatcher
from pipeflow.nodes.dataset import DatasetExecutor
from pipeflow.nodes.execute import ExecuteExecutor, MissingInputError
from pipeflow.nodes.passthrough import PassthroughExecutor
from pipeflow.nodes.versioning import VersioningExecutor

__all__ = [
    "DatasetExecutor",
    "ExecuteExecutor",
    "MissingInputError",
    "PassthroughExecutor",
    "VersioningExecutor",
    "build_dispatcher",
]


def build_dispatcher(
    *,
    dataset_checker: DatasetChecker,
    script_runner: ScriptRunner,
    versioning_client: VersioningClient,
) -> Dispatcher:
    """Dispatcher for the built-in kinds; everything else passes through."""
    return (
        Dispatcher(default=PassthroughExecutor())
        .register("dataset", DatasetExecutor(dataset_checker))
        .register("execute", ExecuteExecutor(script_runner))
        .register("versioning", VersioningExecutor(versioning_client))
    )
