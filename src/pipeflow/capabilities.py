"""Capability contracts for the external collaborators executors call.

Each protocol is a single async method. ``pipeflow.backend.BackendClient``
implements all three against the hosted API; tests use small fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class DatasetCheckResult:
    success: bool
    file_count: int | None = None
    error: str | None = None


@dataclass
class ScriptStep:
    """One enabled step of an execute node, with its bindings resolved."""

    id: str
    name: str
    script_source: str = "local"
    script_path: str | None = None
    inline_script: str | None = None
    venv_mode: str = "auto"
    venv_path: str | None = None
    use_data_source_variable: bool = True
    data_source_variable: str = "DATA_SOURCE"
    variables: dict[str, str] = field(default_factory=dict)
    use_output_variables: bool = True
    output_variables: list[str] = field(default_factory=lambda: ["OUTPUT_PATH"])
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, raw: dict[str, Any], variables: dict[str, str] | None = None) -> "ScriptStep":
        step_id = str(raw.get("id", ""))
        return cls(
            id=step_id,
            name=str(raw.get("name") or step_id),
            script_source=raw.get("scriptSource") or "local",
            script_path=raw.get("scriptPath"),
            inline_script=raw.get("inlineScript"),
            venv_mode=raw.get("venvMode") or "auto",
            venv_path=raw.get("venvPath"),
            use_data_source_variable=raw.get("useDataSourceVariable") is not False,
            data_source_variable=raw.get("dataSourceVariable") or "DATA_SOURCE",
            variables=dict(variables or {}),
            use_output_variables=raw.get("useOutputVariables") is not False,
            output_variables=list(raw.get("outputVariables") or ["OUTPUT_PATH"]),
            params=dict(raw.get("params") or {}),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": True,
            "scriptSource": self.script_source,
            "scriptPath": self.script_path,
            "inlineScript": self.inline_script,
            "venvMode": self.venv_mode,
            "venvPath": self.venv_path,
            "useDataSourceVariable": self.use_data_source_variable,
            "dataSourceVariable": self.data_source_variable,
            "dataSourceMappings": [
                {"variableName": k, "sourceOutput": v} for k, v in self.variables.items()
            ],
            "useOutputVariables": self.use_output_variables,
            "outputVariables": self.output_variables,
            "params": self.params,
        }


@dataclass
class StepResult:
    success: bool
    step_id: str = ""
    step_name: str = ""
    output_path: str | None = None
    output_paths: list[str] = field(default_factory=list)
    stdout: str | None = None
    stderr: str | None = None
    error: str | None = None


@dataclass
class ScriptRunResult:
    success: bool
    message: str = ""
    output_path: str | None = None
    step_results: list[StepResult] = field(default_factory=list)


@dataclass
class VersioningRequest:
    tool: str
    action: str
    connection_id: str | None = None
    credentials: dict[str, Any] | None = None
    dataset_id: str | None = None
    dataset_name: str | None = None
    dataset_project: str | None = None
    input_path: str | None = None
    input_paths: list[str] = field(default_factory=list)
    output_path: str | None = None
    version: str | None = None
    tags: list[str] = field(default_factory=list)
    remote_url: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "tool": self.tool,
            "action": self.action,
            "connectionId": self.connection_id,
            "credentials": self.credentials,
            "datasetId": self.dataset_id,
            "datasetName": self.dataset_name,
            "datasetProject": self.dataset_project,
            "inputPath": self.input_path,
            "inputPaths": self.input_paths or None,
            "outputPath": self.output_path,
            "version": self.version,
            "tags": self.tags or None,
            "remoteUrl": self.remote_url,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class VersioningResult:
    success: bool
    message: str = ""
    output_path: str | None = None
    input_path: str | None = None
    input_paths: list[str] = field(default_factory=list)
    dataset_id: str | None = None
    dataset_name: str | None = None
    should_switch_to_version: bool = False
    created_dataset: dict[str, Any] | None = None


class DatasetChecker(Protocol):
    async def check(self, config: dict[str, Any]) -> DatasetCheckResult: ...


class ScriptRunner(Protocol):
    async def run_steps(self, steps: list[ScriptStep], input_path: str) -> ScriptRunResult: ...


class VersioningClient(Protocol):
    async def run_action(self, request: VersioningRequest) -> VersioningResult: ...
