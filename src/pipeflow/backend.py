"""BackendClient — hosted API implementation of the capability contracts."""

import logging
from typing import Any, Self

import httpx

from pipeflow.capabilities import (
    DatasetCheckResult,
    ScriptRunResult,
    ScriptStep,
    StepResult,
    VersioningRequest,
    VersioningResult,
)
from pipeflow.settings import Settings

logger = logging.getLogger(__name__)

DATASET_CHECK_PATH = "/api/dataset/check"
EXECUTE_RUN_PATH = "/api/execute/run"
VERSIONING_RUN_PATH = "/api/versioning/run"


class BackendError(Exception):
    """A backend request failed in transport or returned an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    """Talk to the pipeline backend over HTTP.

    Implements ``DatasetChecker``, ``ScriptRunner`` and ``VersioningClient``.
    Failures never raise out of the capability methods; they come back as
    unsuccessful results so the executors can report them.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> Self:
        return cls(settings.backend_url, token=settings.api_token, timeout=settings.timeout_seconds)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("POST %s", path)
        try:
            response = await self._get_client().post(path, json=payload)
        except httpx.HTTPError as e:
            raise BackendError(f"API request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            message = data.get("error") or f"API request failed: {response.reason_phrase}"
            raise BackendError(message, status_code=response.status_code)
        return data

    # -- DatasetChecker -------------------------------------------------

    async def check(self, config: dict[str, Any]) -> DatasetCheckResult:
        source = config.get("source")
        dataset_id = config.get("selectedDatasetId") or config.get("datasetId")

        if not config.get("path") and source != "clearml":
            return DatasetCheckResult(success=False, file_count=0, error="Path not configured")
        if source == "clearml" and not (dataset_id or config.get("datasetProject")):
            return DatasetCheckResult(success=False, file_count=0, error="ClearML Dataset not selected")

        payload = {
            "source": source,
            "path": config.get("path"),
            "format": config.get("format"),
            "bucket": config.get("bucket"),
            "region": config.get("region"),
            "endpoint": config.get("endpoint"),
            "container": config.get("container"),
            "datasetId": dataset_id,
            "datasetProject": config.get("datasetProject"),
            "connectionId": config.get("connectionId"),
            "credentials": config.get("credentials"),
        }
        try:
            data = await self._post(DATASET_CHECK_PATH, payload)
        except BackendError as e:
            return DatasetCheckResult(success=False, file_count=0, error=str(e))

        return DatasetCheckResult(
            success=bool(data.get("success")),
            file_count=data.get("fileCount"),
            error=data.get("error"),
        )

    # -- ScriptRunner ---------------------------------------------------

    async def run_steps(self, steps: list[ScriptStep], input_path: str) -> ScriptRunResult:
        """Run *steps* one request at a time, chaining each step's output path."""
        if not steps:
            return ScriptRunResult(success=True, message="No enabled steps", output_path=input_path or None)

        current = input_path
        results: list[StepResult] = []
        for step in steps:
            try:
                data = await self._post(EXECUTE_RUN_PATH, {"step": step.to_payload(), "inputPath": current})
            except BackendError as e:
                data = {"success": False, "error": str(e)}

            result = StepResult(
                success=bool(data.get("success")),
                step_id=data.get("stepId") or step.id,
                step_name=data.get("stepName") or step.name,
                output_path=data.get("outputPath"),
                output_paths=list(data.get("outputPaths") or []),
                stdout=data.get("stdout"),
                stderr=data.get("stderr"),
                error=data.get("error"),
            )
            results.append(result)

            if not result.success:
                return ScriptRunResult(
                    success=False,
                    message=f'Step "{step.name}" failed: {result.error}',
                    output_path=current or None,
                    step_results=results,
                )
            if result.output_path:
                current = result.output_path

        return ScriptRunResult(
            success=True,
            message=f"Executed {len(steps)} steps",
            output_path=current or None,
            step_results=results,
        )

    # -- VersioningClient -----------------------------------------------

    async def run_action(self, request: VersioningRequest) -> VersioningResult:
        try:
            data = await self._post(VERSIONING_RUN_PATH, request.to_payload())
        except BackendError as e:
            return VersioningResult(success=False, message=str(e))

        return VersioningResult(
            success=data.get("success", True) is not False,
            message=data.get("message") or "",
            output_path=data.get("outputPath"),
            input_path=data.get("inputPath"),
            input_paths=list(data.get("inputPaths") or []),
            dataset_id=data.get("datasetId"),
            dataset_name=data.get("datasetName"),
            should_switch_to_version=bool(data.get("shouldSwitchToVersion")),
            created_dataset=data.get("createdDataset"),
        )
