"""Settings loaded from the environment (and a local ``.env`` file)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BACKEND_URL = "http://localhost:3000"
DEFAULT_TIMEOUT_SECONDS = 300.0


@dataclass(slots=True)
class Settings:
    backend_url: str = DEFAULT_BACKEND_URL
    api_token: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    detect_cycles: bool = False
    parallel: bool = False


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    load_dotenv()

    return Settings(
        backend_url=os.getenv("PIPEFLOW_BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/"),
        api_token=os.getenv("PIPEFLOW_API_TOKEN") or None,
        timeout_seconds=_get_float("PIPEFLOW_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        detect_cycles=_get_bool("PIPEFLOW_DETECT_CYCLES", False),
        parallel=_get_bool("PIPEFLOW_PARALLEL", False),
    )
