# -*- coding: utf-8 -*-

"""
Explicit configuration for the batch lifecycle manager.

A BatchLifecycleConfig is built once (from the environment, a YAML file, or
directly in code) and handed to every component, so several independently
configured submitters and pollers can live in one process.

Environment variables:
    OPENAI_API_KEY                      - OpenAI credential
    AZURE_OPENAI_API_KEY                - Azure OpenAI credential
    AZURE_OPENAI_ENDPOINT               - Azure OpenAI endpoint
    AZURE_STORAGE_CONNECTION_STRING     - Blob backend (falls back to AzureWebJobsStorage)
    BLM_API                             - "OpenAI" or "AzureOpenAI"
    BLM_MODEL                           - model or Azure batch deployment name
    BLM_TEMPERATURE, BLM_MAX_TOKENS, BLM_ENDPOINT, BLM_COMPLETION_WINDOW
    BLM_POLL_INTERVAL, BLM_STUCK_THRESHOLD_HOURS, BLM_MAX_RETRIES
    BLM_STORE_BACKEND                   - "file" or "blob"
    BLM_STORE_DIR, BLM_OUTPUT_DIR, BLM_INPUT_DIR
    BLM_JOBS_CONTAINER, BLM_OUTPUT_CONTAINER
    BLM_NOTIFY_URL, BLM_NOTIFY_TOKEN
    BLM_DIRECT_BATCH_SIZE
    BLM_SYSTEM_PROMPT_FILE              - text file replacing the default system prompt
"""

import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional

import platformdirs
import yaml

from ..exceptions import ConfigurationError


APP_NAME = "batch-lifecycle-manager"

_COMPLETION_WINDOW_RE = re.compile(r"^\d+h$")

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant that analyzes business records and returns structured insights.\n\n"
    "RULES:\n"
    "- Output ONLY valid JSON (no markdown, no explanations)\n"
    "- Do NOT infer information that is not present in the record\n"
    "- Use null, false or [] if data is missing or unclear"
)

_ENV_MAP = {
    "api": "BLM_API",
    "model": "BLM_MODEL",
    "temperature": "BLM_TEMPERATURE",
    "max_tokens": "BLM_MAX_TOKENS",
    "endpoint": "BLM_ENDPOINT",
    "completion_window": "BLM_COMPLETION_WINDOW",
    "poll_interval_seconds": "BLM_POLL_INTERVAL",
    "stuck_threshold_hours": "BLM_STUCK_THRESHOLD_HOURS",
    "max_retries": "BLM_MAX_RETRIES",
    "store_backend": "BLM_STORE_BACKEND",
    "store_dir": "BLM_STORE_DIR",
    "output_dir": "BLM_OUTPUT_DIR",
    "input_dir": "BLM_INPUT_DIR",
    "jobs_container": "BLM_JOBS_CONTAINER",
    "output_container": "BLM_OUTPUT_CONTAINER",
    "notify_url": "BLM_NOTIFY_URL",
    "notify_token": "BLM_NOTIFY_TOKEN",
    "direct_batch_size": "BLM_DIRECT_BATCH_SIZE",
    "system_prompt_file": "BLM_SYSTEM_PROMPT_FILE",
    "azure_api_version": "AZURE_OPENAI_API_VERSION",
}


def default_data_dir() -> Path:
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


@dataclass
class BatchLifecycleConfig:
    api: str = "OpenAI"
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 4000
    endpoint: str = "/chat/completions"
    completion_window: str = "24h"

    poll_interval_seconds: float = 300.0
    stuck_threshold_hours: float = 25.0
    max_retries: int = 3

    store_backend: str = "file"
    store_dir: Optional[str] = None
    output_dir: Optional[str] = None
    input_dir: Optional[str] = None
    input_patterns: tuple = ("*.json", "*.jsonl", "*.ndjson", "*.csv", "*.parquet")
    jobs_container: str = "batch-jobs"
    output_container: str = "output"
    storage_connection_string: Optional[str] = field(default=None, repr=False)

    notify_url: Optional[str] = None
    notify_token: Optional[str] = field(default=None, repr=False)

    direct_batch_size: int = 10

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    system_prompt_file: Optional[str] = None

    api_key: Optional[str] = field(default=None, repr=False)
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-10-21"

    @property
    def is_azure(self) -> bool:
        return self.api == "AzureOpenAI"

    @property
    def resolved_store_dir(self) -> Path:
        return Path(self.store_dir) if self.store_dir else default_data_dir() / "jobs"

    @property
    def resolved_output_dir(self) -> Path:
        return Path(self.output_dir) if self.output_dir else default_data_dir() / "output"

    def load_system_prompt(self) -> str:
        """Return the contents of `system_prompt_file` if set, else `system_prompt`."""
        if not self.system_prompt_file:
            return self.system_prompt
        path = Path(self.system_prompt_file)
        if not path.is_file():
            raise ConfigurationError(f"System prompt file not found: {path}")
        return path.read_text(encoding="utf-8").strip()

    def validate(self, require_credentials: bool = True) -> "BatchLifecycleConfig":
        """
        Check the configuration and fail fast on anything unusable.

        Args:
            require_credentials (bool): Also require API credentials. Commands
                that only read the job store pass False.

        Raises:
            ConfigurationError: If a setting is missing or invalid.
        """
        if self.api not in ("OpenAI", "AzureOpenAI"):
            raise ConfigurationError(f"Unknown api '{self.api}'. Expected 'OpenAI' or 'AzureOpenAI'.")
        if not self.model:
            raise ConfigurationError("No model or batch deployment name configured (BLM_MODEL).")
        if not 0 <= self.temperature <= 2:
            raise ConfigurationError(f"temperature must be between 0 and 2, got {self.temperature}")
        if self.max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be positive, got {self.max_tokens}")
        if not _COMPLETION_WINDOW_RE.match(str(self.completion_window)):
            raise ConfigurationError(
                f"completion_window must look like '24h', got {self.completion_window!r}"
            )
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("poll_interval_seconds must be positive")
        if self.stuck_threshold_hours <= 0:
            raise ConfigurationError("stuck_threshold_hours must be positive")
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if self.direct_batch_size < 1:
            raise ConfigurationError("direct_batch_size must be at least 1")
        if self.store_backend not in ("file", "blob"):
            raise ConfigurationError(
                f"Unknown store_backend '{self.store_backend}'. Expected 'file' or 'blob'."
            )
        if self.store_backend == "blob" and not self.storage_connection_string:
            raise ConfigurationError(
                "Blob store backend requires AZURE_STORAGE_CONNECTION_STRING or AzureWebJobsStorage."
            )

        if require_credentials:
            if not self.api_key:
                env_name = "AZURE_OPENAI_API_KEY" if self.is_azure else "OPENAI_API_KEY"
                raise ConfigurationError(f"No API key provided or found in environment ({env_name}).")
            if self.is_azure and not self.azure_endpoint:
                raise ConfigurationError(
                    "No Azure OpenAI endpoint provided or found in environment (AZURE_OPENAI_ENDPOINT)."
                )
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "BatchLifecycleConfig":
        """Build a configuration from environment variables, then apply `overrides`."""
        env = os.environ if environ is None else environ
        values = {}
        for name, env_name in _ENV_MAP.items():
            raw = env.get(env_name)
            if raw not in (None, ""):
                values[name] = raw

        api = overrides.get("api") or values.get("api", cls.api)
        if api == "AzureOpenAI":
            values["api_key"] = env.get("AZURE_OPENAI_API_KEY")
            values["azure_endpoint"] = env.get("AZURE_OPENAI_ENDPOINT")
        else:
            values["api_key"] = env.get("OPENAI_API_KEY")
        values["storage_connection_string"] = (
            env.get("AZURE_STORAGE_CONNECTION_STRING") or env.get("AzureWebJobsStorage")
        )

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls._coerce(values)

    @classmethod
    def from_yaml(cls, path: str | Path, environ: Optional[Mapping[str, str]] = None) -> "BatchLifecycleConfig":
        """
        Build a configuration from a YAML file. Keys use the attribute names
        of this class; anything missing falls back to the environment.

        Raises:
            ConfigurationError: If the file is missing, malformed or has unknown keys.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys in {path}: {unknown}")

        return cls.from_env(environ, **data)

    @classmethod
    def _coerce(cls, values: dict) -> "BatchLifecycleConfig":
        base = cls()
        kwargs = {}
        for f in fields(cls):
            if f.name not in values:
                continue
            raw = values[f.name]
            default = getattr(base, f.name)
            try:
                if isinstance(default, bool):
                    kwargs[f.name] = str(raw).lower() in ("1", "true", "yes")
                elif isinstance(default, int):
                    kwargs[f.name] = int(raw)
                elif isinstance(default, float):
                    kwargs[f.name] = float(raw)
                elif isinstance(default, tuple):
                    kwargs[f.name] = tuple(raw.split(",")) if isinstance(raw, str) else tuple(raw)
                else:
                    kwargs[f.name] = raw
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid value for {f.name}: {raw!r}") from e
        return replace(base, **kwargs)
