"""Unit tests for BatchLifecycleConfig."""

import pytest

from batch_lifecycle_manager.core.exceptions import ConfigurationError
from batch_lifecycle_manager.core.utils.config import DEFAULT_SYSTEM_PROMPT, BatchLifecycleConfig


def test_defaults() -> None:
    config = BatchLifecycleConfig()

    assert config.temperature == 0.3
    assert config.max_tokens == 4000
    assert config.endpoint == "/chat/completions"
    assert config.completion_window == "24h"
    assert config.poll_interval_seconds == 300.0
    assert config.stuck_threshold_hours == 25.0
    assert config.max_retries == 3


def test_from_env_reads_openai_settings() -> None:
    env = {
        "OPENAI_API_KEY": "sk-test",
        "BLM_MODEL": "gpt-4o",
        "BLM_MAX_RETRIES": "5",
        "BLM_POLL_INTERVAL": "60",
        "BLM_STORE_DIR": "/var/lib/blm",
    }

    config = BatchLifecycleConfig.from_env(env)

    assert config.api_key == "sk-test"
    assert config.model == "gpt-4o"
    assert config.max_retries == 5
    assert config.poll_interval_seconds == 60.0
    assert str(config.resolved_store_dir) == "/var/lib/blm"
    config.validate()


def test_from_env_reads_azure_settings() -> None:
    env = {
        "BLM_API": "AzureOpenAI",
        "AZURE_OPENAI_API_KEY": "azure-key",
        "AZURE_OPENAI_ENDPOINT": "https://example.openai.azure.com",
        "OPENAI_API_KEY": "sk-unused",
        "AzureWebJobsStorage": "UseDevelopmentStorage=true",
    }

    config = BatchLifecycleConfig.from_env(env)

    assert config.is_azure
    assert config.api_key == "azure-key"
    assert config.azure_endpoint == "https://example.openai.azure.com"
    assert config.storage_connection_string == "UseDevelopmentStorage=true"


def test_overrides_win_over_environment() -> None:
    config = BatchLifecycleConfig.from_env({"BLM_MODEL": "gpt-4o"}, model="gpt-4.1-mini", max_tokens=1000)

    assert config.model == "gpt-4.1-mini"
    assert config.max_tokens == 1000


def test_invalid_number_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="max_retries"):
        BatchLifecycleConfig.from_env({"BLM_MAX_RETRIES": "three"})


@pytest.mark.parametrize("changes,match", [
    ({"api": "Anthropic"}, "api"),
    ({"model": ""}, "model"),
    ({"temperature": 3.0}, "temperature"),
    ({"completion_window": "1d"}, "completion_window"),
    ({"max_retries": 0}, "max_retries"),
    ({"store_backend": "s3"}, "store_backend"),
    ({"store_backend": "blob"}, "Blob"),
])
def test_validate_rejects_bad_values(changes, match) -> None:
    config = BatchLifecycleConfig(api_key="sk-test", **changes)
    with pytest.raises(ConfigurationError, match=match):
        config.validate()


def test_validate_requires_credentials() -> None:
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        BatchLifecycleConfig().validate()
    with pytest.raises(ConfigurationError, match="AZURE_OPENAI_ENDPOINT"):
        BatchLifecycleConfig(api="AzureOpenAI", api_key="k").validate()
    BatchLifecycleConfig().validate(require_credentials=False)


def test_from_yaml(tmp_path) -> None:
    path = tmp_path / "blm.yaml"
    path.write_text(
        "api: AzureOpenAI\n"
        "model: gpt-4o-mini-batch\n"
        "temperature: 0.1\n"
        "input_patterns: ['*.json']\n"
        "output_dir: ./results\n",
        encoding="utf-8",
    )
    env = {"AZURE_OPENAI_API_KEY": "azure-key", "AZURE_OPENAI_ENDPOINT": "https://x.openai.azure.com"}

    config = BatchLifecycleConfig.from_yaml(path, env)

    assert config.is_azure
    assert config.api_key == "azure-key"
    assert config.model == "gpt-4o-mini-batch"
    assert config.temperature == 0.1
    assert config.input_patterns == ("*.json",)
    config.validate()


def test_from_yaml_rejects_unknown_keys(tmp_path) -> None:
    path = tmp_path / "blm.yaml"
    path.write_text("modle: gpt-4o\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="modle"):
        BatchLifecycleConfig.from_yaml(path, {})


def test_from_yaml_missing_file(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        BatchLifecycleConfig.from_yaml(tmp_path / "missing.yaml", {})


def test_system_prompt_file(tmp_path) -> None:
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("Summarize the call.\n", encoding="utf-8")

    assert BatchLifecycleConfig().load_system_prompt() == DEFAULT_SYSTEM_PROMPT
    assert BatchLifecycleConfig(system_prompt_file=str(prompt_file)).load_system_prompt() == "Summarize the call."
    with pytest.raises(ConfigurationError):
        BatchLifecycleConfig(system_prompt_file=str(tmp_path / "nope.txt")).load_system_prompt()
