"""Tests for the blm command-line interface."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from batch_lifecycle_manager.cli.cli import cli
from batch_lifecycle_manager.core.batching.jobs import BatchProvider
from batch_lifecycle_manager.core.batching.store import FileJobStore
from conftest import T0, new_job, output_line, remote_status


@pytest.fixture()
def env(tmp_path) -> dict:
    return {
        "OPENAI_API_KEY": "sk-test",
        "BLM_STORE_DIR": str(tmp_path / "store"),
        "BLM_OUTPUT_DIR": str(tmp_path / "output"),
        "BLM_API": "OpenAI",
        "BLM_STORE_BACKEND": "file",
        "BLM_NOTIFY_URL": "",
    }


@pytest.fixture()
def mock_provider():
    provider = MagicMock(spec=BatchProvider)
    with (
        patch("batch_lifecycle_manager.core.batching.manager.create_client", return_value=MagicMock()),
        patch("batch_lifecycle_manager.core.batching.manager.OpenAIBatchProvider", return_value=provider),
    ):
        yield provider


def test_list_and_status(tmp_path, env) -> None:
    store = FileJobStore(tmp_path / "store")
    store.create(new_job("batch_1", submitted_at=T0))
    store.create(new_job("batch_2", submitted_at=T0))
    store.transition("batch_2", "pending", "failed", {"error_message": "batch expired"})
    runner = CliRunner()
    env["OPENAI_API_KEY"] = ""

    result = runner.invoke(cli, ["list"], env=env)
    assert result.exit_code == 0, result.output
    assert "batch_1" in result.output
    assert "batch_2" in result.output

    result = runner.invoke(cli, ["list", "--status", "failed"], env=env)
    assert "batch_1" not in result.output
    assert "batch expired" in result.output

    result = runner.invoke(cli, ["status", "batch_2"], env=env)
    assert result.exit_code == 0, result.output
    record = json.loads(result.output)
    assert record["jobId"] == "batch_2"
    assert record["status"] == "failed"


def test_status_unknown_job_exits_1(env) -> None:
    result = CliRunner().invoke(cli, ["status", "batch_missing"], env=env)
    assert result.exit_code == 1


def test_submit_without_credentials_exits_1(tmp_path, env) -> None:
    records = tmp_path / "calls.json"
    records.write_text('[{"Id": "1"}]', encoding="utf-8")
    env["OPENAI_API_KEY"] = ""

    result = CliRunner().invoke(cli, ["submit", str(records)], env=env)

    assert result.exit_code == 1


def test_submit_then_poll_to_processed(tmp_path, env, mock_provider) -> None:
    records = tmp_path / "calls.json"
    records.write_text('[{"Id": "a1"}, {"Id": "a2"}, {"Id": "a3"}]', encoding="utf-8")
    mock_provider.upload.return_value = "file-in-1"
    mock_provider.create_job.return_value = "batch_abc"
    runner = CliRunner()

    result = runner.invoke(cli, ["submit", str(records)], env=env)
    assert result.exit_code == 0, result.output

    store = FileJobStore(tmp_path / "store")
    job = store.get("batch_abc")
    assert job.record_count == 3
    assert job.input_locator == str(records.resolve())

    mock_provider.get_job_status.return_value = remote_status(
        "batch_abc", "completed", output_artifact_id="file-out", completed_at=T0
    )
    mock_provider.download_artifact.return_value = "\n".join(
        output_line(f"a{i}", '{"callSummary": "ok"}') for i in range(1, 4)
    )

    result = runner.invoke(cli, ["poll"], env=env)
    assert result.exit_code == 0, result.output
    job = store.get("batch_abc")
    assert job.status.value == "processed"
    assert (tmp_path / "output" / "calls_batch_abc_processed_2025-03-01T09-00-00Z.jsonl").exists()


def test_watch_runs_bounded_ticks(tmp_path, env, mock_provider) -> None:
    incoming = tmp_path / "incoming"
    incoming.mkdir()
    (incoming / "calls.json").write_text('[{"Id": "a1"}]', encoding="utf-8")
    mock_provider.upload.return_value = "file-in-1"
    mock_provider.create_job.return_value = "batch_abc"
    mock_provider.get_job_status.return_value = remote_status("batch_abc", "in_progress")

    with patch("batch_lifecycle_manager.core.batching.clock.time.sleep") as sleep:
        result = CliRunner().invoke(
            cli, ["watch", "--input-dir", str(incoming), "--interval", "5", "--max-ticks", "2"], env=env
        )

    assert result.exit_code == 0, result.output
    assert mock_provider.upload.call_count == 1
    assert mock_provider.get_job_status.call_count == 2
    sleep.assert_called_once_with(5.0)


def test_unknown_status_filter_is_rejected(env) -> None:
    result = CliRunner().invoke(cli, ["list", "--status", "running"], env=env)
    assert result.exit_code == 2


def test_direct_writes_result_artifact(tmp_path, env) -> None:
    records = tmp_path / "calls.jsonl"
    records.write_text('{"Id": "a1"}\n{"Id": "a2"}\n', encoding="utf-8")
    client = MagicMock()
    client.chat.completions.create.return_value.model_dump.return_value = {
        "choices": [{"message": {"content": '{"callSummary": "ok"}'}}],
        "usage": {"total_tokens": 9},
    }

    with patch("batch_lifecycle_manager.core.batching.manager.create_client", return_value=client):
        result = CliRunner().invoke(cli, ["direct", str(records), "--no-progress", "--batch-size", "2"], env=env)

    assert result.exit_code == 0, result.output
    outputs = list((tmp_path / "output").glob("calls_direct_processed_*.jsonl"))
    assert len(outputs) == 1
    lines = [json.loads(line) for line in outputs[0].read_text(encoding="utf-8").splitlines()]
    assert [line["correlationId"] for line in lines] == ["a1", "a2"]
    assert all(line["insights"] == {"callSummary": "ok"} for line in lines)
