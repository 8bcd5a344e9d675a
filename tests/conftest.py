"""Shared pytest fixtures."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from batch_lifecycle_manager.core.batching.artifacts import FileArtifactStore
from batch_lifecycle_manager.core.batching.jobs import BatchProvider, RemoteJobStatus
from batch_lifecycle_manager.core.batching.models import BatchJob
from batch_lifecycle_manager.core.batching.store import FileJobStore

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose sleep advances time instantly."""

    def __init__(self, start: datetime = T0):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def output_line(custom_id: str, content: str | None = None, error: dict | None = None,
                status_code: int = 200) -> str:
    """One line of a Batch API output file."""
    if error is not None:
        entry = {"custom_id": custom_id, "response": None, "error": error}
    else:
        entry = {
            "custom_id": custom_id,
            "response": {
                "status_code": status_code,
                "body": {
                    "choices": [{"message": {"role": "assistant", "content": content}}],
                    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
                },
            },
            "error": None,
        }
    return json.dumps(entry)


def remote_status(job_id: str, status: str, **kwargs) -> RemoteJobStatus:
    return RemoteJobStatus(job_id=job_id, status=status, **kwargs)


def new_job(job_id: str = "batch_abc", **kwargs) -> BatchJob:
    values = {
        "job_id": job_id,
        "input_artifact_id": "file-in-1",
        "input_locator": "/data/incoming/calls.json",
        "record_count": 3,
    }
    values.update(kwargs)
    return BatchJob(**values)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(tmp_path) -> FileJobStore:
    return FileJobStore(tmp_path / "store")


@pytest.fixture()
def artifacts(tmp_path) -> FileArtifactStore:
    return FileArtifactStore(tmp_path / "output")


@pytest.fixture()
def provider() -> MagicMock:
    """Mock batch provider."""
    return MagicMock(spec=BatchProvider)
