"""Unit tests for StatusPoller ticks."""

import logging
from unittest.mock import MagicMock

import pytest

from batch_lifecycle_manager.core.batching.models import JobStatus
from batch_lifecycle_manager.core.batching.poller import StatusPoller
from batch_lifecycle_manager.core.batching.reconciler import ResultReconciler
from batch_lifecycle_manager.core.batching.retry import RetryPolicy
from batch_lifecycle_manager.core.exceptions import (
    ReconciliationFailure,
    TransientProviderError,
)
from conftest import T0, new_job, output_line, remote_status


OUTPUT = "\n".join([
    output_line("a1", '{"callSummary": "Quote requested"}'),
    output_line("a2", '{"callSummary": "Delivery delay"}'),
])
ERRORS = output_line("a3", error={"code": "server_error", "message": "Internal error"})


@pytest.fixture()
def poller(store, provider, artifacts, clock) -> StatusPoller:
    reconciler = ResultReconciler(store, provider, artifacts, clock=clock)
    return StatusPoller(store, provider, reconciler, RetryPolicy(max_retries=3), clock=clock)


def test_no_pending_jobs_is_a_no_op(poller, provider) -> None:
    summary = poller.tick()

    assert summary.checked == 0
    provider.get_job_status.assert_not_called()


def test_in_progress_job_is_left_untouched(poller, store, provider, clock) -> None:
    store.create(new_job(submitted_at=T0))
    before = store.get("batch_abc")
    clock.advance(hours=2)
    provider.get_job_status.return_value = remote_status("batch_abc", "in_progress")

    summary = poller.tick()

    after = store.get("batch_abc")
    assert (summary.running, summary.stuck) == (1, 0)
    assert after == before
    assert after.version == before.version


def test_stuck_job_is_reported_but_not_mutated(poller, store, provider, clock, caplog) -> None:
    store.create(new_job(submitted_at=T0))
    clock.advance(hours=26)
    provider.get_job_status.return_value = remote_status(
        "batch_abc", "finalizing", request_counts={"total": 3, "completed": 2, "failed": 0}
    )

    with caplog.at_level(logging.WARNING):
        summary = poller.tick()

    assert summary.stuck == 1
    assert "batch_abc" in caplog.text
    assert "finalizing" in caplog.text
    job = store.get("batch_abc")
    assert job.status is JobStatus.PENDING
    assert job.version == 1


def test_completed_batch_is_processed(poller, store, provider, clock) -> None:
    store.create(new_job(submitted_at=T0))
    provider.get_job_status.return_value = remote_status(
        "batch_abc", "completed", output_artifact_id="file-out", error_artifact_id="file-err", completed_at=T0
    )
    provider.download_artifact.side_effect = {"file-out": OUTPUT, "file-err": ERRORS}.__getitem__

    summary = poller.tick()

    assert summary.processed == 1
    job = store.get("batch_abc")
    assert job.status is JobStatus.PROCESSED
    assert job.output_locator.endswith("calls_batch_abc_processed_2025-03-01T09-00-00Z.jsonl")
    assert store.list_pending() == []


@pytest.mark.parametrize("remote,expected_message", [
    ("failed", "Input file validation failed"),
    ("expired", "batch expired"),
    ("cancelled", "batch cancelled"),
])
def test_terminal_remote_status_fails_job(poller, store, provider, remote, expected_message) -> None:
    store.create(new_job(submitted_at=T0))
    error_summary = "Input file validation failed" if remote == "failed" else None
    provider.get_job_status.return_value = remote_status("batch_abc", remote, error_summary=error_summary)

    summary = poller.tick()

    assert summary.failed == 1
    job = store.get("batch_abc")
    assert job.status is JobStatus.FAILED
    assert job.error_message == expected_message
    assert job.completed_at is not None


def test_query_failures_below_budget_keep_job_pending(poller, store, provider) -> None:
    store.create(new_job(submitted_at=T0))
    provider.get_job_status.side_effect = TransientProviderError("Retrieving batch failed: timeout")

    poller.tick()
    summary = poller.tick()

    assert summary.retried == 1
    job = store.get("batch_abc")
    assert job.status is JobStatus.PENDING
    assert job.retry_count == 2


def test_query_failures_exhaust_retry_budget(poller, store, provider) -> None:
    store.create(new_job(submitted_at=T0))
    provider.get_job_status.side_effect = TransientProviderError("Retrieving batch failed: timeout")

    for _ in range(3):
        poller.tick()

    job = store.get("batch_abc")
    assert job.status is JobStatus.FAILED
    assert job.retry_count == 3
    assert job.error_message.startswith("failed after 3 retries")
    assert "timeout" in job.error_message

    provider.get_job_status.reset_mock()
    assert poller.tick().checked == 0
    provider.get_job_status.assert_not_called()


def test_reconciliation_failure_does_not_consume_retries(store, provider, clock) -> None:
    store.create(new_job(submitted_at=T0))
    provider.get_job_status.return_value = remote_status("batch_abc", "completed", output_artifact_id="file-out")
    reconciler = MagicMock(spec=ResultReconciler)
    reconciler.reconcile.side_effect = ReconciliationFailure("batch_abc", "download failed")
    poller = StatusPoller(store, provider, reconciler, clock=clock)

    summary = poller.tick()

    assert summary.reconciliation_errors == 1
    job = store.get("batch_abc")
    assert job.status is JobStatus.PENDING
    assert job.retry_count == 0


def test_unknown_remote_status_is_ignored(poller, store, provider, caplog) -> None:
    store.create(new_job(submitted_at=T0))
    provider.get_job_status.return_value = remote_status("batch_abc", "paused")

    with caplog.at_level(logging.WARNING):
        poller.tick()

    assert "paused" in caplog.text
    assert store.get("batch_abc").version == 1


def test_one_failing_job_does_not_stop_the_tick(store, provider, clock) -> None:
    store.create(new_job("batch_1", submitted_at=T0))
    store.create(new_job("batch_2", submitted_at=T0))
    provider.get_job_status.side_effect = lambda job_id: remote_status(job_id, "completed", output_artifact_id="x")
    reconciler = MagicMock(spec=ResultReconciler)
    reconciler.reconcile.side_effect = [RuntimeError("unexpected"), MagicMock()]
    poller = StatusPoller(store, provider, reconciler, clock=clock)

    summary = poller.tick()

    assert summary.errors == 1
    assert summary.processed == 1
    assert reconciler.reconcile.call_count == 2


def test_completed_job_without_locator_is_resumed(poller, store, provider) -> None:
    store.create(new_job(submitted_at=T0))
    store.transition("batch_abc", "pending", "completed", {
        "output_artifact_id": "file-out", "error_artifact_id": "file-err", "completed_at": T0,
    })
    provider.download_artifact.side_effect = {"file-out": OUTPUT, "file-err": ERRORS}.__getitem__

    summary = poller.tick()

    assert summary.processed == 1
    provider.get_job_status.assert_not_called()
    assert store.get("batch_abc").status is JobStatus.PROCESSED
