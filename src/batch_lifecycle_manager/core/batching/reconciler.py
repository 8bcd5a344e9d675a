# -*- coding: utf-8 -*-
"""
Reconciliation of completed batches: download the provider's result files,
normalize every line, persist the normalized results as one artifact and
advance the job through `completed` to `processed`.

Reconciliation is idempotent. The artifact name and every timestamp written
into it derive from the job's completion time, so re-running it for the
same job and the same remote files rewrites the same locator with the same
bytes. This is what makes it safe to resume a job left in `completed` by a
crash between the two transitions.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Optional

from ..exceptions import InvalidTransitionError, ReconciliationFailure
from ..utils.misc import dumps_jsonl, filename_timestamp, format_timestamp
from .artifacts import ArtifactStore
from .clock import Clock, SystemClock
from .jobs import BatchProvider, RemoteJobStatus
from .models import BatchJob, JobStatus
from .notify import Notifier
from .parse import normalize_output_entry, parse_output_document
from .store import JobStore


@dataclass
class ReconciliationReport:
    job_id: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    parse_errors: int = 0
    malformed_lines: int = 0
    output_locator: Optional[str] = None


def output_artifact_name(job: BatchJob, completed_at: datetime) -> str:
    """`<input base name>_<jobId>_processed_<timestamp>.jsonl`"""
    base_name = PurePosixPath(job.input_locator.replace("\\", "/")).stem or "unknown"
    return f"{base_name}_{job.job_id}_processed_{filename_timestamp(completed_at)}.jsonl"


class ResultReconciler:
    """
    Turns a remotely completed batch into a persisted result artifact.

    Args:
        store (JobStore): Job records.
        provider (BatchProvider): Source of the result files.
        artifacts (ArtifactStore): Destination of the normalized results.
        notifier (callable, optional): Called with (job, output_locator) once processed.
        clock (Clock, optional): Time source.
    """

    def __init__(
            self,
            store: JobStore,
            provider: BatchProvider,
            artifacts: ArtifactStore,
            notifier: Optional[Notifier] = None,
            clock: Optional[Clock] = None
        ):
        self.store = store
        self.provider = provider
        self.artifacts = artifacts
        self.notifier = notifier
        self.clock = clock or SystemClock()

    def reconcile(self, job: BatchJob, remote: Optional[RemoteJobStatus] = None) -> Optional[ReconciliationReport]:
        """
        Reconcile a job that is `pending` remotely completed, or `completed`
        but not yet processed.

        Args:
            job (BatchJob): The job as last read from the store.
            remote (RemoteJobStatus, optional): Remote status. Required for
                pending jobs, since it carries the result file ids.

        Returns:
            ReconciliationReport, or None if the batch completed without any
            result file and the job was failed instead.

        Raises:
            ReconciliationFailure: If downloading, transforming or persisting
                the results fails. The job is left where it was.
            InvalidTransitionError: If the job is already terminal.
        """
        if job.status == JobStatus.PENDING:
            if remote is None:
                raise ValueError(f"Remote status is required to reconcile pending job {job.job_id}")
            output_id = remote.output_artifact_id
            error_id = remote.error_artifact_id
            completed_at = remote.completed_at or self.clock.now()
        elif job.status == JobStatus.COMPLETED:
            output_id = job.output_artifact_id
            error_id = job.error_artifact_id
            completed_at = job.completed_at or self.clock.now()
        else:
            raise InvalidTransitionError(job.job_id, job.status.value, JobStatus.PROCESSED.value)

        if not output_id and not error_id:
            if job.status != JobStatus.PENDING:
                raise ReconciliationFailure(job.job_id, f"Batch {job.job_id} has no result artifacts recorded")
            logging.error(f"Batch {job.job_id} completed without output artifact")
            self.store.transition(
                job.job_id, JobStatus.PENDING, JobStatus.FAILED,
                {"error_message": "batch completed without output artifact", "completed_at": completed_at}
            )
            return None

        logging.info(f"Processing results for batch {job.job_id}")
        report = ReconciliationReport(job_id=job.job_id)
        try:
            results = []
            for artifact_id in (output_id, error_id):
                if not artifact_id:
                    continue
                content = self.provider.download_artifact(artifact_id)
                entries, malformed = parse_output_document(content)
                report.malformed_lines += malformed
                results.extend(
                    normalize_output_entry(entry, format_timestamp(completed_at))
                    for entry in entries
                )

            name = output_artifact_name(job, completed_at)
            locator = self.artifacts.write_text(name, dumps_jsonl(results))
        except Exception as e:
            raise ReconciliationFailure(job.job_id, f"Failed to process batch {job.job_id} results: {e}") from e

        if job.status == JobStatus.PENDING:
            job = self.store.transition(
                job.job_id, JobStatus.PENDING, JobStatus.COMPLETED,
                {"output_artifact_id": output_id, "error_artifact_id": error_id, "completed_at": completed_at}
            )
        job = self.store.transition(
            job.job_id, JobStatus.COMPLETED, JobStatus.PROCESSED,
            {"output_locator": locator, "processed_at": self.clock.now()}
        )

        report.total = len(results)
        report.succeeded = sum(1 for r in results if r['success'])
        report.failed = report.total - report.succeeded
        report.parse_errors = sum(1 for r in results if r['parseError'])
        report.output_locator = locator

        if report.malformed_lines:
            logging.warning(f"Batch {job.job_id}: dropped {report.malformed_lines} malformed output line(s)")
        logging.info(
            f"Batch {job.job_id} results saved to {locator}: {report.total} total, "
            f"{report.succeeded} succeeded, {report.failed} failed, {report.parse_errors} parse errors"
        )

        self._notify(job, locator)
        return report

    def _notify(self, job: BatchJob, locator: str):
        if self.notifier is None:
            return
        try:
            self.notifier(job, locator)
        except Exception as e:
            logging.error(f"Failed to notify downstream consumer for batch {job.job_id}: {e}")
