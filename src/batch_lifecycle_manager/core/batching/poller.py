# -*- coding: utf-8 -*-
"""
Periodic status polling of tracked batch jobs.

One tick walks every `pending` job, asks the provider where its batch
stands, and drives the local state machine:

    pending --remote completed--> completed --result persisted--> processed
    pending --remote failed/expired/cancelled--> failed
    pending --status query failed max_retries times--> failed

Jobs left in `completed` without an output locator (a crash between the
two reconciliation writes) are reconciled again from their stored ids.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..exceptions import ReconciliationFailure, TerminalProviderError
from .clock import Clock, SystemClock
from .jobs import BatchProvider
from .models import (COMPLETED_REMOTE_STATUS, RUNNING_REMOTE_STATUSES,
                     TERMINAL_REMOTE_STATUSES, BatchJob, JobStatus)
from .reconciler import ResultReconciler
from .retry import RetryPolicy
from .store import JobStore


@dataclass
class TickSummary:
    checked: int = 0
    running: int = 0
    stuck: int = 0
    processed: int = 0
    failed: int = 0
    retried: int = 0
    reconciliation_errors: int = 0
    errors: int = 0

    def __str__(self):
        return (
            f"{self.checked} checked, {self.running} running ({self.stuck} stuck), "
            f"{self.processed} processed, {self.failed} failed, {self.retried} retried, "
            f"{self.reconciliation_errors} reconciliation errors, {self.errors} errors"
        )


class StatusPoller:
    """
    Advances tracked jobs according to their remote status.

    Args:
        store (JobStore): Job records.
        provider (BatchProvider): Remote status source.
        reconciler (ResultReconciler): Handles remotely completed batches.
        retry_policy (RetryPolicy, optional): Budget for failed status queries.
        stuck_threshold (timedelta, optional): Age after which a running batch
            is reported as stuck. Defaults to 25 hours.
        clock (Clock, optional): Time source.
    """

    def __init__(
            self,
            store: JobStore,
            provider: BatchProvider,
            reconciler: ResultReconciler,
            retry_policy: Optional[RetryPolicy] = None,
            stuck_threshold: Optional[timedelta] = None,
            clock: Optional[Clock] = None
        ):
        self.store = store
        self.provider = provider
        self.reconciler = reconciler
        self.retry_policy = retry_policy or RetryPolicy()
        self.stuck_threshold = stuck_threshold or timedelta(hours=25)
        self.clock = clock or SystemClock()

    def tick(self) -> TickSummary:
        """
        Run one polling pass. A failure on one job is logged and never stops
        the pass.

        Returns:
            TickSummary: What happened during this pass.
        """
        summary = TickSummary()
        pending = self.store.list_pending()
        unfinished = [
            job for job in self.store.list_jobs(JobStatus.COMPLETED)
            if not job.output_locator
        ]
        if not pending and not unfinished:
            logging.debug("No pending batch jobs")
            return summary

        logging.info(f"Checking {len(pending)} pending batch job(s)")
        for job in pending:
            summary.checked += 1
            try:
                self._check_pending(job, summary)
            except Exception as e:
                summary.errors += 1
                logging.exception(f"Error while checking batch {job.job_id}: {e}")

        for job in unfinished:
            summary.checked += 1
            logging.info(f"Resuming reconciliation of batch {job.job_id}")
            try:
                self._reconcile(job, None, summary)
            except Exception as e:
                summary.errors += 1
                logging.exception(f"Error while resuming batch {job.job_id}: {e}")

        logging.info(f"Polling pass finished: {summary}")
        return summary

    def _check_pending(self, job: BatchJob, summary: TickSummary):
        try:
            remote = self.provider.get_job_status(job.job_id)
        except Exception as e:
            self._record_query_failure(job, e, summary)
            return

        status = remote.status
        if status in RUNNING_REMOTE_STATUSES:
            summary.running += 1
            age = self.clock.now() - job.submitted_at if job.submitted_at else None
            if age is not None and age > self.stuck_threshold:
                summary.stuck += 1
                counts = remote.request_counts or {}
                logging.warning(
                    f"Batch {job.job_id} has been '{status}' for {age.total_seconds() / 3600:.1f}h "
                    f"(submitted {job.submitted_at.isoformat()}, "
                    f"{counts.get('completed', 0)}/{counts.get('total', 0)} requests completed, "
                    f"{counts.get('failed', 0)} failed)"
                )
            else:
                logging.info(f"Batch {job.job_id} still {status}")

        elif status == COMPLETED_REMOTE_STATUS:
            self._reconcile(job, remote, summary)

        elif status in TERMINAL_REMOTE_STATUSES:
            error = TerminalProviderError(job.job_id, status, remote.error_summary or f"batch {status}")
            logging.error(f"Batch {job.job_id} ended remotely as '{status}': {error.message}")
            self.store.transition(
                job.job_id, JobStatus.PENDING, JobStatus.FAILED,
                {"error_message": error.message, "completed_at": self.clock.now()}
            )
            summary.failed += 1

        else:
            logging.warning(f"Batch {job.job_id} reported unknown status '{status}', leaving it pending")

    def _record_query_failure(self, job: BatchJob, error: Exception, summary: TickSummary):
        job = self.store.increment_retry(job.job_id)
        summary.retried += 1
        logging.warning(
            f"Status query for batch {job.job_id} failed "
            f"({job.retry_count}/{self.retry_policy.max_retries}): {error}"
        )
        if self.retry_policy.exhausted(job.retry_count):
            failure = self.retry_policy.failure(job.job_id, job.retry_count, error)
            logging.error(f"Batch {job.job_id} {failure.message}")
            self.store.transition(
                job.job_id, JobStatus.PENDING, JobStatus.FAILED,
                {"error_message": failure.message, "completed_at": self.clock.now()}
            )
            summary.failed += 1

    def _reconcile(self, job: BatchJob, remote, summary: TickSummary):
        try:
            report = self.reconciler.reconcile(job, remote)
        except ReconciliationFailure as e:
            summary.reconciliation_errors += 1
            logging.error(f"{e.message}; will retry on the next pass")
            return
        if report is None:
            summary.failed += 1
        else:
            summary.processed += 1
