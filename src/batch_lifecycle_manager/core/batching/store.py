# -*- coding: utf-8 -*-

"""
Durable persistence of batch job records.

Each job is a single record carrying an explicit `status` and a `version`
token. Every mutation is a conditional write against the version that was
read, so two overlapping pollers cannot silently overwrite each other: the
loser gets a ConcurrentModificationError and retries on a later tick.

Backends implement four primitives (_read, _write_new, _write_conditional,
_iter_jobs); the lifecycle operations on top of them are shared.
"""

import os
import time
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator, Optional

from ..exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobNotFoundError,
)
from ..utils.misc import mask_path, utc_now
from .models import BatchJob, JobStatus, is_allowed_transition
from .utils import read_json, write_json_atomic, write_json_exclusive


class JobStore(ABC):
    """Lifecycle operations over a versioned job record store."""

    #=========================================================================
    # Backend primitives
    #=========================================================================

    @abstractmethod
    def _read(self, job_id: str) -> Optional[tuple[BatchJob, Any]]:
        """Return (job, concurrency token) or None if the job does not exist."""

    @abstractmethod
    def _write_new(self, job: BatchJob) -> None:
        """Persist a record that must not exist yet. Raise JobAlreadyExistsError otherwise."""

    @abstractmethod
    def _write_conditional(self, job: BatchJob, token: Any) -> None:
        """Replace the record only if it still matches `token`."""

    @abstractmethod
    def _iter_jobs(self, status: Optional[JobStatus] = None) -> Iterator[BatchJob]:
        """Yield every stored job, optionally restricted to one status."""

    #=========================================================================
    # Lifecycle operations
    #=========================================================================

    def create(self, job: BatchJob) -> BatchJob:
        """
        Persist a new job in the `pending` state.

        Raises:
            JobAlreadyExistsError: If a job with the same id is already stored.
            ValueError: If the job is not pending.
        """
        if job.status != JobStatus.PENDING:
            raise ValueError(f"New batch jobs must be pending, got '{job.status}'")
        job = replace(
            job,
            submitted_at=job.submitted_at or utc_now(),
            retry_count=0,
            version=1,
        )
        self._write_new(job)
        logging.info(f"Tracking batch job {job.job_id} ({job.record_count} records)")
        return job

    def get(self, job_id: str) -> BatchJob:
        """
        Raises:
            JobNotFoundError: If the job is unknown.
        """
        found = self._read(job_id)
        if found is None:
            raise JobNotFoundError(job_id)
        return found[0]

    def list_pending(self) -> list[BatchJob]:
        return list(self._iter_jobs(JobStatus.PENDING))

    def list_jobs(self, status: JobStatus | str | None = None) -> list[BatchJob]:
        status = JobStatus(status) if status is not None else None
        return list(self._iter_jobs(status))

    def transition(
            self,
            job_id: str,
            from_status: JobStatus | str,
            to_status: JobStatus | str,
            updates: Optional[dict] = None
        ) -> BatchJob:
        """
        Move a job from one state to the next, merging `updates`.

        Args:
            job_id (str): Id of the job.
            from_status: State the job is expected to be in.
            to_status: Target state. Must be a forward edge of the state machine.
            updates (dict): Fields set by this transition.

        Returns:
            BatchJob: The job as written.

        Raises:
            InvalidTransitionError: If the edge is not part of the state machine.
            JobNotFoundError: If the job is absent or not in `from_status`.
            ConcurrentModificationError: If the record changed since it was read.
        """
        from_status = JobStatus(from_status)
        to_status = JobStatus(to_status)
        if not is_allowed_transition(from_status, to_status):
            raise InvalidTransitionError(job_id, from_status.value, to_status.value)

        found = self._read(job_id)
        if found is None:
            raise JobNotFoundError(job_id)
        current, token = found
        if current.status != from_status:
            raise JobNotFoundError(job_id, from_status.value)

        updated = current.with_updates(updates or {})
        updated = replace(updated, status=to_status, version=current.version + 1)
        self._write_conditional(updated, token)
        logging.info(f"Batch job {job_id}: {from_status} -> {to_status}")
        return updated

    def increment_retry(self, job_id: str) -> BatchJob:
        """
        Increase the retry counter of a pending job by one.

        Raises:
            JobNotFoundError: If the job is absent or no longer pending.
            ConcurrentModificationError: If the record changed since it was read.
        """
        found = self._read(job_id)
        if found is None:
            raise JobNotFoundError(job_id)
        current, token = found
        if current.status != JobStatus.PENDING:
            raise JobNotFoundError(job_id, JobStatus.PENDING.value)

        updated = replace(current, retry_count=current.retry_count + 1, version=current.version + 1)
        self._write_conditional(updated, token)
        return updated


class FileJobStore(JobStore):
    """
    Job store backed by one JSON file per job under `<root>/jobs/`.

    Conditional writes take a short-lived per-job lock file created with
    O_EXCL, compare versions, and atomically replace the record. Locks older
    than `stale_lock_seconds` are assumed to belong to a crashed writer and
    are broken.
    """

    def __init__(
            self,
            root: str | Path,
            lock_timeout: float = 5.0,
            stale_lock_seconds: float = 30.0
        ):
        self.root = Path(root)
        self.jobs_dir = self.root / "jobs"
        self.lock_timeout = lock_timeout
        self.stale_lock_seconds = stale_lock_seconds
        self.jobs_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self):
        return f"FileJobStore({mask_path(self.root)})"

    def _path(self, job_id: str) -> Path:
        if not job_id or os.sep in job_id or (os.altsep and os.altsep in job_id) or job_id.startswith('.'):
            raise ValueError(f"Invalid batch job id: {job_id!r}")
        return self.jobs_dir / f"{job_id}.json"

    def _load(self, path: Path) -> BatchJob:
        return BatchJob.from_dict(read_json(path))

    def _read(self, job_id):
        path = self._path(job_id)
        if not path.exists():
            return None
        job = self._load(path)
        return job, job.version

    def _write_new(self, job):
        try:
            write_json_exclusive(job.to_dict(), self._path(job.job_id))
        except FileExistsError as e:
            raise JobAlreadyExistsError(job.job_id) from e

    def _write_conditional(self, job, token):
        path = self._path(job.job_id)
        with self._locked(job.job_id):
            if not path.exists():
                raise JobNotFoundError(job.job_id)
            if self._load(path).version != token:
                raise ConcurrentModificationError(job.job_id, token)
            write_json_atomic(job.to_dict(), path)

    def _iter_jobs(self, status=None):
        for path in sorted(self.jobs_dir.glob("*.json")):
            if path.name.startswith('.'):
                continue
            try:
                job = self._load(path)
            except FileNotFoundError:
                continue
            except (ValueError, KeyError, TypeError) as e:
                logging.error(f"Skipping unreadable job record {mask_path(path)}: {e}")
                continue
            if status is None or job.status == status:
                yield job

    @contextmanager
    def _locked(self, job_id: str):
        lock_path = self.jobs_dir / f"{job_id}.lock"
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                self._break_stale_lock(lock_path)
                if time.monotonic() >= deadline:
                    raise ConcurrentModificationError(job_id)
                time.sleep(0.05)
        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            try:
                os.remove(lock_path)
            except FileNotFoundError:
                pass

    def _break_stale_lock(self, lock_path: Path):
        try:
            age = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            return
        if age > self.stale_lock_seconds:
            logging.warning(f"Breaking stale lock {mask_path(lock_path)} ({age:.0f}s old)")
            try:
                os.remove(lock_path)
            except FileNotFoundError:
                pass
