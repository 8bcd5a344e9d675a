# -*- coding: utf-8 -*-

import logging
import time
from pathlib import PurePosixPath
from typing import Callable, Optional

from ..exceptions import ConfigurationError, SubmissionError
from .files import MAX_BYTES_PER_FILE, MAX_LINES_PER_FILE, create_batch_input_document
from .jobs import BatchProvider
from .models import BatchJob, JobStatus
from .store import JobStore


class BatchSubmitter:
    """
    Submits a record collection as one remote batch job and starts tracking it.

    Args:
        provider (BatchProvider): Remote batch operations.
        store (JobStore): Where the new job record is created.
        endpoint (str): Endpoint the batch invokes.
        completion_window (str): Provider completion window, e.g. "24h".
        max_lines_per_file (int): Provider limit on input lines.
        max_bytes_per_file (int): Provider limit on input size.
    """

    def __init__(
            self,
            provider: BatchProvider,
            store: JobStore,
            endpoint: str = "/chat/completions",
            completion_window: str = "24h",
            max_lines_per_file: int = MAX_LINES_PER_FILE,
            max_bytes_per_file: int = MAX_BYTES_PER_FILE
        ):
        if provider is None:
            raise ConfigurationError("A batch provider is required to submit jobs")
        self.provider = provider
        self.store = store
        self.endpoint = endpoint
        self.completion_window = completion_window
        self.max_lines_per_file = max_lines_per_file
        self.max_bytes_per_file = max_bytes_per_file

    def submit(
            self,
            records: list[dict],
            record_to_request: Callable[[dict, int], dict],
            input_locator: str
        ) -> Optional[BatchJob]:
        """
        Upload the records as a batch input file, create the batch job and
        persist it as `pending`.

        Args:
            records (list): Records to submit. An empty list is a no-op.
            record_to_request (callable): Maps (record, index) to a request line.
            input_locator (str): Logical path of the originating record collection.

        Returns:
            BatchJob: The tracked job, or None when there was nothing to submit.

        Raises:
            SubmissionError: If the input cannot be turned into a valid batch
                document (duplicate correlation ids, provider limits exceeded),
                or if the upload or job creation fails. No job record exists in
                that case.
        """
        if not records:
            logging.warning(f"No records found in {input_locator}, skipping")
            return None

        start_time = time.monotonic()
        try:
            document = create_batch_input_document(
                records,
                record_to_request,
                max_lines_per_file=self.max_lines_per_file,
                max_bytes_per_file=self.max_bytes_per_file,
            )
        except ValueError as e:
            raise SubmissionError(f"Invalid batch input for {input_locator}: {e}") from e
        filename = f"batch_input_{PurePosixPath(input_locator.replace(chr(92), '/')).name}.jsonl"

        try:
            input_artifact_id = self.provider.upload(document, filename)
        except Exception as e:
            raise SubmissionError(f"Uploading batch input for {input_locator} failed: {e}") from e

        try:
            job_id = self.provider.create_job(input_artifact_id, self.endpoint, self.completion_window)
        except Exception as e:
            self._discard_orphaned_upload(input_artifact_id)
            raise SubmissionError(
                f"Creating batch job for {input_locator} failed: {e}",
                input_artifact_id=input_artifact_id,
            ) from e

        job = self.store.create(BatchJob(
            job_id=job_id,
            input_artifact_id=input_artifact_id,
            input_locator=input_locator,
            record_count=len(records),
            status=JobStatus.PENDING,
        ))
        logging.info(
            f"Batch submission completed: {job_id} ({len(records)} records, "
            f"{time.monotonic() - start_time:.1f}s)"
        )
        return job

    def _discard_orphaned_upload(self, input_artifact_id: str):
        try:
            self.provider.delete_artifact(input_artifact_id)
        except Exception as e:
            logging.error(f"Could not delete orphaned batch input file {input_artifact_id}: {e}")
