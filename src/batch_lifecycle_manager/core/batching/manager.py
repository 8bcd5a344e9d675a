# -*- coding: utf-8 -*-

import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import openai

from ..exceptions import ConfigurationError
from ..utils.clients import create_client
from ..utils.config import BatchLifecycleConfig
from ..utils.datasource import read_records
from ..utils.misc import dumps_jsonl, filename_timestamp, mask_path, utc_now
from .artifacts import ArtifactStore, FileArtifactStore
from .clock import Clock, SystemClock
from .direct import process_records_directly
from .files import (MAX_BYTES_PER_FILE, MAX_LINES_PER_FILE,
                    MAX_LINES_PER_FILE_AZURE, make_request_mapper)
from .jobs import BatchProvider, OpenAIBatchProvider
from .models import BatchJob, JobStatus
from .notify import Notifier, WebhookNotifier
from .poller import StatusPoller, TickSummary
from .reconciler import ResultReconciler
from .retry import RetryPolicy
from .scheduler import InputWatcher, PollingScheduler
from .store import FileJobStore, JobStore
from .submitter import BatchSubmitter


class BatchLifecycleManager:
    """
    Wires the lifecycle components together from one configuration.

    Read-only operations (status, list) work without a provider. Anything
    that talks to the Batch API raises ConfigurationError when the manager
    was built without credentials.

    Args:
        config (BatchLifecycleConfig): Settings shared by every component.
        store (JobStore): Job records.
        artifacts (ArtifactStore): Destination of result artifacts.
        client (openai.OpenAI | openai.AzureOpenAI, optional): API client.
        provider (BatchProvider, optional): Batch operations. Defaults to an
            OpenAIBatchProvider over `client`.
        notifier (callable, optional): Called once a result artifact is ready.
        clock (Clock, optional): Time source.
    """

    def __init__(
            self,
            config: BatchLifecycleConfig,
            store: JobStore,
            artifacts: ArtifactStore,
            client: openai.OpenAI | openai.AzureOpenAI | None = None,
            provider: Optional[BatchProvider] = None,
            notifier: Optional[Notifier] = None,
            clock: Optional[Clock] = None
        ):
        self.config = config
        self.store = store
        self.artifacts = artifacts
        self.client = client
        self.provider = provider or (OpenAIBatchProvider(client) if client is not None else None)
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self._record_to_request = None

        self.submitter = None
        self.reconciler = None
        self.poller = None
        if self.provider is not None:
            max_lines = MAX_LINES_PER_FILE_AZURE if config.is_azure else MAX_LINES_PER_FILE
            self.submitter = BatchSubmitter(
                self.provider,
                store,
                endpoint=config.endpoint,
                completion_window=config.completion_window,
                max_lines_per_file=max_lines,
                max_bytes_per_file=MAX_BYTES_PER_FILE,
            )
            self.reconciler = ResultReconciler(store, self.provider, artifacts, notifier, self.clock)
            self.poller = StatusPoller(
                store,
                self.provider,
                self.reconciler,
                retry_policy=RetryPolicy(config.max_retries),
                stuck_threshold=timedelta(hours=config.stuck_threshold_hours),
                clock=self.clock,
            )

    def __repr__(self):
        return f"BatchLifecycleManager(store={self.store!r}, artifacts={self.artifacts!r})"

    @classmethod
    def from_config(
            cls,
            config: BatchLifecycleConfig,
            require_credentials: bool = True,
            clock: Optional[Clock] = None
        ) -> "BatchLifecycleManager":
        """
        Build the manager and its backends from a configuration.

        Args:
            config (BatchLifecycleConfig): Settings.
            require_credentials (bool): Create the API client. Pass False for
                commands that only read the job store.
            clock (Clock, optional): Time source.

        Raises:
            ConfigurationError: If the configuration is incomplete or invalid.
        """
        config.validate(require_credentials=require_credentials)

        if config.store_backend == "blob":
            # Only the blob backend needs the Azure SDK
            from .blob import BlobArtifactStore, BlobJobStore
            store = BlobJobStore.from_connection_string(
                config.storage_connection_string, config.jobs_container
            )
            artifacts = BlobArtifactStore.from_connection_string(
                config.storage_connection_string, config.output_container
            )
        else:
            store = FileJobStore(config.resolved_store_dir)
            artifacts = FileArtifactStore(config.resolved_output_dir)

        client = create_client(config) if require_credentials else None
        notifier = WebhookNotifier(config.notify_url, config.notify_token) if config.notify_url else None
        return cls(config, store, artifacts, client=client, notifier=notifier, clock=clock)

    def _require_provider(self):
        if self.provider is None:
            raise ConfigurationError("This operation needs API credentials; none were configured.")

    @property
    def record_to_request(self):
        if self._record_to_request is None:
            self._record_to_request = make_request_mapper(self.config.load_system_prompt(), self.config)
        return self._record_to_request

    #=========================================================================
    # Submission
    #=========================================================================

    def submit_records(self, records: list[dict], input_locator: str) -> Optional[BatchJob]:
        self._require_provider()
        return self.submitter.submit(records, self.record_to_request, input_locator)

    def submit_file(self, path: str | Path) -> Optional[BatchJob]:
        """
        Read a record file and submit it as one batch job.

        Returns:
            BatchJob: The tracked job, or None if the file held no records.
        """
        self._require_provider()
        path = Path(path).resolve()
        logging.info(f"Reading records from {mask_path(path)}")
        records = read_records(path)
        return self.submit_records(records, str(path))

    #=========================================================================
    # Polling
    #=========================================================================

    def poll(self) -> TickSummary:
        self._require_provider()
        return self.poller.tick()

    def scheduler(self, input_dir: str | Path | None = None) -> PollingScheduler:
        """
        Build a scheduler over this manager's poller, watching `input_dir`
        (or the configured input folder) for new record files.
        """
        self._require_provider()
        input_dir = input_dir or self.config.input_dir
        watcher = None
        if input_dir:
            watcher = InputWatcher(
                Path(input_dir).resolve(),
                self.submitter,
                self.store,
                self.record_to_request,
                self.config.input_patterns,
            )
        return PollingScheduler(self.poller, self.config.poll_interval_seconds, self.clock, watcher)

    def watch(self, input_dir: str | Path | None = None, max_ticks: Optional[int] = None) -> int:
        return self.scheduler(input_dir).run(max_ticks=max_ticks)

    def wait(self, job_id: str, timeout: float) -> BatchJob:
        return self.scheduler().run_until_terminal(job_id, timeout)

    #=========================================================================
    # Inspection
    #=========================================================================

    def status(self, job_id: str) -> BatchJob:
        return self.store.get(job_id)

    def list_jobs(self, status: JobStatus | str | None = None) -> list[BatchJob]:
        jobs = self.store.list_jobs(status)
        return sorted(jobs, key=lambda job: job.submitted_at or utc_now())

    #=========================================================================
    # Direct processing
    #=========================================================================

    def process_file_directly(self, path: str | Path, show_progress: bool = True) -> Optional[str]:
        """
        Process a record file without the Batch API and store the results.

        Returns:
            str: Locator of the result artifact, or None if the file held no records.
        """
        if self.client is None:
            raise ConfigurationError("Direct processing needs API credentials; none were configured.")
        path = Path(path).resolve()
        records = read_records(path)
        if not records:
            logging.warning(f"No records found in {mask_path(path)}, skipping")
            return None

        results = process_records_directly(
            self.client,
            records,
            self.record_to_request,
            batch_size=self.config.direct_batch_size,
            show_progress=show_progress,
        )
        name = f"{path.stem}_direct_processed_{filename_timestamp(self.clock.now())}.jsonl"
        return self.artifacts.write_text(name, dumps_jsonl(results))
