# -*- coding: utf-8 -*-

import fnmatch
import logging
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..exceptions import BatchLifecycleError
from ..utils.datasource import read_records
from ..utils.misc import mask_path
from .clock import Clock, SystemClock
from .models import BatchJob
from .poller import StatusPoller, TickSummary
from .store import JobStore
from .submitter import BatchSubmitter

DEFAULT_INPUT_PATTERNS = ("*.json", "*.jsonl", "*.ndjson", "*.csv", "*.parquet")


#=============================================================================
# Event trigger
#=============================================================================

class InputWatcher:
    """
    Submits new input files dropped into a folder.

    A file is new when no tracked job references its path as input locator.
    Files that produced no job because they held no records are remembered
    for the life of the watcher and not read again.

    Args:
        input_dir (str | Path): Folder to scan (non recursive).
        submitter (BatchSubmitter): Used to submit each new file.
        store (JobStore): Used to find already submitted files.
        record_to_request (callable): Maps (record, index) to a request line.
        patterns (iterable): Glob patterns of accepted file names.
    """

    def __init__(
            self,
            input_dir: str | Path,
            submitter: BatchSubmitter,
            store: JobStore,
            record_to_request: Callable[[dict, int], dict],
            patterns: Iterable[str] = DEFAULT_INPUT_PATTERNS
        ):
        self.input_dir = Path(input_dir)
        self.submitter = submitter
        self.store = store
        self.record_to_request = record_to_request
        self.patterns = tuple(patterns)
        self._skipped = set()

    def _candidates(self) -> list[Path]:
        if not self.input_dir.is_dir():
            logging.warning(f"Input folder {mask_path(self.input_dir)} does not exist")
            return []
        return sorted(
            path for path in self.input_dir.iterdir()
            if path.is_file()
            and not path.name.startswith(".")
            and any(fnmatch.fnmatch(path.name, pattern) for pattern in self.patterns)
        )

    def scan(self) -> list[BatchJob]:
        """
        Submit every input file not yet tracked.

        Returns:
            list: Jobs created during this scan.
        """
        known = {job.input_locator for job in self.store.list_jobs()}
        submitted = []
        for path in self._candidates():
            locator = str(path)
            if locator in known or locator in self._skipped:
                continue

            logging.info(f"New input file detected: {mask_path(path)}")
            try:
                records = read_records(path)
                job = self.submitter.submit(records, self.record_to_request, locator)
            except (BatchLifecycleError, ValueError, OSError) as e:
                logging.error(f"Could not submit {mask_path(path)}: {e}")
                continue

            if job is None:
                self._skipped.add(locator)
            else:
                submitted.append(job)
        return submitted


#=============================================================================
# Timer trigger
#=============================================================================

class PollingScheduler:
    """
    Drives the poller on a fixed interval.

    Args:
        poller (StatusPoller): Runs one pass per tick.
        interval (float): Seconds between ticks.
        clock (Clock, optional): Time source; a fake clock makes this instant in tests.
        watcher (InputWatcher, optional): Scanned before every tick.
    """

    def __init__(
            self,
            poller: StatusPoller,
            interval: float = 300.0,
            clock: Optional[Clock] = None,
            watcher: Optional[InputWatcher] = None
        ):
        if interval <= 0:
            raise ValueError("interval must be a positive number of seconds")
        self.poller = poller
        self.interval = interval
        self.clock = clock or SystemClock()
        self.watcher = watcher

    def run_once(self) -> TickSummary:
        if self.watcher is not None:
            self.watcher.scan()
        return self.poller.tick()

    def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Tick forever, or `max_ticks` times.

        Returns:
            int: Number of ticks run.
        """
        ticks = 0
        while True:
            self.run_once()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                return ticks
            self.clock.sleep(self.interval)

    def run_until_terminal(self, job_id: str, timeout: float) -> BatchJob:
        """
        Tick until the job is processed or failed.

        Args:
            job_id (str): Job to wait for.
            timeout (float): Maximum seconds to wait.

        Returns:
            BatchJob: The job in its terminal state.

        Raises:
            TimeoutError: If the job is still open after `timeout` seconds.
            JobNotFoundError: If the job is not tracked.
        """
        deadline = self.clock.now() + timedelta(seconds=timeout)
        store = self.poller.store
        while True:
            self.run_once()
            job = store.get(job_id)
            if job.is_terminal:
                logging.info(f"Batch {job_id} finished as {job.status}")
                return job

            remaining = (deadline - self.clock.now()).total_seconds()
            if remaining <= 0:
                raise TimeoutError(f"Batch {job_id} still {job.status} after {timeout}s")
            self.clock.sleep(min(self.interval, remaining))
