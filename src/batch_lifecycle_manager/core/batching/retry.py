# -*- coding: utf-8 -*-

from dataclasses import dataclass

from ..exceptions import MaxRetriesExceeded


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded count of consecutive status-query failures before a job is failed."""

    max_retries: int = 3

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    def exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def failure_message(self, retry_count: int, cause) -> str:
        """Error message stored on a job that ran out of retries."""
        return f"failed after {retry_count} retries: {cause}"

    def failure(self, job_id: str, retry_count: int, cause) -> MaxRetriesExceeded:
        return MaxRetriesExceeded(job_id, retry_count, self.failure_message(retry_count, cause))
