# -*- coding: utf-8 -*-

"""
Exception hierarchy for the batch lifecycle manager.

All errors raised by the package derive from BatchLifecycleError so callers
can catch the whole family at once. Each class carries a machine-readable
``code`` attribute.

    BatchLifecycleError
    ├── ConfigurationError
    ├── ProviderError
    │   ├── TransientProviderError
    │   └── TerminalProviderError
    ├── SubmissionError
    ├── MalformedRecordError
    ├── ReconciliationFailure
    ├── MaxRetriesExceeded
    └── JobStoreError
        ├── JobNotFoundError
        ├── JobAlreadyExistsError
        ├── InvalidTransitionError
        └── ConcurrentModificationError
"""


class BatchLifecycleError(Exception):
    """Base class for all batch lifecycle errors."""

    code = "BATCH_LIFECYCLE_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ConfigurationError(BatchLifecycleError):
    """Missing credentials, endpoint, model or an invalid setting."""

    code = "CONFIGURATION_ERROR"


#=============================================================================
# Provider errors
#=============================================================================

class ProviderError(BatchLifecycleError):
    """Error talking to the remote batch provider."""

    code = "PROVIDER_ERROR"


class TransientProviderError(ProviderError):
    """Network, rate limit or 5xx error that may succeed on a later attempt."""

    code = "TRANSIENT_PROVIDER_ERROR"

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class TerminalProviderError(ProviderError):
    """The provider declared the batch failed, expired or cancelled."""

    code = "TERMINAL_PROVIDER_ERROR"

    def __init__(self, job_id: str, status: str, message: str):
        super().__init__(message)
        self.job_id = job_id
        self.status = status


class SubmissionError(BatchLifecycleError):
    """Uploading the input artifact or creating the remote job failed."""

    code = "SUBMISSION_ERROR"

    def __init__(self, message: str, input_artifact_id: str | None = None):
        super().__init__(message)
        self.input_artifact_id = input_artifact_id


class MalformedRecordError(BatchLifecycleError):
    """A single output line or model response could not be parsed."""

    code = "MALFORMED_RECORD"

    def __init__(self, message: str, correlation_id: str | None = None):
        super().__init__(message)
        self.correlation_id = correlation_id


class ReconciliationFailure(BatchLifecycleError):
    """Downloading, transforming or persisting results of a completed batch failed."""

    code = "RECONCILIATION_FAILURE"

    def __init__(self, job_id: str, message: str):
        super().__init__(message)
        self.job_id = job_id


class MaxRetriesExceeded(BatchLifecycleError):
    """The status query of a job failed too many consecutive times."""

    code = "MAX_RETRIES_EXCEEDED"

    def __init__(self, job_id: str, retry_count: int, message: str):
        super().__init__(message)
        self.job_id = job_id
        self.retry_count = retry_count


#=============================================================================
# Job store errors
#=============================================================================

class JobStoreError(BatchLifecycleError):
    """Base class for job store contract violations."""

    code = "JOB_STORE_ERROR"


class JobNotFoundError(JobStoreError):
    code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str, status: str | None = None):
        if status is None:
            message = f"Batch job {job_id} not found"
        else:
            message = f"Batch job {job_id} not found in state '{status}'"
        super().__init__(message)
        self.job_id = job_id
        self.status = status


class JobAlreadyExistsError(JobStoreError):
    code = "JOB_ALREADY_EXISTS"

    def __init__(self, job_id: str):
        super().__init__(f"Batch job {job_id} already exists")
        self.job_id = job_id


class InvalidTransitionError(JobStoreError):
    code = "INVALID_TRANSITION"

    def __init__(self, job_id: str, from_status: str, to_status: str):
        super().__init__(
            f"Batch job {job_id} cannot move from '{from_status}' to '{to_status}'"
        )
        self.job_id = job_id
        self.from_status = from_status
        self.to_status = to_status


class ConcurrentModificationError(JobStoreError):
    """The job record changed between read and conditional write."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, job_id: str, expected_version: int | None = None):
        super().__init__(
            f"Batch job {job_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.job_id = job_id
        self.expected_version = expected_version
