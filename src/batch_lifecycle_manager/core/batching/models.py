# -*- coding: utf-8 -*-

"""
Data model for tracked batch jobs.

A BatchJob is persisted as a JSON object with camelCase keys:

    { jobId, inputArtifactId, inputLocator, recordCount, status,
      submittedAt, completedAt, processedAt, outputArtifactId,
      errorArtifactId, outputLocator, errorMessage, retryCount, version }
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..utils.misc import format_timestamp, parse_timestamp


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    PROCESSED = "processed"
    FAILED = "failed"

    def __str__(self):
        return self.value


# Remote batch statuses grouped by the local action they drive
RUNNING_REMOTE_STATUSES = frozenset({"validating", "in_progress", "finalizing"})
TERMINAL_REMOTE_STATUSES = frozenset({"failed", "expired", "cancelled"})
COMPLETED_REMOTE_STATUS = "completed"

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset({JobStatus.PROCESSED}),
    JobStatus.PROCESSED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset({JobStatus.PROCESSED, JobStatus.FAILED})

# Set once at creation, never touched by a transition
CREATION_FIELDS = frozenset({
    "job_id", "input_artifact_id", "input_locator", "record_count", "submitted_at",
})

_TIMESTAMP_FIELDS = frozenset({"submitted_at", "completed_at", "processed_at"})


def is_allowed_transition(from_status, to_status) -> bool:
    return JobStatus(to_status) in ALLOWED_TRANSITIONS[JobStatus(from_status)]


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class BatchJob:
    job_id: str
    input_artifact_id: str
    input_locator: str
    record_count: int
    status: JobStatus = JobStatus.PENDING
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    output_artifact_id: Optional[str] = None
    error_artifact_id: Optional[str] = None
    output_locator: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    version: int = field(default=0, compare=False)

    def __post_init__(self):
        self.status = JobStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def with_updates(self, updates: dict[str, Any]) -> "BatchJob":
        """
        Return a copy of the job with `updates` merged in.

        Args:
            updates (dict): Attribute name -> new value. camelCase keys are
                accepted as well.

        Raises:
            ValueError: If a key is unknown, names a creation-time field, or
                would overwrite a field that is already set.
        """
        known = {f.name for f in fields(self)}
        camel = {_to_camel(name): name for name in known}
        normalized = {}
        for key, value in (updates or {}).items():
            name = key if key in known else camel.get(key)
            if name is None:
                raise ValueError(f"Unknown batch job field: {key}")
            if name in CREATION_FIELDS or name in ("status", "version", "retry_count"):
                raise ValueError(f"Field '{key}' cannot be updated by a transition")
            current = getattr(self, name)
            if current is not None and current != value:
                raise ValueError(f"Field '{key}' is already set on batch job {self.job_id}")
            normalized[name] = value
        return replace(self, **normalized)

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _TIMESTAMP_FIELDS:
                value = format_timestamp(value)
            elif isinstance(value, JobStatus):
                value = value.value
            data[_to_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BatchJob":
        kwargs = {}
        for f in fields(cls):
            key = _to_camel(f.name)
            if key not in data:
                continue
            value = data[key]
            if f.name in _TIMESTAMP_FIELDS:
                value = parse_timestamp(value)
            kwargs[f.name] = value
        kwargs["retry_count"] = kwargs.get("retry_count") or 0
        kwargs["version"] = kwargs.get("version") or 0
        return cls(**kwargs)
