# -*- coding: utf-8 -*-
"""
This module wraps the OpenAI Batch API operations used by the lifecycle
manager: uploading an input file, creating a batch job, retrieving its
status, downloading result files and deleting orphaned uploads.

Every call is retried on transient OpenAI errors. Retries are kept short
because callers run inside a scheduled tick; anything that still fails is
raised as a TransientProviderError and accounted for by the poller.
"""


import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import openai
from tenacity import (retry, retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from ..exceptions import ProviderError, TransientProviderError
from ..utils.misc import parse_timestamp

TRANSIENT_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.InternalServerError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)

retry_on_transient_openai_errors = retry(
    retry=retry_if_exception_type(TRANSIENT_OPENAI_ERRORS),
    wait=wait_exponential(min=1, max=30),
    stop=stop_after_attempt(4),
    reraise=True
)


@dataclass
class RemoteJobStatus:
    """Snapshot of a remote batch as reported by the provider."""
    job_id: str
    status: str
    output_artifact_id: Optional[str] = None
    error_artifact_id: Optional[str] = None
    error_summary: Optional[str] = None
    completed_at: Optional[datetime] = None
    request_counts: dict = field(default_factory=dict)

    @classmethod
    def from_batch(cls, batch) -> "RemoteJobStatus":
        """Build a snapshot from an `openai.types.Batch` object."""
        error_summary = None
        errors = getattr(batch, "errors", None)
        data = getattr(errors, "data", None) if errors is not None else None
        if data:
            error_summary = getattr(data[0], "message", None)

        counts = getattr(batch, "request_counts", None)
        request_counts = {}
        if counts is not None:
            request_counts = {
                "total": getattr(counts, "total", 0),
                "completed": getattr(counts, "completed", 0),
                "failed": getattr(counts, "failed", 0),
            }

        return cls(
            job_id=batch.id,
            status=batch.status,
            output_artifact_id=getattr(batch, "output_file_id", None),
            error_artifact_id=getattr(batch, "error_file_id", None),
            error_summary=error_summary,
            completed_at=parse_timestamp(getattr(batch, "completed_at", None)),
            request_counts=request_counts,
        )


class BatchProvider(ABC):
    """Remote asynchronous inference operations."""

    @abstractmethod
    def upload(self, document: str, filename: str) -> str:
        """Upload a JSON Lines document and return its artifact id."""

    @abstractmethod
    def create_job(self, input_artifact_id: str, endpoint: str, completion_window: str) -> str:
        """Create a batch job consuming `input_artifact_id` and return its id."""

    @abstractmethod
    def get_job_status(self, job_id: str) -> RemoteJobStatus:
        """Return the current remote status of a batch job."""

    @abstractmethod
    def download_artifact(self, artifact_id: str) -> str:
        """Return the content of a result or error artifact."""

    @abstractmethod
    def delete_artifact(self, artifact_id: str) -> None:
        """Delete an uploaded artifact."""


#=============================================================================
# OpenAI Batch API calls
#=============================================================================

@retry_on_transient_openai_errors
def upload_batch_input(client, document: str, filename: str):
    return client.files.create(
        file=(filename, document.encode("utf-8"), "application/jsonl"),
        purpose="batch"
    )


@retry_on_transient_openai_errors
def create_batch_job(client, input_file_id: str, endpoint: str, completion_window: str):
    return client.batches.create(
        input_file_id=input_file_id,
        endpoint=endpoint,
        completion_window=completion_window
    )


@retry_on_transient_openai_errors
def retrieve_batch(client, batch_id: str):
    return client.batches.retrieve(batch_id)


@retry_on_transient_openai_errors
def download_file_content(client, file_id: str) -> str:
    return client.files.content(file_id).text


@retry_on_transient_openai_errors
def delete_file(client, file_id: str):
    return client.files.delete(file_id)


def _translate_error(action: str, error: openai.OpenAIError) -> ProviderError:
    message = f"{action} failed: {error}"
    if isinstance(error, TRANSIENT_OPENAI_ERRORS):
        return TransientProviderError(message, cause=error)
    return ProviderError(message)


class OpenAIBatchProvider(BatchProvider):
    """
    BatchProvider over an `openai.OpenAI` or `openai.AzureOpenAI` client.

    Args:
        client: OpenAI API client.
    """

    def __init__(self, client: openai.OpenAI | openai.AzureOpenAI):
        self.client = client

    def upload(self, document, filename):
        logging.info(f"Uploading batch input file {filename}...")
        try:
            uploaded = upload_batch_input(self.client, document, filename)
        except openai.OpenAIError as e:
            raise _translate_error("Uploading batch input", e) from e
        logging.info(f"Batch input file uploaded: {uploaded.id}")
        return uploaded.id

    def create_job(self, input_artifact_id, endpoint, completion_window):
        try:
            batch = create_batch_job(self.client, input_artifact_id, endpoint, completion_window)
        except openai.OpenAIError as e:
            raise _translate_error("Creating batch job", e) from e
        logging.info(f"Batch job created with ID: {batch.id}")
        return batch.id

    def get_job_status(self, job_id):
        try:
            batch = retrieve_batch(self.client, job_id)
        except openai.OpenAIError as e:
            raise _translate_error(f"Retrieving batch {job_id}", e) from e
        status = RemoteJobStatus.from_batch(batch)
        if status.status == "in_progress" and status.request_counts.get("total"):
            counts = status.request_counts
            percentage = counts["completed"] / counts["total"] * 100
            logging.debug(f"Batch {job_id} is in progress, {counts['completed']} requests completed ({percentage:.2f}%)")
        return status

    def download_artifact(self, artifact_id):
        logging.info(f"Downloading file {artifact_id}...")
        try:
            return download_file_content(self.client, artifact_id)
        except openai.OpenAIError as e:
            raise _translate_error(f"Downloading file {artifact_id}", e) from e

    def delete_artifact(self, artifact_id):
        try:
            delete_file(self.client, artifact_id)
        except openai.OpenAIError as e:
            raise _translate_error(f"Deleting file {artifact_id}", e) from e
        logging.info(f"Deleted file {artifact_id}")
