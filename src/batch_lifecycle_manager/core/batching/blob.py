# -*- coding: utf-8 -*-

"""
Azure Blob Storage backends for job records and result artifacts.

Job records live at `jobs/<jobId>.json` in one container. The job status is
mirrored into blob metadata so listings can be filtered without downloading
every record, and conditional writes use the blob ETag.
"""

import json
import logging

from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from ..exceptions import ConcurrentModificationError, JobAlreadyExistsError
from .artifacts import ArtifactStore
from .models import BatchJob
from .store import JobStore
from .utils import dumps_json


JOBS_PREFIX = "jobs/"


def get_container_client(connection_string: str, container: str) -> ContainerClient:
    """Return a client for `container`, creating the container if it does not exist."""
    service = BlobServiceClient.from_connection_string(connection_string)
    container_client = service.get_container_client(container)
    try:
        container_client.create_container()
        logging.info(f"Created blob container '{container}'")
    except ResourceExistsError:
        pass
    return container_client


class BlobJobStore(JobStore):
    """Job store backed by one JSON blob per job, guarded by ETags."""

    def __init__(self, container_client: ContainerClient):
        self.container = container_client

    @classmethod
    def from_connection_string(cls, connection_string: str, container: str = "batch-jobs"):
        return cls(get_container_client(connection_string, container))

    def __repr__(self):
        return f"BlobJobStore({self.container.container_name})"

    def _blob_name(self, job_id: str) -> str:
        if not job_id or "/" in job_id:
            raise ValueError(f"Invalid batch job id: {job_id!r}")
        return f"{JOBS_PREFIX}{job_id}.json"

    def _upload_kwargs(self, job: BatchJob) -> dict:
        return {
            "metadata": {"status": job.status.value, "version": str(job.version)},
            "content_settings": ContentSettings(content_type="application/json"),
        }

    def _read(self, job_id):
        blob_client = self.container.get_blob_client(self._blob_name(job_id))
        try:
            downloader = blob_client.download_blob()
        except ResourceNotFoundError:
            return None
        data = json.loads(downloader.readall())
        return BatchJob.from_dict(data), downloader.properties.etag

    def _write_new(self, job):
        blob_client = self.container.get_blob_client(self._blob_name(job.job_id))
        try:
            blob_client.upload_blob(
                dumps_json(job.to_dict()).encode("utf-8"),
                overwrite=False,
                **self._upload_kwargs(job),
            )
        except ResourceExistsError as e:
            raise JobAlreadyExistsError(job.job_id) from e

    def _write_conditional(self, job, token):
        blob_client = self.container.get_blob_client(self._blob_name(job.job_id))
        try:
            blob_client.upload_blob(
                dumps_json(job.to_dict()).encode("utf-8"),
                overwrite=True,
                etag=token,
                match_condition=MatchConditions.IfNotModified,
                **self._upload_kwargs(job),
            )
        except ResourceModifiedError as e:
            raise ConcurrentModificationError(job.job_id, job.version - 1) from e

    def _iter_jobs(self, status=None):
        for blob in self.container.list_blobs(name_starts_with=JOBS_PREFIX, include=["metadata"]):
            metadata = blob.metadata or {}
            if status is not None and metadata.get("status") not in (None, status.value):
                continue
            job_id = blob.name[len(JOBS_PREFIX):].removesuffix(".json")
            try:
                found = self._read(job_id)
            except (ValueError, KeyError, TypeError) as e:
                logging.error(f"Skipping unreadable job record {blob.name}: {e}")
                continue
            if found is None:
                continue
            job = found[0]
            if status is None or job.status == status:
                yield job


class BlobArtifactStore(ArtifactStore):
    """Result artifacts written as blobs; locators take the form `<container>/<name>`."""

    def __init__(self, container_client: ContainerClient):
        self.container = container_client

    @classmethod
    def from_connection_string(cls, connection_string: str, container: str = "output"):
        return cls(get_container_client(connection_string, container))

    def __repr__(self):
        return f"BlobArtifactStore({self.container.container_name})"

    def write_text(self, name, content, content_type="application/x-ndjson"):
        self.container.upload_blob(
            name,
            content.encode("utf-8"),
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )
        locator = f"{self.container.container_name}/{name}"
        logging.info(f"Saved artifact to blob {locator}")
        return locator

    def read_text(self, locator):
        prefix = f"{self.container.container_name}/"
        name = locator[len(prefix):] if locator.startswith(prefix) else locator
        return self.container.download_blob(name).readall().decode("utf-8")
