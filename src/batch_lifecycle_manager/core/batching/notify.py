# -*- coding: utf-8 -*-

"""
Downstream notification once a batch result artifact is ready.

A notifier is any callable `notifier(job, output_locator)`. Notification is
fire-and-forget: the reconciler logs a failure and moves on.
"""

import logging
from pathlib import PurePosixPath
from typing import Callable, Optional

import httpx

from .models import BatchJob

Notifier = Callable[[BatchJob, str], None]


class WebhookNotifier:
    """
    POST `{fileName, outputLocator, jobId}` to a webhook, for instance a
    pipeline run endpoint that picks the artifact up for downstream sync.

    Args:
        url (str): Target URL.
        token (str, optional): Bearer credential sent in the Authorization header.
        timeout (float): Request timeout in seconds.
        client (httpx.Client, optional): Client to reuse; mainly for tests.
    """

    def __init__(self, url: str, token: Optional[str] = None, timeout: float = 10.0,
                 client: Optional[httpx.Client] = None):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def __call__(self, job: BatchJob, output_locator: str) -> None:
        payload = {
            "fileName": PurePosixPath(output_locator.replace("\\", "/")).name,
            "outputLocator": output_locator,
            "jobId": job.job_id,
        }
        if self._client is not None:
            response = self._client.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
        else:
            with httpx.Client() as client:
                response = client.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
        response.raise_for_status()
        logging.info(f"Notified {self.url} about {payload['fileName']} (status {response.status_code})")
