# -*- coding: utf-8 -*-
"""
Non-batch fallback: send each record's request straight to the chat
completions endpoint and normalize the answers exactly like batch results.

Records are processed in chunks of `batch_size`; within a chunk every call
runs concurrently and the chunk is awaited as a whole. A failed call only
affects its own record.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

import openai
from tqdm.auto import tqdm

from ..utils.misc import format_timestamp, utc_now
from .jobs import retry_on_transient_openai_errors
from .parse import normalize_output_entry


@retry_on_transient_openai_errors
def create_chat_completion(client, body: dict):
    return client.chat.completions.create(**body)


def _process_request(client, request: dict) -> dict:
    custom_id = request.get("custom_id")
    try:
        completion = create_chat_completion(client, request["body"])
        entry = {
            "custom_id": custom_id,
            "response": {"status_code": 200, "body": completion.model_dump()},
            "error": None,
        }
    except Exception as e:
        logging.warning(f"Direct request {custom_id} failed: {e}")
        entry = {"custom_id": custom_id, "response": None, "error": {"message": str(e)}}
    return normalize_output_entry(entry, format_timestamp(utc_now()))


def process_records_directly(
        client: openai.OpenAI | openai.AzureOpenAI,
        records: list[dict],
        record_to_request: Callable[[dict, int], dict],
        batch_size: int = 10,
        max_workers: Optional[int] = None,
        show_progress: bool = True
    ) -> list[dict]:
    """
    Process records without the Batch API.

    Args:
        client (openai.OpenAI | openai.AzureOpenAI): Chat completions client.
        records (list): Records to process.
        record_to_request (callable): Maps (record, index) to a request line.
        batch_size (int): Number of concurrent calls per chunk.
        max_workers (int, optional): Thread pool size. Defaults to `batch_size`.
        show_progress (bool): Show a tqdm progress bar.

    Returns:
        list: Normalized results in input order.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be a positive integer")

    requests = [record_to_request(record, index) for index, record in enumerate(records)]
    results = [None] * len(requests)
    logging.info(f"Processing {len(requests)} records directly in chunks of {batch_size}")

    with tqdm(total=len(requests), desc="Records processed", disable=not show_progress) as progress:
        for start in range(0, len(requests), batch_size):
            chunk = requests[start:start + batch_size]
            with ThreadPoolExecutor(max_workers=max_workers or batch_size) as executor:
                futures = {
                    executor.submit(_process_request, client, request): start + offset
                    for offset, request in enumerate(chunk)
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
                    progress.update(1)

    failed = sum(1 for r in results if not r['success'])
    logging.info(f"Direct processing finished: {len(results) - failed} succeeded, {failed} failed")
    return results
