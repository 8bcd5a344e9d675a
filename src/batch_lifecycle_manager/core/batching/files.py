# -*- coding: utf-8 -*-

import json
import logging
from typing import Callable, Optional

from ..utils.misc import dumps_jsonl


# 200MB OpenAI Batch API limit minus a safety margin
MAX_BYTES_PER_FILE = 190 * 1024**2
MAX_LINES_PER_FILE = 50_000
MAX_LINES_PER_FILE_AZURE = 100_000


def resolve_correlation_id(record: dict, index: int) -> str:
    """
    Correlation id of a record: its `Id`, else its `Name`, else `record-<index>`.

    The fallback depends only on the record's position, so the same input
    ordering always yields the same ids.
    """
    for key in ('Id', 'Name'):
        value = record.get(key)
        if value not in (None, ''):
            return str(value)
    return f"record-{index}"


def build_request_line(
        custom_id: str,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        url: str = "/chat/completions"
    ) -> dict:
    """
    Build one Batch API request line asking for a single JSON object.

    Args:
        custom_id (str): Correlation id carried through to the result line.
        system_prompt (str): Content of the system message.
        user_prompt (str): Content of the user message.
        model (str): OpenAI model name or Azure batch deployment name.
        temperature (float): Sampling temperature.
        max_tokens (int): Token ceiling for the completion.
        url (str): Endpoint invoked for the request.

    Returns:
        dict: The request line.
    """
    return {
        "custom_id": custom_id,
        "method": "POST",
        "url": url,
        "body": {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        },
    }


def _default_user_prompt(record: dict) -> str:
    return f"Record: {json.dumps(record, ensure_ascii=False, default=str)}"


def make_request_mapper(
        system_prompt: str,
        config,
        user_prompt: Optional[Callable[[dict], str]] = None
    ) -> Callable[[dict, int], dict]:
    """
    Build the standard `record_to_request(record, index)` function.

    Args:
        system_prompt (str): System message shared by every request.
        config (BatchLifecycleConfig): Supplies model, temperature, max tokens and endpoint.
        user_prompt (callable, optional): Renders a record into the user message.
            Defaults to the record serialized as JSON.
    """
    render = user_prompt or _default_user_prompt

    def record_to_request(record: dict, index: int) -> dict:
        return build_request_line(
            custom_id=resolve_correlation_id(record, index),
            system_prompt=system_prompt,
            user_prompt=render(record),
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            url=config.endpoint,
        )

    return record_to_request


def create_batch_input_document(
        records: list[dict],
        record_to_request: Callable[[dict, int], dict],
        max_lines_per_file: int = MAX_LINES_PER_FILE,
        max_bytes_per_file: int = MAX_BYTES_PER_FILE
    ) -> str:
    """
    Serialize every record as a Batch API request line.

    Args:
        records (list): Records in submission order.
        record_to_request (callable): Maps (record, index) to a request line.
        max_lines_per_file (int): Provider limit on lines per input file.
        max_bytes_per_file (int): Provider limit on input file size.

    Returns:
        str: The JSON Lines document.

    Raises:
        ValueError: On duplicate correlation ids or when a provider limit is exceeded.
    """
    lines = [record_to_request(record, index) for index, record in enumerate(records)]

    seen = set()
    duplicates = set()
    for line in lines:
        custom_id = line["custom_id"]
        if custom_id in seen:
            duplicates.add(custom_id)
        seen.add(custom_id)
    if duplicates:
        raise ValueError(f"Duplicate correlation ids in batch input: {sorted(duplicates)[:10]}")

    if len(lines) > max_lines_per_file:
        raise ValueError(f"Batch input has {len(lines)} lines, more than the limit of {max_lines_per_file}")

    document = dumps_jsonl(lines)
    n_bytes = len(document.encode('utf-8'))
    if n_bytes > max_bytes_per_file:
        raise ValueError(f"Batch input is {n_bytes} bytes, more than the limit of {max_bytes_per_file}")

    logging.debug(f"Created batch input document with {len(lines)} lines ({n_bytes} bytes)")
    return document
