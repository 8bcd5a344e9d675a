# -*- coding: utf-8 -*-

"""
Parsing of Batch API output files into normalized per-record results.

Every normalized result has the same keys:

    correlationId  - custom_id of the request line
    success        - False when the provider reported an error for the record
    insights       - the model's JSON object, or None
    parseError     - True when the model content was not a JSON object
    rawResponse    - the raw model content when parseError is True
    error          - provider error message when success is False
    usage          - token usage reported for the request, if any
    completedAt    - completion time of the batch the record belongs to

A malformed line never aborts parsing of the rest of the file.
"""

import json
import logging
from typing import Optional

from ..exceptions import MalformedRecordError


def parse_output_document(content: str) -> tuple[list[dict], int]:
    """
    Parse a JSON Lines output document.

    Args:
        content (str): Raw content of an output or error file.

    Returns:
        tuple: (entries, malformed) where `entries` are the parsed JSON objects
            in file order and `malformed` counts the dropped lines.
    """
    entries = []
    malformed = 0
    for line in content.splitlines():
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            entry = None
        if not isinstance(entry, dict):
            malformed += 1
            logging.warning(f"Failed to parse output line: {line[:100]}...")
            continue
        entries.append(entry)
    return entries, malformed


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def extract_response_content(body: dict):
    """Return `choices[0].message.content` of a chat completion body, if present."""
    choices = _as_dict(body).get('choices')
    if not isinstance(choices, list) or not choices:
        return None
    message = _as_dict(_as_dict(choices[0]).get('message'))
    return message.get('content')


def parse_insights(content, correlation_id: Optional[str] = None) -> dict:
    """
    Parse the model's response content as a JSON object.

    Raises:
        MalformedRecordError: If the content is not a string, is empty,
            is invalid JSON or is not a JSON object.
    """
    if content is not None and not isinstance(content, str):
        raise MalformedRecordError(f"Model response is a {type(content).__name__}, not text", correlation_id)
    if content is None or not content.strip():
        raise MalformedRecordError("Empty model response", correlation_id)
    try:
        insights = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Model response is not valid JSON: {e}", correlation_id) from e
    if not isinstance(insights, dict):
        raise MalformedRecordError("Model response is not a JSON object", correlation_id)
    return insights


def _record_error_message(entry: dict) -> Optional[str]:
    error = entry.get('error')
    if error:
        if isinstance(error, dict):
            return error.get('message') or error.get('code') or "Processing failed"
        return str(error)

    response = _as_dict(entry.get('response'))
    status_code = response.get('status_code')
    if isinstance(status_code, int) and status_code >= 400:
        body_error = _as_dict(response.get('body')).get('error')
        if isinstance(body_error, dict) and body_error.get('message'):
            return body_error['message']
        return f"Request failed with status {status_code}"
    return None


def normalize_output_entry(entry: dict, completed_at: Optional[str] = None) -> dict:
    """
    Turn one output line into a normalized result.

    Args:
        entry (dict): A parsed output or error line.
        completed_at (str, optional): Completion timestamp stamped on the result.

    Returns:
        dict: The normalized result.
    """
    correlation_id = entry.get('custom_id')
    result = {
        'correlationId': correlation_id,
        'success': True,
        'insights': None,
        'parseError': False,
        'rawResponse': None,
        'error': None,
        'usage': None,
        'completedAt': completed_at,
    }

    error_message = _record_error_message(entry)
    if error_message is not None:
        result['success'] = False
        result['error'] = error_message
        return result

    body = _as_dict(_as_dict(entry.get('response')).get('body'))
    result['usage'] = body.get('usage')
    content = extract_response_content(body)
    try:
        result['insights'] = parse_insights(content, correlation_id)
    except MalformedRecordError as e:
        logging.warning(f"Failed to parse AI response for {correlation_id}: {e}")
        result['parseError'] = True
        result['rawResponse'] = content
    return result
