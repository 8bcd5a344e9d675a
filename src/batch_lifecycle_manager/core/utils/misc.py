# -*- coding: utf-8 -*-

import os
import json
import logging
from datetime import datetime, timezone
from pathlib import Path


#=======================================================================
# JSON Lines Utilities
#=======================================================================

def dumps_jsonl(lines) -> str:
    """
    Serialize a list of dictionaries as a JSON Lines document.

    Args:
        lines (list): List of dictionaries to serialize.

    Returns:
        str: One JSON object per line, newline terminated.
    """
    return "".join(json.dumps(line, ensure_ascii=False) + "\n" for line in lines)


def write_jsonl(lines, path):
    """
    Write a list of dictionaries to a JSON Lines file.
    Each dictionary is written as a separate line in the file.

    Args:
        lines (list): List of dictionaries to write.
        path (str): Path to the output file.
    """
    with open(path, 'w', encoding='utf-8') as f:
        f.write(dumps_jsonl(lines))


def read_jsonl(path):
    """
    Read a JSON Lines file and return a list of dictionaries.
    Blank lines are skipped.

    Args:
        path (str): Path to the input file.

    Returns:
        list: List of dictionaries read from the file.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return [json.loads(line) for line in f if line.strip()]


#=======================================================================
# Time Utilities
#=======================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    """ISO-8601 representation of an aware datetime, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value) -> datetime | None:
    """
    Parse an ISO-8601 string, a unix epoch or a datetime into an aware datetime.
    Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filename_timestamp(value: datetime) -> str:
    """Filesystem and blob-name safe timestamp, e.g. 2025-01-31T10-15-00Z."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")


#=======================================================================
# Path Utilities
#=======================================================================

def mask_path(path, base_dir=None):
    """
    Masks or simplifies a path for logging.

    Args:
        path (str): The full path to mask.
        base_dir (str, optional): The base directory to make the path relative to.

    Returns:
        str: The masked or simplified path.
    """
    path = Path(path)

    # Use base_dir if provided, otherwise fallback to PROJECT_DIR from environment
    if base_dir is None:
        base_dir = os.getenv('PROJECT_DIR')

    if base_dir:
        base_dir = Path(base_dir)
        try:
            return str(path.relative_to(base_dir))
        except ValueError:
            pass  # If path is not under base_dir, fall back to absolute path

    # Replace home directory with "~"
    if str(path).startswith(str(Path.home())):
        return f"~/{path.relative_to(Path.home())}"

    return str(path)


def ensure_output_path(path, description="Output folder"):
    """
    Ensures that an output directory exists, creating it if needed.

    Args:
        path (str): Path to the directory.
        description (str): Description of the resource (for logging).
    """
    if not os.path.exists(path):
        logging.info(f"{description} does not exist. Creating it at: {mask_path(path)}")
        os.makedirs(path, exist_ok=True)
