# -*- coding: utf-8 -*-

import json
import logging
from pathlib import Path

import polars as pl

from .misc import mask_path


JSON_SUFFIXES = ('.json', '.jsonl', '.ndjson')
TABULAR_SUFFIXES = ('.csv', '.parquet')


def parse_records_text(content: str) -> list[dict]:
    """
    Parse a record collection from text.

    The content may be a JSON array, a single JSON object, or JSON Lines.
    A leading UTF-8 BOM is ignored. In JSON Lines input, lines that are not
    valid JSON objects are dropped with a warning.

    Args:
        content (str): Raw text of the input artifact.

    Returns:
        list: Records in input order.
    """
    content = content.lstrip('\ufeff').strip()
    if not content:
        return []

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        parsed = None
    else:
        if isinstance(parsed, list):
            return [item for item in parsed if isinstance(item, dict)]
        if isinstance(parsed, dict):
            return [parsed]

    records = []
    dropped = 0
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError:
            dropped += 1
            continue
        if isinstance(item, dict):
            records.append(item)
        else:
            dropped += 1
    if dropped:
        logging.warning(f"Dropped {dropped} unparseable input line(s)")
    return records


def read_records_tabular(source_file):
    """Read records from a CSV or PARQUET file."""
    source_file = Path(source_file)
    suffix = source_file.suffix.lower()
    if suffix == '.csv':
        df = pl.read_csv(source_file)
    elif suffix == '.parquet':
        df = pl.read_parquet(source_file)
    else:
        raise ValueError('Source data file must be either CSV or PARQUET')
    return df.to_dicts()


def read_records(source_file):
    """
    Read a record collection from a JSON, JSONL, CSV or PARQUET file.

    Args:
        source_file (str | Path): Path to the input file.

    Returns:
        list: List of record dictionaries.

    Raises:
        ValueError: If the file extension is not supported.
    """
    source_file = Path(source_file)
    suffix = source_file.suffix.lower()
    if suffix in JSON_SUFFIXES:
        with open(source_file, 'r', encoding='utf-8') as f:
            records = parse_records_text(f.read())
    elif suffix in TABULAR_SUFFIXES:
        records = read_records_tabular(source_file)
    else:
        raise ValueError("Source data file must be a JSON, JSONL, CSV or PARQUET file.")

    logging.info(f"Read {len(records)} record(s) from {mask_path(source_file)}")
    return records
