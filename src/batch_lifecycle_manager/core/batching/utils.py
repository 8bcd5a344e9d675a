# -*- coding: utf-8 -*-

import os
import json
import tempfile


def read_json(path, encoding="utf-8"):
    """
    Reads a JSON file.

    Args:
        path (str): Path to the JSON file.

    Returns:
        dict or list: Parsed JSON content.
    """
    with open(path, 'r', encoding=encoding) as f:
        return json.load(f)


def dumps_json(data, indent=2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False)


def write_json_exclusive(data, path, encoding="utf-8"):
    """
    Write data to a JSON file that must not exist yet.

    Raises:
        FileExistsError: If `path` already exists.
    """
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    with os.fdopen(fd, 'w', encoding=encoding) as f:
        f.write(dumps_json(data))
        f.flush()
        os.fsync(f.fileno())


def write_text_atomic(content, path, encoding="utf-8"):
    """
    Replace `path` with `content`.

    The content is written to a temporary file in the same directory and
    moved into place, so readers see either the old or the new document.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, 'w', encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def write_json_atomic(data, path, encoding="utf-8"):
    """Replace `path` with the JSON serialization of `data`."""
    write_text_atomic(dumps_json(data), path, encoding=encoding)
