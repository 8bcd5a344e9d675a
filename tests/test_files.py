"""Unit tests for batch input document creation."""

import json
from types import SimpleNamespace

import pytest

from batch_lifecycle_manager.core.batching.files import (
    build_request_line,
    create_batch_input_document,
    make_request_mapper,
    resolve_correlation_id,
)


_CONFIG = SimpleNamespace(model="gpt-4o-mini", temperature=0.3, max_tokens=4000, endpoint="/chat/completions")


@pytest.mark.parametrize("record,index,expected", [
    ({"Id": "a0X1", "Name": "Call 1"}, 0, "a0X1"),
    ({"Name": "Call 2"}, 1, "Call 2"),
    ({"Id": "", "Name": None}, 2, "record-2"),
    ({}, 7, "record-7"),
])
def test_resolve_correlation_id(record, index, expected) -> None:
    assert resolve_correlation_id(record, index) == expected


def test_build_request_line_shape() -> None:
    line = build_request_line("rec-1", "system text", "user text", model="gpt-4o-mini")

    assert line["custom_id"] == "rec-1"
    assert line["method"] == "POST"
    assert line["url"] == "/chat/completions"
    body = line["body"]
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "user text"},
    ]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 4000
    assert body["response_format"] == {"type": "json_object"}


def test_request_mapper_uses_config_and_renderer() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG, user_prompt=lambda r: f"Summarize {r['Name']}")
    line = mapper({"Name": "Call 9"}, 4)

    assert line["custom_id"] == "Call 9"
    assert line["body"]["messages"][0]["content"] == "Be factual."
    assert line["body"]["messages"][1]["content"] == "Summarize Call 9"


def test_default_user_prompt_serializes_record() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG)
    line = mapper({"Id": "1", "Notes": "café"}, 0)

    assert "café" in line["body"]["messages"][1]["content"]


def test_document_has_one_line_per_record_in_order() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG)
    records = [{"Id": "r1"}, {"Id": "r2"}, {"Id": "r3"}]

    document = create_batch_input_document(records, mapper)

    lines = document.splitlines()
    assert document.endswith("\n")
    assert [json.loads(line)["custom_id"] for line in lines] == ["r1", "r2", "r3"]


def test_duplicate_correlation_ids_are_rejected() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG)
    with pytest.raises(ValueError, match="Duplicate"):
        create_batch_input_document([{"Id": "x"}, {"Id": "x"}], mapper)


def test_line_limit() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG)
    with pytest.raises(ValueError, match="lines"):
        create_batch_input_document([{"Id": "a"}, {"Id": "b"}], mapper, max_lines_per_file=1)


def test_byte_limit() -> None:
    mapper = make_request_mapper("Be factual.", _CONFIG)
    with pytest.raises(ValueError, match="bytes"):
        create_batch_input_document([{"Id": "a"}], mapper, max_bytes_per_file=50)
