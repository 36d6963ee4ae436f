"""
Tests for advisory record parsing.
"""
import json

import pytest

from ingestion.record_parser import MalformedRecordError, is_record_entry, parse_record


def test_parses_valid_document(sample_advisories):
    document = sample_advisories[0]
    raw = json.dumps(document)

    record = parse_record("npm/GHSA-aaaa-0001-0001.json", raw.encode("utf-8"))

    assert record.id == "GHSA-aaaa-0001-0001"
    assert record.payload == document
    assert record.raw == raw
    assert record.modified == "2024-03-01T12:00:00Z"


def test_modified_is_optional():
    record = parse_record("a.json", b'{"id": "A"}')
    assert record.modified is None


def test_non_ascii_content_is_kept():
    record = parse_record("a.json", '{"id": "A", "summary": "Überlauf"}'.encode("utf-8"))
    assert record.payload["summary"] == "Überlauf"


@pytest.mark.parametrize("content, reason", [
    (b"{not json", "invalid JSON"),
    (b"", "invalid JSON"),
    (b"[1, 2, 3]", "expected a JSON object"),
    (b'"GHSA-1"', "expected a JSON object"),
    (b'{"summary": "no id"}', "missing or empty 'id'"),
    (b'{"id": ""}', "missing or empty 'id'"),
    (b'{"id": "   "}', "missing or empty 'id'"),
    (b'{"id": 42}', "missing or empty 'id'"),
    (b"\xff\xfe\x00", "not UTF-8"),
])
def test_malformed_content_raises(content, reason):
    with pytest.raises(MalformedRecordError) as exc_info:
        parse_record("npm/broken.json", content)

    assert exc_info.value.entry_name == "npm/broken.json"
    assert reason in exc_info.value.reason
    assert "npm/broken.json" in str(exc_info.value)


def test_is_record_entry():
    assert is_record_entry("npm/GHSA-1.json")
    assert not is_record_entry("npm/GHSA-1.json.bak")
    assert not is_record_entry("README.md")
