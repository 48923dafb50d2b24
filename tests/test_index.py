"""Tests for index blob and metadata decoding."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from rmcloud.sync.index import (
    find_metadata_item,
    parse_index,
    parse_manifest,
    parse_metadata,
)
from rmcloud.sync.models import EntryKind

ROOT_INDEX = b"""3
h1:80000000:doc-1:4:1200
h2:80000000:folder-1:1:80

h3:80000000:broken
h4:80000000:doc-2:x:y
"""


class TestParseIndex:
    """Tests for parse_index()."""

    def test_skips_schema_line_and_blank_lines(self):
        entries = parse_index(ROOT_INDEX)
        assert [e.id for e in entries] == ["doc-1", "folder-1", "doc-2"]

    def test_fields_decoded(self):
        first = parse_index(ROOT_INDEX)[0]
        assert first.hash == "h1"
        assert first.type_id == "80000000"
        assert first.subfiles == 4
        assert first.size == 1200

    def test_non_numeric_counts_are_zero(self):
        last = parse_index(ROOT_INDEX)[-1]
        assert last.subfiles == 0
        assert last.size == 0

    def test_schema_only_is_empty(self):
        assert parse_index(b"3\n") == []

    def test_invalid_utf8_raises(self):
        with pytest.raises(UnicodeDecodeError):
            parse_index(b"3\n\xff\xfe:0:x:0:0\n")


class TestParseManifest:
    """Tests for parse_manifest() and find_metadata_item()."""

    def test_items_in_index_order(self):
        blob = b"3\nb1:0:a.content:0:10\nb2:0:a.metadata:0:20\n"
        manifest = parse_manifest("a", blob)
        assert manifest.doc_id == "a"
        assert manifest.filenames == ["a.content", "a.metadata"]
        assert manifest.items[1].blob_hash == "b2"
        assert manifest.items[1].size == 20

    def test_find_metadata_item(self):
        manifest = parse_manifest(
            "a", b"3\nb1:0:a.pdf:0:10\nb2:0:a.metadata:0:20\n"
        )
        assert find_metadata_item(manifest).blob_hash == "b2"

    def test_find_metadata_item_missing(self):
        manifest = parse_manifest("a", b"3\nb1:0:a.pdf:0:10\n")
        assert find_metadata_item(manifest) is None


def _meta(**fields) -> bytes:
    data = {
        "visibleName": "Notes",
        "type": "DocumentType",
        "parent": "",
        "lastModified": "1700000000000",
        "version": 3,
        "pinned": False,
    }
    data.update(fields)
    return json.dumps(data).encode()


class TestParseMetadata:
    """Tests for parse_metadata()."""

    def test_document(self):
        entry = parse_metadata("id-1", "idx", _meta())
        assert entry.id == "id-1"
        assert entry.hash == "idx"
        assert entry.kind == EntryKind.DOCUMENT
        assert entry.name == "Notes"
        assert entry.parent_id == ""
        assert entry.version == 3
        assert entry.last_modified == datetime(
            2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc
        )

    def test_collection(self):
        entry = parse_metadata("f", "idx", _meta(type="CollectionType"))
        assert entry.is_collection

    def test_trash_parent(self):
        entry = parse_metadata("f", "idx", _meta(parent="trash"))
        assert entry.parent_id == "trash"

    def test_deleted_returns_none(self):
        assert parse_metadata("f", "idx", _meta(deleted=True)) is None

    def test_empty_name_becomes_unknown(self):
        assert parse_metadata("f", "idx", _meta(visibleName="")).name == "Unknown"

    def test_bad_timestamp_is_epoch(self):
        entry = parse_metadata("f", "idx", _meta(lastModified="soon"))
        assert entry.last_modified == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_not_json_raises(self):
        with pytest.raises(ValueError):
            parse_metadata("f", "idx", b"{not json")

    def test_not_an_object_raises(self):
        with pytest.raises(ValueError, match="not an object"):
            parse_metadata("f", "idx", b"[1, 2]")
