from __future__ import annotations

import io
import json
import tarfile
from datetime import datetime, timezone

import pytest

from editor_cli.cli_shared import DecodeError, OpError, UsageError
from editor_cli.export_archive import (
    SLUG_MAX_LEN,
    build_archive,
    content_entry_name,
    decode_export_documents,
    export_bytes,
    export_documents,
    sanitize_slug,
)

_WHEN = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def _docs(*rows):
    return decode_export_documents(list(rows))


def _tar_members(data: bytes) -> dict[str, bytes]:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tf:
        return {m.name: tf.extractfile(m).read() for m in tf.getmembers()}


def test_two_document_scenario():
    docs = _docs(
        {"id": "a1", "slug": "Hello World!", "title": "Hello", "body": "hi", "versions": [{"v": 1}]},
        {"id": "b2", "slug": "", "title": "Empty", "body": ""},
    )
    entries = build_archive(docs, created_at=_WHEN)
    names = [e.name for e in entries]
    assert names == ["docs.json", "meta.json", "versions.json", "docs/hello-world--a1.md"]

    by_name = {e.name: e.data for e in entries}
    meta = json.loads(by_name["meta.json"])
    assert meta == {"created_at": "2024-05-01T12:30:00Z", "doc_count": 2, "format": "json", "version": "1"}
    assert json.loads(by_name["versions.json"]) == [{"doc_id": "a1", "versions": [{"v": 1}]}]
    assert by_name["docs/hello-world--a1.md"] == b"hi"
    assert [d["id"] for d in json.loads(by_name["docs.json"])] == ["a1", "b2"]


def test_archive_with_one_versioned_and_one_plain_document():
    docs = _docs(
        {"id": "d1", "slug": "first", "body": "one", "versions": [{"id": "v1", "hash": "h1"}]},
        {"id": "d2", "slug": "second", "body": "two"},
    )
    members = _tar_members(export_bytes(docs, "tar", created_at=_WHEN))
    assert sorted(members) == ["docs.json", "docs/first-d1.md", "docs/second-d2.md", "meta.json", "versions.json"]
    assert json.loads(members["versions.json"]) == [{"doc_id": "d1", "versions": [{"id": "v1", "hash": "h1"}]}]


def test_versions_json_absent_when_no_document_has_versions():
    docs = _docs({"id": "a", "body": "x", "versions": []}, {"id": "b", "body": "y"})
    assert "versions.json" not in [e.name for e in build_archive(docs, created_at=_WHEN)]


def test_sanitize_slug_rules():
    assert sanitize_slug("Hello World!") == "hello-world-"
    assert sanitize_slug("") == "doc"
    assert sanitize_slug(None) == "doc"
    assert len(sanitize_slug("x" * 100)) == SLUG_MAX_LEN
    once = sanitize_slug("Mixed_Case/Path.md")
    assert sanitize_slug(once) == once
    assert content_entry_name("id1", "a b") == "docs/a-b-id1.md"


def test_duplicate_document_ids_are_rejected():
    docs = _docs({"id": "a", "slug": "s", "body": "1"}, {"id": "a", "slug": "s", "body": "2"})
    with pytest.raises(OpError):
        build_archive(docs, created_at=_WHEN)


def test_decode_rejects_bad_rows():
    with pytest.raises(DecodeError):
        decode_export_documents({"id": "a"})
    with pytest.raises(DecodeError):
        decode_export_documents([{"slug": "no-id"}])
    with pytest.raises(DecodeError):
        decode_export_documents([{"id": "a", "versions": "nope"}])
    assert decode_export_documents(None) == []


def test_formats_preserve_documents():
    rows = [{"id": "a", "slug": "one", "title": "One", "body": "b1", "extra": {"k": 1}}, {"id": "b", "body": "b2"}]
    docs = _docs(*rows)

    assert json.loads(export_bytes(docs, "json")) == rows

    lines = export_bytes(docs, "jsonl").decode("utf-8").splitlines()
    assert [json.loads(line) for line in lines] == rows

    members = _tar_members(export_bytes(docs, "tar", created_at=_WHEN))
    assert json.loads(members["docs.json"]) == rows
    assert json.loads(members["meta.json"])["doc_count"] == 2
    assert members["docs/one-a.md"] == b"b1"
    assert members["docs/doc-b.md"] == b"b2"


def test_export_documents_writes_destination(tmp_path):
    dest = tmp_path / "out.jsonl"
    assert export_documents(_docs({"id": "a"}), "jsonl", dest) == dest
    assert json.loads(dest.read_text()) == {"id": "a"}
    assert [p.name for p in tmp_path.iterdir()] == ["out.jsonl"]


def test_export_documents_leaves_no_file_on_failure(tmp_path):
    docs = _docs({"id": "a", "slug": "s", "body": "1"}, {"id": "a", "slug": "s", "body": "2"})
    dest = tmp_path / "out.tar"
    with pytest.raises(OpError):
        export_documents(docs, "tar", dest)
    assert list(tmp_path.iterdir()) == []


def test_export_documents_missing_directory_is_op_error(tmp_path):
    with pytest.raises(OpError) as ei:
        export_documents(_docs({"id": "a"}), "json", tmp_path / "nope" / "out.json")
    assert "export write failed" in str(ei.value)


def test_export_documents_rejects_unknown_format(tmp_path):
    with pytest.raises(UsageError):
        export_documents([], "xml", tmp_path / "out.xml")


def test_sanitize_slug_without_any_valid_character_is_doc():
    assert sanitize_slug("!!!") == "doc"
    assert sanitize_slug("ÄÖÜ") == "doc"
    assert sanitize_slug("doc") == "doc"
    assert content_entry_name("x1", "???") == "docs/doc-x1.md"


def test_colliding_entry_names_report_both_documents():
    docs = _docs({"id": "b-c", "slug": "a", "body": "1"}, {"id": "c", "slug": "a-b", "body": "2"})
    with pytest.raises(OpError) as ei:
        build_archive(docs, created_at=_WHEN)
    msg = str(ei.value)
    assert "docs/a-b-c.md" in msg
    assert "'b-c'" in msg and "'c'" in msg
    assert "unique" not in msg


@pytest.mark.parametrize("bad_id", ["../../../tmp/evil", "a/b", "a\\b", ".."])
def test_decode_rejects_ids_unusable_as_entry_names(bad_id):
    with pytest.raises(DecodeError):
        decode_export_documents([{"id": bad_id, "slug": "s", "body": "x"}])
