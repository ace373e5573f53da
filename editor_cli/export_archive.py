"""Serialise exported documents as JSON, JSON Lines or a tar archive.

The tar layout is self-describing:

- ``docs.json``: every exported document, exactly as the service returned it
- ``meta.json``: ``created_at``, ``doc_count``, ``format`` and ``version``
- ``versions.json``: ``{doc_id, versions}`` for documents that carry versions
  (absent when none do)
- ``docs/<slug>-<id>.md``: one file per document with a non-empty body

Nothing here talks to the network; callers hand in documents already fetched
through ``export_docs``.
"""

from __future__ import annotations

import contextlib
import io
import json
import os
import re
import tarfile
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Iterable

from .cli_shared import DecodeError, OpError, UsageError

EXPORT_FORMATS = ("json", "jsonl", "tar")
ARCHIVE_FORMAT_VERSION = "1"
ARCHIVE_DOCS_FORMAT = "json"
ARCHIVE_ENTRY_MODE = 0o600
SLUG_MAX_LEN = 40

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9_-]")
_SLUG_VALID_RE = re.compile(r"[a-z0-9_-]")
_ID_FORBIDDEN = ("/", "\\", "\x00")


@dataclass(frozen=True)
class ExportDocument:
    id: str
    slug: str = ""
    title: str = ""
    body: str | None = None
    versions: list[Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, obj: Any, *, index: int = 0) -> "ExportDocument":
        if not isinstance(obj, dict):
            raise DecodeError(f"export row {index}: expected object, got {type(obj).__name__}")
        doc_id = obj.get("id")
        if not isinstance(doc_id, str) or not doc_id.strip():
            raise DecodeError(f"export row {index}: missing string field 'id'")
        if doc_id in (".", "..") or any(ch in doc_id for ch in _ID_FORBIDDEN):
            raise DecodeError(f"export row {index}: id {doc_id!r} cannot be used in an archive entry name")
        body = obj.get("body")
        if body is not None and not isinstance(body, str):
            raise DecodeError(f"export row {index}: field 'body' must be a string")
        versions = obj.get("versions")
        if versions is not None and not isinstance(versions, list):
            raise DecodeError(f"export row {index}: field 'versions' must be a list")
        return cls(
            id=doc_id,
            slug=str(obj.get("slug") or ""),
            title=str(obj.get("title") or ""),
            body=body,
            versions=versions,
            raw=dict(obj),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        out: dict[str, Any] = {"id": self.id, "slug": self.slug, "title": self.title}
        if self.body is not None:
            out["body"] = self.body
        if self.versions is not None:
            out["versions"] = list(self.versions)
        return out


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    data: bytes


def decode_export_documents(payload: Any) -> list[ExportDocument]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise DecodeError(f"expected list of documents, got {type(payload).__name__}")
    return [ExportDocument.from_payload(obj, index=i) for i, obj in enumerate(payload)]


def sanitize_slug(slug: str | None) -> str:
    lowered = str(slug or "").lower()
    if not _SLUG_VALID_RE.search(lowered):
        return "doc"
    return _SLUG_INVALID_RE.sub("-", lowered)[:SLUG_MAX_LEN]


def content_entry_name(doc_id: str, slug: str | None) -> str:
    return f"docs/{sanitize_slug(slug)}-{doc_id}.md"


def _utc_timestamp(when: datetime | None = None) -> str:
    dt = when or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _json_bytes(obj: Any) -> bytes:
    return (json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False) + "\n").encode("utf-8")


def render_json(docs: list[ExportDocument]) -> bytes:
    return _json_bytes([d.to_dict() for d in docs])


def write_jsonl(docs: Iterable[ExportDocument], fh: IO[bytes]) -> int:
    count = 0
    for doc in docs:
        line = json.dumps(doc.to_dict(), separators=(",", ":"), sort_keys=True, ensure_ascii=False)
        fh.write(line.encode("utf-8") + b"\n")
        count += 1
    return count


def build_archive(docs: list[ExportDocument], *, created_at: datetime | None = None) -> list[ArchiveEntry]:
    entries: list[ArchiveEntry] = [ArchiveEntry("docs.json", render_json(docs))]
    meta = {
        "created_at": _utc_timestamp(created_at),
        "doc_count": len(docs),
        "format": ARCHIVE_DOCS_FORMAT,
        "version": ARCHIVE_FORMAT_VERSION,
    }
    entries.append(ArchiveEntry("meta.json", _json_bytes(meta)))

    versions_payload = [
        {"doc_id": d.id, "versions": list(d.versions)}
        for d in docs
        if d.versions
    ]
    if versions_payload:
        entries.append(ArchiveEntry("versions.json", _json_bytes(versions_payload)))

    owners: dict[str, str] = {}
    for doc in docs:
        if not doc.body:
            continue
        name = content_entry_name(doc.id, doc.slug)
        if name in owners:
            raise OpError(
                f"duplicate archive entry {name!r}: documents {owners[name]!r} and {doc.id!r} map to the same name"
            )
        owners[name] = doc.id
        entries.append(ArchiveEntry(name, doc.body.encode("utf-8")))
    return entries


def write_tar(entries: list[ArchiveEntry], fh: IO[bytes], *, mtime: float | None = None) -> None:
    stamp = int(mtime if mtime is not None else datetime.now(timezone.utc).timestamp())
    with tarfile.open(fileobj=fh, mode="w", format=tarfile.PAX_FORMAT) as tf:
        for entry in entries:
            info = tarfile.TarInfo(name=entry.name)
            info.size = len(entry.data)
            info.mode = ARCHIVE_ENTRY_MODE
            info.mtime = stamp
            tf.addfile(info, io.BytesIO(entry.data))


def _write_format(docs: list[ExportDocument], fmt: str, fh: IO[bytes], *, created_at: datetime | None) -> None:
    if fmt == "json":
        fh.write(render_json(docs))
    elif fmt == "jsonl":
        write_jsonl(docs, fh)
    elif fmt == "tar":
        when = created_at or datetime.now(timezone.utc)
        entries = build_archive(docs, created_at=when)
        write_tar(entries, fh, mtime=when.timestamp())
    else:
        raise UsageError(f"invalid --format {fmt} (expected {'|'.join(EXPORT_FORMATS)})")


def export_bytes(docs: list[ExportDocument], fmt: str, *, created_at: datetime | None = None) -> bytes:
    buf = io.BytesIO()
    _write_format(docs, fmt, buf, created_at=created_at)
    return buf.getvalue()


def export_documents(
    docs: list[ExportDocument],
    fmt: str,
    out_path: str | os.PathLike[str],
    *,
    created_at: datetime | None = None,
) -> Path:
    """Write ``docs`` to ``out_path`` in ``fmt``; the file appears only once complete."""
    if fmt not in EXPORT_FORMATS:
        raise UsageError(f"invalid --format {fmt} (expected {'|'.join(EXPORT_FORMATS)})")
    dest = Path(out_path)
    parent = dest.parent if str(dest.parent) else Path(".")
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=parent)
    except OSError as e:
        raise OpError(f"export write failed: {dest}: {e}") from e
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            _write_format(docs, fmt, fh, created_at=created_at)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp, 0o644)
        os.replace(tmp, dest)
    except OSError as e:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise OpError(f"export write failed: {dest}: {e}") from e
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise
    return dest
