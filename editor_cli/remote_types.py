"""Typed parameter bags and result shapes for the service's RPC methods.

Parameter structs are frozen dataclasses whose ``to_params()`` drops unset
optional fields, so the wire payload only carries what the caller asked for.
Result structs decode from the raw ``result`` value and raise ``DecodeError``
when the shape is wrong; ``expect_object``/``expect_list`` are the generic
pass-through decoders for results the CLI only re-renders.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .cli_shared import DecodeError, UsageError

MERGE_STRATEGIES = ("keep", "overwrite")
DEFAULT_AI_PROVIDER = "local"
DEFAULT_SEARCH_LIMIT = 50


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _params_of(obj: Any) -> dict[str, Any]:
    return _compact(asdict(obj))


def expect_object(payload: Any) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise DecodeError(f"expected object, got {type(payload).__name__}")
    return payload


def expect_list(payload: Any) -> list[Any]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise DecodeError(f"expected list, got {type(payload).__name__}")
    return payload


def expect_object_list(payload: Any) -> list[dict[str, Any]]:
    items = expect_list(payload)
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise DecodeError(f"expected object at index {i}, got {type(item).__name__}")
    return items


def expect_str_list(payload: Any) -> list[str]:
    items = expect_list(payload)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise DecodeError(f"expected string at index {i}, got {type(item).__name__}")
    return items


def _field(obj: dict[str, Any], key: str, kind: type | tuple[type, ...], *, default: Any = None) -> Any:
    if key not in obj or obj[key] is None:
        if default is not None:
            return default
        raise DecodeError(f"missing field {key!r}")
    val = obj[key]
    # bool is an int subclass; never accept it as a counter.
    if isinstance(val, bool) and kind is int:
        raise DecodeError(f"field {key!r}: expected int, got bool")
    if not isinstance(val, kind):
        raise DecodeError(f"field {key!r}: expected {getattr(kind, '__name__', kind)}, got {type(val).__name__}")
    return val


# --- parameters -------------------------------------------------------------


@dataclass(frozen=True)
class RepoAddParams:
    path: str
    name: str | None = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    def to_params(self) -> dict[str, Any]:
        return _params_of(self)


@dataclass(frozen=True)
class ScanRepoParams:
    repo_path: str
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    watch: bool = False
    debounce_ms: int = 200

    def to_params(self) -> dict[str, Any]:
        return {
            "repo_path": self.repo_path,
            "filters": {"include": list(self.include), "exclude": list(self.exclude)},
            "watch": self.watch,
            "debounce": self.debounce_ms,
        }


@dataclass(frozen=True)
class DocCreateParams:
    repo_id: str
    slug: str
    title: str = ""
    body: str = ""

    def to_params(self) -> dict[str, Any]:
        return _params_of(self)


@dataclass(frozen=True)
class DocUpdateParams:
    doc_id: str
    body: str
    message: str | None = None

    def to_params(self) -> dict[str, Any]:
        return _params_of(self)


@dataclass(frozen=True)
class SearchParams:
    query: str
    repo_id: str | None = None
    limit: int = DEFAULT_SEARCH_LIMIT
    offset: int = 0

    def to_params(self) -> dict[str, Any]:
        if self.limit <= 0:
            raise UsageError(f"invalid --limit {self.limit}: must be positive")
        if self.offset < 0:
            raise UsageError(f"invalid --offset {self.offset}: must be >= 0")
        return _params_of(self)


@dataclass(frozen=True)
class GraphNeighborsParams:
    doc_id: str
    depth: int = 1

    def to_params(self) -> dict[str, Any]:
        if self.depth not in (1, 2):
            raise UsageError(f"invalid --depth {self.depth} (expected 1 or 2)")
        return _params_of(self)


@dataclass(frozen=True)
class AiRunParams:
    doc_id: str
    provider: str = DEFAULT_AI_PROVIDER
    prompt: str | None = None
    anchor_id: str | None = None

    def to_params(self) -> dict[str, Any]:
        return _params_of(self)


@dataclass(frozen=True)
class ExportDocsParams:
    repo_id: str | None = None
    include_deleted: bool = False
    include_versions: bool = False

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.repo_id:
            params["repo_id"] = self.repo_id
        if self.include_deleted:
            params["include_deleted"] = True
        if self.include_versions:
            params["include_versions"] = True
        return params


@dataclass(frozen=True)
class ImportDocsParams:
    path: str
    repo_id: str | None = None
    new_repo_name: str | None = None
    dry_run: bool = True
    merge_strategy: str = "keep"
    progress_path: str | None = None

    def validate(self) -> None:
        if not self.repo_id and not self.new_repo_name:
            raise UsageError("specify --repo or --new-repo")
        if self.repo_id and self.new_repo_name:
            raise UsageError("--repo and --new-repo are mutually exclusive")
        if self.merge_strategy not in MERGE_STRATEGIES:
            raise UsageError(
                f"invalid --merge-strategy {self.merge_strategy!r} (expected {'|'.join(MERGE_STRATEGIES)})"
            )

    def to_params(self) -> dict[str, Any]:
        self.validate()
        return _params_of(self)


# --- results ----------------------------------------------------------------


@dataclass(frozen=True)
class RepoAdded:
    repo_id: str

    @classmethod
    def from_payload(cls, payload: Any) -> "RepoAdded":
        return cls(repo_id=_field(expect_object(payload), "repo_id", str))


@dataclass(frozen=True)
class ScanSummary:
    job_id: str
    files_scanned: int
    docs_added: int
    errors: int

    @classmethod
    def from_payload(cls, payload: Any) -> "ScanSummary":
        obj = expect_object(payload)
        return cls(
            job_id=_field(obj, "job_id", str, default=""),
            files_scanned=_field(obj, "files_scanned", int, default=0),
            docs_added=_field(obj, "docs_added", int, default=0),
            errors=_field(obj, "errors", int, default=0),
        )


@dataclass(frozen=True)
class RepoEntry:
    id: str
    name: str
    path: str

    @classmethod
    def list_from_payload(cls, payload: Any) -> list["RepoEntry"]:
        return [
            cls(
                id=_field(obj, "id", str),
                name=_field(obj, "name", str, default=""),
                path=_field(obj, "path", str, default=""),
            )
            for obj in expect_object_list(payload)
        ]


@dataclass(frozen=True)
class Removed:
    removed: bool

    @classmethod
    def from_payload(cls, payload: Any) -> "Removed":
        return cls(removed=_field(expect_object(payload), "removed", bool))


@dataclass(frozen=True)
class Deleted:
    deleted: bool

    @classmethod
    def from_payload(cls, payload: Any) -> "Deleted":
        return cls(deleted=_field(expect_object(payload), "deleted", bool))


@dataclass(frozen=True)
class DocCreated:
    doc_id: str

    @classmethod
    def from_payload(cls, payload: Any) -> "DocCreated":
        return cls(doc_id=_field(expect_object(payload), "doc_id", str))


@dataclass(frozen=True)
class DocVersion:
    version_id: str

    @classmethod
    def from_payload(cls, payload: Any) -> "DocVersion":
        return cls(version_id=_field(expect_object(payload), "version_id", str))


def to_plain(value: Any) -> Any:
    """Convert result dataclasses (or lists of them) into plain JSON values."""
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if hasattr(value, "__dataclass_fields__"):
        return asdict(value)
    return value
