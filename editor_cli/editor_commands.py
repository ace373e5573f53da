from __future__ import annotations

import argparse
import dataclasses
import json
import sys
import time
from pathlib import Path
from typing import Any

from . import __version__
from .cli_shared import (
    GlobalOpts,
    OpError,
    UsageError,
    _load_json_object,
    _parse_globs,
    _require_str,
)
from .export_archive import EXPORT_FORMATS, decode_export_documents, export_documents
from .output import print_result
from .progress import LineTailer, ProgressStreamer, progress_log
from .remote_types import (
    AiRunParams,
    Deleted,
    DocCreateParams,
    DocCreated,
    DocUpdateParams,
    DocVersion,
    ExportDocsParams,
    GraphNeighborsParams,
    ImportDocsParams,
    Removed,
    RepoAddParams,
    RepoAdded,
    RepoEntry,
    ScanRepoParams,
    ScanSummary,
    SearchParams,
    expect_object,
    expect_object_list,
    expect_str_list,
)
from .rpc_client import RpcClient

PLUGIN_EVENTS_POLL_SECONDS = 0.25
PLUGIN_EVENT_MARKER = "][plugin:"
DEFAULT_SIDECAR_LOG = ".sidecar.log"
DEFAULT_PROVIDER_SETTING = "default_provider"


def _client(g: GlobalOpts) -> RpcClient:
    return RpcClient(base_url=g.server, token=g.token, timeout=g.timeout, verbose=g.verbose and not g.quiet)


def _emit(g: GlobalOpts, value: Any, *, text: str | None = None) -> None:
    if g.output == "text" and text is not None:
        sys.stdout.write(text + "\n")
        return
    print_result(value, g.output)


def _print_table(*, headers: list[str], rows: list[list[str]], empty_message: str) -> None:
    if not rows:
        sys.stdout.write(f"{empty_message}\n")
        return
    widths: list[int] = [len(h) for h in headers]
    for row in rows:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], len(val))
    header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    divider_line = "  ".join("-" * widths[i] for i in range(len(headers)))
    sys.stdout.write(header_line.rstrip() + "\n")
    sys.stdout.write(divider_line + "\n")
    for row in rows:
        sys.stdout.write("  ".join(row[i].ljust(widths[i]) for i in range(len(headers))).rstrip() + "\n")


def _cell(value: Any) -> str:
    text = str(value or "").strip()
    return text or "-"


def _read_body(args: argparse.Namespace) -> str | None:
    body = getattr(args, "body", None)
    body_file = getattr(args, "body_file", None)
    if body is not None and body_file:
        raise UsageError("--body and --body-file are mutually exclusive")
    if body_file:
        try:
            return Path(body_file).read_text(encoding="utf-8")
        except OSError as e:
            raise OpError(f"failed to read --body-file {body_file}: {e}") from e
    return body


# --- repo -------------------------------------------------------------------


def cmd_repo_add(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = RepoAddParams(
        path=_require_str(args.path, "path", hint="positional <path>"),
        name=(args.name or "").strip() or None,
        include=_parse_globs(args.include),
        exclude=_parse_globs(args.exclude),
    )
    res = _client(g).call("repos_add", params.to_params(), decode=RepoAdded.from_payload)
    _emit(g, res, text=f"repo added: {res.repo_id}")
    return 0


def cmd_repo_scan(args: argparse.Namespace, g: GlobalOpts) -> int:
    if args.debounce_ms < 0:
        raise UsageError(f"invalid --debounce-ms {args.debounce_ms}: must be >= 0")
    params = ScanRepoParams(
        repo_path=_require_str(args.target, "repo", hint="positional <path|name>"),
        include=_parse_globs(args.include),
        exclude=_parse_globs(args.exclude),
        watch=bool(args.watch),
        debounce_ms=int(args.debounce_ms),
    )
    res = _client(g).call("scan_repo", params.to_params(), decode=ScanSummary.from_payload)
    _emit(
        g,
        res,
        text=(
            f"scanned {res.files_scanned} file(s): docs_added={res.docs_added} "
            f"errors={res.errors} job={res.job_id or '-'}"
        ),
    )
    return 0


def cmd_repo_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    repos = _client(g).call("repos_list", {}, decode=RepoEntry.list_from_payload)
    if g.output != "text":
        print_result(repos, g.output)
        return 0
    _print_table(
        headers=["id", "name", "path"],
        rows=[[_cell(r.id), _cell(r.name), _cell(r.path)] for r in repos],
        empty_message="No repos.",
    )
    return 0


def cmd_repo_info(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("repos_info", {"id_or_name": args.repo}, decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_repo_remove(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("repos_remove", {"id_or_name": args.repo}, decode=Removed.from_payload)
    _emit(g, res, text=f"removed: {'true' if res.removed else 'false'}")
    return 0


def cmd_repo_default_provider_set(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call(
        "repos_set_default_provider",
        {"id_or_name": args.repo, "provider": args.provider},
        decode=expect_object,
    )
    print_result(res, g.output)
    return 0


# --- doc --------------------------------------------------------------------


def cmd_doc_create(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = DocCreateParams(
        repo_id=_require_str(args.repo, "repo", hint="positional <repo>"),
        slug=_require_str(args.slug, "slug", hint="positional <slug>"),
        title=args.title or "",
        body=_read_body(args) or "",
    )
    res = _client(g).call("docs_create", params.to_params(), decode=DocCreated.from_payload)
    _emit(g, res, text=f"doc created: {res.doc_id}")
    return 0


def cmd_doc_update(args: argparse.Namespace, g: GlobalOpts) -> int:
    body = _read_body(args)
    if body is None:
        raise UsageError("missing body (pass --body or --body-file)")
    params = DocUpdateParams(doc_id=args.doc, body=body, message=(args.message or None))
    res = _client(g).call("docs_update", params.to_params(), decode=DocVersion.from_payload)
    _emit(g, res, text=f"version: {res.version_id}")
    return 0


def cmd_doc_get(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("docs_get", {"doc_id": args.doc, "content": bool(args.content)}, decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_doc_delete(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("docs_delete", {"doc_id": args.doc}, decode=Deleted.from_payload)
    _emit(g, res, text=f"deleted: {'true' if res.deleted else 'false'}")
    return 0


def cmd_doc_search(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = SearchParams(
        query=args.query,
        repo_id=(args.repo or None),
        limit=int(args.limit),
        offset=int(args.offset),
    )
    res = _client(g).call("search", params.to_params(), decode=expect_object_list)
    print_result(res, g.output)
    return 0


# --- graph ------------------------------------------------------------------


def cmd_graph_neighbors(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = GraphNeighborsParams(doc_id=args.doc, depth=int(args.depth))
    res = _client(g).call("graph_neighbors", params.to_params(), decode=expect_object_list)
    print_result(res, g.output)
    return 0


def cmd_graph_backlinks(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("graph_backlinks", {"doc_id": args.doc}, decode=expect_object_list)
    print_result(res, g.output)
    return 0


def cmd_graph_path(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call(
        "graph_path",
        {"start_id": args.start, "end_id": args.end},
        decode=expect_str_list,
    )
    if g.output == "text" and not res:
        sys.stdout.write("No path.\n")
        return 0
    print_result(res, g.output)
    return 0


def cmd_graph_related(args: argparse.Namespace, g: GlobalOpts) -> int:
    res = _client(g).call("graph_related", {"doc_id": args.doc}, decode=expect_object_list)
    print_result(res, g.output)
    return 0


# --- fts --------------------------------------------------------------------


def cmd_fts_query(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = SearchParams(query=args.query, repo_id=(args.repo or None))
    res = _client(g).call("search", params.to_params(), decode=expect_object_list)
    print_result(res, g.output)
    return 0


def cmd_fts_stats(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    res = _client(g).call("fts_stats", {}, decode=expect_object)
    print_result(res, g.output)
    return 0


def _percentile(sorted_ms: list[float], p: float) -> float:
    if not sorted_ms:
        return 0.0
    idx = int(p * (len(sorted_ms) - 1) + 0.5)
    idx = min(max(idx, 0), len(sorted_ms) - 1)
    return sorted_ms[idx]


def cmd_fts_bench(args: argparse.Namespace, g: GlobalOpts) -> int:
    runs = int(args.n)
    if runs <= 0:
        raise UsageError(f"invalid --n {runs}: must be positive")
    params = SearchParams(query=(args.query or "the"), repo_id=(args.repo or None)).to_params()
    client = _client(g)
    durations_ms: list[float] = []
    for _ in range(runs):
        started = time.perf_counter()
        client.call("search", params, decode=expect_object_list)
        durations_ms.append((time.perf_counter() - started) * 1000.0)
    ordered = sorted(durations_ms)
    summary = {
        "runs": runs,
        "avg_ms": round(sum(durations_ms) / len(durations_ms), 3),
        "p50_ms": round(_percentile(ordered, 0.50), 3),
        "p95_ms": round(_percentile(ordered, 0.95), 3),
        "p99_ms": round(_percentile(ordered, 0.99), 3),
    }
    _emit(
        g,
        summary,
        text=(
            f"runs={summary['runs']} avg={summary['avg_ms']}ms p50={summary['p50_ms']}ms "
            f"p95={summary['p95_ms']}ms p99={summary['p99_ms']}ms"
        ),
    )
    return 0


# --- ai ---------------------------------------------------------------------


def cmd_ai_run(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = AiRunParams(
        doc_id=args.doc,
        provider=(args.provider or "local"),
        prompt=(args.prompt or None),
        anchor_id=(args.anchor or None),
    )
    res = _client(g).call("ai_run", params.to_params(), decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_ai_providers_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    res = _client(g).call("ai_providers_list", {}, decode=expect_object_list)
    print_result(res, g.output)
    return 0


def _ai_provider_call(method: str, ns: argparse.Namespace, g: GlobalOpts, extra: dict[str, Any] | None = None) -> int:
    res = _client(g).call(method, {"name": ns.name, **(extra or {})}, decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_ai_providers_enable(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _ai_provider_call("ai_providers_enable", args, g)


def cmd_ai_providers_disable(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _ai_provider_call("ai_providers_disable", args, g)


def cmd_ai_providers_test(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _ai_provider_call("ai_provider_test", args, g, {"prompt": args.prompt or "hello"})


def cmd_ai_key_set(args: argparse.Namespace, g: GlobalOpts) -> int:
    key = _require_str(args.key, "key", hint="positional <key>")
    return _ai_provider_call("ai_provider_key_set", args, g, {"key": key})


def cmd_ai_key_has(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _ai_provider_call("ai_provider_key_get", args, g)


def cmd_ai_traces_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    _emit(
        g,
        {"traces": [], "note": "the service does not expose trace listing; 'ai run' returns trace_id"},
        text="trace listing is not exposed by the service; 'ai run' returns a trace_id per run",
    )
    return 0


# --- plugin -----------------------------------------------------------------


def cmd_plugin_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    res = _client(g).call("plugins_list", {}, decode=expect_object_list)
    print_result(res, g.output)
    return 0


def _plugin_call(method: str, ns: argparse.Namespace, g: GlobalOpts, extra: dict[str, Any] | None = None) -> int:
    res = _client(g).call(method, {"name": ns.name, **(extra or {})}, decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_plugin_info(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_info", args, g)


def cmd_plugin_remove(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_remove", args, g)


def cmd_plugin_enable(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_enable", args, g)


def cmd_plugin_disable(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_disable", args, g)


def cmd_plugin_call_core(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_call_core", args, g, {"line": args.line})


def cmd_plugin_start_core(args: argparse.Namespace, g: GlobalOpts) -> int:
    exec_path = _require_str(args.exec_path, "--exec", hint="path to the core plugin executable")
    extra: dict[str, Any] = {"exec": exec_path}
    if args.plugin_args:
        extra["args"] = list(args.plugin_args)
    return _plugin_call("plugins_spawn_core", args, g, extra)


def cmd_plugin_stop_core(args: argparse.Namespace, g: GlobalOpts) -> int:
    return _plugin_call("plugins_shutdown_core", args, g)


def cmd_plugin_core_list(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    res = _client(g).call("plugins_core_list", {}, decode=expect_object_list)
    print_result(res, g.output)
    return 0


def cmd_plugin_perms_set(args: argparse.Namespace, g: GlobalOpts) -> int:
    perms = _load_json_object(raw=(args.perms_json or "{}"), label="--json permissions")
    return _plugin_call(
        "plugins_upsert",
        args,
        g,
        {"permissions": json.dumps(perms, separators=(",", ":"), sort_keys=True)},
    )


def cmd_plugin_events_tail(args: argparse.Namespace, g: GlobalOpts) -> int:
    del g
    path = Path(args.file or DEFAULT_SIDECAR_LOG)
    if not path.exists():
        raise OpError(f"log file not found: {path}")
    if not path.is_file():
        raise OpError(f"log file is not a regular file: {path}")
    tailer = LineTailer(path)
    if not args.from_beginning:
        tailer.seek_to_end()

    def _show(lines: list[str]) -> None:
        for line in lines:
            if args.all or PLUGIN_EVENT_MARKER in line:
                sys.stdout.write(line + "\n")
        sys.stdout.flush()

    try:
        while True:
            if not args.follow:
                _show(tailer.read_lines(include_partial=True))
                return 0
            _show(tailer.read_lines())
            time.sleep(PLUGIN_EVENTS_POLL_SECONDS)
    except KeyboardInterrupt:
        return 0


# --- import / export --------------------------------------------------------


def cmd_import_docs(args: argparse.Namespace, g: GlobalOpts) -> int:
    params = ImportDocsParams(
        path=_require_str(args.path, "path", hint="positional <path>"),
        repo_id=(args.repo or "").strip() or None,
        new_repo_name=(args.new_repo or "").strip() or None,
        dry_run=bool(args.dry_run),
        merge_strategy=str(args.merge_strategy or "keep").strip().lower(),
    )
    params.validate()
    client = _client(g)

    if not args.progress or g.quiet:
        res = client.call("import_docs", params.to_params(), decode=expect_object)
        print_result(res, g.output)
        return 0

    with progress_log() as progress_path:
        call_params = dataclasses.replace(params, progress_path=str(progress_path))
        streamer = ProgressStreamer(progress_path).start()
        try:
            res = client.call("import_docs", call_params.to_params(), decode=expect_object)
        finally:
            streamer.stop()
    print_result(res, g.output)
    return 0


def cmd_export_docs(args: argparse.Namespace, g: GlobalOpts) -> int:
    fmt = str(args.format or "json").strip().lower()
    if fmt not in EXPORT_FORMATS:
        raise UsageError(f"invalid --format {fmt} (expected {'|'.join(EXPORT_FORMATS)})")
    out = str(args.out or "").strip()
    if fmt in ("jsonl", "tar") and not out:
        raise UsageError(f"--out is required when format={fmt}")
    params = ExportDocsParams(
        repo_id=(args.repo or "").strip() or None,
        include_deleted=bool(args.include_deleted),
        # the archive's versions.json is built from what the service returns
        include_versions=bool(args.include_versions) or fmt == "tar",
    )
    docs = _client(g).call("export_docs", params.to_params(), decode=decode_export_documents)
    if not out:
        print_result([d.to_dict() for d in docs], g.output)
        return 0
    dest = export_documents(docs, fmt, out)
    _emit(
        g,
        {"exported": len(docs), "out": str(dest), "format": fmt},
        text=f"exported {len(docs)} docs to {dest} ({fmt})",
    )
    return 0


def cmd_export_db(args: argparse.Namespace, g: GlobalOpts) -> int:
    out = _require_str(args.out, "--out", hint="destination path for the database backup")
    res = _client(g).call("export_db", {"out_path": out}, decode=expect_object)
    print_result(res, g.output)
    return 0


# --- settings / version -----------------------------------------------------


def cmd_settings_default_provider_get(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    res = _client(g).call("app_settings_get", {"key": DEFAULT_PROVIDER_SETTING}, decode=expect_object)
    print_result(res, g.output)
    return 0


def cmd_settings_default_provider_set(args: argparse.Namespace, g: GlobalOpts) -> int:
    provider = _require_str(args.provider, "provider", hint="positional <provider>")
    res = _client(g).call(
        "app_settings_set",
        {"key": DEFAULT_PROVIDER_SETTING, "value": provider},
        decode=expect_object,
    )
    print_result(res, g.output)
    return 0


def cmd_version(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    _emit(g, {"name": "agent-editor", "version": __version__}, text=f"agent-editor {__version__}")
    return 0
