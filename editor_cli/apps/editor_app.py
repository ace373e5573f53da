from __future__ import annotations

import argparse
import contextlib
import io
import sys
from typing import Any

import click
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..cli_shared import (
    AGENT_EDITOR_OUTPUT,
    AGENT_EDITOR_SERVER,
    AGENT_EDITOR_TIMEOUT,
    AGENT_EDITOR_TOKEN,
    DEFAULT_SERVER_URL,
    GlobalOpts,
    OpError,
    UsageError,
    _eprint,
    _env_or_none,
    _parse_output_format,
    _parse_timeout,
)
from ..editor_commands import (
    DEFAULT_SIDECAR_LOG,
    cmd_ai_key_has,
    cmd_ai_key_set,
    cmd_ai_providers_disable,
    cmd_ai_providers_enable,
    cmd_ai_providers_list,
    cmd_ai_providers_test,
    cmd_ai_run,
    cmd_ai_traces_list,
    cmd_doc_create,
    cmd_doc_delete,
    cmd_doc_get,
    cmd_doc_search,
    cmd_doc_update,
    cmd_export_db,
    cmd_export_docs,
    cmd_fts_bench,
    cmd_fts_query,
    cmd_fts_stats,
    cmd_graph_backlinks,
    cmd_graph_neighbors,
    cmd_graph_path,
    cmd_graph_related,
    cmd_import_docs,
    cmd_plugin_call_core,
    cmd_plugin_core_list,
    cmd_plugin_disable,
    cmd_plugin_enable,
    cmd_plugin_events_tail,
    cmd_plugin_info,
    cmd_plugin_list,
    cmd_plugin_perms_set,
    cmd_plugin_remove,
    cmd_plugin_start_core,
    cmd_plugin_stop_core,
    cmd_repo_add,
    cmd_repo_default_provider_set,
    cmd_repo_info,
    cmd_repo_list,
    cmd_repo_remove,
    cmd_repo_scan,
    cmd_settings_default_provider_get,
    cmd_settings_default_provider_set,
    cmd_version,
)

PROG_NAME = "agent-editor"


def _bootstrap_env() -> None:
    # Discover and load .env without overriding already-exported values.
    load_dotenv()


def _apply_global_env(args: argparse.Namespace) -> GlobalOpts:
    server = (getattr(args, "server", None) or _env_or_none(AGENT_EDITOR_SERVER) or DEFAULT_SERVER_URL).strip()
    if not server.startswith(("http://", "https://")):
        raise UsageError(f"invalid --server {server!r}: expected an http(s) URL")
    token = str(getattr(args, "token", None) or _env_or_none(AGENT_EDITOR_TOKEN) or "").strip()
    timeout = _parse_timeout(getattr(args, "timeout", None) or _env_or_none(AGENT_EDITOR_TIMEOUT))
    output = _parse_output_format(getattr(args, "output", None) or _env_or_none(AGENT_EDITOR_OUTPUT))
    return GlobalOpts(
        server=server,
        token=token,
        timeout=timeout,
        output=output,
        quiet=bool(getattr(args, "quiet", False)),
        verbose=bool(getattr(args, "verbose", False)),
    )


_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}")


def _root_help_text(*, root_app: typer.Typer, prog_name: str) -> str:
    buf = io.StringIO()
    try:
        with contextlib.redirect_stdout(buf):
            try:
                root_app(args=["--help"], prog_name=prog_name, standalone_mode=False)
            except (typer.Exit, click.ClickException):
                pass
    except Exception:
        return ""
    return str(buf.getvalue() or "").strip()


def _render_usage_error_with_help(
    *,
    message: str,
    ctx: click.Context | None = None,
    fallback_help: str = "",
) -> None:
    _rich_error(message)
    help_text = ""
    if isinstance(ctx, click.Context):
        try:
            help_text = str(ctx.get_help() or "").strip()
        except Exception:
            help_text = ""
    if not help_text:
        help_text = str(fallback_help or "").strip()
    if help_text:
        _eprint("")
        _eprint(help_text)


def _namespace(**kwargs: Any) -> argparse.Namespace:
    return argparse.Namespace(**kwargs)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROG_NAME} {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name=PROG_NAME,
    help="Command-line client for the agent-editor knowledge service.",
    no_args_is_help=True,
    add_completion=False,
)

repo_app = typer.Typer(help="Register, scan and inspect repositories", no_args_is_help=True)
repo_provider_app = typer.Typer(help="Per-repo default AI provider", no_args_is_help=True)
doc_app = typer.Typer(help="Create, update, fetch and search documents", no_args_is_help=True)
graph_app = typer.Typer(help="Link graph queries", no_args_is_help=True)
fts_app = typer.Typer(help="Full-text search helpers", no_args_is_help=True)
ai_app = typer.Typer(help="AI runs and provider management", no_args_is_help=True)
ai_providers_app = typer.Typer(help="AI provider registry", no_args_is_help=True)
ai_key_app = typer.Typer(help="Provider API keys", no_args_is_help=True)
ai_traces_app = typer.Typer(help="AI run traces", no_args_is_help=True)
plugin_app = typer.Typer(help="Plugin registry and core plugin processes", no_args_is_help=True)
plugin_perms_app = typer.Typer(help="Plugin permissions", no_args_is_help=True)
plugin_events_app = typer.Typer(help="Plugin event log", no_args_is_help=True)
import_app = typer.Typer(help="Import documents into a repo", no_args_is_help=True)
export_app = typer.Typer(help="Export documents or the database", no_args_is_help=True)
settings_app = typer.Typer(help="Application settings", no_args_is_help=True)
settings_provider_app = typer.Typer(help="Application default AI provider", no_args_is_help=True)

app.add_typer(repo_app, name="repo")
app.add_typer(doc_app, name="doc")
app.add_typer(graph_app, name="graph")
app.add_typer(fts_app, name="fts")
app.add_typer(ai_app, name="ai")
app.add_typer(plugin_app, name="plugin")
app.add_typer(import_app, name="import")
app.add_typer(export_app, name="export")
app.add_typer(settings_app, name="settings")

repo_app.add_typer(repo_provider_app, name="default-provider")
ai_app.add_typer(ai_providers_app, name="providers")
ai_providers_app.add_typer(ai_key_app, name="key")
ai_app.add_typer(ai_traces_app, name="traces")
plugin_app.add_typer(plugin_perms_app, name="perms")
plugin_app.add_typer(plugin_events_app, name="events")
settings_app.add_typer(settings_provider_app, name="default-provider")


@app.callback()
def app_callback(
    ctx: typer.Context,
    server: str | None = typer.Option(
        None,
        "--server",
        help=f"Service base URL (default: {DEFAULT_SERVER_URL}; env override: {AGENT_EDITOR_SERVER})",
    ),
    token: str | None = typer.Option(
        None,
        "--token",
        help=f"Bearer token sent with every call (env override: {AGENT_EDITOR_TOKEN})",
    ),
    timeout: str | None = typer.Option(
        None,
        "--timeout",
        help=f"Per-call timeout in seconds (default: 30; env override: {AGENT_EDITOR_TIMEOUT})",
    ),
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help=f"Output format text|json|yaml (env override: {AGENT_EDITOR_OUTPUT})",
    ),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress progress lines and traces on stderr"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Trace each RPC call on stderr"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    ns = _namespace(server=server, token=token, timeout=timeout, output=output, quiet=quiet, verbose=verbose)
    try:
        g = _apply_global_env(ns)
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    ctx.obj = {"g": g}


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("g"), GlobalOpts):
        return obj["g"]
    try:
        return _apply_global_env(_namespace())
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)


def _invoke(ctx: typer.Context, func: Any, **kwargs: Any) -> None:
    g = _ctx_global(ctx)
    args = _namespace(**kwargs)
    try:
        code = int(func(args, g))
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    except OpError as e:
        _rich_error(str(e))
        raise typer.Exit(code=1)

    if code:
        raise typer.Exit(code=code)


# --- repo -------------------------------------------------------------------


@repo_app.command("add", help="Register a directory as a repo.")
def repo_add(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Directory to register"),
    name: str | None = typer.Option(None, "--name", help="Display name (default: directory name)"),
    include: list[str] | None = typer.Option(None, "--include", help="Include glob (repeatable)"),
    exclude: list[str] | None = typer.Option(None, "--exclude", help="Exclude glob (repeatable)"),
) -> None:
    _invoke(ctx, cmd_repo_add, path=path, name=name, include=include or [], exclude=exclude or [])


@repo_app.command("scan", help="Scan a repo for documents and links.")
def repo_scan(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Repo path or name"),
    include: list[str] | None = typer.Option(None, "--include", help="Include glob (repeatable)"),
    exclude: list[str] | None = typer.Option(None, "--exclude", help="Exclude glob (repeatable)"),
    watch: bool = typer.Option(False, "--watch", help="Keep watching for changes after the scan"),
    debounce_ms: int = typer.Option(200, "--debounce-ms", help="Watch debounce in milliseconds"),
) -> None:
    _invoke(
        ctx,
        cmd_repo_scan,
        target=target,
        include=include or [],
        exclude=exclude or [],
        watch=watch,
        debounce_ms=debounce_ms,
    )


@repo_app.command("list", help="List registered repos.")
def repo_list(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_repo_list)


@repo_app.command("info", help="Show a repo by id or name.")
def repo_info(ctx: typer.Context, repo: str = typer.Argument(..., help="Repo id or name")) -> None:
    _invoke(ctx, cmd_repo_info, repo=repo)


@repo_app.command("remove", help="Unregister a repo.")
def repo_remove(ctx: typer.Context, repo: str = typer.Argument(..., help="Repo id or name")) -> None:
    _invoke(ctx, cmd_repo_remove, repo=repo)


@repo_provider_app.command("set", help="Set the default AI provider for a repo.")
def repo_default_provider_set(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repo id or name"),
    provider: str = typer.Argument(..., help="Provider name"),
) -> None:
    _invoke(ctx, cmd_repo_default_provider_set, repo=repo, provider=provider)


# --- doc --------------------------------------------------------------------


@doc_app.command("create", help="Create a document in a repo.")
def doc_create(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repo id"),
    slug: str = typer.Argument(..., help="Document slug"),
    title: str | None = typer.Option(None, "--title", help="Document title"),
    body: str | None = typer.Option(None, "--body", help="Document body"),
    body_file: str | None = typer.Option(None, "--body-file", help="Read the body from a UTF-8 file"),
) -> None:
    _invoke(ctx, cmd_doc_create, repo=repo, slug=slug, title=title, body=body, body_file=body_file)


@doc_app.command("update", help="Write a new version of a document.")
def doc_update(
    ctx: typer.Context,
    doc: str = typer.Argument(..., help="Document id"),
    body: str | None = typer.Option(None, "--body", help="New body"),
    body_file: str | None = typer.Option(None, "--body-file", help="Read the new body from a UTF-8 file"),
    message: str | None = typer.Option(None, "--message", help="Version message"),
) -> None:
    _invoke(ctx, cmd_doc_update, doc=doc, body=body, body_file=body_file, message=message)


@doc_app.command("get", help="Fetch a document.")
def doc_get(
    ctx: typer.Context,
    doc: str = typer.Argument(..., help="Document id"),
    content: bool = typer.Option(False, "--content", help="Include the current body"),
) -> None:
    _invoke(ctx, cmd_doc_get, doc=doc, content=content)


@doc_app.command("delete", help="Delete a document.")
def doc_delete(ctx: typer.Context, doc: str = typer.Argument(..., help="Document id")) -> None:
    _invoke(ctx, cmd_doc_delete, doc=doc)


@doc_app.command("search", help="Full-text search over documents.")
def doc_search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search query"),
    repo: str | None = typer.Option(None, "--repo", help="Restrict to a repo id"),
    limit: int = typer.Option(50, "--limit", help="Maximum hits"),
    offset: int = typer.Option(0, "--offset", help="Hits to skip"),
) -> None:
    _invoke(ctx, cmd_doc_search, query=query, repo=repo, limit=limit, offset=offset)


# --- graph ------------------------------------------------------------------


@graph_app.command("neighbors", help="Documents linked to or from a document.")
def graph_neighbors(
    ctx: typer.Context,
    doc: str = typer.Argument(..., help="Document id"),
    depth: int = typer.Option(1, "--depth", help="Link depth (1 or 2)"),
) -> None:
    _invoke(ctx, cmd_graph_neighbors, doc=doc, depth=depth)


@graph_app.command("backlinks", help="Documents linking to a document.")
def graph_backlinks(ctx: typer.Context, doc: str = typer.Argument(..., help="Document id")) -> None:
    _invoke(ctx, cmd_graph_backlinks, doc=doc)


@graph_app.command("path", help="Shortest link path between two documents.")
def graph_path(
    ctx: typer.Context,
    start: str = typer.Argument(..., help="Start document id"),
    end: str = typer.Argument(..., help="End document id"),
) -> None:
    _invoke(ctx, cmd_graph_path, start=start, end=end)


@graph_app.command("related", help="Documents related to a document.")
def graph_related(ctx: typer.Context, doc: str = typer.Argument(..., help="Document id")) -> None:
    _invoke(ctx, cmd_graph_related, doc=doc)


# --- fts --------------------------------------------------------------------


@fts_app.command("query", help="Run a full-text query.")
def fts_query(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search query"),
    repo: str | None = typer.Option(None, "--repo", help="Restrict to a repo id"),
) -> None:
    _invoke(ctx, cmd_fts_query, query=query, repo=repo)


@fts_app.command("stats", help="Show full-text index statistics.")
def fts_stats(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_fts_stats)


@fts_app.command("bench", help="Time repeated queries and report latency percentiles.")
def fts_bench(
    ctx: typer.Context,
    query: str = typer.Option("the", "--query", help="Query to repeat"),
    n: int = typer.Option(25, "--n", help="Number of runs"),
    repo: str | None = typer.Option(None, "--repo", help="Restrict to a repo id"),
) -> None:
    _invoke(ctx, cmd_fts_bench, query=query, n=n, repo=repo)


# --- ai ---------------------------------------------------------------------


@ai_app.command("run", help="Run an AI provider against a document.")
def ai_run(
    ctx: typer.Context,
    doc: str = typer.Argument(..., help="Document id"),
    provider: str = typer.Option("local", "--provider", help="Provider name"),
    prompt: str | None = typer.Option(None, "--prompt", help="Prompt text"),
    anchor: str | None = typer.Option(None, "--anchor", help="Anchor id inside the document"),
) -> None:
    _invoke(ctx, cmd_ai_run, doc=doc, provider=provider, prompt=prompt, anchor=anchor)


@ai_providers_app.command("list", help="List AI providers.")
def ai_providers_list(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_ai_providers_list)


@ai_providers_app.command("enable", help="Enable a provider.")
def ai_providers_enable(ctx: typer.Context, name: str = typer.Argument(..., help="Provider name")) -> None:
    _invoke(ctx, cmd_ai_providers_enable, name=name)


@ai_providers_app.command("disable", help="Disable a provider.")
def ai_providers_disable(ctx: typer.Context, name: str = typer.Argument(..., help="Provider name")) -> None:
    _invoke(ctx, cmd_ai_providers_disable, name=name)


@ai_providers_app.command("test", help="Send a short test prompt to a provider.")
def ai_providers_test(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Provider name"),
    prompt: str = typer.Option("hello", "--prompt", help="Test prompt"),
) -> None:
    _invoke(ctx, cmd_ai_providers_test, name=name, prompt=prompt)


@ai_key_app.command("set", help="Store an API key for a provider.")
def ai_key_set(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Provider name"),
    key: str = typer.Argument(..., help="API key"),
) -> None:
    _invoke(ctx, cmd_ai_key_set, name=name, key=key)


@ai_key_app.command("has", help="Report whether a provider has a stored key.")
def ai_key_has(ctx: typer.Context, name: str = typer.Argument(..., help="Provider name")) -> None:
    _invoke(ctx, cmd_ai_key_has, name=name)


@ai_traces_app.command("list", help="List AI run traces.")
def ai_traces_list(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_ai_traces_list)


# --- plugin -----------------------------------------------------------------


@plugin_app.command("list", help="List installed plugins.")
def plugin_list(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_plugin_list)


@plugin_app.command("info", help="Show a plugin.")
def plugin_info(ctx: typer.Context, name: str = typer.Argument(..., help="Plugin name")) -> None:
    _invoke(ctx, cmd_plugin_info, name=name)


@plugin_app.command("remove", help="Remove a plugin.")
def plugin_remove(ctx: typer.Context, name: str = typer.Argument(..., help="Plugin name")) -> None:
    _invoke(ctx, cmd_plugin_remove, name=name)


@plugin_app.command("enable", help="Enable a plugin.")
def plugin_enable(ctx: typer.Context, name: str = typer.Argument(..., help="Plugin name")) -> None:
    _invoke(ctx, cmd_plugin_enable, name=name)


@plugin_app.command("disable", help="Disable a plugin.")
def plugin_disable(ctx: typer.Context, name: str = typer.Argument(..., help="Plugin name")) -> None:
    _invoke(ctx, cmd_plugin_disable, name=name)


@plugin_app.command("call-core", help="Send one JSON-RPC line to a running core plugin.")
def plugin_call_core(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin name"),
    line: str = typer.Argument(..., help="Request line"),
) -> None:
    _invoke(ctx, cmd_plugin_call_core, name=name, line=line)


@plugin_app.command("start-core", help="Spawn a core plugin process.")
def plugin_start_core(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin name"),
    plugin_args: list[str] | None = typer.Argument(None, help="Arguments for the executable"),
    exec_path: str | None = typer.Option(None, "--exec", help="Path to the plugin executable"),
) -> None:
    _invoke(ctx, cmd_plugin_start_core, name=name, exec_path=exec_path, plugin_args=plugin_args or [])


@plugin_app.command("stop-core", help="Shut down a core plugin process.")
def plugin_stop_core(ctx: typer.Context, name: str = typer.Argument(..., help="Plugin name")) -> None:
    _invoke(ctx, cmd_plugin_stop_core, name=name)


@plugin_app.command("core-list", help="List running core plugin processes.")
def plugin_core_list(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_plugin_core_list)


@plugin_perms_app.command("set", help="Replace a plugin's permissions with a JSON object.")
def plugin_perms_set(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin name"),
    perms_json: str = typer.Option("{}", "--json", help="Permissions JSON object"),
) -> None:
    _invoke(ctx, cmd_plugin_perms_set, name=name, perms_json=perms_json)


@plugin_events_app.command("tail", help="Print plugin events from the sidecar log.")
def plugin_events_tail(
    ctx: typer.Context,
    file: str = typer.Option(DEFAULT_SIDECAR_LOG, "--file", help="Sidecar log file"),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Keep reading as the log grows"),
    all_lines: bool = typer.Option(False, "--all", help="Print every line, not only plugin events"),
    from_beginning: bool = typer.Option(False, "--from-beginning", help="Start at the top of the file"),
) -> None:
    _invoke(
        ctx,
        cmd_plugin_events_tail,
        file=file,
        follow=follow,
        all=all_lines,
        from_beginning=from_beginning,
    )


# --- import / export --------------------------------------------------------


@import_app.command("docs", help="Import documents from a directory or export file.")
def import_docs(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Source path"),
    repo: str | None = typer.Option(None, "--repo", help="Target an existing repo id"),
    new_repo: str | None = typer.Option(None, "--new-repo", help="Create a new repo with this name"),
    dry_run: bool = typer.Option(True, "--dry-run/--apply", help="Preview (default) or apply the import"),
    merge_strategy: str = typer.Option("keep", "--merge-strategy", help="keep|overwrite"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Stream import progress to stderr"),
) -> None:
    _invoke(
        ctx,
        cmd_import_docs,
        path=path,
        repo=repo,
        new_repo=new_repo,
        dry_run=dry_run,
        merge_strategy=merge_strategy,
        progress=progress,
    )


@export_app.command("docs", help="Export documents as json, jsonl or tar.")
def export_docs(
    ctx: typer.Context,
    repo: str | None = typer.Option(None, "--repo", help="Restrict to a repo id"),
    include_deleted: bool = typer.Option(False, "--include-deleted", help="Include deleted documents"),
    include_versions: bool = typer.Option(False, "--include-versions", help="Include version history"),
    out: str | None = typer.Option(None, "--out", help="Destination file (required for jsonl and tar)"),
    fmt: str = typer.Option("json", "--format", help="json|jsonl|tar"),
) -> None:
    _invoke(
        ctx,
        cmd_export_docs,
        repo=repo,
        include_deleted=include_deleted,
        include_versions=include_versions,
        out=out,
        format=fmt,
    )


@export_app.command("db", help="Write a backup of the service database.")
def export_db(
    ctx: typer.Context,
    out: str | None = typer.Option(None, "--out", help="Destination path"),
) -> None:
    _invoke(ctx, cmd_export_db, out=out)


# --- settings / version -----------------------------------------------------


@settings_provider_app.command("get", help="Show the application default AI provider.")
def settings_default_provider_get(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_settings_default_provider_get)


@settings_provider_app.command("set", help="Set the application default AI provider.")
def settings_default_provider_set(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider name"),
) -> None:
    _invoke(ctx, cmd_settings_default_provider_set, provider=provider)


@app.command("version", help="Print the client version.")
def version(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_version)


def _run_cli(*, root_app: typer.Typer, prog_name: str, argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    _bootstrap_env()
    try:
        result = root_app(args=argv, prog_name=prog_name, standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.exceptions.Abort:
        _rich_error("aborted")
        return 130
    except click.ClickException as e:
        if isinstance(e, click.UsageError):
            _render_usage_error_with_help(message=e.format_message(), ctx=getattr(e, "ctx", None))
            return int(e.exit_code)
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _render_usage_error_with_help(
            message=str(e),
            fallback_help=_root_help_text(root_app=root_app, prog_name=prog_name),
        )
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    return _run_cli(root_app=app, prog_name=PROG_NAME, argv=argv)


if __name__ == "__main__":
    raise SystemExit(main())
