from __future__ import annotations

import json
from pathlib import Path

import pytest

from editor_cli.cli_shared import OpError
from editor_cli.progress import (
    LineTailer,
    ProgressEvent,
    ProgressStreamer,
    parse_progress_event,
    progress_log,
)


def _event_line(**fields) -> str:
    return json.dumps(fields) + "\n"


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(text)


def test_parse_progress_event_defaults_missing_counters():
    ev = parse_progress_event('{"status":"started","total":3}')
    assert ev == ProgressEvent(status="started", total=3)


def test_parse_progress_event_rejects_bad_shapes():
    assert parse_progress_event("not json") is None
    assert parse_progress_event("[1,2]") is None
    assert parse_progress_event('{"processed":1}') is None
    assert parse_progress_event('{"status":"progress","processed":-1}') is None
    assert parse_progress_event('{"status":"progress","processed":true}') is None


def test_render_format():
    ev = ProgressEvent(status="progress", processed=2, total=5, inserted=1, updated=1, skipped=0)
    assert ev.render() == "[import] PROGRESS 2/5 inserted=1 updated=1 skipped=0"


def test_line_tailer_holds_partial_line_until_terminated(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("")
    tailer = LineTailer(path)

    _append(path, '{"status":"sta')
    assert tailer.read_lines() == []
    assert tailer.offset == 0

    _append(path, 'rted"}\n{"status":"progress"}\n')
    assert tailer.read_lines() == ['{"status":"started"}', '{"status":"progress"}']
    assert tailer.read_lines() == []


def test_line_tailer_include_partial_consumes_tail(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("a\nb")
    tailer = LineTailer(path)
    assert tailer.read_lines(include_partial=True) == ["a", "b"]
    assert tailer.offset == 3
    assert tailer.read_lines(include_partial=True) == []


def test_line_tailer_missing_file_is_empty(tmp_path):
    assert LineTailer(tmp_path / "absent.log").read_lines() == []


def test_line_tailer_seek_to_end_skips_existing(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("old\n")
    tailer = LineTailer(path)
    tailer.seek_to_end()
    _append(path, "new\n")
    assert tailer.read_lines() == ["new"]


def test_streamer_poll_renders_in_order_without_duplicates(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("")
    out: list[str] = []
    streamer = ProgressStreamer(path, emit=out.append)

    _append(path, _event_line(status="started", total=2))
    _append(path, "garbage line\n\n")
    assert streamer.poll() == 2
    _append(path, _event_line(status="progress", processed=1, total=2, inserted=1))
    assert streamer.poll() == 1
    assert streamer.poll() == 0

    assert out == [
        "[import] STARTED 0/2 inserted=0 updated=0 skipped=0",
        "[import] garbage line",
        "[import] PROGRESS 1/2 inserted=1 updated=0 skipped=0",
    ]


def test_streamer_stop_drains_trailing_terminal_event(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("")
    out: list[str] = []
    streamer = ProgressStreamer(path, interval=60.0, emit=out.append).start()

    _append(path, _event_line(status="progress", processed=1, total=1, inserted=1))
    _append(path, _event_line(status="done", processed=1, total=1, inserted=1))
    streamer.stop()

    assert out == [
        "[import] PROGRESS 1/1 inserted=1 updated=0 skipped=0",
        "[import] DONE 1/1 inserted=1 updated=0 skipped=0",
    ]
    assert streamer.emitted == 2
    assert streamer.offset == path.stat().st_size


def test_streamer_stop_is_bounded_without_terminal_event(tmp_path):
    path = tmp_path / "p.log"
    path.write_text("")
    out: list[str] = []
    with ProgressStreamer(path, interval=60.0, drain_timeout=0.05, emit=out.append):
        _append(path, _event_line(status="progress", processed=1, total=4))
    assert out == ["[import] PROGRESS 1/4 inserted=0 updated=0 skipped=0"]


def test_progress_log_removed_on_success_and_failure():
    with progress_log() as path:
        assert path.exists()
        assert path.name.startswith("agent-editor-import-progress-")
    assert not path.exists()

    failing: Path | None = None
    try:
        with progress_log() as failing:
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert failing is not None
    assert not failing.exists()


def test_line_tailer_unreadable_path_is_op_error(tmp_path):
    with pytest.raises(OpError) as ei:
        LineTailer(tmp_path).read_lines()
    assert str(tmp_path) in str(ei.value)


def test_streamer_reports_read_failure_once_and_exits(tmp_path):
    out: list[str] = []
    streamer = ProgressStreamer(tmp_path, interval=60.0, emit=out.append).start()
    streamer.stop()
    assert isinstance(streamer.error, OpError)
    assert len(out) == 1
    assert out[0].startswith("[import] progress unavailable:")


def test_progress_log_wraps_tempfile_failure(monkeypatch):
    def failing_mkstemp(**_kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("editor_cli.progress.tempfile.mkstemp", failing_mkstemp)
    with pytest.raises(OpError) as ei:
        with progress_log():
            pass
    assert "Permission denied" in str(ei.value)
