from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from .cli_shared import OpError, _eprint

PROGRESS_POLL_INTERVAL_SECONDS = 0.25
PROGRESS_DRAIN_TIMEOUT_SECONDS = 0.15
PROGRESS_FILE_PREFIX = "agent-editor-import-progress-"
PROGRESS_FILE_SUFFIX = ".log"

# The service reports "imported"/"dry_run" where older builds wrote "done".
TERMINAL_STATUSES = frozenset({"done", "failed", "imported", "dry_run"})

_COUNTERS = ("processed", "total", "inserted", "updated", "skipped")


@dataclass(frozen=True)
class ProgressEvent:
    status: str
    processed: int = 0
    total: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def terminal(self) -> bool:
        return self.status.lower() in TERMINAL_STATUSES

    def render(self) -> str:
        return (
            f"[import] {self.status.upper()} {self.processed}/{self.total} "
            f"inserted={self.inserted} updated={self.updated} skipped={self.skipped}"
        )


def parse_progress_event(line: str) -> ProgressEvent | None:
    try:
        obj = json.loads(line)
    except ValueError:
        return None
    if not isinstance(obj, dict):
        return None
    status = obj.get("status")
    if not isinstance(status, str) or not status.strip():
        return None
    counters: dict[str, int] = {}
    for key in _COUNTERS:
        val = obj.get(key, 0)
        if val is None:
            val = 0
        if isinstance(val, bool) or not isinstance(val, int) or val < 0:
            return None
        counters[key] = val
    return ProgressEvent(status=status.strip(), **counters)


class LineTailer:
    """Reads complete lines appended to a file since the last read.

    The byte offset only moves forward and only past a newline, so a line the
    writer has not finished yet is picked up whole on a later read and no
    byte is ever returned twice.
    """

    def __init__(self, path: str | os.PathLike[str], *, offset: int = 0) -> None:
        self.path = Path(path)
        self.offset = int(offset)

    def seek_to_end(self) -> None:
        try:
            self.offset = max(self.offset, self.path.stat().st_size)
        except OSError:
            pass

    def read_lines(self, *, include_partial: bool = False) -> list[str]:
        """Return lines appended since the last read.

        With ``include_partial`` an unterminated trailing line is returned
        (and consumed) too; use it only for a final read.
        """
        try:
            with self.path.open("rb") as f:
                f.seek(self.offset)
                chunk = f.read()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise OpError(f"failed to read {self.path}: {e}") from e
        if not chunk:
            return []
        if include_partial:
            complete = chunk
        else:
            end = chunk.rfind(b"\n")
            if end < 0:
                return []
            complete = chunk[: end + 1]
        self.offset += len(complete)
        lines = complete.split(b"\n")
        if not lines[-1]:
            lines.pop()
        return [raw.decode("utf-8", errors="replace").rstrip("\r") for raw in lines]


class ProgressStreamer:
    """Renders import progress events while the import call is in flight.

    Polls ``path`` every ``interval`` seconds on a daemon thread. ``stop()``
    wakes the thread, which drains until it sees a terminal event or
    ``drain_timeout`` elapses, then exits.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        interval: float = PROGRESS_POLL_INTERVAL_SECONDS,
        drain_timeout: float = PROGRESS_DRAIN_TIMEOUT_SECONDS,
        emit: Callable[[str], Any] = _eprint,
    ) -> None:
        self.interval = float(interval)
        self.drain_timeout = float(drain_timeout)
        self._emit = emit
        self._tailer = LineTailer(path)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._saw_terminal = False
        self.emitted = 0
        self.error: OpError | None = None

    @property
    def offset(self) -> int:
        return self._tailer.offset

    def poll(self) -> int:
        count = 0
        for line in self._tailer.read_lines():
            text = line.strip()
            if not text:
                continue
            event = parse_progress_event(text)
            if event is None:
                self._emit(f"[import] {text}")
            else:
                if event.terminal:
                    self._saw_terminal = True
                self._emit(event.render())
            count += 1
        self.emitted += count
        return count

    def _run(self) -> None:
        try:
            while not self._stop.wait(self.interval):
                self.poll()
            deadline = time.monotonic() + self.drain_timeout
            self.poll()
            while not self._saw_terminal:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                time.sleep(min(remaining, 0.025))
                self.poll()
        except OpError as e:
            self.error = e
            self._emit(f"[import] progress unavailable: {e}")

    def start(self) -> "ProgressStreamer":
        if self._thread is not None:
            raise RuntimeError("progress streamer already started")
        self._thread = threading.Thread(target=self._run, name="import-progress", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()

    def __enter__(self) -> "ProgressStreamer":
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.stop()


@contextlib.contextmanager
def progress_log() -> Iterator[Path]:
    try:
        fd, raw_path = tempfile.mkstemp(prefix=PROGRESS_FILE_PREFIX, suffix=PROGRESS_FILE_SUFFIX)
    except OSError as e:
        raise OpError(f"failed to create import progress file in {tempfile.gettempdir()}: {e}") from e
    os.close(fd)
    path = Path(raw_path)
    try:
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()
