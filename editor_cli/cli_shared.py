from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Any


class EditorCliError(Exception):
    pass


class UsageError(EditorCliError):
    pass


class OpError(EditorCliError):
    pass


class TransportError(OpError):
    """The call could not be delivered or its response could not be read."""


class RemoteFault(OpError):
    """The service answered with a well-formed JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = int(code)
        self.message = str(message)
        self.data = data
        super().__init__(f"rpc error {self.code}: {self.message}")


class DecodeError(OpError):
    """The result payload did not have the shape the caller expected."""


AGENT_EDITOR_SERVER = "AGENT_EDITOR_SERVER"
AGENT_EDITOR_TOKEN = "AGENT_EDITOR_TOKEN"
AGENT_EDITOR_TIMEOUT = "AGENT_EDITOR_TIMEOUT"
AGENT_EDITOR_OUTPUT = "AGENT_EDITOR_OUTPUT"

DEFAULT_SERVER_URL = "http://127.0.0.1:35678"
DEFAULT_TIMEOUT_SECONDS = 30.0
OUTPUT_FORMATS = ("text", "json", "yaml")


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class GlobalOpts:
    server: str = DEFAULT_SERVER_URL
    token: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    output: str = "text"
    quiet: bool = False
    verbose: bool = False


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _require_str(val: str | None, name: str, *, hint: str) -> str:
    v = (val or "").strip()
    if not v:
        raise UsageError(f"missing {name} ({hint})")
    return v


def _parse_timeout(raw: str | float | None) -> float:
    if raw is None or str(raw).strip() == "":
        return DEFAULT_TIMEOUT_SECONDS
    try:
        val = float(str(raw).strip())
    except ValueError as e:
        raise UsageError(f"invalid timeout {raw!r}: expected seconds") from e
    if val <= 0:
        raise UsageError(f"invalid timeout {raw!r}: must be positive")
    return val


def _parse_output_format(raw: str | None) -> str:
    fmt = str(raw or "text").strip().lower()
    if fmt not in OUTPUT_FORMATS:
        raise UsageError(f"invalid output format {raw!r} (expected {'|'.join(OUTPUT_FORMATS)})")
    return fmt


def _load_json_object(*, raw: str, label: str) -> dict[str, Any]:
    try:
        val = json.loads(raw)
    except Exception as e:
        raise UsageError(f"invalid {label}: {e}") from e
    if not isinstance(val, dict):
        raise UsageError(f"invalid {label}: expected JSON object")
    return val


def _parse_globs(raw: list[str] | None) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for part in raw or []:
        v = str(part).strip()
        if not v or v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out
