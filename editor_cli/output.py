from __future__ import annotations

import json
import sys
from typing import Any

import yaml

from .cli_shared import OUTPUT_FORMATS, UsageError
from .remote_types import to_plain


def render(value: Any, fmt: str) -> str:
    data = to_plain(value)
    if fmt == "json":
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=True, default_flow_style=False, allow_unicode=True)
    if fmt == "text":
        if isinstance(data, str):
            return data + "\n"
        if isinstance(data, list) and all(isinstance(v, str) for v in data):
            return "".join(f"{v}\n" for v in data)
        return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False) + "\n"
    raise UsageError(f"unknown output format {fmt!r} (expected {'|'.join(OUTPUT_FORMATS)})")


def print_result(value: Any, fmt: str) -> None:
    sys.stdout.write(render(value, fmt))
