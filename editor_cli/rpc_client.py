from __future__ import annotations

import json
import time
from typing import Any, Callable, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .cli_shared import (
    DEFAULT_SERVER_URL,
    DEFAULT_TIMEOUT_SECONDS,
    DecodeError,
    RemoteFault,
    TransportError,
    _eprint,
)

T = TypeVar("T")

JSONRPC_VERSION = "2.0"
RPC_PATH = "/rpc"


def _http_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> tuple[int, dict[str, str], bytes]:
    req = Request(url, data=body, method=str(method).upper())
    for k, v in headers.items():
        req.add_header(k, v)
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            status = getattr(resp, "status", 200)
            hdrs = {k.lower(): v for k, v in dict(resp.headers).items()}
            data = resp.read()
            return int(status), hdrs, data
    except HTTPError as e:
        hdrs = {k.lower(): v for k, v in dict(e.headers or {}).items()}
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), hdrs, data
    except URLError as e:
        raise TransportError(f"rpc request to {url} failed: {e.reason}") from e
    except TimeoutError as e:
        raise TransportError(f"rpc request to {url} timed out after {timeout_seconds:g}s") from e
    except OSError as e:
        raise TransportError(f"rpc request to {url} failed: {e}") from e


def _correlation_id() -> str:
    return str(time.time_ns())


def _jsonrpc_call(*, method: str, params: dict[str, Any] | None = None, req_id: str) -> dict[str, Any]:
    req: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": req_id,
        "method": method,
    }
    if isinstance(params, dict):
        req["params"] = params
    return req


def _parse_envelope(*, raw: bytes, method: str) -> dict[str, Any]:
    text = raw.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text)
    except Exception as e:
        raise TransportError(f"invalid rpc response for {method}: {e}") from e
    if not isinstance(parsed, dict):
        raise TransportError(f"invalid rpc response for {method}: expected JSON object")
    return parsed


def _raise_for_fault(envelope: dict[str, Any], *, method: str) -> None:
    if envelope.get("error") is None:
        return
    err = envelope["error"]
    if not isinstance(err, dict):
        raise TransportError(f"invalid rpc response for {method}: error is not an object")
    try:
        code = int(err.get("code"))
    except (TypeError, ValueError) as e:
        raise TransportError(f"invalid rpc response for {method}: error code is not an integer") from e
    raise RemoteFault(code, str(err.get("message") or ""), err.get("data"))


class RpcClient:
    """Single-shot JSON-RPC client for the agent-editor service.

    Every ``call`` is one HTTP POST to ``<base_url>/rpc``. Failures fall into
    three disjoint kinds: ``TransportError`` (the call never produced a
    readable envelope), ``RemoteFault`` (the service returned an error object)
    and ``DecodeError`` (the result did not match the expected shape). There
    are no retries.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_SERVER_URL,
        token: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verbose: bool = False,
    ) -> None:
        self.base_url = str(base_url or DEFAULT_SERVER_URL).strip().rstrip("/")
        self.token = str(token or "").strip()
        self.timeout = float(timeout)
        self.verbose = verbose

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{RPC_PATH}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "content-type": "application/json",
            "accept": "application/json",
        }
        if self.token:
            headers["authorization"] = f"Bearer {self.token}"
        return headers

    def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        decode: Callable[[Any], T] | None = None,
        timeout: float | None = None,
    ) -> Any:
        req_id = _correlation_id()
        body = json.dumps(
            _jsonrpc_call(method=method, params=params, req_id=req_id),
            separators=(",", ":"),
        ).encode("utf-8")
        started = time.perf_counter()
        status, _hdrs, raw = _http_request(
            method="POST",
            url=self.endpoint,
            headers=self._headers(),
            body=body,
            timeout_seconds=self.timeout if timeout is None else float(timeout),
        )
        if self.verbose:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            _eprint(f"[rpc] {method} id={req_id} status={status} {elapsed_ms:.1f}ms")
        if status < 200 or status >= 300:
            raise TransportError(f"rpc http status {status}")

        envelope = _parse_envelope(raw=raw, method=method)
        _raise_for_fault(envelope, method=method)
        result = envelope.get("result")
        if decode is None:
            return result
        try:
            return decode(result)
        except DecodeError as e:
            raise DecodeError(f"rpc decode error ({method}): {e}") from e
