from __future__ import annotations

import io
import json
from urllib.error import HTTPError, URLError

import pytest

from editor_cli.cli_shared import DecodeError, RemoteFault, TransportError
from editor_cli.remote_types import RepoAdded
from editor_cli.rpc_client import RpcClient, _jsonrpc_call


class _FakeResponse:
    def __init__(self, body: bytes, status: int = 200) -> None:
        self.status = status
        self.headers = {"Content-Type": "application/json"}
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


def _install(monkeypatch, responder):
    seen: list[dict] = []

    def fake_urlopen(req, timeout=None):
        seen.append(
            {
                "url": req.full_url,
                "method": req.get_method(),
                "headers": {k.lower(): v for k, v in req.header_items()},
                "body": json.loads(req.data.decode("utf-8")),
                "timeout": timeout,
            }
        )
        return responder(seen[-1])

    monkeypatch.setattr("editor_cli.rpc_client.urlopen", fake_urlopen)
    return seen


def _ok(result):
    def responder(call):
        return _FakeResponse(json.dumps({"jsonrpc": "2.0", "id": call["body"]["id"], "result": result}).encode())

    return responder


def test_jsonrpc_call_omits_params_when_absent():
    assert _jsonrpc_call(method="repos_list", req_id="1") == {"jsonrpc": "2.0", "id": "1", "method": "repos_list"}


def test_call_posts_envelope_with_bearer_token(monkeypatch):
    seen = _install(monkeypatch, _ok({"repo_id": "r1"}))
    client = RpcClient(base_url="http://svc.invalid:9/", token="tok", timeout=5)

    res = client.call("repos_add", {"path": "/tmp/x"}, decode=RepoAdded.from_payload)

    assert res == RepoAdded(repo_id="r1")
    call = seen[0]
    assert call["url"] == "http://svc.invalid:9/rpc"
    assert call["method"] == "POST"
    assert call["timeout"] == 5.0
    assert call["headers"]["content-type"] == "application/json"
    assert call["headers"]["authorization"] == "Bearer tok"
    assert call["body"]["jsonrpc"] == "2.0"
    assert call["body"]["method"] == "repos_add"
    assert call["body"]["params"] == {"path": "/tmp/x"}
    assert isinstance(call["body"]["id"], str) and call["body"]["id"]


def test_call_without_token_sends_no_authorization(monkeypatch):
    seen = _install(monkeypatch, _ok([]))
    RpcClient(base_url="http://svc.invalid").call("repos_list", {})
    assert "authorization" not in seen[0]["headers"]


def test_remote_fault_carries_code_and_message(monkeypatch):
    def responder(call):
        body = {"jsonrpc": "2.0", "id": call["body"]["id"], "error": {"code": 404, "message": "not found"}}
        return _FakeResponse(json.dumps(body).encode())

    _install(monkeypatch, responder)
    with pytest.raises(RemoteFault) as ei:
        RpcClient(base_url="http://svc.invalid").call("repos_info", {"id_or_name": "nope"})
    assert ei.value.code == 404
    assert ei.value.message == "not found"
    assert "404" in str(ei.value)
    assert "not found" in str(ei.value)


def test_non_2xx_status_is_transport_error(monkeypatch):
    def responder(call):
        raise HTTPError(call["url"], 500, "boom", {}, io.BytesIO(b"{}"))

    _install(monkeypatch, responder)
    with pytest.raises(TransportError) as ei:
        RpcClient(base_url="http://svc.invalid").call("repos_list", {})
    assert "500" in str(ei.value)
    assert not isinstance(ei.value, RemoteFault)


def test_connection_refused_is_transport_error(monkeypatch):
    def responder(_call):
        raise URLError(ConnectionRefusedError(111, "Connection refused"))

    _install(monkeypatch, responder)
    with pytest.raises(TransportError) as ei:
        RpcClient(base_url="http://127.0.0.1:1").call("repos_list", {})
    assert "Connection refused" in str(ei.value)


def test_timeout_is_transport_error(monkeypatch):
    def responder(_call):
        raise TimeoutError("timed out")

    _install(monkeypatch, responder)
    with pytest.raises(TransportError) as ei:
        RpcClient(base_url="http://svc.invalid", timeout=0.5).call("repos_list", {})
    assert "timed out" in str(ei.value)


def test_non_json_body_is_transport_error(monkeypatch):
    _install(monkeypatch, lambda _call: _FakeResponse(b"<html>oops</html>"))
    with pytest.raises(TransportError):
        RpcClient(base_url="http://svc.invalid").call("repos_list", {})


def test_wrong_result_shape_is_decode_error(monkeypatch):
    _install(monkeypatch, _ok(["not", "an", "object"]))
    with pytest.raises(DecodeError) as ei:
        RpcClient(base_url="http://svc.invalid").call("repos_add", {"path": "x"}, decode=RepoAdded.from_payload)
    assert "repos_add" in str(ei.value)


def test_verbose_traces_to_stderr(monkeypatch, capsys):
    _install(monkeypatch, _ok({}))
    RpcClient(base_url="http://svc.invalid", verbose=True).call("fts_stats", {})
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[rpc] fts_stats" in captured.err
    assert "status=200" in captured.err
