import json

import httpx

from agent_browser_mcp.models import SessionRecord
from agent_browser_mcp.storage.kv import RestKVSessionStore


class KVServer:
    """Tiny in-memory emulation of the KV REST command endpoint."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.commands: list[list] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        command = json.loads(request.content)
        self.commands.append(command)
        self.headers.append(request.headers)
        verb = command[0]
        if verb == "GET":
            return httpx.Response(200, json={"result": self.data.get(command[1])})
        if verb == "SET":
            self.data[command[1]] = command[2]
            return httpx.Response(200, json={"result": "OK"})
        if verb == "DEL":
            removed = 1 if self.data.pop(command[1], None) is not None else 0
            return httpx.Response(200, json={"result": removed})
        return httpx.Response(400, json={"error": f"unknown command {verb}"})


def make_store(handler) -> RestKVSessionStore:
    return RestKVSessionStore(
        "https://kv.example.com/",
        "secret",
        ttl_seconds=900,
        transport=httpx.MockTransport(handler),
    )


def test_save_sets_value_with_expiry() -> None:
    server = KVServer()
    store = make_store(server)

    store.save(SessionRecord(id="abc", url="https://example.com/"))

    command = server.commands[-1]
    assert command[:2] == ["SET", "browser_session:abc"]
    assert command[3:] == ["EX", 900]
    assert json.loads(command[2])["url"] == "https://example.com/"
    assert server.headers[-1]["authorization"] == "Bearer secret"


def test_get_returns_saved_record() -> None:
    server = KVServer()
    store = make_store(server)
    store.save(SessionRecord(id="abc", url="https://example.com/"))

    loaded = store.get("abc")

    assert loaded is not None
    assert loaded.id == "abc"
    assert server.commands[-1] == ["GET", "browser_session:abc"]


def test_get_missing_key_is_absent() -> None:
    assert make_store(KVServer()).get("nope") is None


def test_delete_issues_del_command() -> None:
    server = KVServer()
    store = make_store(server)
    store.save(SessionRecord(id="abc"))

    store.delete("abc")
    store.delete("abc")

    assert server.commands[-1] == ["DEL", "browser_session:abc"]
    assert "browser_session:abc" not in server.data


def test_backend_failures_degrade_to_absent() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    store = make_store(broken)

    assert store.get("abc") is None
    store.save(SessionRecord(id="abc"))
    store.delete("abc")


def test_command_errors_degrade_to_absent() -> None:
    def rejecting(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "WRONGPASS"})

    assert make_store(rejecting).get("abc") is None


def test_transport_errors_degrade_to_absent() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = make_store(unreachable)

    assert store.get("abc") is None
    store.save(SessionRecord(id="abc"))


def test_corrupt_value_is_absent() -> None:
    def corrupt(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": "{not json"})

    assert make_store(corrupt).get("abc") is None


def test_close_releases_http_client() -> None:
    store = make_store(KVServer())

    store.close()

    assert store._client.is_closed
