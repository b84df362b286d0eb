from agent_browser_mcp.models import CookieRecord, RefEntry, SessionRecord
from agent_browser_mcp.storage.base import InMemorySessionStore, decode_record


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_record(session_id: str = "abc") -> SessionRecord:
    return SessionRecord(
        id=session_id,
        url="https://example.com/",
        cookies=[CookieRecord(name="sid", value="1", domain="example.com", path="/")],
        local_storage={"theme": "dark"},
        refs={"e1": RefEntry(role="button", name="Go", selector='role=button[name="Go"]')},
        last_snapshot='- button "Go" [ref=e1]',
        created_at=1,
        updated_at=1,
    )


def test_save_then_get_round_trips_fields() -> None:
    store = InMemorySessionStore()
    store.save(make_record())

    loaded = store.get("abc")

    assert loaded is not None
    assert loaded.url == "https://example.com/"
    assert loaded.cookies[0].name == "sid"
    assert loaded.local_storage == {"theme": "dark"}
    assert loaded.refs is not None and loaded.refs["e1"].selector == 'role=button[name="Go"]'
    assert loaded.created_at == 1
    assert loaded.updated_at > 1


def test_records_expire_after_ttl() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=900, clock=clock)
    store.save(make_record())

    clock.now += 899
    assert store.get("abc") is not None

    clock.now += 1
    assert store.get("abc") is None
    assert len(store) == 0


def test_save_restarts_expiry_window() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=10, clock=clock)
    store.save(make_record())

    clock.now += 8
    store.save(make_record())
    clock.now += 8

    assert store.get("abc") is not None


def test_missing_session_is_absent() -> None:
    assert InMemorySessionStore().get("nope") is None


def test_delete_is_idempotent() -> None:
    store = InMemorySessionStore()
    store.save(make_record())

    store.delete("abc")
    store.delete("abc")

    assert store.get("abc") is None


def test_keys_use_prefix() -> None:
    store = InMemorySessionStore(key_prefix="custom:")

    assert store.key_for("abc") == "custom:abc"


def test_decode_record_discards_corrupt_payloads() -> None:
    assert decode_record("not json", "abc") is None
    assert decode_record({"url": "missing id"}, "abc") is None
    assert decode_record(None, "abc") is None


def test_record_serializes_with_camel_case_keys() -> None:
    payload = make_record().to_json()

    assert '"localStorage"' in payload
    assert '"createdAt"' in payload
    assert '"lastSnapshot"' in payload
