import importlib
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from remote.bridge import SyncErrorKind, SyncResult

SLEEP = {"id": "s1", "timestamp": "2024-01-10T20:00:00Z", "kind": "SLEEP", "subtype": "NIGHT"}
BATH = {"id": "b1", "timestamp": "2024-01-11T19:00:00Z", "kind": "BATH"}


# We import the server AFTER monkeypatching env when needed
def make_app(monkeypatch, tmp_path, remote_url=None, fakes=None):
    monkeypatch.setenv("BABYLOG_DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.delenv("BABYLOG_SLOT", raising=False)
    if remote_url is not None:
        monkeypatch.setenv("BABYLOG_REMOTE_URL", remote_url)
    else:
        monkeypatch.delenv("BABYLOG_REMOTE_URL", raising=False)

    # Monkeypatch bridge entrypoints before importing the app
    import remote.bridge as br
    for name, fake in (fakes or {}).items():
        monkeypatch.setattr(br, name, fake, raising=True)

    server_main = importlib.import_module("server.main")
    importlib.reload(server_main)
    return server_main.app


@pytest.fixture
def client(monkeypatch, tmp_path):
    return TestClient(make_app(monkeypatch, tmp_path))


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_add_and_list_events(client):
    assert client.post("/events", json=BATH).status_code == 201
    r = client.post("/events", json=SLEEP)
    assert r.status_code == 201
    assert r.json()["subtype"] == "NIGHT"

    newest_first = [e["id"] for e in client.get("/events").json()]
    oldest_first = [e["id"] for e in client.get("/events", params={"order": "asc"}).json()]
    assert newest_first == ["b1", "s1"]
    assert oldest_first == ["s1", "b1"]


def test_invalid_event_returns_422(client):
    r = client.post("/events", json={"timestamp": "2024-01-10T20:00:00Z", "kind": "GROWTH"})
    assert r.status_code == 422


def test_numeric_timestamp_returns_422(client):
    r = client.post("/events", json={"id": "b1", "kind": "BATH", "timestamp": 1700000000})
    assert r.status_code == 422
    assert client.get("/events").json() == []


def test_update_event(client):
    client.post("/events", json=SLEEP)
    r = client.put("/events/s1", json={**SLEEP, "endTime": "2024-01-11T06:00:00Z"})
    assert r.status_code == 200
    (stored,) = client.get("/events").json()
    assert stored["endTime"].startswith("2024-01-11T06:00:00")


def test_update_unknown_or_mismatched_id(client):
    assert client.put("/events/s1", json=SLEEP).status_code == 404
    client.post("/events", json=SLEEP)
    assert client.put("/events/other", json=SLEEP).status_code == 400


def test_delete_event(client):
    client.post("/events", json=SLEEP)
    r = client.delete("/events/s1")
    assert r.status_code == 200
    assert r.json() == {"deleted": "s1"}
    assert client.delete("/events/s1").status_code == 404
    assert client.get("/events").json() == []


def test_import_csv_twice(client):
    content = "Дата,Событие,Тип\n2024-01-05 10:00,Подгузник,Мокрый\n"
    first = client.post("/import", json={"format": "csv", "content": content}).json()
    assert first == {"success": True, "count": 1, "message": "Imported 1 records."}
    second = client.post("/import", json={"format": "csv", "content": content}).json()
    assert second["count"] == 0


def test_import_bad_json_is_reported_not_raised(client):
    r = client.post("/import", json={"format": "json", "content": "[oops"})
    assert r.status_code == 200
    assert r.json()["success"] is False


def test_exports(client):
    client.post("/events", json=SLEEP)

    backup = client.get("/export/json")
    assert backup.status_code == 200
    assert backup.json()[0]["id"] == "s1"

    csv_text = client.get("/export/csv").text
    assert csv_text.splitlines()[1].split(",")[1] == "Сон"

    dump = client.get("/export/sql").text
    assert dump.startswith("-- PostgreSQL Dump")
    assert "'Ночной сон', 'SLEEP', 'NIGHT'" in dump


def test_export_sql_empty(client):
    assert client.get("/export/sql").text == "-- No events to export"


def test_sync_without_remote_url_returns_400(client):
    assert client.post("/sync/push").status_code == 400
    assert client.post("/sync/pull").status_code == 400
    assert client.get("/sync/status").status_code == 400


def test_sync_push_uses_stored_events(monkeypatch, tmp_path):
    seen = {}

    def fake_push(config, events):
        seen["url"] = config.url
        seen["ids"] = [e.id for e in events]
        return SyncResult(success=True, count=len(events), message="ok")

    app = make_app(monkeypatch, tmp_path, remote_url="https://example.test/rest/v1/baby_events/", fakes={"push_events": fake_push})
    client = TestClient(app)
    client.post("/events", json=SLEEP)

    r = client.post("/sync/push")
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert seen == {"url": "https://example.test/rest/v1/baby_events", "ids": ["s1"]}


def test_sync_pull_failure_maps_to_502(monkeypatch, tmp_path):
    def fake_pull(config, merge_into):
        return SyncResult(success=False, error_kind=SyncErrorKind.NETWORK, error="Network error (CORS or server unreachable)")

    app = make_app(monkeypatch, tmp_path, remote_url="https://example.test/x", fakes={"pull_events": fake_pull})
    r = TestClient(app).post("/sync/pull")
    assert r.status_code == 502
    assert r.json()["error_kind"] == "network"


def test_sync_pull_merges_into_store(monkeypatch, tmp_path):
    from events.schema import parse_event

    def fake_pull(config, merge_into):
        result = merge_into([parse_event(BATH)])
        return SyncResult(success=True, count=result.count, message=result.message)

    app = make_app(monkeypatch, tmp_path, remote_url="https://example.test/x", fakes={"pull_events": fake_pull})
    client = TestClient(app)
    assert client.post("/sync/pull").json()["count"] == 1
    assert client.post("/sync/pull").json()["count"] == 0
    assert [e["id"] for e in client.get("/events").json()] == ["b1"]


def test_sync_status(monkeypatch, tmp_path):
    app = make_app(monkeypatch, tmp_path, remote_url="https://example.test/x", fakes={"check_connection": lambda config: True})
    r = TestClient(app).get("/sync/status")
    assert r.json() == {"url": "https://example.test/x", "reachable": True}
