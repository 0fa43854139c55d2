from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import Base
from main import create_app
from rate_limit import limiter


def _post(client, **body):
    return client.post("/api/attendance", json=body)


def test_create_returns_stored_record(client):
    resp = _post(
        client,
        deviceId="dev1",
        deviceName="Front door",
        timestamp="2024-01-01T08:00:00Z",
        battery=87.5,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["deviceId"] == "dev1"
    assert data["deviceName"] == "Front door"
    assert data["battery"] == 87.5
    assert datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00")) == datetime(2024, 1, 1, 8, tzinfo=timezone.utc)
    assert data["id"]
    assert "createdAt" in data and "updatedAt" in data


def test_create_accepts_epoch_milliseconds(client):
    resp = _post(client, deviceId="dev1", timestamp=1704067200000)
    assert resp.status_code == 201
    assert resp.json()["timestamp"].startswith("2024-01-01T00:00:00")


def test_create_without_device_id_is_rejected(client):
    resp = _post(client, timestamp="2024-01-01T08:00:00Z")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "deviceId and timestamp required"
    assert client.get("/api/attendance").json() == []


def test_create_without_timestamp_is_rejected(client):
    resp = _post(client, deviceId="dev1")
    assert resp.status_code == 400
    assert client.get("/api/attendance").json() == []


def test_create_with_unparseable_timestamp_is_rejected(client):
    resp = _post(client, deviceId="dev1", timestamp="last tuesday")
    assert resp.status_code == 400
    assert client.get("/api/attendance").json() == []


def test_list_by_device_returns_newest_within_limit(client):
    for day in range(1, 6):
        _post(client, deviceId="dev1", timestamp=f"2024-01-0{day}T10:00:00Z")
    _post(client, deviceId="dev2", timestamp="2024-01-09T10:00:00Z")

    resp = client.get("/api/attendance", params={"deviceId": "dev1", "limit": "2"})
    assert resp.status_code == 200
    records = resp.json()
    assert [r["timestamp"][:10] for r in records] == ["2024-01-05", "2024-01-04"]
    assert {r["deviceId"] for r in records} == {"dev1"}


def test_list_with_range_and_bad_limit(client):
    for day in range(1, 6):
        _post(client, deviceId="dev1", timestamp=f"2024-01-0{day}T10:00:00Z")

    resp = client.get(
        "/api/attendance",
        params={"from": "2024-01-02", "to": "2024-01-04T10:00:00Z", "limit": "zero"},
    )
    assert resp.status_code == 200
    assert [r["timestamp"][:10] for r in resp.json()] == ["2024-01-04", "2024-01-03", "2024-01-02"]


def test_list_ignores_malformed_dates(client):
    _post(client, deviceId="dev1", timestamp="2024-01-01T10:00:00Z")
    resp = client.get("/api/attendance", params={"from": "soon", "to": "later"})
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_stats_defaults_to_fourteen_dense_days(client):
    now = datetime.now(timezone.utc)
    _post(client, deviceId="dev1", timestamp=now.isoformat())
    _post(client, deviceId="dev2", timestamp=now.isoformat())
    _post(client, deviceId="dev1", timestamp=(now - timedelta(days=30)).isoformat())

    resp = client.get("/api/attendance/stats")
    assert resp.status_code == 200
    points = resp.json()
    assert len(points) == 14
    assert points[-1] == {"date": now.strftime("%Y-%m-%d"), "count": 2}
    assert sum(p["count"] for p in points) == 2
    assert [p["date"] for p in points] == sorted(p["date"] for p in points)


def test_stats_respects_days(client):
    resp = client.get("/api/attendance/stats", params={"days": "3"})
    assert resp.status_code == 200
    assert len(resp.json()) == 3
    resp = client.get("/api/attendance/stats", params={"days": "0"})
    assert len(resp.json()) == 14


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert datetime.fromisoformat(data["time"]).tzinfo is not None


def test_store_failure_is_a_generic_500(client, store):
    Base.metadata.drop_all(bind=store.engine)
    for resp in (
        client.get("/api/attendance"),
        client.get("/api/attendance/stats"),
        _post(client, deviceId="dev1", timestamp="2024-01-01T00:00:00Z"),
    ):
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}


def test_static_directory_is_served_alongside_api(store, tmp_path):
    (tmp_path / "index.html").write_text("<h1>attendance</h1>")
    app = create_app(store=store, settings=Settings(STATIC_DIR=str(tmp_path)))
    with TestClient(app) as client:
        assert "attendance" in client.get("/").text
        assert client.get("/api/health").status_code == 200


def test_create_with_out_of_range_offset_is_rejected(client):
    resp = _post(client, deviceId="dev1", timestamp="0001-01-01T00:00:00+01:00")
    assert resp.status_code == 400
    assert client.get("/api/attendance").json() == []


def test_create_stores_numeric_device_id_as_string(client):
    resp = _post(client, deviceId=123, timestamp="2024-01-01T08:00:00Z")
    assert resp.status_code == 201
    assert resp.json()["deviceId"] == "123"
    listed = client.get("/api/attendance", params={"deviceId": "123"}).json()
    assert len(listed) == 1


def test_list_tolerates_extreme_parameters(client):
    _post(client, deviceId="dev1", timestamp="2024-01-01T10:00:00Z")
    for params in (
        {"from": "0001-01-01T00:00:00+01:00"},
        {"to": "9999-12-31T23:00:00-05:00"},
        {"limit": "99999999999999999999"},
    ):
        resp = client.get("/api/attendance", params=params)
        assert resp.status_code == 200
        assert len(resp.json()) == 1


def test_stats_clamps_oversized_window(client):
    resp = client.get("/api/attendance/stats", params={"days": "800000"})
    assert resp.status_code == 200
    points = resp.json()
    assert len(points) == 3650
    assert points[-1]["date"] == datetime.now(timezone.utc).strftime("%Y-%m-%d")


@pytest.fixture
def low_write_limit(monkeypatch):
    monkeypatch.setenv("WRITE_RATE_LIMIT", "2/minute")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    limiter.reset()


def test_write_path_is_rate_limited(low_write_limit, client):
    statuses = [
        _post(client, deviceId="dev1", timestamp=f"2024-01-0{day}T10:00:00Z").status_code
        for day in range(1, 4)
    ]
    assert statuses == [201, 201, 429]
    assert len(client.get("/api/attendance").json()) == 2
    # Reads are not limited
    assert client.get("/api/attendance/stats").status_code == 200
