import pytest

from cashsouk.core import health as health_module


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch, tmp_path):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    monkeypatch.setattr(health_module.settings, "storage_provider", "local")
    monkeypatch.setattr(health_module.settings, "local_upload_dir", str(tmp_path))
    yield


def _checks(monkeypatch, *, db: dict, redis: dict) -> None:
    async def check_db():
        return db

    async def check_redis():
        return redis

    monkeypatch.setattr(health_module, "_check_db", check_db)
    monkeypatch.setattr(health_module, "_check_redis", check_redis)


def test_health_live_returns_ok(client) -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("version") == health_module.APP_VERSION


def test_health_ready_ok(client, monkeypatch) -> None:
    _checks(monkeypatch, db={"status": "ok"}, redis={"status": "ok"})

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload["checks"]["storage"]["provider"] == "local"


def test_redis_outage_degrades_but_stays_ready(client, monkeypatch) -> None:
    _checks(monkeypatch, db={"status": "ok"}, redis={"status": "error", "error": "ConnectionError"})

    payload = client.get("/api/v1/health/ready").json()["data"]
    assert payload.get("status") == "degraded"
    assert payload.get("ready") is True


def test_database_outage_is_not_ready(client, monkeypatch) -> None:
    _checks(monkeypatch, db={"status": "error", "error": "OSError"}, redis={"status": "ok"})

    payload = client.get("/api/v1/health/ready").json()["data"]
    assert payload.get("status") == "unavailable"
    assert payload.get("ready") is False
    assert payload["checks"]["database"]["status"] == "error"


def test_gcs_without_bucket_is_not_ready(client, monkeypatch) -> None:
    _checks(monkeypatch, db={"status": "ok"}, redis={"status": "ok"})
    monkeypatch.setattr(health_module.settings, "storage_provider", "gcs")
    monkeypatch.setattr(health_module.settings, "gcs_bucket", None)

    payload = client.get("/api/v1/health/ready").json()["data"]
    assert payload.get("ready") is False
    assert payload["checks"]["storage"]["status"] == "error"


def test_responses_carry_request_id_and_security_headers(client) -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-42"})
    assert response.headers["x-request-id"] == "req-42"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["cache-control"] == "no-store"
