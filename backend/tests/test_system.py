from fastapi.testclient import TestClient
from questboard.main import app

client = TestClient(app)

def test_health_ok():
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "request_id" in data

def test_request_id_is_echoed():
    r = client.get("/health", headers={"x-request-id": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert r.json()["request_id"] == "abc-123"

def test_version_ok():
    r = client.get("/version")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "questboard-api"
    assert "version" in data and "git_sha" in data
