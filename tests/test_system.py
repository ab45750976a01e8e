from eduknit import config


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "UP"
    assert data["version"] == config.VERSION
    assert data["uptime_seconds"] >= 0


def test_liveness_and_version(client):
    assert client.get("/health/live").json()["status"] == "UP"
    assert client.get("/version").json() == {"version": config.VERSION, "api": "v1"}


def test_readiness_reports_database_state(client):
    response = client.get("/health/ready")
    assert response.status_code in (200, 503)
    assert response.json()["database"] in ("UP", "DOWN")


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["path"] == "/api/does-not-exist"


def test_validation_errors_use_envelope(client):
    response = client.post("/api/auth/login", json={"email": "x@example.com"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["field"] == "password"
