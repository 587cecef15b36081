from fastapi import status


def test_health_ok(client):
    resp = client.get("/health")
    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["status"] == "ok"
    assert body["service"] == "sfconnect-backend"


def test_readyz_needs_signing_secret(client, db_session):
    resp = client.get("/readyz")
    assert resp.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert resp.json()["checks"] == {"db": "ok", "signing_secret": "missing"}

    from sfconnect.seed import initialize_database

    initialize_database(db_session)
    resp = client.get("/readyz")
    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["x-request-id"] == "abc-123"
    assert client.get("/health").headers.get("x-request-id")


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert "cache-control" not in resp.headers or "no-store" not in resp.headers["cache-control"]


def test_auth_responses_are_not_cached(client):
    resp = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED
    assert resp.headers["cache-control"] == "no-store"


def test_metrics_exposed_outside_production(client):
    client.get("/api/auth/me")
    resp = client.get("/metrics")
    assert resp.status_code == status.HTTP_200_OK
    assert "sf_http_requests_total" in resp.text
