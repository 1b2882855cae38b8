from __future__ import annotations


def test_health_endpoints(client) -> None:
    health = client.get("/api/healthz")
    ready = client.get("/api/readyz")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert ready.status_code == 200
    assert ready.json()["status"] == "ready"


def test_responses_carry_request_id(client) -> None:
    response = client.get("/api/healthz", headers={"X-Request-ID": "trace-me"})

    assert response.headers["X-Request-ID"] == "trace-me"


def test_metrics_are_exposed(client) -> None:
    client.get("/api/healthz")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "tips_created_total" in response.text
