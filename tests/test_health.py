# tests/test_health.py
from fastapi.testclient import TestClient


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_describes_api(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Dmail API"
    assert data["docs"] == "/docs"
