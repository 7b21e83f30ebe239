"""Tests for the error envelope."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from coursemart.core.errors import ConflictError


def test_app_error_carries_code_and_field(app: FastAPI) -> None:
    @app.get("/boom/conflict")
    async def conflict() -> None:
        raise ConflictError("Email already registered", "email_taken", field="email")

    response = TestClient(app).get("/boom/conflict", headers={"X-Request-ID": "req-9"})

    assert response.status_code == 409
    assert response.json() == {
        "error": True,
        "message": "Email already registered",
        "code": "email_taken",
        "status_code": 409,
        "request_id": "req-9",
        "field": "email",
    }


def test_unhandled_exception_hides_details(app: FastAPI) -> None:
    @app.get("/boom/crash")
    async def crash() -> None:
        raise RuntimeError("cassandra timeout on host 10.0.0.3")

    response = TestClient(app, raise_server_exceptions=False).get("/boom/crash")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] is True
    assert "cassandra" not in body["message"]


def test_unknown_route_uses_envelope(client: TestClient) -> None:
    response = client.get("/v1/nope")

    assert response.status_code == 404
    assert response.json()["error"] is True
    assert response.json()["message"] == "Not Found"
