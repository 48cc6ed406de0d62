from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from authgate.core.errors import TokenNotFoundError
from authgate.core.app_factory import create_app


@pytest.fixture
def client() -> TestClient:
    app = create_app()

    @app.get("/boom")
    def boom() -> None:
        raise TokenNotFoundError()

    return TestClient(app)


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id(client: TestClient):
    resp = client.get("/boom", headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 404
    assert resp.json()["error"]["request_id"] == "req-err-1"
    assert resp.headers.get("X-Request-ID") == "req-err-1"
