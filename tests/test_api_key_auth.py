from __future__ import annotations

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from api.index import app as api_app
from dsegrader.main import app


def test_essays_require_api_key_when_configured(isolated_db, auth_headers, monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_API_KEY", "test-api-key")
    headers = auth_headers()

    with TestClient(app) as client:
        unauthorized = client.get("/essays", headers=headers)
        authorized = client.get("/essays", headers={**headers, "X-API-Key": "test-api-key"})
        health = client.get("/health")

    assert unauthorized.status_code == 401
    assert authorized.status_code == 200
    assert health.status_code == 200


def test_prefixed_entrypoint_answers_preflight_and_routes_under_api(isolated_db, auth_headers, monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_API_KEY", "test-api-key")
    headers = auth_headers()

    with TestClient(api_app) as client:
        preflight = client.options(
            "/api/essays",
            headers={"Origin": "https://example.com", "Access-Control-Request-Method": "POST"},
        )
        unauthorized_post = client.post("/api/essays", json={"title": "t", "prompt": "p", "content": "c"}, headers=headers)
        authorized_post = client.post(
            "/api/essays",
            json={"title": "t", "prompt": "p", "content": "c"},
            headers={**headers, "X-API-Key": "test-api-key"},
        )

    assert preflight.status_code == 204
    assert preflight.headers["access-control-allow-origin"] == "https://example.com"
    assert preflight.headers["access-control-allow-methods"] == "DELETE,GET,OPTIONS,POST"
    assert unauthorized_post.status_code == 401
    assert authorized_post.status_code == 201
