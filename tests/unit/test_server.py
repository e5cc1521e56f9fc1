"""Tests for server.py: the FastAPI routes over PublishAPI."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pagepress import __version__
from pagepress.api import CORRELATION_HEADER, PublishAPI
from pagepress.server import create_app

HEADERS = {"X-Api-Key": "test-api-key-1234"}


@pytest.fixture
def client(orchestrator) -> TestClient:
    return TestClient(create_app(PublishAPI(orchestrator)))


def _publish(client, payload, **overrides):
    return client.post("/publish-page", json=payload(**overrides), headers=HEADERS)


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


class TestPublishRoute:
    def test_created(self, client, payload):
        response = _publish(client, payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["action"] == "created"
        assert response.headers[CORRELATION_HEADER]

    def test_bearer_token(self, client, payload):
        response = client.post(
            "/publish-page",
            json=payload(),
            headers={"Authorization": "Bearer test-api-key-1234"},
        )
        assert response.status_code == 201

    def test_missing_key(self, client, payload):
        response = client.post("/publish-page", json=payload())
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_invalid_json(self, client):
        response = client.post("/publish-page", content=b"{oops", headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_FAILED"

    def test_correlation_id_echoed(self, client, payload):
        response = client.post(
            "/publish-page",
            json=payload(),
            headers={**HEADERS, CORRELATION_HEADER: "trace-42"},
        )
        assert response.headers[CORRELATION_HEADER] == "trace-42"


class TestOtherRoutes:
    def test_validate(self, client, payload):
        response = client.post("/validate-page", json=payload(), headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["would_create"] is True

    def test_page_by_slug(self, client, payload):
        _publish(client, payload)
        response = client.get("/page-by-slug/pricing", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["slug"] == "pricing"
        assert client.get("/page-by-slug/ghost", headers=HEADERS).status_code == 404

    def test_versions_and_rollback(self, client, payload):
        page_id = _publish(client, payload).json()["page_id"]
        _publish(client, payload, content={"html": "<h1>Second</h1>"})
        listing = client.get(f"/versions/{page_id}", headers=HEADERS).json()
        assert listing["total"] == 1
        version = listing["versions"][0]["version"]

        response = client.post(f"/rollback/{page_id}", params={"version": version}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["rolled_back_to_version"] == version

    def test_audit_logs(self, client, payload):
        published = client.post(
            "/publish-page",
            json=payload(),
            headers={**HEADERS, CORRELATION_HEADER: "req-audit"},
        )
        page_id = published.json()["page_id"]

        by_page = client.get(f"/logs/{page_id}", headers=HEADERS).json()
        assert [e["action"] for e in by_page["logs"]] == ["publish_success"]

        by_request = client.get("/logs/correlation/req-audit", headers=HEADERS).json()
        assert by_request["total"] == 2

    def test_audit_logs_require_key(self, client):
        assert client.get("/logs/1").status_code == 401

    def test_versions_non_numeric_id(self, client):
        assert client.get("/versions/abc", headers=HEADERS).status_code == 400

    def test_retitle(self, client, payload):
        page_id = _publish(client, payload).json()["page_id"]
        response = client.post(f"/pages/{page_id}/title", json={"title": "Plans"}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["heading_action"] == "updated"

    def test_schedule(self, client, payload):
        body = {**payload(), "publish_at": "2099-05-01T09:00:00Z"}
        response = client.post("/schedule-page", json=body, headers=HEADERS)
        assert response.status_code == 202

    def test_capabilities(self, client):
        response = client.get("/capabilities", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["success"] is True
